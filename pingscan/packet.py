import asyncio
from dataclasses import dataclass
from typing import Optional, Tuple

from pingscan.errors import NotEnoughData, InvalidFrame, ServerConnectionError
from pingscan.varint import write_varint, read_varint, INT32_MAX

READ_CHUNK = 4096
# largest frame a vanilla server accepts (3-byte VarInt)
MAX_PACKET_LEN = 2097151


@dataclass(frozen=True)
class Packet:
    id: int
    data: bytes = b""


def encode_packet(packet_id: int, data: bytes = b"") -> bytes:
    if len(data) > INT32_MAX:
        raise ValueError("packet data longer than 2**31-1 bytes")
    id_bytes = write_varint(packet_id)
    length = len(id_bytes) + len(data)
    if length > INT32_MAX:
        raise ValueError("packet length does not fit a VarInt")
    return write_varint(length) + id_bytes + bytes(data)


def decode_packet(buf: bytes) -> Optional[Tuple[Packet, int]]:
    """Try to decode one frame from the front of ``buf``.

    Returns ``None`` if the frame is incomplete, otherwise ``(packet, consumed)``.
    Nothing is ever mutated; the caller drops ``consumed`` bytes itself.
    FormatError is raised for frames that can never become valid.
    """
    try:
        length, len_len = read_varint(buf)
    except NotEnoughData:
        return None
    if length < 1:
        raise InvalidFrame(f"bad frame length {length}")
    if length > MAX_PACKET_LEN:
        raise InvalidFrame(f"frame length {length} exceeds {MAX_PACKET_LEN} bytes")
    try:
        packet_id, id_len = read_varint(buf, len_len)
    except NotEnoughData:
        if len(buf) - len_len >= length:
            raise InvalidFrame("packet id does not fit inside the frame")
        return None
    data_len = length - id_len
    if data_len < 0:
        raise InvalidFrame(f"frame length {length} shorter than its packet id")
    data_start = len_len + id_len
    data_end = data_start + data_len
    if len(buf) < data_end:
        return None
    return Packet(packet_id, bytes(buf[data_start:data_end])), data_end


class PacketReader:
    """Reads whole packets from a StreamReader, keeping leftover bytes between calls.

    ``timeout`` bounds each ``read_packet`` call as a whole, not each chunk.
    """

    def __init__(self, reader: asyncio.StreamReader, timeout: Optional[float] = None):
        self.reader = reader
        self.timeout = timeout
        self.buffer = bytearray()

    def next_buffered(self) -> Optional[Packet]:
        decoded = decode_packet(self.buffer)
        if decoded is None:
            return None
        packet, consumed = decoded
        del self.buffer[:consumed]
        return packet

    async def read_packet(self) -> Packet:
        loop = asyncio.get_running_loop()
        deadline = None if self.timeout is None else loop.time() + self.timeout
        while True:
            packet = self.next_buffered()
            if packet is not None:
                return packet
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                raise ServerConnectionError(f"timed out waiting for packet ({len(self.buffer)} bytes buffered)")
            try:
                chunk = await asyncio.wait_for(self.reader.read(READ_CHUNK), timeout=remaining)
            except asyncio.TimeoutError as e:
                raise ServerConnectionError("timed out waiting for packet") from e
            except OSError as e:
                raise ServerConnectionError(f"read failed: {e}") from e
            if not chunk:
                raise ServerConnectionError(f"connection closed with {len(self.buffer)} bytes of an unfinished packet")
            self.buffer += chunk
