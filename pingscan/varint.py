import struct
from typing import Tuple

from pingscan.errors import NotEnoughData, VarIntTooLong, InvalidString

MAX_VARINT_LEN = 5
INT32_MIN, INT32_MAX = -(1 << 31), (1 << 31) - 1


def write_varint(value: int) -> bytes:
    if not INT32_MIN <= value <= INT32_MAX:
        raise ValueError(f"VarInt out of range: {value}")
    value &= 0xFFFFFFFF
    out = b""
    while True:
        temp = value & 0b01111111
        value >>= 7
        if value != 0:
            out += struct.pack("B", temp | 0b10000000)
        else:
            out += struct.pack("B", temp)
            break
    return out


def read_varint(buf: bytes, offset: int = 0) -> Tuple[int, int]:
    """Decode a VarInt at ``buf[offset:]``.

    Returns ``(value, bytes_consumed)``. Raises NotEnoughData when the buffer
    ends before the terminating byte and VarIntTooLong when a sixth byte
    would be needed.
    """
    result = 0
    for i in range(MAX_VARINT_LEN):
        if offset + i >= len(buf):
            raise NotEnoughData("buffer ended inside VarInt")
        byte = buf[offset + i]
        result |= (byte & 0b01111111) << (7 * i)
        if (byte & 0b10000000) == 0:
            result &= 0xFFFFFFFF
            if result & 0x80000000:
                result -= 1 << 32
            return result, i + 1
    raise VarIntTooLong()


def write_string(value: str) -> bytes:
    data = value.encode("utf-8")
    return write_varint(len(data)) + data


def read_string(buf: bytes, offset: int = 0) -> Tuple[str, int]:
    try:
        length, len_len = read_varint(buf, offset)
    except NotEnoughData as e:
        raise InvalidString("buffer ended inside string length") from e
    start = offset + len_len
    if length < 0 or start + length > len(buf):
        raise InvalidString(f"declared string length {length} exceeds buffer ({len(buf) - start} bytes left)")
    try:
        text = bytes(buf[start:start + length]).decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidString(f"invalid UTF-8: {e}") from e
    return text, len_len + length
