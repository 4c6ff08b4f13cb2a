import asyncio, logging, struct, time
from dataclasses import dataclass
from typing import Optional

from pingscan.errors import (
    AddressTooLong, ProtocolViolation, SchemaError, ServerConnectionError,
)
from pingscan.packet import PacketReader, encode_packet
from pingscan.response import StatusPayload, parse_status
from pingscan.varint import write_varint, write_string, read_string

log = logging.getLogger(__name__)

PROTOCOL_UNSPECIFIED = -1
NEXT_STATE_STATUS = 1
STATUS_ID = 0x00
PING_ID = 0x01
MAX_ADDRESS_LEN = 255
INT64_MIN, INT64_MAX = -(1 << 63), (1 << 63) - 1


def build_handshake(host: str, port: int) -> bytes:
    if len(host.encode("utf-8")) > MAX_ADDRESS_LEN:
        raise AddressTooLong(f"address longer than {MAX_ADDRESS_LEN} bytes")
    data = b""
    data += write_varint(PROTOCOL_UNSPECIFIED)
    data += write_string(host)
    data += struct.pack(">H", port)
    data += write_varint(NEXT_STATE_STATUS)
    return encode_packet(STATUS_ID, data)


def build_status_request() -> bytes:
    return encode_packet(STATUS_ID)


def build_ping(payload: int) -> bytes:
    if not INT64_MIN <= payload <= INT64_MAX:
        raise ValueError(f"ping payload out of int64 range: {payload}")
    return encode_packet(PING_ID, struct.pack(">q", payload))


async def _send(writer: asyncio.StreamWriter, data: bytes):
    try:
        writer.write(data)
        await writer.drain()
    except OSError as e:
        raise ServerConnectionError(f"write failed: {e}") from e


async def handshake(writer: asyncio.StreamWriter, host: str, port: int):
    await _send(writer, build_handshake(host, port))


async def request(writer: asyncio.StreamWriter):
    await _send(writer, build_status_request())


async def response(packets: PacketReader) -> str:
    """Read the status response and return its JSON text, unparsed."""
    packet = await packets.read_packet()
    if packet.id != STATUS_ID:
        raise ProtocolViolation(f"expected status response (id 0), got id {packet.id}")
    json_text, _ = read_string(packet.data)
    return json_text


async def ping(writer: asyncio.StreamWriter, payload: int):
    await _send(writer, build_ping(payload))


async def pong(packets: PacketReader) -> int:
    packet = await packets.read_packet()
    if packet.id != PING_ID:
        raise ProtocolViolation(f"expected pong (id 1), got id {packet.id}")
    if len(packet.data) != 8:
        raise ProtocolViolation(f"pong payload is {len(packet.data)} bytes, expected 8")
    return struct.unpack(">q", packet.data)[0]


async def open_connection(host: str, port: int, timeout: float):
    try:
        return await asyncio.wait_for(asyncio.open_connection(host, port), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise ServerConnectionError(f"connect to {host}:{port} timed out after {timeout}s") from e
    except OSError as e:
        raise ServerConnectionError(f"connect to {host}:{port} failed: {e}") from e


async def close_writer(writer: asyncio.StreamWriter):
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass


@dataclass
class QueryResult:
    host: str
    port: int
    raw_json: str
    latency_ms: float
    status: Optional[StatusPayload] = None
    schema_error: Optional[SchemaError] = None


async def query_server(host: str, port: int, timeout: float = 2.5, payload: Optional[int] = None) -> QueryResult:
    """Run the whole exchange (handshake, status, ping, pong) on one connection.

    ``host`` is sent verbatim in the handshake, so callers resolve names first.
    Connection and format errors propagate; a status JSON that fails schema
    mapping is stored on the result and the ping still runs.
    """
    if payload is None:
        payload = time.time_ns() // 1_000_000
    reader, writer = await open_connection(host, port, timeout)
    try:
        packets = PacketReader(reader, timeout)
        log.debug("handshake %s:%s", host, port)
        await handshake(writer, host, port)
        await request(writer)
        raw_json = await response(packets)
        status, schema_error = None, None
        try:
            status = parse_status(raw_json)
        except SchemaError as e:
            log.warning("%s:%s sent a status that does not match the schema: %s (%.200s)", host, port, e, raw_json)
            schema_error = e
        started = time.perf_counter()
        await ping(writer, payload)
        echoed = await pong(packets)
        latency_ms = (time.perf_counter() - started) * 1000
        if echoed != payload:
            raise ProtocolViolation(f"pong payload {echoed} does not match ping payload {payload}")
        return QueryResult(host, port, raw_json, latency_ms, status, schema_error)
    finally:
        await close_writer(writer)
