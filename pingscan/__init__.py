from pingscan.errors import (
    PingError, FormatError, NotEnoughData, VarIntTooLong, InvalidString, InvalidFrame,
    ServerConnectionError, ProtocolViolation, SchemaError, AddressTooLong,
)
from pingscan.packet import Packet, encode_packet, decode_packet, PacketReader
from pingscan.raw_ping import QueryResult, query_server
from pingscan.response import StatusPayload, parse_status
from pingscan.scanner import probe, scan_range
from pingscan.state import ScanState

__version__ = "0.3.0"
