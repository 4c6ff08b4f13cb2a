import asyncio, re, socket
from typing import Iterable, Tuple

from pingscan.errors import ServerConnectionError

DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m)?\s*$")
PORT_RANGE_RE = re.compile(r"^\s*(\d+)\s*-\s*(\d+)\s*$")
BRACKETED_RE = re.compile(r"^\[([^\]]+)\](?::(\d+))?$")
DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, None: 1.0}


def parse_port(value: str) -> int:
    port = int(value)
    if not 0 <= port <= 65535:
        raise ValueError(f"port out of range: {port}")
    return port


def parse_address(address: str, default_port: int) -> Tuple[str, int]:
    """Split ``host[:port]``; IPv6 literals need brackets to carry a port."""
    address = address.strip()
    if not address:
        raise ValueError("empty address")
    m = BRACKETED_RE.match(address)
    if m:
        return m.group(1), parse_port(m.group(2)) if m.group(2) else default_port
    if address.count(":") == 1:
        host, port = address.split(":")
        if not host:
            raise ValueError(f"missing host in {address!r}")
        return host, parse_port(port)
    return address, default_port


def parse_port_range(text: str) -> Tuple[int, int]:
    m = PORT_RANGE_RE.match(text)
    if not m:
        port = parse_port(text.strip())
        return port, port
    return parse_port(m.group(1)), parse_port(m.group(2))


def parse_payload(value: str) -> int:
    payload = int(value)
    if not -(1 << 63) <= payload < (1 << 63):
        raise ValueError(f"payload must fit a signed 64-bit integer: {payload}")
    return payload


def parse_duration(text: str) -> float:
    """``"500ms"``, ``"2s"``, ``"1.5"`` (seconds) or ``"1m"`` to seconds."""
    m = DURATION_RE.match(text)
    if not m:
        raise ValueError(f"invalid duration: {text!r}")
    seconds = float(m.group(1)) * DURATION_UNITS[m.group(2)]
    if seconds <= 0:
        raise ValueError("duration must be positive")
    return seconds


async def resolve_host(host: str, port: int) -> str:
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except socket.gaierror as e:
        raise ServerConnectionError(f"cannot resolve {host}: {e}") from e
    if not infos:
        raise ServerConnectionError(f"no addresses for {host}")
    return infos[0][4][0]


def format_ports(ports: Iterable[int]) -> str:
    return ", ".join(str(p) for p in sorted(ports)) or "-"


def shorten(text: str, limit: int) -> str:
    text = " ".join((text or "").split())
    return text if len(text) <= limit else text[:limit - 1] + "…"
