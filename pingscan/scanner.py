import asyncio, logging
from typing import Optional, Set

from pingscan import config
from pingscan.errors import PingError
from pingscan.packet import PacketReader
from pingscan.raw_ping import open_connection, close_writer, handshake, request, response
from pingscan.state import ScanState

log = logging.getLogger(__name__)

MIN_PORT, MAX_PORT = 0, 65535


async def _status_exchange(reader, writer, host: str, port: int, timeout: float):
    await handshake(writer, host, port)
    await request(writer)
    await response(PacketReader(reader, timeout))


async def probe(host: str, port: int, timeout: float = config.SCAN_TIMEOUT) -> bool:
    """Liveness check: handshake, status request and one decodable status frame.

    The JSON inside the frame is not parsed. ``timeout`` bounds the connect and,
    separately, everything after it, so a peer that trickles bytes cannot hold
    the probe open.
    """
    try:
        reader, writer = await open_connection(host, port, timeout)
    except PingError as e:
        log.debug("%s:%s closed (%s)", host, port, e)
        return False
    try:
        await asyncio.wait_for(_status_exchange(reader, writer, host, port, timeout), timeout=timeout)
        return True
    except asyncio.TimeoutError:
        log.debug("%s:%s did not finish the status exchange within %ss", host, port, timeout)
        return False
    except (PingError, OSError) as e:
        log.debug("%s:%s answered but not with a status (%s)", host, port, e)
        return False
    finally:
        await close_writer(writer)


async def scan_range(address: str,
    start: int,
    end: int,
    timeout: float = config.SCAN_TIMEOUT,
    concurrency: int = config.PING_WORKERS,
    state: Optional[ScanState] = None,
) -> Set[int]:
    """Probe every port in ``[start, end]`` and return the ones that answered.

    At most ``concurrency`` sockets are open at once. If the surrounding task is
    cancelled, ports found so far remain in ``state.discovered``.
    """
    if not (MIN_PORT <= start <= MAX_PORT and MIN_PORT <= end <= MAX_PORT):
        raise ValueError(f"ports must be within {MIN_PORT}-{MAX_PORT}, got {start}-{end}")
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")
    if state is None:
        state = ScanState()
    state.begin(address, start, end)
    sem = asyncio.Semaphore(concurrency)
    found = state.discovered

    async def probe_port(port: int):
        async with sem:
            ok = await probe(address, port, timeout)
        state.checked += 1
        if ok:
            log.info("found %s:%s", address, port)
            found.add(port)

    log.info("scanning %s ports %s-%s (timeout %ss, %s workers)", address, start, end, timeout, concurrency)
    try:
        await asyncio.gather(*[probe_port(p) for p in range(start, end + 1)])
    finally:
        state.finish()
    log.info("scan of %s finished: %d/%d ports answered", address, len(found), state.total)
    return set(found)
