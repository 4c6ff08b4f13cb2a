import argparse, asyncio, logging, sys
from typing import List, Optional

from pingscan import config
from pingscan.errors import PingError
from pingscan.raw_ping import query_server, QueryResult
from pingscan.scanner import scan_range
from pingscan.state import ScanState
from pingscan.utils import (
    parse_address, parse_duration, parse_payload, parse_port, parse_port_range, resolve_host, format_ports, shorten,
)

log = logging.getLogger("pingscan")

EXIT_OK, EXIT_ERROR, EXIT_USAGE, EXIT_SCHEMA = 0, 1, 2, 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pingscan", description="Query Minecraft servers and scan hosts for them")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("ping", help="query one server's status and latency")
    p.add_argument("address", help=f"host[:port], default port {config.DEFAULT_PORT}")
    p.add_argument("--timeout", type=parse_duration, default=config.PING_TIMEOUT, help="e.g. 2s, 500ms")
    p.add_argument("--payload", type=parse_payload, default=None, help="ping payload (default: current time in ms)")
    p.add_argument("--json", action="store_true", help="print the raw status JSON")

    s = sub.add_parser("scan", help="find ports on a host that answer status requests")
    s.add_argument("address", help="host name or IP")
    s.add_argument("--from", dest="start", type=parse_port, default=None)
    s.add_argument("--to", dest="end", type=parse_port, default=None)
    s.add_argument("--ports", type=parse_port_range, default=None, help="inclusive range A-B")
    s.add_argument("--timeout", type=parse_duration, default=config.SCAN_TIMEOUT, help="per-connection timeout")
    s.add_argument("--workers", type=int, default=config.PING_WORKERS, help="max open sockets")
    return parser


def print_status(result: QueryResult, raw: bool):
    if raw:
        print(result.raw_json)
    elif result.status is not None:
        st = result.status
        print(f"Server:  {result.host}:{result.port}")
        print(f"Version: {st.version.name} (protocol {st.version.protocol})")
        print(f"Players: {st.players.online}/{st.players.max}")
        if st.players.sample:
            print("         " + ", ".join(p.name for p in st.players.sample))
        print(f"MOTD:    {shorten(st.motd, 200)}")
        print(f"Favicon: {'yes' if st.favicon else 'no'}")
        if st.extra:
            print(f"Extra:   {', '.join(sorted(st.extra))}")
    print(f"Time elapsed: {result.latency_ms:.1f} ms")


async def run_ping(address: str, timeout: float, payload: Optional[int], raw: bool) -> int:
    host, port = parse_address(address, config.DEFAULT_PORT)
    ip = await resolve_host(host, port)
    log.debug("resolved %s to %s", host, ip)
    result = await query_server(ip, port, timeout, payload)
    print_status(result, raw)
    if result.schema_error is not None:
        print(f"error: status JSON did not match the expected shape: {result.schema_error}", file=sys.stderr)
        return EXIT_SCHEMA
    return EXIT_OK


async def run_scan(address: str, start: int, end: int, timeout: float, workers: int, state: ScanState) -> int:
    ip = await resolve_host(address, start)
    print(f"Address: {address} ({ip}), ports: {start}-{end}", file=sys.stderr)
    state.task = asyncio.current_task()
    await scan_range(ip, start, end, timeout, workers, state)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else config.LOG_LEVEL, format=config.LOG_FORMAT)
    try:
        if args.command == "ping":
            return asyncio.run(run_ping(args.address, args.timeout, args.payload, args.json))
        if args.ports:
            start, end = args.ports
        else:
            start = args.start if args.start is not None else config.SCAN_FROM
            end = args.end if args.end is not None else config.SCAN_TO
        state = ScanState()
        try:
            code = asyncio.run(run_scan(args.address, start, end, args.timeout, args.workers, state))
        except KeyboardInterrupt:
            print(f"interrupted after {state.checked}/{state.total} ports", file=sys.stderr)
            code = EXIT_ERROR
        print(f"Ports: {format_ports(state.discovered)}")
        return code
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except PingError as e:
        print(f"error: {type(e).__name__}: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
