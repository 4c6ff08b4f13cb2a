import json
import struct
import time
import unittest

from pingscan.errors import AddressTooLong, ProtocolViolation, ServerConnectionError
from pingscan.raw_ping import build_handshake, build_status_request, build_ping, query_server
from pingscan.varint import read_varint, read_string
from tests.fake_server import FakeServer, closed_port


class TestPacketBuilders(unittest.TestCase):
    def test_handshake(self):
        self.assertEqual(
            build_handshake("0.0.0.0", 1),
            bytes([17, 0, 255, 255, 255, 255, 15, 7, 48, 46, 48, 46, 48, 46, 48, 0, 1, 1]),
        )

    def test_handshake_default_port(self):
        self.assertEqual(
            build_handshake("127.0.0.1", 25565),
            bytes([19, 0, 255, 255, 255, 255, 15, 9, 49, 50, 55, 46, 48, 46, 48, 46, 49, 99, 221, 1]),
        )

    def test_status_request(self):
        self.assertEqual(build_status_request(), bytes([1, 0]))

    def test_ping(self):
        self.assertEqual(build_ping(1000), bytes([9, 1]) + struct.pack(">q", 1000))

    def test_ping_payload_range(self):
        self.assertEqual(build_ping(-(1 << 63))[2:], struct.pack(">q", -(1 << 63)))
        with self.assertRaises(ValueError):
            build_ping(1 << 63)

    def test_address_limit(self):
        self.assertEqual(build_handshake("a" * 255, 1)[0:2], bytes([138, 2]))
        with self.assertRaises(AddressTooLong):
            build_handshake("a" * 256, 1)


class TestQueryServer(unittest.IsolatedAsyncioTestCase):
    async def test_full_exchange(self):
        async with FakeServer() as srv:
            result = await query_server("127.0.0.1", srv.port, timeout=2, payload=1000)
        self.assertIsNone(result.schema_error)
        self.assertEqual(result.status.version.name, "1.20.4")
        self.assertEqual(result.status.players.online, 2)
        self.assertEqual(result.status.motd, "A server")
        self.assertEqual(result.status.extra, {"enforcesSecureChat": True})
        self.assertGreaterEqual(result.latency_ms, 0)

        handshake = srv.handshakes[0]
        self.assertEqual(handshake.id, 0)
        version, n = read_varint(handshake.data)
        self.assertEqual(version, -1)
        host, m = read_string(handshake.data, n)
        self.assertEqual(host, "127.0.0.1")
        self.assertEqual(struct.unpack(">H", handshake.data[n + m:n + m + 2])[0], srv.port)
        self.assertEqual(handshake.data[-1], 1)

    async def test_pong_mismatch(self):
        async with FakeServer(pong_offset=1) as srv:
            with self.assertRaises(ProtocolViolation):
                await query_server("127.0.0.1", srv.port, timeout=2, payload=1000)

    async def test_schema_error_still_pings(self):
        async with FakeServer(status_json=json.dumps({"motd": "no version here"})) as srv:
            result = await query_server("127.0.0.1", srv.port, timeout=2, payload=7)
        self.assertIsNone(result.status)
        self.assertIsNotNone(result.schema_error)
        self.assertIn("no version here", result.raw_json)

    async def test_wrong_response_id(self):
        async with FakeServer(mode="wrong_id") as srv:
            with self.assertRaises(ProtocolViolation):
                await query_server("127.0.0.1", srv.port, timeout=2)

    async def test_silent_server_times_out(self):
        async with FakeServer(mode="silent") as srv:
            started = time.monotonic()
            with self.assertRaises(ServerConnectionError):
                await query_server("127.0.0.1", srv.port, timeout=0.3)
            self.assertLess(time.monotonic() - started, 2)

    async def test_trickling_server_times_out(self):
        async with FakeServer(mode="trickle") as srv:
            started = time.monotonic()
            with self.assertRaises(ServerConnectionError):
                await query_server("127.0.0.1", srv.port, timeout=0.5)
            self.assertLess(time.monotonic() - started, 2)

    async def test_refused(self):
        with self.assertRaises(ServerConnectionError):
            await query_server("127.0.0.1", closed_port(), timeout=1)


if __name__ == "__main__":
    unittest.main()
