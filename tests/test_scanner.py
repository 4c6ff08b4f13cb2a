import asyncio
import time
import unittest
from unittest.mock import patch

from pingscan.scanner import probe, scan_range
from pingscan.state import ScanState
from tests.fake_server import FakeServer, closed_port


class TestProbe(unittest.IsolatedAsyncioTestCase):
    async def test_status_server_is_open(self):
        async with FakeServer() as srv:
            self.assertTrue(await probe("127.0.0.1", srv.port, 1))

    async def test_unparseable_json_still_counts(self):
        async with FakeServer(status_json="definitely not json") as srv:
            self.assertTrue(await probe("127.0.0.1", srv.port, 1))

    async def test_closed_port(self):
        self.assertFalse(await probe("127.0.0.1", closed_port(), 1))

    async def test_garbage_is_not_open(self):
        async with FakeServer(mode="garbage") as srv:
            started = time.monotonic()
            self.assertFalse(await probe("127.0.0.1", srv.port, 0.5))
            self.assertLess(time.monotonic() - started, 1.5)

    async def test_silent_peer_does_not_hang(self):
        async with FakeServer(mode="silent") as srv:
            started = time.monotonic()
            self.assertFalse(await probe("127.0.0.1", srv.port, 0.3))
            self.assertLess(time.monotonic() - started, 1.5)

    async def test_trickling_peer_is_bounded_by_timeout(self):
        async with FakeServer(mode="trickle") as srv:
            started = time.monotonic()
            ok = await asyncio.wait_for(probe("127.0.0.1", srv.port, 0.5), timeout=5)
            self.assertFalse(ok)
            self.assertLess(time.monotonic() - started, 2)
            await asyncio.wait_for(srv.client_closed.wait(), 2)

    async def test_socket_closed_on_every_outcome(self):
        for mode, expected in (("status", True), ("garbage", False), ("silent", False), ("wrong_id", False)):
            with self.subTest(mode=mode):
                async with FakeServer(mode=mode) as srv:
                    self.assertEqual(await probe("127.0.0.1", srv.port, 0.3), expected)
                    await asyncio.wait_for(srv.client_closed.wait(), 2)
                    self.assertEqual(srv.client_closes, srv.accepted)


def fake_probe(open_ports, slow=None):
    async def _probe(host, port, timeout):
        if slow is not None and port not in open_ports:
            await asyncio.sleep(slow)
        else:
            await asyncio.sleep(0)
        return port in open_ports
    return _probe


class TestScanRange(unittest.IsolatedAsyncioTestCase):
    async def test_returns_exactly_open_ports(self):
        open_ports = {25565, 25570, 25600}
        for workers in (1, 7, 500):
            with self.subTest(workers=workers), patch("pingscan.scanner.probe", new=fake_probe(open_ports)):
                found = await scan_range("10.0.0.1", 25560, 25610, timeout=0.1, concurrency=workers)
                self.assertEqual(found, open_ports)

    async def test_bounds_are_inclusive(self):
        with patch("pingscan.scanner.probe", new=fake_probe({100, 110})):
            self.assertEqual(await scan_range("h", 100, 110), {100, 110})
            self.assertEqual(await scan_range("h", 101, 109), set())

    async def test_top_of_port_space(self):
        state = ScanState()
        with patch("pingscan.scanner.probe", new=fake_probe({65535})):
            self.assertEqual(await scan_range("h", 65530, 65535, state=state), {65535})
        self.assertEqual(state.checked, 6)
        self.assertFalse(state.running)

    async def test_reversed_range_is_empty(self):
        state = ScanState()
        with patch("pingscan.scanner.probe", new=fake_probe({5})):
            self.assertEqual(await scan_range("h", 10, 1, state=state), set())
        self.assertEqual(state.total, 0)

    async def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            await scan_range("h", 1, 65536)
        with self.assertRaises(ValueError):
            await scan_range("h", 1, 2, concurrency=0)

    async def test_cancel_keeps_found_ports(self):
        open_ports = {20001, 20005}
        state = ScanState()
        with patch("pingscan.scanner.probe", new=fake_probe(open_ports, slow=30)):
            state.task = asyncio.create_task(scan_range("h", 20000, 20010, state=state))
            while len(state.discovered) < len(open_ports):
                await asyncio.sleep(0.01)
            self.assertTrue(state.cancel())
            with self.assertRaises(asyncio.CancelledError):
                await state.task
        self.assertEqual(state.discovered, open_ports)
        self.assertTrue(state.cancelled)
        self.assertFalse(state.running)
        self.assertFalse(state.cancel())

    async def test_real_servers(self):
        async with FakeServer() as a, FakeServer(mode="garbage") as b:
            for srv, expected in ((a, {a.port}), (b, set())):
                found = await scan_range("127.0.0.1", srv.port, srv.port, timeout=0.5)
                self.assertEqual(found, expected)

    async def test_trickling_port_does_not_stall_scan(self):
        async with FakeServer() as good, FakeServer(mode="trickle") as bad:
            started = time.monotonic()
            for srv in (good, bad):
                found = await asyncio.wait_for(scan_range("127.0.0.1", srv.port, srv.port, timeout=0.5), timeout=5)
                self.assertEqual(found, {good.port} if srv is good else set())
            self.assertLess(time.monotonic() - started, 3)

    async def test_cancelled_scan_closes_sockets(self):
        state = ScanState()
        async with FakeServer(mode="silent") as srv:
            state.task = asyncio.create_task(scan_range("127.0.0.1", srv.port, srv.port, timeout=30, state=state))
            while srv.accepted < 1:
                await asyncio.sleep(0.01)
            await asyncio.sleep(0.1)
            self.assertTrue(state.cancel())
            with self.assertRaises(asyncio.CancelledError):
                await state.task
            await asyncio.wait_for(srv.client_closed.wait(), 2)
        self.assertEqual(state.discovered, set())


if __name__ == "__main__":
    unittest.main()
