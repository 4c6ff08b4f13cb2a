import asyncio
import datetime
from typing import Optional, Set, Dict


class ScanState:
    def __init__(self):
        self.running: bool = False
        self.cancelled: bool = False
        self.task: Optional[asyncio.Task] = None
        self.start_time: Optional[datetime.datetime] = None
        self.finish_time: Optional[datetime.datetime] = None
        self.address: Optional[str] = None
        self.start_port: int = 0
        self.end_port: int = -1
        self.total: int = 0
        self.checked: int = 0
        self.discovered: Set[int] = set()

    def begin(self, address: str, start_port: int, end_port: int):
        self.running, self.cancelled = True, False
        self.start_time, self.finish_time = datetime.datetime.now(datetime.timezone.utc), None
        self.address, self.start_port, self.end_port = address, start_port, end_port
        self.total = max(0, end_port - start_port + 1)
        self.checked = 0
        self.discovered = set()

    def finish(self):
        self.running = False
        self.finish_time = datetime.datetime.now(datetime.timezone.utc)

    def cancel(self) -> bool:
        """Cancel the running scan task; ports found so far stay in ``discovered``."""
        if self.task is None or self.task.done():
            return False
        self.cancelled = True
        self.task.cancel()
        return True

    @property
    def progress(self) -> float:
        return self.checked / self.total if self.total else 1.0

    @property
    def elapsed(self) -> datetime.timedelta:
        if self.start_time is None:
            return datetime.timedelta(0)
        end = self.finish_time or datetime.datetime.now(datetime.timezone.utc)
        return end - self.start_time


scan_states: Dict[int, ScanState] = {}
