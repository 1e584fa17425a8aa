"""Shared fixtures and fakes for the monitor service tests."""
from typing import Dict, List, Optional

import pytest

from uptimewatch.schemas.monitor import Monitor, Observation
from uptimewatch.services.checker import CheckerService, ProbeExecutor
from uptimewatch.services.publisher import UpdatePublisher
from uptimewatch.services.scheduler import SchedulerService
from uptimewatch.services.state_store import MemoryStateStore

NOW_MS = 1_700_000_000_000


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now_ms: int = NOW_MS):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float):
        self.now_ms += int(seconds * 1000)


class FakeExecutor(ProbeExecutor):
    """Returns scripted statuses and records every monitor it probed."""

    def __init__(self, monitor_type: str, statuses: Optional[Dict[str, str]] = None, error: Optional[Exception] = None):
        self.monitor_type = monitor_type
        self.statuses = statuses or {}
        self.error = error
        self.calls: List[str] = []

    async def execute(self, monitor: Monitor, now_ms: int) -> Optional[Observation]:
        self.calls.append(monitor.id)
        if self.error is not None:
            raise self.error
        if self.monitor_type == "ping" and not monitor.url:
            return None
        status = self.statuses.get(monitor.id, "up")
        code = 200 if self.monitor_type == "http" else 0
        if status != "up":
            code = 503 if self.monitor_type == "http" else 1
        ping = 12.3 if self.monitor_type == "ping" else None
        return Observation(t=now_ms, status=status, code=code, ping=ping)


def make_monitor(monitor_id: str, type: str = "http", url: Optional[str] = "example.com", **kwargs) -> Monitor:
    return Monitor(id=monitor_id, name=monitor_id.title(), url=url, type=type, **kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def http_executor() -> FakeExecutor:
    return FakeExecutor("http")


@pytest.fixture
def ping_executor() -> FakeExecutor:
    return FakeExecutor("ping")


@pytest.fixture
def checker(http_executor, ping_executor) -> CheckerService:
    return CheckerService([http_executor, ping_executor])


@pytest.fixture
def store() -> MemoryStateStore:
    return MemoryStateStore([
        make_monitor("web", interval=60),
        make_monitor("router", type="ping", url="192.0.2.1", interval=30),
    ])


@pytest.fixture
def publisher(store) -> UpdatePublisher:
    return UpdatePublisher(store)


@pytest.fixture
def scheduler(store, publisher, checker, clock) -> SchedulerService:
    return SchedulerService(store, publisher, checker=checker, clock=clock)
