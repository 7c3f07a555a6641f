"""
Shared fixtures: in-memory stores, a controllable clock and a fake locator,
so no test touches the network or a real redis/sqlite instance.
"""
import asyncio

import pytest
import pytest_asyncio

from src.careops.config import Settings
from src.careops.crud.activity import ActivityLog
from src.careops.crud.sessions import SessionStore
from src.careops.schemas.session_schema import LocationInfo, LocationResult, LookupSource
from src.careops.utils.notifier import ChangeNotifier
from src.careops.utils.session_manager import SessionManager
from src.careops.utils.storage import MemoryStore

CHROME_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
SAFARI_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLocator:
    def __init__(self, ip="203.0.113.7", location="Chicago, Illinois, US", source=LookupSource.PRIMARY):
        self.result = LocationResult(info=LocationInfo(ip=ip, location=location), source=source)
        self.calls = 0

    async def locate(self) -> LocationResult:
        self.calls += 1
        return self.result


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        STORAGE_BACKEND="memory",
        GEOLOOKUP_ENABLED=False,
        HEARTBEAT_INTERVAL_SECONDS=30.0,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def locator():
    return FakeLocator()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def notifier():
    return ChangeNotifier()


@pytest.fixture
def session_store(store, notifier):
    return SessionStore(store, notifier, history_max=50)


@pytest.fixture
def activity_log(store, notifier, clock):
    return ActivityLog(store, notifier, max_entries=20, dedup_window_ms=5000, clock=clock)


@pytest_asyncio.fixture
async def manager(session_store, locator, clock):
    m = SessionManager(session_store, locator, heartbeat_interval=30.0, clock=clock)
    yield m
    m.stop_activity_tracking()
    await asyncio.sleep(0)
