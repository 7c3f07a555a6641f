import asyncio

import pytest

from conftest import CHROME_WINDOWS, SAFARI_IPHONE, FakeLocator
from src.careops.crud.sessions import SessionStore
from src.careops.exceptions import StorageError
from src.careops.schemas.session_schema import ClientContext, LoginStatus
from src.careops.utils.session_manager import SessionManager, SessionState, generate_session_id
from src.careops.utils.storage import MemoryStore
from src.careops.utils.timezone import from_epoch

pytestmark = pytest.mark.asyncio


def current_ids(store):
    return [s.id for s in store.list_sessions() if s.current]


async def test_initialize_session_creates_current_session_and_history(manager, session_store, locator):
    session = await manager.initialize_session(CHROME_WINDOWS)

    assert session is not None
    assert session.id.startswith("session_")
    assert session.device == "Desktop - Chrome"
    assert session.location == "Chicago, Illinois, US"
    assert session.ip == "203.0.113.7"
    assert session.current is True
    assert session.login_time == session.last_active

    assert [s.id for s in session_store.list_sessions()] == [session.id]
    history = session_store.list_login_history()
    assert len(history) == 1 and history[0].status == LoginStatus.SUCCESS
    assert manager.state is SessionState.ACTIVE
    assert manager.tracking
    assert locator.calls == 1


async def test_exactly_one_current_session_after_every_login(manager, session_store, clock):
    created = []
    for ua in (CHROME_WINDOWS, SAFARI_IPHONE, CHROME_WINDOWS, SAFARI_IPHONE):
        clock.advance(10)
        created.append((await manager.initialize_session(ua)).id)
        assert current_ids(session_store) == [created[-1]]
    assert [s.id for s in session_store.list_sessions()] == created


async def test_client_context_adds_fingerprint(manager):
    ctx = ClientContext(user_agent=CHROME_WINDOWS, screen="1920x1080", language="en-US", timezone="UTC")
    session = await manager.initialize_session(client=ctx)
    assert session.device == "Desktop - Chrome"
    assert session.fingerprint


async def test_end_to_end_login_terminate_logout(session_store, clock):
    first_device = SessionManager(session_store, FakeLocator(), clock=clock)
    second_device = SessionManager(session_store, FakeLocator(ip="198.51.100.1"), clock=clock)

    first = await first_device.initialize_session(CHROME_WINDOWS)
    assert len(session_store.list_sessions()) == 1
    assert [h.status for h in session_store.list_login_history()] == [LoginStatus.SUCCESS]

    clock.advance(60)
    second = await second_device.initialize_session(SAFARI_IPHONE)
    sessions = session_store.list_sessions()
    assert len(sessions) == 2
    assert current_ids(session_store) == [second.id]

    assert second_device.terminate_session(first.id) is True
    remaining = session_store.list_sessions()
    assert [s.id for s in remaining] == [second.id]
    assert remaining[0].current is True

    second_device.clear_session()
    assert session_store.list_sessions() == []
    assert len(session_store.list_login_history()) == 2
    assert second_device.state is SessionState.NO_SESSION
    assert not second_device.tracking

    first_device.stop_activity_tracking()


async def test_terminate_session_is_idempotent(manager, session_store):
    first = await manager.initialize_session(CHROME_WINDOWS)
    await manager.initialize_session(SAFARI_IPHONE)

    assert manager.terminate_session(first.id)
    once = session_store.list_sessions()
    assert manager.terminate_session(first.id)
    assert session_store.list_sessions() == once
    assert manager.terminate_session("session_does_not_exist")
    assert session_store.list_sessions() == once


async def test_terminating_own_session_moves_to_terminated(manager, session_store):
    session = await manager.initialize_session(CHROME_WINDOWS)
    assert manager.terminate_session(session.id)
    assert manager.state is SessionState.TERMINATED
    assert manager.current_session_id is None
    assert not manager.tracking
    assert session_store.list_sessions() == []


async def test_terminate_all_other_sessions_keeps_only_current(manager, session_store):
    for _ in range(4):
        await manager.initialize_session(SAFARI_IPHONE)
    current = await manager.initialize_session(CHROME_WINDOWS)

    assert manager.terminate_all_other_sessions()
    sessions = session_store.list_sessions()
    assert len(sessions) == 1
    assert sessions[0].id == current.id and sessions[0].current


async def test_clear_session_leaves_other_devices_alone(session_store, clock):
    other = SessionManager(session_store, FakeLocator(), clock=clock)
    mine = SessionManager(session_store, FakeLocator(), clock=clock)
    theirs = await other.initialize_session(SAFARI_IPHONE)
    await mine.initialize_session(CHROME_WINDOWS)

    mine.clear_session()
    assert [s.id for s in session_store.list_sessions()] == [theirs.id]
    mine.clear_session()  # already logged out: no-op
    other.stop_activity_tracking()


async def test_failed_login_only_touches_history(manager, session_store):
    assert session_store.list_sessions() == []
    entry = await manager.add_failed_login(CHROME_WINDOWS)

    assert entry.status == LoginStatus.FAILED
    assert session_store.list_sessions() == []
    history = session_store.list_login_history()
    assert len(history) == 1 and history[0].status == LoginStatus.FAILED
    assert manager.state is SessionState.NO_SESSION


async def test_failed_login_does_not_disturb_existing_sessions(manager, session_store):
    await manager.initialize_session(CHROME_WINDOWS)
    before = session_store.list_sessions()
    await manager.add_failed_login(SAFARI_IPHONE)
    assert session_store.list_sessions() == before
    assert [h.status for h in session_store.list_login_history()] == [LoginStatus.FAILED, LoginStatus.SUCCESS]


class FailingStore(MemoryStore):
    def set(self, key, value):
        raise StorageError("disk full")


async def test_storage_failure_returns_none_instead_of_raising(clock):
    manager = SessionManager(SessionStore(FailingStore()), FakeLocator(), clock=clock)

    assert await manager.initialize_session(CHROME_WINDOWS) is None
    assert manager.state is SessionState.NO_SESSION
    assert not manager.tracking
    assert await manager.add_failed_login(CHROME_WINDOWS) is None
    assert manager.terminate_session("x") is False
    manager.clear_session()


async def test_interaction_refreshes_once_per_window(manager, session_store, clock):
    session = await manager.initialize_session(CHROME_WINDOWS)

    clock.advance(5)
    assert manager.record_interaction("keydown") is True
    assert session_store.get_session(session.id).last_active == from_epoch(clock.now)

    clock.advance(5)
    assert manager.record_interaction("scroll") is False
    assert manager.record_interaction("resize") is False

    clock.advance(30)
    assert manager.record_interaction("touchstart") is True
    assert session_store.get_session(session.id).last_active == from_epoch(clock.now)


async def test_interaction_without_session_is_ignored(manager):
    assert manager.record_interaction("keydown") is False
    assert manager.update_last_active() is False


async def test_heartbeat_updates_last_active_periodically(session_store, clock):
    manager = SessionManager(session_store, FakeLocator(), heartbeat_interval=0.01, clock=clock)
    session = await manager.initialize_session(CHROME_WINDOWS)

    clock.advance(120)
    await asyncio.sleep(0.05)
    assert session_store.get_session(session.id).last_active == from_epoch(clock.now)

    manager.clear_session()
    await asyncio.sleep(0)
    assert not manager.tracking


async def test_heartbeat_crash_is_logged(session_store, clock, monkeypatch, caplog):
    manager = SessionManager(session_store, FakeLocator(), heartbeat_interval=0.01, clock=clock)
    await manager.initialize_session(CHROME_WINDOWS)

    def broken_replace(rows):
        raise RuntimeError("store exploded")

    monkeypatch.setattr(session_store, "replace_all", broken_replace)
    with caplog.at_level("ERROR", logger="src.careops.utils.session_manager"):
        await asyncio.sleep(0.05)

    assert not manager.tracking
    assert any("Heartbeat stopped unexpectedly" in r.getMessage() for r in caplog.records)


async def test_missing_user_agent_falls_back_to_default(session_store, clock):
    manager = SessionManager(session_store, FakeLocator(), clock=clock, default_user_agent=SAFARI_IPHONE)

    session = await manager.initialize_session()
    assert session.device == "Mobile - Safari"

    entry = await manager.add_failed_login("")
    assert entry.device == "Mobile - Safari"
    manager.stop_activity_tracking()


async def test_second_login_restarts_heartbeat(manager):
    await manager.initialize_session(CHROME_WINDOWS)
    first_task = manager._heartbeat_task
    await manager.initialize_session(CHROME_WINDOWS)
    await asyncio.sleep(0)
    assert first_task.cancelled()
    assert manager.tracking


async def test_generated_ids_are_unique():
    ids = {generate_session_id() for _ in range(200)}
    assert len(ids) == 200
