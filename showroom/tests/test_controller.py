"""Tests for the admin page controller."""

import asyncio
import json

import pytest

from showroom.core import (
    AccountLockedError,
    BackendUnavailableError,
    ForbiddenError,
    InvalidCredentialsError,
    OperationInProgressError,
    ValidationError,
)
from showroom.backend.base import ChangeEvent
from showroom.core.time import to_iso
from showroom.dashboard.controller import AdminController
from showroom.storage import LAST_STATS_RESET_KEY, SESSION_ACTIVE_KEY, MemoryStore

EMAIL = "admin@dealer.co"
PASSWORD = "Str0ng!Pass"


@pytest.fixture
def controller(backend, settings, notifier, view, session_store, clock):
    backend.add_account(EMAIL, PASSWORD, "admin-1")
    backend.tables["cars"] = [
        {"id": 1, "status": "available", "price": 1000, "details_clicks": 10, "buy_clicks": 2, "created_at": to_iso(clock.now - 100)},
        {"id": 2, "status": "sold", "price": 2000, "details_clicks": 3, "buy_clicks": 0, "created_at": to_iso(clock.now - 50)},
    ]
    return AdminController(
        backend,
        settings,
        session_store=session_store,
        persistent_store=MemoryStore(),
        notifier=notifier,
        view=view,
        clock=clock,
    )


def audit_actions(backend):
    return [row["action"] for row in backend.tables["admin_logs"]]


@pytest.mark.asyncio
async def test_login_loads_dashboard(controller, backend, notifier, session_store):
    user = await controller.login(f"  {EMAIL} ", PASSWORD)

    assert user.id == "admin-1"
    assert controller.is_authenticated
    assert session_store.get(SESSION_ACTIVE_KEY) == "true"
    assert controller.session.running
    assert controller.scheduler.running
    assert controller.mirror["1"].details_clicks == 10
    assert controller.stats.total_cars == 2
    assert audit_actions(backend) == ["ADMIN_LOGIN"]
    assert json.loads(backend.tables["admin_logs"][0]["description"]) == {"email": EMAIL}
    assert "Dashboard loaded successfully!" in notifier.texts()
    assert sorted(backend.subscribers) == ["analytics", "messages"]
    await controller.aclose()


@pytest.mark.asyncio
async def test_missing_fields_do_not_reach_backend(controller, backend, notifier):
    with pytest.raises(ValidationError):
        await controller.login("", "")
    with pytest.raises(ValidationError):
        await controller.login("not-an-email", "x")

    assert backend.count_calls("sign_in") == 0
    assert controller.state.failed_login_attempts == 0
    assert notifier.messages[0] == ("Please enter both email and password.", "warning")


@pytest.mark.asyncio
async def test_failed_login_reports_remaining_attempts(controller, notifier):
    with pytest.raises(InvalidCredentialsError) as exc:
        await controller.login(EMAIL, "wrong")

    assert exc.value.message == "Invalid login credentials (4 attempts remaining)"
    assert exc.value.details == {"attempts_remaining": 4}
    assert notifier.messages[-1][1] == "error"


@pytest.mark.asyncio
async def test_fifth_failure_locks_out_without_network(controller, backend):
    for _ in range(4):
        with pytest.raises(InvalidCredentialsError):
            await controller.login(EMAIL, "wrong")
    with pytest.raises(AccountLockedError) as exc:
        await controller.login(EMAIL, "wrong")
    assert "Too many failed attempts" in exc.value.message

    await asyncio.sleep(0)
    assert audit_actions(backend) == ["FAILED_LOGINS"]

    calls = backend.count_calls("sign_in")
    with pytest.raises(AccountLockedError):
        await controller.login(EMAIL, PASSWORD)
    assert backend.count_calls("sign_in") == calls


@pytest.mark.asyncio
async def test_lockout_expires(controller, clock):
    for _ in range(5):
        with pytest.raises((InvalidCredentialsError, AccountLockedError)):
            await controller.login(EMAIL, "wrong")

    clock.advance(15 * 60 + 1)
    await controller.login(EMAIL, PASSWORD)

    assert controller.state.failed_login_attempts == 0
    await controller.aclose()


@pytest.mark.asyncio
async def test_backend_outage_counts_as_failed_attempt(controller, backend):
    backend.failures["sign_in"] = BackendUnavailableError()

    with pytest.raises(InvalidCredentialsError) as exc:
        await controller.login(EMAIL, PASSWORD)

    assert exc.value.message.startswith("An error occurred during authentication.")
    assert controller.state.failed_login_attempts == 1


@pytest.mark.asyncio
async def test_concurrent_login_rejected(controller, backend):
    release = asyncio.Event()
    original = backend.sign_in

    async def slow_sign_in(email, password):
        await release.wait()
        return await original(email, password)

    backend.sign_in = slow_sign_in
    first = asyncio.ensure_future(controller.login(EMAIL, PASSWORD))
    await asyncio.sleep(0)

    with pytest.raises(OperationInProgressError):
        await controller.login(EMAIL, PASSWORD)

    release.set()
    await first
    await controller.aclose()


@pytest.mark.asyncio
async def test_non_admin_is_forbidden(controller, backend, session_store):
    backend.add_account("sales@dealer.co", PASSWORD, "sales-1", role="sales")

    with pytest.raises(ForbiddenError):
        await controller.login("sales@dealer.co", PASSWORD)

    assert not controller.is_authenticated
    assert backend.current is None
    assert session_store.get(SESSION_ACTIVE_KEY) is None


@pytest.mark.asyncio
async def test_logout_cancels_timers_and_clears_state(controller, backend, notifier, session_store, clock):
    await controller.login(EMAIL, PASSWORD)
    clock.advance(90)

    await controller.logout()

    assert not controller.session.running
    assert not controller.scheduler.running
    assert not controller.is_authenticated
    assert len(controller.mirror) == 0
    assert session_store.get(SESSION_ACTIVE_KEY) is None
    assert backend.subscribers["analytics"] == []
    logout_row = backend.tables["admin_logs"][-1]
    assert logout_row["action"] == "ADMIN_LOGOUT"
    assert json.loads(logout_row["description"]) == {"sessionDuration": 90000}
    assert notifier.texts()[-1] == "Logged out successfully!"


@pytest.mark.asyncio
async def test_logout_clears_state_when_sign_out_fails(controller, backend, notifier):
    await controller.login(EMAIL, PASSWORD)
    backend.failures["sign_out"] = BackendUnavailableError()

    await controller.logout()

    assert not controller.is_authenticated
    assert not controller.session.running
    assert "Error during logout. Please try again." in notifier.texts()
    assert "Logged out successfully!" not in notifier.texts()


@pytest.mark.asyncio
async def test_liveness_without_flag_signs_out(controller, backend):
    backend.current = backend.accounts[EMAIL][1]

    assert await controller.check_session_liveness() is None

    assert backend.current is None
    assert not controller.is_authenticated


@pytest.mark.asyncio
async def test_liveness_with_flag_resumes(controller, backend, session_store):
    backend.current = backend.accounts[EMAIL][1]
    session_store.set(SESSION_ACTIVE_KEY, "true")

    user = await controller.check_session_liveness()

    assert user.id == "admin-1"
    assert controller.session.running
    assert controller.mirror["2"].details_clicks == 3
    await controller.aclose()


@pytest.mark.asyncio
async def test_liveness_with_flag_but_no_backend_session(controller, session_store):
    session_store.set(SESSION_ACTIVE_KEY, "true")

    assert await controller.check_session_liveness() is None
    assert session_store.get(SESSION_ACTIVE_KEY) is None


@pytest.mark.asyncio
async def test_remote_insert_updates_mirror_and_notifies(controller, backend, view, notifier):
    await controller.login(EMAIL, PASSWORD)

    await backend.emit("analytics", "INSERT", {"car_id": 1, "event_type": "contact_click"})

    entry = controller.mirror["1"]
    assert entry.buy_clicks == 3
    assert entry.daily_buy_clicks == 1
    assert "1" in view.rows
    assert notifier.texts()[-1] == "New contact click on a car!"
    await controller.aclose()


@pytest.mark.asyncio
async def test_local_click_echo_counted_once(controller, backend):
    await controller.login(EMAIL, PASSWORD)

    controller.handle_local_event("2", "view", "evt-1")
    await backend.emit("analytics", "INSERT", {"car_id": 2, "event_type": "view", "client_event_id": "evt-1"})

    assert controller.mirror["2"].daily_details_clicks == 1
    await controller.aclose()


@pytest.mark.asyncio
async def test_message_change_refreshes_stats(controller, backend, notifier):
    await controller.login(EMAIL, PASSWORD)
    backend.tables["messages"].append({"is_read": False})

    await backend.emit("messages", "INSERT", {"is_read": False})
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    assert controller.stats.unread_messages == 1
    assert "New message received!" in notifier.texts()
    await controller.aclose()


@pytest.mark.asyncio
async def test_load_failure_is_reported(controller, backend, notifier):
    await controller.login(EMAIL, PASSWORD)
    backend.failures["select"] = BackendUnavailableError()

    assert await controller.load_dashboard() is False
    assert notifier.texts()[-1] == "Error loading cars. Please refresh the page."
    await controller.aclose()


@pytest.mark.asyncio
async def test_inactivity_forces_logout(backend, settings, notifier, view, session_store, clock):
    backend.add_account(EMAIL, PASSWORD, "admin-1")
    settings.session_check_interval_seconds = 0.01
    controller = AdminController(
        backend,
        settings,
        session_store=session_store,
        persistent_store=MemoryStore(),
        notifier=notifier,
        view=view,
        clock=clock,
    )
    await controller.login(EMAIL, PASSWORD)

    clock.advance(58 * 60)
    await asyncio.sleep(0.05)
    assert view.warnings_shown == 1

    clock.advance(2 * 60)
    for _ in range(20):
        if not controller.is_authenticated:
            break
        await asyncio.sleep(0.01)

    assert not controller.is_authenticated
    assert session_store.get(SESSION_ACTIVE_KEY) is None
    assert "Session expired due to inactivity. Please log in again." in notifier.texts()
    assert "Logged out successfully!" not in notifier.texts()
    await controller.aclose()


@pytest.mark.asyncio
async def test_daily_reset_marker_written_on_dashboard_load(controller):
    await controller.login(EMAIL, PASSWORD)
    await asyncio.sleep(0)

    assert controller.persistent_store.get(LAST_STATS_RESET_KEY) is not None
    await controller.aclose()


def test_new_password_uses_configured_min_length(backend, settings, clock):
    settings.password_min_length = 12
    controller = AdminController(backend, settings, persistent_store=MemoryStore(), clock=clock)

    check = controller.check_new_password("Abc12345!")

    assert not check.is_valid
    assert check.errors == ["Password must be at least 12 characters"]
    assert controller.check_new_password("Abcdefgh1234!").is_valid


@pytest.mark.asyncio
async def test_logout_drops_pending_stats_refresh(controller, backend, view):
    await controller.login(EMAIL, PASSWORD)
    await backend.emit("messages", "INSERT", {"is_read": False})
    refreshes = view.totals_refreshes

    await controller.logout()
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    assert controller.stats is None
    assert view.totals_refreshes == refreshes
    assert controller._background == set()


@pytest.mark.asyncio
async def test_changes_during_logout_are_ignored(controller, backend, notifier):
    await controller.login(EMAIL, PASSWORD)
    release = asyncio.Event()
    original = backend.sign_out

    async def slow_sign_out():
        await release.wait()
        await original()

    backend.sign_out = slow_sign_out
    pending = asyncio.ensure_future(controller.logout())
    await asyncio.sleep(0)

    controller._on_message_change(ChangeEvent(table="messages", event_type="INSERT", new={}))
    assert controller._background == set()
    assert "New message received!" not in notifier.texts()

    release.set()
    await pending


@pytest.mark.asyncio
async def test_car_edits_are_audited_as_admin_and_reload_dashboard(controller, backend, notifier):
    await controller.login(EMAIL, PASSWORD)
    selects_before = backend.count_calls("select")

    await controller.car_admin.bulk_change_status([2], "available")

    assert backend.tables["cars"][1]["status"] == "available"
    log = backend.tables["admin_logs"][-1]
    assert log["action"] == "CARS_STATUS_CHANGED"
    assert log["admin_id"] == "admin-1"
    assert backend.count_calls("select") > selects_before
    assert controller.stats.available_cars == 2
    await controller.aclose()


@pytest.mark.asyncio
async def test_opening_message_refreshes_unread_count(controller, backend):
    backend.tables["messages"] = [{"id": 5, "is_read": False, "created_at": "2026-10-16T09:00:00+00:00"}]
    await controller.login(EMAIL, PASSWORD)
    assert controller.stats.unread_messages == 1

    await controller.inbox.open(5)

    assert controller.stats.unread_messages == 0
    await controller.logout()
    assert controller.inbox.messages == []
    await controller.aclose()
