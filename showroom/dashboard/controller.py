"""
Admin page controller.

Owns every piece of per-page state: lockout counters, the inactivity timer,
the analytics mirror and the daily reset loop. Nothing here is a module
global, so several controllers can coexist (one per test, one per tab).
"""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine, Optional

from showroom.analytics.mirror import AnalyticsMirror
from showroom.analytics.scheduler import DailyResetScheduler
from showroom.analytics.tracker import EventTracker
from showroom.audit import AuditAction, log_admin_activity, log_lockout, log_login, log_logout
from showroom.auth.credentials import PasswordCheck, check_password, require_login_fields
from showroom.auth.login_limiter import LoginGuard, SecurityState
from showroom.auth.session import SessionGuard, SessionStatus
from showroom.backend.base import AuthUser, BaseBackend, ChangeEvent, Subscription
from showroom.config import Settings, get_settings
from showroom.core import (
    AccountLockedError,
    AppError,
    ForbiddenError,
    InvalidCredentialsError,
    OperationInProgressError,
    SessionExpiredError,
    ValidationError,
    get_logger,
    session_context,
)
from showroom.core.time import Clock, start_of_local_day, system_clock
from showroom.dashboard.cars import CarManager
from showroom.dashboard.messages import MessageInbox
from showroom.dashboard.stats import DashboardStats, fetch_dashboard_stats
from showroom.notifications import DashboardView, LoggingNotifier, Notifier, NullView
from showroom.storage import SESSION_ACTIVE_KEY, JsonFileStore, KeyValueStore, MemoryStore

logger = get_logger(__name__)


class AdminController:
    """Drives login, session lifetime and the live analytics dashboard."""

    def __init__(
        self,
        backend: BaseBackend,
        settings: Optional[Settings] = None,
        *,
        session_store: Optional[KeyValueStore] = None,
        persistent_store: Optional[KeyValueStore] = None,
        notifier: Optional[Notifier] = None,
        view: Optional[DashboardView] = None,
        clock: Clock = system_clock,
    ):
        self.backend = backend
        self.settings = settings or get_settings()
        self.session_store = session_store or MemoryStore()
        self.persistent_store = persistent_store or JsonFileStore(self.settings.state_file)
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.view: DashboardView = view or NullView()
        self._clock = clock

        s = self.settings
        self.state = SecurityState()
        self.login_guard = LoginGuard(
            self.state,
            max_attempts=s.max_login_attempts,
            lockout_seconds=s.lockout_duration_seconds,
            clock=clock,
            on_lockout=self._audit_lockout,
        )
        self.session = SessionGuard(
            self.state,
            timeout_seconds=s.session_timeout_seconds,
            warning_seconds=s.session_warning_seconds,
            red_seconds=s.session_red_seconds,
            interval_seconds=s.session_check_interval_seconds,
            clock=clock,
            on_tick=self.view.update_session_timer,
            on_warning=self.view.show_session_warning,
            on_warning_dismissed=self.view.hide_session_warning,
            on_expire=self._on_session_expired,
        )
        self.mirror = AnalyticsMirror(
            view=self.view,
            dedupe_local_events=s.analytics_dedupe_local_events,
            clock=clock,
        )
        self.scheduler = DailyResetScheduler(
            self.mirror,
            self.persistent_store,
            notifier=self.notifier,
            interval_seconds=s.stats_reset_interval_seconds,
            check_every_seconds=s.stats_reset_check_interval_seconds,
            clock=clock,
            on_reset=self._audit_reset,
        )

        self.user: Optional[AuthUser] = None
        self.cars: list[dict[str, Any]] = []
        self.car_admin = CarManager(
            backend,
            s,
            notifier=self.notifier,
            cars=lambda: self.cars,
            admin_id=lambda: self.user.id if self.user else None,
            on_change=self.load_dashboard,
            clock=clock,
        )
        self.inbox = MessageInbox(backend, s, notifier=self.notifier, on_read=self.refresh_stats)
        self.stats: Optional[DashboardStats] = None
        self._subscriptions: list[Subscription] = []
        self._background: set[asyncio.Task] = set()
        self._login_in_flight = False
        self._logout_in_flight = False

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    # Startup

    async def check_session_liveness(self) -> Optional[AuthUser]:
        """
        Resume a session only if this client instance started it.

        The session flag lives in the process-scoped store; when it is
        missing any session the backend still remembers is signed out.
        """
        if not self.session_store.get(SESSION_ACTIVE_KEY):
            try:
                await self.backend.sign_out()
            except AppError as exc:
                logger.warning("Sign-out of stale session failed", data={"error": exc.message})
            return None

        try:
            user = await self.backend.get_user()
        except AppError as exc:
            logger.error("Error checking auth state", data={"error": exc.message})
            return None
        if user is None:
            self.session_store.remove(SESSION_ACTIVE_KEY)
            return None
        if not await self._verify_admin_role(user):
            return None

        self._begin(user)
        await self.load_dashboard()
        return user

    # Login / logout

    async def login(self, email: str, password: str) -> AuthUser:
        """
        Authenticate an admin.

        Raises:
            OperationInProgressError: A login is already pending.
            AccountLockedError: Too many failures; rejected without a backend call.
            ValidationError: Missing fields or malformed email.
            InvalidCredentialsError: The backend rejected the credentials.
            ForbiddenError: The account is not an admin.
        """
        if self._login_in_flight:
            raise OperationInProgressError("Login already in progress")

        if self.login_guard.is_locked_out():
            err = AccountLockedError(self.login_guard.remaining_lockout_seconds())
            self.notifier.notify(f"Too many failed attempts. {err.message}", "error")
            raise err

        try:
            email = require_login_fields(email, password)
        except ValidationError as err:
            self.notifier.notify(err.message, "warning")
            raise

        self._login_in_flight = True
        try:
            logger.debug("Attempting admin login", data={"email": email})
            try:
                user = await self.backend.sign_in(email, password)
            except InvalidCredentialsError as exc:
                raise self._failed_login(exc.message) from exc
            except AppError as exc:
                logger.error("Unexpected login error", data={"code": exc.code.value, "error": exc.message})
                raise self._failed_login(
                    "An error occurred during authentication. Please try again."
                ) from exc

            if not await self._verify_admin_role(user):
                raise ForbiddenError()

            self.login_guard.reset_attempts()
            self.session_store.set(SESSION_ACTIVE_KEY, "true")
            await log_login(
                self.backend, user.id, email, table=self.settings.admin_logs_table, clock=self._clock
            )
            self.notifier.notify("Authentication successful. Loading dashboard...", "success")
            self._begin(user)
            await self.load_dashboard()
            return user
        finally:
            self._login_in_flight = False

    async def logout(self, reason: Optional[str] = None) -> None:
        """
        End the session.

        Timers are cancelled before the first await so nothing timer-driven
        runs once logout has begun. Backend failures are reported but local
        state is always cleared.
        """
        if self._logout_in_flight:
            return
        self._logout_in_flight = True
        try:
            duration = self.session.session_duration()
            self.session.end_session()
            self.scheduler.stop()
            self._cancel_background()
            self.session_store.remove(SESSION_ACTIVE_KEY)

            admin_id = self.user.id if self.user else None
            subscriptions, self._subscriptions = self._subscriptions, []

            await log_logout(
                self.backend,
                admin_id,
                duration,
                table=self.settings.admin_logs_table,
                clock=self._clock,
            )
            for subscription in subscriptions:
                try:
                    await subscription.unsubscribe()
                except AppError as exc:
                    logger.warning("Unsubscribe failed", data={"error": exc.message})

            signed_out = True
            try:
                await self.backend.sign_out()
            except AppError as exc:
                signed_out = False
                logger.error("Logout error", data={"code": exc.code.value, "error": exc.message})
                self.notifier.notify("Error during logout. Please try again.", "error")

            self._clear_local_state()
            logger.info("Admin logged out", data={"reason": reason or "user", "duration": int(duration)})
            if signed_out and reason is None:
                self.notifier.notify("Logged out successfully!", "success")
        finally:
            self._logout_in_flight = False

    # Session activity

    def record_activity(self) -> None:
        self.session.record_activity()

    def extend_session(self) -> None:
        self.session.extend_session()
        self.notifier.notify("Session extended.", "success")

    def session_status(self) -> SessionStatus:
        return self.session.status()

    def check_new_password(self, password: str) -> PasswordCheck:
        """Strength rules for a password the admin is about to set."""
        return check_password(password, self.settings.password_min_length)

    # Dashboard

    async def load_dashboard(self) -> bool:
        """Full resync: cars, today's events, subscriptions, reset loop, stats."""
        s = self.settings
        try:
            cars = await self.backend.select(s.cars_table, order="created_at", descending=True)
            today = start_of_local_day(self._clock()).isoformat()
            events = await self.backend.select(
                s.analytics_table,
                columns="car_id, event_type, client_event_id",
                filters=[("created_at", "gte", today)],
            )
        except AppError as exc:
            logger.error("Error loading admin cars", data={"code": exc.code.value, "error": exc.message})
            self.notifier.notify("Error loading cars. Please refresh the page.", "error")
            return False

        self.cars = cars
        self.mirror.bulk_load(cars, events)
        await self._subscribe()
        self.scheduler.start()
        await self.refresh_stats()
        self.notifier.notify("Dashboard loaded successfully!", "success")
        return True

    async def refresh_stats(self) -> Optional[DashboardStats]:
        try:
            self.stats = await fetch_dashboard_stats(self.backend, self.settings, self._clock())
        except AppError as exc:
            logger.error("Error fetching dashboard stats", data={"error": exc.message})
            self.notifier.notify("Could not load dashboard stats.", "error")
            return None
        self.view.refresh_totals()
        return self.stats

    def handle_local_event(
        self, entity_id: str, event_type: str, client_event_id: Optional[str] = None
    ) -> bool:
        """Optimistic update for a click made in this client."""
        return self.mirror.apply_local_event(entity_id, event_type, client_event_id)

    def attach_tracker(self, tracker: EventTracker) -> None:
        tracker.add_listener(self.handle_local_event)

    async def aclose(self) -> None:
        self.session.end_session()
        self.scheduler.stop()
        self._cancel_background()

    # Internals

    def _begin(self, user: AuthUser) -> None:
        self.user = user
        session_context.set({"admin_id": user.id, "session_id": (user.access_token or "")[-12:] or None})
        self.session.start_session()

    def _clear_local_state(self) -> None:
        self.user = None
        self.cars = []
        self.stats = None
        self.inbox.messages = []
        self.mirror.clear()
        self.state.session_start_time = None
        self.state.last_activity_time = None
        self.state.warning_shown = False
        session_context.set({})

    def _failed_login(self, message: str) -> AppError:
        locked = self.login_guard.record_failed_attempt()
        if locked:
            minutes = max(1, self.settings.lockout_duration_seconds // 60)
            err: AppError = AccountLockedError(
                self.settings.lockout_duration_seconds,
                f"Account locked. Too many failed attempts. Try again in {minutes} minutes.",
            )
        else:
            remaining = self.login_guard.attempts_remaining()
            if remaining > 0:
                message = f"{message} ({remaining} attempts remaining)"
            err = InvalidCredentialsError(message, details={"attempts_remaining": remaining})
        self.notifier.notify(err.message, "error")
        return err

    async def _verify_admin_role(self, user: AuthUser) -> bool:
        try:
            rows = await self.backend.select(
                self.settings.users_table,
                columns="role",
                filters=[("id", "eq", user.id)],
                limit=1,
            )
        except AppError as exc:
            # No profile table access is not proof of a non-admin
            logger.warning("Error checking admin role", data={"error": exc.message})
            return True

        role = rows[0].get("role") if rows else None
        if role is None or role == "admin":
            return True

        logger.warning("Authenticated user is not an admin", data={"role": role})
        try:
            await self.backend.sign_out()
        except AppError as exc:
            logger.warning("Sign-out of non-admin failed", data={"error": exc.message})
        self.session_store.remove(SESSION_ACTIVE_KEY)
        self.notifier.notify(ForbiddenError().message, "error")
        return False

    async def _subscribe(self) -> None:
        previous, self._subscriptions = self._subscriptions, []
        for subscription in previous:
            try:
                await subscription.unsubscribe()
            except AppError as exc:
                logger.warning("Unsubscribe failed", data={"error": exc.message})

        s = self.settings
        try:
            self._subscriptions.append(
                await self.backend.subscribe(s.analytics_table, self._on_analytics_change, ("INSERT",))
            )
            self._subscriptions.append(
                await self.backend.subscribe(s.messages_table, self._on_message_change, ("*",))
            )
        except AppError as exc:
            logger.warning("Realtime subscription failed", data={"error": exc.message})

    def _on_analytics_change(self, change: ChangeEvent) -> None:
        if self._logout_in_flight:
            return
        if self.mirror.apply_change_row(change.new):
            event_type = str(change.new.get("event_type", ""))
            self.notifier.notify(f"New {event_type.replace('_', ' ')} on a car!", "info")

    def _on_message_change(self, change: ChangeEvent) -> None:
        if self._logout_in_flight or not self.is_authenticated:
            return
        self._spawn(self.refresh_stats())
        if change.event_type == "INSERT":
            self.notifier.notify("New message received!", "info")

    async def _on_session_expired(self) -> None:
        self.notifier.notify(SessionExpiredError().message, "warning")
        await self.logout(reason="expired")

    def _audit_lockout(self, attempts: int) -> None:
        self._spawn(
            log_lockout(self.backend, attempts, table=self.settings.admin_logs_table, clock=self._clock)
        )

    async def _audit_reset(self, now: float) -> None:
        await log_admin_activity(
            self.backend,
            AuditAction.DAILY_STATS_RESET,
            self.user.id if self.user else None,
            {"reset": True},
            table=self.settings.admin_logs_table,
            clock=self._clock,
        )

    def _cancel_background(self) -> None:
        current = asyncio.current_task()
        for task in list(self._background):
            if task is not current:
                task.cancel()
        self._background.clear()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
