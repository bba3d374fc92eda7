"""Tests for login lockout."""

import pytest

from showroom.auth.login_limiter import LoginGuard, SecurityState


@pytest.fixture
def guard(clock):
    return LoginGuard(SecurityState(), max_attempts=5, lockout_seconds=900, clock=clock)


def test_locks_exactly_on_fifth_failure(guard):
    results = [guard.record_failed_attempt() for _ in range(5)]

    assert results == [False, False, False, False, True]
    assert guard.is_locked_out()
    assert guard.state.failed_login_attempts == 5


def test_not_locked_before_fifth_failure(guard):
    for _ in range(4):
        guard.record_failed_attempt()
    assert not guard.is_locked_out()
    assert guard.attempts_remaining() == 1


def test_lock_holds_until_window_elapses(guard, clock):
    for _ in range(5):
        guard.record_failed_attempt()

    clock.advance(14 * 60)
    assert guard.is_locked_out()
    assert guard.state.failed_login_attempts == 5

    clock.advance(60)  # exactly 15 minutes
    assert guard.is_locked_out()

    clock.advance(1)
    assert not guard.is_locked_out()
    assert guard.state.failed_login_attempts == 0
    assert guard.state.is_locked_out is False


def test_window_is_measured_from_last_failure(guard, clock):
    for _ in range(4):
        guard.record_failed_attempt()
    clock.advance(600)
    guard.record_failed_attempt()

    clock.advance(600)
    assert guard.is_locked_out()


def test_remaining_lockout_seconds(guard, clock):
    assert guard.remaining_lockout_seconds() == 0
    for _ in range(5):
        guard.record_failed_attempt()
    clock.advance(300)
    assert guard.remaining_lockout_seconds() == 600


@pytest.mark.parametrize("failures", [0, 3, 5, 7])
def test_reset_attempts_always_clears(guard, failures):
    for _ in range(failures):
        guard.record_failed_attempt()

    guard.reset_attempts()

    assert guard.state.failed_login_attempts == 0
    assert guard.state.is_locked_out is False
    assert guard.state.last_login_attempt is None


def test_lockout_hook_receives_attempts(clock):
    seen = []
    guard = LoginGuard(SecurityState(), max_attempts=2, clock=clock, on_lockout=seen.append)

    guard.record_failed_attempt()
    guard.record_failed_attempt()

    assert seen == [2]


def test_lockout_hook_failure_does_not_propagate(clock):
    def boom(_attempts):
        raise RuntimeError("audit down")

    guard = LoginGuard(SecurityState(), max_attempts=1, clock=clock, on_lockout=boom)
    assert guard.record_failed_attempt() is True


def test_separate_states_are_independent(clock):
    a = LoginGuard(SecurityState(), clock=clock)
    b = LoginGuard(SecurityState(), clock=clock)
    for _ in range(5):
        a.record_failed_attempt()
    assert a.is_locked_out()
    assert not b.is_locked_out()
