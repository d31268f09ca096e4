from __future__ import annotations

from datetime import datetime, timedelta, timezone

from smartthings_auth.services.callback_validator import NONCE_BYTES, CallbackValidator


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


def test_issued_nonce_validates_exactly_once() -> None:
    validator = CallbackValidator()
    nonce = validator.issue()

    assert validator.pending
    assert validator.validate(nonce) is True
    assert validator.validate(nonce) is False
    assert not validator.pending


def test_nonce_is_long_random_hex() -> None:
    validator = CallbackValidator()

    first = validator.issue()
    second = validator.issue()

    assert len(first) == NONCE_BYTES * 2
    int(first, 16)
    assert first != second


def test_reissuing_invalidates_previous_nonce() -> None:
    validator = CallbackValidator()
    stale = validator.issue()
    validator.issue()

    assert validator.validate(stale) is False


def test_validate_without_pending_flow_fails() -> None:
    validator = CallbackValidator()

    assert validator.validate("anything") is False
    assert validator.validate(None) is False


def test_mismatched_state_fails_and_consumes_nonce() -> None:
    validator = CallbackValidator()
    nonce = validator.issue()

    assert validator.validate("wrong") is False
    assert validator.validate(nonce) is False


def test_expired_nonce_is_rejected() -> None:
    clock = FakeClock()
    validator = CallbackValidator(ttl_seconds=900, clock=clock)
    nonce = validator.issue()

    clock.now += timedelta(seconds=901)

    assert validator.validate(nonce) is False


def test_nonce_within_ttl_is_accepted() -> None:
    clock = FakeClock()
    validator = CallbackValidator(ttl_seconds=900, clock=clock)
    nonce = validator.issue()

    clock.now += timedelta(seconds=899)

    assert validator.validate(nonce) is True
