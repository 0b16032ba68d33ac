"""Unit tests for the in-memory sliding-window limiter."""
from __future__ import annotations

from unittest.mock import patch

from glamlink.rate_limit import SlidingWindowLimiter


def test_check_does_not_count_as_an_action():
    limiter = SlidingWindowLimiter(window_seconds=60)

    assert all(limiter.check("a", 1) for _ in range(5))

    limiter.record("a")
    assert limiter.check("a", 1) is False


def test_limit_is_per_key():
    limiter = SlidingWindowLimiter(window_seconds=60)
    limiter.record("a")
    limiter.record("a")

    assert limiter.check("a", 2) is False
    assert limiter.check("b", 2) is True


def test_window_slides():
    limiter = SlidingWindowLimiter(window_seconds=60)

    with patch("glamlink.rate_limit.time.monotonic", return_value=1000.0):
        limiter.record("a")
        assert limiter.check("a", 1) is False

    with patch("glamlink.rate_limit.time.monotonic", return_value=1059.0):
        assert limiter.check("a", 1) is False

    with patch("glamlink.rate_limit.time.monotonic", return_value=1060.0):
        assert limiter.check("a", 1) is True


def test_expired_keys_are_dropped():
    limiter = SlidingWindowLimiter(window_seconds=60)

    with patch("glamlink.rate_limit.time.monotonic", return_value=1000.0):
        limiter.record("a")
        limiter.record("b")

    with patch("glamlink.rate_limit.time.monotonic", return_value=1100.0):
        limiter.check("a", 1)
        limiter.record("b")

    assert "a" not in limiter._actions
    assert len(limiter._actions["b"]) == 1


def test_reset_clears_history():
    limiter = SlidingWindowLimiter(window_seconds=60)
    limiter.record("a")

    limiter.reset()

    assert limiter.check("a", 1) is True
