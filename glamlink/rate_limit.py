"""In-memory sliding-window rate limiting, per process."""
from __future__ import annotations

import time
from collections import deque
from threading import Lock


class SlidingWindowLimiter:
    """Allow at most ``limit`` actions per key within ``window_seconds``.

    Checking and recording are separate so callers only count actions
    that actually went through.
    """

    def __init__(self, window_seconds: float = 60.0):
        self.window_seconds = window_seconds
        self._actions: dict[object, deque] = {}
        self._lock = Lock()

    def _prune(self, key: object, now: float) -> int:
        actions = self._actions.get(key)
        if actions is None:
            return 0
        while actions and now - actions[0] >= self.window_seconds:
            actions.popleft()
        if not actions:
            del self._actions[key]
            return 0
        return len(actions)

    def check(self, key: object, limit: int) -> bool:
        """True while ``key`` has fewer than ``limit`` actions in the window."""
        with self._lock:
            return self._prune(key, time.monotonic()) < limit

    def record(self, key: object) -> None:
        now = time.monotonic()
        with self._lock:
            self._prune(key, now)
            self._actions.setdefault(key, deque()).append(now)

    def reset(self) -> None:
        with self._lock:
            self._actions.clear()


support_message_limiter = SlidingWindowLimiter(window_seconds=60.0)
