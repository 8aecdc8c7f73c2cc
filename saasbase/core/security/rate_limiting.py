"""
Rate Limiting Module

Thread-safe in-memory fixed-window rate limiter. Each application instance
owns its limiter; multi-worker deployments get one window per worker.
"""

import time
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, Optional, Tuple

from fastapi import Request

from saasbase.config import RATE_LIMIT_REQUESTS, RATE_LIMIT_WINDOW
from saasbase.core.security.utils import get_client_ip


@dataclass
class RateLimitEntry:
    """Tracks rate limit state for a single key."""
    count: int = 0
    window_start: float = field(default_factory=time.time)


class RateLimiter:
    def __init__(self, limit: int = RATE_LIMIT_REQUESTS, window: int = RATE_LIMIT_WINDOW):
        self._limit = limit
        self._window = window
        self._entries: Dict[str, RateLimitEntry] = defaultdict(RateLimitEntry)
        self._lock = Lock()
        self._cleanup_counter = 0
        self._cleanup_threshold = 1000  # Cleanup every N checks

    @property
    def limit(self) -> int:
        return self._limit

    def _cleanup_expired(self) -> None:
        now = time.time()
        expired_keys = [
            key for key, entry in self._entries.items()
            if now - entry.window_start > self._window * 2
        ]
        for key in expired_keys:
            del self._entries[key]

    def is_allowed(self, key: str) -> Tuple[bool, int, int]:
        """
        Check if request is allowed under rate limit.

        Returns:
            Tuple of (allowed, remaining, reset_seconds)
        """
        now = time.time()

        with self._lock:
            self._cleanup_counter += 1
            if self._cleanup_counter >= self._cleanup_threshold:
                self._cleanup_expired()
                self._cleanup_counter = 0

            entry = self._entries[key]

            if now - entry.window_start > self._window:
                entry.count = 0
                entry.window_start = now

            reset_time = max(int(entry.window_start + self._window - now), 1)
            if entry.count >= self._limit:
                return False, 0, reset_time

            entry.count += 1
            return True, self._limit - entry.count, reset_time

    def get_key_for_request(self, request: Request, user_id: Optional[str] = None) -> str:
        if user_id:
            return f"user:{user_id}"
        return f"ip:{get_client_ip(request)}"
