"""Fixed-Window Rate Limiter — per-client request counting with per-key locking.

Invariants:
    - A window is anchored at the first request of a key; expired once
      now > window_start + window_ms, then replaced by a fresh window with count 1
    - Rejected requests still count (stored count capped at max_requests + 1)
    - remaining = max(0, max_requests - count) on EVERY decision
    - retry_after_seconds = ceil((reset_at - now) / 1000), at least 1, only on rejection
    - Increments for one key are serialized: concurrent admits never lose a count
    - The store is owned by whoever constructs it — no module-level instance

Design Decisions:
    - Fixed window over sliding: O(1) memory per key, matches the headers we expose
      (a single absolute reset time)
    - threading.Lock, not asyncio.Lock: admit() never awaits, so it is safe from
      both sync and async callers and never yields inside the critical section
    - Per-key slots with a `retired` flag: purge_expired() can drop a slot while
      another caller still holds a reference; that caller sees `retired` and retries
    - Process-local only; multi-instance deployments need a shared store
"""

import math
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone


@dataclass(frozen=True)
class RateLimitPolicy:
    """Limit applied to a bucket of requests."""
    max_requests: int
    window_ms: int


@dataclass(frozen=True)
class RateLimitEntry:
    """Counter state for one client key inside one window."""
    key: str
    count: int
    window_start: float
    window_ms: int

    @property
    def reset_at(self) -> float:
        return self.window_start + self.window_ms

    def expired(self, now_ms: float) -> bool:
        return now_ms > self.reset_at


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one admit() call, including the header side-channel."""
    allow: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int | None = None

    @property
    def reset_at_iso(self) -> str:
        return datetime.fromtimestamp(
            self.reset_at / 1000, tz=timezone.utc,
        ).isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def headers(self) -> dict[str, str]:
        """X-RateLimit-* headers, plus Retry-After when rejected."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": self.reset_at_iso,
        }
        if self.retry_after_seconds is not None:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


@dataclass
class _Slot:
    lock: threading.Lock = field(default_factory=threading.Lock)
    entry: RateLimitEntry | None = None
    retired: bool = False


class FixedWindowRateLimiter:
    """Keyed fixed-window counter store."""

    def __init__(self) -> None:
        self._slots: dict[str, _Slot] = {}
        self._guard = threading.Lock()

    def _slot_for(self, key: str) -> _Slot:
        with self._guard:
            slot = self._slots.get(key)
            if slot is None:
                slot = _Slot()
                self._slots[key] = slot
            return slot

    def admit(
        self, key: str, now_ms: float, max_requests: int, window_ms: int,
    ) -> RateLimitDecision:
        """Count one request for key and decide whether it is admitted."""
        while True:
            slot = self._slot_for(key)
            with slot.lock:
                if slot.retired:
                    continue
                entry = slot.entry
                if entry is None or entry.expired(now_ms):
                    entry = RateLimitEntry(
                        key=key, count=1, window_start=now_ms, window_ms=window_ms,
                    )
                else:
                    entry = replace(entry, count=min(entry.count + 1, max_requests + 1))
                slot.entry = entry
                return _decide(entry, now_ms, max_requests)

    def check(self, key: str, policy: RateLimitPolicy, now_ms: float) -> RateLimitDecision:
        return self.admit(key, now_ms, policy.max_requests, policy.window_ms)

    def peek(self, key: str) -> RateLimitEntry | None:
        """Current entry for key without counting a request."""
        with self._guard:
            slot = self._slots.get(key)
        if slot is None:
            return None
        with slot.lock:
            return slot.entry

    def purge_expired(self, now_ms: float) -> int:
        """Drop entries whose window has passed. Returns how many were dropped."""
        dropped = 0
        with self._guard:
            for key, slot in list(self._slots.items()):
                with slot.lock:
                    if slot.entry is None or slot.entry.expired(now_ms):
                        slot.retired = True
                        del self._slots[key]
                        dropped += 1
        return dropped

    def reset(self) -> None:
        with self._guard:
            for slot in self._slots.values():
                with slot.lock:
                    slot.retired = True
            self._slots.clear()

    def __len__(self) -> int:
        with self._guard:
            return len(self._slots)


def _decide(entry: RateLimitEntry, now_ms: float, max_requests: int) -> RateLimitDecision:
    remaining = max(0, max_requests - entry.count)
    if entry.count > max_requests:
        retry_after = max(1, math.ceil((entry.reset_at - now_ms) / 1000))
        return RateLimitDecision(
            allow=False, limit=max_requests, remaining=0,
            reset_at=entry.reset_at, retry_after_seconds=retry_after,
        )
    return RateLimitDecision(
        allow=True, limit=max_requests, remaining=remaining, reset_at=entry.reset_at,
    )
