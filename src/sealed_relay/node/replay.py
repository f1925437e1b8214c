"""Replay detection for inbound envelopes."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from sealed_relay.types import Bytes32


@dataclass(slots=True)
class ReplayGuard:
    """TTL-based record of envelopes already delivered.

    An envelope is identified by its ephemeral public key, which is unique
    per message. Only envelopes that were opened and verified are recorded,
    so a forged envelope cannot burn the identifier of a genuine one.

    Memory is bounded twice: entries expire after `ttl_seconds`, and the
    oldest entries are evicted once `max_entries` is reached.
    """

    ttl_seconds: float = 600.0
    """Time-to-live for entries in seconds.

    A replay older than this is no longer detected here. The ledger's own
    double-claim check still refuses a second payout.
    """

    max_entries: int = 65536
    """Upper bound on the number of remembered envelopes."""

    time_fn: Callable[[], float] = time.monotonic
    """Clock used for expiry."""

    _timestamps: dict[Bytes32, float] = field(default_factory=dict, repr=False)
    """When each envelope was delivered. Insertion order is age order."""

    def seen(self, message_id: Bytes32) -> bool:
        """Check whether an envelope was already delivered and has not expired."""
        timestamp = self._timestamps.get(message_id)
        if timestamp is None:
            return False
        if timestamp < self.time_fn() - self.ttl_seconds:
            del self._timestamps[message_id]
            return False
        return True

    def mark(self, message_id: Bytes32) -> bool:
        """Record a delivered envelope.

        Returns:
            True if newly recorded (not a replay).
        """
        if self.seen(message_id):
            return False

        self.cleanup()
        while len(self._timestamps) >= self.max_entries:
            del self._timestamps[next(iter(self._timestamps))]

        self._timestamps[message_id] = self.time_fn()
        return True

    def cleanup(self) -> int:
        """Remove expired entries.

        Returns:
            Number of entries removed.
        """
        cutoff = self.time_fn() - self.ttl_seconds
        expired = [mid for mid, ts in self._timestamps.items() if ts < cutoff]
        for mid in expired:
            del self._timestamps[mid]
        return len(expired)

    def __len__(self) -> int:
        return len(self._timestamps)
