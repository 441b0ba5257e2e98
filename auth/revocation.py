"""
auth/revocation.py -- In-memory registry of explicitly revoked (logged-out) tokens.

A JWT cannot be un-signed, so logout works by remembering the raw token value
until the token would have expired anyway. After that point the signature
check rejects it on its own and the entry is dead weight, so every entry
carries its own expiry and is evicted once it passes:
  - lazily, when is_revoked() finds an expired entry, and
  - in bulk, by purge_expired(), which the API lifespan calls periodically.

Concurrency: FastAPI runs sync dependencies in a thread pool, so the map is
guarded by a threading.Lock. Every public method takes the lock for the whole
read-modify-write.

Limitation: state lives in this process only. It is lost on restart and not
shared between workers, so a revoked token is accepted again by another
worker or after a restart. Run a single worker, or back this with an external
cache with native expiry, before scaling out.

Layer rule: no imports from api/, board/, or core/.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class RevocationRegistry:
    """Thread-safe expiring set of revoked token strings.

    Usage:
        registry = RevocationRegistry()
        registry.revoke(token, expires_at=payload_exp)
        registry.is_revoked(token)   # True until expires_at
        registry.purge_expired()     # returns number of entries dropped
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._entries: dict[str, float] = {}
        self._lock = threading.Lock()

    def revoke(self, token: str, expires_at: float) -> None:
        """Mark token unusable until expires_at (POSIX seconds).

        Revoking an already-revoked token keeps the later of the two expiries.
        A token that has already expired is not stored.
        """
        if expires_at <= self._clock():
            return
        with self._lock:
            current = self._entries.get(token)
            if current is None or expires_at > current:
                self._entries[token] = expires_at

    def is_revoked(self, token: str) -> bool:
        with self._lock:
            expires_at = self._entries.get(token)
            if expires_at is None:
                return False
            if expires_at <= self._clock():
                del self._entries[token]
                return False
            return True

    def purge_expired(self) -> int:
        """Drop every entry whose expiry has passed. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [token for token, expires_at in self._entries.items() if expires_at <= now]
            for token in expired:
                del self._entries[token]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
