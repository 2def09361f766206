"""
Token Cache
===========
Per-user cache of short-lived bearer tokens.

Design
------
- One ``TokenEntry`` per user id; a refresh overwrites it in place.
- An entry is usable while ``expires_at > now``. Misses and expired entries
  trigger a refresh through the injected ``issuer`` coroutine.
- Get-or-refresh is single-flight per user id: an ``asyncio.Lock`` per user
  serialises refreshes, so concurrent misses issue exactly one request and
  the waiters reuse its result.
- Each refresh schedules a fire-and-forget eviction at
  ``ttl * eviction_ratio`` so a nearly expired token is dropped rather than
  handed to a request that would outlive it. The timer only evicts the entry
  it was scheduled for; a later refresh cancels it.
- Issuer failures propagate unchanged and nothing is cached.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from voicestream.config import get_settings
from voicestream.core.logging import get_logger

logger = get_logger(__name__)

TokenIssuerFn = Callable[[str], Awaitable[str]]


@dataclass
class TokenEntry:
    token: str
    expires_at: float

    def is_usable(self, now: float) -> bool:
        return self.expires_at > now


class TokenCache:
    def __init__(
        self,
        issuer: TokenIssuerFn,
        ttl_seconds: Optional[float] = None,
        eviction_ratio: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        settings = get_settings()
        self._issuer = issuer
        self._ttl = settings.token_expiration_seconds if ttl_seconds is None else ttl_seconds
        self._eviction_ratio = (
            settings.token_eviction_ratio if eviction_ratio is None else eviction_ratio
        )
        if self._ttl <= 0:
            raise ValueError("ttl_seconds must be > 0")
        if not 0 < self._eviction_ratio <= 1:
            raise ValueError("eviction_ratio must be in (0, 1]")
        self._clock = clock
        self._entries: Dict[str, TokenEntry] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._evictions: Dict[str, asyncio.TimerHandle] = {}
        self.refresh_count = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def lock_count(self) -> int:
        return len(self._locks)

    # ── Public API ─────────────────────────────────────────────────────────────

    async def ensure_token(self, user_id: str) -> str:
        """Return a usable token for ``user_id``, refreshing it if needed."""
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        async with lock:
            entry = self._entries.get(user_id)
            if entry is not None and entry.is_usable(self._clock()):
                return entry.token

            token = await self._issuer(user_id)
            entry = TokenEntry(token=token, expires_at=self._clock() + self._ttl)
            self._entries[user_id] = entry
            self._schedule_eviction(user_id, entry)
            self.refresh_count += 1

        logger.debug(
            "Token refreshed",
            extra={"user_id": user_id, "ttl_s": self._ttl, "expires_at": entry.expires_at},
        )
        return entry.token

    def get(self, user_id: str) -> Optional[TokenEntry]:
        return self._entries.get(user_id)

    def invalidate(self, user_id: str) -> None:
        self._entries.pop(user_id, None)
        handle = self._evictions.pop(user_id, None)
        if handle is not None:
            handle.cancel()
        self._release_lock(user_id)

    def clear(self) -> None:
        for handle in self._evictions.values():
            handle.cancel()
        self._evictions.clear()
        self._entries.clear()
        for user_id in list(self._locks):
            self._release_lock(user_id)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    # ── Eviction ───────────────────────────────────────────────────────────────

    def _schedule_eviction(self, user_id: str, entry: TokenEntry) -> None:
        previous = self._evictions.pop(user_id, None)
        if previous is not None:
            previous.cancel()
        loop = asyncio.get_running_loop()
        self._evictions[user_id] = loop.call_later(
            self._ttl * self._eviction_ratio, self._evict, user_id, entry
        )

    def _evict(self, user_id: str, entry: TokenEntry) -> None:
        if self._entries.get(user_id) is entry:
            del self._entries[user_id]
            logger.debug("Token evicted before expiry", extra={"user_id": user_id})
        self._evictions.pop(user_id, None)
        self._release_lock(user_id)

    def _release_lock(self, user_id: str) -> None:
        # a held lock belongs to an in-flight refresh
        lock = self._locks.get(user_id)
        if lock is not None and not lock.locked():
            del self._locks[user_id]
