"""Short-TTL cache of known company names used by entity detection."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

from decision_layer.config import Settings, settings as default_settings
from decision_layer.logging import get_logger
from decision_layer.stores import EntityStore

logger = get_logger(__name__)

RefreshFn = Callable[[], Awaitable[Sequence[str]]]
Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry:
    value: tuple[str, ...]
    expires_at: float


class EntityCache:
    """Company names with time-based expiry and a static fallback.

    Only one refresh runs at a time. While it is in flight, readers get the
    previous (possibly expired) value instead of waiting. A failed refresh
    leaves the previous value in place; with nothing cached the static
    fallback list is served.
    """

    def __init__(
        self,
        refresh: RefreshFn,
        ttl_seconds: float = 300.0,
        fallback: Sequence[str] = (),
        clock: Clock = time.monotonic,
    ) -> None:
        self._refresh = refresh
        self.ttl_seconds = ttl_seconds
        self.fallback = tuple(fallback)
        self._clock = clock
        self._entry: CacheEntry | None = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_store(
        cls,
        store: EntityStore,
        settings: Settings | None = None,
        clock: Clock = time.monotonic,
    ) -> EntityCache:
        cfg = settings or default_settings

        async def _refresh() -> list[str]:
            companies = await store.get_companies(cfg.PRODUCT_NAME)
            return [c.name for c in companies if c.name and c.name.strip()]

        return cls(
            refresh=_refresh,
            ttl_seconds=cfg.ENTITY_CACHE_TTL_SECONDS,
            fallback=cfg.FALLBACK_COMPANIES,
            clock=clock,
        )

    @property
    def entry(self) -> CacheEntry | None:
        return self._entry

    def is_fresh(self) -> bool:
        return self._fresh_entry() is not None

    def _fresh_entry(self) -> CacheEntry | None:
        entry = self._entry
        if entry is not None and self._clock() < entry.expires_at:
            return entry
        return None

    def invalidate(self) -> None:
        """Force the next read to refresh, keeping the current value as stale."""
        if self._entry is not None:
            self._entry = CacheEntry(value=self._entry.value, expires_at=float("-inf"))

    async def get(self) -> tuple[str, ...]:
        entry = self._fresh_entry()
        if entry is not None:
            return entry.value

        if self._lock.locked() and self._entry is not None:
            return self._entry.value

        async with self._lock:
            # Another reader may have refreshed while we waited
            entry = self._fresh_entry()
            if entry is not None:
                return entry.value
            return await self._refresh_locked()

    async def _refresh_locked(self) -> tuple[str, ...]:
        try:
            names = tuple(await self._refresh())
        except Exception as e:
            return self._on_refresh_failure(f"{type(e).__name__}: {e}")

        if not names:
            return self._on_refresh_failure("store returned no companies")

        self._entry = CacheEntry(value=names, expires_at=self._clock() + self.ttl_seconds)
        logger.info(f"Entity cache refreshed with {len(names)} companies")
        return names

    def _on_refresh_failure(self, reason: str) -> tuple[str, ...]:
        if self._entry is not None:
            logger.warning(f"Entity refresh failed, serving stale cache: {reason}")
            return self._entry.value
        logger.warning(f"Entity refresh failed, using fallback list: {reason}")
        return self.fallback
