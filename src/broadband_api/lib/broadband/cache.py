"""Database-backed cache of resolved provider lists, keyed by census block GEOID.

Every operation opens its own session, so concurrent requests never share
one.  Writes are a single ``INSERT ... ON CONFLICT (geoid) DO UPDATE``
statement: the last writer wins and no lock is held between requests.
Backend failures never reach the caller, whether raised by SQLAlchemy or by
the driver while connecting; they are logged and treated as a miss (reads)
or a no-op (writes).  Cancellation is not a failure and still propagates.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from loguru import logger
from pydantic import BaseModel, ValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from broadband_api.core.database import upsert_insert
from broadband_api.lib.broadband.results import BroadbandResult
from broadband_api.models.broadband_cache import BroadbandCache as BroadbandCacheEntry

DEFAULT_TTL = timedelta(hours=24)


class CacheError(Exception):
    """Raised by the cache backend; never propagated past BroadbandCache."""


class CacheStats(BaseModel):
    """Summary of cache contents."""

    total_entries: int = 0
    live_entries: int = 0
    expired_entries: int = 0
    oldest_fetched_at: datetime | None = None
    newest_fetched_at: datetime | None = None


def utc_now() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive datetimes; they are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class BroadbandCache:
    """Time-limited store of BroadbandResult payloads.

    Args:
        session_factory: Async session factory bound to the cache database.
        clock: Returns the current aware UTC time.
        default_ttl: TTL applied when ``put`` is called without one.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utc_now,
        default_ttl: timedelta = DEFAULT_TTL,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self._default_ttl = default_ttl

    @property
    def default_ttl(self) -> timedelta:
        return self._default_ttl

    async def get(self, geoid: str) -> BroadbandResult | None:
        """Return the cached result for a block, or None if absent or expired.

        Expired entries are left in place; a later ``put`` overwrites them.
        """
        try:
            entry = await self._load(geoid)
        except CacheError as e:
            logger.warning(f"Cache read failed for block {geoid}, treating as miss: {e}")
            return None

        if entry is None:
            return None
        payload, expires_at = entry
        if _as_utc(expires_at) <= self._clock():
            logger.debug(f"Cache entry for block {geoid} expired at {expires_at.isoformat()}")
            return None

        try:
            return BroadbandResult.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cache entry for block {geoid}: {e.error_count()} errors")
            return None

    async def put(self, geoid: str, result: BroadbandResult, ttl: timedelta | None = None) -> None:
        """Insert or overwrite the entry for a block, refreshing its timestamps."""
        fetched_at = self._clock()
        expires_at = fetched_at + (ttl if ttl is not None else self._default_ttl)
        try:
            await self._store(geoid, result.model_dump(mode="json"), fetched_at, expires_at)
        except CacheError as e:
            logger.warning(f"Cache write failed for block {geoid}, continuing without cache: {e}")

    async def get_stats(self) -> CacheStats:
        """Count live and expired entries.  Returns zeros if the backend is unavailable."""
        now = self._clock()
        try:
            async with self._session_factory() as session:
                row = (
                    await session.execute(
                        select(
                            func.count(),
                            func.min(BroadbandCacheEntry.fetched_at),
                            func.max(BroadbandCacheEntry.fetched_at),
                        )
                    )
                ).one()
                live = await session.scalar(
                    select(func.count()).select_from(BroadbandCacheEntry).where(BroadbandCacheEntry.expires_at > now)
                )
        except Exception as e:
            logger.warning(f"Cache statistics unavailable: {e!r}")
            return CacheStats()

        total, oldest, newest = row
        live = live or 0
        return CacheStats(
            total_entries=total,
            live_entries=live,
            expired_entries=total - live,
            oldest_fetched_at=_as_utc(oldest) if oldest is not None else None,
            newest_fetched_at=_as_utc(newest) if newest is not None else None,
        )

    async def _load(self, geoid: str) -> tuple[dict, datetime] | None:
        try:
            async with self._session_factory() as session:
                row = (
                    await session.execute(
                        select(BroadbandCacheEntry.payload, BroadbandCacheEntry.expires_at).where(
                            BroadbandCacheEntry.geoid == geoid
                        )
                    )
                ).one_or_none()
        except Exception as e:
            raise CacheError(repr(e)) from e
        if row is None:
            return None
        return row.payload, row.expires_at

    async def _store(self, geoid: str, payload: dict, fetched_at: datetime, expires_at: datetime) -> None:
        values = {"geoid": geoid, "payload": payload, "fetched_at": fetched_at, "expires_at": expires_at}
        try:
            async with self._session_factory() as session:
                insert = upsert_insert(session)
                stmt = insert(BroadbandCacheEntry).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["geoid"],
                    set_={
                        "payload": stmt.excluded.payload,
                        "fetched_at": stmt.excluded.fetched_at,
                        "expires_at": stmt.excluded.expires_at,
                    },
                )
                await session.execute(stmt)
                await session.commit()
        except Exception as e:
            raise CacheError(repr(e)) from e
