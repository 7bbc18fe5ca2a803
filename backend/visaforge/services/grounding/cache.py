"""
TTL cache and per-day counter used by the grounding fetcher.

Both come in an in-memory flavour (single process, tests) and a SQL flavour
backed by ``grounding_cache`` / ``daily_usage_counters`` so every API
instance shares the same cache and the same daily cap. Days are UTC.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from visaforge.db.models import DailyUsageCounter, GroundingCacheEntry

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TTLCache(Protocol):
    def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None: ...


class DailyCounter(Protocol):
    def try_acquire(self, name: str, cap: int) -> bool:
        """Count one use for today unless ``cap`` is already reached."""
        ...

    def used_today(self, name: str) -> int: ...


# ============================================================================
# In-memory
# ============================================================================

class MemoryTTLCache:
    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._items: Dict[str, Tuple[datetime, Dict[str, Any]]] = {}

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        hit = self._items.get(key)
        if hit is None:
            return None
        expires_at, value = hit
        if expires_at <= self._clock():
            self._items.pop(key, None)
            return None
        return value

    def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None:
        self._items[key] = (self._clock() + timedelta(seconds=ttl_seconds), value)


class MemoryDailyCounter:
    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._counts: Dict[Tuple[str, date], int] = {}

    def _today(self) -> date:
        return self._clock().date()

    def try_acquire(self, name: str, cap: int) -> bool:
        key = (name, self._today())
        used = self._counts.get(key, 0)
        if used >= cap:
            return False
        self._counts[key] = used + 1
        return True

    def used_today(self, name: str) -> int:
        return self._counts.get((name, self._today()), 0)


# ============================================================================
# SQL
# ============================================================================

class SqlTTLCache:
    def __init__(self, session_factory: sessionmaker, clock: Clock = utc_now) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._session_factory() as db:
            row = db.get(GroundingCacheEntry, key)
            if row is None or row.expires_at <= self._clock():
                return None
            return row.value

    def set(self, key: str, value: Dict[str, Any], ttl_seconds: int) -> None:
        now = self._clock()
        with self._session_factory() as db:
            row = db.get(GroundingCacheEntry, key)
            if row is None:
                row = GroundingCacheEntry(cache_key=key)
                db.add(row)
            row.value = value
            row.created_at = now
            row.expires_at = now + timedelta(seconds=ttl_seconds)
            db.commit()


class SqlDailyCounter:
    def __init__(self, session_factory: sessionmaker, clock: Clock = utc_now) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def _bump(self, db: Session, name: str, day: date, cap: int) -> bool:
        row = db.get(DailyUsageCounter, (name, day))
        if row is None:
            if cap <= 0:
                return False
            db.add(DailyUsageCounter(name=name, day=day, count=1))
            db.commit()
            return True
        if row.count >= cap:
            return False
        row.count = row.count + 1
        db.commit()
        return True

    def try_acquire(self, name: str, cap: int) -> bool:
        day = self._clock().date()
        with self._session_factory() as db:
            try:
                return self._bump(db, name, day, cap)
            except IntegrityError:
                # another instance inserted today's row first
                db.rollback()
                return self._bump(db, name, day, cap)

    def used_today(self, name: str) -> int:
        with self._session_factory() as db:
            row = db.get(DailyUsageCounter, (name, self._clock().date()))
            return row.count if row else 0
