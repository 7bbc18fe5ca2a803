"""
Web grounding for advisor answers: allow-listed government pages, fetched
with a timeout, cached for a short TTL and capped per UTC day.
"""
from visaforge.services.grounding.cache import (
    DailyCounter,
    MemoryDailyCounter,
    MemoryTTLCache,
    SqlDailyCounter,
    SqlTTLCache,
    TTLCache,
)
from visaforge.services.grounding.fetcher import GroundingDoc, GroundingFetcher

__all__ = [
    "DailyCounter",
    "GroundingDoc",
    "GroundingFetcher",
    "MemoryDailyCounter",
    "MemoryTTLCache",
    "SqlDailyCounter",
    "SqlTTLCache",
    "TTLCache",
]
