"""
Advisor chat proxy.

Questions that depend on current facts (fees, forms, processing times,
policy) are answered with the configured government pages attached as
numbered sources.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from visaforge.core.config import settings
from visaforge.db.database import SessionLocal
from visaforge.services.grounding import GroundingDoc, GroundingFetcher, SqlDailyCounter, SqlTTLCache
from visaforge.services.llm_service import LLMService, llm_service

logger = logging.getLogger(__name__)

FRESHNESS_RE = re.compile(
    r"\b(fees?|cost|price|forms?|i-\d{2,3}\w?|processing|timeline|wait times?|policy|policies|"
    r"rules?|current|latest|new|update[sd]?|changed?|bulletin)\b",
    re.IGNORECASE,
)


def advisor_system_prompt(today: Optional[datetime] = None) -> str:
    date = (today or datetime.utcnow()).strftime("%B %d, %Y")
    return (
        f"You are VisaVault Advisor, an elite concierge. Use up-to-date knowledge as of {date}. "
        f"Be concise, accurate, and empathetic. If info may have changed after {date}, say so "
        "and suggest verifying."
    )


def needs_fresh_sources(text: str) -> bool:
    return bool(FRESHNESS_RE.search(text or ""))


def _sources_message(docs: List[GroundingDoc]) -> str:
    blocks = [f"[{i}] {d.title} ({d.url})\n{d.text}" for i, d in enumerate(docs, start=1)]
    return (
        "Reference pages fetched just now from official sources. Prefer them over memory "
        "and cite them as [n] where used.\n\n" + "\n\n".join(blocks)
    )


def default_fetcher() -> GroundingFetcher:
    return GroundingFetcher(cache=SqlTTLCache(SessionLocal), counter=SqlDailyCounter(SessionLocal))


class AdvisorService:
    def __init__(self, llm: Optional[LLMService] = None, fetcher: Optional[GroundingFetcher] = None) -> None:
        self.llm = llm or llm_service
        self._fetcher = fetcher

    @property
    def fetcher(self) -> GroundingFetcher:
        if self._fetcher is None:
            self._fetcher = default_fetcher()
        return self._fetcher

    def answer(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        latest = next((m["content"] for m in reversed(messages) if m.get("role") == "user"), "")

        docs: List[GroundingDoc] = []
        if needs_fresh_sources(latest):
            docs = self.fetcher.fetch_many(settings.grounding_sources_list)

        prompt = [{"role": "system", "content": advisor_system_prompt()}]
        if docs:
            prompt.append({"role": "system", "content": _sources_message(docs)})
        prompt.extend({"role": m["role"], "content": m["content"]} for m in messages)

        reply = self.llm.complete(prompt)
        logger.info("advisor answered grounded=%s sources=%d", bool(docs), len(docs))
        return {
            "reply": reply,
            "sources": [{"url": d.url, "title": d.title} for d in docs],
        }


advisor_service = AdvisorService()
