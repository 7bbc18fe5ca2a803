from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Iterable, List, Optional
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup

from visaforge.core.config import settings
from visaforge.services.grounding.cache import DailyCounter, TTLCache

logger = logging.getLogger(__name__)

COUNTER_NAME = "grounding_fetch"
USER_AGENT = "Mozilla/5.0 (compatible; VisaForgeBot/1.0; +https://popimmigration.com)"


@dataclass
class GroundingDoc:
    url: str
    title: str
    text: str


def extract_page(html: str, url: str, max_chars: int) -> GroundingDoc:
    soup = BeautifulSoup(html or "", "html.parser")
    for node in soup(["script", "style", "noscript", "nav", "footer", "header"]):
        node.decompose()
    title = soup.title.get_text(" ", strip=True) if soup.title else url
    body = soup.body or soup
    text = " ".join(body.get_text(" ", strip=True).split())
    return GroundingDoc(url=url, title=title, text=text[:max_chars])


def _host(url: str) -> str:
    host = (urlparse(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


class GroundingFetcher:
    """
    Fetches allow-listed reference pages.

    Successful pages are cached by URL; only real network calls count
    against the daily cap, and once the cap is hit the fetcher stays offline
    until the next UTC day. Fetch problems yield None.
    """

    def __init__(
        self,
        cache: TTLCache,
        counter: DailyCounter,
        allowed_domains: Optional[Iterable[str]] = None,
        timeout: Optional[float] = None,
        daily_cap: Optional[int] = None,
        ttl_seconds: Optional[int] = None,
        max_chars: Optional[int] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.cache = cache
        self.counter = counter
        self.allowed_domains = list(
            allowed_domains if allowed_domains is not None else settings.grounding_allowed_domains_list
        )
        self.timeout = timeout if timeout is not None else settings.GROUNDING_TIMEOUT_SECONDS
        self.daily_cap = daily_cap if daily_cap is not None else settings.GROUNDING_DAILY_CAP
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.GROUNDING_CACHE_TTL_SECONDS
        self.max_chars = max_chars if max_chars is not None else settings.GROUNDING_MAX_CHARS
        self.transport = transport

    def is_allowed(self, url: str) -> bool:
        if urlparse(url).scheme not in ("http", "https"):
            return False
        host = _host(url)
        return any(host == d or host.endswith(f".{d}") for d in self.allowed_domains)

    def fetch(self, url: str) -> Optional[GroundingDoc]:
        if not self.is_allowed(url):
            logger.info("grounding fetch refused, host not allowed: %s", url)
            return None

        cached = self.cache.get(url)
        if cached is not None:
            return GroundingDoc(**cached)

        if not self.counter.try_acquire(COUNTER_NAME, self.daily_cap):
            logger.warning("grounding daily cap reached (%d), skipping %s", self.daily_cap, url)
            return None

        try:
            with httpx.Client(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
                transport=self.transport,
            ) as client:
                res = client.get(url)
                res.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("grounding fetch failed %s: %s", url, exc)
            return None

        if not self.is_allowed(str(res.url)):
            logger.info("grounding fetch redirected off the allow list: %s -> %s", url, res.url)
            return None

        doc = extract_page(res.text, url, self.max_chars)
        self.cache.set(url, asdict(doc), self.ttl_seconds)
        return doc

    def fetch_many(self, urls: Iterable[str]) -> List[GroundingDoc]:
        docs = []
        for url in urls:
            doc = self.fetch(url)
            if doc is not None:
                docs.append(doc)
        return docs
