"""
Certified-translation orders, forwarded to the external vendor as-is.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

import httpx

from visaforge.core.config import settings
from visaforge.utils.exceptions import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TARGET_LANG = "en"


class TranslationService:
    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.transport = transport

    async def order(
        self,
        filename: Optional[str],
        data: Optional[bytes],
        content_type: Optional[str] = None,
        target_lang: Optional[str] = None,
    ) -> Tuple[int, Any]:
        """Returns the vendor's status code and decoded body."""
        api_key = (settings.TRANSLATION_API_KEY or "").strip()
        if not api_key:
            raise UpstreamError("TRANSLATION_API_KEY missing", status_code=500)
        if not data:
            raise ValidationError("Missing file")

        files = {"file": (filename or "document", data, content_type or "application/octet-stream")}
        form = {"targetLang": (target_lang or "").strip() or DEFAULT_TARGET_LANG}
        try:
            async with httpx.AsyncClient(timeout=settings.TRANSLATION_TIMEOUT_SECONDS, transport=self.transport) as client:
                resp = await client.post(
                    settings.TRANSLATION_API_URL,
                    headers={"Authorization": f"Bearer {api_key}"},
                    data=form,
                    files=files,
                )
        except httpx.HTTPError as exc:
            logger.error("translation vendor unreachable: %s", exc)
            raise UpstreamError(f"Translate error: {exc}") from exc

        try:
            body = resp.json()
        except ValueError:
            body = {"error": resp.text[:500] or "Invalid vendor response"}
        logger.info("translation order forwarded status=%s lang=%s", resp.status_code, form["targetLang"])
        return resp.status_code, body


translation_service = TranslationService()
