"""
LLM client: wraps the OpenAI chat-completions and transcription APIs.

Every call is single-shot. Vendor errors surface to the caller as
UpstreamError with the vendor message attached.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

from openai import OpenAI, OpenAIError

from visaforge.core.config import settings
from visaforge.utils.exceptions import UpstreamError

logger = logging.getLogger(__name__)


class LLMService:
    def __init__(self, client: Optional[OpenAI] = None) -> None:
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not settings.OPENAI_API_KEY:
                raise UpstreamError("OPENAI_API_KEY is not configured", status_code=500)
            self._client = OpenAI(api_key=settings.OPENAI_API_KEY)
        return self._client

    def complete(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        kwargs = {
            "model": settings.OPENAI_MODEL,
            "messages": messages,
            "temperature": settings.OPENAI_TEMPERATURE if temperature is None else temperature,
        }
        if max_tokens:
            kwargs["max_tokens"] = max_tokens

        try:
            response = self.client.chat.completions.create(**kwargs)
        except OpenAIError as exc:
            logger.error("OpenAI completion failed: %s", exc)
            raise UpstreamError(f"LLM request failed: {exc}") from exc

        text = (response.choices[0].message.content or "").strip() if response.choices else ""
        logger.info("LLM completion ok model=%s chars=%d", settings.OPENAI_MODEL, len(text))
        return text

    def transcribe(self, filename: str, data: bytes) -> str:
        """Speech-to-text for mock interview recordings."""
        try:
            result = self.client.audio.transcriptions.create(
                model=settings.OPENAI_TRANSCRIBE_MODEL,
                file=(filename or "audio.webm", data),
            )
        except OpenAIError as exc:
            logger.error("OpenAI transcription failed: %s", exc)
            raise UpstreamError(f"Transcription failed: {exc}") from exc
        return (getattr(result, "text", "") or "").strip()


llm_service = LLMService()
