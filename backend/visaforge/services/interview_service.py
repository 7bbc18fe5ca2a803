"""
Mock-interview feedback: prompt templating around the LLM plus the
credit bookkeeping that follows a successful answer.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from visaforge.services import entitlement_service
from visaforge.services.llm_service import LLMService, llm_service
from visaforge.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are concise, practical, and accurate. Never fabricate law; focus on "
    "behavior, clarity, credibility, and consistency."
)

FEEDBACK_TEMPERATURE = 0.3


def build_feedback_prompt(transcript: str, answers: Optional[List[str]], context: Optional[str]) -> str:
    body = transcript or "\n\n• ".join(answers or [])
    lines = [
        "You are VisaForge Interview Coach, an elite immigration interview trainer.",
        "Give highly actionable, concise feedback on the following mock interview answers.",
        "Return sections:",
        "1) Overall score (0-100)",
        "2) Strengths (bullets)",
        "3) Risks & red flags (bullets)",
        "4) Targeted improvements (steps the user should practice)",
        "5) Next practice questions (3-5)",
        "",
        f"Context: {context}" if context else "",
        "",
        "Answers / Transcript:",
        body,
    ]
    return "\n".join(lines)


def generate_feedback(
    db: Session,
    transcript: Optional[str] = None,
    answers: Optional[List[str]] = None,
    prompt_context: Optional[str] = None,
    visa_app_id: Optional[UUID] = None,
    audio: Optional[bytes] = None,
    audio_filename: Optional[str] = None,
    llm: Optional[LLMService] = None,
) -> Dict[str, Any]:
    llm = llm or llm_service

    transcript = (transcript or "").strip()
    if not transcript and audio:
        transcript = llm.transcribe(audio_filename or "audio.webm", audio)
    answers = [a for a in (answers or []) if isinstance(a, str) and a.strip()]

    if not transcript and not answers:
        raise ValidationError(
            "No transcript or answers provided. Send JSON with { transcript } or multipart with audio."
        )

    feedback = llm.complete(
        [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": build_feedback_prompt(transcript, answers, prompt_context)},
        ],
        temperature=FEEDBACK_TEMPERATURE,
    )

    credits_remaining = None
    if visa_app_id is not None:
        credits_remaining = entitlement_service.decrement_credit(db, visa_app_id)

    return {
        "feedback": feedback,
        "usedTranscript": bool(transcript),
        "usedAnswers": bool(answers),
        "creditsRemaining": credits_remaining,
    }
