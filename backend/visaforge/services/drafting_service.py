from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from visaforge.core.failure_policy import best_effort
from visaforge.services import case_service, visa_config
from visaforge.services.llm_service import LLMService, llm_service
from visaforge.utils.exceptions import ValidationError

logger = logging.getLogger(__name__)

DRAFT_SYSTEM_PROMPT = (
    "You draft sworn affidavits and personal statements for U.S. immigration filings. "
    "Write in the first person, plain English, chronological, with specific dates and places. "
    "Use only facts supplied by the user; mark anything missing as [TO CONFIRM]. "
    "Do not give legal advice."
)


def build_affidavit_prompt(
    title: str,
    inputs: Dict[str, Any],
    relationship: Optional[str],
    notes: Optional[str],
) -> str:
    facts = "\n".join(
        f"- {k}: {v}" for k, v in inputs.items()
        if v not in (None, "") and not isinstance(v, (dict, list))
    )
    return "\n".join([
        f"Filing path: {title}",
        "",
        "Applicant details:",
        facts or "- (none provided)",
        "",
        f"Relationship / background: {relationship or '(not provided)'}",
        "",
        "Narrative notes from the applicant:",
        notes or "(none)",
        "",
        "Draft the affidavit text with a short heading, numbered paragraphs and a closing "
        "declaration under penalty of perjury with signature and date lines.",
    ])


def draft_affidavit(
    db: Session,
    visa_type: Optional[str],
    inputs: Optional[Dict[str, Any]] = None,
    relationship: Optional[str] = None,
    notes: Optional[str] = None,
    visa_app_id: Optional[UUID] = None,
    llm: Optional[LLMService] = None,
) -> str:
    inputs = inputs or {}
    if not inputs and not (relationship or "").strip() and not (notes or "").strip():
        raise ValidationError("Provide applicant details or narrative notes to draft from.")

    config = visa_config.get_config(visa_type)
    draft = (llm or llm_service).complete([
        {"role": "system", "content": DRAFT_SYSTEM_PROMPT},
        {"role": "user", "content": build_affidavit_prompt(config.title, inputs, relationship, notes)},
    ])

    if visa_app_id is not None:
        with best_effort("save affidavit draft", session=db, visa_app_id=visa_app_id):
            case_service.save_case_inputs(db, visa_app_id, inputs=inputs, affidavit_draft=draft)
    return draft
