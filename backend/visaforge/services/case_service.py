# visaforge/services/case_service.py
"""
Case lifecycle: quiz scoring, the canonical "latest" case per user, and
field-level saves into the case meta.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from visaforge.db.models import VisaApp
from visaforge.services import case_meta, visa_config
from visaforge.utils.exceptions import CaseNotFoundError

logger = logging.getLogger(__name__)

ELIGIBLE_SCORE = 8
STRONG_ANSWERS = ("Yes", "Strong")
WEAK_ANSWERS = ("No", "Limited", "No/Unsure")

# government fees plus typical preparation, USD
COST_ANCHORS = {
    "Marriage-Green-Card": 1800,
    "Immigrant-Spouse": 1800,
    "K1-Fiance": 1500,
    "Removal-of-Conditions": 800,
    "H1B": 1200,
    "Green-Card": 1600,
}


def score_quiz(visa_type_label: str, answers: Iterable[str]) -> Dict[str, Any]:
    score = 0
    for answer in answers:
        if answer in STRONG_ANSWERS:
            score += 3
        elif answer in WEAK_ANSWERS:
            score += 1
    visa_type = visa_config.normalize_visa_type(visa_type_label)
    eligible = score >= ELIGIBLE_SCORE
    return {
        "score": score,
        "eligible": eligible,
        "status": "Eligible" if eligible else "In Progress",
        "cost_estimate": COST_ANCHORS.get(visa_type, 0),
        "visa_type": visa_type,
    }


def get_latest_case(db: Session, user_id: UUID) -> Optional[VisaApp]:
    return (
        db.query(VisaApp)
        .filter(VisaApp.user_id == user_id)
        .order_by(VisaApp.created_at.desc())
        .first()
    )


def get_owned_case(db: Session, user_id: UUID, visa_app_id: UUID) -> VisaApp:
    app = (
        db.query(VisaApp)
        .filter(VisaApp.id == visa_app_id, VisaApp.user_id == user_id)
        .first()
    )
    if app is None:
        raise CaseNotFoundError(str(visa_app_id))
    return app


def create_case(db: Session, user_id: UUID, visa_type: str, **fields) -> VisaApp:
    app = VisaApp(
        user_id=user_id,
        visa_type=visa_config.normalize_visa_type(visa_type),
        score=fields.get("score", 0),
        status=fields.get("status", "In Progress"),
        progress=0,
        cost_estimate=fields.get("cost_estimate", 0),
        meta=None,
    )
    db.add(app)
    db.commit()
    db.refresh(app)
    logger.info("case created id=%s user=%s type=%s", app.id, user_id, app.visa_type)
    return app


def ensure_case(db: Session, user_id: UUID, visa_type_label: str) -> VisaApp:
    """Reuse the latest case when its type matches, otherwise open a new one."""
    normalized = visa_config.normalize_visa_type(visa_type_label)
    latest = get_latest_case(db, user_id)
    if latest is not None and visa_config.normalize_visa_type(latest.visa_type) == normalized:
        return latest
    return create_case(db, user_id, normalized)


def resolve_case_for_purchase(db: Session, user_id: UUID, visa_type_hint: Optional[str]) -> VisaApp:
    """Matching type (newest first), else the latest case, else a new one."""
    if visa_type_hint:
        normalized = visa_config.normalize_visa_type(visa_type_hint)
        match = (
            db.query(VisaApp)
            .filter(VisaApp.user_id == user_id, VisaApp.visa_type == normalized)
            .order_by(VisaApp.created_at.desc())
            .first()
        )
        if match is not None:
            return match
    latest = get_latest_case(db, user_id)
    if latest is not None:
        return latest
    return create_case(db, user_id, visa_type_hint or visa_config.DEFAULT_VISA_TYPE)


def complete_quiz(db: Session, user_id: UUID, visa_type_label: str, answers: Iterable[str]) -> Dict[str, Any]:
    result = score_quiz(visa_type_label, answers)
    app = ensure_case(db, user_id, visa_type_label)
    app.score = result["score"]
    app.status = result["status"]
    app.cost_estimate = result["cost_estimate"]
    db.commit()
    db.refresh(app)
    result["visa_app_id"] = app.id
    return result


def save_case_inputs(
    db: Session,
    visa_app_id: UUID,
    inputs: Optional[Dict[str, Any]] = None,
    affidavit_draft: Optional[str] = None,
) -> Optional[VisaApp]:
    """Merge form inputs key by key and replace the affidavit draft when given."""

    def _apply(meta: case_meta.CaseMeta, _app: VisaApp) -> None:
        if inputs:
            meta.inputs = {**meta.inputs, **inputs}
        if affidavit_draft is not None:
            meta.affidavit_draft = affidavit_draft

    return case_meta.update_case_meta(db, visa_app_id, _apply)
