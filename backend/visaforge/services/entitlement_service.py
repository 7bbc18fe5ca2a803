"""
Entitlement / usage ledger kept inside the case meta.

Purchases overwrite the entitlement fields with the paid tier's values, but
never reset mock-interview credits that are already being tracked. Usage only
ever goes down and stops at zero.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from visaforge.core.failure_policy import best_effort
from visaforge.db.models import VisaApp
from visaforge.services.case_meta import CaseMeta, update_case_meta, utcnow

logger = logging.getLogger(__name__)

TIERS = ("starter", "complete", "premium")
DEFAULT_TIER = "starter"


@dataclass(frozen=True)
class TierDefaults:
    translations_included: int
    qa_included: int
    mock_interviews_included: int
    storage_days: int
    validations: bool
    mock_interview_pro: bool
    expedited: bool
    rfe_readiness: bool


TIER_DEFAULTS = {
    "starter": TierDefaults(0, 0, 0, 30, False, False, False, False),
    "complete": TierDefaults(2, 1, 1, 90, True, True, False, False),
    "premium": TierDefaults(4, 2, 2, 90, True, True, True, True),
}

_TRUE = ("true", "1", "yes", "y")
_FALSE = ("false", "0", "no", "n")


def normalize_tier(value: Any) -> str:
    tier = str(value or "").strip().lower()
    return tier if tier in TIERS else DEFAULT_TIER


def parse_int(value: Any, fallback: int) -> int:
    if isinstance(value, bool) or value is None:
        return fallback
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return fallback


def parse_bool(value: Any, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value if value is not None else "").strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    return fallback


@dataclass(frozen=True)
class Purchase:
    """A tier purchase resolved from checkout metadata."""
    tier: str
    translations_included: int
    qa_included: int
    mock_interviews_included: int
    storage_days: int
    validations: bool
    mock_interview_pro: bool
    rfe_readiness: bool
    expedited: bool
    checkout_session_id: Optional[str] = None


def resolve_purchase(metadata: Optional[Mapping[str, Any]], checkout_session_id: Optional[str] = None) -> Purchase:
    md = metadata or {}
    tier = normalize_tier(md.get("tier"))
    d = TIER_DEFAULTS[tier]
    return Purchase(
        tier=tier,
        translations_included=parse_int(md.get("translationsIncluded"), d.translations_included),
        qa_included=parse_int(md.get("qaIncluded"), d.qa_included),
        mock_interviews_included=parse_int(md.get("mockInterviewsIncluded"), d.mock_interviews_included),
        storage_days=parse_int(md.get("storageDays"), d.storage_days),
        validations=d.validations,
        mock_interview_pro=d.mock_interview_pro,
        rfe_readiness=parse_bool(md.get("rfeReadiness"), d.rfe_readiness),
        expedited=parse_bool(md.get("expedited", md.get("Expedited")), d.expedited),
        checkout_session_id=checkout_session_id,
    )


def merge_entitlements(meta: CaseMeta, purchase: Purchase) -> CaseMeta:
    """Apply a purchase to the ledger in place (and return it)."""
    now = utcnow()
    meta.plan_tier = purchase.tier
    meta.entitlements = meta.entitlements.model_copy(update={
        "translations_included": purchase.translations_included,
        "qa_included": purchase.qa_included,
        "validations": purchase.validations,
        "mock_interview_pro": purchase.mock_interview_pro,
        "mock_interviews_included": purchase.mock_interviews_included,
    })
    if meta.usage.mock_interview_credits_remaining is None:
        meta.usage.mock_interview_credits_remaining = max(0, purchase.mock_interviews_included)
    meta.storage_until = now + timedelta(days=purchase.storage_days)
    meta.flags = meta.flags.model_copy(update={"rfe_readiness": purchase.rfe_readiness, "expedited": purchase.expedited})
    if purchase.checkout_session_id:
        meta.stripe_checkout_session_id = purchase.checkout_session_id
    meta.record("purchase", tier=purchase.tier, sessionId=purchase.checkout_session_id)
    return meta


def apply_purchase(db: Session, visa_app_id: UUID, purchase: Purchase) -> Optional[VisaApp]:
    app = update_case_meta(db, visa_app_id, lambda meta, _app: merge_entitlements(meta, purchase))
    if app is not None:
        logger.info("entitlements merged case=%s tier=%s", visa_app_id, purchase.tier)
    return app


def consume_credit(meta: CaseMeta) -> Optional[int]:
    meta.record("used")
    current = meta.usage.mock_interview_credits_remaining
    # an untracked ledger stays untracked until the first purchase initialises it
    if current is None:
        return None
    remaining = max(0, current - 1)
    meta.usage.mock_interview_credits_remaining = remaining
    return remaining


def decrement_credit(db: Session, visa_app_id: UUID) -> Optional[int]:
    """
    Use one mock-interview credit. Returns the remaining count, or None when
    the case is missing or the write failed.
    """
    result = {}

    def _apply(meta: CaseMeta, _app: VisaApp) -> None:
        result["remaining"] = consume_credit(meta)

    with best_effort("decrement interview credit", session=db, visa_app_id=visa_app_id) as outcome:
        app = update_case_meta(db, visa_app_id, _apply)
    if outcome.failed or app is None:
        return None
    return result["remaining"]


def ledger_view(meta: CaseMeta) -> dict:
    data = meta.model_dump(by_alias=True, mode="json", exclude_none=True)
    keys = ("planTier", "entitlements", "usage", "flags", "storageUntil")
    return {k: data.get(k) for k in keys}
