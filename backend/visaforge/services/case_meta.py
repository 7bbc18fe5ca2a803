"""
Typed view over ``visa_apps.meta``.

The column stays a JSON document (camelCase keys, unknown keys preserved),
but every read goes through ``CaseMeta`` and every write is a field-level
mutation followed by a versioned UPDATE.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from visaforge.db.models import VisaApp

logger = logging.getLogger(__name__)

META_SCHEMA_VERSION = 1
MAX_MERGE_ATTEMPTS = 3


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


def _int_or_none(v: Any) -> Optional[int]:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return int(v)
    return None


class Entitlements(_CamelModel):
    translations_included: int = 0
    qa_included: int = 0
    validations: bool = False
    mock_interview_pro: bool = False
    mock_interviews_included: int = 0


class Usage(_CamelModel):
    mock_interview_credits_remaining: Optional[int] = None

    # only a stored number counts as "already initialised"
    @field_validator("mock_interview_credits_remaining", mode="before")
    @classmethod
    def _numeric_only(cls, v: Any) -> Optional[int]:
        return _int_or_none(v)


class Flags(_CamelModel):
    rfe_readiness: bool = False
    expedited: bool = False


class AuditEvent(_CamelModel):
    type: str
    at: datetime = Field(default_factory=utcnow)


class CaseMeta(_CamelModel):
    schema_version: int = META_SCHEMA_VERSION
    inputs: Dict[str, Any] = Field(default_factory=dict)
    affidavit_draft: Optional[str] = None
    plan_tier: Optional[str] = None
    entitlements: Optional[Entitlements] = None
    usage: Usage = Field(default_factory=Usage)
    flags: Optional[Flags] = None
    storage_until: Optional[datetime] = None
    audit: List[AuditEvent] = Field(default_factory=list)
    stripe_checkout_session_id: Optional[str] = None
    updated_at: Optional[datetime] = None

    @field_validator("inputs", mode="before")
    @classmethod
    def _inputs_dict(cls, v: Any) -> Dict[str, Any]:
        return v if isinstance(v, dict) else {}

    @field_validator("audit", mode="before")
    @classmethod
    def _audit_list(cls, v: Any) -> List[Any]:
        if not isinstance(v, list):
            return []
        return [e for e in v if isinstance(e, dict) and e.get("type")]

    def record(self, event_type: str, **details: Any) -> AuditEvent:
        """Append an audit event. The log is never rewritten."""
        event = AuditEvent(type=event_type, at=utcnow(), **details)
        self.audit.append(event)
        return event


def load_meta(raw: Optional[Dict[str, Any]]) -> CaseMeta:
    return CaseMeta.model_validate(raw if isinstance(raw, dict) else {})


def dump_meta(meta: CaseMeta) -> Dict[str, Any]:
    return meta.model_dump(by_alias=True, mode="json", exclude_none=True)


def update_case_meta(
    db: Session,
    visa_app_id: UUID,
    mutate: Callable[[CaseMeta, VisaApp], None],
    attempts: int = MAX_MERGE_ATTEMPTS,
) -> Optional[VisaApp]:
    """
    Read-modify-write of a case's meta under the ``meta_version`` check.

    ``mutate`` receives the freshly loaded meta and row and edits them in
    place. On a concurrent update the whole cycle is replayed against the new
    row. Returns None when the case does not exist.
    """
    for attempt in range(1, attempts + 1):
        app = (
            db.query(VisaApp)
            .populate_existing()
            .filter(VisaApp.id == visa_app_id)
            .first()
        )
        if app is None:
            return None

        meta = load_meta(app.meta)
        mutate(meta, app)
        meta.schema_version = META_SCHEMA_VERSION
        meta.updated_at = utcnow()
        app.meta = dump_meta(meta)

        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            if attempt == attempts:
                raise
            logger.info("meta update on %s lost a race, retrying (%d/%d)", visa_app_id, attempt, attempts)
            continue

        db.refresh(app)
        return app
    return None
