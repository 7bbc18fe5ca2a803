"""
USCIS packet generation.

Gate checks run against freshly loaded evidence; nothing is stored unless
they pass. Rendering, upload and signing are the critical path and fail
loudly. Task bookkeeping and the meta save run best effort afterwards.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from visaforge.core.config import settings
from visaforge.core.failure_policy import best_effort, critical_path
from visaforge.services import case_service, evidence_service, task_service, visa_config
from visaforge.services.packet_renderer import render_packet
from visaforge.services.storage_service import StorageService, storage_service
from visaforge.utils.exceptions import PersistenceError, ValidationError
from visaforge.utils.helpers import timestamp_millis

logger = logging.getLogger(__name__)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def missing_inputs(config: visa_config.UseCaseConfig, inputs: Optional[Mapping[str, Any]]) -> List[str]:
    inputs = inputs or {}
    return [key for key in config.generation_gates.required_inputs if _is_blank(inputs.get(key))]


def packet_path(user_id: UUID, visa_app_id: UUID, now: Optional[datetime] = None) -> str:
    return f"{user_id}/{visa_app_id}/packet-{timestamp_millis(now)}.pdf"


def generate_packet(
    db: Session,
    user_id: UUID,
    visa_app_id: UUID,
    visa_type: str,
    inputs: Optional[Dict[str, Any]],
    affidavit: Optional[str],
    storage: Optional[StorageService] = None,
) -> str:
    """Build, store and sign a packet. Returns the signed download URL."""
    storage = storage or storage_service

    if not visa_config.is_known_visa_type(visa_type):
        raise ValidationError(f"Unknown visa_type: {visa_type}")
    config = visa_config.get_config(visa_type)

    case_service.get_owned_case(db, user_id, visa_app_id)

    absent_inputs = missing_inputs(config, inputs)
    if absent_inputs:
        raise ValidationError(missing_inputs=absent_inputs)

    with critical_path("load evidence", PersistenceError, prefix="DB error"):
        uploads = {u.evidence_id: u for u in evidence_service.load_uploads(db, user_id, visa_app_id)}
    absent_evidence = evidence_service.missing_evidence(config, uploads)
    if absent_evidence:
        raise ValidationError(missing_evidence=absent_evidence)

    now = datetime.now(timezone.utc)
    path = packet_path(user_id, visa_app_id, now)
    with critical_path("render packet", PersistenceError, prefix="Render failed"):
        pdf_bytes = render_packet(config, inputs or {}, uploads, affidavit, generated_at=now)
    with critical_path("upload packet", PersistenceError, prefix="Upload failed"):
        storage.upload_bytes(settings.PACKETS_BUCKET, path, pdf_bytes, "application/pdf")
    with critical_path("sign packet url", PersistenceError, prefix="Signing failed"):
        url = storage.generate_download_url(settings.PACKETS_BUCKET, path, settings.SIGNED_URL_TTL_SECONDS)

    logger.info("packet generated case=%s path=%s bytes=%d", visa_app_id, path, len(pdf_bytes))

    with best_effort("mark packet tasks done", session=db, visa_app_id=visa_app_id):
        task_service.mark_packet_tasks_done(db, user_id, visa_app_id)
    with best_effort("save packet inputs", session=db, visa_app_id=visa_app_id):
        case_service.save_case_inputs(db, visa_app_id, inputs=inputs, affidavit_draft=affidavit)

    return url
