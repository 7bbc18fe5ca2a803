"""
Evidence upload store and the gating rules derived from it.

Writes are upserts keyed by (user, case, evidence item). Recording evidence
never fails the caller: persistence problems and the follow-up side effects
(translation task, progress refresh) are logged and swallowed.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
from uuid import UUID

from sqlalchemy.orm import Session

from visaforge.core.config import settings
from visaforge.core.failure_policy import best_effort, critical_path
from visaforge.db.models import EvidenceUpload, VisaApp
from visaforge.services import task_service, visa_config
from visaforge.services.storage_service import StorageService, storage_service
from visaforge.utils.exceptions import PersistenceError
from visaforge.utils.helpers import safe_filename, timestamp_millis

logger = logging.getLogger(__name__)

PROGRESS_SHARE = 80
EVIDENCE_FIELDS = ("files", "notes", "in_english", "complete")

Uploads = Union[Mapping[str, Any], Iterable[Any]]


# ============================================================================
# Pure rules
# ============================================================================

def _index(uploads: Uploads) -> Dict[str, Any]:
    if isinstance(uploads, Mapping):
        return dict(uploads)
    return {_field(u, "evidence_id"): u for u in uploads}


def _field(upload: Any, name: str, default: Any = None) -> Any:
    if isinstance(upload, Mapping):
        return upload.get(name, default)
    return getattr(upload, name, default)


def _is_complete(upload: Any) -> bool:
    return upload is not None and _field(upload, "complete") is True


def compute_progress(config: visa_config.UseCaseConfig, uploads: Uploads) -> int:
    """
    Share of required evidence marked complete, scaled to 80. The remaining
    20 points belong to packet generation and are never produced here.
    """
    required = config.generation_gates.required_evidence_ids
    if not required:
        return 0
    by_id = _index(uploads)
    done = sum(1 for evidence_id in required if _is_complete(by_id.get(evidence_id)))
    return round(PROGRESS_SHARE * done / len(required))


def missing_evidence(config: visa_config.UseCaseConfig, uploads: Uploads) -> List[str]:
    by_id = _index(uploads)
    return [
        evidence_id
        for evidence_id in config.generation_gates.required_evidence_ids
        if not _is_complete(by_id.get(evidence_id))
    ]


def is_generation_ready(config: visa_config.UseCaseConfig, uploads: Uploads) -> bool:
    return not missing_evidence(config, uploads)


# ============================================================================
# Store
# ============================================================================

def get_upload(db: Session, user_id: UUID, visa_app_id: UUID, evidence_id: str) -> Optional[EvidenceUpload]:
    return (
        db.query(EvidenceUpload)
        .filter(
            EvidenceUpload.user_id == user_id,
            EvidenceUpload.visa_app_id == visa_app_id,
            EvidenceUpload.evidence_id == evidence_id,
        )
        .first()
    )


def load_uploads(db: Session, user_id: UUID, visa_app_id: UUID) -> List[EvidenceUpload]:
    return (
        db.query(EvidenceUpload)
        .filter(EvidenceUpload.user_id == user_id, EvidenceUpload.visa_app_id == visa_app_id)
        .order_by(EvidenceUpload.created_at.asc())
        .all()
    )


def refresh_case_progress(db: Session, user_id: UUID, visa_app_id: UUID) -> Optional[int]:
    app = db.query(VisaApp).filter(VisaApp.id == visa_app_id).first()
    if app is None:
        return None
    config = visa_config.get_config(app.visa_type)
    progress = compute_progress(config, load_uploads(db, user_id, visa_app_id))
    if app.progress != progress:
        app.progress = progress
        db.commit()
    return progress


def record_evidence(
    db: Session,
    user_id: UUID,
    visa_app_id: UUID,
    evidence_id: str,
    update: Mapping[str, Any],
    visa_type: Optional[str] = None,
) -> Optional[EvidenceUpload]:
    """
    Upsert the upload row with the fields present in ``update``.

    Returns the row, or None when the write itself failed. A non-English
    answer on an item that needs translation ensures a waiting
    "Order translation" task.
    """
    row: Optional[EvidenceUpload] = None
    with best_effort("record evidence", session=db, visa_app_id=visa_app_id, evidence_id=evidence_id) as outcome:
        row = get_upload(db, user_id, visa_app_id, evidence_id)
        if row is None:
            row = EvidenceUpload(
                user_id=user_id,
                visa_app_id=visa_app_id,
                evidence_id=evidence_id,
                files=[],
                complete=False,
            )
            db.add(row)
        for name in EVIDENCE_FIELDS:
            if name in update:
                value = update[name]
                if name == "files":
                    value = [dict(f) for f in (value or [])]
                elif name == "complete":
                    value = bool(value)
                setattr(row, name, value)
        db.commit()
        db.refresh(row)
    if outcome.failed:
        return None

    if visa_type is None:
        app = db.query(VisaApp.visa_type).filter(VisaApp.id == visa_app_id).first()
        visa_type = app.visa_type if app else None
    item = visa_config.get_config(visa_type).evidence_item(evidence_id)

    if item is not None and item.requires_translation_if_not_english and update.get("in_english") is False:
        with best_effort("ensure translation task", session=db, visa_app_id=visa_app_id, evidence_id=evidence_id):
            task_service.ensure_translation_task(db, user_id, visa_app_id, evidence_id, item.title)

    with best_effort("refresh case progress", session=db, visa_app_id=visa_app_id):
        refresh_case_progress(db, user_id, visa_app_id)

    return row


def attach_evidence_file(
    db: Session,
    user_id: UUID,
    visa_app_id: UUID,
    evidence_id: str,
    filename: str,
    data: bytes,
    content_type: str = "application/octet-stream",
    storage: Optional[StorageService] = None,
) -> Dict[str, str]:
    """Store a file in the private evidence bucket and append it to the upload."""
    storage = storage or storage_service
    path = f"{user_id}/{visa_app_id}/{evidence_id}/{timestamp_millis()}-{safe_filename(filename)}"

    with critical_path("upload evidence", PersistenceError, prefix="Upload failed"):
        storage.upload_bytes(settings.EVIDENCE_BUCKET, path, data, content_type)
        url = storage.generate_download_url(settings.EVIDENCE_BUCKET, path)

    entry = {"name": filename, "path": path, "url": url}
    existing = get_upload(db, user_id, visa_app_id, evidence_id)
    files = list(existing.files or []) if existing is not None else []
    files.append(entry)
    record_evidence(db, user_id, visa_app_id, evidence_id, {"files": files})
    return entry


def _needs_signing(file: Mapping[str, Any]) -> bool:
    url = file.get("url") or ""
    return not url.startswith(("http://", "https://"))


def _resign(
    db: Session,
    rows: List[EvidenceUpload],
    storage: StorageService,
    only_missing: bool,
) -> List[EvidenceUpload]:
    for row in rows:
        changed = False
        files = []
        for f in row.files or []:
            f = dict(f)
            if f.get("path") and (not only_missing or _needs_signing(f)):
                with best_effort("sign evidence url", path=f.get("path")):
                    f["url"] = storage.generate_download_url(settings.EVIDENCE_BUCKET, f["path"])
                    changed = True
            files.append(f)
        if changed:
            row.files = files
            with best_effort("persist re-signed urls", session=db, evidence_id=row.evidence_id):
                db.commit()
    return rows


def list_evidence_uploads(
    db: Session,
    user_id: UUID,
    visa_app_id: UUID,
    storage: Optional[StorageService] = None,
) -> List[EvidenceUpload]:
    """Uploads for a case; files without a usable URL get a fresh signature."""
    return _resign(db, load_uploads(db, user_id, visa_app_id), storage or storage_service, only_missing=True)


def refresh_evidence_signed_urls(
    db: Session,
    user_id: UUID,
    visa_app_id: UUID,
    storage: Optional[StorageService] = None,
) -> List[EvidenceUpload]:
    return _resign(db, load_uploads(db, user_id, visa_app_id), storage or storage_service, only_missing=False)
