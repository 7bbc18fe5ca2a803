"""
Evidence checklist endpoints
"""
from uuid import UUID

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from visaforge.api.v1.deps import get_current_user, get_storage
from visaforge.db.database import get_db
from visaforge.db.models import User
from visaforge.db.schemas import EvidenceUpdate, EvidenceUploadResponse
from visaforge.services import case_service, evidence_service
from visaforge.services.storage_service import StorageService
from visaforge.utils.exceptions import ValidationError

router = APIRouter()


def _out(rows):
    return [EvidenceUploadResponse.model_validate(r).model_dump(mode="json") for r in rows]


@router.get("/{visa_app_id}")
def list_evidence(
    visa_app_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage),
):
    case_service.get_owned_case(db, current_user.id, visa_app_id)
    return {"data": _out(evidence_service.list_evidence_uploads(db, current_user.id, visa_app_id, storage))}


@router.put("/{visa_app_id}/{evidence_id}")
def update_evidence(
    visa_app_id: UUID,
    evidence_id: str,
    body: EvidenceUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Upsert one checklist item. Storage hiccups are not reported as errors;
    ``saved`` tells the client whether the row was written.
    """
    app = case_service.get_owned_case(db, current_user.id, visa_app_id)
    update = body.model_dump(exclude_unset=True)
    row = evidence_service.record_evidence(
        db, current_user.id, visa_app_id, evidence_id, update, visa_type=app.visa_type
    )
    if row is None:
        return {"data": None, "saved": False}
    return {"data": EvidenceUploadResponse.model_validate(row).model_dump(mode="json"), "saved": True}


@router.post("/{visa_app_id}/{evidence_id}/files")
async def upload_evidence_file(
    visa_app_id: UUID,
    evidence_id: str,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage),
):
    case_service.get_owned_case(db, current_user.id, visa_app_id)
    data = await file.read()
    if not data:
        raise ValidationError("Empty file")
    entry = evidence_service.attach_evidence_file(
        db,
        current_user.id,
        visa_app_id,
        evidence_id,
        file.filename or "file",
        data,
        file.content_type or "application/octet-stream",
        storage=storage,
    )
    return {"data": entry}


@router.post("/{visa_app_id}/refresh-urls")
def refresh_urls(
    visa_app_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    storage: StorageService = Depends(get_storage),
):
    """Re-sign every stored file link of the case."""
    case_service.get_owned_case(db, current_user.id, visa_app_id)
    return {"data": _out(evidence_service.refresh_evidence_signed_urls(db, current_user.id, visa_app_id, storage))}
