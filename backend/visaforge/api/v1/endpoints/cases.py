"""
Case management endpoints
"""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from visaforge.api.v1.deps import get_current_user
from visaforge.core.failure_policy import best_effort
from visaforge.db.database import get_db
from visaforge.db.models import User, VisaApp
from visaforge.db.schemas import CaseInputsUpdate, CaseSummary, QuizResult, QuizSubmission, VisaAppResponse
from visaforge.services import case_service, evidence_service, task_service, visa_config
from visaforge.utils.exceptions import PersistenceError

router = APIRouter()


def _summary(db: Session, user: User, app: VisaApp) -> CaseSummary:
    config = visa_config.get_config(app.visa_type)
    uploads = evidence_service.load_uploads(db, user.id, app.id)
    return CaseSummary(
        case=VisaAppResponse.model_validate(app),
        config=visa_config.config_to_api(config),
        progress=evidence_service.compute_progress(config, uploads),
        generation_ready=evidence_service.is_generation_ready(config, uploads),
    )


# ============================================================================
# Quiz
# ============================================================================

@router.post("/quiz")
def submit_quiz(
    body: QuizSubmission,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Score the eligibility quiz and open (or reuse) the matching case.
    """
    result = case_service.complete_quiz(db, current_user.id, body.visa_type, body.answers.values())
    visa_app_id = result.pop("visa_app_id")

    with best_effort("seed tasks after quiz", session=db, visa_app_id=visa_app_id):
        config = visa_config.get_config(result["visa_type"])
        task_service.seed_tasks(db, current_user.id, visa_app_id, visa_config.default_task_items(config))

    return {"data": {"visa_app_id": str(visa_app_id), **QuizResult(**result).model_dump()}}


# ============================================================================
# Config
# ============================================================================

@router.get("/config/{visa_type}")
def get_visa_config(visa_type: str):
    """Checklist, forms and generation gate for a visa type."""
    return {"data": visa_config.config_to_api(visa_config.get_config(visa_type))}


# ============================================================================
# Case reads / writes
# ============================================================================

@router.get("/latest")
def get_latest_case(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    app = case_service.get_latest_case(db, current_user.id)
    if app is None:
        return {"data": None}
    return {"data": _summary(db, current_user, app).model_dump(mode="json")}


@router.get("/{visa_app_id}")
def get_case(
    visa_app_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    app = case_service.get_owned_case(db, current_user.id, visa_app_id)
    return {"data": _summary(db, current_user, app).model_dump(mode="json")}


@router.patch("/{visa_app_id}/inputs")
def save_inputs(
    visa_app_id: UUID,
    body: CaseInputsUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Merge form inputs and/or the affidavit draft into the case."""
    case_service.get_owned_case(db, current_user.id, visa_app_id)
    app = case_service.save_case_inputs(db, visa_app_id, inputs=body.inputs, affidavit_draft=body.affidavit_draft)
    if app is None:
        raise PersistenceError("Case could not be saved")
    return {"data": VisaAppResponse.model_validate(app).model_dump(mode="json")}
