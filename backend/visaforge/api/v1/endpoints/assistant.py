"""
AI assistant endpoints: advisor chat and affidavit drafting
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from visaforge.api.v1.deps import get_advisor, get_current_user, get_llm
from visaforge.db.database import get_db
from visaforge.db.models import User
from visaforge.db.schemas import (
    AdvisorChatRequest,
    AdvisorChatResponse,
    AffidavitDraftRequest,
    AffidavitDraftResponse,
)
from visaforge.services import case_service, drafting_service
from visaforge.services.advisor_service import AdvisorService
from visaforge.services.llm_service import LLMService

router = APIRouter()


@router.post("/chat", response_model=AdvisorChatResponse)
def advisor_chat(
    body: AdvisorChatRequest,
    current_user: User = Depends(get_current_user),
    advisor: AdvisorService = Depends(get_advisor),
):
    result = advisor.answer([m.model_dump() for m in body.messages])
    return AdvisorChatResponse(**result)


@router.post("/affidavit", response_model=AffidavitDraftResponse)
def draft_affidavit(
    body: AffidavitDraftRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    llm: LLMService = Depends(get_llm),
):
    """Draft affidavit text; stored on the case when ``visa_app_id`` is given."""
    visa_type = body.visa_type
    if body.visa_app_id is not None:
        app = case_service.get_owned_case(db, current_user.id, body.visa_app_id)
        visa_type = visa_type or app.visa_type
    draft = drafting_service.draft_affidavit(
        db,
        visa_type,
        inputs=body.inputs,
        relationship=body.relationship,
        notes=body.notes,
        visa_app_id=body.visa_app_id,
        llm=llm,
    )
    return AffidavitDraftResponse(draft=draft)
