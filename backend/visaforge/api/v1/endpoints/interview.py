"""
Mock interview feedback endpoint (JSON or multipart with audio)
"""
import json
from typing import Any, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile
from sqlalchemy.orm import Session

from visaforge.api.v1.deps import get_current_user, get_llm
from visaforge.db.database import get_db
from visaforge.db.models import User
from visaforge.db.schemas import InterviewFeedbackRequest, InterviewFeedbackResponse
from visaforge.services import case_service, interview_service
from visaforge.services.llm_service import LLMService
from visaforge.utils.exceptions import ValidationError

router = APIRouter()


def _answers_from_form(raw: Any) -> Optional[List[str]]:
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        parsed = json.loads(raw)
    except ValueError:
        return None
    return [str(a) for a in parsed] if isinstance(parsed, list) else None


def _uuid_or_none(raw: Any) -> Optional[UUID]:
    if raw in (None, ""):
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        raise ValidationError("visa_app_id must be a UUID")


@router.post("/feedback", response_model=InterviewFeedbackResponse)
async def interview_feedback(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    llm: LLMService = Depends(get_llm),
):
    audio: Optional[bytes] = None
    audio_name: Optional[str] = None

    if request.headers.get("content-type", "").startswith("multipart/form-data"):
        form = await request.form()
        upload = form.get("audio")
        if isinstance(upload, UploadFile):
            audio = await upload.read()
            audio_name = upload.filename
        transcript = form.get("transcript") if isinstance(form.get("transcript"), str) else None
        answers = _answers_from_form(form.get("answers"))
        context = form.get("promptContext") if isinstance(form.get("promptContext"), str) else None
        visa_app_id = _uuid_or_none(form.get("visa_app_id"))
    else:
        try:
            raw = await request.json()
        except ValueError:
            raw = {}
        try:
            body = InterviewFeedbackRequest.model_validate(raw if isinstance(raw, dict) else {})
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid request: {exc.errors()[0].get('msg')}")
        transcript, answers, context, visa_app_id = (
            body.transcript, body.answers, body.promptContext, body.visa_app_id
        )

    if visa_app_id is not None:
        case_service.get_owned_case(db, current_user.id, visa_app_id)

    result = await run_in_threadpool(
        interview_service.generate_feedback,
        db,
        transcript=transcript,
        answers=answers,
        prompt_context=context,
        visa_app_id=visa_app_id,
        audio=audio,
        audio_filename=audio_name,
        llm=llm,
    )
    return InterviewFeedbackResponse(**result)
