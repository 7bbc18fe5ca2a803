"""
Cron-triggered reminder sweep
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from visaforge.api.v1.deps import get_email_sender, verify_cron_token
from visaforge.db.database import get_db
from visaforge.db.schemas import ReminderRunResult
from visaforge.services.email_service import EmailService
from visaforge.services.reminder_service import run_due_reminders

router = APIRouter()


@router.post("/run-due", response_model=ReminderRunResult, dependencies=[Depends(verify_cron_token)])
def run_due(
    window_days: Optional[int] = Query(None, ge=0, le=60),
    db: Session = Depends(get_db),
    sender: EmailService = Depends(get_email_sender),
):
    return ReminderRunResult(**run_due_reminders(db, sender, window_days=window_days))
