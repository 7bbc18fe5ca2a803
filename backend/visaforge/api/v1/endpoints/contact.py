"""
Public contact form
"""
from fastapi import APIRouter, Depends

from visaforge.api.v1.deps import get_email_sender
from visaforge.core.failure_policy import critical_path
from visaforge.db.schemas import ContactRequest
from visaforge.services.contact_service import send_contact_message
from visaforge.services.email_service import EmailService
from visaforge.utils.exceptions import UpstreamError

router = APIRouter()


@router.post("")
def submit_contact(
    body: ContactRequest,
    sender: EmailService = Depends(get_email_sender),
):
    with critical_path("send contact email", UpstreamError, prefix="Failed to send email"):
        send_contact_message(sender, body.name, body.email, body.topic, body.message)
    return {"ok": True}
