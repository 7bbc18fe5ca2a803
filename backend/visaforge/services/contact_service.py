from __future__ import annotations

from typing import Dict, Optional

from visaforge.core.config import settings
from visaforge.services.email_service import EmailService
from visaforge.utils.exceptions import ValidationError

DEFAULT_TOPIC = "general"


def inbox_for(topic: Optional[str]) -> str:
    inboxes = settings.contact_inboxes
    return inboxes.get((topic or "").strip().lower()) or inboxes.get(DEFAULT_TOPIC, "")


def send_contact_message(
    sender: EmailService,
    name: Optional[str],
    email: Optional[str],
    topic: Optional[str],
    message: Optional[str],
) -> Dict[str, str]:
    """Route a contact-form message to the team inbox for its topic."""
    if not (email or "").strip() or not (message or "").strip():
        raise ValidationError("Email and message are required.")

    topic_label = topic or "General"
    text = "\n".join([
        f"Name: {name or '(not provided)'}",
        f"Email: {email}",
        f"Topic: {topic_label}",
        "",
        "Message:",
        message,
    ])
    return sender.send(
        inbox_for(topic),
        f"[Pop Contact] {topic_label} - {name or 'Anonymous'}",
        text,
        sender=settings.CONTACT_FROM_EMAIL,
        reply_to=email,
    )
