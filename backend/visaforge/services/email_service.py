from __future__ import annotations

from typing import Dict, List, Optional, Union

import httpx

from visaforge.core.config import settings
from visaforge.core.logger import logger

RESEND_URL = "https://api.resend.com/emails"


class EmailService:
    """Transactional email with a provider toggle (``dev`` logs, ``resend`` sends)."""

    def __init__(self, provider: Optional[str] = None) -> None:
        self.provider = (provider or settings.EMAIL_PROVIDER or "dev").strip().lower()

    def send(
        self,
        to: Union[str, List[str]],
        subject: str,
        text: str,
        sender: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> Dict[str, str]:
        targets = [to] if isinstance(to, str) else list(to)
        sender = (sender or settings.REMINDER_FROM_EMAIL or "").strip()

        if self.provider == "dev":
            logger.info("[DEV EMAIL] to=%s subject=%s", ",".join(targets), subject)
            return {"provider": "dev", "target": ",".join(targets)}

        if self.provider == "resend":
            api_key = (settings.RESEND_API_KEY or "").strip()
            if not api_key or not sender:
                raise ValueError("Resend email config missing (RESEND_API_KEY/sender)")
            payload = {
                "from": sender,
                "to": targets,
                "subject": subject,
                "text": text,
            }
            if reply_to:
                payload["reply_to"] = reply_to
            headers = {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            }
            with httpx.Client(timeout=20.0) as client:
                resp = client.post(RESEND_URL, json=payload, headers=headers)
                if resp.status_code >= 400:
                    raise ValueError(f"Resend email failed: {resp.status_code} {resp.text[:200]}")
            return {"provider": "resend", "target": ",".join(targets)}

        raise ValueError(f"Unsupported EMAIL_PROVIDER: {self.provider}")


email_service = EmailService()
