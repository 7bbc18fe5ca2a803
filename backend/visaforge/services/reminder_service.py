"""
Due-date reminder sweep.

One email per user listing their open tasks due inside the window. A failure
for one user is logged and counted; the rest of the batch still goes out.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from visaforge.core.config import settings
from visaforge.core.failure_policy import best_effort
from visaforge.db.models import Task, User
from visaforge.services import task_service
from visaforge.services.email_service import EmailService

logger = logging.getLogger(__name__)

REMINDER_SUBJECT = "VisaForge – items due soon"


def build_reminder_text(tasks: List[Task], dashboard_url: Optional[str] = None) -> str:
    lines = []
    for t in tasks:
        due = f" (due {t.due_date.strftime('%Y-%m-%d')})" if t.due_date else ""
        lines.append(f"• {t.title}{due}")
    return (
        "Hi from VisaForge, upcoming items due:\n\n"
        + "\n".join(lines)
        + f"\n\nOpen your dashboard: {dashboard_url or settings.DASHBOARD_URL}\n\n"
        "You're close. Don't lose your momentum!"
    )


def run_due_reminders(
    db: Session,
    sender: EmailService,
    window_days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    window_days = settings.REMINDER_WINDOW_DAYS if window_days is None else window_days
    tasks = task_service.list_due_tasks(db, window_days=window_days, now=now)

    by_user: "OrderedDict[object, List[Task]]" = OrderedDict()
    for task in tasks:
        by_user.setdefault(task.user_id, []).append(task)

    emails = {
        u.id: u.email
        for u in db.query(User).filter(User.id.in_(list(by_user.keys()))).all()
    } if by_user else {}

    result = {"sent": 0, "skipped": 0, "failed": 0}
    for user_id, user_tasks in by_user.items():
        to = emails.get(user_id)
        if not to:
            result["skipped"] += 1
            continue
        with best_effort("send reminder email", user_id=user_id) as outcome:
            sender.send(
                to,
                REMINDER_SUBJECT,
                build_reminder_text(user_tasks),
                sender=settings.REMINDER_FROM_EMAIL,
            )
        if outcome.failed:
            result["failed"] += 1
        else:
            result["sent"] += 1

    logger.info("reminder sweep done window=%sd %s", window_days, result)
    return result
