"""
Task list for a case: seeding, status changes and the side-effect tasks
created by evidence and packet flows.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from visaforge.db.models import Task, TaskStatus
from visaforge.utils.exceptions import TaskNotFoundError

logger = logging.getLogger(__name__)

SEED_DUE_DAYS = 7
TRANSLATION_TASK_PREFIX = "Order translation: "


def seed_tasks(
    db: Session,
    user_id: UUID,
    visa_app_id: UUID,
    items: Iterable[dict],
    now: Optional[datetime] = None,
) -> List[Task]:
    """
    Insert one ``todo`` task per item, due in 7 days.
    Skipped entirely (nothing merged) when the case already has any task.
    """
    existing = db.query(Task.id).filter(Task.visa_app_id == visa_app_id).first()
    if existing is not None:
        logger.debug("tasks already seeded for %s", visa_app_id)
        return []

    due = (now or datetime.utcnow()) + timedelta(days=SEED_DUE_DAYS)
    tasks = [
        Task(
            user_id=user_id,
            visa_app_id=visa_app_id,
            title=item["title"],
            evidence_id=item.get("evidence_id"),
            status=TaskStatus.todo,
            due_date=due,
        )
        for item in items
    ]
    db.add_all(tasks)
    db.commit()
    logger.info("seeded %d tasks for case %s", len(tasks), visa_app_id)
    return tasks


def list_tasks(db: Session, user_id: UUID, visa_app_id: UUID) -> List[Task]:
    return (
        db.query(Task)
        .filter(Task.user_id == user_id, Task.visa_app_id == visa_app_id)
        .order_by(Task.created_at.asc())
        .all()
    )


def set_task_status(db: Session, task_id: UUID, status: TaskStatus, user_id: Optional[UUID] = None) -> Task:
    """Overwrite the status. Any status may follow any other (reopening included)."""
    status = TaskStatus(status)
    query = db.query(Task).filter(Task.id == task_id)
    if user_id is not None:
        query = query.filter(Task.user_id == user_id)
    task = query.first()
    if task is None:
        raise TaskNotFoundError(str(task_id))
    task.status = status
    db.commit()
    db.refresh(task)
    return task


def ensure_translation_task(
    db: Session,
    user_id: UUID,
    visa_app_id: UUID,
    evidence_id: str,
    evidence_title: str,
) -> Task:
    """At most one translation task per (case, evidence item)."""
    task = (
        db.query(Task)
        .filter(
            Task.visa_app_id == visa_app_id,
            Task.evidence_id == evidence_id,
            Task.title.like(f"{TRANSLATION_TASK_PREFIX}%"),
        )
        .first()
    )
    if task is not None:
        return task

    task = Task(
        user_id=user_id,
        visa_app_id=visa_app_id,
        title=f"{TRANSLATION_TASK_PREFIX}{evidence_title}",
        evidence_id=evidence_id,
        status=TaskStatus.waiting,
    )
    db.add(task)
    db.commit()
    logger.info("translation task created case=%s evidence=%s", visa_app_id, evidence_id)
    return task


def mark_packet_tasks_done(db: Session, user_id: UUID, visa_app_id: UUID) -> int:
    tasks = (
        db.query(Task)
        .filter(
            Task.user_id == user_id,
            Task.visa_app_id == visa_app_id,
            Task.title.ilike("%packet%"),
        )
        .all()
    )
    for task in tasks:
        task.status = TaskStatus.done
    db.commit()
    return len(tasks)


def list_due_tasks(db: Session, window_days: int = 7, now: Optional[datetime] = None) -> List[Task]:
    """Open tasks due on or before ``now + window_days`` (overdue included)."""
    horizon = (now or datetime.utcnow()) + timedelta(days=window_days)
    return (
        db.query(Task)
        .filter(
            Task.status != TaskStatus.done,
            Task.due_date.isnot(None),
            Task.due_date <= horizon,
        )
        .order_by(Task.user_id, Task.due_date.asc())
        .all()
    )
