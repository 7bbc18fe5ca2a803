"""
Task list endpoints
"""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from visaforge.api.v1.deps import get_current_user
from visaforge.db.database import get_db
from visaforge.db.models import User
from visaforge.db.schemas import TaskResponse, TaskSeedRequest, TaskStatusUpdate
from visaforge.services import case_service, task_service, visa_config

router = APIRouter()


@router.get("/{visa_app_id}")
def list_tasks(
    visa_app_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    case_service.get_owned_case(db, current_user.id, visa_app_id)
    tasks = task_service.list_tasks(db, current_user.id, visa_app_id)
    return {"data": [TaskResponse.model_validate(t).model_dump(mode="json") for t in tasks]}


@router.post("/seed")
def seed_tasks(
    body: TaskSeedRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Seed the default task list for a case. No-op when tasks already exist."""
    app = case_service.get_owned_case(db, current_user.id, body.visa_app_id)
    items = visa_config.default_task_items(visa_config.get_config(app.visa_type))
    created = task_service.seed_tasks(db, current_user.id, app.id, items)
    return {"data": {"created": len(created)}}


@router.patch("/item/{task_id}")
def update_task_status(
    task_id: UUID,
    body: TaskStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = task_service.set_task_status(db, task_id, body.status, user_id=current_user.id)
    return {"data": TaskResponse.model_validate(task).model_dump(mode="json")}
