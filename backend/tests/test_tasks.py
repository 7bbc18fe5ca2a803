import uuid
from datetime import datetime, timedelta

import pytest

from visaforge.db.models import Task, TaskStatus
from visaforge.services import task_service, visa_config
from visaforge.utils.exceptions import TaskNotFoundError

NOW = datetime(2026, 3, 2, 12, 0, 0)


def _seed(db, user, app):
    items = visa_config.default_task_items(visa_config.get_config(app.visa_type))
    return task_service.seed_tasks(db, user.id, app.id, items, now=NOW)


def test_seed_creates_todo_tasks_due_in_a_week(db, user, h1b_case):
    created = _seed(db, user, h1b_case)

    assert len(created) == len(visa_config.get_config("H1B").evidence) + 3
    assert all(t.status == TaskStatus.todo for t in created)
    assert all(t.due_date == NOW + timedelta(days=7) for t in created)


def test_seed_is_a_noop_once_any_task_exists(db, user, h1b_case):
    task_service.ensure_translation_task(db, user.id, h1b_case.id, "degree-eval", "Degree Transcripts")

    assert _seed(db, user, h1b_case) == []
    assert db.query(Task).filter_by(visa_app_id=h1b_case.id).count() == 1


def test_seed_twice_keeps_the_first_list(db, user, h1b_case):
    first = _seed(db, user, h1b_case)
    assert _seed(db, user, h1b_case) == []
    assert db.query(Task).filter_by(visa_app_id=h1b_case.id).count() == len(first)


def test_any_status_can_follow_any_other(db, user, h1b_case):
    task = _seed(db, user, h1b_case)[0]

    for status in (TaskStatus.done, TaskStatus.todo, TaskStatus.waiting, TaskStatus.done, TaskStatus.waiting):
        task = task_service.set_task_status(db, task.id, status, user_id=user.id)
        assert task.status == status


def test_status_change_is_scoped_to_owner(db, user, other_user, h1b_case):
    task = _seed(db, user, h1b_case)[0]

    with pytest.raises(TaskNotFoundError):
        task_service.set_task_status(db, task.id, TaskStatus.done, user_id=other_user.id)
    with pytest.raises(TaskNotFoundError):
        task_service.set_task_status(db, uuid.uuid4(), TaskStatus.done)


def test_mark_packet_tasks_done(db, user, h1b_case):
    _seed(db, user, h1b_case)

    assert task_service.mark_packet_tasks_done(db, user.id, h1b_case.id) == 1
    done = db.query(Task).filter_by(visa_app_id=h1b_case.id, status=TaskStatus.done).all()
    assert [t.title for t in done] == ["Generate USCIS packet"]


def test_list_due_tasks_window(db, user, h1b_case):
    def add(title, due, status=TaskStatus.todo):
        db.add(Task(user_id=user.id, visa_app_id=h1b_case.id, title=title, status=status, due_date=due))

    add("overdue", NOW - timedelta(days=3))
    add("due soon", NOW + timedelta(days=6))
    add("edge of window", NOW + timedelta(days=7))
    add("later", NOW + timedelta(days=8))
    add("finished", NOW + timedelta(days=1), status=TaskStatus.done)
    add("no date", None)
    db.commit()

    due = task_service.list_due_tasks(db, window_days=7, now=NOW)
    assert [t.title for t in due] == ["overdue", "due soon", "edge of window"]
