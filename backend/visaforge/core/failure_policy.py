"""
Failure strategies for call sites that touch the database, storage or a vendor.

    critical_path  - the user's action depends on this step. Any exception is
                     re-raised as a typed HTTP error carrying the underlying
                     message.
    best_effort    - a side effect of the user's action. Exceptions are logged
                     with their traceback and swallowed. When a session is
                     passed it is rolled back, so commit the primary write
                     before entering the block.

Usage:
    with critical_path("upload packet", PersistenceError, prefix="Upload failed"):
        storage.upload_bytes(...)

    with best_effort("ensure translation task", session=db, visa_app_id=app_id):
        ensure_translation_task(...)
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Type

from fastapi import HTTPException
from sqlalchemy.orm import Session

from visaforge.utils.exceptions import PersistenceError

logger = logging.getLogger(__name__)


@contextmanager
def critical_path(
    action: str,
    error_cls: Type[HTTPException] = PersistenceError,
    prefix: Optional[str] = None,
) -> Iterator[None]:
    try:
        yield
    except HTTPException:
        raise
    except Exception as exc:
        message = f"{prefix or action}: {exc}"
        logger.error("critical step failed: %s", message)
        raise error_cls(message) from exc


class BestEffortOutcome:
    def __init__(self) -> None:
        self.failed = False
        self.error: Optional[BaseException] = None


@contextmanager
def best_effort(action: str, session: Optional[Session] = None, **context) -> Iterator[BestEffortOutcome]:
    outcome = BestEffortOutcome()
    try:
        yield outcome
    except Exception as exc:
        outcome.failed = True
        outcome.error = exc
        if session is not None:
            session.rollback()
        logger.warning("best-effort step failed: %s %s", action, context or "", exc_info=True)
