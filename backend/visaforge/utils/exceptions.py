"""
Custom exception classes
"""
from typing import Iterable, List, Optional

from fastapi import HTTPException


class ValidationError(HTTPException):
    """Raised when required inputs or evidence are missing"""
    def __init__(
        self,
        message: Optional[str] = None,
        missing_inputs: Optional[Iterable[str]] = None,
        missing_evidence: Optional[Iterable[str]] = None,
    ):
        self.missing_inputs: List[str] = list(missing_inputs or [])
        self.missing_evidence: List[str] = list(missing_evidence or [])
        if message is None:
            parts = []
            if self.missing_inputs:
                parts.append(f"Missing required inputs: {', '.join(self.missing_inputs)}")
            if self.missing_evidence:
                parts.append(f"Required evidence incomplete: {', '.join(self.missing_evidence)}")
            message = "; ".join(parts) or "Invalid request"
        super().__init__(status_code=400, detail=message)


class AuthError(HTTPException):
    """Raised when there is no authenticated user"""
    def __init__(self, reason: str = "Not authenticated"):
        super().__init__(
            status_code=401,
            detail=reason,
            headers={"WWW-Authenticate": "Bearer"},
        )


class CaseNotFoundError(HTTPException):
    """Raised when case doesn't exist"""
    def __init__(self, case_id: str):
        super().__init__(
            status_code=404,
            detail=f"Case {case_id} not found"
        )


class UpstreamError(HTTPException):
    """Raised when an AI / payment / translation / email vendor fails"""
    def __init__(self, reason: str = "Upstream service unavailable", status_code: int = 502):
        super().__init__(
            status_code=status_code,
            detail=reason
        )


class PersistenceError(HTTPException):
    """Raised when a database or storage read/write fails"""
    def __init__(self, reason: str = "Unknown error"):
        super().__init__(
            status_code=500,
            detail=reason
        )


class TaskNotFoundError(HTTPException):
    """Raised when task doesn't exist"""
    def __init__(self, task_id: str):
        super().__init__(
            status_code=404,
            detail=f"Task {task_id} not found"
        )
