"""
Pydantic validation schemas
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from visaforge.db.models import TaskStatus

# ============================================================================
# Case Schemas
# ============================================================================

class QuizSubmission(BaseModel):
    visa_type: str = Field(..., min_length=1)
    answers: Dict[str, str] = Field(default_factory=dict)


class QuizResult(BaseModel):
    score: int
    eligible: bool
    status: str
    cost_estimate: int
    visa_type: str


class CaseInputsUpdate(BaseModel):
    inputs: Optional[Dict[str, Any]] = None
    affidavit_draft: Optional[str] = None


class VisaAppResponse(BaseModel):
    id: UUID
    visa_type: str
    score: int
    status: str
    progress: int
    cost_estimate: float
    policy_notes: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CaseSummary(BaseModel):
    case: VisaAppResponse
    config: Dict[str, Any]
    progress: int
    generation_ready: bool


# ============================================================================
# Evidence Schemas
# ============================================================================

class EvidenceFile(BaseModel):
    name: str
    path: str
    url: Optional[str] = None


class EvidenceUpdate(BaseModel):
    """Partial update; only fields that are set are written."""
    notes: Optional[str] = None
    in_english: Optional[bool] = None
    complete: Optional[bool] = None
    files: Optional[List[EvidenceFile]] = None


class EvidenceUploadResponse(BaseModel):
    id: UUID
    visa_app_id: UUID
    evidence_id: str
    files: List[EvidenceFile] = Field(default_factory=list)
    notes: Optional[str] = None
    in_english: Optional[bool] = None
    complete: bool
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Task Schemas
# ============================================================================

class TaskResponse(BaseModel):
    id: UUID
    visa_app_id: UUID
    title: str
    evidence_id: Optional[str] = None
    status: TaskStatus
    due_date: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


class TaskSeedRequest(BaseModel):
    visa_app_id: UUID


# ============================================================================
# Packet Schemas
# ============================================================================

class PacketGenerateRequest(BaseModel):
    visa_app_id: UUID
    visa_type: str
    inputs: Dict[str, Any] = Field(default_factory=dict)
    affidavit: str = ""


class PacketGenerateResponse(BaseModel):
    url: str


# ============================================================================
# Billing Schemas
# ============================================================================

class CheckoutRequest(BaseModel):
    price_key: str
    visa_type: Optional[str] = None
    tier: Optional[str] = None


class CheckoutResponse(BaseModel):
    id: str
    url: Optional[str] = None


# ============================================================================
# AI Schemas
# ============================================================================

class InterviewFeedbackRequest(BaseModel):
    transcript: Optional[str] = None
    answers: Optional[List[str]] = None
    promptContext: Optional[str] = None
    visa_app_id: Optional[UUID] = None


class InterviewFeedbackResponse(BaseModel):
    feedback: str
    usedTranscript: bool
    usedAnswers: bool
    creditsRemaining: Optional[int] = None


class AffidavitDraftRequest(BaseModel):
    visa_app_id: Optional[UUID] = None
    visa_type: Optional[str] = None
    inputs: Dict[str, Any] = Field(default_factory=dict)
    relationship: Optional[str] = None
    notes: Optional[str] = None


class AffidavitDraftResponse(BaseModel):
    draft: str


class ChatMessage(BaseModel):
    role: str = Field(..., pattern="^(user|assistant)$")
    content: str


class AdvisorChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., min_length=1)
    visa_type: Optional[str] = None


class GroundingSource(BaseModel):
    url: str
    title: Optional[str] = None


class AdvisorChatResponse(BaseModel):
    reply: str
    sources: List[GroundingSource] = Field(default_factory=list)


# ============================================================================
# Misc Schemas
# ============================================================================

class ContactRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    topic: str = "general"
    message: Optional[str] = None


class ReminderRunResult(BaseModel):
    sent: int
    skipped: int
    failed: int
