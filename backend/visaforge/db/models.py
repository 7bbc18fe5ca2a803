"""
SQLAlchemy ORM Models
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from visaforge.db.database import Base

# JSONB on PostgreSQL, generic JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# ============================================================================
# Enums
# ============================================================================

class TaskStatus(str, enum.Enum):
    """Task status"""
    todo = "todo"
    waiting = "waiting"
    done = "done"


# ============================================================================
# Models
# ============================================================================

class User(Base):
    """Applicant account (mirrors the Supabase auth user)"""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=True, index=True)
    stripe_customer_id = Column(String(255), nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    visa_apps = relationship("VisaApp", back_populates="user", cascade="all, delete-orphan")
    tasks = relationship("Task", back_populates="user", cascade="all, delete-orphan")


class VisaApp(Base):
    """
    One immigration case. The most recently created row per user is the one
    every flow works against.

    ``meta`` holds the serialized CaseMeta (inputs, affidavit draft, plan tier,
    entitlement ledger, audit log). ``meta_version`` is bumped on every UPDATE
    so concurrent read-modify-write cycles surface as StaleDataError.
    """
    __tablename__ = "visa_apps"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    visa_type = Column(String(64), nullable=False)
    score = Column(Integer, nullable=False, default=0)
    status = Column(String(64), nullable=False, default="In Progress")
    progress = Column(Integer, nullable=False, default=0)
    cost_estimate = Column(Numeric(10, 2), nullable=False, default=0)
    policy_notes = Column(Text, nullable=True)
    meta = Column(JSONType, nullable=True)
    meta_version = Column(Integer, nullable=False)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="visa_apps")
    evidence_uploads = relationship("EvidenceUpload", back_populates="visa_app", cascade="all, delete-orphan")
    tasks = relationship("Task", back_populates="visa_app", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": meta_version}

    __table_args__ = (
        Index("ix_visa_apps_user_created", "user_id", "created_at"),
    )


class EvidenceUpload(Base):
    """
    The user's submission against one checklist item of one case.
    Unique on (user_id, visa_app_id, evidence_id); writes are upserts.
    """
    __tablename__ = "evidence_uploads"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    visa_app_id = Column(Uuid, ForeignKey("visa_apps.id", ondelete="CASCADE"), nullable=False, index=True)
    evidence_id = Column(String(100), nullable=False)

    # [{"name": ..., "path": ..., "url": ...}, ...]
    files = Column(JSONType, nullable=False, default=list)
    notes = Column(Text, nullable=True)
    in_english = Column(Boolean, nullable=True)
    complete = Column(Boolean, nullable=False, default=False)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    visa_app = relationship("VisaApp", back_populates="evidence_uploads")

    __table_args__ = (
        UniqueConstraint("user_id", "visa_app_id", "evidence_id", name="uq_evidence_uploads_user_app_evidence"),
    )


class Task(Base):
    """Action item for a case (upload, translate, review, generate)"""
    __tablename__ = "tasks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    visa_app_id = Column(Uuid, ForeignKey("visa_apps.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    evidence_id = Column(String(100), nullable=True)
    status = Column(SQLEnum(TaskStatus), nullable=False, default=TaskStatus.todo)
    due_date = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="tasks")
    visa_app = relationship("VisaApp", back_populates="tasks")

    __table_args__ = (
        Index("ix_tasks_user_app", "user_id", "visa_app_id"),
        Index("ix_tasks_status_due", "status", "due_date"),
    )


class GroundingCacheEntry(Base):
    """
    Successful reference-page fetches, keyed by URL, shared by every API
    instance. Rows past ``expires_at`` are treated as misses.
    """
    __tablename__ = "grounding_cache"

    cache_key = Column(String(1024), primary_key=True)
    value = Column(JSONType, nullable=False)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    expires_at = Column(TIMESTAMP, nullable=False, index=True)


class DailyUsageCounter(Base):
    """Per-UTC-day call counters (one row per counter name and day)."""
    __tablename__ = "daily_usage_counters"

    name = Column(String(100), primary_key=True)
    day = Column(Date, primary_key=True)
    count = Column(Integer, nullable=False, default=0)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
