from __future__ import annotations

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret-with-enough-length-0123456789"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["CRON_TOKEN"] = "cron-test-token"
os.environ["EMAIL_PROVIDER"] = "dev"
os.environ["STRIPE_PRICE_CASE_COMPLETE"] = "price_complete_test"
os.environ["STRIPE_PRICE_MEMBERSHIP_MONTHLY"] = "price_membership_test"
os.environ["REMINDERS_ENABLE_SCHEDULED_SWEEP"] = "false"
os.environ["DB_AUTO_CREATE"] = "false"

import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from visaforge.api.v1 import deps
from visaforge.core.config import settings
from visaforge.db.database import Base, get_db, init_db
from visaforge.db.models import EvidenceUpload, User
from visaforge.main import app as fastapi_app
from visaforge.services import case_service
from visaforge.services.advisor_service import AdvisorService
from visaforge.services.billing_service import BillingService
from visaforge.services.grounding import GroundingFetcher, MemoryDailyCounter, MemoryTTLCache

H1B_INPUTS = {
    "employerName": "Acme Robotics",
    "socCode": "15-1252",
    "wageLevel": "II",
    "petitionerName": "Acme Robotics Inc.",
    "beneficiaryName": "Ana Pereira",
}
H1B_REQUIRED = ("lca", "soc-wage", "degree-eval", "employer-letter")


class FakeStorage:
    def __init__(self, fail_uploads: bool = False):
        self.fail_uploads = fail_uploads
        self.puts = []
        self.signed = 0

    def upload_bytes(self, bucket, key, data, content_type="application/octet-stream"):
        if self.fail_uploads:
            raise RuntimeError("bucket unavailable")
        self.puts.append({"bucket": bucket, "key": key, "data": data, "content_type": content_type})

    def generate_download_url(self, bucket, key, expires_in=None):
        self.signed += 1
        return f"https://storage.test/{bucket}/{key}?sig={self.signed}"


class FakeLLM:
    def __init__(self, reply: str = "Overall score: 82/100"):
        self.reply = reply
        self.calls = []
        self.transcribed = []

    def complete(self, messages, temperature=None, max_tokens=None):
        self.calls.append({"messages": messages, "temperature": temperature})
        return self.reply

    def transcribe(self, filename, data):
        self.transcribed.append((filename, data))
        return "I met my spouse in Lisbon in 2021."


class FakeSender:
    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.sent = []

    def send(self, to, subject, text, sender=None, reply_to=None):
        if to in self.fail_for:
            raise RuntimeError(f"mailbox rejected {to}")
        message = {"to": to, "subject": subject, "text": text, "from": sender, "reply_to": reply_to}
        self.sent.append(message)
        return {"id": f"msg-{len(self.sent)}"}


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def user(db):
    user = User(email="applicant@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_user(db):
    user = User(email="someone.else@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def h1b_case(db, user):
    return case_service.create_case(db, user.id, "H1B")


@pytest.fixture
def complete_h1b_evidence(db, user, h1b_case):
    def _complete(evidence_ids=H1B_REQUIRED):
        for evidence_id in evidence_ids:
            db.add(EvidenceUpload(
                user_id=user.id,
                visa_app_id=h1b_case.id,
                evidence_id=evidence_id,
                files=[{"name": f"{evidence_id}.pdf", "path": f"x/{evidence_id}.pdf", "url": ""}],
                complete=True,
            ))
        db.commit()

    return _complete


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def billing():
    return BillingService(api_key="sk_test_dummy", webhook_secret=settings.STRIPE_WEBHOOK_SECRET)


@pytest.fixture
def client(db, storage, llm, sender, billing):
    def _get_db():
        yield db

    advisor = AdvisorService(
        llm=llm,
        fetcher=GroundingFetcher(MemoryTTLCache(), MemoryDailyCounter(), allowed_domains=["uscis.gov"]),
    )
    fastapi_app.dependency_overrides[get_db] = _get_db
    fastapi_app.dependency_overrides[deps.get_storage] = lambda: storage
    fastapi_app.dependency_overrides[deps.get_llm] = lambda: llm
    fastapi_app.dependency_overrides[deps.get_email_sender] = lambda: sender
    fastapi_app.dependency_overrides[deps.get_billing] = lambda: billing
    fastapi_app.dependency_overrides[deps.get_advisor] = lambda: advisor
    yield TestClient(fastapi_app)
    fastapi_app.dependency_overrides.clear()


def make_token(user_id, email=None, expires_in=3600):
    now = int(time.time())
    claims = {
        "sub": str(user_id),
        "aud": settings.JWT_AUDIENCE,
        "iat": now,
        "exp": now + expires_in,
    }
    if email:
        claims["email"] = email
    return jwt.encode(claims, settings.SUPABASE_JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {make_token(user.id, user.email)}"}


def stripe_signature(payload: str, secret: str = None, timestamp: int = None) -> str:
    timestamp = timestamp or int(time.time())
    secret = secret or settings.STRIPE_WEBHOOK_SECRET
    signed = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signed}"


def checkout_completed_event(email="applicant@example.com", metadata=None, session_id="cs_test_123"):
    return json.dumps({
        "id": "evt_test_1",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": session_id,
                "customer": None,
                "customer_details": {"email": email} if email else {},
                "metadata": metadata or {},
            }
        },
    })
