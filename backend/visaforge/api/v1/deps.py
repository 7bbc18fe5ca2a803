# visaforge/api/v1/deps.py

from typing import Optional
from uuid import UUID

import jwt
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from visaforge.core.config import settings
from visaforge.db.database import get_db
from visaforge.db.models import User
from visaforge.services.advisor_service import AdvisorService, advisor_service
from visaforge.services.billing_service import BillingService, billing_service
from visaforge.services.email_service import EmailService, email_service
from visaforge.services.llm_service import LLMService, llm_service
from visaforge.services.storage_service import StorageService, storage_service
from visaforge.services.translation_service import TranslationService, translation_service
from visaforge.utils.exceptions import AuthError

security = HTTPBearer(auto_error=False)

# ============================================================================
# JWT Dependency
# ============================================================================

def decode_access_token(token: str) -> dict:
    """
    Decode a Supabase access token (HS256, audience "authenticated").
    """
    if not settings.SUPABASE_JWT_SECRET:
        raise AuthError("Auth is not configured")
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired")
    except jwt.PyJWTError:
        raise AuthError("Invalid token")


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Validate the bearer token and return the matching user row.
    Users authenticated by Supabase are mirrored locally on first sight.
    """
    if credentials is None or not credentials.credentials:
        raise AuthError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    sub = payload.get("sub")
    try:
        user_id = UUID(str(sub))
    except (TypeError, ValueError):
        raise AuthError("Invalid token")

    user = db.get(User, user_id)
    email = payload.get("email")
    if user is None:
        user = User(id=user_id, email=email or None)
        db.add(user)
        db.commit()
        db.refresh(user)
    elif email and not user.email:
        user.email = email
        db.commit()
    return user


# ============================================================================
# Cron token
# ============================================================================

def verify_cron_token(x_cron_token: Optional[str] = Header(default=None)) -> None:
    """Guard for externally triggered jobs."""
    if not settings.CRON_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="CRON_TOKEN is not configured",
        )
    if x_cron_token != settings.CRON_TOKEN:
        raise AuthError("Invalid cron token")


# ============================================================================
# Service providers (overridden in tests)
# ============================================================================

def get_storage() -> StorageService:
    return storage_service


def get_llm() -> LLMService:
    return llm_service


def get_email_sender() -> EmailService:
    return email_service


def get_billing() -> BillingService:
    return billing_service


def get_advisor() -> AdvisorService:
    return advisor_service


def get_translator() -> TranslationService:
    return translation_service
