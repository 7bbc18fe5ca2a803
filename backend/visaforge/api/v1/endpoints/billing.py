"""
Billing endpoints: Stripe checkout, webhook and entitlement reads
"""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from visaforge.api.v1.deps import get_billing, get_current_user
from visaforge.db.database import get_db
from visaforge.db.models import User
from visaforge.db.schemas import CheckoutRequest, CheckoutResponse
from visaforge.services import case_service, entitlement_service
from visaforge.services.billing_service import BillingService
from visaforge.services.case_meta import load_meta

router = APIRouter()


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="stripe-signature"),
    db: Session = Depends(get_db),
    billing: BillingService = Depends(get_billing),
):
    """
    Stripe webhook. Only checkout completion mutates state; every other
    event type is acknowledged and ignored.
    """
    payload = await request.body()
    event = billing.construct_event(payload, stripe_signature)
    return await run_in_threadpool(billing.handle_event, db, event)


@router.post("/checkout", response_model=CheckoutResponse)
def create_checkout(
    body: CheckoutRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    billing: BillingService = Depends(get_billing),
):
    origin = request.headers.get("origin") or ""
    session = billing.create_checkout_session(
        current_user,
        body.price_key,
        origin,
        visa_type=body.visa_type,
        tier=body.tier,
    )
    return CheckoutResponse(**session)


@router.get("/entitlements")
def get_entitlements(
    visa_app_id: Optional[UUID] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Ledger of the given case, or of the latest case."""
    if visa_app_id is not None:
        app = case_service.get_owned_case(db, current_user.id, visa_app_id)
    else:
        app = case_service.get_latest_case(db, current_user.id)
    if app is None:
        return {"data": None}
    ledger = entitlement_service.ledger_view(load_meta(app.meta))
    return {"data": {"visa_app_id": str(app.id), **ledger}}
