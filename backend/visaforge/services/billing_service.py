"""
Stripe billing: checkout sessions and the payment webhook.

The webhook resolves the payer to a user (by email) and a case, then merges
the purchased tier into that case's entitlement ledger.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import stripe
from sqlalchemy import func
from sqlalchemy.orm import Session

from visaforge.core.config import settings
from visaforge.core.failure_policy import critical_path
from visaforge.db.models import User
from visaforge.services import case_service, entitlement_service
from visaforge.utils.exceptions import PersistenceError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

COMPLETED_EVENT = "checkout.session.completed"
SUBSCRIPTION_PRICE_KEYS = ("membership_monthly",)


def ensure_user_by_email(db: Session, email: str) -> User:
    """Case-insensitive lookup; inserts a bare user row on first purchase."""
    email = email.strip()
    user = db.query(User).filter(func.lower(User.email) == email.lower()).first()
    if user is not None:
        return user
    user = User(email=email)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user created from checkout email id=%s", user.id)
    return user


class BillingService:

    def __init__(self, api_key: Optional[str] = None, webhook_secret: Optional[str] = None) -> None:
        self.api_key = api_key if api_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET

    # ------------------------------------------------------------------
    # Webhook
    # ------------------------------------------------------------------

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        if not signature:
            raise ValidationError("Missing stripe-signature")
        if not self.webhook_secret:
            raise UpstreamError("STRIPE_WEBHOOK_SECRET is not configured", status_code=500)

        body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        try:
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                self.webhook_secret,
                settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
            )
        except stripe.SignatureVerificationError as exc:
            logger.warning("stripe signature rejected: %s", exc)
            raise ValidationError(f"Invalid signature: {exc}") from exc

        try:
            event = json.loads(body)
        except ValueError as exc:
            raise ValidationError("Invalid payload") from exc
        if not isinstance(event, dict):
            raise ValidationError("Invalid payload")
        return event

    def customer_email(self, customer: Any) -> str:
        """Email of a Stripe customer reference (id or expanded object)."""
        if not customer:
            return ""
        if isinstance(customer, str):
            try:
                customer = stripe.Customer.retrieve(customer, api_key=self.api_key)
            except stripe.StripeError as exc:
                logger.warning("could not retrieve stripe customer: %s", exc)
                return ""
        if customer.get("deleted"):
            return ""
        return customer.get("email") or ""

    def resolve_email(self, session: Dict[str, Any]) -> str:
        details = session.get("customer_details") or {}
        return (details.get("email") or self.customer_email(session.get("customer")) or "").strip()

    def handle_event(self, db: Session, event: Dict[str, Any]) -> Dict[str, Any]:
        event_type = event.get("type")
        if event_type != COMPLETED_EVENT:
            logger.info("stripe event ignored type=%s", event_type)
            return {"received": True, "ignored": True}

        session = (event.get("data") or {}).get("object") or {}
        email = self.resolve_email(session)
        if not email:
            raise ValidationError("No customer email on session")

        metadata = session.get("metadata") or {}
        purchase = entitlement_service.resolve_purchase(metadata, session.get("id"))

        with critical_path("apply purchase", PersistenceError, prefix="Update failed"):
            user = ensure_user_by_email(db, email)
            if not user.stripe_customer_id and isinstance(session.get("customer"), str):
                user.stripe_customer_id = session["customer"]
                db.commit()
            app = case_service.resolve_case_for_purchase(db, user.id, metadata.get("visaType"))
            entitlement_service.apply_purchase(db, app.id, purchase)

        logger.info("checkout completed session=%s case=%s tier=%s", session.get("id"), app.id, purchase.tier)
        return {"received": True}

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def create_checkout_session(
        self,
        user: User,
        price_key: str,
        origin: str,
        visa_type: Optional[str] = None,
        tier: Optional[str] = None,
    ) -> Dict[str, Any]:
        price_id = settings.price_ids.get(price_key)
        if not price_id:
            raise ValidationError(f"Unknown price: {price_key}")
        if not self.api_key:
            raise UpstreamError("STRIPE_SECRET_KEY is not configured", status_code=500)

        origin = (origin or settings.DASHBOARD_URL).rstrip("/")
        metadata = {"userId": str(user.id)}
        if tier:
            metadata["tier"] = entitlement_service.normalize_tier(tier)
        if visa_type:
            metadata["visaType"] = visa_type

        params: Dict[str, Any] = {
            "mode": "subscription" if price_key in SUBSCRIPTION_PRICE_KEYS else "payment",
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": f"{origin}/dashboard?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{origin}/pricing",
            "metadata": metadata,
        }
        if user.stripe_customer_id:
            params["customer"] = user.stripe_customer_id
        elif user.email:
            params["customer_email"] = user.email

        try:
            session = stripe.checkout.Session.create(api_key=self.api_key, **params)
        except stripe.StripeError as exc:
            logger.error("stripe checkout failed: %s", exc)
            raise UpstreamError(f"Checkout failed: {exc}") from exc
        return {"id": session.get("id"), "url": session.get("url")}


billing_service = BillingService()
