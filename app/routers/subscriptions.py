from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from app.auth.deps import get_session
from app.core.settings import S
from app.models import SubscriptionCreateReq
from app.services.audit import audit_event
from app.services.billing import (
    cancel_subscription,
    create_customer,
    create_monthly_price,
    create_subscription,
    ensure_stripe_configured,
)
from app.services.ledger import entry_out, get_entry, is_subscribed_to
from app.services.transactions import create_transaction
from app.services.users import get_user, require_user, set_stripe_customer, set_stripe_price

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


def _payment_intent(subscription: Dict[str, Any]) -> Dict[str, Optional[str]]:
    invoice = subscription.get("latest_invoice") or {}
    pi = invoice.get("payment_intent") if isinstance(invoice, dict) else None
    if isinstance(pi, dict):
        return {"id": pi.get("id"), "client_secret": pi.get("client_secret")}
    return {"id": pi, "client_secret": None}


@router.post("/create")
async def create_paid_subscription(req: Request, body: SubscriptionCreateReq, ctx=Depends(get_session)):
    ensure_stripe_configured()
    subscriber_id = ctx["user_sub"]
    if body.price_cents < S.min_subscription_price_cents:
        raise HTTPException(400, f"priceCents must be at least {S.min_subscription_price_cents}")
    if body.creator_id == subscriber_id:
        raise HTTPException(400, "You cannot subscribe to yourself")

    creator = get_user(body.creator_id)
    if not creator or creator.get("role") != "creator":
        raise HTTPException(404, "Creator not found")
    if is_subscribed_to(subscriber_id, body.creator_id):
        raise HTTPException(400, "Already subscribed to this creator")
    subscriber = require_user(subscriber_id)

    customer_id = subscriber.get("stripe_customer_id")
    if not customer_id:
        customer = create_customer(subscriber["email"], subscriber.get("name", ""), {"userId": subscriber_id})
        customer_id = customer["id"]
        set_stripe_customer(subscriber_id, customer_id)

    price_id = creator.get("stripe_price_id")
    if not price_id or int(creator.get("subscription_price_cents") or 0) != body.price_cents:
        price_id = create_monthly_price(body.price_cents)["id"]
        set_stripe_price(body.creator_id, price_id, body.price_cents)

    subscription = create_subscription(
        customer_id,
        price_id,
        {"creatorId": body.creator_id, "subscriberId": subscriber_id},
    )
    pi = _payment_intent(subscription)
    txn = create_transaction(
        payer_id=subscriber_id,
        payee_id=body.creator_id,
        amount_cents=body.price_cents,
        txn_type="subscription",
        stripe_payment_intent_id=pi["id"],
        description=f"Monthly subscription to {creator.get('name', body.creator_id)}",
        metadata={"stripeSubscriptionId": subscription["id"]},
    )

    audit_event(
        "subscription_create",
        subscriber_id,
        req,
        creator_id=body.creator_id,
        stripe_subscription_id=subscription["id"],
        price_cents=body.price_cents,
    )
    return {
        "subscriptionId": subscription["id"],
        "clientSecret": pi["client_secret"],
        "priceId": price_id,
        "customerId": customer_id,
        "transactionId": txn["transaction_id"],
    }


@router.post("/{creator_id}/cancel")
async def cancel_paid_subscription(req: Request, creator_id: str, ctx=Depends(get_session)):
    ensure_stripe_configured()
    entry = get_entry(ctx["user_sub"], creator_id)
    if not entry or not entry.get("stripe_subscription_id"):
        raise HTTPException(404, "No paid subscription to this creator")

    cancel_subscription(entry["stripe_subscription_id"])
    audit_event(
        "subscription_cancel",
        ctx["user_sub"],
        req,
        creator_id=creator_id,
        stripe_subscription_id=entry["stripe_subscription_id"],
    )
    return {
        "message": "Subscription will cancel at the end of the current period",
        "cancelAtPeriodEnd": True,
        "subscription": entry_out(entry),
    }
