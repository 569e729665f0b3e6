from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request

from app.core.settings import S
from app.services.billing import construct_event, ensure_stripe_configured
from app.services.reconciler import dispatch_event, mark_event_processed

router = APIRouter(tags=["webhooks"])

@router.post("/api/webhooks/stripe")
async def stripe_webhook(req: Request) -> Dict[str, Any]:
    ensure_stripe_configured()
    if not S.stripe_webhook_secret:
        raise HTTPException(501, "Stripe webhook secret not configured")

    payload = await req.body()
    event = construct_event(payload, req.headers.get("stripe-signature"))

    if not mark_event_processed(event["id"]):
        return {"received": True, "deduped": True}

    dispatch_event(event)
    return {"received": True}
