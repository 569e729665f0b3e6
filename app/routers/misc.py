from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, HTTPException

from app.core.settings import S

router = APIRouter(tags=["misc"])

@router.get("/api/ping")
async def ping():
    return {"ok": True}

@router.get("/api/billing/config")
def billing_config() -> Dict[str, str]:
    if not S.stripe_publishable_key:
        raise HTTPException(501, "Missing STRIPE_PUBLISHABLE_KEY")
    return {
        "publishableKey": S.stripe_publishable_key,
        "currency": S.stripe_default_currency,
    }
