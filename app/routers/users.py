from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from app.auth.deps import get_session, require_creator
from app.services.follows import following_ids
from app.services.ledger import entry_out, list_subscribed_to
from app.services.transactions import earnings_summary
from app.services.users import public_user, require_user

router = APIRouter(prefix="/api/users/me", tags=["users"])

@router.get("")
def get_me(ctx=Depends(get_session)):
    user = require_user(ctx["user_sub"])
    out = public_user(user)
    out["totalSpentCents"] = int(user.get("total_spent_cents", 0))
    out["totalEarningsCents"] = int(user.get("total_earnings_cents", 0))
    return {"user": out}

@router.get("/following")
def my_following(ctx=Depends(get_session)):
    return {"following": following_ids(ctx["user_sub"])}

@router.get("/subscriptions")
def my_subscriptions(ctx=Depends(get_session)):
    entries = list_subscribed_to(ctx["user_sub"])
    entries.sort(key=lambda e: e.get("subscribed_at", 0), reverse=True)
    return {"subscriptions": [entry_out(e) for e in entries]}

@router.get("/earnings")
def my_earnings(start: Optional[int] = None, end: Optional[int] = None, ctx=Depends(require_creator)):
    if start is not None and end is not None and start > end:
        raise HTTPException(400, "start must not be after end")
    return {"earnings": earnings_summary(ctx["user_sub"], start, end)}
