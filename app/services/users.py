from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from fastapi import HTTPException

from app.core.crypto import hash_password
from app.core.tables import T
from app.core.time import now_ts
from app.services.store import apply_counter_delta, ddb_del, ddb_get, ddb_put, ddb_put_new, ddb_query_index, ddb_set

ROLES = ("fan", "creator")

PUBLIC_FIELDS = {
    "user_id": "id",
    "name": "name",
    "email": "email",
    "image": "image",
    "role": "role",
    "bio": "bio",
    "cover_image": "coverImage",
    "subscription_price_cents": "subscriptionPriceCents",
    "is_verified": "isVerified",
    "created_at": "createdAt",
}


def user_pk(user_id: str) -> str:
    return f"USER#{user_id}"


def email_pk(email: str) -> str:
    return f"EMAIL#{email}"


def new_user_id() -> str:
    return f"usr_{uuid.uuid4().hex}"


def get_user(user_id: str) -> Optional[Dict[str, Any]]:
    if not user_id:
        return None
    return ddb_get(T.users, user_pk(user_id), "PROFILE")


def require_user(user_id: str, detail: str = "User not found") -> Dict[str, Any]:
    user = get_user(user_id)
    if not user:
        raise HTTPException(404, detail)
    return user


def get_user_by_email(email: str) -> Optional[Dict[str, Any]]:
    claim = ddb_get(T.users, email_pk(email), "EMAIL")
    if not claim:
        return None
    return get_user(claim["user_id"])


def create_user(*, name: str, email: str, password: str, role: str, provider: str = "credentials") -> Dict[str, Any]:
    user_id = new_user_id()
    ts = now_ts()
    claimed = ddb_put_new(T.users, {"pk": email_pk(email), "sk": "EMAIL", "user_id": user_id, "created_at": ts})
    if not claimed:
        raise HTTPException(409, "User already exists with this email")

    user = {
        "pk": user_pk(user_id),
        "sk": "PROFILE",
        "user_id": user_id,
        "name": name,
        "email": email,
        "password_hash": hash_password(password),
        "role": role if role in ROLES else "fan",
        "provider": provider,
        "image": None,
        "bio": "",
        "cover_image": None,
        "subscription_price_cents": 0,
        "is_verified": False,
        "total_earnings_cents": 0,
        "total_spent_cents": 0,
        "is_profile_public": True,
        "email_notifications": True,
        "created_at": ts,
        "updated_at": ts,
    }
    try:
        ddb_put(T.users, user)
    except HTTPException:
        ddb_del(T.users, email_pk(email), "EMAIL")
        raise
    return user


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {out: user.get(field) for field, out in PUBLIC_FIELDS.items()}


def list_creators() -> List[Dict[str, Any]]:
    return ddb_query_index(T.users, "role-index", "role", "creator")


def find_user_by_stripe_customer(customer_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if not customer_id:
        return None
    items = ddb_query_index(T.users, "stripe-customer-index", "stripe_customer_id", customer_id)
    return items[0] if items else None


def add_user_totals(user_id: str, *, spent_cents: int = 0, earned_cents: int = 0) -> None:
    apply_counter_delta(
        T.users,
        user_pk(user_id),
        "PROFILE",
        {"total_spent_cents": int(spent_cents), "total_earnings_cents": int(earned_cents)},
    )


def set_stripe_customer(user_id: str, customer_id: str) -> None:
    ddb_set(T.users, user_pk(user_id), "PROFILE", {"stripe_customer_id": customer_id, "updated_at": now_ts()})


def set_stripe_price(user_id: str, price_id: str, price_cents: int) -> None:
    ddb_set(
        T.users,
        user_pk(user_id),
        "PROFILE",
        {"stripe_price_id": price_id, "subscription_price_cents": int(price_cents), "updated_at": now_ts()},
    )
