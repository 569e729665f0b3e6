from __future__ import annotations

from typing import Any, Dict, List, Optional

from app.core.settings import S
from app.core.tables import T
from app.core.time import now_ts
from app.services.store import ddb_get, ddb_put, ddb_query_index, ddb_query_pk, ddb_set

DAY_SECONDS = 24 * 3600

# One row per (subscriber, creator). The creator's subscriber list is the
# creator-index view of the same row, so both sides always agree.


def _pk_subscriber(subscriber_id: str) -> str:
    return f"SUBSCRIBER#{subscriber_id}"


def _sk_creator(creator_id: str) -> str:
    return f"CREATOR#{creator_id}"


def get_entry(subscriber_id: str, creator_id: str) -> Optional[Dict[str, Any]]:
    return ddb_get(T.subscriptions, _pk_subscriber(subscriber_id), _sk_creator(creator_id))


def is_entry_current(entry: Optional[Dict[str, Any]], now: Optional[int] = None) -> bool:
    if not entry or not entry.get("is_active"):
        return False
    ts = now_ts() if now is None else now
    return int(entry.get("subscription_end_date") or 0) > ts


def is_subscribed_to(subscriber_id: Optional[str], creator_id: str, now: Optional[int] = None) -> bool:
    if not subscriber_id:
        return False
    return is_entry_current(get_entry(subscriber_id, creator_id), now)


def activate_subscription(
    subscriber_id: str,
    creator_id: str,
    stripe_subscription_id: Optional[str] = None,
    *,
    days: Optional[int] = None,
) -> Dict[str, Any]:
    ts = now_ts()
    window = S.subscription_window_days if days is None else days
    entry = {
        "pk": _pk_subscriber(subscriber_id),
        "sk": _sk_creator(creator_id),
        "subscriber_id": subscriber_id,
        "creator_id": creator_id,
        "subscribed_at": ts,
        "subscription_end_date": ts + int(window) * DAY_SECONDS,
        "is_active": True,
        "updated_at": ts,
    }
    if stripe_subscription_id:
        entry["stripe_subscription_id"] = stripe_subscription_id
    ddb_put(T.subscriptions, entry)
    return entry


def deactivate_by_stripe_id(stripe_subscription_id: str) -> int:
    entries = ddb_query_index(
        T.subscriptions,
        "stripe-subscription-index",
        "stripe_subscription_id",
        stripe_subscription_id,
    )
    for entry in entries:
        ddb_set(T.subscriptions, entry["pk"], entry["sk"], {"is_active": False, "updated_at": now_ts()})
    return len(entries)


def list_subscribed_to(subscriber_id: str) -> List[Dict[str, Any]]:
    return ddb_query_pk(T.subscriptions, _pk_subscriber(subscriber_id), prefix="CREATOR#")


def list_subscribers(creator_id: str) -> List[Dict[str, Any]]:
    return ddb_query_index(T.subscriptions, "creator-index", "creator_id", creator_id)


def active_subscriber_count(creator_id: str, now: Optional[int] = None) -> int:
    return sum(1 for entry in list_subscribers(creator_id) if is_entry_current(entry, now))


def entry_out(entry: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "subscriberId": entry.get("subscriber_id"),
        "creatorId": entry.get("creator_id"),
        "subscribedAt": entry.get("subscribed_at"),
        "subscriptionEndDate": entry.get("subscription_end_date"),
        "isActive": bool(entry.get("is_active")),
        "isCurrent": is_entry_current(entry),
        "stripeSubscriptionId": entry.get("stripe_subscription_id"),
    }
