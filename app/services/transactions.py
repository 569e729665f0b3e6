from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException

from app.core.settings import S
from app.core.tables import T
from app.core.time import now_ts
from app.services.store import ddb_get, ddb_put, ddb_query_index, ddb_set, ddb_set_unless

TRANSACTION_TYPES = ("subscription", "tip", "content-purchase", "refund")
TRANSACTION_STATUSES = ("pending", "completed", "failed", "cancelled", "refunded")


def txn_pk(transaction_id: str) -> str:
    return f"TXN#{transaction_id}"


def compute_fee_split(amount_cents: int, fee_bps: Optional[int] = None) -> Tuple[int, int]:
    bps = S.platform_fee_bps if fee_bps is None else int(fee_bps)
    fee_cents = int(int(amount_cents) * bps / 10000)
    return fee_cents, int(amount_cents) - fee_cents


def get_transaction(transaction_id: str) -> Optional[Dict[str, Any]]:
    return ddb_get(T.transactions, txn_pk(transaction_id), "META")


def get_by_payment_intent(payment_intent_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if not payment_intent_id:
        return None
    items = ddb_query_index(T.transactions, "payment-intent-index", "stripe_payment_intent_id", payment_intent_id)
    return items[0] if items else None


def create_transaction(
    *,
    payer_id: str,
    payee_id: str,
    amount_cents: int,
    txn_type: str,
    status: str = "pending",
    currency: Optional[str] = None,
    stripe_payment_intent_id: Optional[str] = None,
    content_id: Optional[str] = None,
    description: Optional[str] = None,
    metadata: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    if txn_type not in TRANSACTION_TYPES:
        raise HTTPException(400, f"Invalid transaction type: {txn_type}")
    if status not in TRANSACTION_STATUSES:
        raise HTTPException(400, f"Invalid transaction status: {status}")
    if int(amount_cents) < 0:
        raise HTTPException(400, "amount_cents must not be negative")

    existing = get_by_payment_intent(stripe_payment_intent_id)
    if existing:
        return existing

    ts = now_ts()
    fee_cents, net_cents = compute_fee_split(amount_cents)
    transaction_id = f"txn_{uuid.uuid4().hex}"
    item: Dict[str, Any] = {
        "pk": txn_pk(transaction_id),
        "sk": "META",
        "transaction_id": transaction_id,
        "payer_id": payer_id,
        "payee_id": payee_id,
        "amount_cents": int(amount_cents),
        "currency": (currency or S.stripe_default_currency).upper(),
        "type": txn_type,
        "status": status,
        "platform_fee_bps": S.platform_fee_bps,
        "platform_fee_cents": fee_cents,
        "net_amount_cents": net_cents,
        "description": (description or "")[:500],
        "metadata": {k: str(v) for k, v in (metadata or {}).items()},
        "retry_count": 0,
        "completed_at": ts if status == "completed" else None,
        "failed_at": None,
        "refunded_at": None,
        "error_message": None,
        "created_at": ts,
        "updated_at": ts,
    }
    if stripe_payment_intent_id:
        item["stripe_payment_intent_id"] = stripe_payment_intent_id
    if content_id:
        item["content_id"] = content_id
    ddb_put(T.transactions, item)
    return item


def _update(txn: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
    fields["updated_at"] = now_ts()
    ddb_set(T.transactions, txn_pk(txn["transaction_id"]), "META", fields)
    updated = txn.copy()
    updated.update(fields)
    return updated


def mark_completed(
    txn: Dict[str, Any],
    payment_method: Optional[Dict[str, Any]] = None,
    charge_id: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """None when the row was already completed by another writer."""
    ts = now_ts()
    fields: Dict[str, Any] = {"status": "completed", "completed_at": ts, "updated_at": ts}
    if payment_method:
        fields["payment_method"] = payment_method
    if charge_id:
        fields["stripe_charge_id"] = charge_id
    if not ddb_set_unless(T.transactions, txn_pk(txn["transaction_id"]), "META", fields, "status", "completed"):
        return None
    updated = txn.copy()
    updated.update(fields)
    return updated


def mark_failed(txn: Dict[str, Any], error_message: str) -> Dict[str, Any]:
    return _update(txn, {"status": "failed", "failed_at": now_ts(), "error_message": error_message[:500]})


def mark_refunded(txn: Dict[str, Any], stripe_refund_id: Optional[str]) -> Dict[str, Any]:
    return _update(txn, {"status": "refunded", "refunded_at": now_ts(), "stripe_refund_id": stripe_refund_id})


def list_for_payee(user_id: str) -> List[Dict[str, Any]]:
    return ddb_query_index(T.transactions, "payee-index", "payee_id", user_id)


def earnings_summary(user_id: str, start_ts: Optional[int] = None, end_ts: Optional[int] = None) -> Dict[str, Any]:
    completed = []
    for txn in list_for_payee(user_id):
        if txn.get("status") != "completed":
            continue
        done_at = int(txn.get("completed_at") or 0)
        if start_ts is not None and done_at < start_ts:
            continue
        if end_ts is not None and done_at > end_ts:
            continue
        completed.append(txn)

    by_type: Dict[str, Dict[str, int]] = {}
    gross = fee = net = 0
    for txn in completed:
        amount = int(txn.get("amount_cents", 0))
        txn_fee = int(txn.get("platform_fee_cents", 0))
        txn_net = int(txn.get("net_amount_cents", amount - txn_fee))
        gross += amount
        fee += txn_fee
        net += txn_net
        bucket = by_type.setdefault(txn.get("type", "unknown"), {"gross_cents": 0, "net_cents": 0, "count": 0})
        bucket["gross_cents"] += amount
        bucket["net_cents"] += txn_net
        bucket["count"] += 1

    count = len(completed)
    return {
        "creator_id": user_id,
        "period_start": start_ts,
        "period_end": end_ts,
        "currency": S.stripe_default_currency,
        "gross_cents": gross,
        "fee_cents": fee,
        "net_cents": net,
        "count": count,
        "avg_cents": int(gross / count) if count else 0,
        "by_type": by_type,
    }
