from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from app.core.settings import S
from app.core.tables import T
from app.core.time import now_ts
from app.metrics import record_subscription_activation, record_webhook_event
from app.services.audit import audit_event
from app.services.ledger import activate_subscription, deactivate_by_stripe_id
from app.services.store import ddb_put_new
from app.services.transactions import get_by_payment_intent, mark_completed, mark_failed, mark_refunded
from app.services.users import add_user_totals, find_user_by_stripe_customer

logger = logging.getLogger("webhooks")

DEACTIVATING_STATUSES = ("past_due", "canceled", "unpaid")


def mark_event_processed(event_id: str) -> bool:
    ts = now_ts()
    return ddb_put_new(T.billing_events, {
        "pk": "STRIPE_EVENT",
        "sk": event_id,
        "ts": ts,
        S.ddb_ttl_attr: ts + S.webhook_event_ttl_seconds,
    })


def _obj_id(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        return value.get("id")
    return value


def _first_charge(pi: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    charges = (pi.get("charges") or {}).get("data") or []
    if charges:
        return charges[0]
    latest = pi.get("latest_charge")
    return latest if isinstance(latest, dict) else None


def _card_details(charge: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not charge:
        return None
    details = charge.get("payment_method_details") or {}
    card = details.get("card") or {}
    return {
        "type": details.get("type", "card"),
        "last4": card.get("last4"),
        "brand": card.get("brand"),
    }


def complete_transaction(
    txn: Dict[str, Any],
    payment_method: Optional[Dict[str, Any]] = None,
    charge_id: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Move a Transaction to completed and credit both parties.

    Totals move only for the writer whose conditional update wins, so when
    invoice.payment_succeeded and payment_intent.succeeded race on the same
    pending row only one of them credits. Returns None for the loser.
    """
    if txn.get("status") == "completed":
        return None
    done = mark_completed(txn, payment_method, charge_id)
    if done is None:
        logger.info("transaction %s already completed", txn["transaction_id"])
        return None
    add_user_totals(txn["payer_id"], spent_cents=int(txn.get("amount_cents", 0)))
    add_user_totals(txn["payee_id"], earned_cents=int(txn.get("net_amount_cents", 0)))
    audit_event(
        "transaction_completed",
        txn["payer_id"],
        transaction_id=txn["transaction_id"],
        payee_id=txn["payee_id"],
        amount_cents=txn.get("amount_cents"),
        type=txn.get("type"),
    )
    return done


def on_invoice_payment_succeeded(invoice: Dict[str, Any]) -> None:
    subscriber = find_user_by_stripe_customer(_obj_id(invoice.get("customer")))
    if not subscriber:
        logger.warning("invoice %s: no user for customer %s", invoice.get("id"), invoice.get("customer"))
        return
    txn = get_by_payment_intent(_obj_id(invoice.get("payment_intent")))
    if not txn:
        logger.warning("invoice %s: no transaction for payment intent", invoice.get("id"))
        return

    complete_transaction(txn)
    if txn.get("type") == "subscription":
        activate_subscription(subscriber["user_id"], txn["payee_id"], _obj_id(invoice.get("subscription")))
        record_subscription_activation("invoice")


def on_invoice_payment_failed(invoice: Dict[str, Any]) -> None:
    txn = get_by_payment_intent(_obj_id(invoice.get("payment_intent")))
    if txn:
        mark_failed(txn, "Invoice payment failed")


def _activate_from_metadata(sub: Dict[str, Any], source: str) -> None:
    md = sub.get("metadata") or {}
    creator_id = md.get("creatorId")
    subscriber_id = md.get("subscriberId")
    if not creator_id or not subscriber_id:
        logger.warning("subscription %s missing creatorId/subscriberId metadata", sub.get("id"))
        return
    activate_subscription(subscriber_id, creator_id, sub.get("id"))
    record_subscription_activation(source)


def on_subscription_created(sub: Dict[str, Any]) -> None:
    _activate_from_metadata(sub, "subscription_created")


def on_subscription_updated(sub: Dict[str, Any]) -> None:
    status = sub.get("status")
    if status in DEACTIVATING_STATUSES:
        deactivate_by_stripe_id(sub["id"])
    elif status == "active":
        _activate_from_metadata(sub, "subscription_updated")


def on_subscription_deleted(sub: Dict[str, Any]) -> None:
    count = deactivate_by_stripe_id(sub["id"])
    logger.info("subscription %s deleted, %d ledger entries deactivated", sub["id"], count)


def on_payment_intent_succeeded(pi: Dict[str, Any]) -> None:
    txn = get_by_payment_intent(pi["id"])
    if not txn or txn.get("status") != "pending":
        return
    charge = _first_charge(pi)
    complete_transaction(txn, _card_details(charge), charge.get("id") if charge else None)


def on_payment_intent_failed(pi: Dict[str, Any]) -> None:
    txn = get_by_payment_intent(pi["id"])
    if not txn:
        return
    error = pi.get("last_payment_error") or {}
    mark_failed(txn, error.get("message") or "Payment failed")


def on_charge_refunded(charge: Dict[str, Any]) -> None:
    txn = get_by_payment_intent(_obj_id(charge.get("payment_intent")))
    if not txn:
        return
    refunds = (charge.get("refunds") or {}).get("data") or []
    mark_refunded(txn, refunds[0].get("id") if refunds else None)


HANDLERS: Dict[str, Callable[[Dict[str, Any]], None]] = {
    "invoice.payment_succeeded": on_invoice_payment_succeeded,
    "invoice.payment_failed": on_invoice_payment_failed,
    "customer.subscription.created": on_subscription_created,
    "customer.subscription.updated": on_subscription_updated,
    "customer.subscription.deleted": on_subscription_deleted,
    "payment_intent.succeeded": on_payment_intent_succeeded,
    "payment_intent.payment_failed": on_payment_intent_failed,
    "charge.refunded": on_charge_refunded,
}


def dispatch_event(event: Dict[str, Any]) -> str:
    """
    Apply one verified event. Returns the outcome label: handled, unhandled
    or error. Handler failures are logged and absorbed so the provider is
    always acknowledged.
    """
    event_type = event["type"]
    handler = HANDLERS.get(event_type)
    if handler is None:
        logger.info("unhandled stripe event type %s", event_type)
        outcome = "unhandled"
    else:
        try:
            handler(event["data"]["object"])
            outcome = "handled"
        except Exception:
            logger.exception("stripe event %s (%s) failed", event.get("id"), event_type)
            outcome = "error"
    record_webhook_event(event_type, outcome)
    return outcome
