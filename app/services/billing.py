from __future__ import annotations

import functools
import logging
from typing import Any, Callable, Dict, Optional, TypeVar

import stripe
from fastapi import HTTPException

from app.core.settings import S

logger = logging.getLogger("billing")

F = TypeVar("F", bound=Callable[..., Any])


def ensure_stripe_configured() -> None:
    if not S.stripe_secret_key:
        raise HTTPException(501, "Stripe is not configured")
    stripe.api_key = S.stripe_secret_key


def to_plain(obj: Any) -> Any:
    """Stripe SDK objects are not dicts on current releases; hand the rest of the app plain data."""
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict) and not isinstance(obj, dict):
        obj = to_dict()
    if isinstance(obj, dict):
        return {k: to_plain(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [to_plain(v) for v in obj]
    return obj


def provider_error(exc: Exception) -> HTTPException:
    message = getattr(exc, "user_message", None) or str(exc) or "Billing provider error"
    return HTTPException(502, message)


def _provider_call(fn: F) -> F:
    """Stripe SDK failures surface to the caller as 502."""
    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return to_plain(fn(*args, **kwargs))
        except stripe.StripeError as exc:
            logger.warning("stripe call %s failed: %s", fn.__name__, exc)
            raise provider_error(exc) from exc
    return wrapper  # type: ignore[return-value]


@_provider_call
def create_customer(email: str, name: str, metadata: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    return stripe.Customer.create(email=email, name=name, metadata=metadata or {})


@_provider_call
def create_monthly_price(amount_cents: int, currency: Optional[str] = None, product_id: Optional[str] = None) -> Dict[str, Any]:
    product = product_id
    if not product:
        created = stripe.Product.create(
            name=S.stripe_product_name,
            description="Monthly subscription to creator content",
        )
        product = to_plain(created)["id"]
    return stripe.Price.create(
        unit_amount=int(amount_cents),
        currency=(currency or S.stripe_default_currency),
        recurring={"interval": "month"},
        product=product,
    )


@_provider_call
def create_subscription(customer_id: str, price_id: str, metadata: Dict[str, str]) -> Dict[str, Any]:
    return stripe.Subscription.create(
        customer=customer_id,
        items=[{"price": price_id}],
        payment_behavior="default_incomplete",
        payment_settings={"save_default_payment_method": "on_subscription"},
        expand=["latest_invoice.payment_intent"],
        metadata=metadata,
    )


@_provider_call
def cancel_subscription(stripe_subscription_id: str) -> Dict[str, Any]:
    return stripe.Subscription.modify(stripe_subscription_id, cancel_at_period_end=True)


def construct_event(payload: bytes, sig_header: Optional[str]) -> Dict[str, Any]:
    try:
        event = stripe.Webhook.construct_event(payload=payload, sig_header=sig_header, secret=S.stripe_webhook_secret)
    except (ValueError, stripe.SignatureVerificationError) as exc:
        raise HTTPException(400, f"Webhook error: {exc}") from exc
    return to_plain(event)
