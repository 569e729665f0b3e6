import asyncio
import dataclasses
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import stripe
from fastapi import HTTPException

from app.core.settings import S
from app.core.tables import T
from app.models import SubscriptionCreateReq
from app.routers import subscriptions
from app.services import billing
from app.services.ledger import activate_subscription
from app.services.users import get_user

FAN = {"user_sub": "fan", "role": "fan", "email": "fan@example.com"}


def build_request():
    return SimpleNamespace(headers={"user-agent": "agent"}, client=None, state=SimpleNamespace())


def seed_user(user_id, role="fan", **fields):
    T.users.put_item(Item={
        "pk": f"USER#{user_id}",
        "sk": "PROFILE",
        "user_id": user_id,
        "name": user_id.title(),
        "email": f"{user_id}@example.com",
        "role": role,
        "total_spent_cents": 0,
        "total_earnings_cents": 0,
        **fields,
    })


def create(creator_id="creator", price_cents=999):
    body = SubscriptionCreateReq(creatorId=creator_id, priceCents=price_cents)
    return asyncio.run(subscriptions.create_paid_subscription(build_request(), body, ctx=FAN))


@pytest.fixture
def stripe_api(monkeypatch):
    monkeypatch.setattr(billing, "S", dataclasses.replace(S, stripe_secret_key="sk_test_123"))
    api = SimpleNamespace(
        Customer=MagicMock(),
        Product=MagicMock(),
        Price=MagicMock(),
        Subscription=MagicMock(),
    )
    api.Customer.create.return_value = {"id": "cus_new"}
    api.Product.create.return_value = {"id": "prod_1"}
    api.Price.create.return_value = {"id": "price_new"}
    api.Subscription.create.return_value = {
        "id": "sub_1",
        "latest_invoice": {"id": "in_1", "payment_intent": {"id": "pi_1", "client_secret": "pi_1_secret"}},
    }
    api.Subscription.modify.return_value = {"id": "sub_1", "cancel_at_period_end": True}
    for name in ("Customer", "Product", "Price", "Subscription"):
        monkeypatch.setattr(stripe, name, getattr(api, name))
    seed_user("fan")
    seed_user("creator", role="creator")
    return api


def test_create_builds_customer_price_and_pending_transaction(stripe_api):
    resp = create()
    assert resp["subscriptionId"] == "sub_1"
    assert resp["clientSecret"] == "pi_1_secret"
    assert resp["customerId"] == "cus_new"
    assert resp["priceId"] == "price_new"

    assert get_user("fan")["stripe_customer_id"] == "cus_new"
    creator = get_user("creator")
    assert creator["stripe_price_id"] == "price_new"
    assert creator["subscription_price_cents"] == 999

    price_kwargs = stripe_api.Price.create.call_args.kwargs
    assert price_kwargs["unit_amount"] == 999
    assert price_kwargs["recurring"] == {"interval": "month"}
    sub_kwargs = stripe_api.Subscription.create.call_args.kwargs
    assert sub_kwargs["payment_behavior"] == "default_incomplete"
    assert sub_kwargs["expand"] == ["latest_invoice.payment_intent"]
    assert sub_kwargs["metadata"] == {"creatorId": "creator", "subscriberId": "fan"}

    txns = T.transactions.rows(stripe_payment_intent_id="pi_1")
    assert len(txns) == 1
    assert txns[0]["status"] == "pending"
    assert txns[0]["type"] == "subscription"
    assert txns[0]["net_amount_cents"] == 900
    assert T.subscriptions.items == {}


def test_create_reuses_customer_and_unchanged_price(stripe_api):
    T.users.items[("USER#fan", "PROFILE")]["stripe_customer_id"] = "cus_existing"
    T.users.items[("USER#creator", "PROFILE")].update({"stripe_price_id": "price_old", "subscription_price_cents": 999})
    resp = create()
    assert resp["customerId"] == "cus_existing"
    assert resp["priceId"] == "price_old"
    stripe_api.Customer.create.assert_not_called()
    stripe_api.Price.create.assert_not_called()


def test_create_validation(stripe_api):
    for kwargs, status in (
        ({"price_cents": 50}, 400),
        ({"creator_id": "fan"}, 400),
        ({"creator_id": "nobody"}, 404),
    ):
        with pytest.raises(HTTPException) as exc:
            create(**kwargs)
        assert exc.value.status_code == status

    activate_subscription("fan", "creator")
    with pytest.raises(HTTPException) as exc:
        create()
    assert exc.value.status_code == 400
    stripe_api.Subscription.create.assert_not_called()


def test_sdk_objects_are_read_as_plain_data(stripe_api):
    stripe_api.Customer.create.return_value = stripe.StripeObject.construct_from({"id": "cus_sdk"}, "sk_test_123")
    stripe_api.Subscription.create.return_value = stripe.StripeObject.construct_from({
        "id": "sub_sdk",
        "object": "subscription",
        "latest_invoice": {
            "id": "in_sdk",
            "object": "invoice",
            "payment_intent": {"id": "pi_sdk", "object": "payment_intent", "client_secret": "pi_sdk_secret"},
        },
    }, "sk_test_123")
    resp = create()
    assert resp["subscriptionId"] == "sub_sdk"
    assert resp["clientSecret"] == "pi_sdk_secret"
    assert resp["customerId"] == "cus_sdk"
    assert T.transactions.rows(stripe_payment_intent_id="pi_sdk")[0]["status"] == "pending"


def test_stripe_errors_become_502(stripe_api):
    stripe_api.Subscription.create.side_effect = stripe.InvalidRequestError("No such price", "price")
    with pytest.raises(HTTPException) as exc:
        create()
    assert exc.value.status_code == 502
    assert T.transactions.items == {}


def test_unconfigured_stripe_is_501(monkeypatch):
    monkeypatch.setattr(billing, "S", dataclasses.replace(S, stripe_secret_key=""))
    with pytest.raises(HTTPException) as exc:
        create()
    assert exc.value.status_code == 501


def test_cancel_sets_cancel_at_period_end(stripe_api):
    activate_subscription("fan", "creator", "sub_1")
    resp = asyncio.run(subscriptions.cancel_paid_subscription(build_request(), "creator", ctx=FAN))
    assert resp["cancelAtPeriodEnd"] is True
    stripe_api.Subscription.modify.assert_called_once_with("sub_1", cancel_at_period_end=True)
    assert resp["subscription"]["isActive"] is True


def test_cancel_without_paid_subscription(stripe_api):
    activate_subscription("fan", "creator")
    with pytest.raises(HTTPException) as exc:
        asyncio.run(subscriptions.cancel_paid_subscription(build_request(), "creator", ctx=FAN))
    assert exc.value.status_code == 404
