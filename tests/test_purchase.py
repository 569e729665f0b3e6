import asyncio
import unittest
from types import SimpleNamespace
from unittest.mock import patch

from fastapi import HTTPException

from app.core.tables import T
from app.routers import content as content_routes
from app.services import content as content_service
from app.services.users import get_user

FAN = {"user_sub": "fan", "role": "fan", "email": "fan@example.com"}


def run_async(coro):
    return asyncio.run(coro)


def build_request():
    return SimpleNamespace(headers={"user-agent": "agent"}, client=None, state=SimpleNamespace())


def seed_user(user_id, role="fan"):
    T.users.put_item(Item={
        "pk": f"USER#{user_id}",
        "sk": "PROFILE",
        "user_id": user_id,
        "name": user_id.title(),
        "email": f"{user_id}@example.com",
        "role": role,
        "total_spent_cents": 0,
        "total_earnings_cents": 0,
    })


def seed_content(access_type="pay-per-view", price_cents=500):
    return content_service.create_content(
        creator_id="creator",
        title="Behind the scenes",
        description="",
        media=[{"type": "video", "key": "content/videos/v.mp4", "url": "/uploads/content/videos/v.mp4", "size": 10}],
        price_cents=price_cents,
        tags=[],
        is_public=access_type == "free",
    )


def purchase(content_id):
    return run_async(content_routes.purchase_content(build_request(), content_id, ctx=FAN))


def purchase_rows():
    return [it for it in T.content.items.values() if it["sk"].startswith("PURCHASE#")]


class TestPurchase(unittest.TestCase):
    def setUp(self):
        seed_user("fan")
        seed_user("creator", role="creator")

    def test_purchase_grants_access_and_credits_both_parties(self):
        item = seed_content(price_cents=500)
        resp = purchase(item["content_id"])
        self.assertTrue(resp["hasAccess"])

        self.assertEqual(len(purchase_rows()), 1)
        stored = content_service.get_content(item["content_id"])
        self.assertEqual(stored["purchase_count"], 1)
        self.assertEqual(stored["total_earnings_cents"], 500)
        self.assertEqual(get_user("fan")["total_spent_cents"], 500)
        self.assertEqual(get_user("creator")["total_earnings_cents"], 450)

        txns = T.transactions.rows(type="content-purchase")
        self.assertEqual(len(txns), 1)
        self.assertEqual(txns[0]["status"], "completed")
        self.assertEqual(txns[0]["transaction_id"], resp["transactionId"])
        self.assertEqual(txns[0]["platform_fee_cents"], 50)
        self.assertEqual(txns[0]["content_id"], item["content_id"])

        listed = content_routes.get_content_route(item["content_id"], ctx=FAN)
        self.assertTrue(listed["content"]["hasAccess"])

    def test_second_purchase_returns_access_without_new_row(self):
        item = seed_content()
        purchase(item["content_id"])
        resp = purchase(item["content_id"])
        self.assertEqual(resp, {"message": "Content already purchased", "hasAccess": True})
        self.assertEqual(len(purchase_rows()), 1)
        self.assertEqual(get_user("fan")["total_spent_cents"], 500)
        self.assertEqual(len(T.transactions.items), 1)

    def test_concurrent_duplicate_loses_conditional_put(self):
        item = seed_content()
        T.content.put_item(Item={"pk": f"CONTENT#{item['content_id']}", "sk": "PURCHASE#fan", "user_id": "fan"})
        with patch.object(content_routes, "has_access", return_value=False):
            resp = purchase(item["content_id"])
        self.assertTrue(resp["hasAccess"])
        self.assertNotIn("transactionId", resp)
        self.assertEqual(len(purchase_rows()), 1)
        self.assertEqual(content_service.get_content(item["content_id"])["purchase_count"], 0)
        self.assertEqual(T.transactions.items, {})

    def test_only_pay_per_view_is_purchasable(self):
        item = seed_content(access_type="free", price_cents=0)
        with self.assertRaises(HTTPException) as ctx:
            purchase(item["content_id"])
        self.assertEqual(ctx.exception.status_code, 400)

    def test_missing_content(self):
        with self.assertRaises(HTTPException) as ctx:
            purchase("cnt_missing")
        self.assertEqual(ctx.exception.status_code, 404)
