import unittest
from types import SimpleNamespace

from fastapi import HTTPException

from app.core.normalize import client_ip_from_request, normalize_email, normalize_tags, parse_price_cents


class TestNormalizeEmail(unittest.TestCase):
    def test_normalize_email_strips_and_lowercases(self):
        self.assertEqual(normalize_email("  Test@Example.COM "), "test@example.com")

    def test_normalize_email_rejects_invalid(self):
        with self.assertRaises(HTTPException):
            normalize_email("invalid-email")


class TestNormalizeTags(unittest.TestCase):
    def test_splits_and_trims(self):
        self.assertEqual(normalize_tags(" art, travel ,,photo "), ["art", "travel", "photo"])

    def test_empty(self):
        self.assertEqual(normalize_tags(""), [])
        self.assertEqual(normalize_tags(None), [])


class TestParsePriceCents(unittest.TestCase):
    def test_decimal_string_to_cents(self):
        self.assertEqual(parse_price_cents("4.99"), 499)
        self.assertEqual(parse_price_cents("10"), 1000)

    def test_blank_is_free(self):
        self.assertEqual(parse_price_cents(""), 0)
        self.assertEqual(parse_price_cents(None), 0)

    def test_rejects_negative_and_garbage(self):
        for raw in ("-1", "abc"):
            with self.assertRaises(HTTPException) as ctx:
                parse_price_cents(raw)
            self.assertEqual(ctx.exception.status_code, 400)


class TestClientIp(unittest.TestCase):
    def test_prefers_forwarded_for(self):
        req = SimpleNamespace(headers={"x-forwarded-for": "203.0.113.1, 10.0.0.1"}, client=None)
        self.assertEqual(client_ip_from_request(req), "203.0.113.1")

    def test_falls_back_to_client_host(self):
        req = SimpleNamespace(headers={}, client=SimpleNamespace(host="198.51.100.7"))
        self.assertEqual(client_ip_from_request(req), "198.51.100.7")
