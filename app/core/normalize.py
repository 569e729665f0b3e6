from __future__ import annotations

from typing import List, Optional

from fastapi import HTTPException

def client_ip_from_request(req) -> str:
    xff = req.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    return req.client.host if getattr(req, "client", None) else "0.0.0.0"

def normalize_email(s: str) -> str:
    s = (s or "").strip().lower()
    if "@" not in s or len(s) > 254:
        raise HTTPException(400, "Invalid email")
    return s

def normalize_tags(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [t.strip() for t in raw.split(",") if t.strip()]

def parse_price_cents(raw: Optional[str]) -> int:
    """
    Form prices arrive as decimal strings ("4.99"). Stored as integer cents.
    """
    if raw is None or str(raw).strip() == "":
        return 0
    try:
        value = float(str(raw).strip())
    except ValueError as exc:
        raise HTTPException(400, "Invalid price") from exc
    if value < 0:
        raise HTTPException(400, "Invalid price")
    return int(round(value * 100))
