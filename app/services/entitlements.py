from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException

from app.services.content import has_purchased
from app.services.ledger import is_subscribed_to


def has_access(content: Dict[str, Any], viewer_id: Optional[str], now: Optional[int] = None) -> bool:
    """
    Decide whether `viewer_id` may see `content`.

    Rules apply in order: owner, free, subscription (active ledger entry whose
    end date is still ahead), pay-per-view (purchase row exists). Anonymous
    viewers only ever see free content. Ledger and purchase lookups only run
    when the rule that needs them is reached.
    """
    access_type = content.get("access_type")
    if not viewer_id:
        return access_type == "free"
    if content.get("creator_id") == viewer_id:
        return True
    if access_type == "free":
        return True
    if access_type == "subscription":
        return is_subscribed_to(viewer_id, content["creator_id"], now)
    if access_type == "pay-per-view":
        return has_purchased(content["content_id"], viewer_id)
    return False


def require_access(content: Dict[str, Any], viewer_id: Optional[str]) -> None:
    if not has_access(content, viewer_id):
        raise HTTPException(403, "You do not have access to this content")
