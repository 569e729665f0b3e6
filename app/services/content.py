from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from fastapi import HTTPException

from app.core.tables import T
from app.core.time import now_ts
from app.services.store import (
    apply_counter_delta,
    ddb_del,
    ddb_get,
    ddb_put,
    ddb_put_new,
    ddb_query_index,
    ddb_query_pk,
)

FEED_PUBLISHED = "PUBLISHED"


def content_pk(content_id: str) -> str:
    return f"CONTENT#{content_id}"


def get_content(content_id: str) -> Optional[Dict[str, Any]]:
    return ddb_get(T.content, content_pk(content_id), "META")


def require_content(content_id: str) -> Dict[str, Any]:
    item = get_content(content_id)
    if not item:
        raise HTTPException(404, "Content not found")
    return item


def derive_content_type(media: List[Dict[str, Any]]) -> str:
    first = media[0]["type"] if media else None
    if first == "image":
        return "photo"
    if first == "video":
        return "video"
    return "text"


def derive_access_type(price_cents: int, is_public: bool) -> str:
    if price_cents > 0:
        return "pay-per-view"
    if not is_public:
        return "subscription"
    return "free"


def create_content(
    *,
    creator_id: str,
    title: str,
    description: str,
    media: List[Dict[str, Any]],
    price_cents: int,
    tags: List[str],
    is_public: bool,
    category: str = "general",
) -> Dict[str, Any]:
    ts = now_ts()
    content_id = f"cnt_{uuid.uuid4().hex}"
    item: Dict[str, Any] = {
        "pk": content_pk(content_id),
        "sk": "META",
        "content_id": content_id,
        "creator_id": creator_id,
        "title": title.strip()[:200],
        "description": (description or "")[:1000],
        "type": derive_content_type(media),
        "media": media,
        "access_type": derive_access_type(price_cents, is_public),
        "price_cents": int(price_cents),
        "tags": tags,
        "category": category or "general",
        "is_published": True,
        "published_at": ts,
        "is_archived": False,
        "view_count": 0,
        "like_count": 0,
        "comment_count": 0,
        "purchase_count": 0,
        "total_earnings_cents": 0,
        "created_at": ts,
        "updated_at": ts,
        "feed_pk": FEED_PUBLISHED,
    }
    ddb_put(T.content, item)
    return item


def list_by_creator(creator_id: str) -> List[Dict[str, Any]]:
    items = ddb_query_index(T.content, "creator-index", "creator_id", creator_id)
    return [it for it in items if it.get("sk") == "META"]


def list_published() -> List[Dict[str, Any]]:
    return ddb_query_index(T.content, "feed-index", "feed_pk", FEED_PUBLISHED)


def visible_content(viewer_id: str, creator_id: Optional[str] = None) -> List[Dict[str, Any]]:
    if creator_id:
        items = list_by_creator(creator_id)
        if creator_id != viewer_id:
            items = [it for it in items if it.get("is_published")]
    else:
        items = list_published()
    items = [it for it in items if not it.get("is_archived")]
    items.sort(key=lambda x: x.get("created_at", 0), reverse=True)
    return items


def creator_tags(items: List[Dict[str, Any]]) -> List[str]:
    seen: List[str] = []
    for it in items:
        for tag in it.get("tags") or []:
            if tag not in seen:
                seen.append(tag)
    return seen


def has_purchased(content_id: str, user_id: Optional[str]) -> bool:
    if not user_id:
        return False
    return ddb_get(T.content, content_pk(content_id), f"PURCHASE#{user_id}") is not None


def record_purchase(content: Dict[str, Any], user_id: str, amount_cents: int) -> bool:
    """
    Write the (content, user) purchase row. False when the row already
    existed, in which case no counters move.
    """
    inserted = ddb_put_new(T.content, {
        "pk": content_pk(content["content_id"]),
        "sk": f"PURCHASE#{user_id}",
        "user_id": user_id,
        "amount_cents": int(amount_cents),
        "purchased_at": now_ts(),
    })
    if not inserted:
        return False
    apply_counter_delta(
        T.content,
        content_pk(content["content_id"]),
        "META",
        {"purchase_count": 1, "total_earnings_cents": int(amount_cents)},
    )
    return True


def toggle_like(content_id: str, user_id: str) -> bool:
    pk = content_pk(content_id)
    sk = f"LIKE#{user_id}"
    if ddb_get(T.content, pk, sk):
        ddb_del(T.content, pk, sk)
        apply_counter_delta(T.content, pk, "META", {"like_count": -1})
        return False
    if ddb_put_new(T.content, {"pk": pk, "sk": sk, "user_id": user_id, "liked_at": now_ts()}):
        apply_counter_delta(T.content, pk, "META", {"like_count": 1})
    return True


def add_comment(content_id: str, user_id: str, text: str) -> Dict[str, Any]:
    ts = now_ts()
    comment_id = uuid.uuid4().hex[:12]
    item = {
        "pk": content_pk(content_id),
        "sk": f"COMMENT#{ts}#{comment_id}",
        "comment_id": comment_id,
        "user_id": user_id,
        "content": text,
        "is_hidden": False,
        "created_at": ts,
    }
    ddb_put(T.content, item)
    apply_counter_delta(T.content, content_pk(content_id), "META", {"comment_count": 1})
    return item


def list_comments(content_id: str) -> List[Dict[str, Any]]:
    items = ddb_query_pk(T.content, content_pk(content_id), prefix="COMMENT#")
    visible = [it for it in items if not it.get("is_hidden")]
    visible.sort(key=lambda x: x.get("created_at", 0))
    return visible


def increment_views(content_id: str) -> None:
    apply_counter_delta(T.content, content_pk(content_id), "META", {"view_count": 1})


def content_out(item: Dict[str, Any], has_access: bool) -> Dict[str, Any]:
    out = {
        "id": item["content_id"],
        "creatorId": item["creator_id"],
        "title": item.get("title"),
        "description": item.get("description"),
        "type": item.get("type"),
        "accessType": item.get("access_type"),
        "priceCents": int(item.get("price_cents", 0)),
        "tags": item.get("tags") or [],
        "category": item.get("category"),
        "isPublished": bool(item.get("is_published")),
        "publishedAt": item.get("published_at"),
        "likeCount": int(item.get("like_count", 0)),
        "commentCount": int(item.get("comment_count", 0)),
        "purchaseCount": int(item.get("purchase_count", 0)),
        "viewCount": int(item.get("view_count", 0)),
        "createdAt": item.get("created_at"),
        "hasAccess": has_access,
        "mediaCount": len(item.get("media") or []),
    }
    if has_access:
        out["mediaUrls"] = [
            {k: m.get(k) for k in ("url", "type", "size", "thumbnail") if m.get(k) is not None}
            for m in item.get("media") or []
        ]
    else:
        out["mediaUrls"] = []
    return out


def has_liked(content_id: str, user_id: Optional[str]) -> bool:
    if not user_id:
        return False
    return ddb_get(T.content, content_pk(content_id), f"LIKE#{user_id}") is not None


def comment_out(comment: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": comment["comment_id"],
        "userId": comment["user_id"],
        "content": comment["content"],
        "createdAt": comment.get("created_at"),
    }
