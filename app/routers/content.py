from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile

from app.auth.deps import get_optional_session, get_session, require_creator
from app.core.normalize import normalize_tags, parse_price_cents
from app.metrics import record_content_purchase
from app.models import CommentReq
from app.services.audit import audit_event
from app.services.content import (
    add_comment,
    comment_out,
    content_out,
    create_content,
    get_content,
    has_liked,
    increment_views,
    list_comments,
    record_purchase,
    require_content,
    toggle_like,
    visible_content,
)
from app.services.entitlements import has_access, require_access
from app.services.media import delete_media, store_all_or_nothing
from app.services.transactions import compute_fee_split, create_transaction
from app.services.users import add_user_totals, get_user

logger = logging.getLogger("content")

router = APIRouter(prefix="/api/content", tags=["content"])

TRUTHY = ("true", "1", "yes", "on")


def _viewer(ctx: Optional[Dict[str, str]]) -> Optional[str]:
    return ctx["user_sub"] if ctx else None


def _creator_summary(creator_id: str, cache: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    if creator_id not in cache:
        user = get_user(creator_id)
        cache[creator_id] = {"id": creator_id, "name": user.get("name"), "image": user.get("image")} if user else None
    return cache[creator_id]


@router.post("", status_code=201)
async def create_content_route(
    req: Request,
    title: str = Form(""),
    description: str = Form(""),
    price: str = Form(""),
    tags: str = Form(""),
    is_public: str = Form("true", alias="isPublic"),
    category: str = Form("general"),
    files: Optional[List[UploadFile]] = File(None),
    ctx=Depends(require_creator),
):
    if not title.strip():
        raise HTTPException(400, "Title is required")
    if not files:
        raise HTTPException(400, "At least one media file is required")
    price_cents = parse_price_cents(price)

    media = store_all_or_nothing(files)
    try:
        item = create_content(
            creator_id=ctx["user_sub"],
            title=title,
            description=description,
            media=media,
            price_cents=price_cents,
            tags=normalize_tags(tags),
            is_public=str(is_public).strip().lower() in TRUTHY,
            category=category,
        )
    except Exception:
        logger.warning("content write failed, removing %d uploaded objects", len(media))
        for m in media:
            delete_media(m)
        raise

    audit_event(
        "content_create",
        ctx["user_sub"],
        req,
        content_id=item["content_id"],
        access_type=item["access_type"],
        media_count=len(media),
    )
    return {"message": "Content created successfully", "contentId": item["content_id"], "mediaCount": len(media)}


@router.get("")
def list_content(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=50),
    creator: Optional[str] = None,
    ctx=Depends(get_optional_session),
):
    viewer_id = _viewer(ctx)
    items = visible_content(viewer_id, creator)
    total = len(items)
    start = (page - 1) * limit

    creators: Dict[str, Any] = {}
    out = []
    for item in items[start:start + limit]:
        row = content_out(item, has_access(item, viewer_id))
        row["creator"] = _creator_summary(item["creator_id"], creators)
        out.append(row)

    return {
        "content": out,
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }


@router.get("/{content_id}")
def get_content_route(content_id: str, ctx=Depends(get_optional_session)):
    viewer_id = _viewer(ctx)
    item = require_content(content_id)
    if not item.get("is_published") and item["creator_id"] != viewer_id:
        raise HTTPException(404, "Content not found")

    access = has_access(item, viewer_id)
    if access:
        increment_views(content_id)
        item["view_count"] = int(item.get("view_count", 0)) + 1

    out = content_out(item, access)
    out["creator"] = _creator_summary(item["creator_id"], {})
    out["isLiked"] = has_liked(content_id, viewer_id)
    out["comments"] = [comment_out(c) for c in list_comments(content_id)] if access else []
    return {"content": out}


@router.post("/{content_id}/purchase")
async def purchase_content(req: Request, content_id: str, ctx=Depends(get_session)):
    viewer_id = ctx["user_sub"]
    item = require_content(content_id)
    if item.get("access_type") != "pay-per-view":
        raise HTTPException(400, "Content is not available for purchase")
    if has_access(item, viewer_id):
        return {"message": "Content already purchased", "hasAccess": True}

    amount = int(item.get("price_cents", 0))
    if not record_purchase(item, viewer_id, amount):
        return {"message": "Content already purchased", "hasAccess": True}

    _, net = compute_fee_split(amount)
    add_user_totals(viewer_id, spent_cents=amount)
    add_user_totals(item["creator_id"], earned_cents=net)
    txn = create_transaction(
        payer_id=viewer_id,
        payee_id=item["creator_id"],
        amount_cents=amount,
        txn_type="content-purchase",
        status="completed",
        content_id=content_id,
        description=f"Purchase: {item.get('title', '')}",
    )

    record_content_purchase(amount)
    audit_event(
        "content_purchase",
        viewer_id,
        req,
        content_id=content_id,
        amount_cents=amount,
        transaction_id=txn["transaction_id"],
    )
    return {"message": "Content purchased successfully", "hasAccess": True, "transactionId": txn["transaction_id"]}


@router.post("/{content_id}/like")
def like_content(content_id: str, ctx=Depends(get_session)):
    require_content(content_id)
    liked = toggle_like(content_id, ctx["user_sub"])
    item = get_content(content_id) or {}
    return {"isLiked": liked, "likeCount": int(item.get("like_count", 0))}


@router.get("/{content_id}/comments")
def list_comments_route(content_id: str, ctx=Depends(get_optional_session)):
    item = require_content(content_id)
    require_access(item, _viewer(ctx))
    return {"comments": [comment_out(c) for c in list_comments(content_id)]}


@router.post("/{content_id}/comments", status_code=201)
def add_comment_route(content_id: str, body: CommentReq, ctx=Depends(get_session)):
    text = (body.content or "").strip()
    if not text or len(text) > 500:
        raise HTTPException(400, "Comment must be between 1 and 500 characters")
    item = require_content(content_id)
    require_access(item, ctx["user_sub"])
    comment = add_comment(content_id, ctx["user_sub"], text)
    return {"comment": comment_out(comment)}
