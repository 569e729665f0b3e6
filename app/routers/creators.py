from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request

from app.auth.deps import get_optional_session, get_session
from app.metrics import record_subscription_activation
from app.services.audit import audit_event
from app.services.content import creator_tags, list_by_creator, visible_content
from app.services.follows import follower_count, following_ids, is_following, toggle_follow
from app.services.ledger import activate_subscription, active_subscriber_count, entry_out, is_subscribed_to
from app.services.users import get_user, list_creators, public_user

router = APIRouter(prefix="/api/creators", tags=["creators"])


def _require_creator_user(creator_id: str) -> Dict[str, Any]:
    creator = get_user(creator_id)
    if not creator or creator.get("role") != "creator":
        raise HTTPException(404, "Creator not found")
    return creator


@router.get("")
def list_creators_route(ctx=Depends(get_optional_session)):
    viewer_id = ctx["user_sub"] if ctx else None
    following = set(following_ids(viewer_id)) if viewer_id else set()

    out = []
    for creator in list_creators():
        creator_id = creator["user_id"]
        if creator_id == viewer_id:
            continue
        published = [it for it in list_by_creator(creator_id) if it.get("is_published") and not it.get("is_archived")]
        row = public_user(creator)
        row.update({
            "contentCount": len(published),
            "contentTags": creator_tags(published),
            "isFollowing": creator_id in following,
            "followerCount": follower_count(creator_id),
        })
        out.append(row)

    out.sort(key=lambda c: c["followerCount"], reverse=True)
    return {"creators": out}


@router.get("/{creator_id}")
def get_creator(creator_id: str, ctx=Depends(get_optional_session)):
    viewer_id = ctx["user_sub"] if ctx else None
    creator = _require_creator_user(creator_id)
    items = visible_content(viewer_id, creator_id)

    out = public_user(creator)
    out.update({
        "isSubscribed": is_subscribed_to(viewer_id, creator_id),
        "isFollowing": bool(viewer_id) and is_following(viewer_id, creator_id),
        "followerCount": follower_count(creator_id),
        "subscriberCount": active_subscriber_count(creator_id),
        "contentCount": len(items),
        "contentTags": creator_tags(items),
    })
    return {"creator": out}


@router.post("/{creator_id}/follow")
async def follow_creator(req: Request, creator_id: str, ctx=Depends(get_session)):
    viewer_id = ctx["user_sub"]
    if viewer_id == creator_id:
        raise HTTPException(400, "You cannot follow yourself")
    _require_creator_user(creator_id)

    now_following = toggle_follow(viewer_id, creator_id)
    audit_event("follow" if now_following else "unfollow", viewer_id, req, creator_id=creator_id)
    return {"isFollowing": now_following, "followerCount": follower_count(creator_id)}


@router.post("/{creator_id}/subscribe")
async def subscribe_to_creator(req: Request, creator_id: str, ctx=Depends(get_session)):
    viewer_id = ctx["user_sub"]
    if viewer_id == creator_id:
        raise HTTPException(400, "You cannot subscribe to yourself")
    _require_creator_user(creator_id)

    if is_subscribed_to(viewer_id, creator_id):
        return {"message": "Already subscribed", "isSubscribed": True}

    entry = activate_subscription(viewer_id, creator_id)
    record_subscription_activation("direct")
    audit_event("subscribe", viewer_id, req, creator_id=creator_id)
    return {"message": "Subscribed successfully", "isSubscribed": True, "subscription": entry_out(entry)}
