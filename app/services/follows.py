from __future__ import annotations

from typing import List

from app.core.tables import T
from app.core.time import now_ts
from app.services.store import ddb_del, ddb_get, ddb_put, ddb_query_index, ddb_query_pk


def _pk_follower(user_id: str) -> str:
    return f"USER#{user_id}"


def _sk_following(creator_id: str) -> str:
    return f"FOLLOWING#{creator_id}"


def is_following(user_id: str, creator_id: str) -> bool:
    return ddb_get(T.follows, _pk_follower(user_id), _sk_following(creator_id)) is not None


def follow(user_id: str, creator_id: str) -> None:
    ddb_put(T.follows, {
        "pk": _pk_follower(user_id),
        "sk": _sk_following(creator_id),
        "follower_id": user_id,
        "creator_id": creator_id,
        "followed_at": now_ts(),
    })


def unfollow(user_id: str, creator_id: str) -> None:
    ddb_del(T.follows, _pk_follower(user_id), _sk_following(creator_id))


def toggle_follow(user_id: str, creator_id: str) -> bool:
    """Returns the new following state."""
    if is_following(user_id, creator_id):
        unfollow(user_id, creator_id)
        return False
    follow(user_id, creator_id)
    return True


def following_ids(user_id: str) -> List[str]:
    items = ddb_query_pk(T.follows, _pk_follower(user_id), prefix="FOLLOWING#")
    return [it["creator_id"] for it in items]


def follower_count(creator_id: str) -> int:
    return len(ddb_query_index(T.follows, "creator-index", "creator_id", creator_id))
