from __future__ import annotations

from typing import Dict, Optional

import jwt
from fastapi import Depends, HTTPException, Request

from app.core.crypto import decode_session_token


def extract_bearer_token(auth_header: Optional[str]) -> str:
    if not auth_header:
        raise HTTPException(401, "Missing Authorization header")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(401, "Invalid Authorization header")
    return token.strip()


def _session_from_token(token: str) -> Dict[str, str]:
    try:
        payload = decode_session_token(token)
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(401, "Session expired") from exc
    except jwt.PyJWTError as exc:
        raise HTTPException(401, "Invalid session token") from exc

    user_sub = payload.get("sub")
    if not user_sub:
        raise HTTPException(401, "Token missing subject")
    return {
        "user_sub": str(user_sub),
        "role": str(payload.get("role") or "fan"),
        "email": str(payload.get("email") or ""),
    }


async def get_session(request: Request) -> Dict[str, str]:
    """
    Resolve the caller's session from `Authorization: Bearer <token>`.

    The token is the one minted by /api/auth/login; its claims are trusted
    as-is (user id, role, email).
    """
    token = extract_bearer_token(request.headers.get("authorization", ""))
    return _session_from_token(token)


async def get_optional_session(request: Request) -> Optional[Dict[str, str]]:
    auth = request.headers.get("authorization", "")
    if not auth:
        return None
    return _session_from_token(extract_bearer_token(auth))


async def require_creator(ctx: Dict[str, str] = Depends(get_session)) -> Dict[str, str]:
    if ctx.get("role") != "creator":
        raise HTTPException(403, "Only creators can perform this action")
    return ctx
