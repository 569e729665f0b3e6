from __future__ import annotations

from typing import Any, Dict, Optional

import jwt
from passlib.hash import bcrypt

from .settings import S
from .time import now_ts

SESSION_ALG = "HS256"

def hash_password(password: str) -> str:
    return bcrypt.using(rounds=12).hash(password)

def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.verify(password, password_hash)
    except ValueError:
        return False

def mint_session_token(user_sub: str, role: str, email: str, ttl_seconds: Optional[int] = None) -> str:
    now = now_ts()
    payload = {
        "sub": user_sub,
        "role": role,
        "email": email,
        "iat": now,
        "exp": now + int(ttl_seconds or S.session_ttl_seconds),
    }
    return jwt.encode(payload, S.session_secret, algorithm=SESSION_ALG)

def decode_session_token(token: str) -> Dict[str, Any]:
    """Raises jwt.PyJWTError subclasses on bad or expired tokens."""
    return jwt.decode(token, S.session_secret, algorithms=[SESSION_ALG])
