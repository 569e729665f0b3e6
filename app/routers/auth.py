from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from app.core.crypto import mint_session_token, verify_password
from app.core.normalize import normalize_email
from app.core.settings import S
from app.metrics import record_login, record_registration
from app.models import LoginReq, RegisterReq
from app.services.audit import audit_event
from app.services.users import create_user, get_user_by_email, public_user

router = APIRouter(prefix="/api/auth", tags=["auth"])

@router.post("/register", status_code=201)
async def register(req: Request, body: RegisterReq):
    if not (body.name or "").strip() or not body.email or not body.password:
        raise HTTPException(400, "Missing required fields")
    if len(body.password) < S.password_min_length:
        raise HTTPException(400, f"Password must be at least {S.password_min_length} characters")

    email = normalize_email(body.email)
    role = "creator" if body.role == "creator" else "fan"
    user = create_user(name=body.name.strip(), email=email, password=body.password, role=role)

    record_registration(role)
    audit_event("register", user["user_id"], req, role=role)
    return {"message": "User created successfully", "user": public_user(user)}

@router.post("/login")
async def login(req: Request, body: LoginReq):
    if not (body.email or "").strip() or not body.password:
        raise HTTPException(400, "Email and password are required")
    email = body.email.strip().lower()
    user = get_user_by_email(email)
    if not user or not verify_password(body.password, user.get("password_hash")):
        record_login(False)
        audit_event("login_failure", email, req)
        raise HTTPException(401, "Invalid email or password")

    token = mint_session_token(user["user_id"], user.get("role", "fan"), user["email"])
    record_login(True)
    audit_event("login_success", user["user_id"], req)
    return {
        "token": token,
        "tokenType": "bearer",
        "expiresIn": S.session_ttl_seconds,
        "user": public_user(user),
    }
