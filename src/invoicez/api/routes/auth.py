"""Account routes: register, login, logout and delete."""

from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException

from invoicez.api.deps import get_app_settings, get_db
from invoicez.api.schemas import DeleteUserIn, LoginIn, RegisterIn
from invoicez.config import Settings
from invoicez.db import Database, ValidationError
from invoicez.security import hash_password, new_salt, sign_token, verify_password

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

INVALID_CREDENTIALS = "Invalid email or password"


def normalize_user(row: dict[str, Any]) -> dict[str, Any]:
    return {"id": row.get("UserID"), "email": row.get("Email"), "name": row.get("FullName")}


def _session(user: dict[str, Any], settings: Settings) -> dict[str, Any]:
    token = sign_token(
        {"sub": user["id"], "email": user["email"], "name": user["name"]},
        settings.jwt_secret.get_secret_value(),
        settings.token_ttl_seconds,
    )
    return {"user": user, "token": token, "expiresIn": settings.token_ttl_seconds}


def _credentials(email: str, password: str) -> tuple[str, str]:
    email = email.strip().lower()
    if not email or not password:
        raise ValidationError("email and password required")
    return email, password


@router.post("/register", status_code=201)
def register(
    body: RegisterIn,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    email, password = _credentials(body.email, body.password)
    salt = new_salt()
    created = db.call_proc_row(
        "CreateUserTx", [email, body.name, hash_password(password, salt), salt]
    )
    user = normalize_user(created or {"Email": email, "FullName": body.name})
    logger.info("user_registered", email=email)
    return _session(user, settings)


@router.post("/login")
def login(
    body: LoginIn,
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    email, password = _credentials(body.email, body.password)
    row = db.call_proc_row("GetUserByEmailTx", [email])
    if row is None or not verify_password(password, row["PasswordSalt"], row["PasswordHash"]):
        logger.info("login_failed", email=email)
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)
    return _session(normalize_user(row), settings)


@router.post("/logout")
def logout() -> dict[str, Any]:
    """Tokens are stateless; the client discards its copy."""
    return {"ok": True, "message": "Logged out (discard token on client)"}


@router.delete("/user")
def delete_user(body: DeleteUserIn = Body(...), db: Database = Depends(get_db)) -> dict[str, Any]:
    email = body.email.strip().lower()
    if not email:
        raise ValidationError("email required")
    return db.call_proc_row("DeleteUserByEmailTx", [email]) or {"ok": True}
