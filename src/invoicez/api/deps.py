"""FastAPI dependencies shared by the routers."""

from typing import Any

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from invoicez.config import Settings
from invoicez.db import Database
from invoicez.security import TokenError, verify_token

_bearer = HTTPBearer(auto_error=False)


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def require_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any] | None:
    """Token claims of the caller; enforced only when ``AUTH_REQUIRED`` is set."""
    if credentials is None:
        if settings.auth_required:
            raise HTTPException(
                status_code=401,
                detail="Missing bearer token",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return None

    try:
        return verify_token(credentials.credentials, settings.jwt_secret.get_secret_value())
    except TokenError as e:
        if settings.auth_required:
            raise HTTPException(
                status_code=401, detail=str(e), headers={"WWW-Authenticate": "Bearer"}
            ) from e
        return None
