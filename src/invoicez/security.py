"""Password hashing and signed bearer tokens.

Tokens are JWT-shaped (``header.payload.signature``, base64url, HS256) and
carry ``sub``, ``email``, ``name``, ``iat`` and ``exp``. Logout is stateless:
the client discards its token.
"""

import base64
import hashlib
import hmac
import json
import secrets
import time
from typing import Any

ITERATIONS = 120_000
KEY_LENGTH = 64
DIGEST = "sha256"


class TokenError(Exception):
    """Token is malformed, forged or expired."""


def new_salt() -> str:
    return secrets.token_hex(16)


def hash_password(password: str, salt: str) -> str:
    """PBKDF2-HMAC-SHA256 digest of ``password`` as hex."""
    return hashlib.pbkdf2_hmac(
        DIGEST, password.encode("utf-8"), salt.encode("utf-8"), ITERATIONS, dklen=KEY_LENGTH
    ).hex()


def verify_password(password: str, salt: str, expected_hash: str) -> bool:
    return hmac.compare_digest(hash_password(password, salt), expected_hash or "")


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _sign(data: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), data.encode("ascii"), hashlib.sha256).digest()
    return _b64encode(digest)


def sign_token(
    payload: dict[str, Any], secret: str, expires_in: int, now: float | None = None
) -> str:
    issued = int(now if now is not None else time.time())
    header = {"alg": "HS256", "typ": "JWT"}
    body = {**payload, "iat": issued, "exp": issued + expires_in}
    data = ".".join(
        _b64encode(json.dumps(part, separators=(",", ":")).encode("utf-8"))
        for part in (header, body)
    )
    return f"{data}.{_sign(data, secret)}"


def verify_token(token: str, secret: str, now: float | None = None) -> dict[str, Any]:
    """Return the token's claims, or raise ``TokenError``."""
    try:
        header_b64, body_b64, signature = token.split(".")
    except (AttributeError, ValueError) as e:
        raise TokenError("Malformed token") from e

    expected = _sign(f"{header_b64}.{body_b64}", secret)
    if not hmac.compare_digest(expected, signature):
        raise TokenError("Invalid token signature")

    try:
        header = json.loads(_b64decode(header_b64))
        claims = json.loads(_b64decode(body_b64))
    except (ValueError, UnicodeDecodeError) as e:
        raise TokenError("Malformed token") from e
    if header.get("alg") != "HS256" or not isinstance(claims, dict):
        raise TokenError("Unsupported token")

    current = now if now is not None else time.time()
    if int(claims.get("exp", 0)) <= current:
        raise TokenError("Token expired")
    return claims
