from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from passlib.context import CryptContext

from recipe_platform.config import Config


_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
_JWT_ALG = "HS256"

ACCESS = "access"
REFRESH = "refresh"


class InvalidToken(Exception):
    """Token is present but unusable (bad signature, malformed, wrong kind, expired)."""


class TokenExpired(InvalidToken):
    pass


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return _pwd.verify(password, password_hash)
    except (ValueError, TypeError):
        # Unknown / corrupt hash format.
        return False


def _secret_for(cfg: Config, kind: str) -> str:
    secret = cfg.ACCESS_TOKEN_SECRET if kind == ACCESS else cfg.REFRESH_TOKEN_SECRET
    if not secret:
        raise ValueError(f"{kind}_token_secret_blank")
    return secret


def _encode(cfg: Config, *, kind: str, user_id: str, lifetime: timedelta, extra: Dict[str, Any] | None = None) -> str:
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = dict(extra or {})
    payload.update(
        {
            "sub": str(user_id),
            "typ": kind,
            "iat": int(now.timestamp()),
            "exp": int((now + lifetime).timestamp()),
            # Unique per token: two tokens minted in the same second must differ,
            # otherwise a rotated refresh token would equal its predecessor.
            "jti": uuid.uuid4().hex,
        }
    )
    return jwt.encode(payload, _secret_for(cfg, kind), algorithm=_JWT_ALG)


def create_access_token(cfg: Config, user: Dict[str, Any]) -> str:
    return _encode(
        cfg,
        kind=ACCESS,
        user_id=str(user["_id"]),
        lifetime=timedelta(minutes=max(1, int(cfg.ACCESS_TOKEN_EXPIRE_MINUTES))),
        extra={
            "username": user.get("username"),
            "email": user.get("email"),
            "fullName": user.get("fullName"),
        },
    )


def create_refresh_token(cfg: Config, user_id: str) -> str:
    return _encode(
        cfg,
        kind=REFRESH,
        user_id=user_id,
        lifetime=timedelta(days=max(1, int(cfg.REFRESH_TOKEN_EXPIRE_DAYS))),
    )


def decode_token(cfg: Config, token: str, expected_kind: str) -> str:
    """Verify `token` and return the user id it was issued for.

    Raises TokenExpired / InvalidToken. A blank token is the caller's
    "no token supplied" case and must be handled before calling this.
    """
    if not token:
        raise ValueError("token_blank")
    try:
        payload = jwt.decode(
            token,
            _secret_for(cfg, expected_kind),
            algorithms=[_JWT_ALG],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenExpired("token_expired") from e
    except jwt.InvalidTokenError as e:
        raise InvalidToken("token_invalid") from e

    if payload.get("typ") != expected_kind:
        raise InvalidToken("token_wrong_kind")

    sub = str(payload.get("sub") or "").strip()
    if not sub:
        raise InvalidToken("token_missing_sub")
    return sub
