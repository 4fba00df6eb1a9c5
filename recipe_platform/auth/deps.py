from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from recipe_platform.config import Config
from recipe_platform.db import Store
from recipe_platform.errors import InternalError, Unauthorized

from .crud import get_user_by_id, public_user
from .security import ACCESS, InvalidToken, TokenExpired, decode_token


_bearer = HTTPBearer(auto_error=False)


def get_config(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise InternalError("server_config_missing")
    return cfg


def get_store(request: Request) -> Store:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise InternalError("server_store_missing")
    return store


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    cfg: Config = Depends(get_config),
    store: Store = Depends(get_store),
) -> Dict[str, Any]:
    """Authenticate a request.

    Supports both:
      - Authorization: Bearer <jwt>
      - Cookie-based sessions (httpOnly accessToken cookie set by /auth/login)

    Never refreshes anything: an expired access token is a 401 and the client
    is expected to call /auth/refresh-token itself.
    """

    token: str | None = None

    # Prefer Bearer token when explicitly provided.
    if credentials is not None and credentials.credentials:
        token = credentials.credentials

    # Fall back to cookie.
    if not token:
        token = request.cookies.get(cfg.AUTH_ACCESS_COOKIE_NAME)

    if not token:
        raise Unauthorized("Unauthorized request")

    try:
        user_id = decode_token(cfg, token, ACCESS)
    except TokenExpired:
        raise Unauthorized("Access token expired")
    except InvalidToken:
        raise Unauthorized("Invalid access token")

    row = await get_user_by_id(store, user_id)
    if row is None:
        raise Unauthorized("Invalid access token")
    return public_user(row)
