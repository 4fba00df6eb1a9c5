"""Session lifecycle: login, refresh (rotation), logout.

Server-side session state is a single `refreshToken` field on the user
document. Writing a new value there is what invalidates the previous
session, so a pair is only handed out after that write has completed.
"""

from __future__ import annotations

from typing import Any, Dict, Tuple

from recipe_platform.config import Config
from recipe_platform.db import Store
from recipe_platform.errors import InternalError, Unauthorized, ValidationError
from recipe_platform.models import TokenPair

from .crud import public_user, verify_user_credentials
from .security import REFRESH, InvalidToken, create_access_token, create_refresh_token, decode_token


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


async def issue_token_pair(cfg: Config, store: Store, user: Dict[str, Any]) -> TokenPair:
    user_id = str(user["_id"])
    access = create_access_token(cfg, user)
    refresh = create_refresh_token(cfg, user_id)

    updated = await store.update_user(user_id, {"refreshToken": refresh})
    if updated is None:
        raise InternalError("Something went wrong while generating tokens")
    return TokenPair(access_token=access, refresh_token=refresh)


async def login(cfg: Config, store: Store, *, identifier: str, password: str) -> Tuple[TokenPair, Dict[str, Any]]:
    if not (identifier or "").strip() or not password:
        raise ValidationError("Username or email and password are required")

    # One outward-facing answer for unknown user and wrong password.
    user = await verify_user_credentials(store, identifier, password)
    if user is None:
        raise Unauthorized("Invalid credentials")

    pair = await issue_token_pair(cfg, store, user)
    _debug(f"Login ok user_id={user['_id']}")
    return pair, public_user(user)


async def refresh_session(cfg: Config, store: Store, refresh_token: str | None) -> TokenPair:
    if not refresh_token:
        raise Unauthorized("Refresh token is missing")

    try:
        user_id = decode_token(cfg, refresh_token, REFRESH)
    except InvalidToken:
        raise Unauthorized("Invalid or expired refresh token")

    user = await store.get_user(user_id)
    if user is None:
        raise Unauthorized("Invalid refresh token")

    if refresh_token != user.get("refreshToken"):
        # Superseded by a later login/refresh, or cleared by logout.
        _debug(f"Rejected stale refresh token for user_id={user_id}")
        raise Unauthorized("Refresh token is expired or used")

    pair = await issue_token_pair(cfg, store, user)
    _debug(f"Refreshed session user_id={user_id}")
    return pair


async def logout(store: Store, user_id: str) -> None:
    await store.update_user(user_id, {"refreshToken": None})
    _debug(f"Logout user_id={user_id}")
