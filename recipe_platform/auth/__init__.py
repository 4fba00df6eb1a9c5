"""Authentication / authorization helpers.

Auth here is a two-token JWT scheme:

- Access token: short-lived, stateless, sent on every protected request.
- Refresh token: long-lived, stored on the user document (one per user),
  only ever used to mint a new pair; every use rotates it.

The API accepts the access token from either:

- `Authorization: Bearer <token>` (useful for scripts / API clients)
- A secure httpOnly `accessToken` cookie (set by `/auth/login`)

The refresh token only travels in the httpOnly `refreshToken` cookie.
"""

from .crud import create_user, public_user
from .deps import get_config, get_current_user, get_store
from .sessions import login, logout, refresh_session

__all__ = [
    "create_user",
    "get_config",
    "get_current_user",
    "get_store",
    "login",
    "logout",
    "public_user",
    "refresh_session",
]
