from __future__ import annotations

import re
from typing import Any, Dict, Optional

from recipe_platform.db import DuplicateKey, Store
from recipe_platform.errors import Conflict, ValidationError

from .security import hash_password, verify_password


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Never leave the API.
_PRIVATE_FIELDS = ("password", "refreshToken")


def _debug(msg: str) -> None:
    print(f"[auth] {msg}")


def normalize_username(username: str) -> str:
    return (username or "").strip().lower()


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def public_user(doc: Dict[str, Any]) -> Dict[str, Any]:
    d = dict(doc)
    for k in _PRIVATE_FIELDS:
        d.pop(k, None)
    return d


def owner_summary(doc: Dict[str, Any]) -> Dict[str, Any]:
    """The `postedBy` projection embedded in recipe responses."""
    return {
        "_id": doc["_id"],
        "username": doc.get("username"),
        "fullName": doc.get("fullName"),
    }


async def get_user_by_id(store: Store, user_id: str) -> Optional[Dict[str, Any]]:
    return await store.get_user(user_id)


async def get_user_by_identifier(store: Store, identifier: str) -> Optional[Dict[str, Any]]:
    """Look a user up by username OR email (both are stored lower-cased)."""
    ident = (identifier or "").strip().lower()
    if not ident:
        return None
    return await store.find_user(username=ident, email=ident)


async def verify_user_credentials(store: Store, identifier: str, password: str) -> Optional[Dict[str, Any]]:
    row = await get_user_by_identifier(store, identifier)
    if row is None:
        return None
    if not verify_password(password, str(row.get("password") or "")):
        return None
    return row


async def create_user(
    store: Store,
    *,
    username: str,
    email: str,
    full_name: str,
    password: str,
) -> Dict[str, Any]:
    u = normalize_username(username)
    e = normalize_email(email)
    name = (full_name or "").strip()

    missing = [
        field
        for field, value in (("username", u), ("email", e), ("fullName", name), ("password", password))
        if not (value or "").strip()
    ]
    if missing:
        raise ValidationError(
            "All fields are required",
            errors=[{"field": f, "message": "required"} for f in missing],
        )
    # Login resolves one identifier against both fields, so a username must
    # never be able to look like someone else's email.
    if "@" in u:
        raise ValidationError(
            "Username cannot contain '@'",
            errors=[{"field": "username", "message": "invalid"}],
        )
    if not _EMAIL_RE.match(e):
        raise ValidationError("Invalid email address", errors=[{"field": "email", "message": "invalid"}])

    # Check first so the common case gets a clean message; the unique indexes
    # still catch a concurrent registration racing past this point.
    existing = await store.find_user(username=u, email=e)
    if existing is not None:
        raise Conflict("User with email or username already exists")

    try:
        row = await store.insert_user(
            {
                "username": u,
                "email": e,
                "fullName": name,
                "password": hash_password(password),
                "refreshToken": None,
                "favoriteRecipes": [],
            }
        )
    except DuplicateKey:
        raise Conflict("User with email or username already exists")

    _debug(f"Registered user username={u} id={row['_id']}")
    return public_user(row)
