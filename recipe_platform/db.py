"""Document store for users and recipes.

Two implementations share one async interface:

- `MongoStore`: MongoDB via Motor (production).
- `InMemoryStore`: dict-backed, same semantics (dev + tests).

Documents are plain dicts using the API's field names (`_id`, `fullName`,
`favoriteRecipes`, `postedBy`, ...). Ids always leave the store as strings;
MongoStore converts to/from ObjectId at the boundary. Every write is a
single-document operation, so concurrent writers are last-writer-wins.
"""

from __future__ import annotations

import copy
import re
from typing import Any, Dict, Iterable, List, Optional, Protocol

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from recipe_platform.config import Config
from recipe_platform.util.time import utcnow


def _debug(msg: str) -> None:
    print(f"[store] {msg}")


class DuplicateKey(Exception):
    """A unique field (username/email) is already taken."""


def new_id() -> str:
    return str(ObjectId())


def _valid_id(value: Any) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value)


class Store(Protocol):
    """Operations the services need from the document database."""

    kind: str

    async def ensure_indexes(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def insert_user(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def get_users(self, user_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        ...

    async def find_user(
        self, *, username: str | None = None, email: str | None = None
    ) -> Optional[Dict[str, Any]]:
        ...

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ...

    async def pull_favorite(self, recipe_id: str) -> int:
        ...

    async def insert_recipe(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def get_recipe(self, recipe_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def find_recipes(
        self,
        *,
        name_contains: str | None = None,
        posted_by: str | None = None,
        ids: Optional[Iterable[str]] = None,
    ) -> List[Dict[str, Any]]:
        ...

    async def update_recipe(self, recipe_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        ...

    async def delete_recipe(self, recipe_id: str) -> bool:
        ...


def _name_matches(name: str, needle: str) -> bool:
    return re.search(re.escape(needle), name or "", flags=re.IGNORECASE) is not None


def _newest_first(docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    # ObjectIds grow monotonically within a process, so they break createdAt ties
    # the same way MongoStore's secondary sort on _id does.
    return sorted(docs, key=lambda d: (d["createdAt"], d["_id"]), reverse=True)


class InMemoryStore:
    """Simple in-memory document store for development and tests."""

    kind = "memory"

    def __init__(self) -> None:
        self.users: Dict[str, Dict[str, Any]] = {}
        self.recipes: Dict[str, Dict[str, Any]] = {}

    async def ensure_indexes(self) -> None:
        return None

    async def close(self) -> None:
        return None

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.users.clear()
        self.recipes.clear()

    # -----------------------------
    # Users
    # -----------------------------

    async def insert_user(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        for existing in self.users.values():
            if existing["username"] == doc.get("username"):
                raise DuplicateKey("username")
            if existing["email"] == doc.get("email"):
                raise DuplicateKey("email")
        now = utcnow()
        stored = copy.deepcopy(doc)
        stored["_id"] = new_id()
        stored.setdefault("favoriteRecipes", [])
        stored.setdefault("refreshToken", None)
        stored["createdAt"] = now
        stored["updatedAt"] = now
        self.users[stored["_id"]] = stored
        return copy.deepcopy(stored)

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        doc = self.users.get(user_id) if _valid_id(user_id) else None
        return copy.deepcopy(doc) if doc is not None else None

    async def get_users(self, user_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        out: Dict[str, Dict[str, Any]] = {}
        for uid in set(user_ids):
            doc = self.users.get(uid)
            if doc is not None:
                out[uid] = copy.deepcopy(doc)
        return out

    async def find_user(
        self, *, username: str | None = None, email: str | None = None
    ) -> Optional[Dict[str, Any]]:
        if not username and not email:
            return None
        for doc in self.users.values():
            if (username and doc["username"] == username) or (email and doc["email"] == email):
                return copy.deepcopy(doc)
        return None

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        doc = self.users.get(user_id) if _valid_id(user_id) else None
        if doc is None:
            return None
        update = copy.deepcopy(fields)
        update.pop("_id", None)
        doc.update(update)
        doc["updatedAt"] = utcnow()
        return copy.deepcopy(doc)

    async def pull_favorite(self, recipe_id: str) -> int:
        modified = 0
        for doc in self.users.values():
            favs = doc.get("favoriteRecipes") or []
            if recipe_id in favs:
                doc["favoriteRecipes"] = [f for f in favs if f != recipe_id]
                doc["updatedAt"] = utcnow()
                modified += 1
        return modified

    # -----------------------------
    # Recipes
    # -----------------------------

    async def insert_recipe(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        now = utcnow()
        stored = copy.deepcopy(doc)
        stored["_id"] = new_id()
        stored.setdefault("postedAt", now)
        stored["createdAt"] = now
        stored["updatedAt"] = now
        self.recipes[stored["_id"]] = stored
        return copy.deepcopy(stored)

    async def get_recipe(self, recipe_id: str) -> Optional[Dict[str, Any]]:
        doc = self.recipes.get(recipe_id) if _valid_id(recipe_id) else None
        return copy.deepcopy(doc) if doc is not None else None

    async def find_recipes(
        self,
        *,
        name_contains: str | None = None,
        posted_by: str | None = None,
        ids: Optional[Iterable[str]] = None,
    ) -> List[Dict[str, Any]]:
        wanted = set(ids) if ids is not None else None
        docs = []
        for doc in self.recipes.values():
            if wanted is not None and doc["_id"] not in wanted:
                continue
            if posted_by is not None and doc["postedBy"] != posted_by:
                continue
            if name_contains and not _name_matches(doc["name"], name_contains):
                continue
            docs.append(copy.deepcopy(doc))
        return _newest_first(docs)

    async def update_recipe(self, recipe_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        doc = self.recipes.get(recipe_id) if _valid_id(recipe_id) else None
        if doc is None:
            return None
        update = copy.deepcopy(fields)
        # Ownership is immutable.
        update.pop("postedBy", None)
        update.pop("_id", None)
        doc.update(update)
        doc["updatedAt"] = utcnow()
        return copy.deepcopy(doc)

    async def delete_recipe(self, recipe_id: str) -> bool:
        if not _valid_id(recipe_id):
            return False
        return self.recipes.pop(recipe_id, None) is not None


# -----------------------------
# MongoDB
# -----------------------------


def _oid(value: str) -> Optional[ObjectId]:
    return ObjectId(value) if _valid_id(value) else None


def _user_out(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    d = dict(doc)
    d["_id"] = str(d["_id"])
    d["favoriteRecipes"] = [str(x) for x in (d.get("favoriteRecipes") or [])]
    d.setdefault("refreshToken", None)
    return d


def _recipe_out(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    d = dict(doc)
    d["_id"] = str(d["_id"])
    d["postedBy"] = str(d["postedBy"])
    return d


def _user_in(fields: Dict[str, Any]) -> Dict[str, Any]:
    d = dict(fields)
    if "favoriteRecipes" in d:
        d["favoriteRecipes"] = [ObjectId(x) for x in d["favoriteRecipes"] if _valid_id(x)]
    return d


class MongoStore:
    """Motor-backed implementation (collections `users` and `recipes`)."""

    kind = "mongodb"

    def __init__(self, uri: str, db_name: str, *, client: Any = None) -> None:
        """`client` takes any Motor-compatible client instead of connecting to `uri`."""
        if client is None:
            if not uri:
                raise ValueError("MONGODB_URI is required for MongoStore")
            # tz_aware so datetimes round-trip as UTC-aware values like InMemoryStore's.
            client = AsyncIOMotorClient(uri, tz_aware=True)
        self.client = client
        self.db = self.client[db_name]
        self.users = self.db["users"]
        self.recipes = self.db["recipes"]

    async def ensure_indexes(self) -> None:
        await self.users.create_index([("username", ASCENDING)], unique=True)
        await self.users.create_index([("email", ASCENDING)], unique=True)
        await self.users.create_index([("favoriteRecipes", ASCENDING)])
        await self.recipes.create_index([("name", ASCENDING)])
        await self.recipes.create_index([("postedBy", ASCENDING), ("createdAt", DESCENDING)])
        _debug("Indexes ensured")

    async def close(self) -> None:
        # Motor's close() is not a coroutine.
        self.client.close()

    # -----------------------------
    # Users
    # -----------------------------

    async def insert_user(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        now = utcnow()
        stored = _user_in(doc)
        stored.pop("_id", None)
        stored.setdefault("favoriteRecipes", [])
        stored.setdefault("refreshToken", None)
        stored["createdAt"] = now
        stored["updatedAt"] = now
        try:
            res = await self.users.insert_one(stored)
        except DuplicateKeyError as e:
            raise DuplicateKey(str(e)) from e
        stored["_id"] = res.inserted_id
        return _user_out(stored)  # type: ignore[return-value]

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        oid = _oid(user_id)
        if oid is None:
            return None
        return _user_out(await self.users.find_one({"_id": oid}))

    async def get_users(self, user_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        oids = [ObjectId(u) for u in set(user_ids) if _valid_id(u)]
        if not oids:
            return {}
        out: Dict[str, Dict[str, Any]] = {}
        async for doc in self.users.find({"_id": {"$in": oids}}):
            u = _user_out(doc)
            out[u["_id"]] = u  # type: ignore[index]
        return out

    async def find_user(
        self, *, username: str | None = None, email: str | None = None
    ) -> Optional[Dict[str, Any]]:
        clauses: List[Dict[str, Any]] = []
        if username:
            clauses.append({"username": username})
        if email:
            clauses.append({"email": email})
        if not clauses:
            return None
        return _user_out(await self.users.find_one({"$or": clauses}))

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        oid = _oid(user_id)
        if oid is None:
            return None
        update = _user_in(fields)
        update.pop("_id", None)
        update["updatedAt"] = utcnow()
        doc = await self.users.find_one_and_update(
            {"_id": oid},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
        return _user_out(doc)

    async def pull_favorite(self, recipe_id: str) -> int:
        oid = _oid(recipe_id)
        if oid is None:
            return 0
        res = await self.users.update_many(
            {"favoriteRecipes": oid},
            {"$pull": {"favoriteRecipes": oid}, "$set": {"updatedAt": utcnow()}},
        )
        return int(res.modified_count or 0)

    # -----------------------------
    # Recipes
    # -----------------------------

    async def insert_recipe(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        now = utcnow()
        stored = dict(doc)
        stored.pop("_id", None)
        stored["postedBy"] = ObjectId(stored["postedBy"])
        stored.setdefault("postedAt", now)
        stored["createdAt"] = now
        stored["updatedAt"] = now
        res = await self.recipes.insert_one(stored)
        stored["_id"] = res.inserted_id
        return _recipe_out(stored)  # type: ignore[return-value]

    async def get_recipe(self, recipe_id: str) -> Optional[Dict[str, Any]]:
        oid = _oid(recipe_id)
        if oid is None:
            return None
        return _recipe_out(await self.recipes.find_one({"_id": oid}))

    async def find_recipes(
        self,
        *,
        name_contains: str | None = None,
        posted_by: str | None = None,
        ids: Optional[Iterable[str]] = None,
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {}
        if name_contains:
            query["name"] = {"$regex": re.escape(name_contains), "$options": "i"}
        if posted_by is not None:
            oid = _oid(posted_by)
            if oid is None:
                return []
            query["postedBy"] = oid
        if ids is not None:
            query["_id"] = {"$in": [ObjectId(i) for i in ids if _valid_id(i)]}

        cursor = self.recipes.find(query).sort([("createdAt", DESCENDING), ("_id", DESCENDING)])
        return [_recipe_out(d) for d in await cursor.to_list(length=None)]  # type: ignore[misc]

    async def update_recipe(self, recipe_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        oid = _oid(recipe_id)
        if oid is None:
            return None
        update = dict(fields)
        # Ownership is immutable.
        update.pop("postedBy", None)
        update.pop("_id", None)
        update["updatedAt"] = utcnow()
        doc = await self.recipes.find_one_and_update(
            {"_id": oid},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
        return _recipe_out(doc)

    async def delete_recipe(self, recipe_id: str) -> bool:
        oid = _oid(recipe_id)
        if oid is None:
            return False
        res = await self.recipes.delete_one({"_id": oid})
        return int(res.deleted_count or 0) > 0


def open_store(cfg: Config) -> Store:
    """Pick the store from config: MongoDB when MONGODB_URI is set, else in-memory."""
    uri = (cfg.MONGODB_URI or "").strip()
    if not uri:
        _debug("MONGODB_URI not set; using in-memory store (data is lost on restart)")
        return InMemoryStore()
    _debug(f"Using MongoDB database {cfg.MONGODB_DB_NAME!r}")
    return MongoStore(uri, cfg.MONGODB_DB_NAME)
