from __future__ import annotations

from typing import Any, Dict, List, Optional

from recipe_platform.auth.crud import owner_summary
from recipe_platform.db import Store
from recipe_platform.errors import Conflict, Forbidden, InternalError, NotFound, ValidationError


def _debug(msg: str) -> None:
    print(f"[recipes] {msg}")


def ensure_owner(recipe: Dict[str, Any], user: Dict[str, Any], action: str) -> None:
    """Ownership guard: every mutating recipe operation goes through here."""
    if str(recipe.get("postedBy")) != str(user.get("_id")):
        raise Forbidden(f"You can only {action} your own recipes")


async def populate_owners(store: Store, recipes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Replace each `postedBy` id with {_id, username, fullName} (None if the owner is gone)."""
    owners = await store.get_users(r["postedBy"] for r in recipes)
    out = []
    for r in recipes:
        d = dict(r)
        owner = owners.get(str(r["postedBy"]))
        d["postedBy"] = owner_summary(owner) if owner else None
        out.append(d)
    return out


async def _populated(store: Store, recipe: Dict[str, Any]) -> Dict[str, Any]:
    return (await populate_owners(store, [recipe]))[0]


async def get_recipe_or_404(store: Store, recipe_id: str) -> Dict[str, Any]:
    recipe = await store.get_recipe(recipe_id)
    if recipe is None:
        raise NotFound("Recipe not found")
    return recipe


async def get_owned_recipe(store: Store, recipe_id: str, user: Dict[str, Any], action: str) -> Dict[str, Any]:
    recipe = await get_recipe_or_404(store, recipe_id)
    ensure_owner(recipe, user, action)
    return recipe


# -----------------------------
# Reads
# -----------------------------


async def list_recipes(store: Store, *, search: Optional[str] = None) -> List[Dict[str, Any]]:
    needle = (search or "").strip() or None
    return await populate_owners(store, await store.find_recipes(name_contains=needle))


async def list_user_recipes(store: Store, user: Dict[str, Any]) -> List[Dict[str, Any]]:
    return await populate_owners(store, await store.find_recipes(posted_by=str(user["_id"])))


async def get_recipe(store: Store, recipe_id: str) -> Dict[str, Any]:
    return await _populated(store, await get_recipe_or_404(store, recipe_id))


# -----------------------------
# Writes
# -----------------------------


async def create_recipe(
    store: Store,
    user: Dict[str, Any],
    fields: Dict[str, Any],
    *,
    thumbnail_url: str,
) -> Dict[str, Any]:
    """`fields` must come from validate_new_recipe()."""
    doc = {
        "name": fields["name"],
        "instructions": fields["instructions"],
        "ingredients": fields["ingredients"],
        "thumbnailImage": thumbnail_url,
        "postedBy": str(user["_id"]),
    }
    recipe = await store.insert_recipe(doc)
    created = await store.get_recipe(recipe["_id"])
    if created is None:
        raise InternalError("Something went wrong while creating the recipe")
    _debug(f"Created recipe id={created['_id']} by user_id={user['_id']}")
    return await _populated(store, created)


async def update_recipe(store: Store, recipe: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
    """Apply a partial update to an already ownership-checked recipe."""
    updated = await store.update_recipe(recipe["_id"], changes)
    if updated is None:
        # Deleted between the ownership check and the write.
        raise NotFound("Recipe not found")
    return await _populated(store, updated)


async def delete_recipe(store: Store, recipe_id: str, user: Dict[str, Any]) -> None:
    recipe = await get_owned_recipe(store, recipe_id, user, "delete")
    pulled = await store.pull_favorite(recipe["_id"])
    await store.delete_recipe(recipe["_id"])
    _debug(f"Deleted recipe id={recipe['_id']} (removed from {pulled} favorites lists)")


# -----------------------------
# Favorites
# -----------------------------


async def _fresh_user(store: Store, user: Dict[str, Any]) -> Dict[str, Any]:
    row = await store.get_user(str(user["_id"]))
    if row is None:
        raise NotFound("User not found")
    return row


async def add_favorite(store: Store, user: Dict[str, Any], recipe_id: str) -> None:
    recipe = await get_recipe_or_404(store, recipe_id)
    row = await _fresh_user(store, user)
    favorites = list(row.get("favoriteRecipes") or [])
    if recipe["_id"] in favorites:
        raise Conflict("Recipe is already in favorites", status_code=400)
    favorites.append(recipe["_id"])
    await store.update_user(row["_id"], {"favoriteRecipes": favorites})


async def remove_favorite(store: Store, user: Dict[str, Any], recipe_id: str) -> None:
    row = await _fresh_user(store, user)
    favorites = list(row.get("favoriteRecipes") or [])
    if recipe_id not in favorites:
        if await store.get_recipe(recipe_id) is None:
            raise NotFound("Recipe not found")
        raise ValidationError("Recipe is not in favorites")
    # Removal works even if the recipe itself is gone (dangling reference).
    await store.update_user(row["_id"], {"favoriteRecipes": [f for f in favorites if f != recipe_id]})


async def list_favorites(store: Store, user: Dict[str, Any]) -> List[Dict[str, Any]]:
    row = await _fresh_user(store, user)
    favorites = row.get("favoriteRecipes") or []
    if not favorites:
        return []
    # Unresolvable ids simply don't come back from the store.
    return await populate_owners(store, await store.find_recipes(ids=favorites))
