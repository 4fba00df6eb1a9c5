from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from recipe_platform.errors import ValidationError
from recipe_platform.models import Ingredient


_INGREDIENT_FIELDS = ("name", "quantity", "unit")


def clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _ingredient_value(value: Any) -> str:
    # Quantities often arrive as numbers ("2", 2, 0.5); everything is stored as text.
    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return ""


def parse_ingredients(raw: Any) -> List[Ingredient]:
    """Parse + structurally validate ingredients.

    Accepts a list of objects, or the same list JSON-encoded (multipart forms
    can only carry strings). Every entry needs non-blank name, quantity, unit.
    """
    data = raw
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except ValueError:
            raise ValidationError("Invalid ingredients format")

    if not isinstance(data, list) or not data:
        raise ValidationError("Ingredients must be a non-empty list")

    out: List[Ingredient] = []
    errors: List[Dict[str, Any]] = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            errors.append({"index": i, "message": "ingredient must be an object"})
            continue
        values = {k: _ingredient_value(item.get(k)) for k in _INGREDIENT_FIELDS}
        missing = [k for k, v in values.items() if not v]
        if missing:
            errors.append({"index": i, "missing": missing})
            continue
        out.append(Ingredient(**values))

    if errors:
        raise ValidationError("Each ingredient needs a name, quantity and unit", errors=errors)
    return out


def validate_new_recipe(
    *,
    name: Optional[str],
    instructions: Optional[str],
    ingredients: Any,
    has_thumbnail: bool,
) -> Dict[str, Any]:
    """Return the cleaned fields for a new recipe (everything except the image URL)."""
    n = clean_text(name)
    ins = clean_text(instructions)
    if not n or not ins or ingredients in (None, "", []):
        raise ValidationError("Name, instructions, and ingredients are required")
    if not has_thumbnail:
        raise ValidationError("Thumbnail image file is required")

    return {
        "name": n,
        "instructions": ins,
        "ingredients": [ing.as_dict() for ing in parse_ingredients(ingredients)],
    }


def build_recipe_update(
    *,
    name: Optional[str] = None,
    instructions: Optional[str] = None,
    ingredients: Any = None,
) -> Dict[str, Any]:
    """Only supplied (non-blank) fields end up in the update."""
    changes: Dict[str, Any] = {}
    n = clean_text(name)
    if n:
        changes["name"] = n
    ins = clean_text(instructions)
    if ins:
        changes["instructions"] = ins
    if ingredients not in (None, ""):
        changes["ingredients"] = [ing.as_dict() for ing in parse_ingredients(ingredients)]
    return changes
