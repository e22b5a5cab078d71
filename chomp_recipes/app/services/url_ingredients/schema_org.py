"""Schema.org JSON-LD recipe extraction."""

import json
import logging
import re
from typing import Any, List, Optional

from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

from chomp_recipes.app.services.url_ingredients.parsing_utils import clean_text, first_text

logger = logging.getLogger(__name__)

# Bound on list/@graph nesting followed while looking for a Recipe node.
MAX_JSON_LD_DEPTH = 8

_JSON_LD_TYPE = re.compile(r"^\s*application/ld\+json", re.I)


class SchemaOrgRecipe(BaseModel):
    name: Optional[str] = None
    servings: Optional[str] = None
    ingredients: List[str] = Field(default_factory=list)


def _is_recipe_type(obj_type: Any) -> bool:
    types = obj_type if isinstance(obj_type, list) else [obj_type]
    return any(isinstance(t, str) and t.strip().lower() == "recipe" for t in types)


def _ingredient_lines(obj: dict) -> List[str]:
    raw = obj.get("recipeIngredient")
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return []
    lines = []
    for entry in raw:
        if not isinstance(entry, str):
            continue
        cleaned = entry.strip()
        if cleaned:
            lines.append(cleaned)
    return lines


def find_recipe_node(data: Any, depth: int = 0) -> Optional[dict]:
    """Depth-first search of arrays and @graph wrappers for a usable Recipe."""
    if depth > MAX_JSON_LD_DEPTH:
        logger.warning("JSON-LD nesting exceeds %d levels; search truncated", MAX_JSON_LD_DEPTH)
        return None
    if isinstance(data, list):
        for item in data:
            found = find_recipe_node(item, depth + 1)
            if found is not None:
                return found
        return None
    if not isinstance(data, dict):
        return None
    if _is_recipe_type(data.get("@type")):
        if _ingredient_lines(data):
            return data
        logger.debug("Recipe node without ingredients skipped")
    graph = data.get("@graph")
    if graph is not None:
        return find_recipe_node(graph, depth + 1)
    return None


def extract_recipe_from_schema_org(soup: BeautifulSoup) -> Optional[SchemaOrgRecipe]:
    """Extract a recipe from JSON-LD blocks embedded in an already parsed page."""
    scripts = soup.find_all("script", attrs={"type": _JSON_LD_TYPE})
    logger.debug("Found %d JSON-LD script blocks", len(scripts))

    for idx, script in enumerate(scripts):
        raw_json = script.string or script.get_text()
        if not raw_json or not raw_json.strip():
            continue
        try:
            data = json.loads(raw_json, strict=False)
        except (json.JSONDecodeError, RecursionError) as exc:
            logger.warning(
                "JSON-LD block %d failed to parse: %s (first 200 chars: %s)",
                idx,
                exc,
                raw_json[:200],
            )
            continue

        node = find_recipe_node(data)
        if node is None:
            continue

        name = node.get("name")
        recipe = SchemaOrgRecipe(
            name=first_text(name) if isinstance(name, str) else None,
            servings=first_text(node.get("recipeYield")),
            ingredients=_ingredient_lines(node),
        )
        logger.info(
            "JSON-LD block %d: recipe=%s, ingredients=%d",
            idx,
            (recipe.name or "None")[:50],
            len(recipe.ingredients),
        )
        return recipe
    return None


def format_recipe_text(recipe: SchemaOrgRecipe) -> str:
    lines = []
    if recipe.name:
        lines.append(f"Recipe Name: {recipe.name}")
    if recipe.servings:
        lines.append(f"Servings: {recipe.servings}")
    lines.append("")
    lines.append("Ingredients:")
    lines.extend(f"- {ingredient}" for ingredient in recipe.ingredients)
    return "\n".join(lines).strip()
