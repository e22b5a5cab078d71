"""Canonicalize validated extraction output into the API response shape.

Every function here is pure and idempotent: normalizing an already
normalized value returns it unchanged.
"""

from typing import Optional, Union

from chomp_recipes.app.schemas.ingredients import RecipeUrlIngredient, RecipeUrlIngredientsResponse
from chomp_recipes.app.services.url_ingredients.parsing_utils import clean_text
from chomp_recipes.app.services.url_ingredients.response_parser import (
    ExtractionPayload,
    ExtractionPayloadIngredient,
)

# Maps recognised spellings to one canonical lowercase token.
UNIT_MAPPINGS = {
    # Volume
    "tablespoon": "tbsp",
    "tablespoons": "tbsp",
    "tbsp": "tbsp",
    "tbs": "tbsp",
    "tb": "tbsp",
    "teaspoon": "tsp",
    "teaspoons": "tsp",
    "tsp": "tsp",
    "cup": "cup",
    "cups": "cup",
    "c": "cup",
    "pint": "pint",
    "pints": "pint",
    "pt": "pint",
    "quart": "quart",
    "quarts": "quart",
    "qt": "quart",
    "gallon": "gallon",
    "gallons": "gallon",
    "gal": "gallon",
    "liter": "liter",
    "liters": "liter",
    "litre": "liter",
    "litres": "liter",
    "l": "liter",
    "milliliter": "ml",
    "milliliters": "ml",
    "millilitre": "ml",
    "millilitres": "ml",
    "ml": "ml",
    "fluid ounce": "fl oz",
    "fluid ounces": "fl oz",
    "fl oz": "fl oz",
    "floz": "fl oz",
    # Weight
    "pound": "lb",
    "pounds": "lb",
    "lb": "lb",
    "lbs": "lb",
    "ounce": "oz",
    "ounces": "oz",
    "oz": "oz",
    "gram": "g",
    "grams": "g",
    "g": "g",
    "kilogram": "kg",
    "kilograms": "kg",
    "kg": "kg",
    # Count
    "clove": "clove",
    "cloves": "clove",
    "piece": "piece",
    "pieces": "piece",
    "slice": "slice",
    "slices": "slice",
    "can": "can",
    "cans": "can",
    "package": "package",
    "packages": "package",
    "pkg": "package",
    "bunch": "bunch",
    "bunches": "bunch",
    "head": "head",
    "heads": "head",
    "sprig": "sprig",
    "sprigs": "sprig",
    "stalk": "stalk",
    "stalks": "stalk",
    "stick": "stick",
    "sticks": "stick",
    "dash": "dash",
    "dashes": "dash",
    "pinch": "pinch",
    "pinches": "pinch",
    "handful": "handful",
    "handfuls": "handful",
    # Size descriptors used as units
    "small": "small",
    "medium": "medium",
    "large": "large",
}


def normalize_whitespace(value: str) -> str:
    return clean_text(value)


def _optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = normalize_whitespace(value)
    return cleaned or None


def normalize_unit(unit: Optional[str]) -> Optional[str]:
    """Map a unit to its canonical token; unknown units pass through cleaned."""
    if unit is None:
        return None
    cleaned = normalize_whitespace(unit.lower())
    if not cleaned:
        return None
    return UNIT_MAPPINGS.get(cleaned, cleaned)


def normalize_ingredient_name(name: str) -> str:
    return normalize_whitespace(name).lower()


def normalize_notes(notes: Optional[str]) -> Optional[str]:
    return _optional_text(notes)


def normalize_recipe_name(name: Optional[str]) -> Optional[str]:
    return _optional_text(name)


def normalize_servings(servings: Optional[str]) -> Optional[str]:
    return _optional_text(servings)


def normalize_ingredient(
    ingredient: Union[ExtractionPayloadIngredient, RecipeUrlIngredient],
) -> RecipeUrlIngredient:
    return RecipeUrlIngredient(
        name=normalize_ingredient_name(ingredient.name),
        quantity=ingredient.quantity,
        unit=normalize_unit(ingredient.unit),
        notes=normalize_notes(ingredient.notes),
        category=ingredient.category,
    )


def normalize_extraction(extraction: ExtractionPayload, source_url: str) -> RecipeUrlIngredientsResponse:
    return RecipeUrlIngredientsResponse(
        source_url=source_url,
        recipe_name=normalize_recipe_name(extraction.recipe_name),
        servings=normalize_servings(extraction.servings),
        ingredients=[normalize_ingredient(ingredient) for ingredient in extraction.ingredients],
    )
