"""Parse and validate the untrusted JSON returned by the extraction service."""

import json
import logging
import math
import re
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr, ValidationError, field_validator

from chomp_recipes.app.schemas.ingredients import IngredientCategory

logger = logging.getLogger(__name__)

ExtractionParseErrorCode = Literal["json_parse_error", "schema_validation_error", "empty_response"]

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$", re.I)


class ExtractionParseError(Exception):
    def __init__(self, message: str, code: ExtractionParseErrorCode) -> None:
        super().__init__(message)
        self.code = code


class ExtractionPayloadIngredient(BaseModel):
    name: StrictStr
    quantity: Optional[Union[StrictInt, StrictFloat]]
    unit: Optional[StrictStr]
    notes: Optional[StrictStr]
    category: IngredientCategory

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Ingredient name is required")
        return value

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, value: Optional[float]) -> Optional[float]:
        if value is None:
            return value
        try:
            finite = math.isfinite(value)
        except OverflowError:
            finite = False
        if not finite:
            raise ValueError("Quantity must be a finite number")
        if value < 0:
            raise ValueError("Quantity must not be negative")
        return value


class ExtractionPayload(BaseModel):
    recipe_name: Optional[StrictStr] = Field(alias="recipeName")
    servings: Optional[StrictStr]
    ingredients: List[ExtractionPayloadIngredient]


def strip_code_fence(content: str) -> str:
    """Remove one markdown code fence wrapping the whole payload, if present."""
    match = _CODE_FENCE_RE.match(content.strip())
    if match:
        return match.group(1).strip()
    return content.strip()


def _format_issues(exc: ValidationError) -> str:
    issues = []
    for err in exc.errors():
        path = ".".join(str(part) for part in err.get("loc", ()))
        issues.append(f"{path or '(root)'}: {err.get('msg', 'Invalid value')}")
    return "; ".join(issues)


def parse_extraction_response(raw: Optional[str]) -> ExtractionPayload:
    """Validate the shape of the service's reply. Usability is not checked here."""
    if raw is None or not raw.strip():
        raise ExtractionParseError("Extraction service returned an empty response", "empty_response")

    cleaned = strip_code_fence(raw)
    try:
        parsed = json.loads(cleaned)
    except (json.JSONDecodeError, RecursionError) as exc:
        logger.warning("Extraction response is not valid JSON: %s (first 200 chars: %s)", exc, cleaned[:200])
        raise ExtractionParseError(
            f"Failed to parse extraction response as JSON: {exc}", "json_parse_error"
        ) from exc

    try:
        return ExtractionPayload.model_validate(parsed)
    except ValidationError as exc:
        issues = _format_issues(exc)
        logger.warning("Extraction response failed schema validation: %s", issues)
        raise ExtractionParseError(
            f"Extraction response failed schema validation: {issues}", "schema_validation_error"
        ) from exc


def has_ingredients(extraction: ExtractionPayload) -> bool:
    return len(extraction.ingredients) > 0
