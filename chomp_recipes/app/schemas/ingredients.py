"""Wire models for the recipe URL ingredients endpoint."""

import enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class IngredientCategory(str, enum.Enum):
    PRODUCE = "Produce"
    DELI = "Deli"
    DAIRY = "Dairy"
    BAKERY = "Bakery"
    FROZEN = "Frozen"
    PANTRY = "Pantry"
    BEVERAGES = "Beverages"
    SNACKS = "Snacks"
    HEALTH_AND_BEAUTY = "Health & Beauty"
    HOUSEHOLD = "Household"
    OTHER = "Other"


class RecipeUrlIngredientsRequest(BaseModel):
    url: str

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("URL is required")
        return value


class RecipeUrlIngredient(BaseModel):
    name: str = Field(min_length=1)
    quantity: Optional[float] = None
    unit: Optional[str] = None
    notes: Optional[str] = None
    category: IngredientCategory

    model_config = ConfigDict(use_enum_values=True)


class RecipeUrlIngredientsResponse(BaseModel):
    source_url: str = Field(alias="sourceUrl")
    recipe_name: Optional[str] = Field(None, alias="recipeName")
    servings: Optional[str] = None
    ingredients: List[RecipeUrlIngredient] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorDetail
