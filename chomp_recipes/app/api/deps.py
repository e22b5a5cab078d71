from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from chomp_recipes.app.core.config import get_settings
from chomp_recipes.app.schemas.auth import CurrentUser
from chomp_recipes.app.services.url_ingredients.errors import IngredientsApiError
from chomp_recipes.app.services.url_ingredients.pipeline import IngredientsPipeline

UNAUTHORIZED_MESSAGE = "Missing or invalid authentication token."

security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    if credentials is None:
        raise IngredientsApiError("unauthorized", UNAUTHORIZED_MESSAGE)
    settings = get_settings()
    try:
        payload = jwt.decode(credentials.credentials, settings.auth_secret_key, algorithms=[settings.auth_algorithm])
    except JWTError:
        raise IngredientsApiError("unauthorized", UNAUTHORIZED_MESSAGE)
    sub = payload.get("sub")
    if sub is None or str(sub).strip() == "":
        raise IngredientsApiError("unauthorized", UNAUTHORIZED_MESSAGE)
    return CurrentUser(id=str(sub), session_id=payload.get("sid"))


def get_pipeline(request: Request) -> IngredientsPipeline:
    return request.app.state.pipeline
