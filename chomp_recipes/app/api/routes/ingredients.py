import logging
import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from chomp_recipes.app.api.deps import get_current_user, get_pipeline
from chomp_recipes.app.schemas.auth import CurrentUser
from chomp_recipes.app.schemas.ingredients import (
    ErrorResponse,
    RecipeUrlIngredientsRequest,
    RecipeUrlIngredientsResponse,
)
from chomp_recipes.app.services.url_ingredients.errors import build_error_response, get_status_code_for_error
from chomp_recipes.app.services.url_ingredients.pipeline import IngredientsPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recipes", tags=["ingredients"])


@router.post(
    "/ingredients-from-url",
    response_model=RecipeUrlIngredientsResponse,
    responses={code: {"model": ErrorResponse} for code in (400, 401, 404, 408, 413, 422, 429, 500)},
)
async def ingredients_from_url(
    payload: RecipeUrlIngredientsRequest,
    current_user: CurrentUser = Depends(get_current_user),
    pipeline: IngredientsPipeline = Depends(get_pipeline),
):
    request_id = str(uuid.uuid4())
    outcome = await pipeline.run(current_user.id, payload.url, request_id=request_id)
    headers = outcome.rate_limit.headers() if outcome.rate_limit else {}

    if outcome.ok and outcome.response is not None:
        return JSONResponse(
            status_code=200,
            content=outcome.response.model_dump(by_alias=True),
            headers=headers,
        )

    code = outcome.error_code or "server_error"
    return JSONResponse(
        status_code=get_status_code_for_error(code),
        content=build_error_response(code, outcome.error_message or ""),
        headers=headers,
    )
