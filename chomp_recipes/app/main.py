import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chomp_recipes.app.api.routes import api_router
from chomp_recipes.app.core.config import get_settings
from chomp_recipes.app.services.url_ingredients.errors import (
    GENERIC_SERVER_ERROR_MESSAGE,
    IngredientsApiError,
    build_error_response,
    error_code_for_status,
    get_status_code_for_error,
)
from chomp_recipes.app.services.url_ingredients.extraction_client import ExtractionClient
from chomp_recipes.app.services.url_ingredients.html_fetcher import HtmlFetcher
from chomp_recipes.app.services.url_ingredients.pipeline import IngredientsPipeline
from chomp_recipes.app.services.url_ingredients.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def _error_response(code: str, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=get_status_code_for_error(code),
        content=build_error_response(code, message),
        headers=headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", []) if part is not None)
        msg = err.get("msg", "Invalid value")
        messages.append(f"{loc}: {msg}" if loc else msg)
    return _error_response("invalid_url", "; ".join(messages) or "Invalid request payload.")


async def ingredients_api_exception_handler(request: Request, exc: IngredientsApiError):
    return _error_response(exc.code, exc.message)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    code = error_code_for_status(exc.status_code)
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return _error_response(code, message, headers=getattr(exc, "headers", None))


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response("server_error", GENERIC_SERVER_ERROR_MESSAGE)


def create_app(
    rate_limiter: Optional[RateLimiter] = None,
    fetcher: Optional[HtmlFetcher] = None,
    extraction_client: Optional[ExtractionClient] = None,
    pipeline: Optional[IngredientsPipeline] = None,
) -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    # httpx logs full request URLs at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    app = FastAPI(title="Chomp Recipes", version="0.1.0")
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IngredientsApiError, ingredients_api_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.include_router(api_router)

    if pipeline is None:
        pipeline = IngredientsPipeline(
            rate_limiter=rate_limiter or RateLimiter.from_settings(),
            fetcher=fetcher or HtmlFetcher.from_settings(),
            extraction_client=extraction_client or ExtractionClient.from_settings(),
        )
    app.state.pipeline = pipeline
    app.state.rate_limiter = pipeline.rate_limiter

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.on_event("startup")
    async def startup_event() -> None:
        app.state.rate_limiter.start()
        logger.info(
            "Rate limiter started (limit=%d, window=%ss)",
            app.state.rate_limiter.max_requests,
            app.state.rate_limiter.window_seconds,
        )

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        await app.state.rate_limiter.stop()

    return app


app = create_app()
