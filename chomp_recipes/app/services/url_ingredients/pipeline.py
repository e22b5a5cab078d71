"""Orchestration of the recipe URL ingredients pipeline.

rate limit gate -> URL validation -> bounded fetch -> content extraction ->
external extraction call -> response validation -> zero-ingredient check ->
normalization.

Stages report tagged outcomes or raise their own typed errors; this module is
the only place that translates them into the outward error codes.
"""

import asyncio
import logging
import uuid
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel

from chomp_recipes.app.schemas.ingredients import RecipeUrlIngredientsResponse
from chomp_recipes.app.services.url_ingredients.content_extractor import extract_content
from chomp_recipes.app.services.url_ingredients.errors import GENERIC_SERVER_ERROR_MESSAGE, ApiErrorCode
from chomp_recipes.app.services.url_ingredients.extraction_client import (
    ExtractionClient,
    ExtractionClientError,
)
from chomp_recipes.app.services.url_ingredients.html_fetcher import HtmlFetcher
from chomp_recipes.app.services.url_ingredients.models import (
    ContentExtractResult,
    FetchResult,
    UrlSafetyResult,
)
from chomp_recipes.app.services.url_ingredients.normalizer import normalize_extraction
from chomp_recipes.app.services.url_ingredients.rate_limiter import RateLimitDecision, RateLimiter
from chomp_recipes.app.services.url_ingredients.request_log import (
    RequestMetrics,
    Timer,
    TokenUsage,
    extract_url_host,
    log_request,
)
from chomp_recipes.app.services.url_ingredients.response_parser import (
    ExtractionParseError,
    has_ingredients,
    parse_extraction_response,
)
from chomp_recipes.app.services.url_ingredients.url_validation import validate_url

logger = logging.getLogger(__name__)

UrlValidator = Callable[[str], Awaitable[UrlSafetyResult]]
ContentExtractor = Callable[[str, str], ContentExtractResult]

RATE_LIMITED_MESSAGE = "Too many requests. Please try again later."
NO_INGREDIENTS_MESSAGE = "No ingredients found in page"
FETCH_FAILED_MESSAGE = "Failed to fetch the recipe page"
EXTRACTION_FAILED_MESSAGE = "Ingredient extraction failed"


class PipelineOutcome(BaseModel):
    ok: bool
    response: Optional[RecipeUrlIngredientsResponse] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    rate_limit: Optional[RateLimitDecision] = None
    metrics: Optional[RequestMetrics] = None

    @classmethod
    def failure(cls, code: ApiErrorCode, message: str) -> "PipelineOutcome":
        return cls(ok=False, error_code=code, error_message=message)


def map_fetch_error(result: FetchResult) -> ApiErrorCode:
    code = result.error_code
    if code in ("fetch_timeout", "too_many_redirects"):
        return "fetch_timeout"
    if code == "content_too_large":
        return "content_too_large"
    if code == "ssrf_blocked":
        return "invalid_url"
    if code == "invalid_content_type":
        return "unsupported_content"
    if code == "fetch_failed" and result.status_code in (404, 410):
        return "not_found"
    return "server_error"


def map_content_error(code: Optional[str]) -> ApiErrorCode:
    if code in ("parse_failed", "no_content"):
        return "unsupported_content"
    return "server_error"


def map_extraction_error(code: str) -> ApiErrorCode:
    if code == "rate_limit_error":
        return "rate_limited"
    if code == "timeout_error":
        return "fetch_timeout"
    return "server_error"


class IngredientsPipeline:
    def __init__(
        self,
        rate_limiter: RateLimiter,
        fetcher: HtmlFetcher,
        extraction_client: ExtractionClient,
        url_validator: UrlValidator = validate_url,
        content_extractor: ContentExtractor = extract_content,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.fetcher = fetcher
        self.extraction_client = extraction_client
        self.url_validator = url_validator
        self.content_extractor = content_extractor

    async def run(self, identity: str, raw_url: str, request_id: Optional[str] = None) -> PipelineOutcome:
        timer = Timer()
        metrics = RequestMetrics(request_id=request_id or str(uuid.uuid4()), user_id=identity)

        decision = await self.rate_limiter.check(identity)
        if not decision.allowed:
            outcome = PipelineOutcome.failure("rate_limited", RATE_LIMITED_MESSAGE)
        else:
            try:
                outcome = await self._run_stages(raw_url, metrics)
            except Exception:  # noqa: BLE001
                logger.exception("Unexpected pipeline failure (request_id=%s)", metrics.request_id)
                outcome = PipelineOutcome.failure("server_error", GENERIC_SERVER_ERROR_MESSAGE)

        outcome.rate_limit = decision
        metrics.total_latency_ms = timer.elapsed_ms()
        metrics.status = "success" if outcome.ok else "error"
        metrics.error_code = outcome.error_code
        outcome.metrics = metrics
        log_request(metrics)
        return outcome

    async def _run_stages(self, raw_url: str, metrics: RequestMetrics) -> PipelineOutcome:
        source_url = raw_url.strip()
        metrics.url_host = extract_url_host(source_url)

        safety = await self.url_validator(source_url)
        if not safety.ok:
            return PipelineOutcome.failure("invalid_url", safety.reason or "Invalid URL.")

        fetch_timer = Timer()
        fetched = await self.fetcher.fetch(safety.url)
        metrics.fetch_latency_ms = fetch_timer.elapsed_ms()
        if not fetched.ok:
            code = map_fetch_error(fetched)
            logger.info(
                "Fetch failed (request_id=%s, code=%s, status=%s): %s",
                metrics.request_id,
                fetched.error_code,
                fetched.status_code,
                fetched.error_message,
            )
            message = FETCH_FAILED_MESSAGE if code == "server_error" else fetched.error_message
            return PipelineOutcome.failure(code, message or FETCH_FAILED_MESSAGE)

        content = await asyncio.to_thread(
            self.content_extractor, fetched.html, fetched.final_url or safety.url
        )
        if not content.ok:
            return PipelineOutcome.failure(
                map_content_error(content.error_code),
                content.error_message or "No extractable content found in page",
            )
        logger.info(
            "Content extracted (request_id=%s, strategy=%s, chars=%d)",
            metrics.request_id,
            content.strategy,
            len(content.content or ""),
        )

        try:
            call = await self.extraction_client.extract_ingredients(
                content.content or "", request_id=metrics.request_id
            )
        except ExtractionClientError as exc:
            code = map_extraction_error(exc.code)
            logger.warning(
                "Extraction call failed (request_id=%s, code=%s): %s",
                metrics.request_id,
                exc.code,
                exc,
            )
            message = EXTRACTION_FAILED_MESSAGE if code == "server_error" else str(exc)
            return PipelineOutcome.failure(code, message)
        metrics.ai_latency_ms = call.latency_ms
        metrics.token_usage = TokenUsage(input=call.input_tokens, output=call.output_tokens)

        try:
            extraction = parse_extraction_response(call.content)
        except ExtractionParseError as exc:
            return PipelineOutcome.failure("parse_failed", str(exc))

        if not has_ingredients(extraction):
            return PipelineOutcome.failure("unsupported_content", NO_INGREDIENTS_MESSAGE)

        return PipelineOutcome(ok=True, response=normalize_extraction(extraction, source_url))
