"""Recipe URL ingredients package.

Turns an untrusted recipe URL into a normalized ingredient list: SSRF-safe
validation, a bounded fetch, schema.org JSON-LD or readability content
extraction, one call to the external extraction service, validation of its
JSON and normalization.
"""

from chomp_recipes.app.services.url_ingredients.content_extractor import extract_content
from chomp_recipes.app.services.url_ingredients.errors import (
    ERROR_STATUS_CODES,
    IngredientsApiError,
    build_error_response,
    get_status_code_for_error,
)
from chomp_recipes.app.services.url_ingredients.extraction_client import (
    ExtractionClient,
    ExtractionClientError,
)
from chomp_recipes.app.services.url_ingredients.html_fetcher import HtmlFetcher
from chomp_recipes.app.services.url_ingredients.models import (
    ContentExtractResult,
    ExtractionCallResult,
    FetchResult,
    UrlSafetyResult,
)
from chomp_recipes.app.services.url_ingredients.normalizer import normalize_extraction
from chomp_recipes.app.services.url_ingredients.pipeline import IngredientsPipeline, PipelineOutcome
from chomp_recipes.app.services.url_ingredients.rate_limiter import (
    MemoryRateLimitStore,
    RateLimitDecision,
    RateLimiter,
)
from chomp_recipes.app.services.url_ingredients.response_parser import (
    ExtractionParseError,
    parse_extraction_response,
)
from chomp_recipes.app.services.url_ingredients.url_validation import validate_url

__all__ = [
    # Models
    "ContentExtractResult",
    "ExtractionCallResult",
    "FetchResult",
    "UrlSafetyResult",
    # Stages
    "validate_url",
    "HtmlFetcher",
    "extract_content",
    "ExtractionClient",
    "ExtractionClientError",
    "parse_extraction_response",
    "ExtractionParseError",
    "normalize_extraction",
    # Rate limiting
    "MemoryRateLimitStore",
    "RateLimitDecision",
    "RateLimiter",
    # Orchestration
    "IngredientsPipeline",
    "PipelineOutcome",
    # Errors
    "ERROR_STATUS_CODES",
    "IngredientsApiError",
    "build_error_response",
    "get_status_code_for_error",
]
