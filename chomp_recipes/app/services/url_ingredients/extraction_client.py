"""Client for the external text-extraction service.

The service speaks the OpenAI-compatible chat completions protocol. Its reply
is treated as untrusted text; validation happens in ``response_parser``.
Exactly one request is made per call and nothing is retried.
"""

import logging
import time
from typing import Literal, Optional

import httpx

from chomp_recipes.app.core.config import get_settings
from chomp_recipes.app.services.url_ingredients.models import ExtractionCallResult

logger = logging.getLogger(__name__)

ExtractionClientErrorCode = Literal[
    "api_error",
    "authentication_error",
    "rate_limit_error",
    "timeout_error",
    "invalid_request_error",
    "unknown_error",
]

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_TOKENS = 2048

CATEGORY_LIST = (
    "Produce, Deli, Dairy, Bakery, Frozen, Pantry, Beverages, Snacks, "
    "Health & Beauty, Household, Other"
)


class ExtractionClientError(Exception):
    def __init__(
        self,
        message: str,
        code: ExtractionClientErrorCode,
        request_id: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.request_id = request_id


def build_extraction_prompt(content: str) -> str:
    return f"""Extract the recipe ingredients from the following webpage content. Return ONLY valid JSON matching this exact schema, with no additional text or markdown:

{{
  "recipeName": "string or null if not found",
  "servings": "string or null if not found",
  "ingredients": [
    {{
      "name": "ingredient name (required)",
      "quantity": number or null,
      "unit": "string or null",
      "notes": "string or null (e.g., 'minced', 'divided')",
      "category": "one of: {CATEGORY_LIST}"
    }}
  ]
}}

Rules:
- Return ONLY the JSON object, no markdown code blocks or explanation
- If no ingredients are found, return an empty ingredients array
- Quantity should be a number (convert fractions: 1/2 = 0.5, 1 1/2 = 1.5)
- Unit should be standardized (tbsp, tsp, cup, oz, lb, g, kg, ml, L, cloves, etc.)
- Include preparation notes in the "notes" field, not in the name
- Category must be exactly one of: {CATEGORY_LIST}
- Category guidance:
  - Produce: fresh fruits, vegetables, herbs
  - Deli: deli meats, prepared foods, cheeses from deli counter
  - Dairy: milk, cheese, yogurt, butter, eggs, cream
  - Bakery: bread, rolls, pastries, tortillas
  - Frozen: frozen vegetables, frozen meals, ice cream
  - Pantry: canned goods, dry goods, spices, oils, vinegar, pasta, rice, flour, sugar, condiments
  - Beverages: drinks, juice, soda, coffee, tea
  - Snacks: chips, crackers, cookies, candy
  - Health & Beauty: non-food items for personal care
  - Household: cleaning supplies, non-food household items
  - Other: anything that doesn't fit the above categories

Webpage content:
{content}"""


def map_status_error(status_code: int, message: str, request_id: Optional[str]) -> ExtractionClientError:
    if status_code in (401, 403):
        return ExtractionClientError(
            "Extraction service rejected the credentials", "authentication_error", request_id
        )
    if status_code == 429:
        return ExtractionClientError(
            "Extraction service rate limit exceeded", "rate_limit_error", request_id
        )
    if status_code == 408 or "timeout" in message.lower():
        return ExtractionClientError(
            "Extraction service request timed out", "timeout_error", request_id
        )
    if status_code == 400:
        return ExtractionClientError(
            f"Invalid request to extraction service: {message}", "invalid_request_error", request_id
        )
    return ExtractionClientError(
        f"Extraction service error (HTTP {status_code}): {message}", "api_error", request_id
    )


def _token_count(value) -> int:
    """Usage counters are informational; anything unusable counts as zero."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return 0
    try:
        count = int(value)
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(count, 0)


class ExtractionClient:
    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str] = None,
        model_name: str = "full",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self.api_key = api_key
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        self._transport = transport

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "ExtractionClient":
        settings = get_settings()
        return cls(
            base_url=settings.extraction_base_url,
            api_key=settings.extraction_api_key,
            model_name=settings.extraction_model_name,
            timeout_seconds=settings.extraction_timeout_seconds,
            max_tokens=settings.extraction_max_tokens,
            transport=transport,
        )

    async def extract_ingredients(
        self, content: str, request_id: Optional[str] = None
    ) -> ExtractionCallResult:
        if not self.base_url:
            raise ExtractionClientError(
                "Extraction service is not configured", "api_error", request_id
            )

        payload = {
            "model": self.model_name,
            "temperature": 0.0,
            "max_tokens": self.max_tokens,
            "stream": False,
            "messages": [{"role": "user", "content": build_extraction_prompt(content)}],
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        if request_id:
            headers["X-Request-Id"] = request_id

        start = time.monotonic()
        timeout = httpx.Timeout(self.timeout_seconds, connect=min(10.0, self.timeout_seconds))
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/v1/chat/completions", json=payload, headers=headers
                )
        except httpx.TimeoutException as exc:
            raise ExtractionClientError(
                "Extraction service request timed out", "timeout_error", request_id
            ) from exc
        except httpx.HTTPError as exc:
            raise ExtractionClientError(
                f"Unexpected error during extraction: {exc}", "unknown_error", request_id
            ) from exc
        latency_ms = int((time.monotonic() - start) * 1000)

        if response.status_code >= 400:
            logger.error(
                "Extraction service returned HTTP %s (request_id=%s): %s",
                response.status_code,
                request_id,
                response.text[:500],
            )
            raise map_status_error(response.status_code, response.text[:200], request_id)

        try:
            data = response.json()
        except ValueError as exc:
            raise ExtractionClientError(
                "Extraction service returned a non-JSON envelope", "api_error", request_id
            ) from exc

        content_text = None
        usage = {}
        if isinstance(data, dict):
            choices = data.get("choices") or []
            if isinstance(choices, list) and choices and isinstance(choices[0], dict):
                message = choices[0].get("message")
                if isinstance(message, dict):
                    content_text = message.get("content")
            usage = data.get("usage") or {}
        if not isinstance(usage, dict):
            usage = {}
        if not isinstance(content_text, str):
            raise ExtractionClientError(
                "No text content in extraction response", "api_error", request_id
            )

        logger.info(
            "Extraction call finished (request_id=%s, latency_ms=%d, chars=%d)",
            request_id,
            latency_ms,
            len(content_text),
        )
        model = data.get("model")
        return ExtractionCallResult(
            content=content_text,
            model=model if isinstance(model, str) else None,
            input_tokens=_token_count(usage.get("prompt_tokens")),
            output_tokens=_token_count(usage.get("completion_tokens")),
            latency_ms=latency_ms,
        )
