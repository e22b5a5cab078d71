import functools
import json

import httpx
import pytest
from fastapi.testclient import TestClient
from jose import jwt

from chomp_recipes.app.core.config import get_settings
from chomp_recipes.app.main import create_app
from chomp_recipes.app.services.url_ingredients.extraction_client import ExtractionClient
from chomp_recipes.app.services.url_ingredients.html_fetcher import HtmlFetcher
from chomp_recipes.app.services.url_ingredients.pipeline import IngredientsPipeline
from chomp_recipes.app.services.url_ingredients.rate_limiter import RateLimiter
from chomp_recipes.app.services.url_ingredients.url_validation import validate_url

PUBLIC_ADDRESS = "93.184.216.34"

RECIPE_PAGE = """
<html>
  <head>
    <title>Weeknight Pasta</title>
    <script type="application/ld+json">
      {"@context": "https://schema.org", "@type": "Recipe", "name": "Weeknight Pasta",
       "recipeYield": "4 servings",
       "recipeIngredient": ["2 cups flour", "3 cloves garlic, minced"]}
    </script>
  </head>
  <body><h1>Weeknight Pasta</h1><p>Boil water.</p></body>
</html>
"""


def extraction_reply(payload) -> dict:
    """Chat-completions envelope around a payload (dict or raw text)."""
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return {
        "model": "test-model",
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 120, "completion_tokens": 40},
    }


GOOD_EXTRACTION = {
    "recipeName": "  Weeknight   Pasta ",
    "servings": "4 servings",
    "ingredients": [
        {"name": "All-Purpose  Flour", "quantity": 2, "unit": "Cups", "notes": None, "category": "Pantry"},
        {"name": "Garlic", "quantity": 3, "unit": "cloves", "notes": " minced ", "category": "Produce"},
    ],
}


async def public_resolver(hostname: str):
    return [PUBLIC_ADDRESS]


class FakeUpstream:
    """Records calls to the page host and to the extraction service."""

    def __init__(self, page=RECIPE_PAGE, extraction=None, page_status=200, extraction_status=200):
        self.page = page
        self.page_status = page_status
        self.extraction = GOOD_EXTRACTION if extraction is None else extraction
        self.extraction_status = extraction_status
        self.page_calls = 0
        self.extraction_calls = 0

    def page_transport(self) -> httpx.MockTransport:
        def handler(request: httpx.Request) -> httpx.Response:
            self.page_calls += 1
            return httpx.Response(
                self.page_status,
                headers={"content-type": "text/html; charset=utf-8"},
                content=self.page.encode("utf-8"),
            )

        return httpx.MockTransport(handler)

    def extraction_transport(self) -> httpx.MockTransport:
        def handler(request: httpx.Request) -> httpx.Response:
            self.extraction_calls += 1
            if self.extraction_status >= 400:
                return httpx.Response(self.extraction_status, text="upstream failure")
            return httpx.Response(200, json=extraction_reply(self.extraction))

        return httpx.MockTransport(handler)


def build_pipeline(upstream: FakeUpstream, rate_limiter: RateLimiter = None) -> IngredientsPipeline:
    return IngredientsPipeline(
        rate_limiter=rate_limiter or RateLimiter(max_requests=30, window_seconds=60),
        fetcher=HtmlFetcher(transport=upstream.page_transport()),
        extraction_client=ExtractionClient(
            base_url="http://extraction.test", transport=upstream.extraction_transport()
        ),
        url_validator=functools.partial(validate_url, resolver=public_resolver),
    )


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def rate_limiter():
    return RateLimiter(max_requests=30, window_seconds=60)


@pytest.fixture
def pipeline(upstream, rate_limiter):
    return build_pipeline(upstream, rate_limiter)


@pytest.fixture
def make_pipeline(upstream):
    def factory(rate_limiter=None):
        return build_pipeline(upstream, rate_limiter)

    return factory


@pytest.fixture
def app(pipeline):
    return create_app(pipeline=pipeline)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_settings():
    return get_settings()


def make_token(user_id: str, settings) -> str:
    payload = {"sub": user_id, "sid": f"session-{user_id}"}
    return jwt.encode(payload, settings.auth_secret_key, algorithm=settings.auth_algorithm)


@pytest.fixture
def user_token(auth_settings):
    return make_token("user-1", auth_settings)


@pytest.fixture
def other_user_token(auth_settings):
    return make_token("user-2", auth_settings)


@pytest.fixture
def auth_headers(user_token):
    return {"Authorization": f"Bearer {user_token}"}
