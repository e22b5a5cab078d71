"""Bounded HTML fetching for URLs that already passed URL validation."""

import asyncio
import logging
from typing import Optional

import httpx

from chomp_recipes.app.core.config import get_settings
from chomp_recipes.app.services.url_ingredients.models import FetchResult
from chomp_recipes.app.services.url_ingredients.url_validation import (
    is_localhost_hostname,
    is_private_address,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_SIZE_BYTES = 2 * 1024 * 1024
DEFAULT_MAX_REDIRECTS = 5
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (compatible; ChompRecipeParser/1.0; +https://chompgrocery.com)"
)

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")


class AddressBlockedError(Exception):
    """Raised by the egress filter when a hop targets a blocked address."""


async def block_private_hosts(request: httpx.Request) -> None:
    """Request hook run for the initial request and every redirect hop.

    Only localhost names and literal IP hosts are checked; DNS names reached
    through a redirect are not re-resolved.
    """
    host = request.url.host
    if is_localhost_hostname(host) or is_private_address(host):
        raise AddressBlockedError(f"Blocked request to {host}")


def is_html_content_type(content_type: str) -> bool:
    lower = content_type.lower()
    return any(ctype in lower for ctype in HTML_CONTENT_TYPES)


class HtmlFetcher:
    """Fetch HTML under timeout, size, redirect and content-type limits."""

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.max_size_bytes = max_size_bytes
        self.max_redirects = max_redirects
        self.user_agent = user_agent
        self._transport = transport

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "HtmlFetcher":
        settings = get_settings()
        return cls(
            timeout_seconds=settings.fetch_timeout_seconds,
            max_size_bytes=settings.fetch_max_bytes,
            max_redirects=settings.fetch_max_redirects,
            user_agent=settings.fetch_user_agent,
            transport=transport,
        )

    def _build_client(self) -> httpx.AsyncClient:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }
        timeout = httpx.Timeout(
            self.timeout_seconds, connect=min(5.0, self.timeout_seconds)
        )
        return httpx.AsyncClient(
            headers=headers,
            timeout=timeout,
            follow_redirects=True,
            max_redirects=self.max_redirects,
            event_hooks={"request": [block_private_hosts]},
            transport=self._transport,
        )

    async def fetch(self, url: str) -> FetchResult:
        try:
            return await asyncio.wait_for(self._fetch(url), timeout=self.timeout_seconds)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return FetchResult(
                ok=False, error_code="fetch_timeout", error_message="Request timed out"
            )
        except httpx.TooManyRedirects:
            return FetchResult(
                ok=False, error_code="too_many_redirects", error_message="Too many redirects"
            )
        except AddressBlockedError as exc:
            logger.warning("Fetch blocked by egress filter: %s", exc)
            return FetchResult(
                ok=False,
                error_code="ssrf_blocked",
                error_message="Request blocked: target address not allowed",
            )
        except httpx.HTTPError as exc:
            logger.info("Fetch failed for %s: %s", url, exc)
            return FetchResult(
                ok=False,
                error_code="fetch_failed",
                error_message=str(exc) or exc.__class__.__name__,
            )

    async def _fetch(self, url: str) -> FetchResult:
        async with self._build_client() as client:
            async with client.stream("GET", url) as response:
                if response.status_code >= 400:
                    return FetchResult(
                        ok=False,
                        status_code=response.status_code,
                        error_code="fetch_failed",
                        error_message=f"HTTP {response.status_code}: {response.reason_phrase}",
                    )

                declared = response.headers.get("content-length")
                if declared:
                    try:
                        declared_length = int(declared)
                    except ValueError:
                        declared_length = None
                    if declared_length is not None and declared_length > self.max_size_bytes:
                        return self._too_large(
                            f"Content size {declared_length} exceeds limit of {self.max_size_bytes} bytes"
                        )

                chunks = []
                received = 0
                async for chunk in response.aiter_bytes():
                    received += len(chunk)
                    if received > self.max_size_bytes:
                        return self._too_large(
                            f"Response body exceeds limit of {self.max_size_bytes} bytes"
                        )
                    chunks.append(chunk)

                content_type = response.headers.get("content-type", "")
                if not is_html_content_type(content_type):
                    return FetchResult(
                        ok=False,
                        status_code=response.status_code,
                        content_type=content_type,
                        error_code="invalid_content_type",
                        error_message=f"Expected HTML content-type, got: {content_type}",
                    )

                return FetchResult(
                    ok=True,
                    content=b"".join(chunks),
                    content_type=content_type,
                    final_url=str(response.url),
                    status_code=response.status_code,
                )

    @staticmethod
    def _too_large(message: str) -> FetchResult:
        return FetchResult(ok=False, error_code="content_too_large", error_message=message)
