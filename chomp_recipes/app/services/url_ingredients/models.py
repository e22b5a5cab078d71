"""Pydantic models for the stages of the URL ingredients pipeline.

Each stage reports a tagged outcome (``ok`` plus either its payload or an
``error_code``/``error_message`` pair) instead of raising across stage
boundaries.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

FetchErrorCode = Literal[
    "fetch_timeout",
    "content_too_large",
    "too_many_redirects",
    "ssrf_blocked",
    "invalid_content_type",
    "fetch_failed",
]

ContentErrorCode = Literal["parse_failed", "no_content"]


class UrlSafetyResult(BaseModel):
    """Result of checking a caller-supplied URL against the SSRF rules."""

    ok: bool
    url: Optional[str] = None
    hostname: Optional[str] = None
    reason: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def accept(cls, url: str, hostname: str) -> "UrlSafetyResult":
        return cls(ok=True, url=url, hostname=hostname)

    @classmethod
    def reject(cls, reason: str) -> "UrlSafetyResult":
        return cls(ok=False, reason=reason)


class FetchResult(BaseModel):
    """Result of a bounded HTML fetch."""

    ok: bool
    content: Optional[bytes] = None
    content_type: Optional[str] = None
    final_url: Optional[str] = None
    status_code: Optional[int] = None
    error_code: Optional[FetchErrorCode] = None
    error_message: Optional[str] = None

    @property
    def html(self) -> str:
        """Body decoded with the declared charset, falling back to UTF-8."""
        if self.content is None:
            return ""
        encoding = _charset_from_content_type(self.content_type or "") or "utf-8"
        try:
            return self.content.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            return self.content.decode("utf-8", errors="replace")


class ContentExtractResult(BaseModel):
    """Result of turning raw HTML into a compact text representation."""

    ok: bool
    title: Optional[str] = None
    content: Optional[str] = None
    byline: Optional[str] = None
    strategy: Optional[str] = None
    error_code: Optional[ContentErrorCode] = None
    error_message: Optional[str] = None


class ExtractionCallResult(BaseModel):
    """Raw text returned by the external extraction service, plus usage."""

    content: str
    model: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0


def _charset_from_content_type(content_type: str) -> Optional[str]:
    if "charset=" not in content_type.lower():
        return None
    try:
        lowered = content_type.lower()
        return lowered.split("charset=")[1].split(";")[0].strip().strip("\"'") or None
    except (IndexError, AttributeError):
        return None
