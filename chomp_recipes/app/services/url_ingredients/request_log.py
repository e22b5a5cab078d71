"""Structured per-request log line for the recipe URL ingredients endpoint.

Only the URL host is logged, never the full URL (query strings may carry
tokens) or any page content.
"""

import json
import logging
import time
from typing import Optional
from urllib.parse import urlsplit

from pydantic import BaseModel

logger = logging.getLogger(__name__)

LOG_TYPE = "recipe_url_ingredients"


class TokenUsage(BaseModel):
    input: int
    output: int


class RequestMetrics(BaseModel):
    request_id: str
    user_id: Optional[str] = None
    url_host: Optional[str] = None
    fetch_latency_ms: Optional[int] = None
    ai_latency_ms: Optional[int] = None
    token_usage: Optional[TokenUsage] = None
    total_latency_ms: Optional[int] = None
    status: Optional[str] = None
    error_code: Optional[str] = None


class Timer:
    def __init__(self) -> None:
        self._start = time.monotonic()

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._start) * 1000)


def extract_url_host(url: str) -> Optional[str]:
    # hostname/port rather than netloc, which may embed credentials
    try:
        parsed = urlsplit(url)
        host, port = parsed.hostname, parsed.port
    except ValueError:
        return None
    if not host:
        return None
    return f"{host}:{port}" if port else host


def log_request(metrics: RequestMetrics) -> None:
    entry = {"type": LOG_TYPE, **metrics.model_dump()}
    if metrics.status == "error":
        logger.warning(json.dumps(entry))
    else:
        logger.info(json.dumps(entry))
