"""General text utilities shared by the extraction stages."""

import re
from typing import Any, Optional

_WHITESPACE_RE = re.compile(r"\s+")
_BLANK_LINES_RE = re.compile(r"\n{2,}")


def clean_text(text: Optional[str]) -> str:
    """Trim and collapse any run of whitespace to a single space."""
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def clean_multiline_text(text: Optional[str]) -> str:
    """Collapse whitespace within lines but keep one line break between them."""
    lines = (clean_text(line) for line in (text or "").splitlines())
    joined = "\n".join(line for line in lines if line)
    return _BLANK_LINES_RE.sub("\n", joined).strip()


def first_text(value: Any) -> Optional[str]:
    """Return a cleaned string, or the first element of a list, for yield-like fields."""
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    return clean_text(value) or None


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit].rstrip()
