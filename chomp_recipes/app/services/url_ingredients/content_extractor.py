"""Turn fetched HTML into a compact text representation of the recipe.

Tier 1 reads schema.org JSON-LD Recipe blocks. When none is usable, tier 2
strips non-content elements and runs readability-style main-content
extraction, falling back to the whole body text.
"""

import logging
import re
from typing import Optional

from bs4 import BeautifulSoup, Comment
from readability import Document

from chomp_recipes.app.services.url_ingredients.models import ContentExtractResult
from chomp_recipes.app.services.url_ingredients.parsing_utils import (
    clean_multiline_text,
    clean_text,
    truncate,
)
from chomp_recipes.app.services.url_ingredients.schema_org import (
    extract_recipe_from_schema_org,
    format_recipe_text,
)

logger = logging.getLogger(__name__)

# Upper bound on the text handed to the extraction service.
MAX_CONTENT_CHARS = 60_000

UNWANTED_SELECTORS = [
    "script",
    "style",
    "noscript",
    "iframe",
    "svg",
    "canvas",
    "video",
    "audio",
    "object",
    "embed",
    "form",
    "nav",
    "header",
    "footer",
    "aside",
    '[role="navigation"]',
    '[role="banner"]',
    '[role="contentinfo"]',
    ".advertisement",
    ".ad",
    ".ads",
    ".social-share",
    ".comments",
    ".related-posts",
]

_NO_TITLE = "[no-title]"


def clean_soup_for_content(soup: BeautifulSoup) -> None:
    """Remove scripts, styles, media, navigation, ads and comments in place."""
    for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
        comment.extract()
    for selector in UNWANTED_SELECTORS:
        for element in soup.select(selector):
            if not element.decomposed:
                element.decompose()


def find_byline(soup: BeautifulSoup) -> Optional[str]:
    meta = soup.find("meta", attrs={"name": re.compile(r"^author$", re.I)})
    if meta and meta.get("content"):
        return clean_text(meta["content"]) or None
    node = soup.find(attrs={"rel": "author"}) or soup.select_one(".byline")
    if node:
        return clean_text(node.get_text(" ")) or None
    return None


def find_title(soup: BeautifulSoup) -> Optional[str]:
    """Resolve a page title: <title>, then the first <h1>, then og:title."""
    if soup.title and soup.title.get_text(strip=True):
        return clean_text(soup.title.get_text())
    h1 = soup.find("h1")
    if h1 and h1.get_text(strip=True):
        return clean_text(h1.get_text(" "))
    og_title = soup.find("meta", attrs={"property": "og:title"})
    if og_title and og_title.get("content"):
        return clean_text(og_title["content"]) or None
    return None


def extract_body_text(soup: BeautifulSoup) -> str:
    if soup.body is None:
        return ""
    return clean_text(soup.body.get_text(" "))


def _readability_article(html: str, url: str) -> tuple[Optional[str], str]:
    document = Document(html, url=url)
    summary = document.summary(html_partial=True)
    text = clean_multiline_text(BeautifulSoup(summary, "lxml").get_text("\n"))
    title = clean_text(document.title())
    if not title or title == _NO_TITLE:
        title = None
    return title, text


def extract_content(html: str, url: str) -> ContentExtractResult:
    try:
        soup = BeautifulSoup(html, "lxml")

        recipe = extract_recipe_from_schema_org(soup)
        if recipe is not None:
            return ContentExtractResult(
                ok=True,
                title=recipe.name,
                content=truncate(format_recipe_text(recipe), MAX_CONTENT_CHARS),
                byline=None,
                strategy="schema_org_json_ld",
            )

        byline = find_byline(soup)
        clean_soup_for_content(soup)

        try:
            title, text = _readability_article(str(soup), url)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Readability extraction failed for %s: %s", url, exc)
            title, text = None, ""

        if text:
            return ContentExtractResult(
                ok=True,
                title=title,
                content=truncate(text, MAX_CONTENT_CHARS),
                byline=byline,
                strategy="readability",
            )

        body_text = extract_body_text(soup)
        if body_text:
            return ContentExtractResult(
                ok=True,
                title=find_title(soup),
                content=truncate(body_text, MAX_CONTENT_CHARS),
                byline=None,
                strategy="body_text",
            )
    except Exception as exc:  # noqa: BLE001
        logger.warning("HTML parsing failed for %s: %s", url, exc)
        return ContentExtractResult(
            ok=False,
            error_code="parse_failed",
            error_message=f"Failed to parse HTML: {exc}",
        )

    return ContentExtractResult(
        ok=False,
        error_code="no_content",
        error_message="No extractable content found in page",
    )
