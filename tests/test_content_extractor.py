import json

from bs4 import BeautifulSoup

from chomp_recipes.app.services.url_ingredients import content_extractor
from chomp_recipes.app.services.url_ingredients.content_extractor import (
    MAX_CONTENT_CHARS,
    clean_soup_for_content,
    extract_content,
    find_title,
)
from chomp_recipes.app.services.url_ingredients.schema_org import (
    MAX_JSON_LD_DEPTH,
    extract_recipe_from_schema_org,
    find_recipe_node,
)

URL = "https://example.com/recipe"

ARTICLE_BODY = " ".join(
    "Toss the roasted vegetables with olive oil, lemon juice and plenty of fresh herbs before serving."
    for _ in range(8)
)


def page_with_json_ld(data, body="<p>Body text</p>", script_type="application/ld+json") -> str:
    return (
        "<html><head><title>Page Title</title>"
        f'<script type="{script_type}">{json.dumps(data)}</script>'
        f"</head><body>{body}</body></html>"
    )


def test_json_ld_recipe_is_preferred():
    html = page_with_json_ld(
        {
            "@context": "https://schema.org",
            "@type": "Recipe",
            "name": "Lemon Chicken",
            "recipeYield": ["4", "4 servings"],
            "recipeIngredient": ["1 lb chicken", "  2 lemons  ", ""],
        },
        body=f"<article><p>{ARTICLE_BODY}</p></article>",
    )
    result = extract_content(html, URL)
    assert result.ok
    assert result.strategy == "schema_org_json_ld"
    assert result.title == "Lemon Chicken"
    assert result.byline is None
    assert result.content == (
        "Recipe Name: Lemon Chicken\nServings: 4\n\nIngredients:\n- 1 lb chicken\n- 2 lemons"
    )


def test_json_ld_inside_graph_and_type_list():
    html = page_with_json_ld(
        {
            "@context": "https://schema.org",
            "@graph": [
                {"@type": "WebPage", "name": "Site"},
                {"@type": ["Recipe", "NewsArticle"], "name": "Soup", "recipeIngredient": "1 onion"},
            ],
        }
    )
    result = extract_content(html, URL)
    assert result.strategy == "schema_org_json_ld"
    assert result.content == "Recipe Name: Soup\n\nIngredients:\n- 1 onion"


def test_json_ld_top_level_list_and_case_insensitive_type():
    html = page_with_json_ld([{"@type": "BreadcrumbList"}, {"@type": "recipe", "recipeIngredient": ["salt"]}])
    result = extract_content(html, URL)
    assert result.strategy == "schema_org_json_ld"
    assert result.title is None
    assert result.content == "Ingredients:\n- salt"


def test_json_ld_recipe_without_ingredients_falls_through():
    html = page_with_json_ld(
        {"@type": "Recipe", "name": "Empty", "recipeIngredient": ["   "]},
        body=f"<article><h1>Empty</h1><p>{ARTICLE_BODY}</p></article>",
    )
    result = extract_content(html, URL)
    assert result.ok
    assert result.strategy != "schema_org_json_ld"
    assert "roasted vegetables" in result.content


def test_malformed_json_ld_is_skipped():
    html = (
        "<html><head>"
        '<script type="application/ld+json">{not json</script>'
        '<script type="application/ld+json; charset=utf-8">'
        '{"@type": "Recipe", "recipeIngredient": ["1 egg"]}</script>'
        "</head><body></body></html>"
    )
    result = extract_content(html, URL)
    assert result.strategy == "schema_org_json_ld"
    assert result.content.endswith("- 1 egg")


def test_find_recipe_node_respects_depth_bound():
    node = {"@type": "Recipe", "recipeIngredient": ["1 cup rice"]}
    shallow = node
    for _ in range(3):
        shallow = [shallow]
    assert find_recipe_node(shallow) is node

    deep = node
    for _ in range(MAX_JSON_LD_DEPTH + 2):
        deep = {"@graph": [deep]}
    assert find_recipe_node(deep) is None


def test_json_ld_ingredients_key_is_not_recipe_ingredient():
    soup = BeautifulSoup(page_with_json_ld({"@type": "Recipe", "ingredients": ["1 pear"]}), "lxml")
    assert extract_recipe_from_schema_org(soup) is None


def test_deeply_nested_json_ld_block_does_not_hide_later_recipe():
    html = (
        "<html><head>"
        '<script type="application/ld+json">' + "[" * 100_000 + "</script>"
        '<script type="application/ld+json">{"@type": "Recipe", "recipeIngredient": ["1 egg"]}</script>'
        "</head><body></body></html>"
    )
    result = extract_content(html, URL)
    assert result.ok
    assert result.strategy == "schema_org_json_ld"
    assert result.content == "Ingredients:\n- 1 egg"


def test_readability_tier_extracts_article_and_byline():
    html = f"""
    <html>
      <head><title>Roasted Vegetables</title><meta name="author" content="Sam Cook"></head>
      <body>
        <nav><a href="/">Home</a> <a href="/about">About us</a></nav>
        <div class="advertisement">Buy now</div>
        <article><h1>Roasted Vegetables</h1><p>{ARTICLE_BODY}</p><p>{ARTICLE_BODY}</p></article>
        <footer>Copyright footer text</footer>
        <script>var tracking = true;</script>
      </body>
    </html>
    """
    result = extract_content(html, URL)
    assert result.ok
    assert result.strategy == "readability"
    assert result.byline == "Sam Cook"
    assert result.title == "Roasted Vegetables"
    assert "roasted vegetables" in result.content
    assert "Buy now" not in result.content
    assert "tracking" not in result.content
    assert "Copyright footer" not in result.content


def test_body_text_fallback_when_readability_finds_nothing(monkeypatch):
    monkeypatch.setattr(content_extractor, "_readability_article", lambda html, url: (None, ""))
    html = "<html><head></head><body><h1>Quick Salad</h1><div>Mix   greens\n and  dressing.</div></body></html>"
    result = extract_content(html, URL)
    assert result.ok
    assert result.strategy == "body_text"
    assert result.title == "Quick Salad"
    assert result.content == "Quick Salad Mix greens and dressing."


def test_readability_failure_degrades_to_body_text(monkeypatch):
    def boom(html, url):
        raise ValueError("unparseable")

    monkeypatch.setattr(content_extractor, "_readability_article", boom)
    result = extract_content("<html><body><p>Some text</p></body></html>", URL)
    assert result.ok
    assert result.strategy == "body_text"


def test_no_content_for_empty_page(monkeypatch):
    monkeypatch.setattr(content_extractor, "_readability_article", lambda html, url: (None, ""))
    result = extract_content("<html><body><script>x()</script><nav>Menu</nav></body></html>", URL)
    assert not result.ok
    assert result.error_code == "no_content"


def test_parse_failure_is_reported(monkeypatch):
    def broken_parse(soup):
        raise RuntimeError("parser exploded")

    monkeypatch.setattr(content_extractor, "extract_recipe_from_schema_org", broken_parse)
    result = extract_content("<html></html>", URL)
    assert not result.ok
    assert result.error_code == "parse_failed"


def test_content_is_capped(monkeypatch):
    monkeypatch.setattr(content_extractor, "_readability_article", lambda html, url: (None, "word " * 20_000))
    result = extract_content("<html><body><p>x</p></body></html>", URL)
    assert result.ok
    assert len(result.content) <= MAX_CONTENT_CHARS


def test_clean_soup_removes_comments_and_unwanted_nodes():
    soup = BeautifulSoup(
        "<html><body><!-- hidden --><aside>Side</aside><div role='banner'>Banner</div>"
        "<div class='social-share'>Share</div><p>Keep me</p></body></html>",
        "lxml",
    )
    clean_soup_for_content(soup)
    text = soup.get_text(" ")
    assert "Keep me" in text
    for removed in ("hidden", "Side", "Banner", "Share"):
        assert removed not in text


def test_find_title_prefers_title_then_h1_then_og_title():
    assert find_title(BeautifulSoup("<title> A </title><h1>B</h1>", "lxml")) == "A"
    assert find_title(BeautifulSoup("<body><h1>B</h1></body>", "lxml")) == "B"
    og = '<head><meta property="og:title" content="C"></head>'
    assert find_title(BeautifulSoup(og, "lxml")) == "C"
    assert find_title(BeautifulSoup("<p>nothing</p>", "lxml")) is None


def test_json_ld_lines_win_over_body_ingredient_text():
    html = page_with_json_ld(
        {"@type": "Recipe", "recipeIngredient": ["2 cups flour", "1 tsp salt"]},
        body="<ul><li>3 cups sugar</li><li>1 stick butter</li></ul>",
    )
    result = extract_content(html, URL)
    bullets = [line for line in result.content.splitlines() if line.startswith("- ")]
    assert bullets == ["- 2 cups flour", "- 1 tsp salt"]
