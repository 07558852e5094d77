import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from newsdesk.core.article import ScrapedArticle
from newsdesk.core.scraper import NO_CONTENT, ArticleScraper, generate_slug
from newsdesk.utils.http import RateLimiter

LONG_PARAGRAPH = (
    "The committee spent most of the afternoon debating the revised proposal, "
    "which would change how regional funds are allocated next year."
)

ARTICLE_HTML = f"""
<html>
<head>
  <title>Fed Signals Rate Cuts &amp; Markets React</title>
  <meta name="description" content="Policy makers hint at easing.">
  <meta property="og:image" content="https://cdn.example.com/lead.jpg">
  <meta property="article:published_time" content="2024-03-01T10:00:00Z">
  <meta name="author" content="Jane Doe">
  <meta name="keywords" content="economy, rates, fed">
  <script>var tracking = "ignore me";</script>
</head>
<body>
  <nav>Home | World | Business</nav>
  <article>
    <h1>Fed Signals Rate Cuts</h1>
    <p>{LONG_PARAGRAPH}</p>
    <p>{LONG_PARAGRAPH}</p>
    <img src="https://cdn.example.com/inline.jpg">
  </article>
  <a class="tag-link" href="/t/fed">fed</a>
  <a class="tag" href="/t/inflation">Inflation</a>
</body>
</html>
"""


@pytest.fixture
def scraper():
    return ArticleScraper(rate_limiter=RateLimiter(rate_limit=0))


# ---------------------------------------------------------------------------
# generate_slug
# ---------------------------------------------------------------------------

class TestGenerateSlug:
    def test_headline(self):
        assert generate_slug("Fed Signals Rate Cuts!") == "fed-signals-rate-cuts"

    def test_collapses_whitespace_and_hyphens(self):
        assert generate_slug("  Hello --  World  ") == "hello-world"

    def test_capped_at_100_characters(self):
        assert len(generate_slug("word " * 60)) <= 100

    def test_available_on_scraper(self, scraper):
        assert scraper.generate_slug("A B") == "a-b"


# ---------------------------------------------------------------------------
# parse_html
# ---------------------------------------------------------------------------

class TestParseHtml:
    def test_extracts_all_fields(self, scraper):
        scraped = scraper.parse_html(ARTICLE_HTML, "https://example.com/fed")
        assert scraped.title == "Fed Signals Rate Cuts & Markets React"
        assert scraped.description == "Policy makers hint at easing."
        assert scraped.image == "https://cdn.example.com/lead.jpg"
        assert scraped.author == "Jane Doe"
        assert scraped.published_at == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
        assert scraped.tags == ["economy", "rates", "fed", "Inflation"]
        assert LONG_PARAGRAPH in scraped.content
        assert "Home | World" not in scraped.content

    def test_title_falls_back_to_h1_then_url(self, scraper):
        with_h1 = scraper.parse_html("<h1>Only Heading</h1>", "https://x.com/a")
        assert with_h1.title == "Only Heading"
        bare = scraper.parse_html("<p>nothing</p>", "https://x.com/news/quiet-week.html")
        assert bare.title == "Quiet Week"

    def test_paragraph_fallback_skips_short_paragraphs(self, scraper):
        html = f"<body><p>Too short.</p><p>{LONG_PARAGRAPH}</p></body>"
        scraped = scraper.parse_html(html, "https://x.com/a")
        assert scraped.content == LONG_PARAGRAPH

    def test_content_class_div_used(self, scraper):
        html = f'<div class="post-content">{LONG_PARAGRAPH} {LONG_PARAGRAPH}</div>'
        scraped = scraper.parse_html(html, "https://x.com/a")
        assert scraped.content.startswith("The committee")

    def test_body_capped_at_5000_characters(self, scraper):
        html = f"<article>{'lorem ipsum ' * 1000}</article>"
        assert len(scraper.parse_html(html, "https://x.com/a").content) == 5000

    def test_no_content_uses_description_or_placeholder(self, scraper):
        described = scraper.parse_html(
            '<meta name="description" content="Just a teaser.">', "https://x.com/a"
        )
        assert described.content == "Just a teaser."
        empty = scraper.parse_html("<html></html>", "https://x.com/a")
        assert empty.content == NO_CONTENT

    def test_image_and_date_fallbacks(self, scraper):
        html = '<img src="/first.png"><time datetime="2023-12-24T18:00:00+00:00">Dec 24</time>'
        scraped = scraper.parse_html(html, "https://x.com/a")
        assert scraped.image == "/first.png"
        assert scraped.published_at == datetime(2023, 12, 24, 18, 0, tzinfo=timezone.utc)

    def test_author_span(self, scraper):
        scraped = scraper.parse_html('<span class="byline-author">Sam Lee</span>', "https://x.com/a")
        assert scraped.author == "Sam Lee"


# ---------------------------------------------------------------------------
# scrape_article
# ---------------------------------------------------------------------------

class TestScrapeArticle:
    @pytest.mark.asyncio
    async def test_parses_fetched_page(self, scraper):
        with patch.object(scraper, "fetch_url", AsyncMock(return_value=ARTICLE_HTML)):
            scraped = await scraper.scrape_article("https://example.com/fed")
        assert scraped.author == "Jane Doe"

    @pytest.mark.asyncio
    async def test_fetch_failure_returns_fallback(self, scraper):
        with patch.object(scraper, "fetch_url", AsyncMock(return_value=None)):
            scraped = await scraper.scrape_article("https://www.example.com/news/big-story")
        assert scraped.title == "Big Story"
        assert "example.com could not be fully scraped" in scraped.content
        assert scraped.description == "Article from example.com"

    @pytest.mark.asyncio
    async def test_transport_error_is_not_raised(self, scraper):
        failing = AsyncMock(side_effect=aiohttp.ClientConnectionError("refused"))
        with patch.object(scraper, "_get", failing):
            scraped = await scraper.scrape_article("https://down.example/story")
        assert "down.example" in scraped.content
        assert scraper.rate_limiter.failures("down.example") == 1

    @pytest.mark.asyncio
    async def test_timeout_is_not_raised(self, scraper):
        with patch.object(scraper, "_get", AsyncMock(side_effect=asyncio.TimeoutError())):
            scraped = await scraper.scrape_article("https://slow.example/story")
        assert scraped.title == "Story"

    @pytest.mark.asyncio
    async def test_parse_error_returns_fallback(self, scraper):
        with patch.object(scraper, "fetch_url", AsyncMock(return_value="<html>")), \
                patch.object(scraper, "parse_html", side_effect=RuntimeError("bad markup")):
            scraped = await scraper.scrape_article("https://x.com/odd-page")
        assert scraped.title == "Odd Page"

    @pytest.mark.asyncio
    async def test_close_session_without_session(self, scraper):
        await scraper.close_session()
        assert scraper._session is None


# ---------------------------------------------------------------------------
# to_article
# ---------------------------------------------------------------------------

class TestToArticle:
    def test_neutral_defaults(self, scraper):
        scraped = ScrapedArticle(title="T", content="Body", description="D", image="i.png", tags=["x"])
        article = scraper.to_article(scraped, "https://www.reuters.com/a", "id-9")
        assert article.id == "id-9"
        assert article.quality_score == 50
        assert article.source.credibility == "medium"
        assert article.source.domain == "reuters.com"
        assert article.source.name == "Reuters.com"
        assert article.summary == "D"
        assert article.thumbnail == "i.png"
        assert article.topics == ["x"]
