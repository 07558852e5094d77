"""
Article scraping functionality for Newsdesk.
"""
import asyncio
import logging
import re
from typing import List, Optional
import backoff
import aiohttp
import async_timeout
from bs4 import BeautifulSoup

from newsdesk.config import get_config
from newsdesk.core.article import Article, ScrapedArticle, Source, parse_datetime, utcnow
from newsdesk.utils.http import DEFAULT_HEADERS, REQUEST_TIMEOUT, RateLimiter
from newsdesk.utils.text import clean_text, domain_from_url, title_from_url

logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = get_config('scraper.max_content_length', 5000)
MAX_TAGS = get_config('scraper.max_tags', 10)
MAX_TRIES = get_config('scraper.max_tries', 2)

# Shorter candidate blocks are treated as navigation or teaser text
MIN_BLOCK_LENGTH = 200
MIN_PARAGRAPH_LENGTH = 50

NO_CONTENT = 'Content could not be extracted from this article.'


def _class_contains(term: str):
    return lambda value: bool(value) and term in value.lower()


def _is_transient(error: Exception) -> bool:
    if isinstance(error, aiohttp.InvalidURL):
        return False
    if isinstance(error, aiohttp.ClientResponseError):
        return error.status >= 500
    return True


def generate_slug(title: str) -> str:
    """
    Generate a URL-friendly slug from a title.

    Args:
        title: Article title

    Returns:
        Lowercase, hyphen-separated slug of at most 100 characters
    """
    slug = (title or "").lower()
    slug = re.sub(r'[^\w\s-]', '', slug)
    slug = re.sub(r'\s+', '-', slug)
    slug = re.sub(r'-+', '-', slug)
    slug = slug.strip('-')
    return slug[:100]


class ArticleScraper:
    """
    Fetches article pages and extracts a best-effort structured article.

    scrape_article never raises: any fetch or parse failure produces a
    fallback article built from the URL alone.
    """
    def __init__(self, rate_limiter: Optional[RateLimiter] = None, timeout: float = REQUEST_TIMEOUT):
        self.rate_limiter = rate_limiter or RateLimiter()
        self.timeout = timeout
        self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        """
        Lazy initialization of aiohttp session.

        Returns:
            aiohttp.ClientSession: The HTTP session
        """
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=DEFAULT_HEADERS)
        return self._session

    async def close_session(self):
        """Close aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close_session()

    @backoff.on_exception(
        backoff.expo,
        (aiohttp.ClientError, asyncio.TimeoutError),
        max_tries=MAX_TRIES,
        giveup=lambda e: not _is_transient(e),
    )
    async def _get(self, url: str) -> str:
        async with async_timeout.timeout(self.timeout):
            async with self.session.get(url) as response:
                response.raise_for_status()
                return await response.text()

    async def fetch_url(self, url: str) -> Optional[str]:
        """
        Fetch URL content with retries and timeout.

        Args:
            url: The URL to fetch

        Returns:
            The HTML content as a string, or None if the fetch failed
        """
        domain = domain_from_url(url)
        await self.rate_limiter.acquire(domain)

        try:
            content = await self._get(url)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.rate_limiter.report_failure(domain)
            logger.warning(f"Error fetching {url}: {e!r}")
            return None
        except ValueError as e:
            # Raised by yarl for URLs aiohttp cannot represent
            self.rate_limiter.report_failure(domain)
            logger.warning(f"Invalid URL {url}: {e}")
            return None

        self.rate_limiter.report_success(domain)
        return content

    async def scrape_article(self, url: str) -> ScrapedArticle:
        """
        Fetch and parse an article.

        Args:
            url: The URL of the article

        Returns:
            The extracted article, or a fallback article derived from the URL
        """
        html = await self.fetch_url(url)
        if html is None:
            return self.fallback_article(url)

        try:
            return self.parse_html(html, url)
        except Exception:
            logger.exception(f"Error parsing {url}")
            return self.fallback_article(url)

    def parse_html(self, html: str, url: str) -> ScrapedArticle:
        """
        Extract title, body, description, image, date, author and tags from markup.

        Args:
            html: Page markup
            url: The page URL, used when no title can be found

        Returns:
            ScrapedArticle with cleaned text fields
        """
        soup = BeautifulSoup(html, 'html.parser')
        tags = self._extract_tags(soup)

        for elem in soup.find_all(['script', 'style']):
            elem.decompose()

        title_tag = soup.find('title') or soup.find('h1')
        title = clean_text(title_tag.get_text()) if title_tag else ''
        if not title:
            title = title_from_url(url)

        description = (
            self._meta_content(soup, name='description')
            or self._meta_content(soup, property='og:description')
        )

        content = self._extract_body(soup)

        image = self._meta_content(soup, property='og:image')
        if not image:
            img = soup.find('img', src=True)
            image = img['src'] if img else None

        author = self._meta_content(soup, name='author')
        if not author:
            span = soup.find('span', class_=_class_contains('author'))
            author = clean_text(span.get_text()) if span else None

        return ScrapedArticle(
            title=title,
            content=content or description or NO_CONTENT,
            description=description,
            author=author or None,
            published_at=self._extract_date(soup),
            image=image or None,
            tags=tags,
        )

    @staticmethod
    def _meta_content(soup: BeautifulSoup, **attrs) -> str:
        meta = soup.find('meta', attrs=attrs)
        if meta is None or not meta.get('content'):
            return ''
        return clean_text(meta['content'])

    def _extract_body(self, soup: BeautifulSoup) -> str:
        candidates = [
            lambda: soup.find('article'),
            lambda: soup.find('div', class_=_class_contains('article')),
            lambda: soup.find('div', class_=_class_contains('content')),
            lambda: soup.find('main'),
            lambda: soup.find('div', id='content'),
        ]

        content = ''
        for find in candidates:
            block = find()
            if block is None:
                continue
            content = clean_text(block.get_text(separator=' '))[:MAX_CONTENT_LENGTH]
            if len(content) > MIN_BLOCK_LENGTH:
                return content

        paragraphs = [clean_text(p.get_text(separator=' ')) for p in soup.find_all('p')]
        paragraphs = [p for p in paragraphs if len(p) > MIN_PARAGRAPH_LENGTH]
        if paragraphs:
            return '\n\n'.join(paragraphs)[:MAX_CONTENT_LENGTH]
        return content

    def _extract_date(self, soup: BeautifulSoup):
        values = [
            self._meta_content(soup, property='article:published_time'),
            (soup.find('time', datetime=True) or {}).get('datetime'),
            self._meta_content(soup, name='date'),
        ]
        for value in values:
            parsed = parse_datetime(value)
            if parsed is not None:
                return parsed
        return utcnow()

    @staticmethod
    def _extract_tags(soup: BeautifulSoup) -> List[str]:
        tags = []
        keywords = soup.find('meta', attrs={'name': 'keywords'})
        if keywords is not None and keywords.get('content'):
            tags.extend(clean_text(tag) for tag in keywords['content'].split(','))

        for anchor in soup.find_all('a', class_=_class_contains('tag')):
            tags.append(clean_text(anchor.get_text()))

        unique = list(dict.fromkeys(tag for tag in tags if tag))
        return unique[:MAX_TAGS]

    def fallback_article(self, url: str) -> ScrapedArticle:
        """
        Build an article from the URL alone, used when the page cannot be scraped.
        """
        domain = domain_from_url(url) or url
        return ScrapedArticle(
            title=title_from_url(url),
            content=(
                f"This article from {domain} could not be fully scraped. "
                "Please visit the original source for complete content."
            ),
            description=f"Article from {domain}",
        )

    @staticmethod
    def to_article(scraped: ScrapedArticle, url: str, article_id: str) -> Article:
        """
        Convert a scraped article into an Article with neutral scores.
        """
        domain = domain_from_url(url)
        return Article(
            id=article_id,
            title=scraped.title,
            content=scraped.content,
            summary=scraped.description,
            url=url,
            thumbnail=scraped.image,
            published_at=scraped.published_at,
            source=Source(name=domain[:1].upper() + domain[1:], domain=domain, credibility='medium'),
            quality_score=50,
            topics=list(scraped.tags),
        )

    generate_slug = staticmethod(generate_slug)
