"""
Pipeline wiring: scrape, filter, summarize, personalize, store.
"""
import asyncio
import logging
import secrets
import string
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from tqdm import tqdm

from newsdesk.agents.base import AgentMetrics
from newsdesk.agents.filter import MIN_QUALITY_SCORE, FilterAgent
from newsdesk.agents.personalizer import FEED_LIMIT, PersonalizerAgent
from newsdesk.agents.summarizer import SummarizerAgent
from newsdesk.config import get_config
from newsdesk.core.article import Article, CrawlResult, NewsFilter, SearchResult, UserPreferences
from newsdesk.core.scraper import ArticleScraper, generate_slug
from newsdesk.core.store import ArticleStore, StoredArticle
from newsdesk.utils.http import MAX_CONCURRENT_REQUESTS

logger = logging.getLogger(__name__)

SHOW_PROGRESS = get_config('pipeline.show_progress', True)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_article_id() -> str:
    """Return an id like article_1718000000000_k3j9x0a2b."""
    suffix = ''.join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"article_{int(time.time() * 1000)}_{suffix}"


@dataclass
class ProcessedArticle:
    slug: str
    article: Article
    cached: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {'slug': self.slug, 'article': self.article.to_dict(), 'cached': self.cached}


class NewsPipeline:
    """
    Runs articles through the processing stages and keeps the results in
    an ArticleStore.

    Every collaborator can be injected; anything not given is built with
    default settings.
    """
    def __init__(
        self,
        store: Optional[ArticleStore] = None,
        scraper: Optional[ArticleScraper] = None,
        filter_agent: Optional[FilterAgent] = None,
        summarizer: Optional[SummarizerAgent] = None,
        personalizer: Optional[PersonalizerAgent] = None,
        metrics: Optional[AgentMetrics] = None,
        max_concurrent: int = MAX_CONCURRENT_REQUESTS,
        show_progress: bool = SHOW_PROGRESS,
    ):
        self.metrics = metrics
        self.store = store or ArticleStore()
        self.scraper = scraper or ArticleScraper()
        self.filter_agent = filter_agent or FilterAgent(metrics=metrics)
        self.summarizer = summarizer or SummarizerAgent(metrics=metrics)
        self.personalizer = personalizer or PersonalizerAgent(metrics=metrics)
        self.max_concurrent = max_concurrent
        self.show_progress = show_progress

    async def close(self):
        await self.scraper.close_session()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _store(self, article: Article) -> StoredArticle:
        base = generate_slug(article.title) or 'article'
        return self.store.store_with_unique_slug(article, base)

    async def process_url(self, url: str) -> ProcessedArticle:
        """
        Scrape, score, summarize and store one article.

        A URL that is already stored is returned from the store without
        being fetched again.

        Raises:
            ValueError: If url is not an http(s) URL
        """
        if not url or not url.startswith('http'):
            raise ValueError("Valid URL required")

        existing = self.store.has_article_by_url(url)
        if existing is not None:
            slug = self.store.get_slug_for_url(url)
            if slug is not None:
                logger.debug(f"Serving {url} from store")
                return ProcessedArticle(slug=slug, article=existing, cached=True)

        scraped = await self.scraper.scrape_article(url)
        article = self.scraper.to_article(scraped, url, new_article_id())

        article = await self.filter_agent.process(article)
        article = await self.summarizer.process(article)

        stored = self._store(article)
        if stored.article is not article:
            # Another request stored this URL while we were scraping it
            logger.debug(f"{url} was stored concurrently as {stored.slug}")
            return ProcessedArticle(slug=stored.slug, article=stored.article, cached=True)
        logger.info(f"Stored {url} as {stored.slug}")
        return ProcessedArticle(slug=stored.slug, article=article)

    async def process_urls(self, urls: Iterable[str]) -> Dict[str, ProcessedArticle]:
        """
        Process multiple URLs in parallel.

        Returns:
            Dict mapping each URL that could be processed to its result
        """
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def process_with_semaphore(url: str) -> Tuple[str, Optional[ProcessedArticle]]:
            async with semaphore:
                try:
                    return url, await self.process_url(url)
                except ValueError as e:
                    logger.warning(f"Skipping {url}: {e}")
                    return url, None

        tasks = [process_with_semaphore(url) for url in dict.fromkeys(urls)]
        results = {}

        for task in tqdm(
            asyncio.as_completed(tasks),
            total=len(tasks),
            desc="Processing articles",
            disable=not self.show_progress,
        ):
            url, result = await task
            if result is not None:
                results[url] = result

        return results

    async def ingest_results(
        self,
        records: List[Dict[str, Any]],
        min_quality_score: int = MIN_QUALITY_SCORE,
        news_filter: Optional[NewsFilter] = None,
    ) -> CrawlResult:
        """
        Turn raw search engine records into stored, scored articles.

        Records without a URL are reported in errors. Records whose URL is
        already stored are served from the store instead of being scored
        again.

        Args:
            records: Raw records from the search layer
            min_quality_score: Articles scoring below this are dropped
            news_filter: Optional extra criteria applied after scoring

        Returns:
            CrawlResult with the kept articles in record order
        """
        errors: List[str] = []
        sources: List[str] = []
        fresh: List[Article] = []
        cached: Dict[str, Article] = {}
        order: List[str] = []
        seen = set()

        for position, record in enumerate(records):
            try:
                result = SearchResult.from_record(record)
            except (ValueError, AttributeError) as e:
                errors.append(f"record {position}: {e}")
                continue

            if result.url in seen:
                continue
            seen.add(result.url)
            order.append(result.url)
            if result.source_name and result.source_name not in sources:
                sources.append(result.source_name)

            existing = self.store.has_article_by_url(result.url)
            if existing is not None:
                cached[result.url] = existing
            else:
                fresh.append(result.to_article(new_article_id()))

        filtered = await self.filter_agent.batch_filter(fresh, min_quality_score)
        summarized = await self.summarizer.batch_process(filtered)
        if news_filter is not None:
            summarized = news_filter.apply(summarized)

        by_url = dict(cached)
        for article in summarized:
            by_url[article.url] = self._store(article).article
        articles = [by_url[url] for url in order if url in by_url]
        if news_filter is not None:
            articles = news_filter.apply(articles)

        logger.info(
            f"Ingested {len(records)} records: {len(summarized)} new, "
            f"{len(cached)} cached, {len(errors)} errors"
        )
        return CrawlResult(
            articles=articles,
            total_found=len(records),
            sources_scanned=sources,
            errors=errors,
        )

    async def personalized_feed(
        self,
        preferences: UserPreferences,
        limit: int = FEED_LIMIT,
        articles: Optional[List[Article]] = None,
    ) -> List[Article]:
        """
        Build a feed for a user from the given articles, or from the store.
        """
        pool = articles if articles is not None else self.store.get_all_articles()
        return await self.personalizer.generate_personalized_feed(pool, preferences, limit)
