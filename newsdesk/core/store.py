"""
In-memory article storage for Newsdesk.
"""
import itertools
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from newsdesk.config import get_config
from newsdesk.core.article import Article, utcnow

logger = logging.getLogger(__name__)

MAX_ARTICLES = get_config('store.max_articles', 1000)
RETAIN_ARTICLES = get_config('store.retain_articles', 800)


@dataclass
class StoredArticle:
    article: Article
    slug: str
    timestamp: datetime = field(default_factory=utcnow)
    sequence: int = 0


class ArticleStore:
    """
    Caches processed articles by id with a unique slug for each.

    When the store grows past max_articles it keeps the retain_articles
    most recently written entries. Every operation runs under one lock, so
    the id and slug indexes always agree.
    """
    def __init__(self, max_articles: int = MAX_ARTICLES, retain_articles: int = RETAIN_ARTICLES):
        if retain_articles > max_articles:
            raise ValueError("retain_articles cannot exceed max_articles")
        self.max_articles = max_articles
        self.retain_articles = retain_articles
        self._articles: Dict[str, StoredArticle] = {}
        self._slug_to_id: Dict[str, str] = {}
        # Slugs handed out by generate_unique_slug but not stored yet, oldest first
        self._reserved: Dict[str, None] = {}
        self._lock = threading.RLock()
        # Wall-clock timestamps can tie; the sequence orders writes strictly
        self._sequence = itertools.count(1)

    def __len__(self) -> int:
        with self._lock:
            return len(self._articles)

    def store_article(self, article: Article, slug: str) -> None:
        """
        Store an article under a slug.

        Re-storing an id replaces its entry and releases its old slug. A URL
        maps to at most one entry: storing a different article with the URL
        of a stored one replaces that entry and releases its slug.

        Args:
            article: The processed article
            slug: Slug to index it by, normally from generate_unique_slug
        """
        with self._lock:
            previous = self._articles.get(article.id)
            if previous is not None and previous.slug != slug:
                self._slug_to_id.pop(previous.slug, None)

            same_url = self._find_by_url(article.url)
            if same_url is not None and same_url.article.id != article.id:
                self._drop(same_url)
                logger.warning(f"{article.url} restored as {article.id}, replacing {same_url.article.id}")

            displaced_id = self._slug_to_id.get(slug)
            if displaced_id is not None and displaced_id != article.id:
                # The slug now belongs to this article; drop the entry it pointed at
                self._articles.pop(displaced_id, None)
                logger.warning(f"Slug {slug} reassigned from {displaced_id} to {article.id}")

            self._articles[article.id] = StoredArticle(
                article=article,
                slug=slug,
                sequence=next(self._sequence),
            )
            self._slug_to_id[slug] = article.id
            self._reserved.pop(slug, None)

            if len(self._articles) > self.max_articles:
                self._cleanup()

    def store_with_unique_slug(self, article: Article, base_slug: str) -> StoredArticle:
        """
        Pick a free slug and store the article under it in one step.

        If another article with the same URL is already stored, nothing is
        written and that entry is returned instead.

        Returns:
            The entry holding the article's URL
        """
        with self._lock:
            existing = self._find_by_url(article.url)
            if existing is not None and existing.article.id != article.id:
                return existing
            slug = self.generate_unique_slug(base_slug)
            self.store_article(article, slug)
            return self._articles[article.id]

    def get_article_by_slug(self, slug: str) -> Optional[Article]:
        with self._lock:
            article_id = self._slug_to_id.get(slug)
            if article_id is None:
                return None
            stored = self._articles.get(article_id)
            return stored.article if stored else None

    def get_article_by_id(self, article_id: str) -> Optional[Article]:
        with self._lock:
            stored = self._articles.get(article_id)
            return stored.article if stored else None

    def has_article_by_url(self, url: str) -> Optional[Article]:
        """
        Find a stored article by its URL.

        Returns:
            The stored article, or None
        """
        stored = self._find_by_url(url)
        return stored.article if stored else None

    def get_slug_for_url(self, url: str) -> Optional[str]:
        stored = self._find_by_url(url)
        return stored.slug if stored else None

    def _find_by_url(self, url: str) -> Optional[StoredArticle]:
        with self._lock:
            for stored in self._articles.values():
                if stored.article.url == url:
                    return stored
            return None

    def generate_unique_slug(self, base_slug: str) -> str:
        """
        Return base_slug, or base_slug-1, base_slug-2, ... if it is taken.

        The returned slug is reserved until an article is stored under it,
        so two calls with the same base never hand out the same slug.
        """
        with self._lock:
            slug = base_slug
            counter = 1
            while slug in self._slug_to_id or slug in self._reserved:
                slug = f"{base_slug}-{counter}"
                counter += 1

            self._reserved[slug] = None
            if len(self._reserved) > self.max_articles:
                # Drop the oldest reservation that was never used
                del self._reserved[next(iter(self._reserved))]
            return slug

    def _drop(self, stored: StoredArticle):
        self._articles.pop(stored.article.id, None)
        if self._slug_to_id.get(stored.slug) == stored.article.id:
            del self._slug_to_id[stored.slug]

    def _cleanup(self):
        """Keep only the most recently stored articles. Caller holds the lock."""
        ordered = sorted(self._articles.values(), key=lambda s: s.sequence, reverse=True)
        keep = ordered[:self.retain_articles]
        removed = len(ordered) - len(keep)

        self._articles = {stored.article.id: stored for stored in keep}
        self._slug_to_id = {stored.slug: stored.article.id for stored in keep}

        logger.info(f"Cleaned up {removed} old articles")

    def get_all_articles(self) -> List[Article]:
        """
        Returns:
            All stored articles, most recently stored first
        """
        with self._lock:
            ordered = sorted(self._articles.values(), key=lambda s: s.sequence, reverse=True)
            return [stored.article for stored in ordered]

    def get_stats(self) -> Dict:
        with self._lock:
            oldest = min((s.timestamp for s in self._articles.values()), default=None)
            return {
                'total_articles': len(self._articles),
                'total_slugs': len(self._slug_to_id),
                'oldest_article': oldest,
            }
