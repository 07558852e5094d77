"""
Article data model for Newsdesk.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser

from newsdesk.utils.text import domain_from_url

CREDIBILITY_LEVELS = ('high', 'medium', 'low')
SENTIMENTS = ('positive', 'negative', 'neutral')
BIASES = ('left', 'center', 'right', 'unknown')
ACTIONS = ('view', 'share', 'save', 'like', 'dislike')
POSITIVE_ACTIONS = ('like', 'share', 'save')


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clamp_score(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a date from an upstream record or a page.

    Args:
        value: A datetime, an ISO-8601 or free-form date string, or None

    Returns:
        An aware datetime in UTC, or None when the value cannot be parsed.
        Naive values are assumed to be UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = date_parser.parse(str(value))
        except (ValueError, OverflowError):
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass
class Source:
    name: str
    domain: str
    credibility: str = 'medium'

    def __post_init__(self):
        if self.credibility not in CREDIBILITY_LEVELS:
            raise ValueError(f"unknown credibility: {self.credibility}")


@dataclass
class FactCheck:
    status: str = 'unknown'  # verified | disputed | unknown
    confidence: float = 0.0


@dataclass
class Article:
    """
    A news article moving through the pipeline.

    Stages never modify an Article in place; they return a copy made with
    dataclasses.replace, which re-runs the score clamping below.
    """
    id: str
    title: str
    content: str
    url: str
    source: Source
    published_at: datetime = field(default_factory=utcnow)
    summary: Optional[str] = None
    thumbnail: Optional[str] = None
    sentiment: Optional[str] = None
    quality_score: int = 50
    topics: List[str] = field(default_factory=list)
    relevance_score: Optional[float] = None
    bias: Optional[str] = None
    fact_check: Optional[FactCheck] = None

    def __post_init__(self):
        if self.published_at.tzinfo is None:
            self.published_at = self.published_at.replace(tzinfo=timezone.utc)
        self.quality_score = int(round(clamp_score(self.quality_score)))
        if self.relevance_score is not None:
            self.relevance_score = float(clamp_score(self.relevance_score))
        if self.sentiment is not None and self.sentiment not in SENTIMENTS:
            raise ValueError(f"unknown sentiment: {self.sentiment}")
        if self.bias is not None and self.bias not in BIASES:
            raise ValueError(f"unknown bias: {self.bias}")

    @property
    def primary_topic(self) -> str:
        return self.topics[0] if self.topics else 'General'

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize as the flat record the API layer returns.
        """
        data = {
            'id': self.id,
            'title': self.title,
            'content': self.content,
            'summary': self.summary,
            'url': self.url,
            'thumbnail': self.thumbnail,
            'publishedAt': self.published_at.isoformat(),
            'source': {
                'name': self.source.name,
                'domain': self.source.domain,
                'credibility': self.source.credibility,
            },
            'sentiment': self.sentiment,
            'qualityScore': self.quality_score,
            'topics': list(self.topics),
            'bias': self.bias,
        }
        if self.fact_check is not None:
            data['factCheck'] = {
                'status': self.fact_check.status,
                'confidence': self.fact_check.confidence,
            }
        if self.relevance_score is not None:
            data['relevanceScore'] = self.relevance_score
        return data


@dataclass
class ScrapedArticle:
    """Best-effort structure pulled out of a fetched page."""
    title: str
    content: str
    published_at: datetime = field(default_factory=utcnow)
    description: Optional[str] = None
    author: Optional[str] = None
    image: Optional[str] = None
    tags: List[str] = field(default_factory=list)


@dataclass
class SearchResult:
    """
    One validated record from an upstream search engine.
    """
    url: str
    title: str = "Untitled"
    content: str = ""
    thumbnail: Optional[str] = None
    published_at: datetime = field(default_factory=utcnow)
    engine: Optional[str] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "SearchResult":
        """
        Build a SearchResult from a raw engine record, applying defaults
        for every missing field.

        Raises:
            ValueError: If the record has no URL
        """
        url = (record.get('url') or '').strip()
        if not url:
            raise ValueError("search result has no url")

        published = parse_datetime(record.get('publishedDate')) or parse_datetime(record.get('date'))
        return cls(
            url=url,
            title=(record.get('title') or '').strip() or "Untitled",
            content=record.get('content') or record.get('description') or "",
            thumbnail=record.get('img_src') or record.get('thumbnail') or None,
            published_at=published or utcnow(),
            engine=record.get('engine') or None,
        )

    @property
    def domain(self) -> str:
        return domain_from_url(self.url)

    @property
    def source_name(self) -> str:
        return self.engine or self.domain

    def to_article(self, article_id: str) -> Article:
        return Article(
            id=article_id,
            title=self.title,
            content=self.content,
            url=self.url,
            thumbnail=self.thumbnail,
            published_at=self.published_at,
            source=Source(name=self.source_name, domain=self.domain),
        )


@dataclass
class Interaction:
    article_id: str
    action: str
    timestamp: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if self.action not in ACTIONS:
            raise ValueError(f"unknown interaction action: {self.action}")


@dataclass
class InteractionEvent:
    """A user action on an article, with the article context needed to learn from it."""
    article_id: str
    action: str
    topics: List[str] = field(default_factory=list)
    source: str = ""
    timestamp: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if self.action not in ACTIONS:
            raise ValueError(f"unknown interaction action: {self.action}")


@dataclass
class TopicWeight:
    topic: str
    weight: float

    def __post_init__(self):
        self.weight = float(clamp_score(self.weight, 0, 1))


@dataclass
class UserPreferences:
    interests: List[str] = field(default_factory=list)
    preferred_sources: List[str] = field(default_factory=list)
    avoided_sources: List[str] = field(default_factory=list)
    reading_history: List[str] = field(default_factory=list)
    interaction_history: List[Interaction] = field(default_factory=list)
    personalized_topics: List[TopicWeight] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserPreferences":
        """
        Load preferences from their JSON shape (camelCase keys).

        Raises:
            ValueError: If the data or any entry in it is malformed
        """
        if not isinstance(data, dict):
            raise ValueError("preferences must be a JSON object")
        try:
            history = [
                Interaction(
                    article_id=str(item['articleId']),
                    action=item['action'],
                    timestamp=parse_datetime(item.get('timestamp')) or utcnow(),
                )
                for item in data.get('interactionHistory', [])
            ]
            topics = [
                TopicWeight(topic=str(item['topic']), weight=float(item['weight']))
                for item in data.get('personalizedTopics', [])
            ]
            return cls(
                interests=list(data.get('interests', [])),
                preferred_sources=list(data.get('preferredSources', [])),
                avoided_sources=list(data.get('avoidedSources', [])),
                reading_history=list(data.get('readingHistory', [])),
                interaction_history=history,
                personalized_topics=topics,
            )
        except KeyError as e:
            raise ValueError(f"preferences entry is missing {e}") from e
        except (AttributeError, TypeError) as e:
            raise ValueError(f"malformed preferences: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            'interests': list(self.interests),
            'preferredSources': list(self.preferred_sources),
            'avoidedSources': list(self.avoided_sources),
            'readingHistory': list(self.reading_history),
            'interactionHistory': [
                {
                    'articleId': i.article_id,
                    'action': i.action,
                    'timestamp': i.timestamp.isoformat(),
                }
                for i in self.interaction_history
            ],
            'personalizedTopics': [
                {'topic': t.topic, 'weight': t.weight} for t in self.personalized_topics
            ],
        }


@dataclass
class NewsFilter:
    """
    Optional criteria a caller can apply to a batch of processed articles.
    Unset criteria match everything.
    """
    topics: Optional[List[str]] = None
    sources: Optional[List[str]] = None
    sentiment: Optional[List[str]] = None
    time_from: Optional[datetime] = None
    time_to: Optional[datetime] = None
    quality_threshold: Optional[int] = None
    credibility: Optional[List[str]] = None

    def matches(self, article: Article) -> bool:
        if self.topics and not set(self.topics) & set(article.topics):
            return False
        if self.sources and article.source.domain not in self.sources:
            return False
        if self.sentiment and article.sentiment not in self.sentiment:
            return False
        if self.time_from and article.published_at < self.time_from:
            return False
        if self.time_to and article.published_at > self.time_to:
            return False
        if self.quality_threshold is not None and article.quality_score < self.quality_threshold:
            return False
        if self.credibility and article.source.credibility not in self.credibility:
            return False
        return True

    def apply(self, articles: List[Article]) -> List[Article]:
        return [article for article in articles if self.matches(article)]


@dataclass
class CrawlResult:
    articles: List[Article]
    total_found: int
    sources_scanned: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'articles': [a.to_dict() for a in self.articles],
            'totalFound': self.total_found,
            'sourcesScanned': list(self.sources_scanned),
            'errors': list(self.errors),
            'timestamp': self.timestamp.isoformat(),
        }
