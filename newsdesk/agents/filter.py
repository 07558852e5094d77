"""
Quality, credibility and classification filtering for articles.
"""
import dataclasses
import re
from typing import Iterable, List, Optional

from newsdesk.agents.base import AgentMetrics, BaseAgent
from newsdesk.config import get_config
from newsdesk.core.article import Article
from newsdesk.utils.text import count_phrases, split_sentences

TRUSTED_DOMAINS = {
    'reuters.com', 'bbc.com', 'apnews.com', 'npr.org', 'pbs.org',
    'wsj.com', 'ft.com', 'bloomberg.com', 'economist.com',
    'nytimes.com', 'washingtonpost.com', 'theguardian.com',
    'cnn.com', 'abcnews.go.com', 'cbsnews.com', 'nbcnews.com'
}

SUSPICIOUS_DOMAINS = {
    'example-fake-news.com'
}

# Each category costs 20 points once, however many of its phrases match
MISINFORMATION_PATTERNS = [
    re.compile(r"\b(fake|hoax|conspiracy|coverup)\b", re.IGNORECASE),
    re.compile(r"\b(they don't want you to know|shocking truth|hidden agenda)\b", re.IGNORECASE),
    re.compile(r"\b(doctors hate this|one weird trick|shocking secret)\b", re.IGNORECASE),
]

ATTRIBUTION_PHRASES = ('according to', 'sources say')

POSITIVE_WORDS = [
    'good', 'great', 'excellent', 'success', 'win', 'positive',
    'growth', 'increase', 'improve', 'benefit'
]
NEGATIVE_WORDS = [
    'bad', 'terrible', 'fail', 'loss', 'negative',
    'decline', 'decrease', 'problem', 'crisis', 'threat'
]

LEFT_INDICATORS = ['progressive', 'liberal', 'social justice', 'climate change', 'inequality']
RIGHT_INDICATORS = ['conservative', 'traditional', 'free market', 'law and order', 'border security']

TOPIC_KEYWORDS = {
    'Technology': ['tech', 'ai', 'artificial intelligence', 'software', 'computer', 'digital',
                   'internet', 'data', 'cyber'],
    'Politics': ['election', 'government', 'political', 'senate', 'congress', 'president',
                 'policy', 'law', 'vote'],
    'Business': ['business', 'economy', 'market', 'financial', 'company', 'corporate',
                 'trade', 'economic', 'finance'],
    'Health': ['health', 'medical', 'hospital', 'doctor', 'disease', 'medicine',
               'treatment', 'healthcare', 'patient'],
    'Sports': ['sports', 'game', 'team', 'player', 'championship', 'league',
               'match', 'tournament', 'athlete'],
    'Entertainment': ['movie', 'music', 'celebrity', 'film', 'entertainment', 'actor',
                      'show', 'concert', 'theater'],
    'Science': ['science', 'research', 'study', 'scientist', 'discovery', 'experiment',
                'scientific', 'laboratory'],
    'World News': ['international', 'global', 'world', 'foreign', 'country', 'nation',
                   'embassy', 'diplomatic'],
    'Environment': ['climate', 'environment', 'green', 'sustainable', 'pollution',
                    'renewable', 'carbon', 'ecology'],
}

DEFAULT_TOPIC = 'General'
MIN_QUALITY_SCORE = get_config('filter.min_quality_score', 30)


class FilterAgent(BaseAgent):
    """
    Scores article quality and tags credibility, sentiment, bias and topics.

    Every rule is a fixed heuristic over the title, body and source domain,
    so the same article always gets the same scores.
    """
    name = "Content Filter"

    def __init__(
        self,
        trusted_domains: Optional[Iterable[str]] = None,
        suspicious_domains: Optional[Iterable[str]] = None,
        metrics: Optional[AgentMetrics] = None,
    ):
        super().__init__(metrics)
        self.trusted_domains = set(TRUSTED_DOMAINS)
        self.trusted_domains.update(get_config('filter.trusted_domains', []) or [])
        self.trusted_domains.update(trusted_domains or [])
        self.suspicious_domains = set(SUSPICIOUS_DOMAINS)
        self.suspicious_domains.update(get_config('filter.suspicious_domains', []) or [])
        self.suspicious_domains.update(suspicious_domains or [])

    async def process(self, article: Article) -> Article:
        """
        Score and classify an article.

        Returns:
            A scored copy of the article, or the article unchanged if
            scoring failed
        """
        return self.run_safely(lambda: self._filter(article), 'article filtering', article)

    def _filter(self, article: Article) -> Article:
        return dataclasses.replace(
            article,
            quality_score=self.calculate_quality_score(article),
            source=dataclasses.replace(
                article.source,
                credibility=self.assess_source_credibility(article.source.domain),
            ),
            sentiment=self.analyze_sentiment(article),
            bias=self.detect_bias(article),
            topics=self.extract_topics(article),
        )

    def calculate_quality_score(self, article: Article) -> int:
        """
        Heuristic quality score: starts at 50, adjusted by length, title,
        source and language signals, clamped to 0-100.
        """
        score = 50
        content = article.content or ''
        title = article.title or ''

        if len(content) < 100:
            score -= 20
        elif len(content) > 500:
            score += 10

        if len(title) < 20:
            score -= 10
        if 'BREAKING' in title or 'URGENT' in title:
            score += 5
        if title.count('!') > 2:
            score -= 15  # clickbait

        domain = article.source.domain
        if domain in self.trusted_domains:
            score += 20
        elif domain in self.suspicious_domains:
            score -= 30

        if len(split_sentences(content, min_length=10)) > 5:
            score += 5

        for pattern in MISINFORMATION_PATTERNS:
            if pattern.search(content) or pattern.search(title):
                score -= 20

        if any(phrase in content for phrase in ATTRIBUTION_PHRASES):
            score += 5

        return max(0, min(100, score))

    def assess_source_credibility(self, domain: str) -> str:
        if domain in self.trusted_domains:
            return 'high'
        if domain in self.suspicious_domains:
            return 'low'
        return 'medium'

    @staticmethod
    def _text(article: Article) -> str:
        return f"{article.title} {article.content}".lower()

    def analyze_sentiment(self, article: Article) -> str:
        text = self._text(article)
        positive = count_phrases(text, POSITIVE_WORDS)
        negative = count_phrases(text, NEGATIVE_WORDS)

        if positive > negative + 2:
            return 'positive'
        if negative > positive + 2:
            return 'negative'
        return 'neutral'

    def detect_bias(self, article: Article) -> str:
        text = self._text(article)
        left = count_phrases(text, LEFT_INDICATORS)
        right = count_phrases(text, RIGHT_INDICATORS)

        if left > right + 1:
            return 'left'
        if right > left + 1:
            return 'right'
        if left + right > 0:
            return 'center'
        return 'unknown'

    def extract_topics(self, article: Article) -> List[str]:
        text = self._text(article)
        topics = [
            topic for topic, keywords in TOPIC_KEYWORDS.items()
            if any(keyword in text for keyword in keywords)
        ]
        return topics or [DEFAULT_TOPIC]

    async def batch_filter(self, articles: List[Article], min_quality_score: int = MIN_QUALITY_SCORE) -> List[Article]:
        """
        Filter a batch concurrently and keep articles meeting the threshold.

        Args:
            articles: Articles to score
            min_quality_score: Minimum quality score to keep

        Returns:
            Scored articles at or above the threshold, in input order
        """
        filtered = await self.gather_articles(articles, 'batch filtering')
        return [article for article in filtered if article.quality_score >= min_quality_score]
