"""
Per-user relevance scoring and feed diversification.
"""
import copy
import dataclasses
import logging
from datetime import datetime
from typing import Dict, List, Optional

from newsdesk.agents.base import AgentMetrics, BaseAgent
from newsdesk.config import get_config
from newsdesk.core.article import (
    POSITIVE_ACTIONS,
    Article,
    Interaction,
    InteractionEvent,
    TopicWeight,
    UserPreferences,
    clamp_score,
    utcnow,
)

logger = logging.getLogger(__name__)

FEED_LIMIT = get_config('personalizer.feed_limit', 20)
HISTORY_LIMIT = get_config('personalizer.history_limit', 1000)

# Relevance a pass-1 article needs to claim its topic slot
HIGH_RELEVANCE = 70
ENGAGED_ACTIONS = ('view', 'like', 'share')


class PersonalizerAgent(BaseAgent):
    """
    Ranks articles for one user and builds a feed that spreads across
    topics and sources.
    """
    name = "News Personalizer"

    def __init__(self, history_limit: int = HISTORY_LIMIT, metrics: Optional[AgentMetrics] = None):
        super().__init__(metrics)
        self.history_limit = history_limit

    async def process(
        self,
        articles: List[Article],
        preferences: UserPreferences,
        now: Optional[datetime] = None,
    ) -> List[Article]:
        """
        Score articles for a user.

        Returns:
            Scored copies sorted by relevance, highest first; ties keep input
            order. If scoring fails the original list is returned unscored.
        """
        return self.run_safely(
            lambda: self._rank(articles, preferences, now or utcnow()),
            'personalization',
            articles,
        )

    def _rank(self, articles: List[Article], preferences: UserPreferences, now: datetime) -> List[Article]:
        distribution = self.calculate_topic_distribution(preferences)
        scored = [
            dataclasses.replace(
                article,
                relevance_score=self.calculate_relevance_score(article, preferences, now, distribution),
            )
            for article in articles
        ]
        return sorted(scored, key=lambda a: a.relevance_score, reverse=True)

    def calculate_relevance_score(
        self,
        article: Article,
        preferences: UserPreferences,
        now: Optional[datetime] = None,
        distribution: Optional[Dict[str, float]] = None,
    ) -> float:
        """
        Relevance of one article to one user, clamped to 0-100.
        """
        now = now or utcnow()
        if distribution is None:
            distribution = self.calculate_topic_distribution(preferences)

        score = 50.0
        interests = [i.lower() for i in preferences.interests]
        topics = [t.lower() for t in article.topics]

        matches = [
            topic for topic in topics
            if any(interest in topic or topic in interest for interest in interests)
        ]
        score += len(matches) * 15

        for weighted in preferences.personalized_topics:
            needle = weighted.topic.lower()
            if any(needle in topic for topic in topics):
                score += weighted.weight * 20

        domain = article.source.domain
        if domain in preferences.preferred_sources:
            score += 20
        if domain in preferences.avoided_sources:
            score -= 30

        positive = sum(1 for i in preferences.interaction_history if i.action in POSITIVE_ACTIONS)
        if positive:
            score += min(15, positive * 3)

        if preferences.reading_history:
            score += 10

        score += article.quality_score * 0.3
        if article.source.credibility == 'high':
            score += 10
        elif article.source.credibility == 'low':
            score -= 15

        hours = max(0.0, (now - article.published_at).total_seconds() / 3600)
        if hours < 24:
            score += 10 - hours / 3

        # Echo chamber damping for topics the user already reads heavily
        if distribution.get(article.primary_topic, 0) > 0.5:
            score -= 5

        return float(clamp_score(score))

    @staticmethod
    def calculate_topic_distribution(preferences: UserPreferences) -> Dict[str, float]:
        engaged = sum(1 for i in preferences.interaction_history if i.action in ENGAGED_ACTIONS)
        return {
            weighted.topic: weighted.weight / max(1, engaged)
            for weighted in preferences.personalized_topics
        }

    async def generate_personalized_feed(
        self,
        all_articles: List[Article],
        preferences: UserPreferences,
        limit: int = FEED_LIMIT,
        now: Optional[datetime] = None,
    ) -> List[Article]:
        """
        Rank articles for a user and pick a diverse feed of at most limit items.
        """
        ranked = await self.process(all_articles, preferences, now=now)
        return self.apply_diversity_filter(ranked, limit)[:limit]

    @staticmethod
    def apply_diversity_filter(articles: List[Article], limit: int) -> List[Article]:
        """
        Select up to limit articles in three greedy passes over the ranked list.

        1. High-relevance articles, one per primary topic.
        2. Unselected articles, one per source domain.
        3. Whatever is left, in ranked order.

        The first article seen wins any tie, so the output only depends on
        the order of the input.
        """
        selected: List[int] = []
        chosen = set()
        used_topics = set()
        used_sources = set()

        for index, article in enumerate(articles):
            if len(selected) >= limit:
                break
            topic = article.topics[0] if article.topics else None
            if topic not in used_topics and (article.relevance_score or 0) > HIGH_RELEVANCE:
                selected.append(index)
                chosen.add(index)
                used_topics.add(topic)
                used_sources.add(article.source.domain)

        for index, article in enumerate(articles):
            if len(selected) >= limit:
                break
            if index not in chosen and article.source.domain not in used_sources:
                selected.append(index)
                chosen.add(index)
                used_sources.add(article.source.domain)

        for index in range(len(articles)):
            if len(selected) >= limit:
                break
            if index not in chosen:
                selected.append(index)
                chosen.add(index)

        return [articles[index] for index in selected]

    def update_user_preferences(self, preferences: UserPreferences, event: InteractionEvent) -> UserPreferences:
        """
        Learn from one interaction.

        Positive actions raise the weights of the article's topics and mark
        its source preferred; a dislike lowers them and marks the source
        avoided.

        Returns:
            Updated copy of the preferences; the input is not modified
        """
        updated = copy.deepcopy(preferences)

        updated.interaction_history.append(
            Interaction(article_id=event.article_id, action=event.action, timestamp=event.timestamp)
        )
        if len(updated.interaction_history) > self.history_limit:
            updated.interaction_history = updated.interaction_history[-self.history_limit:]

        weights = {weighted.topic: weighted for weighted in updated.personalized_topics}

        if event.action in POSITIVE_ACTIONS:
            for topic in event.topics:
                existing = weights.get(topic)
                if existing is not None:
                    existing.weight = min(1.0, existing.weight + 0.05)
                else:
                    weights[topic] = TopicWeight(topic=topic, weight=0.1)
                    updated.personalized_topics.append(weights[topic])
            if event.source and event.source not in updated.preferred_sources:
                updated.preferred_sources.append(event.source)

        elif event.action == 'dislike':
            for topic in event.topics:
                existing = weights.get(topic)
                if existing is not None:
                    existing.weight = max(0.0, existing.weight - 0.1)
            if event.source and event.source not in updated.avoided_sources:
                updated.avoided_sources.append(event.source)

        logger.debug(f"Recorded {event.action} on {event.article_id}")
        return updated
