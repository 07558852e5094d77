"""
Extractive summarization of articles.
"""
import dataclasses
import logging
from typing import List, Optional

from newsdesk.agents.base import AgentMetrics, BaseAgent
from newsdesk.config import get_config
from newsdesk.core.article import Article
from newsdesk.utils.text import extract_keywords, split_fragments, truncate

logger = logging.getLogger(__name__)

MAX_SENTENCES = get_config('summarizer.max_sentences', 3)
FALLBACK_LENGTH = get_config('summarizer.fallback_length', 200)


class SummarizerAgent(BaseAgent):
    """
    Builds a short summary by picking the best sentences of the body.
    """
    name = "News Summarizer"

    def __init__(self, max_sentences: int = MAX_SENTENCES, metrics: Optional[AgentMetrics] = None):
        super().__init__(metrics)
        self.max_sentences = max_sentences

    async def process(self, article: Article) -> Article:
        return self.run_safely(
            lambda: dataclasses.replace(article, summary=self.generate_summary(article)),
            'article summarization',
            article,
        )

    def generate_summary(self, article: Article) -> str:
        """
        Summarize an article.

        Short bodies fall back to the title, and bodies with two or fewer
        real sentences fall back to a truncation.
        """
        content = article.content
        if not content or len(content) < 100:
            return article.title

        try:
            return self._extract(article)
        except Exception:
            logger.exception(f"Summary generation failed for {article.id}")
            return truncate(content, FALLBACK_LENGTH)

    def _extract(self, article: Article) -> str:
        # Fragments keep their leading whitespace, which counts towards the length bonus
        sentences = split_fragments(article.content, min_length=20)
        if len(sentences) <= 2:
            return truncate(article.content, FALLBACK_LENGTH)

        keywords = extract_keywords(article.title)
        last = len(sentences) - 1

        scored = []
        for index, sentence in enumerate(sentences):
            score = 0
            if index == 0:
                score += 3
            if index == last:
                score += 2
            lowered = sentence.lower()
            score += 2 * sum(1 for keyword in keywords if keyword in lowered)
            if 50 < len(sentence) < 200:
                score += 1
            scored.append((score, index, sentence.strip()))

        # sorted() is stable, so equal scores keep their original order
        top = sorted(scored, key=lambda item: item[0], reverse=True)[:self.max_sentences]
        top.sort(key=lambda item: item[1])
        return '. '.join(sentence for _, _, sentence in top) + '.'

    async def batch_process(self, articles: List[Article]) -> List[Article]:
        return await self.gather_articles(articles, 'batch summarization')
