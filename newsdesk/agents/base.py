"""
Shared contract for article processing agents.
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar

from newsdesk.core.article import Article, utcnow

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class AgentStats:
    runs: int = 0
    failures: int = 0
    total_seconds: float = 0.0
    last_run: Optional[datetime] = None

    @property
    def average_seconds(self) -> float:
        return self.total_seconds / self.runs if self.runs else 0.0


class AgentMetrics:
    """
    Optional collector for agent run counts and timings.

    Agents report to it when one is injected; they keep no bookkeeping of
    their own.
    """
    def __init__(self):
        self._stats: Dict[str, AgentStats] = defaultdict(AgentStats)

    def record(self, agent: str, seconds: float, success: bool):
        stats = self._stats[agent]
        stats.runs += 1
        stats.total_seconds += seconds
        stats.last_run = utcnow()
        if not success:
            stats.failures += 1

    def get(self, agent: str) -> AgentStats:
        return self._stats[agent]

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {
            name: {
                'runs': stats.runs,
                'failures': stats.failures,
                'average_seconds': stats.average_seconds,
                'last_run': stats.last_run.isoformat() if stats.last_run else None,
            }
            for name, stats in self._stats.items()
        }


class BaseAgent(ABC):
    """
    Base class for pipeline stages.

    Subclasses implement process(). A stage never fails its caller: errors
    raised inside run_safely are logged and the given fallback is returned.
    """
    name = "agent"

    def __init__(self, metrics: Optional[AgentMetrics] = None):
        self.metrics = metrics

    @abstractmethod
    async def process(self, *args, **kwargs):
        """Run the stage on its input and return the enriched result."""

    def run_safely(self, operation: Callable[[], T], operation_name: str, fallback: T) -> T:
        """
        Run operation, returning fallback if it raises.

        Args:
            operation: Zero-argument callable doing the stage's work
            operation_name: Label used in log messages
            fallback: Value returned when operation fails
        """
        start = time.perf_counter()
        try:
            result = operation()
        except Exception:
            logger.exception(f"{self.name} - {operation_name} failed")
            self._record(start, False)
            return fallback
        self._record(start, True)
        return result

    def _record(self, start: float, success: bool):
        if self.metrics is not None:
            self.metrics.record(self.name, time.perf_counter() - start, success)

    async def gather_articles(self, articles: List[Article], operation_name: str) -> List[Article]:
        """
        Run process() over articles concurrently.

        Items whose processing raises are logged and left out; the rest keep
        their input order.
        """
        results = await asyncio.gather(
            *(self.process(article) for article in articles),
            return_exceptions=True,
        )

        processed = []
        for article, result in zip(articles, results):
            if isinstance(result, BaseException):
                logger.warning(f"{self.name} - {operation_name} skipped {article.id}: {result!r}")
                continue
            processed.append(result)
        return processed
