"""
Shared HTTP settings and per-domain politeness for the scraper.
"""
import asyncio
import time
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Optional

from newsdesk.config import get_config

logger = logging.getLogger(__name__)

RATE_LIMIT = get_config('http.rate_limit', 1)  # minimum seconds between hits on one domain
MAX_CONCURRENT_REQUESTS = get_config('pipeline.max_concurrent', 5)
REQUEST_TIMEOUT = get_config('scraper.timeout_seconds', 15)

# Looks like a desktop browser; several publishers refuse default client agents
DEFAULT_HEADERS = {
    'User-Agent': (
        'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
    ),
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
    'Accept-Encoding': 'gzip, deflate',
    'Cache-Control': 'no-cache',
}


@dataclass
class DomainState:
    last_request: Optional[float] = None
    failures: int = 0
    delay: float = 0.0


class RateLimiter:
    """
    Spaces out requests to the same publisher.

    Each domain waits at least rate_limit seconds between requests. A domain
    that fails failure_threshold times in a row has its delay doubled, up to
    max_backoff; successful requests shrink it back towards rate_limit.
    """
    def __init__(
        self,
        rate_limit: Optional[float] = None,
        max_backoff: Optional[float] = None,
        failure_threshold: Optional[int] = None,
    ):
        self.rate_limit = RATE_LIMIT if rate_limit is None else rate_limit
        self.max_backoff = get_config('http.max_backoff', 60.0) if max_backoff is None else max_backoff
        self.failure_threshold = (
            get_config('http.failure_threshold', 3) if failure_threshold is None else failure_threshold
        )
        self.domains: Dict[str, DomainState] = defaultdict(lambda: DomainState(delay=float(self.rate_limit)))
        self.locks = defaultdict(asyncio.Lock)

    def failures(self, domain: str) -> int:
        return self.domains[domain].failures

    def delay(self, domain: str) -> float:
        return self.domains[domain].delay

    async def acquire(self, domain: str):
        """
        Wait until a request to domain is allowed.

        The first request to a domain never waits.
        """
        async with self.locks[domain]:
            state = self.domains[domain]
            if state.last_request is not None:
                remaining = max(self.rate_limit, state.delay) - (time.monotonic() - state.last_request)
                if remaining > 0:
                    logger.debug(f"Rate limiting {domain}, waiting {remaining:.2f}s")
                    await asyncio.sleep(remaining)
            state.last_request = time.monotonic()

    def report_success(self, domain: str):
        state = self.domains[domain]
        state.failures = 0
        if state.delay > self.rate_limit:
            state.delay = max(self.rate_limit, state.delay * 0.8)

    def report_failure(self, domain: str):
        state = self.domains[domain]
        state.failures += 1
        if state.failures >= self.failure_threshold:
            state.delay = min(self.max_backoff, max(1.0, state.delay) * 2.0)
            logger.warning(f"{domain} failed {state.failures} times, backing off {state.delay:.2f}s")
