from datetime import datetime, timedelta, timezone

import pytest

from newsdesk.core.article import Article, Source

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_article():
    """Builds an Article with sensible defaults, overridable via kwargs."""
    counter = {'n': 0}

    def factory(**kwargs):
        counter['n'] += 1
        domain = kwargs.pop('domain', 'example.com')
        credibility = kwargs.pop('credibility', 'medium')
        defaults = {
            'id': f"article-{counter['n']}",
            'title': "A reasonably long headline for testing",
            'content': "",
            'url': f"https://{domain}/story-{counter['n']}",
            'source': Source(name=domain, domain=domain, credibility=credibility),
            'published_at': NOW - timedelta(hours=48),
        }
        defaults.update(kwargs)
        return Article(**defaults)

    return factory
