import threading

import pytest

from newsdesk.core.store import ArticleStore


@pytest.fixture
def store():
    return ArticleStore()


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

class TestLookups:
    def test_store_and_get_by_slug_and_id(self, store, make_article):
        article = make_article()
        store.store_article(article, "a-reasonably-long-headline")
        assert store.get_article_by_slug("a-reasonably-long-headline") is article
        assert store.get_article_by_id(article.id) is article

    def test_unknown_keys_return_none(self, store):
        assert store.get_article_by_slug("missing") is None
        assert store.get_article_by_id("missing") is None
        assert store.has_article_by_url("https://nowhere.example/") is None

    def test_same_url_returns_first_stored_article(self, store, make_article):
        first = make_article(url="https://news.example/story")
        second = make_article(url="https://news.example/story")
        store.store_article(first, "story")
        assert store.has_article_by_url(second.url) is first
        assert store.get_slug_for_url(second.url) == "story"

    def test_restore_same_id_releases_old_slug(self, store, make_article):
        article = make_article()
        store.store_article(article, "old-slug")
        store.store_article(article, "new-slug")
        assert store.get_article_by_slug("old-slug") is None
        assert store.get_article_by_slug("new-slug") is article
        assert store.get_stats()['total_slugs'] == 1

    def test_same_url_different_id_replaces_entry(self, store, make_article):
        first = make_article(url="https://news.example/story")
        second = make_article(url="https://news.example/story")
        store.store_article(first, "story")
        store.store_article(second, "story-1")
        assert len(store) == 1
        assert store.has_article_by_url("https://news.example/story") is second
        assert store.get_article_by_slug("story") is None
        assert store.get_article_by_id(first.id) is None
        assert store.get_stats()['total_slugs'] == 1

    def test_store_with_unique_slug_keeps_existing_url(self, store, make_article):
        first = make_article(url="https://news.example/story")
        second = make_article(url="https://news.example/story")
        assert store.store_with_unique_slug(first, "story").slug == "story"
        stored = store.store_with_unique_slug(second, "story")
        assert stored.slug == "story"
        assert stored.article is first
        assert len(store) == 1
        assert store.get_article_by_id(second.id) is None


# ---------------------------------------------------------------------------
# Slugs
# ---------------------------------------------------------------------------

class TestUniqueSlugs:
    def test_free_slug_returned_unchanged(self, store):
        assert store.generate_unique_slug("fed-cuts") == "fed-cuts"

    def test_taken_slugs_get_counters(self, store, make_article):
        store.store_article(make_article(), "fed-cuts")
        store.store_article(make_article(), "fed-cuts-1")
        assert store.generate_unique_slug("fed-cuts") == "fed-cuts-2"

    def test_two_calls_before_storing_differ(self, store):
        first = store.generate_unique_slug("fed-cuts")
        second = store.generate_unique_slug("fed-cuts")
        assert first != second
        assert second == "fed-cuts-1"

    def test_store_with_unique_slug(self, store, make_article):
        a, b = make_article(), make_article()
        assert store.store_with_unique_slug(a, "same").slug == "same"
        assert store.store_with_unique_slug(b, "same").slug == "same-1"
        assert store.get_article_by_slug("same-1") is b

    def test_concurrent_writers_get_distinct_slugs(self, store, make_article):
        articles = [make_article() for _ in range(50)]
        slugs = []
        lock = threading.Lock()

        def worker(article):
            slug = store.store_with_unique_slug(article, "hot-story").slug
            with lock:
                slugs.append(slug)

        threads = [threading.Thread(target=worker, args=(a,)) for a in articles]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(set(slugs)) == 50
        stats = store.get_stats()
        assert stats['total_articles'] == 50
        assert stats['total_slugs'] == 50


# ---------------------------------------------------------------------------
# Eviction
# ---------------------------------------------------------------------------

class TestEviction:
    def test_never_exceeds_limit_and_keeps_most_recent(self, make_article):
        store = ArticleStore()
        articles = [make_article() for _ in range(1001)]
        for index, article in enumerate(articles):
            store.store_article(article, f"slug-{index}")
            assert len(store) <= 1000

        assert len(store) == 800
        kept_ids = {a.id for a in store.get_all_articles()}
        assert kept_ids == {a.id for a in articles[-800:]}
        assert store.get_article_by_slug("slug-0") is None
        assert store.get_article_by_slug("slug-1000") is articles[-1]
        assert store.get_stats()['total_slugs'] == 800

    def test_small_limits(self, make_article):
        store = ArticleStore(max_articles=5, retain_articles=3)
        for index in range(6):
            store.store_article(make_article(), f"s{index}")
        assert [store.get_article_by_slug(f"s{i}") is not None for i in range(6)] == [
            False, False, False, True, True, True,
        ]

    def test_evicted_slug_can_be_reused(self, make_article):
        store = ArticleStore(max_articles=2, retain_articles=1)
        for index in range(3):
            store.store_article(make_article(), f"s{index}")
        assert store.generate_unique_slug("s0") == "s0"

    def test_retain_cannot_exceed_max(self):
        with pytest.raises(ValueError):
            ArticleStore(max_articles=10, retain_articles=20)


# ---------------------------------------------------------------------------
# Listing and stats
# ---------------------------------------------------------------------------

class TestListing:
    def test_all_articles_newest_first(self, store, make_article):
        first, second, third = make_article(), make_article(), make_article()
        for index, article in enumerate([first, second, third]):
            store.store_article(article, f"s{index}")
        assert store.get_all_articles() == [third, second, first]

    def test_stats(self, store, make_article):
        assert store.get_stats() == {'total_articles': 0, 'total_slugs': 0, 'oldest_article': None}
        store.store_article(make_article(), "one")
        stats = store.get_stats()
        assert stats['total_articles'] == 1
        assert stats['total_slugs'] == 1
        assert stats['oldest_article'] is not None
