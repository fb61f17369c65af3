"""
Tests for the content-addressable HTML cache.
"""

from datetime import timedelta

import pytest

from core.html_cache import HtmlCache, content_hash
from core.models import utcnow

URL = "https://boards.greenhouse.io/acme/jobs/4012345?utm_source=newsletter"
HTML = "<html><body><h1>Senior Engineer</h1></body></html>"


@pytest.fixture
def cache(store):
    return HtmlCache(store)


class TestContentHash:
    def test_deterministic_sha256(self):
        assert content_hash(HTML) == content_hash(HTML)
        assert len(content_hash(HTML)) == 64

    def test_differs_by_content(self):
        assert content_hash(HTML) != content_hash(HTML + " ")


class TestHtmlCache:
    """Test HtmlCache."""

    def test_store_is_idempotent(self, cache, store):
        """Writing identical content twice returns the same row."""
        first = cache.store_html(1, URL, HTML, cleaned_html="Senior Engineer", http_status=200)
        second = cache.store_html(1, URL, HTML, cleaned_html="Senior Engineer", http_status=200)

        assert first.id == second.id
        assert store.count_cache_entries(1, first.url) == 1

    def test_url_is_normalized_for_keying(self, cache, store):
        first = cache.store_html(1, URL, HTML)
        second = cache.store_html(1, "https://boards.greenhouse.io/acme/jobs/4012345/", HTML)
        assert first.id == second.id
        assert first.url == "https://boards.greenhouse.io/acme/jobs/4012345"

    def test_new_content_creates_new_row(self, cache, store):
        first = cache.store_html(1, URL, HTML)
        second = cache.store_html(1, URL, HTML.replace("Senior", "Staff"))
        assert first.id != second.id
        assert store.count_cache_entries(1, first.url) == 2

    def test_same_content_different_listing(self, cache):
        first = cache.store_html(1, URL, HTML)
        second = cache.store_html(2, URL, HTML)
        assert first.id != second.id

    def test_valid_for_thirty_days(self, cache):
        now = utcnow()
        entry = cache.store_html(1, URL, HTML, now=now)
        assert entry.valid_until == now + timedelta(days=30)
        assert entry.is_valid(now + timedelta(days=29))
        assert not entry.is_valid(now + timedelta(days=31))

    def test_lookup_returns_latest_valid(self, cache):
        old = cache.store_html(1, URL, HTML, now=utcnow() - timedelta(days=5))
        new = cache.store_html(1, URL, HTML + "<p>updated</p>")
        assert cache.lookup(1, URL).id == new.id
        assert old.id != new.id

    def test_lookup_ignores_expired(self, cache):
        cache.store_html(1, URL, HTML, now=utcnow() - timedelta(days=31))
        assert cache.lookup(1, URL) is None

    def test_identical_write_revives_expired_entry(self, cache, store):
        """Re-storing unchanged html after expiry makes the same row valid again."""
        old = cache.store_html(1, URL, HTML, now=utcnow() - timedelta(days=40))
        assert cache.lookup(1, URL) is None

        now = utcnow()
        again = cache.store_html(1, URL, HTML, now=now)

        assert again.id == old.id
        assert again.valid_until == now + timedelta(days=30)
        assert cache.lookup(1, URL).id == old.id
        assert store.count_cache_entries(1, old.url) == 1

    def test_identical_write_never_shortens_validity(self, cache):
        entry = cache.store_html(1, URL, HTML)
        extended = cache.extend(entry, days=60)
        again = cache.store_html(1, URL, HTML)
        assert again.valid_until == extended.valid_until

    def test_html_for_extraction_prefers_cleaned(self, cache):
        cache.store_html(1, URL, HTML, cleaned_html="Senior Engineer")
        assert cache.html_for_extraction(1, URL) == "Senior Engineer"

    def test_html_for_extraction_falls_back_to_raw(self, cache):
        cache.store_html(1, URL, HTML)
        assert cache.html_for_extraction(1, URL) == HTML

    def test_expire_and_extend(self, cache):
        entry = cache.store_html(1, URL, HTML)
        cache.expire(entry)
        assert cache.lookup(1, URL) is None

        cache.extend(entry, days=7)
        assert cache.lookup(1, URL).id == entry.id

    def test_extend_never_shortens(self, cache):
        entry = cache.store_html(1, URL, HTML)
        original = entry.valid_until
        cache.extend(entry, days=1)
        assert entry.valid_until == original

    def test_invalidate(self, cache):
        cache.store_html(1, URL, HTML)
        cache.store_html(1, URL, HTML + "<p>v2</p>")
        assert cache.invalidate(1, URL) == 2
        assert cache.lookup(1, URL) is None
