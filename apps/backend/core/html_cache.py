"""
Content-addressable HTML cache.

Entries are keyed by (normalized url, listing id, sha256 of the raw html).
Writing identical content twice returns the existing row with its validity
renewed; changed content for the same URL creates a new dated entry instead of
overwriting. Lookups return the freshest entry still inside its validity window.
"""

import hashlib
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from core.models import CachedHtmlEntry, utcnow
from core.store import Store
from core.url_normalizer import normalize_url

logger = logging.getLogger(__name__)

VALIDITY_PERIOD_DAYS = 30


def content_hash(html: str) -> str:
    """SHA-256 hex digest of the raw html"""
    return hashlib.sha256((html or '').encode('utf-8')).hexdigest()


class HtmlCache:
    """Find-or-create cache over the configured store"""

    def __init__(self, store: Store, validity_days: int = VALIDITY_PERIOD_DAYS):
        self.store = store
        self.validity_days = validity_days

    def store_html(
        self,
        listing_id: int,
        url: str,
        html: str,
        cleaned_html: Optional[str] = None,
        http_status: Optional[int] = None,
        fetch_metadata: Optional[Dict] = None,
        now: Optional[datetime] = None
    ) -> CachedHtmlEntry:
        """
        Store fetched HTML for a listing.

        Args:
            listing_id: Listing the page belongs to
            url: Fetched URL (normalized before keying)
            html: Raw HTML
            cleaned_html: Cleaned variant used for extraction
            http_status: Response status of the fetch
            fetch_metadata: fetch_mode, duration_ms, headers

        Returns:
            The stored entry, or the existing one when the content is unchanged
        """
        now = now or utcnow()
        entry = CachedHtmlEntry(
            listing_id=listing_id,
            url=normalize_url(url),
            html_content=html,
            cleaned_html=cleaned_html,
            content_hash=content_hash(html),
            valid_until=now + timedelta(days=self.validity_days),
            http_status=http_status,
            fetch_metadata=fetch_metadata or {},
            fetched_at=now,
            created_at=now,
        )
        stored = self.store.insert_cache_entry(entry)
        if stored is not entry:
            logger.debug(f"[html_cache] Identical content already cached for {entry.url} (id={stored.id})")
            if stored.valid_until < entry.valid_until:
                stored = self.store.set_cache_validity(stored, entry.valid_until)
        else:
            logger.info(f"[html_cache] Cached {len(html)} bytes for {entry.url} (hash={entry.content_hash[:12]})")
        return stored

    def lookup(self, listing_id: int, url: str, now: Optional[datetime] = None) -> Optional[CachedHtmlEntry]:
        """Freshest non-expired entry for a listing/URL pair"""
        entries = self.store.find_cache_entries(listing_id, normalize_url(url), now or utcnow())
        if not entries:
            return None
        logger.debug(f"[html_cache] Cache hit for {url} (id={entries[0].id})")
        return entries[0]

    def html_for_extraction(self, listing_id: int, url: str) -> Optional[str]:
        entry = self.lookup(listing_id, url)
        return entry.html_for_extraction if entry else None

    def expire(self, entry: CachedHtmlEntry, now: Optional[datetime] = None) -> CachedHtmlEntry:
        return self.store.set_cache_validity(entry, now or utcnow())

    def extend(self, entry: CachedHtmlEntry, days: Optional[int] = None, now: Optional[datetime] = None) -> CachedHtmlEntry:
        valid_until = (now or utcnow()) + timedelta(days=days or self.validity_days)
        return self.store.set_cache_validity(entry, max(entry.valid_until, valid_until))

    def invalidate(self, listing_id: int, url: str) -> int:
        """Expire every valid entry for a listing/URL pair"""
        now = utcnow()
        entries = self.store.find_cache_entries(listing_id, normalize_url(url), now)
        for entry in entries:
            self.store.set_cache_validity(entry, now)
        if entries:
            logger.info(f"[html_cache] Invalidated {len(entries)} entries for {url}")
        return len(entries)
