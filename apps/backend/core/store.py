"""
Persistence for attempts, events, cached HTML and scraping logs.

Two backends share one interface:
- postgres: psycopg2 against the tables in infra/schema.sql (core.pg_store)
- memory: process-local dicts, used by tests and local dry runs

The memory backend enforces the same uniqueness rules as the database so that
cache dedup behaves identically in both.
"""

import logging
import itertools
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from core.models import (
    Attempt,
    AttemptStatus,
    CachedHtmlEntry,
    ExtractionEvent,
    HtmlScrapingLogEntry,
    Listing,
    utcnow,
)

logger = logging.getLogger(__name__)

# Global store instance
_store: Optional['Store'] = None


class Store(ABC):
    """Storage interface used by the pipeline"""

    # Listings
    @abstractmethod
    def get_listing(self, listing_id: int) -> Optional[Listing]:
        pass

    @abstractmethod
    def save_listing(self, listing: Listing) -> Listing:
        pass

    # Attempts
    @abstractmethod
    def create_attempt(self, attempt: Attempt) -> Attempt:
        pass

    @abstractmethod
    def save_attempt(self, attempt: Attempt) -> Attempt:
        pass

    @abstractmethod
    def get_attempt(self, attempt_id: int) -> Optional[Attempt]:
        pass

    @abstractmethod
    def find_attempts(
        self,
        listing_id: int,
        statuses: Sequence[AttemptStatus],
        created_after: datetime
    ) -> List[Attempt]:
        """Attempts for a listing in the given statuses, newest first"""
        pass

    @abstractmethod
    def find_stale_attempts(
        self,
        statuses: Sequence[AttemptStatus],
        updated_before: datetime
    ) -> List[Attempt]:
        """Attempts not touched since the cutoff, oldest first"""
        pass

    @abstractmethod
    def domain_success_rate(self, domain: str, days: int = 30) -> float:
        pass

    # Events
    @abstractmethod
    def add_event(self, event: ExtractionEvent) -> ExtractionEvent:
        pass

    @abstractmethod
    def update_event(self, event: ExtractionEvent) -> ExtractionEvent:
        pass

    @abstractmethod
    def list_events(self, attempt_id: int) -> List[ExtractionEvent]:
        """Events for an attempt in step order"""
        pass

    # HTML cache
    @abstractmethod
    def insert_cache_entry(self, entry: CachedHtmlEntry) -> CachedHtmlEntry:
        """Insert unless (url, listing_id, content_hash) exists; return the stored row"""
        pass

    @abstractmethod
    def find_cache_entries(self, listing_id: int, url: str, valid_at: datetime) -> List[CachedHtmlEntry]:
        """Entries valid at the given time, latest valid_until first"""
        pass

    @abstractmethod
    def set_cache_validity(self, entry: CachedHtmlEntry, valid_until: datetime) -> CachedHtmlEntry:
        pass

    @abstractmethod
    def count_cache_entries(self, listing_id: int, url: str) -> int:
        pass

    # Scraping logs
    @abstractmethod
    def add_html_log(self, entry: HtmlScrapingLogEntry) -> HtmlScrapingLogEntry:
        pass

    @abstractmethod
    def list_html_logs(self, attempt_id: int) -> List[HtmlScrapingLogEntry]:
        pass

    def last_event(self, attempt_id: int) -> Optional[ExtractionEvent]:
        events = self.list_events(attempt_id)
        return events[-1] if events else None

    def domain_html_metrics(self, domain: str) -> Dict:
        """Aggregate extraction rates for a domain"""
        return {'domain': domain, 'total': 0, 'avg_extraction_rate': 0.0}


class MemoryStore(Store):
    """In-process store with the same constraints as the database"""

    def __init__(self):
        self._listings: Dict[int, Listing] = {}
        self._attempts: Dict[int, Attempt] = {}
        self._events: Dict[int, ExtractionEvent] = {}
        self._cache: Dict[int, CachedHtmlEntry] = {}
        self._cache_keys: Dict[Tuple[str, int, str], int] = {}
        self._html_logs: List[HtmlScrapingLogEntry] = []
        self._ids = itertools.count(1)

    def add_listing(self, listing: Listing) -> Listing:
        self._listings[listing.id] = listing
        return listing

    def get_listing(self, listing_id: int) -> Optional[Listing]:
        return self._listings.get(listing_id)

    def save_listing(self, listing: Listing) -> Listing:
        listing.updated_at = utcnow()
        self._listings[listing.id] = listing
        return listing

    def create_attempt(self, attempt: Attempt) -> Attempt:
        attempt.id = next(self._ids)
        self._attempts[attempt.id] = attempt
        return attempt

    def save_attempt(self, attempt: Attempt) -> Attempt:
        attempt.updated_at = utcnow()
        self._attempts[attempt.id] = attempt
        return attempt

    def get_attempt(self, attempt_id: int) -> Optional[Attempt]:
        return self._attempts.get(attempt_id)

    def find_attempts(self, listing_id, statuses, created_after):
        matches = [
            a for a in self._attempts.values()
            if a.listing_id == listing_id and a.status in statuses and a.created_at > created_after
        ]
        return sorted(matches, key=lambda a: a.created_at, reverse=True)

    def find_stale_attempts(self, statuses, updated_before):
        matches = [
            a for a in self._attempts.values()
            if a.status in statuses and a.updated_at < updated_before
        ]
        return sorted(matches, key=lambda a: a.updated_at)

    def domain_success_rate(self, domain: str, days: int = 30) -> float:
        cutoff = utcnow() - timedelta(days=days)
        attempts = [a for a in self._attempts.values() if a.domain == domain and a.created_at > cutoff]
        if not attempts:
            return 0.0
        completed = sum(1 for a in attempts if a.status == AttemptStatus.COMPLETED)
        return round(completed / len(attempts) * 100, 2)

    def add_event(self, event: ExtractionEvent) -> ExtractionEvent:
        event.id = next(self._ids)
        self._events[event.id] = event
        return event

    def update_event(self, event: ExtractionEvent) -> ExtractionEvent:
        self._events[event.id] = event
        return event

    def list_events(self, attempt_id: int) -> List[ExtractionEvent]:
        events = [e for e in self._events.values() if e.attempt_id == attempt_id]
        return sorted(events, key=lambda e: (e.step_order, e.id))

    def insert_cache_entry(self, entry: CachedHtmlEntry) -> CachedHtmlEntry:
        key = (entry.url, entry.listing_id, entry.content_hash)
        existing_id = self._cache_keys.get(key)
        if existing_id is not None:
            return self._cache[existing_id]
        entry.id = next(self._ids)
        self._cache[entry.id] = entry
        self._cache_keys[key] = entry.id
        return entry

    def find_cache_entries(self, listing_id, url, valid_at):
        matches = [
            e for e in self._cache.values()
            if e.listing_id == listing_id and e.url == url and e.valid_until > valid_at
        ]
        return sorted(matches, key=lambda e: e.valid_until, reverse=True)

    def set_cache_validity(self, entry, valid_until):
        entry.valid_until = valid_until
        self._cache[entry.id] = entry
        return entry

    def count_cache_entries(self, listing_id: int, url: str) -> int:
        return sum(1 for e in self._cache.values() if e.listing_id == listing_id and e.url == url)

    def add_html_log(self, entry: HtmlScrapingLogEntry) -> HtmlScrapingLogEntry:
        entry.id = next(self._ids)
        self._html_logs.append(entry)
        return entry

    def list_html_logs(self, attempt_id: int) -> List[HtmlScrapingLogEntry]:
        return [log for log in self._html_logs if log.attempt_id == attempt_id]

    def domain_html_metrics(self, domain: str) -> Dict:
        logs = [log for log in self._html_logs if log.domain == domain]
        if not logs:
            return super().domain_html_metrics(domain)
        return {
            'domain': domain,
            'total': len(logs),
            'avg_extraction_rate': round(sum(log.extraction_rate for log in logs) / len(logs), 4),
            'success': sum(1 for log in logs if log.status == "success"),
            'partial': sum(1 for log in logs if log.status == "partial"),
            'failed': sum(1 for log in logs if log.status == "failed"),
        }


def create_store(store_type: str, database_url: Optional[str] = None) -> Store:
    """Build a store for the configured backend"""
    if store_type == "postgres":
        if not database_url:
            raise ValueError("DATABASE_URL must be set for the postgres store")
        from core.pg_store import PostgresStore
        return PostgresStore(database_url)
    if store_type == "memory":
        return MemoryStore()
    raise ValueError(f"Unknown store type: {store_type}")


def get_store() -> Store:
    """Get or create the global store from settings"""
    global _store
    if _store is None:
        from core.config import get_settings
        settings = get_settings()
        _store = create_store(settings.store_type, settings.database_url)
        logger.info(f"[store] Using {settings.store_type} store")
    return _store


def set_store(store: Optional[Store]):
    """Replace the global store (tests, embedding applications)"""
    global _store
    _store = store
