"""
PostgreSQL store backed by psycopg2.

Tables are defined in infra/schema.sql. Cache dedup relies on the unique index
on scraped_job_listing_data (url, listing_id, content_hash).
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

import psycopg2
from psycopg2.extras import Json, RealDictCursor

from core.models import (
    Attempt,
    AttemptStatus,
    CachedHtmlEntry,
    EventStatus,
    ExtractionEvent,
    HtmlScrapingLogEntry,
    Listing,
    utcnow,
)
from core.store import Store

logger = logging.getLogger(__name__)

LISTING_FIELDS = [
    'title', 'company_name', 'description', 'location', 'remote_type',
    'salary_min', 'salary_max', 'salary_currency', 'requirements',
    'responsibilities', 'benefits', 'about_company', 'company_culture',
    'custom_sections', 'scraped_data',
]

ATTEMPT_FIELDS = [
    'listing_id', 'url', 'domain', 'status', 'started_at', 'completed_at',
    'duration_ms', 'extraction_method', 'provider', 'confidence_score',
    'http_status', 'retry_count', 'failed_step', 'error_message',
    'response_metadata', 'created_at', 'updated_at',
]

JSON_FIELDS = {'custom_sections', 'scraped_data', 'response_metadata', 'input_payload',
               'output_payload', 'metadata', 'fetch_metadata', 'field_results'}


def _adapt(name: str, value: Any) -> Any:
    if name in JSON_FIELDS:
        return Json(value or {})
    if hasattr(value, 'value') and name == 'status':
        return value.value
    return value


def _attempt_from_row(row: Dict) -> Attempt:
    data = {k: row[k] for k in ATTEMPT_FIELDS if k in row}
    data['status'] = AttemptStatus(row['status'])
    data['response_metadata'] = row.get('response_metadata') or {}
    return Attempt(id=row['id'], **data)


def _event_from_row(row: Dict) -> ExtractionEvent:
    return ExtractionEvent(
        id=row['id'],
        attempt_id=row['attempt_id'],
        listing_id=row.get('listing_id'),
        event_type=row['event_type'],
        status=EventStatus(row['status']),
        step_order=row['step_order'],
        input_payload=row.get('input_payload') or {},
        output_payload=row.get('output_payload') or {},
        metadata=row.get('metadata') or {},
        error_type=row.get('error_type'),
        error_message=row.get('error_message'),
        duration_ms=row.get('duration_ms'),
        started_at=row['started_at'],
        completed_at=row.get('completed_at'),
    )


def _cache_from_row(row: Dict) -> CachedHtmlEntry:
    return CachedHtmlEntry(
        id=row['id'],
        listing_id=row['listing_id'],
        url=row['url'],
        html_content=row['html_content'],
        cleaned_html=row.get('cleaned_html'),
        content_hash=row['content_hash'],
        valid_until=row['valid_until'],
        http_status=row.get('http_status'),
        fetch_metadata=row.get('fetch_metadata') or {},
        fetched_at=row['fetched_at'],
        created_at=row['created_at'],
    )


class PostgresStore(Store):
    """Store implementation using raw SQL over psycopg2"""

    def __init__(self, db_url: str):
        self.db_url = db_url

    def _get_db_conn(self):
        """Get database connection"""
        return psycopg2.connect(self.db_url)

    def _fetch(self, query: str, params: tuple) -> List[Dict]:
        conn = self._get_db_conn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params)
                return list(cur.fetchall())
        finally:
            conn.close()

    def _write(self, query: str, params: tuple) -> Optional[Dict]:
        conn = self._get_db_conn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params)
                row = cur.fetchone() if cur.description else None
            conn.commit()
            return row
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # Listings

    def get_listing(self, listing_id: int) -> Optional[Listing]:
        rows = self._fetch(
            f"SELECT id, url, {', '.join(LISTING_FIELDS)}, updated_at FROM job_listings WHERE id = %s",
            (listing_id,)
        )
        if not rows:
            return None
        row = rows[0]
        row['custom_sections'] = row.get('custom_sections') or {}
        row['scraped_data'] = row.get('scraped_data') or {}
        return Listing(**row)

    def save_listing(self, listing: Listing) -> Listing:
        assignments = ', '.join(f"{name} = %s" for name in LISTING_FIELDS)
        values = tuple(_adapt(name, getattr(listing, name)) for name in LISTING_FIELDS)
        row = self._write(
            f"UPDATE job_listings SET {assignments}, updated_at = NOW() WHERE id = %s RETURNING updated_at",
            values + (listing.id,)
        )
        if row:
            listing.updated_at = row['updated_at']
        return listing

    # Attempts

    def create_attempt(self, attempt: Attempt) -> Attempt:
        columns = ', '.join(ATTEMPT_FIELDS)
        placeholders = ', '.join(['%s'] * len(ATTEMPT_FIELDS))
        values = tuple(_adapt(name, getattr(attempt, name)) for name in ATTEMPT_FIELDS)
        row = self._write(
            f"INSERT INTO scraping_attempts ({columns}) VALUES ({placeholders}) RETURNING id",
            values
        )
        attempt.id = row['id']
        return attempt

    def save_attempt(self, attempt: Attempt) -> Attempt:
        attempt.updated_at = utcnow()
        fields = [f for f in ATTEMPT_FIELDS if f not in ('listing_id', 'created_at')]
        assignments = ', '.join(f"{name} = %s" for name in fields)
        values = tuple(_adapt(name, getattr(attempt, name)) for name in fields)
        self._write(
            f"UPDATE scraping_attempts SET {assignments} WHERE id = %s",
            values + (attempt.id,)
        )
        return attempt

    def get_attempt(self, attempt_id: int) -> Optional[Attempt]:
        rows = self._fetch("SELECT * FROM scraping_attempts WHERE id = %s", (attempt_id,))
        return _attempt_from_row(rows[0]) if rows else None

    def find_attempts(self, listing_id: int, statuses: Sequence[AttemptStatus], created_after: datetime) -> List[Attempt]:
        rows = self._fetch("""
            SELECT * FROM scraping_attempts
            WHERE listing_id = %s
            AND status = ANY(%s)
            AND created_at > %s
            ORDER BY created_at DESC
        """, (listing_id, [s.value for s in statuses], created_after))
        return [_attempt_from_row(r) for r in rows]

    def find_stale_attempts(self, statuses: Sequence[AttemptStatus], updated_before: datetime) -> List[Attempt]:
        rows = self._fetch("""
            SELECT * FROM scraping_attempts
            WHERE status = ANY(%s)
            AND updated_at < %s
            ORDER BY updated_at ASC
        """, ([s.value for s in statuses], updated_before))
        return [_attempt_from_row(r) for r in rows]

    def domain_success_rate(self, domain: str, days: int = 30) -> float:
        rows = self._fetch("""
            SELECT
                COUNT(*) AS total,
                COUNT(*) FILTER (WHERE status = 'completed') AS completed
            FROM scraping_attempts
            WHERE domain = %s
            AND created_at > %s
        """, (domain, utcnow() - timedelta(days=days)))
        total = rows[0]['total'] if rows else 0
        if not total:
            return 0.0
        return round(rows[0]['completed'] / total * 100, 2)

    # Events

    def add_event(self, event: ExtractionEvent) -> ExtractionEvent:
        row = self._write("""
            INSERT INTO scraping_events (
                attempt_id, listing_id, event_type, status, step_order,
                input_payload, output_payload, metadata, error_type,
                error_message, duration_ms, started_at, completed_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id
        """, (
            event.attempt_id,
            event.listing_id,
            event.event_type,
            event.status.value,
            event.step_order,
            Json(event.input_payload),
            Json(event.output_payload),
            Json(event.metadata),
            event.error_type,
            event.error_message,
            event.duration_ms,
            event.started_at,
            event.completed_at,
        ))
        event.id = row['id']
        return event

    def update_event(self, event: ExtractionEvent) -> ExtractionEvent:
        self._write("""
            UPDATE scraping_events SET
                status = %s,
                output_payload = %s,
                metadata = %s,
                error_type = %s,
                error_message = %s,
                duration_ms = %s,
                completed_at = %s
            WHERE id = %s
        """, (
            event.status.value,
            Json(event.output_payload),
            Json(event.metadata),
            event.error_type,
            event.error_message,
            event.duration_ms,
            event.completed_at,
            event.id,
        ))
        return event

    def list_events(self, attempt_id: int) -> List[ExtractionEvent]:
        rows = self._fetch(
            "SELECT * FROM scraping_events WHERE attempt_id = %s ORDER BY step_order, id",
            (attempt_id,)
        )
        return [_event_from_row(r) for r in rows]

    # HTML cache

    def insert_cache_entry(self, entry: CachedHtmlEntry) -> CachedHtmlEntry:
        row = self._write("""
            INSERT INTO scraped_job_listing_data (
                listing_id, url, html_content, cleaned_html, content_hash,
                valid_until, http_status, fetch_metadata, fetched_at, created_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (url, listing_id, content_hash) DO NOTHING
            RETURNING id
        """, (
            entry.listing_id,
            entry.url,
            entry.html_content,
            entry.cleaned_html,
            entry.content_hash,
            entry.valid_until,
            entry.http_status,
            Json(entry.fetch_metadata),
            entry.fetched_at,
            entry.created_at,
        ))
        if row:
            entry.id = row['id']
            return entry

        # Lost the race or identical content already stored
        rows = self._fetch("""
            SELECT * FROM scraped_job_listing_data
            WHERE url = %s AND listing_id = %s AND content_hash = %s
        """, (entry.url, entry.listing_id, entry.content_hash))
        return _cache_from_row(rows[0])

    def find_cache_entries(self, listing_id: int, url: str, valid_at: datetime) -> List[CachedHtmlEntry]:
        rows = self._fetch("""
            SELECT * FROM scraped_job_listing_data
            WHERE listing_id = %s
            AND url = %s
            AND valid_until > %s
            ORDER BY valid_until DESC
        """, (listing_id, url, valid_at))
        return [_cache_from_row(r) for r in rows]

    def set_cache_validity(self, entry: CachedHtmlEntry, valid_until: datetime) -> CachedHtmlEntry:
        self._write(
            "UPDATE scraped_job_listing_data SET valid_until = %s WHERE id = %s",
            (valid_until, entry.id)
        )
        entry.valid_until = valid_until
        return entry

    def count_cache_entries(self, listing_id: int, url: str) -> int:
        rows = self._fetch(
            "SELECT COUNT(*) AS total FROM scraped_job_listing_data WHERE listing_id = %s AND url = %s",
            (listing_id, url)
        )
        return rows[0]['total'] if rows else 0

    # Scraping logs

    def add_html_log(self, entry: HtmlScrapingLogEntry) -> HtmlScrapingLogEntry:
        row = self._write("""
            INSERT INTO html_scraping_logs (
                attempt_id, listing_id, url, domain, board_type, extractor_kind,
                fetch_mode, html_size, cleaned_html_size, duration_ms,
                field_results, fields_attempted, fields_extracted,
                extraction_rate, status, error_type, error_message, created_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            RETURNING id
        """, (
            entry.attempt_id,
            entry.listing_id,
            entry.url,
            entry.domain,
            entry.board_type,
            entry.extractor_kind,
            entry.fetch_mode,
            entry.html_size,
            entry.cleaned_html_size,
            entry.duration_ms,
            Json(entry.field_results),
            entry.fields_attempted,
            entry.fields_extracted,
            entry.extraction_rate,
            entry.status,
            entry.error_type,
            entry.error_message,
            entry.created_at,
        ))
        entry.id = row['id']
        return entry

    def list_html_logs(self, attempt_id: int) -> List[HtmlScrapingLogEntry]:
        rows = self._fetch(
            "SELECT * FROM html_scraping_logs WHERE attempt_id = %s ORDER BY id",
            (attempt_id,)
        )
        return [
            HtmlScrapingLogEntry(
                id=r['id'],
                attempt_id=r['attempt_id'],
                listing_id=r['listing_id'],
                url=r['url'],
                domain=r['domain'],
                board_type=r['board_type'],
                extractor_kind=r['extractor_kind'],
                fetch_mode=r['fetch_mode'],
                html_size=r['html_size'],
                cleaned_html_size=r['cleaned_html_size'],
                duration_ms=r['duration_ms'],
                field_results=r['field_results'] or {},
                error_type=r['error_type'],
                error_message=r['error_message'],
                created_at=r['created_at'],
            )
            for r in rows
        ]

    def domain_html_metrics(self, domain: str) -> Dict:
        rows = self._fetch("""
            SELECT
                COUNT(*) AS total,
                COALESCE(AVG(extraction_rate), 0) AS avg_extraction_rate,
                COUNT(*) FILTER (WHERE status = 'success') AS success,
                COUNT(*) FILTER (WHERE status = 'partial') AS partial,
                COUNT(*) FILTER (WHERE status = 'failed') AS failed
            FROM html_scraping_logs
            WHERE domain = %s
        """, (domain,))
        row = rows[0] if rows else {}
        if not row.get('total'):
            return super().domain_html_metrics(domain)
        return {
            'domain': domain,
            'total': row['total'],
            'avg_extraction_rate': round(float(row['avg_extraction_rate']), 4),
            'success': row['success'],
            'partial': row['partial'],
            'failed': row['failed'],
        }
