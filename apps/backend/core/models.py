"""
Persisted records for the extraction pipeline.

Attempt, CachedHtmlEntry, ExtractionEvent and HtmlScrapingLogEntry are owned by
the pipeline. Listing belongs to the surrounding application; the pipeline only
reads its URL and writes extracted fields back.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import urlparse


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AttemptStatus(str, Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    EXTRACTING = "extracting"
    COMPLETED = "completed"
    FAILED = "failed"
    RETRYING = "retrying"
    DEAD_LETTER = "dead_letter"
    MANUAL = "manual"


# Statuses a live worker can leave behind if it crashes
INTERMEDIATE_STATUSES = (
    AttemptStatus.PENDING,
    AttemptStatus.FETCHING,
    AttemptStatus.EXTRACTING,
    AttemptStatus.RETRYING,
)


class EventStatus(str, Enum):
    STARTED = "started"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class EventType(str, Enum):
    JOB_BOARD_DETECTION = "job_board_detection"
    HTML_FETCH = "html_fetch"
    EMBEDDED_JOB_BOARD_FETCH = "embedded_job_board_fetch"
    JS_HEAVY_DETECTED = "js_heavy_detected"
    API_EXTRACTION = "api_extraction"
    SELECTORS_EXTRACTION = "selectors_extraction"
    LIMITED_SOURCE_EXTRACTION = "limited_source_extraction"
    GENERIC_HTML_EXTRACTION = "generic_html_extraction"
    AI_EXTRACTION = "ai_extraction"
    DATA_UPDATE = "data_update"
    COMPLETION = "completion"
    FAILURE = "failure"


@dataclass
class Listing:
    """Job listing owned by the host application"""
    id: int
    url: str
    title: Optional[str] = None
    company_name: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    remote_type: Optional[str] = None
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    salary_currency: Optional[str] = None
    requirements: Optional[str] = None
    responsibilities: Optional[str] = None
    benefits: Optional[str] = None
    about_company: Optional[str] = None
    company_culture: Optional[str] = None
    custom_sections: Dict[str, Any] = field(default_factory=dict)
    scraped_data: Dict[str, Any] = field(default_factory=dict)
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Attempt:
    """One extraction run for a listing"""
    listing_id: int
    id: Optional[int] = None
    url: Optional[str] = None
    domain: Optional[str] = None
    status: AttemptStatus = AttemptStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    extraction_method: Optional[str] = None
    provider: Optional[str] = None
    confidence_score: Optional[float] = None
    http_status: Optional[int] = None
    retry_count: int = 0
    failed_step: Optional[str] = None
    error_message: Optional[str] = None
    response_metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def in_progress(self) -> bool:
        return self.status in INTERMEDIATE_STATUSES

    @property
    def needs_review(self) -> bool:
        """Dead-lettered, or failed too many times to retry"""
        if self.status == AttemptStatus.DEAD_LETTER:
            return True
        return self.status == AttemptStatus.FAILED and self.retry_count >= 3

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['status'] = self.status.value
        return data


@dataclass
class CachedHtmlEntry:
    """Content-addressable HTML snapshot of a listing page"""
    listing_id: int
    url: str
    html_content: str
    content_hash: str
    valid_until: datetime
    cleaned_html: Optional[str] = None
    http_status: Optional[int] = None
    fetch_metadata: Dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None
    fetched_at: datetime = field(default_factory=utcnow)
    created_at: datetime = field(default_factory=utcnow)

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return self.valid_until > (now or utcnow())

    @property
    def html_for_extraction(self) -> str:
        return self.cleaned_html or self.html_content


@dataclass
class ExtractionEvent:
    """Append-only log entry for one pipeline step"""
    attempt_id: int
    event_type: str
    status: EventStatus = EventStatus.STARTED
    listing_id: Optional[int] = None
    step_order: int = 0
    input_payload: Dict[str, Any] = field(default_factory=dict)
    output_payload: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    duration_ms: Optional[int] = None
    id: Optional[int] = None
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


# Fields whose selector results feed the per-domain extraction rate
TRACKED_FIELDS = (
    'title', 'location', 'remote_type', 'salary_min', 'salary_max', 'salary_currency',
    'description', 'company_name', 'requirements', 'responsibilities', 'benefits',
)


@dataclass
class HtmlScrapingLogEntry:
    """Field-level diagnostics for one selector extraction"""
    url: str
    field_results: Dict[str, Dict[str, Any]]
    attempt_id: Optional[int] = None
    listing_id: Optional[int] = None
    domain: Optional[str] = None
    board_type: Optional[str] = None
    extractor_kind: Optional[str] = None
    fetch_mode: Optional[str] = None
    html_size: Optional[int] = None
    cleaned_html_size: Optional[int] = None
    duration_ms: Optional[int] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    id: Optional[int] = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if not self.domain and self.url:
            self.domain = urlparse(self.url).hostname or "unknown"

    @property
    def fields_attempted(self) -> int:
        return sum(1 for name in self.field_results if name in TRACKED_FIELDS)

    @property
    def fields_extracted(self) -> int:
        return sum(
            1 for name, result in self.field_results.items()
            if name in TRACKED_FIELDS and result.get('success')
        )

    @property
    def extraction_rate(self) -> float:
        if self.fields_attempted == 0:
            return 0.0
        return round(self.fields_extracted / self.fields_attempted, 4)

    @property
    def status(self) -> str:
        rate = self.extraction_rate
        if rate >= 0.7:
            return "success"
        if rate > 0:
            return "partial"
        return "failed"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.update({
            'fields_attempted': self.fields_attempted,
            'fields_extracted': self.fields_extracted,
            'extraction_rate': self.extraction_rate,
            'status': self.status,
        })
        return data
