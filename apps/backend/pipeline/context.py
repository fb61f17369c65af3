"""
Per-run state shared by the pipeline steps.

A RunContext is created once per run and owned by that run's orchestrator;
steps read and mutate it in order and never share it across runs.
"""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from boards.detector import BoardInfo
from boards.types import BoardType
from core.config import Settings
from core.event_recorder import EventRecorder
from core.models import Attempt, Listing
from core.results import CONFIDENCE_THRESHOLD, ExtractionResult
from core.store import Store


class StepOutcome(str, Enum):
    CONTINUE = "continue"
    STOP_SUCCESS = "stop_success"
    STOP_FAILURE = "stop_failure"


@dataclass
class RunContext:
    listing: Listing
    attempt: Attempt
    store: Store
    settings: Settings
    event_recorder: EventRecorder
    board: Optional[BoardInfo] = None
    html_content: Optional[str] = None
    cleaned_html: Optional[str] = None
    fetch_mode: Optional[str] = None
    http_status: Optional[int] = None
    from_cache: bool = False
    limited_extraction: bool = False
    accepted: Optional[ExtractionResult] = None
    # Last rejected candidate, kept for the failure summary
    best_partial: Optional[ExtractionResult] = None
    started_at: float = field(default_factory=time.monotonic)
    confidence_threshold: float = CONFIDENCE_THRESHOLD

    @property
    def url(self) -> str:
        return self.listing.url

    @property
    def board_type(self) -> BoardType:
        return self.board.board_type if self.board else BoardType.UNKNOWN

    @property
    def company_slug(self) -> Optional[str]:
        return self.board.company_slug if self.board else None

    @property
    def job_id(self) -> Optional[str]:
        return self.board.job_id if self.board else None

    @property
    def html_for_extraction(self) -> str:
        return self.cleaned_html or self.html_content or ''

    def elapsed_seconds(self) -> float:
        return round(time.monotonic() - self.started_at, 3)

    def summary(self) -> Dict[str, Any]:
        return {
            'listing_id': self.listing.id,
            'attempt_id': self.attempt.id,
            'board_type': self.board_type.value,
            'fetch_mode': self.fetch_mode,
            'limited_extraction': self.limited_extraction,
            'elapsed_seconds': self.elapsed_seconds(),
        }
