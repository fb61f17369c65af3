"""
Per-step event recording for extraction attempts.

Each step writes a started event on entry and updates it to success, failed or
skipped on exit. Recording is a side channel: storage errors are logged and
never change the outcome of a step.
"""

import time
import logging
from contextlib import contextmanager
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterator, Optional

from core.models import (
    Attempt,
    EventStatus,
    EventType,
    ExtractionEvent,
    HtmlScrapingLogEntry,
    utcnow,
)
from core.store import Store

logger = logging.getLogger(__name__)

MAX_STRING_LENGTH = 10_000
MAX_LIST_ITEMS = 100
TRUNCATION_SUFFIX = "... [TRUNCATED]"
LOG_VALUE_LENGTH = 500


def sanitize_payload(value: Any) -> Any:
    """Truncate long strings and lists and make values JSON-safe"""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, str):
        if len(value) > MAX_STRING_LENGTH:
            return value[:MAX_STRING_LENGTH] + TRUNCATION_SUFFIX
        return value
    if isinstance(value, dict):
        return {str(k): sanitize_payload(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [sanitize_payload(v) for v in list(value)[:MAX_LIST_ITEMS]]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _event_name(event_type) -> str:
    return event_type.value if isinstance(event_type, EventType) else str(event_type)


class EventContext:
    """Output collector handed to the body of EventRecorder.record()"""

    def __init__(self, event: ExtractionEvent):
        self.event = event
        self.output: Dict[str, Any] = {}
        self.status: Optional[EventStatus] = None

    def set_output(self, **output):
        self.output = dict(output)

    def add_output(self, **output):
        self.output.update(output)

    def mark_failed(self, error_type: str, message: Optional[str] = None):
        """Record a handled failure without raising"""
        self.status = EventStatus.FAILED
        self.event.error_type = error_type
        self.event.error_message = message

    def mark_skipped(self, reason: str):
        self.status = EventStatus.SKIPPED
        self.output['skipped_reason'] = reason


class EventRecorder:
    """Append-only event log for one attempt"""

    def __init__(self, store: Store, attempt: Attempt):
        self.store = store
        self.attempt = attempt
        self.step_order = 0
        self.started_at = time.monotonic()

    def _next_step(self) -> int:
        self.step_order += 1
        return self.step_order

    def _add(self, event: ExtractionEvent) -> ExtractionEvent:
        try:
            return self.store.add_event(event)
        except Exception as e:
            logger.error(f"[event_recorder] Failed to write {event.event_type} event: {e}")
            return event

    def _update(self, event: ExtractionEvent) -> ExtractionEvent:
        if event.id is None:
            return event
        try:
            return self.store.update_event(event)
        except Exception as e:
            logger.error(f"[event_recorder] Failed to update {event.event_type} event: {e}")
            return event

    @contextmanager
    def record(self, event_type, input: Optional[Dict[str, Any]] = None) -> Iterator[EventContext]:
        """
        Record a step around a block.

        The started event is written before the block runs. A normal exit marks
        it success (or whatever the block set via mark_failed / mark_skipped);
        an exception marks it failed and is re-raised.
        """
        event = self._add(ExtractionEvent(
            attempt_id=self.attempt.id,
            listing_id=self.attempt.listing_id,
            event_type=_event_name(event_type),
            status=EventStatus.STARTED,
            step_order=self._next_step(),
            input_payload=sanitize_payload(input or {}),
        ))
        ctx = EventContext(event)
        start = time.monotonic()
        try:
            yield ctx
        except Exception as e:
            event.status = EventStatus.FAILED
            event.error_type = type(e).__name__
            event.error_message = str(e)[:MAX_STRING_LENGTH]
            event.output_payload = sanitize_payload(ctx.output)
            event.duration_ms = int((time.monotonic() - start) * 1000)
            event.completed_at = utcnow()
            self._update(event)
            raise
        event.status = ctx.status or EventStatus.SUCCESS
        event.output_payload = sanitize_payload(ctx.output)
        event.duration_ms = int((time.monotonic() - start) * 1000)
        event.completed_at = utcnow()
        self._update(event)

    def record_simple(
        self,
        event_type,
        status: EventStatus = EventStatus.SUCCESS,
        input: Optional[Dict[str, Any]] = None,
        output: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        error_type: Optional[str] = None,
        error_message: Optional[str] = None
    ) -> ExtractionEvent:
        """Write a single already-finished event"""
        now = utcnow()
        return self._add(ExtractionEvent(
            attempt_id=self.attempt.id,
            listing_id=self.attempt.listing_id,
            event_type=_event_name(event_type),
            status=status,
            step_order=self._next_step(),
            input_payload=sanitize_payload(input or {}),
            output_payload=sanitize_payload(output or {}),
            metadata=sanitize_payload(metadata or {}),
            error_type=error_type,
            error_message=error_message,
            duration_ms=0,
            started_at=now,
            completed_at=now,
        ))

    def record_skipped(self, event_type, reason: str, input: Optional[Dict[str, Any]] = None) -> ExtractionEvent:
        return self.record_simple(
            event_type,
            status=EventStatus.SKIPPED,
            input=input,
            output={'skipped_reason': reason},
        )

    def record_completion(self, output: Optional[Dict[str, Any]] = None) -> ExtractionEvent:
        """Final summary event for a successful run"""
        return self.record_simple(
            EventType.COMPLETION,
            output=output,
            metadata={
                'total_steps': self.step_order,
                'total_duration_ms': int((time.monotonic() - self.started_at) * 1000),
            },
        )

    def record_failure(
        self,
        error_type: str,
        error_message: str,
        output: Optional[Dict[str, Any]] = None
    ) -> ExtractionEvent:
        """Final summary event for a failed run"""
        return self.record_simple(
            EventType.FAILURE,
            status=EventStatus.FAILED,
            output=output,
            metadata={'total_steps': self.step_order},
            error_type=error_type,
            error_message=error_message,
        )

    def create_html_log(
        self,
        url: str,
        field_results: Dict[str, Dict[str, Any]],
        board_type: Optional[str] = None,
        extractor_kind: Optional[str] = None,
        fetch_mode: Optional[str] = None,
        html_size: Optional[int] = None,
        cleaned_html_size: Optional[int] = None,
        duration_ms: Optional[int] = None,
        error: Optional[BaseException] = None
    ) -> Optional[HtmlScrapingLogEntry]:
        """Persist field-level selector diagnostics for this attempt"""
        trimmed = {}
        for name, result in field_results.items():
            result = dict(result)
            value = result.get('value')
            if isinstance(value, str) and len(value) > LOG_VALUE_LENGTH:
                result['value'] = value[:LOG_VALUE_LENGTH] + "..."
            trimmed[name] = sanitize_payload(result)

        entry = HtmlScrapingLogEntry(
            url=url,
            field_results=trimmed,
            attempt_id=self.attempt.id,
            listing_id=self.attempt.listing_id,
            board_type=board_type,
            extractor_kind=extractor_kind,
            fetch_mode=fetch_mode,
            html_size=html_size,
            cleaned_html_size=cleaned_html_size,
            duration_ms=duration_ms,
            error_type=type(error).__name__ if error else None,
            error_message=str(error) if error else None,
        )
        try:
            return self.store.add_html_log(entry)
        except Exception as e:
            logger.error(f"[event_recorder] Failed to create html scraping log: {e}")
            return None
