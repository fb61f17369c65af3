"""
Attempt state machine.

    pending -> fetching -> extracting -> completed
    pending | fetching | extracting | retrying -> failed
    retrying -> fetching
    failed -> retrying | dead_letter | manual
    dead_letter -> manual

All status changes go through AttemptLifecycle so the transition table is the
only place that decides what is legal.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from core.errors import InvalidTransitionError
from core.models import Attempt, AttemptStatus, INTERMEDIATE_STATUSES, utcnow
from core.notifications import Notifier, get_notifier
from core.store import Store
from core.url_normalizer import extract_domain

logger = logging.getLogger(__name__)

# Reuse window for attempts of the same listing
RECENT_ATTEMPT_WINDOW = timedelta(minutes=2)

MAX_RETRIES = 3

S = AttemptStatus

TRANSITIONS: Dict[str, Dict[str, Any]] = {
    'start_fetch': {'from': (S.PENDING, S.RETRYING), 'to': S.FETCHING},
    'start_extract': {'from': (S.FETCHING,), 'to': S.EXTRACTING},
    'complete': {'from': (S.EXTRACTING,), 'to': S.COMPLETED},
    'fail': {'from': (S.PENDING, S.FETCHING, S.EXTRACTING, S.RETRYING), 'to': S.FAILED},
    'retry': {'from': (S.FAILED,), 'to': S.RETRYING},
    'send_to_dead_letter': {'from': (S.FAILED,), 'to': S.DEAD_LETTER},
    'mark_manual': {'from': (S.FAILED, S.DEAD_LETTER), 'to': S.MANUAL},
}


def can_transition(attempt: Attempt, event: str) -> bool:
    return attempt.status in TRANSITIONS[event]['from']


class AttemptLifecycle:
    """Creates attempts and moves them through the state machine"""

    def __init__(self, store: Store, notifier: Optional[Notifier] = None):
        self.store = store
        self.notifier = notifier or get_notifier()

    def _transition(self, attempt: Attempt, event: str) -> Attempt:
        if not can_transition(attempt, event):
            raise InvalidTransitionError(event, attempt.status.value)
        previous = attempt.status
        attempt.status = TRANSITIONS[event]['to']
        logger.debug(f"[attempt_lifecycle] Attempt {attempt.id}: {previous.value} -> {attempt.status.value}")
        return attempt

    def create_attempt(self, listing_id: int, url: Optional[str] = None, force: bool = False) -> Optional[Attempt]:
        """
        Create an attempt for a listing.

        Reuses an in-progress attempt created in the last two minutes, and
        returns None when one completed in that window, unless force is set.
        """
        if not force:
            since = utcnow() - RECENT_ATTEMPT_WINDOW
            in_progress = self.store.find_attempts(listing_id, INTERMEDIATE_STATUSES, since)
            if in_progress:
                logger.info(f"[attempt_lifecycle] Reusing in-progress attempt {in_progress[0].id} for listing {listing_id}")
                return in_progress[0]

            completed = self.store.find_attempts(listing_id, (S.COMPLETED,), since)
            if completed:
                logger.info(f"[attempt_lifecycle] Listing {listing_id} completed recently (attempt {completed[0].id}), skipping")
                return None

        attempt = Attempt(
            listing_id=listing_id,
            url=url,
            domain=extract_domain(url) if url else None,
            status=S.PENDING,
            started_at=utcnow(),
        )
        return self.store.create_attempt(attempt)

    def start_fetch(self, attempt: Attempt) -> Attempt:
        self._transition(attempt, 'start_fetch')
        return self.store.save_attempt(attempt)

    def start_extract(self, attempt: Attempt) -> Attempt:
        self._transition(attempt, 'start_extract')
        return self.store.save_attempt(attempt)

    def complete(
        self,
        attempt: Attempt,
        extraction_method: str,
        provider: Optional[str] = None,
        confidence: Optional[float] = None,
        model: Optional[str] = None,
        tokens_used: Optional[int] = None,
        http_status: Optional[int] = None
    ) -> Attempt:
        """Mark an attempt completed, advancing through fetch/extract if needed"""
        if can_transition(attempt, 'start_fetch'):
            self._transition(attempt, 'start_fetch')
        if can_transition(attempt, 'start_extract'):
            self._transition(attempt, 'start_extract')
        self._transition(attempt, 'complete')

        now = utcnow()
        attempt.extraction_method = extraction_method
        attempt.provider = provider
        attempt.confidence_score = confidence
        if http_status is not None:
            attempt.http_status = http_status
        attempt.completed_at = now
        attempt.duration_ms = self._duration_ms(attempt, now)
        metadata = dict(attempt.response_metadata or {})
        if model:
            metadata['model'] = model
        if tokens_used is not None:
            metadata['tokens_used'] = tokens_used
        attempt.response_metadata = metadata

        logger.info(
            f"[attempt_lifecycle] Attempt {attempt.id} completed via {extraction_method}"
            f" (provider={provider}, confidence={confidence})"
        )
        return self.store.save_attempt(attempt)

    def fail(
        self,
        attempt: Attempt,
        failed_step: str,
        error_message: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Attempt:
        """Mark an attempt failed and count the failure; metadata is merged into response_metadata"""
        self._transition(attempt, 'fail')
        now = utcnow()
        attempt.failed_step = failed_step
        attempt.error_message = error_message
        attempt.retry_count = (attempt.retry_count or 0) + 1
        attempt.completed_at = now
        attempt.duration_ms = self._duration_ms(attempt, now)
        if metadata:
            attempt.response_metadata = {**(attempt.response_metadata or {}), **metadata}
        logger.warning(f"[attempt_lifecycle] Attempt {attempt.id} failed at {failed_step}: {error_message}")
        return self.store.save_attempt(attempt)

    def retry(self, attempt: Attempt) -> Attempt:
        self._transition(attempt, 'retry')
        attempt.completed_at = None
        return self.store.save_attempt(attempt)

    def send_to_dead_letter(self, attempt: Attempt) -> Attempt:
        self._transition(attempt, 'send_to_dead_letter')
        logger.warning(f"[attempt_lifecycle] Attempt {attempt.id} moved to dead letter after {attempt.retry_count} failures")
        return self.store.save_attempt(attempt)

    def mark_manual(self, attempt: Attempt, reason: Optional[str] = None) -> Attempt:
        """Operator override: take the attempt out of automated processing"""
        self._transition(attempt, 'mark_manual')
        if reason:
            attempt.error_message = reason
        return self.store.save_attempt(attempt)

    def handle_failure(self, attempt: Attempt, max_retries: int = MAX_RETRIES) -> Attempt:
        """
        Decide what happens to a failed attempt.

        Called by the external scheduler: below the retry limit the attempt
        moves to retrying and should be re-queued, otherwise it is dead-lettered.
        """
        if attempt.retry_count >= max_retries:
            self.notifier.notify(
                f"Attempt {attempt.id} exhausted {max_retries} retries",
                context="scraping_dead_letter",
                severity="warning",
                attempt_id=attempt.id,
                listing_id=attempt.listing_id,
                failed_step=attempt.failed_step,
            )
            return self.send_to_dead_letter(attempt)
        return self.retry(attempt)

    @staticmethod
    def _duration_ms(attempt: Attempt, now) -> Optional[int]:
        if not attempt.started_at:
            return None
        return int((now - attempt.started_at).total_seconds() * 1000)
