"""
Stuck attempt cleanup.

A worker that crashes or hangs leaves its attempt in an intermediate status
forever. sweep() finds attempts that have not been updated for longer than the
threshold, fails their open events and the attempt itself, and notifies.
Meant to be triggered externally (cron, scheduler) every few minutes.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from core.attempt_lifecycle import AttemptLifecycle
from core.models import Attempt, EventStatus, INTERMEDIATE_STATUSES, utcnow
from core.notifications import Notifier, get_notifier
from core.store import Store

logger = logging.getLogger(__name__)

STUCK_THRESHOLD_MINUTES = 10


class StuckAttemptReclaimer:
    """Fails attempts abandoned in an intermediate status"""

    def __init__(
        self,
        store: Store,
        notifier: Optional[Notifier] = None,
        threshold_minutes: int = STUCK_THRESHOLD_MINUTES
    ):
        self.store = store
        self.notifier = notifier or get_notifier()
        self.threshold_minutes = threshold_minutes
        self.lifecycle = AttemptLifecycle(store, self.notifier)

    def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Reclaim stuck attempts.

        Returns:
            Number of attempts transitioned to failed
        """
        now = now or utcnow()
        cutoff = now - timedelta(minutes=self.threshold_minutes)
        stuck = self.store.find_stale_attempts(INTERMEDIATE_STATUSES, cutoff)

        if not stuck:
            logger.debug("[stuck_reclaimer] No stuck attempts")
            return 0

        logger.info(f"[stuck_reclaimer] Found {len(stuck)} stuck attempt(s)")
        cleaned = 0
        for attempt in stuck:
            try:
                self._reclaim(attempt, now)
                cleaned += 1
            except Exception as e:
                logger.error(f"[stuck_reclaimer] Failed to clean up attempt {attempt.id}: {e}", exc_info=True)

        logger.info(f"[stuck_reclaimer] Cleaned up {cleaned} stuck attempt(s)")
        return cleaned

    def _reclaim(self, attempt: Attempt, now: datetime):
        events = self.store.list_events(attempt.id)
        stuck_step = events[-1].event_type if events else attempt.status.value
        stuck_minutes = int((now - attempt.updated_at).total_seconds() // 60)

        for event in events:
            if event.status == EventStatus.STARTED:
                event.status = EventStatus.FAILED
                event.error_type = "StuckTimeout"
                event.error_message = f"Step timed out after {self.threshold_minutes} minutes"
                event.completed_at = now
                event.duration_ms = int((now - event.started_at).total_seconds() * 1000)
                self.store.update_event(event)

        message = (
            f"Attempt stuck at '{stuck_step}' for over {self.threshold_minutes} minutes"
            " - automatically cleaned up"
        )
        self.lifecycle.fail(attempt, failed_step=stuck_step, error_message=message)

        logger.warning(
            f"[stuck_reclaimer] Attempt {attempt.id} (listing {attempt.listing_id}) "
            f"stuck at '{stuck_step}' for {stuck_minutes} minutes"
        )
        self.notifier.notify(
            message,
            context="stuck_attempt_cleanup",
            severity="warning",
            attempt_id=attempt.id,
            listing_id=attempt.listing_id,
            stuck_step=stuck_step,
            stuck_duration_minutes=stuck_minutes,
        )
