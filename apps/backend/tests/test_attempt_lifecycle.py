"""
Tests for the attempt state machine and the stuck attempt reclaimer.
"""

from datetime import timedelta

import pytest

from core.attempt_lifecycle import AttemptLifecycle, MAX_RETRIES, can_transition
from core.errors import InvalidTransitionError
from core.models import Attempt, AttemptStatus, EventStatus, ExtractionEvent, utcnow
from core.stuck_reclaimer import StuckAttemptReclaimer


@pytest.fixture
def lifecycle(store, notifier):
    return AttemptLifecycle(store, notifier)


def stale_attempt(store, status, minutes_ago, listing_id=1):
    then = utcnow() - timedelta(minutes=minutes_ago)
    return store.create_attempt(Attempt(
        listing_id=listing_id,
        url="https://boards.greenhouse.io/acme/jobs/1",
        status=status,
        started_at=then,
        created_at=then,
        updated_at=then,
    ))


class TestAttemptLifecycle:
    """Test AttemptLifecycle transitions."""

    def test_create_attempt(self, lifecycle):
        attempt = lifecycle.create_attempt(1, "https://jobs.lever.co/acme/abc")

        assert attempt.id is not None
        assert attempt.status == AttemptStatus.PENDING
        assert attempt.domain == "jobs.lever.co"
        assert attempt.started_at is not None

    def test_happy_path(self, lifecycle):
        attempt = lifecycle.create_attempt(1, "https://example.com/job")

        lifecycle.start_fetch(attempt)
        assert attempt.status == AttemptStatus.FETCHING
        lifecycle.start_extract(attempt)
        assert attempt.status == AttemptStatus.EXTRACTING

        lifecycle.complete(attempt, "api", provider="greenhouse", confidence=0.9, http_status=200)

        assert attempt.status == AttemptStatus.COMPLETED
        assert attempt.extraction_method == "api"
        assert attempt.provider == "greenhouse"
        assert attempt.confidence_score == 0.9
        assert attempt.http_status == 200
        assert attempt.completed_at is not None
        assert attempt.duration_ms >= 0

    def test_complete_from_pending_advances_through_fetch(self, lifecycle):
        attempt = lifecycle.create_attempt(1, "https://example.com/job")

        lifecycle.complete(attempt, "ai", provider="openrouter", model="gpt-4o-mini", tokens_used=812)

        assert attempt.status == AttemptStatus.COMPLETED
        assert attempt.response_metadata == {'model': "gpt-4o-mini", 'tokens_used': 812}

    def test_illegal_transition_raises(self, lifecycle):
        attempt = lifecycle.create_attempt(1, "https://example.com/job")
        lifecycle.complete(attempt, "api")

        with pytest.raises(InvalidTransitionError) as exc_info:
            lifecycle.fail(attempt, "html_fetch", "boom")

        assert exc_info.value.current == "completed"
        assert attempt.status == AttemptStatus.COMPLETED

    def test_start_extract_requires_fetching(self, lifecycle):
        attempt = lifecycle.create_attempt(1, "https://example.com/job")
        assert not can_transition(attempt, 'start_extract')
        with pytest.raises(InvalidTransitionError):
            lifecycle.start_extract(attempt)

    def test_fail_counts_retries(self, lifecycle):
        attempt = lifecycle.create_attempt(1, "https://example.com/job")
        lifecycle.start_fetch(attempt)

        lifecycle.fail(attempt, "html_fetch", "HTTP 503: Failed to fetch HTML")

        assert attempt.status == AttemptStatus.FAILED
        assert attempt.failed_step == "html_fetch"
        assert attempt.error_message == "HTTP 503: Failed to fetch HTML"
        assert attempt.retry_count == 1

    def test_handle_failure_retries_below_limit(self, lifecycle, notifier):
        attempt = lifecycle.create_attempt(1, "https://example.com/job")
        lifecycle.fail(attempt, "html_fetch", "timeout")

        lifecycle.handle_failure(attempt)

        assert attempt.status == AttemptStatus.RETRYING
        assert attempt.completed_at is None
        assert len(notifier.history) == 0

        lifecycle.start_fetch(attempt)
        assert attempt.status == AttemptStatus.FETCHING

    def test_handle_failure_dead_letters_at_limit(self, lifecycle, notifier):
        attempt = lifecycle.create_attempt(1, "https://example.com/job")
        for _ in range(MAX_RETRIES):
            if attempt.status == AttemptStatus.FAILED:
                lifecycle.retry(attempt)
            lifecycle.fail(attempt, "ai_extraction", "Low confidence: 0.3")

        lifecycle.handle_failure(attempt)

        assert attempt.retry_count == MAX_RETRIES
        assert attempt.status == AttemptStatus.DEAD_LETTER
        assert attempt.needs_review
        assert notifier.history[-1]['context'] == "scraping_dead_letter"

    def test_mark_manual(self, lifecycle):
        attempt = lifecycle.create_attempt(1, "https://example.com/job")
        lifecycle.fail(attempt, "html_fetch", "403")
        lifecycle.send_to_dead_letter(attempt)

        lifecycle.mark_manual(attempt, reason="Login wall, handled by ops")

        assert attempt.status == AttemptStatus.MANUAL
        assert attempt.error_message == "Login wall, handled by ops"


class TestCreateAttemptReuse:
    """Test the recent attempt window."""

    def test_reuses_in_progress_attempt(self, lifecycle):
        first = lifecycle.create_attempt(1, "https://example.com/job")
        lifecycle.start_fetch(first)

        assert lifecycle.create_attempt(1, "https://example.com/job") is first

    def test_skips_recently_completed(self, lifecycle):
        first = lifecycle.create_attempt(1, "https://example.com/job")
        lifecycle.complete(first, "api")

        assert lifecycle.create_attempt(1, "https://example.com/job") is None

    def test_force_creates_new_attempt(self, lifecycle):
        first = lifecycle.create_attempt(1, "https://example.com/job")
        lifecycle.complete(first, "api")

        second = lifecycle.create_attempt(1, "https://example.com/job", force=True)

        assert second is not None
        assert second.id != first.id

    def test_old_attempts_are_not_reused(self, lifecycle, store):
        old = stale_attempt(store, AttemptStatus.FETCHING, minutes_ago=5)

        attempt = lifecycle.create_attempt(1, "https://example.com/job")

        assert attempt.id != old.id

    def test_other_listing_not_reused(self, lifecycle):
        first = lifecycle.create_attempt(1, "https://example.com/job")
        assert lifecycle.create_attempt(2, "https://example.com/other").id != first.id


class TestStuckAttemptReclaimer:
    """Test StuckAttemptReclaimer.sweep()."""

    def test_reclaims_stale_attempt_once(self, store, notifier):
        attempt = stale_attempt(store, AttemptStatus.FETCHING, minutes_ago=15)
        store.add_event(ExtractionEvent(
            attempt_id=attempt.id,
            listing_id=1,
            event_type="html_fetch",
            step_order=2,
            started_at=utcnow() - timedelta(minutes=15),
        ))
        reclaimer = StuckAttemptReclaimer(store, notifier)

        assert reclaimer.sweep() == 1
        assert reclaimer.sweep() == 0

        assert attempt.status == AttemptStatus.FAILED
        assert attempt.failed_step == "html_fetch"
        assert "stuck at 'html_fetch'" in attempt.error_message
        assert attempt.retry_count == 1

        event = store.list_events(attempt.id)[0]
        assert event.status == EventStatus.FAILED
        assert event.error_type == "StuckTimeout"
        assert event.error_message == "Step timed out after 10 minutes"
        assert event.completed_at is not None

        assert len(notifier.history) == 1
        payload = notifier.history[0]
        assert payload['context'] == "stuck_attempt_cleanup"
        assert payload['attempt_id'] == attempt.id
        assert payload['stuck_duration_minutes'] >= 15

    def test_recent_and_finished_attempts_untouched(self, store, notifier):
        recent = stale_attempt(store, AttemptStatus.EXTRACTING, minutes_ago=3)
        done = stale_attempt(store, AttemptStatus.COMPLETED, minutes_ago=60)

        assert StuckAttemptReclaimer(store, notifier).sweep() == 0

        assert recent.status == AttemptStatus.EXTRACTING
        assert done.status == AttemptStatus.COMPLETED
        assert len(notifier.history) == 0

    def test_stuck_step_defaults_to_status(self, store, notifier):
        attempt = stale_attempt(store, AttemptStatus.PENDING, minutes_ago=30)

        StuckAttemptReclaimer(store, notifier, threshold_minutes=20).sweep()

        assert attempt.failed_step == "pending"
        assert "over 20 minutes" in attempt.error_message

    def test_one_failure_does_not_stop_the_sweep(self, store, notifier):
        first = stale_attempt(store, AttemptStatus.FETCHING, minutes_ago=40)
        second = stale_attempt(store, AttemptStatus.FETCHING, minutes_ago=30)
        original_list_events = store.list_events

        def flaky_list_events(attempt_id):
            if attempt_id == first.id:
                raise RuntimeError("connection reset")
            return original_list_events(attempt_id)

        store.list_events = flaky_list_events

        assert StuckAttemptReclaimer(store, notifier).sweep() == 1
        assert first.status == AttemptStatus.FETCHING
        assert second.status == AttemptStatus.FAILED
