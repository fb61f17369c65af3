"""
Last-resort LLM extraction.

The whole provider chain runs under one wall-clock bound. A low-confidence
answer still writes its title/company/description to the listing before the
attempt is failed.
"""

import asyncio
import logging
from typing import Optional

from core.attempt_lifecycle import AttemptLifecycle, can_transition
from core.errors import AiExtractionTimeoutError
from core.models import EventType
from core.notifications import Notifier
from core.results import Failure, PartialSuccess

from ..ai_fallback import AIExtractor
from ..context import RunContext, StepOutcome
from ..listing_updater import update_final
from .base import Step, accept_result, result_output

logger = logging.getLogger(__name__)


class AiExtractStep(Step):
    name = "ai_extraction"

    def __init__(
        self,
        extractor: Optional[AIExtractor],
        lifecycle: AttemptLifecycle,
        notifier: Notifier,
        timeout: Optional[float] = None
    ):
        self.extractor = extractor
        self.lifecycle = lifecycle
        self.notifier = notifier
        self.timeout = timeout

    async def run(self, ctx: RunContext) -> StepOutcome:
        if not ctx.settings.ai_extraction_enabled or self.extractor is None:
            ctx.event_recorder.record_skipped(EventType.AI_EXTRACTION, "ai_extraction_disabled")
            return StepOutcome.CONTINUE
        if not self.extractor.providers:
            ctx.event_recorder.record_skipped(EventType.AI_EXTRACTION, "no_ai_providers_configured")
            return StepOutcome.CONTINUE

        if can_transition(ctx.attempt, 'start_extract'):
            self.lifecycle.start_extract(ctx.attempt)

        timeout = self.timeout if self.timeout is not None else ctx.settings.ai_extraction_timeout
        content = ctx.html_for_extraction

        try:
            with ctx.event_recorder.record(
                EventType.AI_EXTRACTION,
                input={
                    'html_size': len((ctx.html_content or '').encode('utf-8')),
                    'cleaned_html_size': len(ctx.cleaned_html or ''),
                    'timeout_seconds': timeout,
                },
            ) as event:
                try:
                    result = await asyncio.wait_for(self.extractor.extract(content, ctx.url), timeout=timeout)
                except asyncio.TimeoutError:
                    raise AiExtractionTimeoutError(timeout)
                metadata = result.metadata or {}
                event.set_output(
                    **result_output(result, ctx),
                    model=metadata.get('model'),
                    tokens_used=metadata.get('tokens_used'),
                    provider_errors=metadata.get('provider_errors') or [],
                )
        except AiExtractionTimeoutError as e:
            return self._fail_timeout(ctx, e)

        if result.accepted:
            return accept_result(ctx, self.lifecycle, result, source="ai")

        message = f"Low confidence: {result.confidence}"
        error_type = "ai_extraction_failed"
        provider_errors = (result.metadata or {}).get('provider_errors') or []
        if isinstance(result, PartialSuccess):
            ctx.event_recorder.record_simple(
                EventType.DATA_UPDATE,
                input={'source': "ai", 'partial': True},
                output={'confidence': result.confidence, 'fields': sorted(result.required_data.keys())},
            )
            update_final(ctx, result)
            ctx.best_partial = result
            error_type = "low_confidence"
        elif isinstance(result, Failure) and result.confidence == 0.0:
            message = result.reason
            error_type = result.metadata.get('error_type') or error_type

        ctx.event_recorder.record_failure(
            error_type,
            message,
            output={'confidence': result.confidence, 'provider': result.provider,
                    'provider_errors': provider_errors},
        )
        self.lifecycle.fail(
            ctx.attempt, failed_step=self.name, error_message=message,
            metadata={'provider_errors': provider_errors} if provider_errors else None,
        )
        return StepOutcome.STOP_FAILURE

    def _fail_timeout(self, ctx: RunContext, error: AiExtractionTimeoutError) -> StepOutcome:
        message = str(error)
        logger.warning(f"[ai_extract] {message} for listing {ctx.listing.id}")
        ctx.event_recorder.record_failure("timeout", message, output={'timeout_seconds': error.timeout_seconds})
        self.notifier.notify(
            error,
            context="ai_extraction_timeout",
            severity="warning",
            attempt_id=ctx.attempt.id,
            listing_id=ctx.listing.id,
            url=ctx.url,
        )
        self.lifecycle.fail(ctx.attempt, failed_step=self.name, error_message=message)
        return StepOutcome.STOP_FAILURE
