"""Board-specific CSS selector extraction"""

import logging
import time

from boards.extractors import ExtractorRegistry
from core.attempt_lifecycle import AttemptLifecycle
from core.models import EventType

from ..context import RunContext, StepOutcome
from ..observability import selector_field_results
from .base import Step, accept_result, keep_partial, result_output

logger = logging.getLogger(__name__)


class SelectorExtractStep(Step):
    name = "selectors_extraction"

    def __init__(self, registry: ExtractorRegistry, lifecycle: AttemptLifecycle):
        self.registry = registry
        self.lifecycle = lifecycle

    async def run(self, ctx: RunContext) -> StepOutcome:
        extractor = self.registry.get(ctx.board_type)
        if extractor is None or not ctx.html_content:
            return StepOutcome.CONTINUE

        with ctx.event_recorder.record(EventType.SELECTORS_EXTRACTION, input={'board_type': ctx.board_type.value}) as event:
            start = time.monotonic()
            outcome = extractor.extract(ctx.html_content, ctx.url)
            duration_ms = int((time.monotonic() - start) * 1000)
            event.set_output(
                **result_output(outcome.result, ctx),
                missing_fields=outcome.missing_fields,
                board_type=outcome.board_type,
                extractor_kind=outcome.extractor_kind,
            )
            ctx.event_recorder.create_html_log(
                ctx.url,
                selector_field_results(outcome),
                board_type=outcome.board_type,
                extractor_kind=outcome.extractor_kind,
                fetch_mode=ctx.fetch_mode,
                html_size=len(ctx.html_content.encode('utf-8')),
                cleaned_html_size=len((ctx.cleaned_html or '').encode('utf-8')),
                duration_ms=duration_ms,
            )

        result = outcome.result
        if not result.accepted:
            keep_partial(ctx, result)
            return StepOutcome.CONTINUE
        return accept_result(ctx, self.lifecycle, result, source="selectors")
