"""JSON-LD, meta tag and heuristic extraction for any page"""

import logging
from typing import Optional

from core.attempt_lifecycle import AttemptLifecycle
from core.models import EventType

from ..context import RunContext, StepOutcome
from ..extractor import GenericHtmlExtractor
from .base import Step, accept_result, keep_partial, result_output

logger = logging.getLogger(__name__)


class GenericHtmlStep(Step):
    name = "generic_html_extraction"

    def __init__(self, lifecycle: AttemptLifecycle, extractor: Optional[GenericHtmlExtractor] = None):
        self.lifecycle = lifecycle
        self.extractor = extractor or GenericHtmlExtractor()

    async def run(self, ctx: RunContext) -> StepOutcome:
        if not ctx.html_content:
            return StepOutcome.CONTINUE

        with ctx.event_recorder.record(EventType.GENERIC_HTML_EXTRACTION, input={'board_type': ctx.board_type.value}) as event:
            result, fields = self.extractor.extract(ctx.html_content, ctx.url)
            event.set_output(
                **result_output(result, ctx),
                sources={name: field.source for name, field in fields.items()},
            )

        if not result.accepted:
            keep_partial(ctx, result)
            return StepOutcome.CONTINUE
        return accept_result(ctx, self.lifecycle, result, source="generic_html")
