"""Structured ATS API extraction (Greenhouse, Lever)"""

import logging
from typing import Optional

from boards.fetchers import FetcherRegistry
from boards.types import BoardType
from core.attempt_lifecycle import AttemptLifecycle
from core.models import EventType

from ..ai_fallback import AIPostProcessor
from ..context import RunContext, StepOutcome
from .base import Step, accept_result, keep_partial, result_output

logger = logging.getLogger(__name__)


class ApiExtractStep(Step):
    name = "api_extraction"

    def __init__(
        self,
        registry: FetcherRegistry,
        lifecycle: AttemptLifecycle,
        postprocessor: Optional[AIPostProcessor] = None
    ):
        self.registry = registry
        self.lifecycle = lifecycle
        self.postprocessor = postprocessor

    @staticmethod
    def population_enabled(ctx: RunContext) -> bool:
        if ctx.board_type == BoardType.GREENHOUSE and ctx.settings.greenhouse_enabled:
            return True
        return ctx.settings.api_population_enabled and ctx.settings.is_fetcher_enabled(ctx.board_type.value)

    async def run(self, ctx: RunContext) -> StepOutcome:
        fetcher = self.registry.get(ctx.board_type)
        if fetcher is None or not ctx.company_slug:
            return StepOutcome.CONTINUE

        if not self.population_enabled(ctx):
            ctx.event_recorder.record_skipped(
                EventType.API_EXTRACTION, "api_population_disabled",
                input={'board_type': ctx.board_type.value},
            )
            return StepOutcome.CONTINUE

        with ctx.event_recorder.record(
            EventType.API_EXTRACTION,
            input={'board_type': ctx.board_type.value, 'company_slug': ctx.company_slug, 'job_id': ctx.job_id},
        ) as event:
            fetched = await fetcher.fetch(ctx.url, job_id=ctx.job_id, company_slug=ctx.company_slug)
            result = fetched.to_result()
            event.set_output(**result_output(result, ctx), http_status=fetched.http_status, api_url=fetched.api_url)
            if fetched.error:
                event.add_output(error=fetched.error)

        if not result.accepted:
            keep_partial(ctx, result)
            return StepOutcome.CONTINUE

        if self.postprocessor is not None and ctx.settings.ai_postprocess_enabled:
            result = await self.postprocessor.process(result, ctx.url)

        return accept_result(ctx, self.lifecycle, result, source="api")
