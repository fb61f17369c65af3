"""
Extraction orchestrator.

Runs the waterfall for one listing:

    DetectBoard -> FetchHtml -> ResolveEmbeddedBoard -> ApiExtract ->
    SelectorExtract -> LimitedSourceHandler -> GenericHtmlExtract -> AiExtract

Each step returns continue, stop_success or stop_failure; the run halts at the
first step that does not continue. An exception escaping a step ends the run
as stop_failure with the attempt failed at that step.
"""

import logging
from typing import List, Optional

from boards.extractors import ExtractorRegistry, get_extractor_registry
from boards.fetchers import FetcherRegistry, build_fetcher_registry
from core.attempt_lifecycle import AttemptLifecycle, can_transition
from core.config import Settings, get_settings
from core.event_recorder import EventRecorder
from core.html_cache import HtmlCache
from core.html_cleaner import HtmlCleaner
from core.net import HTTPClient
from core.notifications import Notifier, get_notifier
from core.store import Store, get_store

from .ai_fallback import AIExtractor, AIPostProcessor
from .context import RunContext, StepOutcome
from .html_fetcher import HtmlFetcher, StaticHtmlFetcher
from .llm_providers import LLMProvider, build_providers
from .steps import (
    AiExtractStep,
    ApiExtractStep,
    DetectBoardStep,
    FetchHtmlStep,
    GenericHtmlStep,
    LimitedSourceStep,
    ResolveEmbeddedBoardStep,
    SelectorExtractStep,
    Step,
)

logger = logging.getLogger(__name__)


class ExtractionOrchestrator:
    """Builds the step chain from injected collaborators and runs it"""

    def __init__(
        self,
        store: Optional[Store] = None,
        settings: Optional[Settings] = None,
        notifier: Optional[Notifier] = None,
        fetcher: Optional[HtmlFetcher] = None,
        extractor_registry: Optional[ExtractorRegistry] = None,
        fetcher_registry: Optional[FetcherRegistry] = None,
        providers: Optional[List[LLMProvider]] = None,
        http_client: Optional[HTTPClient] = None
    ):
        self.store = store or get_store()
        self.settings = settings or get_settings()
        self.notifier = notifier or get_notifier()
        self.lifecycle = AttemptLifecycle(self.store, self.notifier)
        self.cache = HtmlCache(self.store)

        http_client = http_client or HTTPClient(user_agent=self.settings.user_agent,
                                                timeout=self.settings.html_fetch_timeout)
        self.fetcher = fetcher or StaticHtmlFetcher(http_client)
        self.extractor_registry = extractor_registry or get_extractor_registry()
        self.fetcher_registry = fetcher_registry or build_fetcher_registry(
            HTTPClient(user_agent=self.settings.user_agent, timeout=self.settings.api_fetch_timeout)
        )
        if providers is None:
            providers = build_providers(self.settings)
        self.providers = providers

        self.steps = self.build_steps()

    def build_steps(self) -> List[Step]:
        cleaner = HtmlCleaner()
        postprocessor = AIPostProcessor(self.providers) if self.providers else None
        return [
            DetectBoardStep(),
            FetchHtmlStep(self.fetcher, self.cache, self.lifecycle, cleaner),
            ResolveEmbeddedBoardStep(self.fetcher, self.cache, cleaner),
            ApiExtractStep(self.fetcher_registry, self.lifecycle, postprocessor),
            SelectorExtractStep(self.extractor_registry, self.lifecycle),
            LimitedSourceStep(),
            GenericHtmlStep(self.lifecycle),
            AiExtractStep(AIExtractor(self.providers), self.lifecycle, self.notifier),
        ]

    async def run(self, listing_id: int, force: bool = False) -> Optional[RunContext]:
        """
        Run the waterfall for a listing.

        Args:
            listing_id: Listing to extract
            force: Start a new attempt even if one ran in the last two minutes

        Returns:
            The run's context, or None when the listing is missing or was
            extracted moments ago
        """
        listing = self.store.get_listing(listing_id)
        if listing is None or not listing.url:
            logger.warning(f"[orchestrator] Listing {listing_id} not found or has no URL")
            return None

        attempt = self.lifecycle.create_attempt(listing.id, listing.url, force=force)
        if attempt is None:
            return None

        ctx = RunContext(
            listing=listing,
            attempt=attempt,
            store=self.store,
            settings=self.settings,
            event_recorder=EventRecorder(self.store, attempt),
        )
        logger.info(f"[orchestrator] Starting extraction for listing {listing.id} (attempt {attempt.id}): {listing.url}")

        for step in self.steps:
            outcome = await self._run_step(step, ctx)
            if outcome != StepOutcome.CONTINUE:
                logger.info(f"[orchestrator] Listing {listing.id} finished at {step.name}: {outcome.value} {ctx.summary()}")
                return ctx

        self._fail_exhausted(ctx)
        return ctx

    async def _run_step(self, step: Step, ctx: RunContext) -> StepOutcome:
        try:
            return await step.run(ctx)
        except Exception as e:
            logger.error(f"[orchestrator] Step {step.name} failed for listing {ctx.listing.id}: {e}", exc_info=True)
            self.notifier.notify(
                e,
                context="scraping_step",
                severity="error",
                step=step.name,
                attempt_id=ctx.attempt.id,
                listing_id=ctx.listing.id,
                url=ctx.url,
            )
            ctx.event_recorder.record_failure(type(e).__name__, str(e), output={'step': step.name})
            if can_transition(ctx.attempt, 'fail'):
                self.lifecycle.fail(ctx.attempt, failed_step=step.name, error_message=str(e))
            return StepOutcome.STOP_FAILURE

    def _fail_exhausted(self, ctx: RunContext):
        """Every step continued: nothing was accepted and AI did not run"""
        if ctx.best_partial is not None:
            message = f"Low confidence: {ctx.best_partial.confidence}"
        else:
            message = "No extraction strategy produced a result"
        ctx.event_recorder.record_failure(
            "no_accepted_result", message,
            output={'limited_extraction': ctx.limited_extraction},
        )
        if can_transition(ctx.attempt, 'fail'):
            self.lifecycle.fail(ctx.attempt, failed_step="ai_extraction", error_message=message)
        logger.warning(f"[orchestrator] Listing {ctx.listing.id} exhausted all steps: {message}")


async def run_extraction(listing_id: int, force: bool = False, **collaborators) -> Optional[RunContext]:
    """Run the extraction waterfall for one listing with default collaborators"""
    orchestrator = ExtractionOrchestrator(**collaborators)
    return await orchestrator.run(listing_id, force=force)
