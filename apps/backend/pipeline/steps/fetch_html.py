"""
Loads the listing page, from the HTML cache when a valid entry exists and
from the fetch collaborator otherwise.
"""

import logging
from typing import Optional

from core.attempt_lifecycle import AttemptLifecycle, can_transition
from core.html_cache import HtmlCache
from core.html_cleaner import HtmlCleaner
from core.models import EventStatus, EventType

from ..context import RunContext, StepOutcome
from ..html_fetcher import HtmlFetcher
from ..observability import js_heavy_diagnosis
from .base import Step

logger = logging.getLogger(__name__)


class FetchHtmlStep(Step):
    name = "html_fetch"

    def __init__(
        self,
        fetcher: HtmlFetcher,
        cache: HtmlCache,
        lifecycle: AttemptLifecycle,
        cleaner: Optional[HtmlCleaner] = None
    ):
        self.fetcher = fetcher
        self.cache = cache
        self.lifecycle = lifecycle
        self.cleaner = cleaner or HtmlCleaner()

    async def run(self, ctx: RunContext) -> StepOutcome:
        if can_transition(ctx.attempt, 'start_fetch'):
            self.lifecycle.start_fetch(ctx.attempt)

        error = None
        with ctx.event_recorder.record(EventType.HTML_FETCH, input={'url': ctx.url}) as event:
            cached = self.cache.lookup(ctx.listing.id, ctx.url)
            if cached:
                ctx.html_content = cached.html_content
                ctx.cleaned_html = cached.cleaned_html or self.cleaner.clean(cached.html_content)
                ctx.fetch_mode = (cached.fetch_metadata or {}).get('fetch_mode', 'static')
                ctx.http_status = cached.http_status
                ctx.from_cache = True
                event.set_output(
                    success=True,
                    cached=True,
                    valid_until=cached.valid_until.isoformat(),
                    html_size=len(ctx.html_content.encode('utf-8')),
                    cleaned_html_size=len(ctx.cleaned_html),
                )
            else:
                page = await self.fetcher.fetch(ctx.url)
                ctx.http_status = page.http_status
                if not page.ok:
                    error = page.error or "Empty response body"
                    event.mark_failed("html_fetch_failed", error)
                    event.set_output(success=False, http_status=page.http_status, error=error)
                else:
                    ctx.html_content = page.html
                    ctx.cleaned_html = self.cleaner.clean(page.html)
                    ctx.fetch_mode = page.fetch_mode
                    self.cache.store_html(
                        ctx.listing.id,
                        ctx.url,
                        page.html,
                        cleaned_html=ctx.cleaned_html,
                        http_status=page.http_status,
                        fetch_metadata={
                            'fetch_mode': page.fetch_mode,
                            'duration_ms': page.duration_ms,
                            'headers': page.headers,
                            'content_length': len(page.html),
                        },
                    )
                    event.set_output(
                        success=True,
                        cached=False,
                        http_status=page.http_status,
                        html_size=len(page.html.encode('utf-8')),
                        cleaned_html_size=len(ctx.cleaned_html),
                    )

        if error:
            ctx.event_recorder.record_failure("html_fetch_failed", error, output={'http_status': ctx.http_status})
            self.lifecycle.fail(ctx.attempt, failed_step=self.name, error_message=error)
            return StepOutcome.STOP_FAILURE

        self._record_js_heavy(ctx)
        if can_transition(ctx.attempt, 'start_extract'):
            self.lifecycle.start_extract(ctx.attempt)
        return StepOutcome.CONTINUE

    @staticmethod
    def _record_js_heavy(ctx: RunContext):
        diagnosis = js_heavy_diagnosis(ctx.html_content, ctx.cleaned_html)
        if not diagnosis['js_heavy']:
            return
        logger.info(f"[fetch_html] {ctx.url} looks JS-heavy ({diagnosis['reason']}, {diagnosis['text_length']} chars)")
        ctx.event_recorder.record_simple(
            EventType.JS_HEAVY_DETECTED,
            status=EventStatus.SKIPPED,
            input={'url': ctx.url, 'fetch_mode': ctx.fetch_mode},
            output={**diagnosis, 'skipped_reason': 'rendering_not_supported'},
        )
