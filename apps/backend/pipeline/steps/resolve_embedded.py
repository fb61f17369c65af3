"""
Greenhouse boards embedded on company sites.

A marketing-site URL with ?gh_jid=... only carries the job id; the board
token sits in the embed script tag. Reading it lets the API step run, and
the embed page itself usually holds the posting text.
"""

import logging
import re
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlparse

import httpx

from boards.types import BoardType
from core.html_cache import HtmlCache
from core.html_cleaner import HtmlCleaner
from core.models import EventStatus, EventType

from ..context import RunContext, StepOutcome
from ..html_fetcher import HtmlFetcher
from .base import Step

logger = logging.getLogger(__name__)

GREENHOUSE_FOR_RE = re.compile(r'embed/job_board/js\?for=([a-zA-Z0-9_-]+)')
EMBED_URL = "https://job-boards.greenhouse.io/embed/job_board"
EMBED_FETCH_MODE = "greenhouse_embed"
MIN_EMBED_TEXT_LENGTH = 800


def query_param(url: str, key: str) -> Optional[str]:
    values = parse_qs(urlparse(url).query).get(key)
    return values[0] if values else None


def greenhouse_for_key(html: Optional[str]) -> Optional[str]:
    match = GREENHOUSE_FOR_RE.search(html or '')
    return match.group(1) if match else None


def greenhouse_embed_url(for_key: str, jid: str, source: Optional[str] = None) -> str:
    query = {'for': for_key, 'gh_jid': jid}
    if source:
        query['gh_src'] = source
    return f"{EMBED_URL}?{urlencode(query)}"


class ResolveEmbeddedBoardStep(Step):
    name = "embedded_job_board_fetch"

    def __init__(self, fetcher: HtmlFetcher, cache: HtmlCache, cleaner: Optional[HtmlCleaner] = None):
        self.fetcher = fetcher
        self.cache = cache
        self.cleaner = cleaner or HtmlCleaner()

    async def run(self, ctx: RunContext) -> StepOutcome:
        if ctx.board_type != BoardType.GREENHOUSE:
            return StepOutcome.CONTINUE

        jid = query_param(ctx.url, 'gh_jid')
        if not jid:
            return StepOutcome.CONTINUE
        for_key = greenhouse_for_key(ctx.html_content)
        if not for_key:
            return StepOutcome.CONTINUE

        ctx.board.company_slug = ctx.board.company_slug or for_key
        ctx.board.job_id = ctx.board.job_id or jid
        embed_url = greenhouse_embed_url(for_key, jid, query_param(ctx.url, 'gh_src'))

        try:
            await self._resolve(ctx, embed_url, for_key, jid)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"[resolve_embedded] Embed fetch failed for {embed_url}: {e}")
            ctx.event_recorder.record_simple(
                EventType.EMBEDDED_JOB_BOARD_FETCH,
                status=EventStatus.FAILED,
                output={'error': str(e), 'error_type': type(e).__name__},
            )
        return StepOutcome.CONTINUE

    async def _resolve(self, ctx: RunContext, embed_url: str, for_key: str, jid: str):
        with ctx.event_recorder.record(
            EventType.EMBEDDED_JOB_BOARD_FETCH,
            input={'board_type': 'greenhouse', 'for_key': for_key, 'gh_jid': jid, 'embed_url': embed_url},
        ) as event:
            page = await self.fetcher.fetch(embed_url)
            cleaned = self.cleaner.clean(page.html) if page.ok else None
            event.set_output(
                success=page.ok,
                http_status=page.http_status,
                html_size=len(page.html.encode('utf-8')) if page.html else None,
                cleaned_text_length=len(cleaned or ''),
                error=page.error,
                fetch_mode=EMBED_FETCH_MODE,
            )
            if not page.ok:
                event.mark_failed("embed_fetch_failed", page.error)

        if not page.ok:
            return

        self.cache.store_html(
            ctx.listing.id,
            embed_url,
            page.html,
            cleaned_html=cleaned,
            http_status=page.http_status,
            fetch_metadata={
                'fetch_mode': EMBED_FETCH_MODE,
                'duration_ms': page.duration_ms,
                'embedded_from_url': ctx.url,
            },
        )

        if len(cleaned or '') < MIN_EMBED_TEXT_LENGTH:
            logger.info(f"[resolve_embedded] Embed page too thin ({len(cleaned or '')} chars), keeping original HTML")
            return

        ctx.html_content = page.html
        ctx.cleaned_html = cleaned
        ctx.fetch_mode = EMBED_FETCH_MODE
        logger.info(f"[resolve_embedded] Using embedded Greenhouse page for {ctx.url} (for={for_key}, gh_jid={jid})")
