"""
LinkedIn, Indeed and Glassdoor pages.

These boards hide the posting behind authentication, so only the public meta
tags and JSON-LD are read. Whatever is found fills blank listing fields and
the listing is flagged as a limited extraction; the waterfall always
continues.
"""

import logging
import re
from typing import Any, Dict, Optional

from bs4 import BeautifulSoup

from boards.types import BoardType, LIMITED_BOARDS
from core.models import EventType

from ..context import RunContext, StepOutcome
from ..extractor import meta_content
from ..jsonld import JSONLDExtractor
from ..listing_updater import is_placeholder_company, update_preliminary
from .base import Step

logger = logging.getLogger(__name__)

LIMITED_EXTRACTION_REASONS = {
    BoardType.LINKEDIN: "LinkedIn requires authentication for full job details",
    BoardType.INDEED: "Indeed limits public access to job content",
    BoardType.GLASSDOOR: "Glassdoor requires authentication for full job details",
}
DEFAULT_LIMITED_REASON = "Source has limited public access"

LINKEDIN_SUFFIX_RE = re.compile(r'\s*\|\s*LinkedIn\s*$', re.IGNORECASE)

JSONLD_FIELDS = ('title', 'company_name', 'description', 'location', 'salary_min', 'salary_max', 'salary_currency')


def parse_linkedin_title(title: Optional[str]) -> Optional[str]:
    """'Engineer at Acme | LinkedIn' -> 'Engineer'"""
    if not title or not title.strip():
        return None
    title = LINKEDIN_SUFFIX_RE.sub('', title)
    if ' at ' in title:
        title = title.split(' at ')[0]
    elif ' - ' in title:
        title = title.split(' - ')[0]
    return title.strip() or None


class LimitedSourceStep(Step):
    name = "limited_source_extraction"

    def __init__(self):
        self.jsonld = JSONLDExtractor()

    def extract_meta(self, html: Optional[str]) -> Dict[str, Any]:
        if not html:
            return {}
        soup = BeautifulSoup(html, 'lxml')
        schema = {name: result.value for name, result in self.jsonld.extract(soup).items() if name in JSONLD_FIELDS}

        result = {
            'title': parse_linkedin_title(
                meta_content(soup, 'meta[property="og:title"]', 'meta[name="twitter:title"]', 'title')
                or schema.get('title')
            ),
            'company_name': meta_content(soup, 'meta[property="og:site_name"]') or schema.get('company_name'),
            'description': meta_content(
                soup,
                'meta[property="og:description"]',
                'meta[name="twitter:description"]',
                'meta[name="description"]',
            ) or schema.get('description'),
        }
        logo = meta_content(soup, 'meta[property="og:image"]')
        if logo and 'logo' in logo:
            result['logo_url'] = logo
        for name in ('location', 'salary_min', 'salary_max', 'salary_currency'):
            result[name] = schema.get(name)
        return {k: v for k, v in result.items() if v is not None}

    async def run(self, ctx: RunContext) -> StepOutcome:
        if ctx.board_type not in LIMITED_BOARDS:
            return StepOutcome.CONTINUE

        with ctx.event_recorder.record(
            EventType.LIMITED_SOURCE_EXTRACTION,
            input={'board_type': ctx.board_type.value, 'url': ctx.url},
        ) as event:
            result = self.extract_meta(ctx.html_content)
            ctx.limited_extraction = True

            if result:
                self._update_listing(ctx, result)
                event.set_output(
                    extracted_fields=sorted(result.keys()),
                    extraction_quality="limited",
                    title=result.get('title'),
                    company=result.get('company_name'),
                    description_preview=(result.get('description') or '')[:100] or None,
                )
            else:
                event.set_output(extracted_fields=[], extraction_quality="limited", reason="No meta tags found")

        return StepOutcome.CONTINUE

    def _update_listing(self, ctx: RunContext, result: Dict[str, Any]):
        listing = ctx.listing
        had_placeholder = is_placeholder_company(listing.company_name)

        fields = {k: v for k, v in result.items() if k != 'logo_url'}
        update_preliminary(ctx, fields)

        scraped = dict(listing.scraped_data or {})
        scraped.update({
            'job_board': ctx.board_type.value,
            'extraction_quality': "limited",
            'limited_extraction_reason': LIMITED_EXTRACTION_REASONS.get(ctx.board_type, DEFAULT_LIMITED_REASON),
            'meta_extraction': result,
        })
        listing.scraped_data = scraped
        ctx.store.save_listing(listing)
        logger.info(
            f"[limited_sources] Listing {listing.id}: limited {ctx.board_type.value} extraction "
            f"({sorted(result.keys())}, placeholder_company={had_placeholder})"
        )
