"""
Generic HTML extractor for pages no board extractor understands.

Stages, merged per field by source confidence:
1. JSON-LD (Schema.org JobPosting)
2. Meta/OpenGraph tags
3. Label and section heuristics (with salary text parsing)
"""

import logging
from typing import Any, Dict, Optional, Tuple

from bs4 import BeautifulSoup

from boards.extractors.base import squish, weighted_confidence
from core.results import REQUIRED_FIELDS, ExtractionResult, Failure, classify, missing_required
from .fields import FieldResult, CONFIDENCE_SCORES, merge_fields
from .heuristics import HeuristicExtractor
from .jsonld import JSONLDExtractor

logger = logging.getLogger(__name__)


def meta_content(soup: BeautifulSoup, *selectors: str) -> Optional[str]:
    """First non-empty meta content (or element text for <title>) over the selectors"""
    for selector in selectors:
        node = soup.select_one(selector)
        if node is None:
            continue
        value = node.get('content') if node.name == 'meta' else node.get_text(' ')
        value = squish(value)
        if value:
            return value
    return None


class MetaExtractor:
    """Extracts from meta tags and OpenGraph."""

    def extract(self, soup: BeautifulSoup) -> Dict[str, FieldResult]:
        fields = {}

        title = meta_content(soup, 'meta[property="og:title"]', 'meta[name="twitter:title"]', 'title')
        if title:
            fields['title'] = FieldResult(title, 'meta', CONFIDENCE_SCORES['meta'], title[:200])

        site_name = meta_content(soup, 'meta[property="og:site_name"]')
        if site_name:
            fields['company_name'] = FieldResult(site_name, 'meta', CONFIDENCE_SCORES['meta'], site_name[:200])

        # Summaries, not full descriptions
        description = meta_content(
            soup,
            'meta[property="og:description"]',
            'meta[name="twitter:description"]',
            'meta[name="description"]',
        )
        if description:
            fields['description'] = FieldResult(
                description, 'meta', CONFIDENCE_SCORES['meta_description'], description[:200]
            )

        return fields


class GenericHtmlExtractor:
    """JSON-LD, meta and heuristic extraction over raw HTML"""

    def __init__(self):
        self.jsonld = JSONLDExtractor()
        self.meta = MetaExtractor()
        self.heuristics = HeuristicExtractor()

    def extract_fields(self, html: str) -> Dict[str, FieldResult]:
        soup = BeautifulSoup(html, 'lxml')
        fields: Dict[str, FieldResult] = {}
        merge_fields(fields, self.jsonld.extract(soup))
        merge_fields(fields, self.meta.extract(soup))
        merge_fields(fields, self.heuristics.extract(soup))
        return fields

    @staticmethod
    def confidence_for(fields: Dict[str, FieldResult], data: Dict[str, Any]) -> float:
        """
        Weakest source among the required fields when all are present,
        otherwise the capped weighted field score.
        """
        if missing_required(data):
            return weighted_confidence(data)
        return round(min(fields[name].confidence for name in REQUIRED_FIELDS), 4)

    def extract(self, html: Optional[str], url: Optional[str] = None) -> Tuple[ExtractionResult, Dict[str, FieldResult]]:
        """
        Extract listing fields.

        Returns:
            (result, field results by name)
        """
        if not html or not html.strip():
            return Failure(reason="No HTML provided", method="html", provider="generic"), {}

        fields = self.extract_fields(html)
        data = {name: result.value for name, result in fields.items()}
        confidence = self.confidence_for(fields, data)

        sources = {name: result.source for name, result in fields.items()}
        logger.info(
            f"[generic_html] Extracted {len(data)} fields from {(url or '')[:80]} "
            f"(confidence={confidence:.2f}, sources={sources})"
        )
        result = classify(
            data, confidence, method="html", provider="generic",
            metadata={'sources': sources},
        )
        return result, fields
