"""
Base selector extractor for job board pages.
"""
import re
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from boards.types import BoardType
from core.results import (
    ExtractionResult,
    Failure,
    classify,
    is_present,
    missing_required,
)

logger = logging.getLogger(__name__)

FIELD_WEIGHTS = {
    'title': 0.25,
    'company_name': 0.25,
    'description': 0.15,
    'location': 0.05,
    'requirements': 0.075,
    'responsibilities': 0.075,
    'benefits': 0.05,
    'about_company': 0.05,
    'company_culture': 0.05,
}

# Below the acceptance threshold so incomplete data never stops the waterfall
MISSING_REQUIRED_CAP = 0.69

EXTRACTED_FIELDS = (
    'title', 'company_name', 'location', 'description', 'requirements',
    'responsibilities', 'benefits', 'about_company', 'company_culture',
)

DEFAULT_SELECTORS: Dict[str, List[str]] = {
    'title': ["h1"],
    'company_name': [],
    'location': ["[class*='location']", "[data-location]", "address"],
    'description': ["[class*='description']", "[data-description]", "main", "article"],
    'requirements': [],
    'responsibilities': [],
    'benefits': [],
    'about_company': ["[id*='about']", "[class*='about']", ".about", ".about-us"],
    'company_culture': [
        "[id*='culture']", "[class*='culture']",
        "[id*='values']", "[class*='values']",
        "[id*='mission']", "[class*='mission']",
    ],
}

ATTRIBUTE_PREFERENCE = ('content', 'alt', 'aria-label', 'title')

REQUIREMENT_HEADINGS = ('requirement', 'qualification', 'what you bring', 'who you are', 'you have')
RESPONSIBILITY_HEADINGS = ('responsibilit', 'what you will do', "what you'll do", 'the role', 'your impact')
BENEFIT_HEADINGS = ('benefit', 'perks', 'what we offer')


def squish(text: Optional[str]) -> str:
    return re.sub(r'\s+', ' ', text or '').strip()


HEADING_TAGS = ('h1', 'h2', 'h3', 'h4')


def _is_label(node) -> bool:
    """A paragraph that is only a bold label, e.g. <p><strong>Benefits</strong></p>"""
    if node.name != 'p':
        return False
    bold = node.find(['strong', 'b'])
    return bool(bold) and squish(bold.get_text(' ')) == squish(node.get_text(' '))


def section_text(soup: BeautifulSoup, keywords: Tuple[str, ...], max_chars: int = 5000) -> Optional[str]:
    """
    Text of the content that follows a heading mentioning one of the keywords.

    Collects sibling nodes after the heading until the next heading or bold
    section label.
    """
    for heading in soup.find_all(['h2', 'h3', 'h4', 'strong', 'b']):
        label = squish(heading.get_text(' ')).lower()
        if not label or len(label) > 80 or not any(k in label for k in keywords):
            continue

        parts = []
        anchor = heading if heading.name.startswith('h') else (heading.parent or heading)
        for sibling in anchor.find_next_siblings():
            if sibling.name in HEADING_TAGS or _is_label(sibling):
                break
            text = squish(sibling.get_text(' '))
            if text:
                parts.append(text)
        if parts:
            return '\n'.join(parts)[:max_chars]
    return None


def weighted_confidence(data: Dict[str, Any]) -> float:
    score = sum(w for name, w in FIELD_WEIGHTS.items() if is_present(data.get(name)))
    if missing_required(data):
        score = min(score, MISSING_REQUIRED_CAP)
    return round(max(0.0, min(1.0, score)), 4)


@dataclass
class SelectorOutcome:
    """Result of one selector extraction plus its field-level diagnostics"""
    result: ExtractionResult
    board_type: str
    extractor_kind: str = "job_board_selectors"
    field_results: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    selectors_tried: Dict[str, List[str]] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def confidence(self) -> float:
        return self.result.confidence

    @property
    def data(self) -> Dict[str, Any]:
        return self.result.data

    @property
    def missing_fields(self) -> List[str]:
        return missing_required(self.result.data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'extractor_kind': self.extractor_kind,
            'board_type': self.board_type,
            'confidence': self.confidence,
            'accepted': self.result.accepted,
            'missing_fields': self.missing_fields,
            'extracted_fields': sorted(self.data.keys()),
            'selectors_tried': self.selectors_tried,
            'error': self.error,
        }


class SelectorExtractor:
    """
    Selector-driven extractor for one board type.

    Subclasses override SELECTORS per field (a board list replaces the
    default list), SECTION_HEADINGS for fields found under
    headings, value_for() to read a matched node differently, and
    post_process() to adjust data or confidence.
    """

    SELECTORS: Dict[str, List[str]] = {}
    # Fields read from the text under a matching heading when no selector hits
    SECTION_HEADINGS: Dict[str, Tuple[str, ...]] = {}

    def __init__(self, board_type: BoardType):
        self.board_type = board_type
        self.name = board_type.value
        self.logger = logging.getLogger(f"{__name__}.{self.name}")

    def selectors_for(self, field_name: str) -> List[str]:
        if field_name in self.SELECTORS:
            return list(self.SELECTORS[field_name])
        return list(DEFAULT_SELECTORS.get(field_name, []))

    def get_soup(self, html: str) -> BeautifulSoup:
        """Helper to create BeautifulSoup instance"""
        return BeautifulSoup(html, 'lxml')

    @staticmethod
    def node_text(node) -> str:
        for attr in ATTRIBUTE_PREFERENCE:
            value = node.get(attr)
            if value and value.strip():
                return squish(value)
        return squish(node.get_text(' '))

    def pick_text(self, soup: BeautifulSoup, field_name: str, tried: List[str]) -> Tuple[Optional[str], Optional[str]]:
        """First non-empty value over the field's selectors, with the selector that matched"""
        for selector in self.selectors_for(field_name):
            tried.append(selector)
            node = soup.select_one(selector)
            if node is None:
                continue
            text = self.value_for(field_name, selector, node)
            if text:
                return text, selector
        return None, None

    def value_for(self, field_name: str, selector: str, node) -> Optional[str]:
        """Value of a matched node, or None to keep looking"""
        return self.node_text(node) or None

    def post_process(self, soup: BeautifulSoup, data: Dict[str, Any], confidence: float) -> Tuple[Dict[str, Any], float]:
        """Board-specific adjustments (optional override)"""
        return data, confidence

    def extract(self, html: str, url: Optional[str] = None) -> SelectorOutcome:
        """
        Extract listing fields from HTML.

        Args:
            html: Page HTML
            url: Listing URL (for logging)

        Returns:
            SelectorOutcome with Success when confidence >= 0.7 and all
            required fields are present
        """
        if not html or not html.strip():
            return SelectorOutcome(
                result=Failure(reason="No HTML provided", method="html", provider=self.name),
                board_type=self.name,
                error="No HTML provided",
            )

        soup = self.get_soup(html)
        data: Dict[str, Any] = {}
        field_results: Dict[str, Dict[str, Any]] = {}
        selectors_tried: Dict[str, List[str]] = {}

        for field_name in EXTRACTED_FIELDS:
            tried: List[str] = []
            value, selector = self.pick_text(soup, field_name, tried)
            selectors_tried[field_name] = tried
            field_results[field_name] = {
                'success': bool(value),
                'value': value,
                'selector': selector,
                'selectors_tried': tried,
            }
            if value:
                data[field_name] = value
            elif field_name in self.SECTION_HEADINGS:
                value = section_text(soup, self.SECTION_HEADINGS[field_name])
                if value:
                    data[field_name] = value
                    field_results[field_name].update({'success': True, 'value': value, 'selector': 'section_heading'})

        confidence = weighted_confidence(data)
        data, confidence = self.post_process(soup, data, confidence)
        if missing_required(data):
            confidence = min(confidence, MISSING_REQUIRED_CAP)

        # Post-processing may drop fields; keep diagnostics in sync
        for field_name, result in field_results.items():
            if result['success'] and not is_present(data.get(field_name)):
                result['success'] = False
            elif not result['success'] and is_present(data.get(field_name)):
                result.update({'success': True, 'value': data[field_name], 'selector': 'post_process'})

        result = classify(data, confidence, method="html", provider=self.name)
        self.logger.info(
            f"Extracted {len(data)} fields from {(url or '')[:80]} "
            f"(confidence={confidence:.2f}, missing={missing_required(data)})"
        )
        return SelectorOutcome(
            result=result,
            board_type=self.name,
            field_results=field_results,
            selectors_tried=selectors_tried,
        )

    def __repr__(self):
        return f"<{self.__class__.__name__}(board={self.name})>"

