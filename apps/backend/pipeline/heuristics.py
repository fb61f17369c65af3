"""
Heuristic extractor.

Uses label-based heuristics and pattern matching to extract job fields from
pages without structured data.
"""

import re
import logging
from typing import Dict, Optional

from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from boards.extractors.base import (
    BENEFIT_HEADINGS,
    REQUIREMENT_HEADINGS,
    RESPONSIBILITY_HEADINGS,
    section_text,
    squish,
)
from core import salary_validator
from .fields import FieldResult, CONFIDENCE_SCORES

logger = logging.getLogger(__name__)

MONEY_SIGNAL = re.compile(
    r'\b(salary|compensation|pay|remuneration|total\s+comp|ote|base)\b|[$€£]|\b(usd|eur|gbp|pln|chf|cad|aud)\b',
    re.IGNORECASE
)

_AMOUNT = r'\d[\d\s,\.]*\d\s*[kK]?'
SALARY_RANGE_PATTERNS = [
    re.compile(
        rf'(?P<cur>[$€£])?\s*(?P<min>{_AMOUNT})\s*(?:-|–|—|\bto\b)\s*(?P<cur2>[$€£])?\s*(?P<max>{_AMOUNT})\s*(?:(?P<code>(?-i:[A-Z]{{3}}))\b)?',
        re.IGNORECASE
    ),
    re.compile(rf'(?P<min>{_AMOUNT})\s*(?P<code>(?-i:[A-Z]{{3}}))\b\s*(?:-|–|—|\bto\b)\s*(?P<max>{_AMOUNT})', re.IGNORECASE),
]
SALARY_FLOOR_PATTERN = re.compile(rf'(?P<cur>[$€£])?\s*(?P<min>{_AMOUNT})\s*\+\s*(?:(?P<code>(?-i:[A-Z]{{3}}))\b)?', re.IGNORECASE)

CURRENCY_SYMBOLS = {'$': 'USD', '€': 'EUR', '£': 'GBP'}

SALARY_SELECTORS = [
    "[data-salary]",
    "[class*='salary']",
    "[id*='salary']",
    ".salary",
    "[class*='compensation']",
]

DESCRIPTION_SELECTORS = [
    "[class*='job-description']",
    "[class*='description']",
    "[id*='description']",
    "article",
    "main",
]

LABEL_TAGS = ['dt', 'th', 'label', 'span', 'strong', 'b']
VALUE_TAGS = ['dd', 'td', 'div', 'span', 'p']


def compensation_candidate_text(text: str, limit: int = 15) -> str:
    """Only the lines likely to mention pay, so unrelated numbers never parse as a range"""
    lines = [line.strip() for line in (text or '').splitlines() if line.strip()]
    return '\n'.join([line for line in lines if MONEY_SIGNAL.search(line)][:limit])


def _currency(match) -> Optional[str]:
    code = (match.groupdict().get('code') or '').strip().upper()
    if code:
        return code
    symbol = (match.groupdict().get('cur') or match.groupdict().get('cur2') or '').strip()
    return CURRENCY_SYMBOLS.get(symbol)


def parse_salary_text(text: Optional[str]) -> Optional[Dict[str, Optional[str]]]:
    """
    Raw salary range from free text.

    Requires a money signal and a currency; bounds are returned unparsed for
    the salary validator.
    """
    if not text or not MONEY_SIGNAL.search(text):
        return None

    for pattern in SALARY_RANGE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        currency = _currency(match)
        if currency:
            return {'min': match.group('min'), 'max': match.group('max'), 'currency': currency}

    match = SALARY_FLOOR_PATTERN.search(text)
    if match:
        currency = _currency(match)
        if currency:
            return {'min': match.group('min'), 'max': None, 'currency': currency}
    return None


class HeuristicExtractor:
    """Extracts job fields using heuristics and pattern matching."""

    def _field(self, value, raw: Optional[str] = None) -> FieldResult:
        return FieldResult(
            value=value,
            source='heuristic',
            confidence=CONFIDENCE_SCORES['heuristic'],
            raw_snippet=(raw if raw is not None else str(value))[:200]
        )

    def extract(self, soup: BeautifulSoup) -> Dict[str, FieldResult]:
        """Extract fields using heuristics."""
        fields: Dict[str, FieldResult] = {}
        text = soup.get_text('\n') if soup else ""

        title = self._extract_title(soup)
        if title:
            fields['title'] = title

        location = self._extract_location(soup, text)
        if location:
            fields['location'] = location

        remote_type = self._extract_remote_type(text)
        if remote_type:
            fields['remote_type'] = remote_type

        description = self._extract_description(soup)
        if description:
            fields['description'] = description

        for name, keywords in (
            ('requirements', REQUIREMENT_HEADINGS),
            ('responsibilities', RESPONSIBILITY_HEADINGS),
            ('benefits', BENEFIT_HEADINGS),
        ):
            section = section_text(soup, keywords)
            if section:
                fields[name] = self._field(section)

        fields.update(self._extract_salary(soup, text))

        for name, labels in (
            ('posted_on', ('date posted', 'posted on', 'published')),
            ('deadline', ('deadline', 'closing date', 'apply by')),
        ):
            date_field = self._extract_labeled_date(soup, labels)
            if date_field:
                fields[name] = date_field

        return fields

    def _extract_title(self, soup: BeautifulSoup) -> Optional[FieldResult]:
        heading = soup.find('h1')
        if heading:
            title = squish(heading.get_text(' '))
            if 3 < len(title) < 200 and 'cookie' not in title.lower():
                return self._field(title)
        return None

    def _label_value(self, soup: BeautifulSoup, label_pattern: str) -> Optional[str]:
        labels = soup.find_all(LABEL_TAGS, string=re.compile(label_pattern, re.I))
        for label in labels:
            value_elem = label.find_next_sibling(VALUE_TAGS)
            if value_elem:
                value = squish(value_elem.get_text(' '))
                if value:
                    return value
        return None

    def _extract_location(self, soup: BeautifulSoup, text: str) -> Optional[FieldResult]:
        """Extract location using label heuristics."""
        labelled = self._label_value(soup, r'^\s*(location|work location|based in)\s*:?\s*$')
        if labelled and 2 < len(labelled) < 200:
            return self._field(labelled)

        match = re.search(r'Location:?\s*([A-Z][^,\n]{2,50}(?:,\s*[A-Z][A-Za-z]{1,50})?)', text)
        if match:
            return self._field(match.group(1).strip(), match.group(0))
        return None

    def _extract_remote_type(self, text: str) -> Optional[FieldResult]:
        lowered = text.lower()
        if re.search(r'\b(fully remote|100% remote|remote[- ]first|work from home|wfh)\b', lowered):
            return self._field('remote')
        if re.search(r'\b(hybrid|partially remote)\b', lowered):
            return self._field('hybrid')
        if re.search(r'\b(on.?site|in.?office|in.?person)\b', lowered):
            return self._field('on_site')
        if re.search(r'\bremote\b', lowered):
            return self._field('remote')
        return None

    def _extract_description(self, soup: BeautifulSoup) -> Optional[FieldResult]:
        for selector in DESCRIPTION_SELECTORS:
            elements = soup.select(selector)
            if not elements:
                continue
            text = '\n\n'.join(e.get_text('\n').strip() for e in elements[:3]).strip()
            text = re.sub(r'\n{3,}', '\n\n', text)
            if len(text) >= 50:
                return self._field(text[:5000], f"{selector}: {text[:150]}")
        return None

    def _extract_salary(self, soup: BeautifulSoup, text: str) -> Dict[str, FieldResult]:
        salary_text = None
        for selector in SALARY_SELECTORS:
            node = soup.select_one(selector)
            if node:
                salary_text = node.get_text(' ')
                break
        if salary_text is None:
            salary_text = compensation_candidate_text(text)

        parsed = parse_salary_text(salary_text)
        if not parsed:
            return {}

        checked = salary_validator.normalize(
            parsed['min'], parsed['max'], parsed['currency'], context_text=salary_text
        )
        if not checked.valid:
            logger.debug(f"[heuristics] Discarding salary {parsed}: {checked.reason}")
            return {}

        fields = {'salary_currency': self._field(checked.currency, salary_text)}
        if checked.min is not None:
            fields['salary_min'] = self._field(checked.min, salary_text)
        if checked.max is not None:
            fields['salary_max'] = self._field(checked.max, salary_text)
        return fields

    def _extract_labeled_date(self, soup: BeautifulSoup, labels) -> Optional[FieldResult]:
        pattern = r'^\s*(' + '|'.join(re.escape(label) for label in labels) + r')\s*:?\s*$'
        date_text = self._label_value(soup, pattern)
        if not date_text:
            return None
        try:
            parsed = date_parser.parse(date_text, fuzzy=True)
        except (ValueError, OverflowError) as e:
            logger.debug(f"[heuristics] Failed to parse date '{date_text}': {e}")
            return None
        return self._field(parsed.strftime('%Y-%m-%d'), date_text)
