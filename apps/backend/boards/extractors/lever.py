"""
Lever hosted posting pages (jobs.lever.co).
"""
import re
from typing import Optional

from boards.extractors.base import (
    BENEFIT_HEADINGS,
    REQUIREMENT_HEADINGS,
    RESPONSIBILITY_HEADINGS,
    SelectorExtractor,
)
from boards.types import BoardType


class LeverExtractor(SelectorExtractor):
    SELECTORS = {
        'title': [".posting-headline h2", "h2", "meta[property='og:title']"],
        'company_name': [".main-header-logo img[alt]", "meta[property='og:site_name']", "title"],
        'location': [".posting-categories .location", ".sort-by-location", ".posting-category.location"],
        'description': ["[data-qa='job-description']", ".section-wrapper.page-full-width .section", "meta[name='description']"],
    }
    SECTION_HEADINGS = {
        'requirements': REQUIREMENT_HEADINGS,
        'responsibilities': RESPONSIBILITY_HEADINGS,
        'benefits': BENEFIT_HEADINGS,
    }

    def __init__(self):
        super().__init__(BoardType.LEVER)

    def value_for(self, field_name: str, selector: str, node) -> Optional[str]:
        text = super().value_for(field_name, selector, node)
        if not text or field_name != 'company_name':
            return text
        if selector == 'title':
            # "Acme - Senior Engineer"
            return text.split(' - ')[0].strip() if ' - ' in text else None
        return re.sub(r'\s+logo$', '', text, flags=re.IGNORECASE).strip() or None
