"""
Greenhouse hosted board pages (boards.greenhouse.io, job-boards.greenhouse.io).
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


class GreenhouseExtractor(SelectorExtractor):
    SELECTORS = {
        'title': ["h1.app-title", ".job__title h1", "h1.section-header", "h1", "meta[property='og:title']"],
        'company_name': [".company-name", "meta[property='og:site_name']", ".logo img[alt]"],
        'location': [".location", ".job__location", "[class*='location']"],
        'description': ["#content", ".job__description", "[class*='description']", "main"],
    }
    SECTION_HEADINGS = {
        'requirements': REQUIREMENT_HEADINGS,
        'responsibilities': RESPONSIBILITY_HEADINGS,
        'benefits': BENEFIT_HEADINGS,
    }

    def __init__(self):
        super().__init__(BoardType.GREENHOUSE)

    def value_for(self, field_name: str, selector: str, node) -> Optional[str]:
        text = super().value_for(field_name, selector, node)
        if text and field_name == 'company_name':
            # Classic boards render "at Acme"
            text = re.sub(r'^at\s+', '', text, flags=re.IGNORECASE).strip() or None
        return text
