"""
Workable job pages (apply.workable.com).
"""
from boards.extractors.base import (
    BENEFIT_HEADINGS,
    REQUIREMENT_HEADINGS,
    RESPONSIBILITY_HEADINGS,
    SelectorExtractor,
)
from boards.types import BoardType


class WorkableExtractor(SelectorExtractor):
    SELECTORS = {
        'title': ["h1[data-ui='job-title']", "h1", "meta[property='og:title']"],
        'company_name': ["[data-ui='company-name']", "header img[alt]", "meta[property='og:site_name']"],
        'location': ["[data-ui='job-location']", "[class*='location']"],
        'description': ["[data-ui='job-description']", "section[class*='description']", "meta[name='description']"],
        'requirements': ["[data-ui='job-requirements']"],
        'benefits': ["[data-ui='job-benefits']"],
    }
    SECTION_HEADINGS = {
        'requirements': REQUIREMENT_HEADINGS,
        'responsibilities': RESPONSIBILITY_HEADINGS,
        'benefits': BENEFIT_HEADINGS,
    }

    def __init__(self):
        super().__init__(BoardType.WORKABLE)
