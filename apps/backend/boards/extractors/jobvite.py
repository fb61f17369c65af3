"""
Jobvite career pages (jobs.jobvite.com).
"""
from boards.extractors.base import (
    REQUIREMENT_HEADINGS,
    RESPONSIBILITY_HEADINGS,
    SelectorExtractor,
)
from boards.types import BoardType


class JobviteExtractor(SelectorExtractor):
    SELECTORS = {
        'title': [".jv-header", "h2.jv-header", "h1", "meta[property='og:title']"],
        'company_name': ["meta[property='og:site_name']", ".jv-logo img[alt]", "header img[alt]"],
        'location': [".jv-job-detail-meta", "[class*='location']"],
        'description': [".jv-job-detail-description", "[class*='description']"],
    }
    SECTION_HEADINGS = {
        'requirements': REQUIREMENT_HEADINGS,
        'responsibilities': RESPONSIBILITY_HEADINGS,
    }

    def __init__(self):
        super().__init__(BoardType.JOBVITE)
