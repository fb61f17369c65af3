"""
Ashby job board pages (jobs.ashbyhq.com).

Ashby renders with generated class names (`_title_ud4nd_34`) next to a few
stable ones (`ashby-job-posting-heading`). Selectors only cover metadata and
the raw description; the structured sections live inside the description and
are left to AI extraction, so confidence stays below the acceptance threshold
unless requirements or responsibilities were found.
"""
from typing import Optional

from boards.extractors.base import SelectorExtractor
from boards.types import BoardType
from core.results import is_present

STRUCTURED_CAP = 0.65
MIN_DESCRIPTION_LENGTH = 50


class AshbyExtractor(SelectorExtractor):
    SELECTORS = {
        'title': [
            ".ashby-job-posting-heading",
            "h1[class*='_title_']",
            "h1",
            "meta[property='og:title']",
        ],
        'company_name': [
            ".ashby-job-posting-header img[alt]",
            "[class*='_navLogoWordmarkImage_']",
            "title",
        ],
        'location': [
            ".ashby-job-posting-left-pane [class*='_section_']:first-of-type p",
            "[class*='_section_'] p",
            "meta[property='og:locale']",
        ],
        'description': [
            ".ashby-job-posting-right-pane",
            "[class*='_details_']",
            "[class*='_content_']",
            "meta[name='description']",
        ],
        'about_company': [],
        'company_culture': [],
        'requirements': [],
        'responsibilities': [],
    }

    def __init__(self):
        super().__init__(BoardType.ASHBY)

    def value_for(self, field_name: str, selector: str, node) -> Optional[str]:
        if field_name == 'company_name' and selector == 'title':
            # "Senior Engineer @ Acme"
            title_text = node.get_text() or ''
            if '@' in title_text:
                return title_text.split('@')[-1].strip() or None
            return None

        text = super().value_for(field_name, selector, node)
        if field_name == 'description' and text and len(text) < MIN_DESCRIPTION_LENGTH:
            return None
        return text

    def post_process(self, soup, data, confidence):
        if not (is_present(data.get('requirements')) or is_present(data.get('responsibilities'))):
            confidence = min(confidence, STRUCTURED_CAP)
        return data, confidence
