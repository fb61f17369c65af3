"""
BambooHR career pages ({company}.bamboohr.com/careers).
"""
from boards.extractors.base import (
    BENEFIT_HEADINGS,
    REQUIREMENT_HEADINGS,
    RESPONSIBILITY_HEADINGS,
    SelectorExtractor,
)
from boards.types import BoardType


class BambooHRExtractor(SelectorExtractor):
    SELECTORS = {
        'title': [".BambooHR-ATS-board h2", "h2[class*='jss']", "h1", "h2", "meta[property='og:title']"],
        'company_name': ["meta[property='og:site_name']", "[class*='CompanyName']", "header img[alt]"],
        'location': ["[class*='Location']", "[class*='location']"],
        'description': ["[class*='JobDescription']", ".BambooHR-ATS-Description", "[class*='description']", "main"],
    }
    SECTION_HEADINGS = {
        'requirements': REQUIREMENT_HEADINGS,
        'responsibilities': RESPONSIBILITY_HEADINGS,
        'benefits': BENEFIT_HEADINGS,
    }

    def __init__(self):
        super().__init__(BoardType.BAMBOOHR)
