"""
iCIMS hosted job pages (*.icims.com).
"""
from boards.extractors.base import (
    REQUIREMENT_HEADINGS,
    RESPONSIBILITY_HEADINGS,
    SelectorExtractor,
)
from boards.types import BoardType


class IcimsExtractor(SelectorExtractor):
    SELECTORS = {
        'title': [".iCIMS_Header h1", "h1.iCIMS_Header", "h1", "meta[property='og:title']"],
        'company_name': ["meta[property='og:site_name']", ".iCIMS_Logo img[alt]", "header img[alt]"],
        'location': [".iCIMS_JobHeaderTag .iCIMS_JobHeaderData", "[class*='location']"],
        'description': [".iCIMS_JobContent", ".iCIMS_InfoMsg_Job", "[class*='description']"],
    }
    SECTION_HEADINGS = {
        'requirements': REQUIREMENT_HEADINGS,
        'responsibilities': RESPONSIBILITY_HEADINGS,
    }

    def __init__(self):
        super().__init__(BoardType.ICIMS)
