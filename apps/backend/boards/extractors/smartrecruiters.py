"""
SmartRecruiters job pages (jobs.smartrecruiters.com).
"""
from boards.extractors.base import SelectorExtractor
from boards.types import BoardType


class SmartRecruitersExtractor(SelectorExtractor):
    SELECTORS = {
        'title': ["h1.job-title", "h1[itemprop='title']", "h1", "meta[property='og:title']"],
        'company_name': ["meta[itemprop='hiringOrganization']", "[itemprop='hiringOrganization'] [itemprop='name']", ".header-logo img[alt]", "meta[property='og:site_name']"],
        'location': ["spotlight-location", "[itemprop='jobLocation']", ".job-detail-location", "[class*='location']"],
        'description': ["[itemprop='description']", "#st-jobDescription", ".job-sections"],
        'requirements': ["#st-qualifications", "[itemprop='qualifications']"],
        'responsibilities': ["[itemprop='responsibilities']"],
        'about_company': ["#st-companyDescription"],
        'benefits': ["#st-additionalInformation", "[itemprop='jobBenefits']"],
    }

    def __init__(self):
        super().__init__(BoardType.SMARTRECRUITERS)
