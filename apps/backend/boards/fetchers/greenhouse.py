"""
Greenhouse boards API (public, no key).

GET https://boards-api.greenhouse.io/v1/boards/{slug}/jobs/{id}
"""
import html
from typing import Any, Dict, Optional

from bs4 import BeautifulSoup

from boards.detector import extract_company_slug, extract_job_id
from boards.extractors.base import section_text
from boards.fetchers.base import ApiFetcher, company_display_name, infer_remote_type, list_names
from boards.types import BoardType

BASE_URL = "https://boards-api.greenhouse.io/v1/boards"


class GreenhouseFetcher(ApiFetcher):
    provider = "greenhouse"

    def company_slug_from_url(self, url: str) -> Optional[str]:
        return extract_company_slug(url, BoardType.GREENHOUSE)

    def job_id_from_url(self, url: str) -> Optional[str]:
        return extract_job_id(url, BoardType.GREENHOUSE)

    def api_url(self, company_slug: str, job_id: Optional[str]) -> str:
        return f"{BASE_URL}/{company_slug}/jobs/{job_id}"

    def parse(self, payload: Any, url: str, company_slug: str, job_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if not isinstance(payload, dict) or not payload.get('title'):
            return None

        # Content comes HTML-escaped
        content_html = html.unescape(payload.get('content') or '')
        soup = BeautifulSoup(content_html, 'lxml')
        location_name = (payload.get('location') or {}).get('name')

        return {
            'title': payload['title'],
            'company_name': payload.get('company_name') or company_display_name(company_slug),
            'description': content_html or None,
            'location': location_name,
            'remote_type': infer_remote_type(location_name),
            'requirements': section_text(soup, ('requirement', 'qualification')),
            'responsibilities': section_text(soup, ('responsibilit',)),
            'benefits': section_text(soup, ('benefit', 'perks')),
            'custom_sections': self._custom_sections(payload),
        }

    @staticmethod
    def _custom_sections(payload: Dict[str, Any]) -> Dict[str, Any]:
        sections: Dict[str, Any] = {}
        departments = list_names(payload.get('departments'))
        if departments:
            sections['departments'] = departments
        offices = list_names(payload.get('offices'))
        if offices:
            sections['offices'] = offices
        if payload.get('updated_at'):
            sections['updated_at'] = payload['updated_at']
        if payload.get('absolute_url'):
            sections['absolute_url'] = payload['absolute_url']
        return sections
