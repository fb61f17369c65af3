"""
Lever postings API (public, no key).

GET https://api.lever.co/v0/postings/{slug}/{id}, or the board's posting list
matched by hostedUrl when the URL carries no posting id.
"""
from typing import Any, Dict, List, Optional

from boards.detector import extract_company_slug, extract_job_id
from boards.fetchers.base import ApiFetcher, company_display_name, infer_remote_type, strip_html
from boards.types import BoardType
from core.url_normalizer import normalize_url

BASE_URL = "https://api.lever.co/v0/postings"

REQUIREMENT_LISTS = ('requirement', 'qualification')
RESPONSIBILITY_LISTS = ('responsibilit', 'role')


def _matching_lists(lists: List[Dict[str, Any]], keys) -> List[Dict[str, Any]]:
    return [item for item in lists if any(k in (item.get('text') or '').lower() for k in keys)]


def lists_text(lists: Optional[List[Dict[str, Any]]], keys) -> Optional[str]:
    matching = _matching_lists(lists or [], keys)
    if not matching:
        return None
    parts = [strip_html(item.get('content')) for item in matching]
    return '\n\n'.join(p for p in parts if p) or None


class LeverFetcher(ApiFetcher):
    provider = "lever"
    # The posting list can be matched by hostedUrl
    required_identifiers = ('company_slug',)

    def company_slug_from_url(self, url: str) -> Optional[str]:
        return extract_company_slug(url, BoardType.LEVER)

    def job_id_from_url(self, url: str) -> Optional[str]:
        job_id = extract_job_id(url, BoardType.LEVER)
        # jobs.lever.co/acme/<id>/apply
        return job_id if job_id and job_id != 'apply' else None

    def api_url(self, company_slug: str, job_id: Optional[str]) -> str:
        if job_id:
            return f"{BASE_URL}/{company_slug}/{job_id}"
        return f"{BASE_URL}/{company_slug}"

    def parse(self, payload: Any, url: str, company_slug: str, job_id: Optional[str]) -> Optional[Dict[str, Any]]:
        if isinstance(payload, list):
            target = normalize_url(url)
            payload = next(
                (p for p in payload if p.get('hostedUrl') and normalize_url(p['hostedUrl']) == target),
                None,
            )
        if not isinstance(payload, dict) or not payload.get('text'):
            return None

        categories = payload.get('categories') or {}
        location = categories.get('location') or payload.get('location')
        workplace = (payload.get('workplaceType') or '').lower()
        lists = payload.get('lists') or []

        return {
            'title': payload['text'],
            'company_name': company_display_name(company_slug),
            'description': payload.get('description') or payload.get('descriptionPlain'),
            'location': location,
            'remote_type': workplace if workplace in ('remote', 'hybrid') else infer_remote_type(location),
            'requirements': lists_text(lists, REQUIREMENT_LISTS),
            'responsibilities': lists_text(lists, RESPONSIBILITY_LISTS),
            'benefits': strip_html(payload.get('additional')),
            'custom_sections': self._custom_sections(payload, categories, lists),
        }

    @staticmethod
    def _custom_sections(payload, categories, lists) -> Dict[str, Any]:
        sections: Dict[str, Any] = {}
        for key in ('team', 'department', 'commitment'):
            if categories.get(key):
                sections[key] = categories[key]
        if payload.get('applyUrl'):
            sections['apply_url'] = payload['applyUrl']
        if payload.get('hostedUrl'):
            sections['hosted_url'] = payload['hostedUrl']
        if payload.get('createdAt'):
            sections['created_at'] = payload['createdAt']

        other = [
            item for item in lists
            if item not in _matching_lists(lists, REQUIREMENT_LISTS + RESPONSIBILITY_LISTS)
        ]
        if other:
            sections['additional_info'] = [
                {'title': item.get('text'), 'content': strip_html(item.get('content'))}
                for item in other
            ]
        return sections
