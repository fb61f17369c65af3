"""
Base class for structured ATS API fetchers.

A fetcher makes at most one GET against the board's public API and maps the
payload to the listing schema. Every expected failure (missing identifiers,
non-2xx, network error, unexpected payload) comes back as a FetchResult with
confidence 0.0 and an error string; fetch() never raises.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from bs4 import BeautifulSoup

from core.errors import MissingIdentifiersError
from core.net import HTTPClient
from core.results import ExtractionResult, Failure, classify

logger = logging.getLogger(__name__)

API_CONFIDENCE = 0.9

REMOTE_TYPES = ('remote', 'hybrid', 'on_site')


def strip_html(html: Optional[str]) -> Optional[str]:
    if not html or not html.strip():
        return None
    text = BeautifulSoup(html, 'lxml').get_text('\n')
    lines = [' '.join(line.split()) for line in text.splitlines()]
    return '\n'.join(line for line in lines if line) or None


def company_display_name(slug: str) -> str:
    """Fallback company name for APIs that only know the board slug"""
    return slug.replace('-', ' ').replace('_', ' ').title()


def infer_remote_type(*texts: Optional[str]) -> str:
    joined = ' '.join(t for t in texts if t).lower()
    if 'remote' in joined:
        return 'remote'
    if 'hybrid' in joined:
        return 'hybrid'
    return 'on_site'


@dataclass
class FetchResult:
    """Normalized API payload or an error"""
    provider: str
    data: Dict[str, Any] = field(default_factory=dict)
    confidence: float = 0.0
    error: Optional[str] = None
    http_status: Optional[int] = None
    api_url: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.confidence > 0

    def to_result(self) -> ExtractionResult:
        if not self.ok:
            return Failure(
                reason=self.error or "empty_api_response",
                method="api",
                provider=self.provider,
                metadata={'http_status': self.http_status},
            )
        return classify(
            self.data,
            self.confidence,
            method="api",
            provider=self.provider,
            metadata={'http_status': self.http_status, 'api_url': self.api_url},
        )


class ApiFetcher:
    """
    Base class for board API fetchers.

    Subclasses set `provider`, build the API URL and parse the payload.
    """

    provider: str = ""
    # Identifiers that must be known before a request is made
    required_identifiers = ('company_slug', 'job_id')

    def __init__(self, http_client: Optional[HTTPClient] = None, timeout: float = 30.0):
        self.http_client = http_client or HTTPClient(timeout=timeout)
        self.logger = logging.getLogger(f"{__name__}.{self.provider}")

    def company_slug_from_url(self, url: str) -> Optional[str]:
        raise NotImplementedError

    def job_id_from_url(self, url: str) -> Optional[str]:
        raise NotImplementedError

    def api_url(self, company_slug: str, job_id: Optional[str]) -> str:
        raise NotImplementedError

    def parse(self, payload: Any, url: str, company_slug: str, job_id: Optional[str]) -> Optional[Dict[str, Any]]:
        """Map the API payload to listing fields, or None when the posting is absent"""
        raise NotImplementedError

    def _error(self, message: str, **kwargs) -> FetchResult:
        self.logger.warning(f"[api_fetch] {self.provider}: {message}")
        return FetchResult(provider=self.provider, confidence=0.0, error=message, **kwargs)

    async def fetch(
        self,
        url: str,
        job_id: Optional[str] = None,
        company_slug: Optional[str] = None
    ) -> FetchResult:
        """
        Fetch a posting from the board API.

        Args:
            url: Listing URL
            job_id: Posting id, pulled from the URL when not given
            company_slug: Board slug, pulled from the URL when not given

        Returns:
            FetchResult with confidence 0.9 on success, 0.0 with an error otherwise
        """
        company_slug = company_slug or self.company_slug_from_url(url)
        job_id = job_id or self.job_id_from_url(url)

        known = {'company_slug': company_slug, 'job_id': job_id}
        missing = [name for name in self.required_identifiers if not known[name]]
        if missing:
            return self._error(str(MissingIdentifiersError(self.provider, missing)))

        api_url = self.api_url(company_slug, job_id)
        self.logger.info(f"[api_fetch] {self.provider}: fetching {api_url}")

        try:
            response = await self.http_client.get(api_url, accept="application/json")
        except httpx.TimeoutException as e:
            return self._error(f"API request timed out: {e}", api_url=api_url)
        except httpx.HTTPError as e:
            return self._error(f"API request failed: {e}", api_url=api_url)

        if not response.ok:
            return self._error(
                f"API request failed: {response.status_code}",
                http_status=response.status_code,
                api_url=api_url,
            )

        try:
            payload = json.loads(response.text)
            data = self.parse(payload, url=url, company_slug=company_slug, job_id=job_id)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            return self._error(f"Unexpected API payload: {e}", http_status=response.status_code, api_url=api_url)

        if data is None:
            return self._error("Job not found", http_status=response.status_code, api_url=api_url)

        self.logger.info(f"[api_fetch] {self.provider}: parsed '{data.get('title')}' (confidence={API_CONFIDENCE})")
        return FetchResult(
            provider=self.provider,
            data=self.normalize(data),
            confidence=API_CONFIDENCE,
            http_status=response.status_code,
            api_url=api_url,
        )

    def normalize(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Listing schema with defaults"""
        remote_type = data.get('remote_type')
        return {
            'title': data.get('title'),
            'company_name': data.get('company_name'),
            'description': data.get('description'),
            'location': data.get('location'),
            'remote_type': remote_type if remote_type in REMOTE_TYPES else 'on_site',
            'requirements': data.get('requirements'),
            'responsibilities': data.get('responsibilities'),
            'benefits': data.get('benefits'),
            'salary_min': data.get('salary_min'),
            'salary_max': data.get('salary_max'),
            'salary_currency': data.get('salary_currency'),
            'custom_sections': data.get('custom_sections') or {},
            'extraction_method': 'api',
            'provider': self.provider,
        }

    def __repr__(self):
        return f"<{self.__class__.__name__}(provider={self.provider})>"


def list_names(items: Optional[List[Dict[str, Any]]]) -> List[str]:
    return [item['name'] for item in items or [] if item.get('name')]
