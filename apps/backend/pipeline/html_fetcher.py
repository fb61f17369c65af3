"""
HTML fetch collaborators.

The pipeline only depends on the HtmlFetcher interface; StaticHtmlFetcher is
the default plain-HTTP implementation. Rendered (JavaScript) fetching is left
to other implementations.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional

import httpx

from core.net import HTTPClient

logger = logging.getLogger(__name__)

KEPT_HEADERS = ('content-type', 'content-encoding', 'last-modified')


@dataclass
class FetchedPage:
    html: Optional[str]
    http_status: Optional[int] = None
    fetch_mode: str = "static"
    headers: Dict[str, str] = field(default_factory=dict)
    duration_ms: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.html)


class HtmlFetcher(ABC):
    @abstractmethod
    async def fetch(self, url: str) -> FetchedPage:
        """Fetch a page; failures are reported in FetchedPage.error"""


class StaticHtmlFetcher(HtmlFetcher):
    """Single GET over HTTPClient"""

    def __init__(self, http_client: Optional[HTTPClient] = None, timeout: float = 30.0):
        self.http_client = http_client or HTTPClient(timeout=timeout)

    async def fetch(self, url: str) -> FetchedPage:
        try:
            response = await self.http_client.get(url)
        except httpx.TimeoutException as e:
            return FetchedPage(html=None, error=f"Request timeout: {e}")
        except httpx.HTTPError as e:
            return FetchedPage(html=None, error=f"Failed to fetch HTML: {e}")

        headers = {k: v for k, v in response.headers.items() if k.lower() in KEPT_HEADERS}
        if not response.ok:
            logger.warning(f"[html_fetcher] HTTP {response.status_code} for {url}")
            return FetchedPage(
                html=None,
                http_status=response.status_code,
                headers=headers,
                duration_ms=response.elapsed_ms,
                error=f"HTTP {response.status_code}: Failed to fetch HTML",
            )
        return FetchedPage(
            html=response.text,
            http_status=response.status_code,
            headers=headers,
            duration_ms=response.elapsed_ms,
        )
