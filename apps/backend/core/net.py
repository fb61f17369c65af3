"""
HTTP client shared by the HTML fetcher, API fetchers and LLM providers.

Every request carries a hard timeout. Connection failures (nothing was sent)
are retried with backoff; timeouts are not, so a request never exceeds its
time budget by more than the retry backoff.
"""

import os
import time
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from core.config import DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
MAX_RETRIES = 2
MAX_BODY_BYTES = 5 * 1024 * 1024


@dataclass
class HTTPResponse:
    status_code: int
    url: str
    text: str
    headers: Dict[str, str] = field(default_factory=dict)
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class HTTPClient:
    """Async HTTP client with timeouts and connect retries"""

    def __init__(
        self,
        user_agent: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.user_agent = user_agent or os.getenv("SCRAPER_USER_AGENT", DEFAULT_USER_AGENT)
        self.timeout = httpx.Timeout(timeout, connect=min(10.0, timeout))
        # Injected in tests (httpx.MockTransport)
        self.transport = transport

    def _get_headers(self, accept: str, custom_headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": accept,
            "Accept-Language": "en-US,en;q=0.9",
        }
        if custom_headers:
            headers.update(custom_headers)
        return headers

    @retry(
        stop=stop_after_attempt(MAX_RETRIES + 1),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type(httpx.ConnectError),
        reraise=True
    )
    async def get(
        self,
        url: str,
        accept: str = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> HTTPResponse:
        """
        GET a URL.

        Raises:
            httpx.TimeoutException: request exceeded the timeout
            httpx.RequestError: network failure after retries
        """
        request_headers = self._get_headers(accept, headers)
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self.transport
        ) as client:
            start_time = time.time()
            try:
                response = await client.get(url, headers=request_headers, params=params)
            except httpx.TimeoutException as e:
                logger.error(f"[net] Timeout fetching {url}: {e}")
                raise
            except httpx.ConnectError as e:
                logger.error(f"[net] Connection error fetching {url}: {e}")
                raise

            elapsed_ms = int((time.time() - start_time) * 1000)
            body = response.content
            if len(body) > MAX_BODY_BYTES:
                logger.warning(f"[net] Content too large: {len(body)} bytes - {url}")
                body = body[:MAX_BODY_BYTES]

            logger.info(f"[net] GET {response.status_code} {url} ({len(body)} bytes, {elapsed_ms}ms)")
            return HTTPResponse(
                status_code=response.status_code,
                url=str(response.url),
                text=body.decode(response.encoding or 'utf-8', errors='replace'),
                headers=dict(response.headers),
                elapsed_ms=elapsed_ms,
            )

    @retry(
        stop=stop_after_attempt(MAX_RETRIES + 1),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type(httpx.ConnectError),
        reraise=True
    )
    async def post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None
    ) -> HTTPResponse:
        """
        POST a JSON body.

        Raises:
            httpx.TimeoutException: request exceeded the timeout
            httpx.RequestError: network failure after retries
        """
        request_headers = self._get_headers("application/json", headers)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            start_time = time.time()
            response = await client.post(url, json=payload, headers=request_headers)
            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.info(f"[net] POST {response.status_code} {url} ({elapsed_ms}ms)")
            return HTTPResponse(
                status_code=response.status_code,
                url=str(response.url),
                text=response.text,
                headers=dict(response.headers),
                elapsed_ms=elapsed_ms,
            )
