"""
URL normalization for cache keys and board detection.

Removes tracking parameters, keeps parameters that identify the posting
(gh_jid, currentJobId, jk, ...), and rewrites known boards to their canonical
posting URL. normalize_url(normalize_url(u)) == normalize_url(u).
"""

import re
import logging
from typing import List, Optional, Tuple
from urllib.parse import urlparse, urlunparse, parse_qsl, urlencode

from core.errors import InvalidURLError

logger = logging.getLogger(__name__)

TRACKING_PARAMS = {
    'gclid', 'fbclid', 'msclkid', 'dclid', 'yclid', 'igshid',
    'mc_cid', 'mc_eid', '_hsenc', '_hsmi', 'ref', 'ref_src',
    'trk', 'trackingid', 'refid', 'source', 'lever-source', 'lever-origin',
}

TRACKING_PREFIXES = ('utm_',)

DEFAULT_PORTS = {'http': 80, 'https': 443}

LINKEDIN_VIEW_RE = re.compile(r'/jobs/view/(?:[^/]*?-)?(\d+)')


def is_tracking_param(name: str) -> bool:
    lowered = name.lower()
    if lowered.startswith(TRACKING_PREFIXES):
        return True
    return lowered in TRACKING_PARAMS


def _clean_query(query: str) -> List[Tuple[str, str]]:
    params = [
        (key, value)
        for key, value in parse_qsl(query, keep_blank_values=False)
        if not is_tracking_param(key)
    ]
    return sorted(params)


def _canonical_form(host: str, path: str, params: List[Tuple[str, str]]) -> Optional[str]:
    """Canonical posting URL for boards with a known shape"""
    query = dict(params)

    if host.endswith('linkedin.com'):
        match = LINKEDIN_VIEW_RE.search(path)
        job_id = match.group(1) if match else query.get('currentJobId')
        if job_id and job_id.isdigit():
            return f"https://www.linkedin.com/jobs/view/{job_id}"

    if host.endswith('indeed.com') and query.get('jk'):
        return f"https://www.indeed.com/viewjob?{urlencode({'jk': query['jk']})}"

    return None


def normalize_url(url: str) -> str:
    """
    Normalize a job posting URL.

    Raises:
        InvalidURLError: URL has no scheme or host, or a malformed port
    """
    if not url or not url.strip():
        raise InvalidURLError("URL is empty")

    try:
        parsed = urlparse(url.strip())
        port = parsed.port
    except ValueError as e:
        raise InvalidURLError(f"Cannot parse URL: {url} ({e})")
    if not parsed.scheme or not parsed.hostname:
        raise InvalidURLError(f"Cannot parse URL: {url}")

    scheme = parsed.scheme.lower()
    host = parsed.hostname.lower()
    params = _clean_query(parsed.query)

    canonical = _canonical_form(host, parsed.path, params)
    if canonical:
        return canonical

    netloc = host
    if port and port != DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{port}"

    path = parsed.path or '/'
    if len(path) > 1:
        path = path.rstrip('/') or '/'

    return urlunparse((scheme, netloc, path, '', urlencode(params), ''))


def extract_domain(url: str) -> str:
    try:
        return (urlparse(url).hostname or 'unknown').lower()
    except ValueError:
        return 'unknown'
