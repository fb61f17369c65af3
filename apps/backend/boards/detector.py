"""
Job board detection from listing URLs.

Classifies the host into a BoardType and pulls the company slug and posting id
out of the URL when the board's URL shape exposes them. Missing identifiers are
not an error; they only stop the API step from running.
"""

import re
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse, parse_qs

from core.url_normalizer import normalize_url
from .types import BoardType, API_SUPPORTED_BOARDS, LIMITED_BOARDS

logger = logging.getLogger(__name__)

# (board, host substring) in match order
HOST_RULES: List[Tuple[BoardType, str]] = [
    (BoardType.GREENHOUSE, 'greenhouse.io'),
    (BoardType.LEVER, 'lever.co'),
    (BoardType.LINKEDIN, 'linkedin.com'),
    (BoardType.INDEED, 'indeed.com'),
    (BoardType.GLASSDOOR, 'glassdoor.com'),
    (BoardType.WORKABLE, 'workable.com'),
    (BoardType.JOBVITE, 'jobvite.com'),
    (BoardType.ICIMS, 'icims.com'),
    (BoardType.SMARTRECRUITERS, 'smartrecruiters.com'),
    (BoardType.BAMBOOHR, 'bamboohr.com'),
    (BoardType.ASHBY, 'ashbyhq.com'),
]

COMPANY_SLUG_PATTERNS: Dict[BoardType, List[re.Pattern]] = {
    BoardType.GREENHOUSE: [
        re.compile(r'boards\.greenhouse\.io/(?:embed/job_app\?for=)?([^/?#&]+)'),
        re.compile(r'job-boards\.greenhouse\.io/([^/?#]+)'),
    ],
    BoardType.LEVER: [re.compile(r'jobs\.lever\.co/([^/?#]+)')],
    BoardType.WORKABLE: [re.compile(r'apply\.workable\.com/([^/?#]+)')],
    BoardType.ASHBY: [re.compile(r'jobs\.ashbyhq\.com/([^/?#]+)')],
    BoardType.SMARTRECRUITERS: [re.compile(r'jobs\.smartrecruiters\.com/([^/?#]+)')],
    BoardType.BAMBOOHR: [re.compile(r'//([^./]+)\.bamboohr\.com')],
}

GENERIC_JOB_ID_PATTERNS = [
    re.compile(r'/jobs?/(\d+)'),
    re.compile(r'/positions?/(\d+)'),
    re.compile(r'/careers?/(\d+)'),
    re.compile(r'/job/([^/?#]+)'),
    re.compile(r'/position/([^/?#]+)'),
    re.compile(r'[?&]job_id=([^&#]+)'),
    re.compile(r'[?&]gh_jid=([^&#]+)'),
]


@dataclass
class BoardInfo:
    """Result of classifying a listing URL"""
    board_type: BoardType
    url: str
    normalized_url: str
    company_slug: Optional[str] = None
    job_id: Optional[str] = None

    @property
    def api_supported(self) -> bool:
        return self.board_type in API_SUPPORTED_BOARDS

    @property
    def limited(self) -> bool:
        return self.board_type in LIMITED_BOARDS

    @property
    def known(self) -> bool:
        return self.board_type != BoardType.UNKNOWN

    def to_dict(self) -> Dict:
        return {
            'board_type': self.board_type.value,
            'company_slug': self.company_slug,
            'job_id': self.job_id,
            'api_supported': self.api_supported,
            'limited': self.limited,
            'normalized_url': self.normalized_url,
        }


def detect_board_type(url: str) -> BoardType:
    parsed = urlparse(url)
    host = (parsed.hostname or '').lower()

    for board, needle in HOST_RULES:
        if needle in host:
            return board

    # Greenhouse embeds on company marketing sites
    if 'gh_jid' in parse_qs(parsed.query):
        return BoardType.GREENHOUSE

    return BoardType.UNKNOWN


def extract_company_slug(url: str, board_type: BoardType) -> Optional[str]:
    for pattern in COMPANY_SLUG_PATTERNS.get(board_type, []):
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def extract_job_id(url: str, board_type: BoardType) -> Optional[str]:
    parsed = urlparse(url)

    if board_type == BoardType.LEVER:
        segments = [s for s in parsed.path.split('/') if s]
        return segments[1] if len(segments) > 1 else None

    if board_type == BoardType.LINKEDIN:
        match = re.search(r'/jobs/view/(?:[^/]*?-)?(\d+)', parsed.path)
        if match:
            return match.group(1)
        ids = parse_qs(parsed.query).get('currentJobId')
        return ids[0] if ids else None

    if board_type == BoardType.INDEED:
        keys = parse_qs(parsed.query).get('jk')
        if keys:
            return keys[0]

    for pattern in GENERIC_JOB_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)

    return None


def detect_board(url: str) -> BoardInfo:
    """
    Classify a listing URL.

    Args:
        url: Raw listing URL

    Returns:
        BoardInfo with board type and any identifiers found

    Raises:
        InvalidURLError: URL cannot be parsed
    """
    normalized = normalize_url(url)
    board_type = detect_board_type(url)

    info = BoardInfo(
        board_type=board_type,
        url=url,
        normalized_url=normalized,
        company_slug=extract_company_slug(url, board_type),
        job_id=extract_job_id(url, board_type),
    )
    logger.debug(f"[board_detector] {url[:80]} -> {board_type.value} (slug={info.company_slug}, job_id={info.job_id})")
    return info
