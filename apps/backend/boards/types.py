"""
Closed set of job board types.
"""

from enum import Enum


class BoardType(str, Enum):
    GREENHOUSE = "greenhouse"
    LEVER = "lever"
    ASHBY = "ashby"
    WORKABLE = "workable"
    SMARTRECRUITERS = "smartrecruiters"
    JOBVITE = "jobvite"
    ICIMS = "icims"
    BAMBOOHR = "bamboohr"
    LINKEDIN = "linkedin"
    INDEED = "indeed"
    GLASSDOOR = "glassdoor"
    UNKNOWN = "unknown"


# Boards with a public structured API
API_SUPPORTED_BOARDS = frozenset({BoardType.GREENHOUSE, BoardType.LEVER})

# Boards that gate postings behind login; only page metadata is reliable
LIMITED_BOARDS = frozenset({BoardType.LINKEDIN, BoardType.INDEED, BoardType.GLASSDOOR})

# Boards with a selector extractor
SELECTOR_BOARDS = frozenset(
    b for b in BoardType
    if b not in LIMITED_BOARDS and b != BoardType.UNKNOWN
)
