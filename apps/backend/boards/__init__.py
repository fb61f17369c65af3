"""
Job board classification and board-specific extraction.

BoardType is a closed set; selector extractors and API fetchers are looked up
per board type through their registries.
"""

from .types import BoardType, API_SUPPORTED_BOARDS, LIMITED_BOARDS
from .detector import BoardInfo, detect_board

__all__ = [
    'BoardType',
    'API_SUPPORTED_BOARDS',
    'LIMITED_BOARDS',
    'BoardInfo',
    'detect_board',
]
