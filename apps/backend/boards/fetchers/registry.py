"""
Registry mapping API-supported board types to fetchers.
"""
import logging
from typing import Dict, Optional

from boards.fetchers.base import ApiFetcher
from boards.types import BoardType
from core.net import HTTPClient

logger = logging.getLogger(__name__)

# Global registry instance
_registry: Optional['FetcherRegistry'] = None


class FetcherRegistry:
    """Registry of API fetchers keyed by BoardType"""

    def __init__(self):
        self._fetchers: Dict[BoardType, ApiFetcher] = {}

    def register(self, board_type: BoardType, fetcher: ApiFetcher):
        if board_type in self._fetchers:
            logger.warning(f"[fetchers] Fetcher for {board_type.value} already registered, replacing")
        self._fetchers[board_type] = fetcher
        logger.debug(f"[fetchers] Registered fetcher: {fetcher.provider}")

    def get(self, board_type: BoardType) -> Optional[ApiFetcher]:
        return self._fetchers.get(board_type)

    def supports(self, board_type: BoardType) -> bool:
        return board_type in self._fetchers


def build_fetcher_registry(http_client: Optional[HTTPClient] = None) -> FetcherRegistry:
    """Registry with the built-in fetchers sharing one HTTP client"""
    from boards.fetchers.greenhouse import GreenhouseFetcher
    from boards.fetchers.lever import LeverFetcher

    registry = FetcherRegistry()
    registry.register(BoardType.GREENHOUSE, GreenhouseFetcher(http_client))
    registry.register(BoardType.LEVER, LeverFetcher(http_client))
    return registry


def get_fetcher_registry() -> FetcherRegistry:
    """Get or create the global fetcher registry"""
    global _registry
    if _registry is None:
        _registry = build_fetcher_registry()
    return _registry
