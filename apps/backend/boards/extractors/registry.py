"""
Registry mapping board types to selector extractors.
"""
import logging
from typing import Dict, List, Optional

from boards.extractors.base import SelectorExtractor
from boards.types import BoardType, LIMITED_BOARDS

logger = logging.getLogger(__name__)

# Global registry instance
_registry: Optional['ExtractorRegistry'] = None


class ExtractorRegistry:
    """Registry of selector extractors keyed by BoardType"""

    def __init__(self):
        self._extractors: Dict[BoardType, SelectorExtractor] = {}
        # Board-agnostic selectors for pages on unrecognised hosts
        self._fallback = SelectorExtractor(BoardType.UNKNOWN)

    def register(self, extractor: SelectorExtractor):
        """Register an extractor for its board type"""
        if extractor.board_type in LIMITED_BOARDS:
            raise ValueError(f"{extractor.board_type.value} pages are handled by the limited source step")
        if extractor.board_type in self._extractors:
            logger.warning(f"[extractors] Extractor for {extractor.name} already registered, replacing")
        self._extractors[extractor.board_type] = extractor
        logger.debug(f"[extractors] Registered extractor: {extractor.name}")

    def get(self, board_type: BoardType) -> Optional[SelectorExtractor]:
        """
        Extractor for a board type.

        Unknown boards get the generic selector set; limited boards have no
        selector extractor.
        """
        if board_type in LIMITED_BOARDS:
            return None
        return self._extractors.get(board_type, self._fallback)

    def supports(self, board_type: BoardType) -> bool:
        return board_type in self._extractors

    def list_extractors(self) -> List[Dict]:
        return [
            {'board_type': board_type.value, 'class': extractor.__class__.__name__}
            for board_type, extractor in self._extractors.items()
        ]


def get_extractor_registry() -> ExtractorRegistry:
    """Get or create the global extractor registry"""
    global _registry
    if _registry is None:
        _registry = ExtractorRegistry()
        _register_builtin_extractors(_registry)
    return _registry


def _register_builtin_extractors(registry: ExtractorRegistry):
    from boards.extractors.ashby import AshbyExtractor
    from boards.extractors.bamboohr import BambooHRExtractor
    from boards.extractors.greenhouse import GreenhouseExtractor
    from boards.extractors.icims import IcimsExtractor
    from boards.extractors.jobvite import JobviteExtractor
    from boards.extractors.lever import LeverExtractor
    from boards.extractors.smartrecruiters import SmartRecruitersExtractor
    from boards.extractors.workable import WorkableExtractor

    for extractor_cls in (
        GreenhouseExtractor,
        LeverExtractor,
        AshbyExtractor,
        WorkableExtractor,
        SmartRecruitersExtractor,
        JobviteExtractor,
        IcimsExtractor,
        BambooHRExtractor,
    ):
        registry.register(extractor_cls())
