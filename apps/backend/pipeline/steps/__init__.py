"""
Waterfall steps, in the order the orchestrator runs them.
"""

from .base import Step, accept_result, keep_partial
from .detect_board import DetectBoardStep
from .fetch_html import FetchHtmlStep
from .resolve_embedded import ResolveEmbeddedBoardStep
from .api_extract import ApiExtractStep
from .selectors_extract import SelectorExtractStep
from .limited_sources import LimitedSourceStep
from .generic_html import GenericHtmlStep
from .ai_extract import AiExtractStep

__all__ = [
    'Step',
    'accept_result',
    'keep_partial',
    'DetectBoardStep',
    'FetchHtmlStep',
    'ResolveEmbeddedBoardStep',
    'ApiExtractStep',
    'SelectorExtractStep',
    'LimitedSourceStep',
    'GenericHtmlStep',
    'AiExtractStep',
]
