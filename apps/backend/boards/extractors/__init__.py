"""
Selector-based extractors for job board HTML pages.

One extractor per known board type, each with ordered selector candidates
per field. Unknown hosts fall back to a board-agnostic selector set.
"""

from .base import SelectorExtractor, SelectorOutcome, weighted_confidence
from .registry import ExtractorRegistry, get_extractor_registry

__all__ = [
    'SelectorExtractor',
    'SelectorOutcome',
    'weighted_confidence',
    'ExtractorRegistry',
    'get_extractor_registry',
]
