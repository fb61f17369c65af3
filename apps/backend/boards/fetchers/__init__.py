"""
Structured API fetchers for boards with a public postings API.
"""

from .base import API_CONFIDENCE, ApiFetcher, FetchResult
from .registry import FetcherRegistry, build_fetcher_registry, get_fetcher_registry

__all__ = [
    'API_CONFIDENCE',
    'ApiFetcher',
    'FetchResult',
    'FetcherRegistry',
    'build_fetcher_registry',
    'get_fetcher_registry',
]
