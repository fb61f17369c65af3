"""
Job listing extraction pipeline.

Turns a listing URL into structured job data through a confidence-gated
waterfall of strategies: structured ATS APIs, board selectors, generic HTML
heuristics and LLM extraction.
"""

__version__ = "1.0.0"
