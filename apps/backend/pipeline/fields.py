"""
Field-level extraction results shared by the generic HTML extractors.
"""
from typing import Any, Dict, Optional

from core.results import is_present

# Confidence by extraction source
CONFIDENCE_SCORES = {
    'jsonld': 0.90,
    'meta': 0.80,
    'heuristic': 0.60,
    'meta_description': 0.50,
}


class FieldResult:
    """Result for a single extracted field."""

    def __init__(self, value: Any = None, source: Optional[str] = None,
                 confidence: float = 0.0, raw_snippet: Optional[str] = None):
        self.value = value
        self.source = source
        self.confidence = confidence
        self.raw_snippet = raw_snippet

    def to_dict(self) -> Dict:
        return {
            "value": self.value,
            "source": self.source,
            "confidence": round(self.confidence, 2),
            "raw_snippet": self.raw_snippet
        }

    def is_valid(self) -> bool:
        return is_present(self.value)

    def __repr__(self):
        return f"<FieldResult(source={self.source}, confidence={self.confidence})>"


def merge_fields(target: Dict[str, FieldResult], incoming: Dict[str, FieldResult]) -> Dict[str, FieldResult]:
    """Keep the highest-confidence valid result per field"""
    for name, result in incoming.items():
        if not result.is_valid():
            continue
        if name not in target or result.confidence > target[name].confidence:
            target[name] = result
    return target
