"""
Extraction result types and the acceptance rule.

Every candidate-producing stage returns one of:
- Success: confidence >= 0.7 and title, company and description present
- PartialSuccess: rejected, but at least one required field was found
- Failure: nothing usable, with a reason
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

CONFIDENCE_THRESHOLD = 0.7

REQUIRED_FIELDS = ('title', 'company_name', 'description')


def is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, dict, tuple)):
        return len(value) > 0
    return True


def missing_required(data: Dict[str, Any]) -> List[str]:
    return [name for name in REQUIRED_FIELDS if not is_present(data.get(name))]


def present_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if is_present(v)}


@dataclass
class Success:
    data: Dict[str, Any]
    confidence: float
    method: Optional[str] = None
    provider: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    accepted = True


@dataclass
class PartialSuccess:
    data: Dict[str, Any]
    confidence: float
    method: Optional[str] = None
    provider: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    reason: str = "low_confidence"

    accepted = False

    @property
    def required_data(self) -> Dict[str, Any]:
        """The non-empty subset of title/company/description"""
        return {k: self.data[k] for k in REQUIRED_FIELDS if is_present(self.data.get(k))}


@dataclass
class Failure:
    reason: str
    confidence: float = 0.0
    method: Optional[str] = None
    provider: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    accepted = False
    data: Dict[str, Any] = field(default_factory=dict)


ExtractionResult = Union[Success, PartialSuccess, Failure]


def classify(
    data: Optional[Dict[str, Any]],
    confidence: float,
    method: Optional[str] = None,
    provider: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    threshold: float = CONFIDENCE_THRESHOLD
) -> ExtractionResult:
    """Apply the acceptance rule to extracted data"""
    data = present_fields(data or {})
    metadata = metadata or {}
    confidence = float(confidence or 0.0)

    if confidence >= threshold and not missing_required(data):
        return Success(data=data, confidence=confidence, method=method, provider=provider, metadata=metadata)

    if len(missing_required(data)) < len(REQUIRED_FIELDS):
        reason = "low_confidence" if confidence < threshold else "missing_required_fields"
        return PartialSuccess(
            data=data, confidence=confidence, method=method,
            provider=provider, metadata=metadata, reason=reason,
        )

    return Failure(reason="no_required_fields", confidence=confidence, method=method,
                   provider=provider, metadata=metadata)
