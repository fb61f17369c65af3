"""
Base class for waterfall steps and the helpers they share for accepting
or keeping results.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from core.attempt_lifecycle import AttemptLifecycle
from core.models import EventType
from core.results import ExtractionResult, PartialSuccess

from ..context import RunContext, StepOutcome
from ..listing_updater import update_final, update_preliminary

logger = logging.getLogger(__name__)


class Step(ABC):
    """One stage of the extraction waterfall"""

    name: str = ""

    @abstractmethod
    async def run(self, ctx: RunContext) -> StepOutcome:
        """Mutate the context and say whether the waterfall continues"""

    def __repr__(self):
        return f"<{self.__class__.__name__}(name={self.name})>"


def result_output(result: ExtractionResult, ctx: RunContext) -> Dict[str, Any]:
    """Event output payload for a candidate result"""
    output = {
        'success': result.accepted,
        'confidence': result.confidence,
        'provider': result.provider,
        'extracted_fields': sorted(result.data.keys()),
    }
    if isinstance(result, PartialSuccess):
        output['rejected_reason'] = result.reason
    elif not result.accepted:
        output['error'] = getattr(result, 'reason', None)
    return output


def accept_result(
    ctx: RunContext,
    lifecycle: AttemptLifecycle,
    result: ExtractionResult,
    source: str
) -> StepOutcome:
    """Persist an accepted result and complete the attempt"""
    metadata = result.metadata or {}
    ctx.event_recorder.record_simple(
        EventType.DATA_UPDATE,
        input={'source': source},
        output={'confidence': result.confidence},
    )
    update_final(ctx, result)
    ctx.event_recorder.record_completion({
        'method': result.method,
        'confidence': result.confidence,
        'provider': result.provider,
        'model': metadata.get('model'),
    })
    lifecycle.complete(
        ctx.attempt,
        extraction_method=result.method or source,
        provider=result.provider,
        confidence=result.confidence,
        model=metadata.get('model'),
        tokens_used=metadata.get('tokens_used'),
        http_status=ctx.http_status,
    )
    ctx.accepted = result
    logger.info(
        f"[steps] Listing {ctx.listing.id} accepted via {source} "
        f"(provider={result.provider}, confidence={result.confidence:.2f})"
    )
    return StepOutcome.STOP_SUCCESS


def keep_partial(ctx: RunContext, result: Optional[ExtractionResult]) -> bool:
    """
    Write the required fields of a rejected result into blank listing fields.

    Returns:
        True when the listing changed
    """
    if not isinstance(result, PartialSuccess):
        return False
    if ctx.best_partial is None or result.confidence >= ctx.best_partial.confidence:
        ctx.best_partial = result
    return bool(update_preliminary(ctx, result.required_data))
