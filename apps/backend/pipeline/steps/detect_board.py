"""Classifies the listing URL"""

import logging

from boards.detector import detect_board
from core.models import EventType

from ..context import RunContext, StepOutcome
from .base import Step

logger = logging.getLogger(__name__)


class DetectBoardStep(Step):
    name = "job_board_detection"

    async def run(self, ctx: RunContext) -> StepOutcome:
        with ctx.event_recorder.record(EventType.JOB_BOARD_DETECTION, input={'url': ctx.url}) as event:
            ctx.board = detect_board(ctx.url)
            event.set_output(**ctx.board.to_dict())

        logger.info(
            f"[detect_board] {ctx.url} -> {ctx.board_type.value} "
            f"(company_slug={ctx.company_slug}, job_id={ctx.job_id})"
        )
        return StepOutcome.CONTINUE
