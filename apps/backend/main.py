"""
Extraction worker entry point.

    python main.py run <listing_id> [--force]
    python main.py reclaim [--threshold-minutes N]
    python main.py status
    python main.py domain <domain> [--days N]

Scheduling lives outside this process: a queue worker calls `run` per
listing and a cron job calls `reclaim` every few minutes.
"""
import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from core.config import get_settings  # noqa: E402
from core.notifications import get_notifier  # noqa: E402
from core.store import get_store  # noqa: E402
from core.stuck_reclaimer import STUCK_THRESHOLD_MINUTES, StuckAttemptReclaimer  # noqa: E402
from pipeline.orchestrator import ExtractionOrchestrator  # noqa: E402

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Job listing extraction worker")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Extract one listing")
    run_parser.add_argument("listing_id", type=int)
    run_parser.add_argument("--force", action="store_true", help="Ignore the recent-attempt window")

    reclaim_parser = subparsers.add_parser("reclaim", help="Fail attempts stuck in an intermediate status")
    reclaim_parser.add_argument("--threshold-minutes", type=int, default=STUCK_THRESHOLD_MINUTES)

    subparsers.add_parser("status", help="Show configuration and feature flags")

    domain_parser = subparsers.add_parser("domain", help="Show extraction metrics for a domain")
    domain_parser.add_argument("domain")
    domain_parser.add_argument("--days", type=int, default=30)
    return parser


async def run_listing(listing_id: int, force: bool) -> int:
    orchestrator = ExtractionOrchestrator()
    try:
        ctx = await orchestrator.run(listing_id, force=force)
    finally:
        await get_notifier().drain()

    if ctx is None:
        logger.info(f"[worker] Nothing to do for listing {listing_id}")
        return 0

    attempt = ctx.attempt
    print(json.dumps({**ctx.summary(), 'status': attempt.status.value,
                      'extraction_method': attempt.extraction_method,
                      'confidence_score': attempt.confidence_score,
                      'failed_step': attempt.failed_step,
                      'error_message': attempt.error_message}, indent=2, default=str))
    return 0 if ctx.accepted is not None else 1


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "run":
        return asyncio.run(run_listing(args.listing_id, args.force))

    if args.command == "reclaim":
        reclaimer = StuckAttemptReclaimer(get_store(), get_notifier(), threshold_minutes=args.threshold_minutes)
        cleaned = reclaimer.sweep()
        logger.info(f"[worker] Reclaimed {cleaned} stuck attempt(s)")
        return 0

    if args.command == "domain":
        store = get_store()
        metrics = store.domain_html_metrics(args.domain)
        metrics["success_rate"] = store.domain_success_rate(args.domain, days=args.days)
        print(json.dumps(metrics, indent=2))
        return 0

    print(json.dumps(settings.get_status(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
