"""
Tests for the worker command line.
"""

import json
import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

import main
from core.config import reset_settings
from core.models import Attempt, AttemptStatus, HtmlScrapingLogEntry
from core.notifications import set_notifier
from core.store import set_store


@pytest.fixture(autouse=True)
def clean_globals(store, notifier):
    with patch.dict(os.environ, {'EXTRACTION_STORE': 'memory'}, clear=True):
        reset_settings()
        set_store(store)
        set_notifier(notifier)
        yield
        set_store(None)
        set_notifier(None)
        reset_settings()


class TestParser:
    def test_run_arguments(self):
        args = main.build_parser().parse_args(["run", "42", "--force"])
        assert args.command == "run"
        assert args.listing_id == 42
        assert args.force is True

    def test_command_required(self):
        with pytest.raises(SystemExit):
            main.build_parser().parse_args([])


class TestMain:
    """Test main() subcommands."""

    def test_status(self, capsys):
        assert main.main(["status"]) == 0
        status = json.loads(capsys.readouterr().out)
        assert status['store'] == "memory"

    def test_reclaim(self, store):
        assert main.main(["reclaim", "--threshold-minutes", "5"]) == 0

    def test_run_exit_codes(self, capsys):
        attempt = Attempt(listing_id=42, id=7, status=AttemptStatus.FAILED, failed_step="html_fetch")
        ctx = MagicMock(attempt=attempt, accepted=None)
        ctx.summary.return_value = {'listing_id': 42, 'attempt_id': 7}
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=ctx)

        with patch.object(main, 'ExtractionOrchestrator', return_value=orchestrator):
            assert main.main(["run", "42"]) == 1

        orchestrator.run.assert_awaited_once_with(42, force=False)
        output = json.loads(capsys.readouterr().out)
        assert output['status'] == "failed"
        assert output['failed_step'] == "html_fetch"

    def test_run_nothing_to_do(self):
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=None)

        with patch.object(main, 'ExtractionOrchestrator', return_value=orchestrator):
            assert main.main(["run", "42"]) == 0

    def test_domain_metrics(self, store, capsys):
        store.create_attempt(Attempt(listing_id=1, domain="jobs.example.com", status=AttemptStatus.COMPLETED))
        store.create_attempt(Attempt(listing_id=2, domain="jobs.example.com", status=AttemptStatus.FAILED))
        store.create_attempt(Attempt(listing_id=3, domain="other.example.com", status=AttemptStatus.COMPLETED))
        store.add_html_log(HtmlScrapingLogEntry(
            url="https://jobs.example.com/jobs/1",
            field_results={'title': {'success': True}, 'description': {'success': False}},
        ))

        assert main.main(["domain", "jobs.example.com"]) == 0

        metrics = json.loads(capsys.readouterr().out)
        assert metrics['success_rate'] == 50.0
        assert metrics['total'] == 1
        assert metrics['avg_extraction_rate'] == 0.5
        assert metrics['partial'] == 1

    def test_domain_without_history(self, capsys):
        assert main.main(["domain", "unseen.example.com"]) == 0
        metrics = json.loads(capsys.readouterr().out)
        assert metrics == {'domain': "unseen.example.com", 'total': 0,
                           'avg_extraction_rate': 0.0, 'success_rate': 0.0}
