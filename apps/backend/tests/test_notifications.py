"""
Tests for operational notifications and webhook delivery.
"""

import asyncio
import json
import logging

import httpx
import pytest

from core.notifications import Notifier

WEBHOOK_URL = "https://hooks.example.com/alerts"


def recording_transport(received, status=200):
    def handler(request):
        received.append(json.loads(request.content))
        return httpx.Response(status)
    return httpx.MockTransport(handler)


class TestNotifier:
    """Test Notifier."""

    def test_logs_and_keeps_history(self, caplog):
        notifier = Notifier()

        with caplog.at_level(logging.WARNING, logger="core.notifications"):
            payload = notifier.notify("Attempt stuck", context="stuck_attempt_cleanup", severity="warning", attempt_id=7)

        assert payload['attempt_id'] == 7
        assert notifier.history[-1] is payload
        assert "[notify] stuck_attempt_cleanup: Attempt stuck" in caplog.text

    def test_exception_details(self):
        try:
            raise RuntimeError("selector blew up")
        except RuntimeError as e:
            payload = Notifier().notify(e, context="scraping_step")

        assert payload['error_class'] == "RuntimeError"
        assert payload['message'] == "selector blew up"
        assert payload['backtrace']

    def test_posts_inline_without_event_loop(self):
        received = []
        notifier = Notifier(WEBHOOK_URL, transport=recording_transport(received))

        notifier.notify("Reclaimed", context="stuck_attempt_cleanup", severity="warning")

        assert received[0]['context'] == "stuck_attempt_cleanup"

    @pytest.mark.asyncio
    async def test_posts_in_background_inside_event_loop(self):
        received = []
        notifier = Notifier(WEBHOOK_URL, transport=recording_transport(received))

        notifier.notify("AI extraction timed out after 120 seconds", context="ai_extraction_timeout")
        assert received == []

        await notifier.drain()
        assert received[0]['message'] == "AI extraction timed out after 120 seconds"

    @pytest.mark.asyncio
    async def test_delivery_errors_are_logged(self, caplog):
        def reject(request):
            raise httpx.InvalidURL("Invalid URL")

        notifier = Notifier(WEBHOOK_URL, transport=httpx.MockTransport(reject))

        with caplog.at_level(logging.WARNING, logger="core.notifications"):
            notifier.notify("boom", context="scraping_step")
            await notifier.drain()

        assert "Webhook delivery failed" in caplog.text

    @pytest.mark.asyncio
    async def test_unserializable_extra_is_not_raised(self):
        received = []
        notifier = Notifier(WEBHOOK_URL, transport=recording_transport(received))

        payload = notifier.notify("boom", context="scraping_step", handle=object())
        await notifier.drain()

        assert payload['context'] == "scraping_step"
        assert received == []

    @pytest.mark.asyncio
    async def test_server_error_is_not_raised(self):
        received = []
        notifier = Notifier(WEBHOOK_URL, transport=recording_transport(received, status=503))

        notifier.notify("boom", context="scraping_step")
        await notifier.drain()

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_drain_without_pending(self):
        await asyncio.wait_for(Notifier().drain(), timeout=1)
