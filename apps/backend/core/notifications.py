"""
Operational notifications for exceptions and stuck-attempt cleanup.

Every notification is logged. When NOTIFY_WEBHOOK_URL is set the payload is
also posted to that webhook: as a background task when called inside a running
event loop, inline otherwise. Delivery failures are logged and never raised.
"""

import asyncio
import logging
import traceback
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Optional, Set, Union

import httpx

logger = logging.getLogger(__name__)

WEBHOOK_TIMEOUT = 5.0

SEVERITY_LEVELS = {
    'info': logging.INFO,
    'warning': logging.WARNING,
    'error': logging.ERROR,
    'critical': logging.CRITICAL,
}

# Global notifier instance
_notifier: Optional['Notifier'] = None


class Notifier:
    """Log-backed notifier with an optional webhook sink"""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        history_size: int = 100,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.webhook_url = webhook_url
        self.transport = transport
        self.history: Deque[Dict[str, Any]] = deque(maxlen=history_size)
        self._pending: Set[asyncio.Task] = set()

    def notify(
        self,
        error: Union[BaseException, str],
        context: str,
        severity: str = "error",
        **extra: Any
    ) -> Dict[str, Any]:
        """
        Send a structured alert.

        Args:
            error: Exception or message
            context: Where it happened (e.g. "stuck_attempt_cleanup")
            severity: info, warning, error or critical
            extra: Additional fields (attempt id, url, ...)
        """
        payload: Dict[str, Any] = {
            'context': context,
            'severity': severity,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            **extra,
        }
        if isinstance(error, BaseException):
            payload['error_class'] = type(error).__name__
            payload['message'] = str(error)
            payload['backtrace'] = traceback.format_exception(type(error), error, error.__traceback__)[-5:]
        else:
            payload['message'] = str(error)

        self.history.append(payload)
        level = SEVERITY_LEVELS.get(severity, logging.ERROR)
        logger.log(level, f"[notify] {context}: {payload['message']} {extra if extra else ''}".rstrip())

        if self.webhook_url:
            self._dispatch(payload)
        return payload

    def _dispatch(self, payload: Dict[str, Any]):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._post(payload))
            return
        task = loop.create_task(self._post(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _post(self, payload: Dict[str, Any]):
        try:
            async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT, transport=self.transport) as client:
                response = await client.post(self.webhook_url, json=payload)
                response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL, TypeError, ValueError) as e:
            logger.warning(f"[notify] Webhook delivery failed: {e}")

    async def drain(self):
        """Wait for webhook deliveries still in flight"""
        if self._pending:
            await asyncio.gather(*list(self._pending))


def get_notifier() -> Notifier:
    """Get or create the global notifier"""
    global _notifier
    if _notifier is None:
        from core.config import get_settings
        _notifier = Notifier(webhook_url=get_settings().notify_webhook_url)
    return _notifier


def set_notifier(notifier: Optional[Notifier]):
    global _notifier
    _notifier = notifier
