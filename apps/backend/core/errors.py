"""
Exception types raised by the extraction pipeline.

Expected failure modes (bad identifiers, provider errors, non-2xx responses)
are normally returned as values. These exceptions exist for the cases that
must cross a function boundary.
"""


class ExtractionError(Exception):
    """Base class for pipeline errors"""


class InvalidURLError(ExtractionError):
    """URL has no scheme or host and cannot be classified"""


class InvalidTransitionError(ExtractionError):
    """Attempt status change not allowed by the state machine"""

    def __init__(self, event: str, current: str):
        self.event = event
        self.current = current
        super().__init__(f"Cannot {event} from status '{current}'")


class MissingIdentifiersError(ExtractionError):
    """API fetch attempted without company slug or job id"""

    def __init__(self, provider: str, missing):
        self.provider = provider
        self.missing = list(missing)
        super().__init__(f"Cannot fetch from {provider} without {' and '.join(self.missing)}")


class ProviderError(ExtractionError):
    """LLM provider returned an unusable response"""


class AiExtractionTimeoutError(ExtractionError):
    """AI extraction exceeded its wall-clock budget"""

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"AI extraction timed out after {int(timeout_seconds)} seconds")
