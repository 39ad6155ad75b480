"""
Error kinds raised by the AI gateway and the audio layer.

Callers classify failures with is_quota_error() and decide locally whether to
escalate (quota) or degrade gracefully (everything else).
"""

from replydesk.config.constants import RATE_LIMIT_EXCEEDED_ERROR, RATE_LIMIT_MARKERS


class QuotaExceededError(Exception):
    """The Gemini backend rejected the request because of a rate or quota limit."""

    def __init__(self, message: str = RATE_LIMIT_EXCEEDED_ERROR):
        super().__init__(message)


class MicrophonePermissionError(Exception):
    """The platform refused access to the microphone (or there is none)."""


def is_quota_error(error) -> bool:
    """
    Check whether an error (or error text) indicates a rate/quota condition.

    Args:
        error: An exception or an error message

    Returns:
        True for HTTP 429 / RESOURCE_EXHAUSTED failures
    """
    if isinstance(error, QuotaExceededError):
        return True
    if getattr(error, "code", None) == 429:
        return True
    text = str(error or "")
    return any(marker in text for marker in RATE_LIMIT_MARKERS)
