"""
Stream failure classifications.

These end the in-progress turn. The session replaces the turn's content with
an error message; earlier turns are never touched.
"""

from typing import Optional, Dict, Any


class StreamFailureError(Exception):
    """Base class for failures that abort the current streaming turn."""

    user_message = "Failed to reach the model"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class EmptyResponseError(StreamFailureError):
    """Stream completed normally but produced no content."""

    user_message = "Empty response from model, try again"

    def __init__(self, message: str = "Stream completed without content",
                 frames_seen: int = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.frames_seen = frames_seen


class StreamInProgressError(StreamFailureError):
    """A query was submitted while another stream is active for the conversation."""

    user_message = "A response is still streaming"

    def __init__(self, message: str, turn_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.turn_id = turn_id


class StreamCancelledError(StreamFailureError):
    """The caller aborted the read before the stream finished."""

    user_message = "Response cancelled"

    def __init__(self, message: str = "Stream cancelled by caller",
                 received_chars: int = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.received_chars = received_chars
