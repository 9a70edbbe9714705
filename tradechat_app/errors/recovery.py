"""
Retryable error categories.

Network failures and deadline expiry are worth retrying: the inference server
is usually restarting or overloaded rather than permanently down.
"""

from typing import Optional

from .stream_failures import StreamFailureError


class RetryableStreamError(StreamFailureError):
    """Stream failure that the user can retry."""

    user_message = "Failed to reach the model"

    def __init__(self, message: str, **kwargs):
        super().__init__(message, **kwargs)
        self.recoverable = True


class StreamTimeoutError(RetryableStreamError):
    """Overall deadline expired before the stream finished."""

    user_message = "Model response timed out"

    def __init__(self, message: str, timeout_seconds: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.timeout_seconds = timeout_seconds


class StreamTransportError(RetryableStreamError):
    """The transport failed or the endpoint answered with an error status."""

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code

    @property
    def user_message(self) -> str:
        if self.status_code is not None:
            return f"Model error: {self.status_code}"
        return "Failed to reach the model"
