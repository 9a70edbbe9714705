"""
Data quality errors for streamed frames and market snapshots.

These are recovered locally: a bad frame is dropped and ingestion continues,
a bad snapshot is skipped and the turn renders without a projection.
"""

from typing import Optional, Dict, Any


class DataQualityError(Exception):
    """Base class for data quality issues that can be handled gracefully."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True


class FrameDecodeError(DataQualityError):
    """A stream line that is not valid JSON."""

    def __init__(self, message: str, raw_line: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.raw_line = raw_line


class MalformedSnapshotError(DataQualityError):
    """Market snapshot payload exists but cannot be normalized."""

    def __init__(self, message: str, symbol: Optional[str] = None,
                 missing_fields: Optional[list] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.symbol = symbol
        self.missing_fields = missing_fields or []
