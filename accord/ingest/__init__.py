"""
Ingest - Understanding Capture

Validates developer submissions, embeds them and stores them as immutable
Understanding records.
"""

from .recorder import UnderstandingRecorder, RecordValidationError

__all__ = [
    "UnderstandingRecorder",
    "RecordValidationError",
]
