"""
Assessment Portal - security practice self-assessment tracking.

Users record evidence and a status for each practice in a fixed checklist,
attach supporting documents (uploaded whole or in chunks), and generate
point-in-time compliance reports. All data lives in a local SQLite file.
"""

__version__ = "0.1.0"

from ._types import (
    Assessment,
    AssessmentStatus,
    Document,
    DocumentChunk,
    Practice,
    Report,
    UploadState,
)

__all__ = [
    "__version__",
    "Assessment",
    "AssessmentStatus",
    "Document",
    "DocumentChunk",
    "Practice",
    "Report",
    "UploadState",
]
