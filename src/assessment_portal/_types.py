"""
Type definitions for the assessment portal.

These dataclasses define the domain model for practices, per-practice
assessments, evidence documents (stored as chunks) and report snapshots.
API representations use camelCase keys via ``to_dict()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def now_utc() -> datetime:
    """Get current UTC timestamp (replaces deprecated datetime.utcnow())."""
    return datetime.now(timezone.utc)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


class AssessmentStatus(str, Enum):
    """Progress of a single practice assessment."""
    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETE = "Complete"


class UploadState(str, Enum):
    """Upload lifecycle of an evidence document."""
    PENDING = "pending"    # Some chunks still missing
    COMPLETE = "complete"  # received_chunks == total_chunks


@dataclass
class Practice:
    """A security practice from the static catalog."""
    practice_id: str
    domain: str
    name: str
    description: str = ""
    assessment: str = ""  # Guidance text shown next to the evidence field
    id: Optional[int] = None
    position: int = 0  # Catalog order, drives domain/tab ordering

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "domain": self.domain,
            "practiceId": self.practice_id,
            "name": self.name,
            "description": self.description,
            "assessment": self.assessment,
        }


@dataclass
class Assessment:
    """Evidence and status recorded against one practice."""
    practice_id: str
    evidence: str
    status: AssessmentStatus = AssessmentStatus.NOT_STARTED
    id: Optional[int] = None
    created_at: datetime = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "practiceId": self.practice_id,
            "evidence": self.evidence,
            "status": self.status.value,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass
class Report:
    """Point-in-time snapshot of practices and assessments."""
    title: str
    data: dict[str, Any]
    id: Optional[int] = None
    created_at: datetime = field(default_factory=now_utc)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "data": self.data,
            "createdAt": _iso(self.created_at),
        }


@dataclass
class Document:
    """
    An evidence document attached to an assessment.

    The payload lives in ``document_chunks``. A document is complete once
    every expected chunk has been received; there is no separate
    completion call.
    """
    assessment_id: int
    filename: str
    total_chunks: int
    content_type: str = "application/octet-stream"
    received_chunks: int = 0
    total_size: Optional[int] = None  # Declared by the client, if known
    received_bytes: int = 0
    id: Optional[int] = None
    created_at: datetime = field(default_factory=now_utc)

    @property
    def is_complete(self) -> bool:
        return self.received_chunks == self.total_chunks

    @property
    def state(self) -> UploadState:
        return UploadState.COMPLETE if self.is_complete else UploadState.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "assessmentId": self.assessment_id,
            "filename": self.filename,
            "contentType": self.content_type,
            "totalChunks": self.total_chunks,
            "receivedChunks": self.received_chunks,
            "totalSize": self.total_size,
            "receivedBytes": self.received_bytes,
            "state": self.state.value,
            "isComplete": self.is_complete,
            "createdAt": _iso(self.created_at),
        }


@dataclass
class DocumentChunk:
    """One stored piece of a document payload."""
    document_id: int
    chunk_index: int
    data: bytes
    created_at: datetime = field(default_factory=now_utc)
