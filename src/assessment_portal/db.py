"""
Assessment database.

SQLite database storing:
- The practice catalog (seeded from YAML)
- One assessment per practice
- Evidence documents and their chunks
- Report snapshots

Uses WAL mode for crash safety and concurrent reads.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Optional

from ._types import (
    Assessment,
    AssessmentStatus,
    Document,
    Practice,
    Report,
    now_utc,
)
from .exceptions import DocumentNotFoundError, DuplicateChunkError

logger = logging.getLogger(__name__)


# Database schema
SCHEMA = """
-- Static practice catalog
CREATE TABLE IF NOT EXISTS practices (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    practice_id TEXT NOT NULL UNIQUE,
    domain TEXT NOT NULL,
    name TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    assessment TEXT NOT NULL DEFAULT '',
    position INTEGER NOT NULL DEFAULT 0
);

-- Evidence and status per practice
CREATE TABLE IF NOT EXISTS assessments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    practice_id TEXT NOT NULL UNIQUE,
    evidence TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'Not Started',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Point-in-time report snapshots
CREATE TABLE IF NOT EXISTS reports (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    data TEXT NOT NULL,  -- JSON
    created_at TEXT NOT NULL
);

-- Evidence documents (payload lives in document_chunks)
CREATE TABLE IF NOT EXISTS documents (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    assessment_id INTEGER NOT NULL,
    filename TEXT NOT NULL,
    content_type TEXT NOT NULL DEFAULT 'application/octet-stream',
    total_chunks INTEGER NOT NULL,
    received_chunks INTEGER NOT NULL DEFAULT 0,
    total_size INTEGER,
    received_bytes INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    FOREIGN KEY (assessment_id) REFERENCES assessments(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS document_chunks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id INTEGER NOT NULL,
    chunk_index INTEGER NOT NULL,
    data BLOB NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY (document_id) REFERENCES documents(id) ON DELETE CASCADE,
    UNIQUE(document_id, chunk_index)
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_practices_domain ON practices(domain);
CREATE INDEX IF NOT EXISTS idx_assessments_status ON assessments(status);
CREATE INDEX IF NOT EXISTS idx_documents_assessment ON documents(assessment_id);
CREATE INDEX IF NOT EXISTS idx_document_chunks_document ON document_chunks(document_id);
CREATE INDEX IF NOT EXISTS idx_reports_created ON reports(created_at);
"""


def _iso_format(dt: datetime) -> str:
    """Format datetime as ISO string."""
    return dt.isoformat()


def _parse_datetime(s: Optional[str]) -> Optional[datetime]:
    """Parse ISO datetime string."""
    if not s:
        return None
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        return None


class AssessmentDatabase:
    """
    SQLite database for practices, assessments, documents and reports.

    Opens a connection per operation, so one instance can be shared across
    request handlers.
    """

    def __init__(self, db_path: Path | str = "/var/lib/assessment-portal/assessments.db"):
        self.db_path = Path(db_path)
        self._ensure_directory()
        self._init_db()

    def _ensure_directory(self) -> None:
        """Ensure database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _init_db(self) -> None:
        """Initialize database with schema."""
        with self._get_connection() as conn:
            conn.executescript(SCHEMA)
            # Enable WAL mode for crash safety
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.commit()

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get database connection with row factory and FK enforcement."""
        conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        # Per-connection setting; cascades depend on it
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
        finally:
            conn.close()

    # -------------------------------------------------------------------------
    # Practices
    # -------------------------------------------------------------------------

    def upsert_practice(self, practice: Practice) -> bool:
        """
        Insert or update a catalog practice keyed by practice_id.

        Returns True if the practice was new.
        """
        with self._get_connection() as conn:
            existing = conn.execute(
                "SELECT id FROM practices WHERE practice_id = ?",
                (practice.practice_id,),
            ).fetchone()

            conn.execute("""
                INSERT INTO practices (practice_id, domain, name, description, assessment, position)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(practice_id) DO UPDATE SET
                    domain = excluded.domain,
                    name = excluded.name,
                    description = excluded.description,
                    assessment = excluded.assessment,
                    position = excluded.position
            """, (
                practice.practice_id,
                practice.domain,
                practice.name,
                practice.description,
                practice.assessment,
                practice.position,
            ))
            conn.commit()
            return existing is None

    def get_practices(self, domain: Optional[str] = None) -> list[Practice]:
        """Get catalog practices in catalog order, optionally for one domain."""
        query = "SELECT * FROM practices"
        params: list = []

        if domain:
            query += " WHERE domain = ?"
            params.append(domain)

        query += " ORDER BY position, id"

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_practice(row) for row in rows]

    def get_practice(self, practice_id: str) -> Optional[Practice]:
        """Get a practice by its catalog id (e.g. AC.L1-3.1.1)."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM practices WHERE practice_id = ?", (practice_id,)
            ).fetchone()
            return self._row_to_practice(row) if row else None

    def get_domains(self) -> list[str]:
        """Get domain names ordered by first appearance in the catalog."""
        with self._get_connection() as conn:
            rows = conn.execute("""
                SELECT domain, MIN(position) AS first_position
                FROM practices
                GROUP BY domain
                ORDER BY first_position
            """).fetchall()
            return [row["domain"] for row in rows]

    def count_practices(self) -> int:
        with self._get_connection() as conn:
            row = conn.execute("SELECT COUNT(*) AS cnt FROM practices").fetchone()
            return row["cnt"]

    def _row_to_practice(self, row: sqlite3.Row) -> Practice:
        return Practice(
            id=row["id"],
            practice_id=row["practice_id"],
            domain=row["domain"],
            name=row["name"],
            description=row["description"],
            assessment=row["assessment"],
            position=row["position"],
        )

    # -------------------------------------------------------------------------
    # Assessments
    # -------------------------------------------------------------------------

    def save_assessment(
        self,
        practice_id: str,
        evidence: str,
        status: AssessmentStatus,
    ) -> Assessment:
        """
        Create or update the assessment for a practice.

        There is at most one assessment per practice; saving again replaces
        evidence and status and refreshes updated_at.
        """
        now = _iso_format(now_utc())
        with self._get_connection() as conn:
            conn.execute("""
                INSERT INTO assessments (practice_id, evidence, status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(practice_id) DO UPDATE SET
                    evidence = excluded.evidence,
                    status = excluded.status,
                    updated_at = excluded.updated_at
            """, (practice_id, evidence, status.value, now, now))
            conn.commit()

            row = conn.execute(
                "SELECT * FROM assessments WHERE practice_id = ?", (practice_id,)
            ).fetchone()
            return self._row_to_assessment(row)

    def get_assessments(self) -> list[Assessment]:
        """Get all assessments."""
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM assessments ORDER BY id").fetchall()
            return [self._row_to_assessment(row) for row in rows]

    def get_assessment(self, assessment_id: int) -> Optional[Assessment]:
        """Get assessment by ID."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM assessments WHERE id = ?", (assessment_id,)
            ).fetchone()
            return self._row_to_assessment(row) if row else None

    def get_assessment_by_practice(self, practice_id: str) -> Optional[Assessment]:
        """Get the assessment recorded for a practice, if any."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM assessments WHERE practice_id = ?", (practice_id,)
            ).fetchone()
            return self._row_to_assessment(row) if row else None

    def delete_assessment(self, assessment_id: int) -> bool:
        """Delete an assessment together with its documents and chunks."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM assessments WHERE id = ?", (assessment_id,)
            )
            conn.commit()
            return cursor.rowcount > 0

    def _row_to_assessment(self, row: sqlite3.Row) -> Assessment:
        return Assessment(
            id=row["id"],
            practice_id=row["practice_id"],
            evidence=row["evidence"],
            status=AssessmentStatus(row["status"]),
            created_at=_parse_datetime(row["created_at"]) or now_utc(),
            updated_at=_parse_datetime(row["updated_at"]) or now_utc(),
        )

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    def create_report(self, title: str, data: dict[str, Any]) -> Report:
        """Store a report snapshot."""
        created_at = now_utc()
        with self._get_connection() as conn:
            cursor = conn.execute("""
                INSERT INTO reports (title, data, created_at)
                VALUES (?, ?, ?)
            """, (title, json.dumps(data), _iso_format(created_at)))
            conn.commit()
            return Report(
                id=cursor.lastrowid,
                title=title,
                data=data,
                created_at=created_at,
            )

    def get_reports(self) -> list[Report]:
        """Get all reports, newest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM reports ORDER BY created_at DESC, id DESC"
            ).fetchall()
            return [self._row_to_report(row) for row in rows]

    def get_report(self, report_id: int) -> Optional[Report]:
        """Get report by ID."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM reports WHERE id = ?", (report_id,)
            ).fetchone()
            return self._row_to_report(row) if row else None

    def delete_report(self, report_id: int) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM reports WHERE id = ?", (report_id,))
            conn.commit()
            return cursor.rowcount > 0

    def count_reports(self) -> int:
        with self._get_connection() as conn:
            row = conn.execute("SELECT COUNT(*) AS cnt FROM reports").fetchone()
            return row["cnt"]

    def _row_to_report(self, row: sqlite3.Row) -> Report:
        return Report(
            id=row["id"],
            title=row["title"],
            data=json.loads(row["data"]),
            created_at=_parse_datetime(row["created_at"]) or now_utc(),
        )

    # -------------------------------------------------------------------------
    # Documents and chunks
    # -------------------------------------------------------------------------

    def create_document(
        self,
        assessment_id: int,
        filename: str,
        total_chunks: int,
        content_type: str = "application/octet-stream",
        total_size: Optional[int] = None,
    ) -> Document:
        """Create a document record expecting total_chunks chunks."""
        created_at = now_utc()
        with self._get_connection() as conn:
            cursor = conn.execute("""
                INSERT INTO documents (
                    assessment_id, filename, content_type, total_chunks,
                    received_chunks, total_size, received_bytes, created_at
                ) VALUES (?, ?, ?, ?, 0, ?, 0, ?)
            """, (
                assessment_id,
                filename,
                content_type,
                total_chunks,
                total_size,
                _iso_format(created_at),
            ))
            conn.commit()
            return Document(
                id=cursor.lastrowid,
                assessment_id=assessment_id,
                filename=filename,
                content_type=content_type,
                total_chunks=total_chunks,
                total_size=total_size,
                created_at=created_at,
            )

    def get_document(self, document_id: int) -> Optional[Document]:
        """Get document metadata by ID."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM documents WHERE id = ?", (document_id,)
            ).fetchone()
            return self._row_to_document(row) if row else None

    def get_documents(self, assessment_id: int) -> list[Document]:
        """Get documents for an assessment in upload order."""
        with self._get_connection() as conn:
            rows = conn.execute("""
                SELECT * FROM documents
                WHERE assessment_id = ?
                ORDER BY created_at, id
            """, (assessment_id,)).fetchall()
            return [self._row_to_document(row) for row in rows]

    def delete_document(self, assessment_id: int, document_id: int) -> bool:
        """Delete a document only if it belongs to the given assessment."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM documents WHERE id = ? AND assessment_id = ?",
                (document_id, assessment_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def count_documents(self) -> dict[str, int]:
        """Get document counts split by completion."""
        with self._get_connection() as conn:
            row = conn.execute("""
                SELECT
                    COUNT(*) AS total,
                    SUM(CASE WHEN received_chunks = total_chunks THEN 1 ELSE 0 END) AS complete
                FROM documents
            """).fetchone()
            total = row["total"] or 0
            complete = row["complete"] or 0
            return {"total": total, "complete": complete, "pending": total - complete}

    def add_chunk(self, document_id: int, chunk_index: int, data: bytes) -> Document:
        """
        Store one chunk and bump the document's received counters.

        Insert and counter update share a transaction, so received_chunks
        always equals the number of stored chunk rows.
        """
        with self._get_connection() as conn:
            try:
                conn.execute("""
                    INSERT INTO document_chunks (document_id, chunk_index, data, created_at)
                    VALUES (?, ?, ?, ?)
                """, (document_id, chunk_index, sqlite3.Binary(data), _iso_format(now_utc())))
            except sqlite3.IntegrityError as e:
                conn.rollback()
                if "UNIQUE" in str(e):
                    raise DuplicateChunkError(
                        f"Chunk {chunk_index} already received for document {document_id}"
                    ) from e
                raise DocumentNotFoundError(f"Document {document_id} not found") from e

            conn.execute("""
                UPDATE documents SET
                    received_chunks = received_chunks + 1,
                    received_bytes = received_bytes + ?
                WHERE id = ?
            """, (len(data), document_id))
            conn.commit()

            row = conn.execute(
                "SELECT * FROM documents WHERE id = ?", (document_id,)
            ).fetchone()
            return self._row_to_document(row)

    def get_chunk_indexes(self, document_id: int) -> list[int]:
        """Get indexes of the chunks received so far."""
        with self._get_connection() as conn:
            rows = conn.execute("""
                SELECT chunk_index FROM document_chunks
                WHERE document_id = ?
                ORDER BY chunk_index
            """, (document_id,)).fetchall()
            return [row["chunk_index"] for row in rows]

    def get_chunks(self, document_id: int) -> list[bytes]:
        """Get chunk payloads ordered by index."""
        with self._get_connection() as conn:
            rows = conn.execute("""
                SELECT data FROM document_chunks
                WHERE document_id = ?
                ORDER BY chunk_index
            """, (document_id,)).fetchall()
            return [bytes(row["data"]) for row in rows]

    def _row_to_document(self, row: sqlite3.Row) -> Document:
        return Document(
            id=row["id"],
            assessment_id=row["assessment_id"],
            filename=row["filename"],
            content_type=row["content_type"],
            total_chunks=row["total_chunks"],
            received_chunks=row["received_chunks"],
            total_size=row["total_size"],
            received_bytes=row["received_bytes"],
            created_at=_parse_datetime(row["created_at"]) or now_utc(),
        )

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def get_progress_summary(self) -> dict[str, Any]:
        """
        Get assessment progress over the whole catalog.

        Practices without an assessment count as Not Started.
        """
        with self._get_connection() as conn:
            rows = conn.execute("""
                SELECT
                    p.domain AS domain,
                    MIN(p.position) AS first_position,
                    COUNT(*) AS total,
                    SUM(CASE WHEN a.status = 'Complete' THEN 1 ELSE 0 END) AS complete,
                    SUM(CASE WHEN a.status = 'In Progress' THEN 1 ELSE 0 END) AS in_progress
                FROM practices p
                LEFT JOIN assessments a ON a.practice_id = p.practice_id
                GROUP BY p.domain
                ORDER BY first_position
            """).fetchall()

        domains = []
        for row in rows:
            total = row["total"] or 0
            complete = row["complete"] or 0
            in_progress = row["in_progress"] or 0
            domains.append({
                "domain": row["domain"],
                "total": total,
                "complete": complete,
                "in_progress": in_progress,
                "not_started": total - complete - in_progress,
                "progress": round(complete / total * 100, 1) if total > 0 else 0.0,
            })

        total = sum(d["total"] for d in domains)
        complete = sum(d["complete"] for d in domains)
        in_progress = sum(d["in_progress"] for d in domains)

        return {
            "total": total,
            "complete": complete,
            "in_progress": in_progress,
            "not_started": total - complete - in_progress,
            "progress": round(complete / total * 100, 1) if total > 0 else 0.0,
            "domains": domains,
        }
