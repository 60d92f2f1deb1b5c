"""Tests for assessment database operations."""

import shutil
import tempfile
from pathlib import Path

import pytest

from assessment_portal._types import AssessmentStatus, Practice
from assessment_portal.db import AssessmentDatabase
from assessment_portal.exceptions import DocumentNotFoundError, DuplicateChunkError


@pytest.fixture
def db():
    """Create a temporary database for testing."""
    temp_dir = Path(tempfile.mkdtemp())
    database = AssessmentDatabase(temp_dir / "assessments.db")
    yield database
    shutil.rmtree(temp_dir)


@pytest.fixture
def seeded_db(db):
    """Database with a small two-domain catalog."""
    practices = [
        Practice("AC.L1-3.1.1", "Access Control", "Authorized Access Control", position=0),
        Practice("AC.L1-3.1.2", "Access Control", "Transaction & Function Control", position=1),
        Practice("IA.L1-3.5.1", "Identification and Authentication", "Identification", position=2),
    ]
    for practice in practices:
        db.upsert_practice(practice)
    return db


class TestPractices:
    """Tests for catalog storage."""

    def test_upsert_practice_new(self, db: AssessmentDatabase):
        """Should report a new practice on first insert."""
        assert db.upsert_practice(Practice("AC.L1-3.1.1", "Access Control", "Access")) is True
        assert db.count_practices() == 1

    def test_upsert_practice_updates_in_place(self, db: AssessmentDatabase):
        """Should update an existing practice keyed by practice_id."""
        db.upsert_practice(Practice("AC.L1-3.1.1", "Access Control", "Old name"))
        is_new = db.upsert_practice(Practice("AC.L1-3.1.1", "Access Control", "New name"))

        assert is_new is False
        assert db.count_practices() == 1
        assert db.get_practice("AC.L1-3.1.1").name == "New name"

    def test_get_practices_by_domain(self, seeded_db: AssessmentDatabase):
        """Should filter practices by domain."""
        practices = seeded_db.get_practices(domain="Access Control")

        assert [p.practice_id for p in practices] == ["AC.L1-3.1.1", "AC.L1-3.1.2"]

    def test_get_domains_in_catalog_order(self, seeded_db: AssessmentDatabase):
        """Domains should come back in order of first appearance."""
        assert seeded_db.get_domains() == [
            "Access Control",
            "Identification and Authentication",
        ]

    def test_get_unknown_practice(self, seeded_db: AssessmentDatabase):
        assert seeded_db.get_practice("XX.L1-0.0.0") is None


class TestAssessments:
    """Tests for assessment storage."""

    def test_save_creates_assessment(self, seeded_db: AssessmentDatabase):
        """First save should create the assessment."""
        assessment = seeded_db.save_assessment(
            "AC.L1-3.1.1", "Accounts reviewed quarterly", AssessmentStatus.IN_PROGRESS
        )

        assert assessment.id is not None
        assert assessment.status == AssessmentStatus.IN_PROGRESS
        assert len(seeded_db.get_assessments()) == 1

    def test_save_updates_existing(self, seeded_db: AssessmentDatabase):
        """Saving twice should keep one assessment per practice."""
        first = seeded_db.save_assessment("AC.L1-3.1.1", "Draft", AssessmentStatus.IN_PROGRESS)
        second = seeded_db.save_assessment("AC.L1-3.1.1", "Final", AssessmentStatus.COMPLETE)

        assert second.id == first.id
        assert second.evidence == "Final"
        assert second.status == AssessmentStatus.COMPLETE
        assert second.updated_at >= first.updated_at
        assert len(seeded_db.get_assessments()) == 1

    def test_get_assessment_by_practice(self, seeded_db: AssessmentDatabase):
        seeded_db.save_assessment("IA.L1-3.5.1", "Unique IDs", AssessmentStatus.COMPLETE)

        assessment = seeded_db.get_assessment_by_practice("IA.L1-3.5.1")

        assert assessment is not None
        assert assessment.evidence == "Unique IDs"

    def test_delete_assessment_cascades_documents(self, seeded_db: AssessmentDatabase):
        """Deleting an assessment should remove its documents and chunks."""
        assessment = seeded_db.save_assessment("AC.L1-3.1.1", "e", AssessmentStatus.COMPLETE)
        doc = seeded_db.create_document(assessment.id, "policy.pdf", total_chunks=1)
        seeded_db.add_chunk(doc.id, 0, b"%PDF")

        assert seeded_db.delete_assessment(assessment.id) is True
        assert seeded_db.get_document(doc.id) is None
        assert seeded_db.get_chunks(doc.id) == []

    def test_delete_missing_assessment(self, seeded_db: AssessmentDatabase):
        assert seeded_db.delete_assessment(999) is False


class TestDocumentChunks:
    """Tests for document and chunk storage."""

    @pytest.fixture
    def assessment(self, seeded_db: AssessmentDatabase):
        return seeded_db.save_assessment("AC.L1-3.1.1", "evidence", AssessmentStatus.IN_PROGRESS)

    def test_add_chunk_increments_counters(self, seeded_db, assessment):
        """Each stored chunk should bump received counters."""
        doc = seeded_db.create_document(assessment.id, "scan.log", total_chunks=2)

        doc = seeded_db.add_chunk(doc.id, 0, b"abc")
        assert doc.received_chunks == 1
        assert doc.received_bytes == 3
        assert doc.is_complete is False

        doc = seeded_db.add_chunk(doc.id, 1, b"de")
        assert doc.received_chunks == 2
        assert doc.received_bytes == 5
        assert doc.is_complete is True

    def test_duplicate_chunk_rejected(self, seeded_db, assessment):
        """A repeated chunk index should raise and leave counters unchanged."""
        doc = seeded_db.create_document(assessment.id, "scan.log", total_chunks=2)
        seeded_db.add_chunk(doc.id, 0, b"abc")

        with pytest.raises(DuplicateChunkError):
            seeded_db.add_chunk(doc.id, 0, b"xyz")

        doc = seeded_db.get_document(doc.id)
        assert doc.received_chunks == 1
        assert seeded_db.get_chunks(doc.id) == [b"abc"]

    def test_add_chunk_unknown_document(self, seeded_db):
        with pytest.raises(DocumentNotFoundError):
            seeded_db.add_chunk(12345, 0, b"abc")

    def test_chunks_ordered_by_index(self, seeded_db, assessment):
        """Chunks stored out of order should be returned by index."""
        doc = seeded_db.create_document(assessment.id, "scan.log", total_chunks=3)
        seeded_db.add_chunk(doc.id, 2, b"c")
        seeded_db.add_chunk(doc.id, 0, b"a")
        seeded_db.add_chunk(doc.id, 1, b"b")

        assert seeded_db.get_chunks(doc.id) == [b"a", b"b", b"c"]
        assert seeded_db.get_chunk_indexes(doc.id) == [0, 1, 2]

    def test_delete_document_requires_owner(self, seeded_db, assessment):
        """Should only delete a document through its own assessment."""
        other = seeded_db.save_assessment("IA.L1-3.5.1", "e", AssessmentStatus.IN_PROGRESS)
        doc = seeded_db.create_document(assessment.id, "a.txt", total_chunks=1)

        assert seeded_db.delete_document(other.id, doc.id) is False
        assert seeded_db.delete_document(assessment.id, doc.id) is True
        assert seeded_db.get_document(doc.id) is None

    def test_count_documents(self, seeded_db, assessment):
        done = seeded_db.create_document(assessment.id, "a.txt", total_chunks=1)
        seeded_db.add_chunk(done.id, 0, b"a")
        seeded_db.create_document(assessment.id, "b.txt", total_chunks=2)

        assert seeded_db.count_documents() == {"total": 2, "complete": 1, "pending": 1}


class TestReportsAndProgress:
    """Tests for report snapshots and progress statistics."""

    def test_create_and_get_report(self, seeded_db: AssessmentDatabase):
        report = seeded_db.create_report("Q1 Report", {"practices": [], "assessments": []})

        stored = seeded_db.get_report(report.id)
        assert stored.title == "Q1 Report"
        assert stored.data == {"practices": [], "assessments": []}
        assert seeded_db.count_reports() == 1

    def test_delete_report(self, seeded_db: AssessmentDatabase):
        report = seeded_db.create_report("Q1 Report", {})

        assert seeded_db.delete_report(report.id) is True
        assert seeded_db.get_report(report.id) is None

    def test_progress_summary(self, seeded_db: AssessmentDatabase):
        """Unassessed practices count as not started."""
        seeded_db.save_assessment("AC.L1-3.1.1", "e", AssessmentStatus.COMPLETE)
        seeded_db.save_assessment("AC.L1-3.1.2", "e", AssessmentStatus.IN_PROGRESS)

        summary = seeded_db.get_progress_summary()

        assert summary["total"] == 3
        assert summary["complete"] == 1
        assert summary["in_progress"] == 1
        assert summary["not_started"] == 1
        assert summary["progress"] == 33.3

        access = summary["domains"][0]
        assert access["domain"] == "Access Control"
        assert access["progress"] == 50.0
