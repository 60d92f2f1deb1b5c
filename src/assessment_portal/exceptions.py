"""
Assessment portal exceptions.

Raised by the database and service layers; ``main.create_app`` maps each
class to an HTTP status code.
"""


class AssessmentPortalError(Exception):
    """Base exception for assessment portal errors."""
    status_code = 500
    error = "Server Error"


class CatalogError(AssessmentPortalError):
    """Practice catalog file is missing or malformed."""
    pass


class PracticeNotFoundError(AssessmentPortalError):
    """Practice id is not part of the catalog."""
    status_code = 404
    error = "Practice not found"


class AssessmentNotFoundError(AssessmentPortalError):
    """Assessment does not exist."""
    status_code = 404
    error = "Assessment not found"


class DocumentNotFoundError(AssessmentPortalError):
    """Document does not exist or belongs to another assessment."""
    status_code = 404
    error = "Document not found"


class ReportNotFoundError(AssessmentPortalError):
    """Report does not exist."""
    status_code = 404
    error = "Report not found"


class UploadError(AssessmentPortalError):
    """Base class for document upload errors."""
    status_code = 400
    error = "Upload Error"


class InvalidChunkError(UploadError):
    """Chunk index out of range, empty chunk, or malformed payload."""
    pass


class DuplicateChunkError(UploadError):
    """Chunk index was already received for this document."""
    status_code = 409
    error = "Duplicate chunk"


class UploadTooLargeError(UploadError):
    """Chunk or document exceeds the configured size limit."""
    status_code = 413
    error = "File too large"


class UploadIncompleteError(UploadError):
    """Document cannot be read until every chunk has arrived."""
    status_code = 409
    error = "Upload incomplete"
