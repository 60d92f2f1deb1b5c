"""
Chunked evidence document uploads.

A client announces a document with the number of chunks it will send, then
PUTs each chunk by index. Chunks are stored independently; the document is
complete once received_chunks equals total_chunks, and reading it
concatenates the chunks in index order.

Small files can skip the handshake with ``upload_whole``, which stores the
payload as a single-chunk document.
"""

from __future__ import annotations

import base64
import binascii
import logging
from itertools import islice
from typing import Optional, Union
from urllib.parse import unquote_to_bytes

from .._types import Document
from ..db import AssessmentDatabase
from ..exceptions import (
    AssessmentNotFoundError,
    DocumentNotFoundError,
    DuplicateChunkError,
    InvalidChunkError,
    UploadIncompleteError,
    UploadTooLargeError,
)

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
MAX_FILENAME_LENGTH = 255


def sanitize_filename(filename: Optional[str]) -> str:
    """Strip path components so stored names can't escape a download dir."""
    name = (filename or "").strip().replace("/", "_").replace("\\", "_")
    if not name or name in (".", ".."):
        raise InvalidChunkError("Filename is required")
    return name[:MAX_FILENAME_LENGTH]


def decode_payload(data: Union[str, bytes]) -> tuple[bytes, Optional[str]]:
    """
    Decode an uploaded payload.

    Accepts raw bytes, a ``data:`` URL (base64 or percent-encoded) or a bare
    base64 string. Returns (payload, content_type); content_type is only
    known for data URLs.
    """
    if isinstance(data, bytes):
        return data, None

    if data.startswith("data:"):
        header, sep, body = data[5:].partition(",")
        if not sep:
            raise InvalidChunkError("Malformed data URL")

        params = header.split(";")
        content_type = params[0] or None
        if "base64" in params[1:]:
            try:
                return base64.b64decode(body, validate=True), content_type
            except (binascii.Error, ValueError) as e:
                raise InvalidChunkError(f"Invalid base64 in data URL: {e}") from e
        return unquote_to_bytes(body), content_type

    try:
        return base64.b64decode(data, validate=True), None
    except (binascii.Error, ValueError) as e:
        raise InvalidChunkError(f"Payload is neither a data URL nor base64: {e}") from e


def to_data_url(payload: bytes, content_type: str) -> str:
    """Encode a payload as a base64 data URL."""
    encoded = base64.b64encode(payload).decode("ascii")
    return f"data:{content_type};base64,{encoded}"


class ChunkedUploadService:
    """Incremental document writes over the assessment database."""

    def __init__(
        self,
        db: AssessmentDatabase,
        max_upload_bytes: int,
        max_chunk_bytes: int,
        max_chunks: int = 10_000,
    ):
        self.db = db
        self.max_upload_bytes = max_upload_bytes
        self.max_chunk_bytes = max_chunk_bytes
        self.max_chunks = max_chunks

    def begin(
        self,
        assessment_id: int,
        filename: str,
        total_chunks: int,
        total_size: Optional[int] = None,
        content_type: Optional[str] = None,
    ) -> Document:
        """Register a document that will arrive in total_chunks pieces."""
        if self.db.get_assessment(assessment_id) is None:
            raise AssessmentNotFoundError(f"Assessment {assessment_id} not found")

        name = sanitize_filename(filename)

        if total_chunks < 1:
            raise InvalidChunkError("totalChunks must be at least 1")

        # Every chunk carries at least one byte
        chunk_limit = min(self.max_chunks, self.max_upload_bytes)
        if total_chunks > chunk_limit:
            raise InvalidChunkError(
                f"totalChunks {total_chunks} exceeds the maximum of {chunk_limit}"
            )

        if total_size is not None:
            if total_size < 0:
                raise InvalidChunkError("totalSize cannot be negative")
            if total_size > self.max_upload_bytes:
                raise UploadTooLargeError(
                    f"Declared size {total_size} exceeds the maximum of "
                    f"{self.max_upload_bytes // (1024 * 1024)} MB"
                )
            if total_chunks > total_size:
                raise InvalidChunkError(
                    f"totalChunks {total_chunks} exceeds declared size of {total_size} bytes"
                )

        document = self.db.create_document(
            assessment_id=assessment_id,
            filename=name,
            total_chunks=total_chunks,
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            total_size=total_size,
        )
        logger.info(
            f"Upload started: document={document.id} assessment={assessment_id} "
            f"file={name} chunks={total_chunks}"
        )
        return document

    def put_chunk(self, document_id: int, chunk_index: int, data: bytes) -> Document:
        """Store one chunk. Returns the document with updated counters."""
        document = self.db.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        if not 0 <= chunk_index < document.total_chunks:
            raise InvalidChunkError(
                f"Chunk index {chunk_index} out of range 0..{document.total_chunks - 1}"
            )

        if not data:
            raise InvalidChunkError("Chunk is empty")

        if len(data) > self.max_chunk_bytes:
            raise UploadTooLargeError(
                f"Chunk of {len(data)} bytes exceeds the maximum of {self.max_chunk_bytes}"
            )

        if chunk_index in self.db.get_chunk_indexes(document_id):
            raise DuplicateChunkError(
                f"Chunk {chunk_index} already received for document {document_id}"
            )

        if document.received_bytes + len(data) > self.max_upload_bytes:
            raise UploadTooLargeError(
                f"Document {document_id} would exceed the maximum of "
                f"{self.max_upload_bytes // (1024 * 1024)} MB"
            )

        document = self.db.add_chunk(document_id, chunk_index, data)

        if document.is_complete:
            logger.info(
                f"Upload complete: document={document_id} file={document.filename} "
                f"bytes={document.received_bytes}"
            )
            if document.total_size is not None and document.total_size != document.received_bytes:
                logger.warning(
                    f"Document {document_id} declared {document.total_size} bytes "
                    f"but received {document.received_bytes}"
                )
        else:
            logger.debug(
                f"Chunk {chunk_index} stored for document {document_id} "
                f"({document.received_chunks}/{document.total_chunks})"
            )

        return document

    def upload_whole(
        self,
        assessment_id: int,
        filename: str,
        data: Union[str, bytes],
        content_type: Optional[str] = None,
    ) -> Document:
        """Store a complete payload as a one-chunk document."""
        if self.db.get_assessment(assessment_id) is None:
            raise AssessmentNotFoundError(f"Assessment {assessment_id} not found")

        name = sanitize_filename(filename)
        payload, detected_type = decode_payload(data)

        if not payload:
            raise InvalidChunkError("Document is empty")

        if len(payload) > self.max_upload_bytes:
            raise UploadTooLargeError(
                f"Document of {len(payload)} bytes exceeds the maximum of "
                f"{self.max_upload_bytes // (1024 * 1024)} MB"
            )

        document = self.db.create_document(
            assessment_id=assessment_id,
            filename=name,
            total_chunks=1,
            content_type=content_type or detected_type or DEFAULT_CONTENT_TYPE,
            total_size=len(payload),
        )
        document = self.db.add_chunk(document.id, 0, payload)
        logger.info(
            f"Document uploaded: document={document.id} assessment={assessment_id} "
            f"file={name} bytes={len(payload)}"
        )
        return document

    def read(self, document_id: int) -> bytes:
        """Reassemble a complete document from its chunks."""
        document = self.db.get_document(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")

        if not document.is_complete:
            raise UploadIncompleteError(
                f"Document {document_id} has {document.received_chunks} of "
                f"{document.total_chunks} chunks"
            )

        return b"".join(self.db.get_chunks(document_id))

    def missing_chunks(self, document: Document, limit: Optional[int] = None) -> list[int]:
        """Chunk indexes not received yet, lowest first, at most limit of them."""
        received = set(self.db.get_chunk_indexes(document.id))
        missing = (i for i in range(document.total_chunks) if i not in received)
        return list(islice(missing, limit))
