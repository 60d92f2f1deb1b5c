"""
Evidence document API routes.

Two ways in: a single JSON POST carrying the whole file (data URL or
base64), or a chunked upload that is announced first and then filled in
with raw-body PUTs, one per chunk index.
"""

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import AssessmentNotFoundError, DocumentNotFoundError
from ..services.uploads import to_data_url

logger = logging.getLogger(__name__)

router = APIRouter()


class DocumentUpload(BaseModel):
    """Single-shot upload of a whole document."""
    model_config = ConfigDict(populate_by_name=True)

    filename: Optional[str] = None
    data: Optional[str] = None  # data URL or base64
    content_type: Optional[str] = Field(None, alias="contentType")


class ChunkedUploadRequest(BaseModel):
    """Announce a document that will arrive in chunks."""
    model_config = ConfigDict(populate_by_name=True)

    filename: str
    total_chunks: int = Field(..., alias="totalChunks", ge=1)
    total_size: Optional[int] = Field(None, alias="totalSize", ge=0)
    content_type: Optional[str] = Field(None, alias="contentType")


# Longest missingChunks list returned in one status response
MAX_LISTED_MISSING = 100


def _upload_status(uploads, document) -> dict:
    status = document.to_dict()
    status["missingChunkCount"] = document.total_chunks - document.received_chunks
    status["missingChunks"] = uploads.missing_chunks(document, limit=MAX_LISTED_MISSING)
    return status


@router.get("/assessments/{assessment_id}/documents")
async def list_documents(
    assessment_id: int,
    request: Request,
    include_data: bool = Query(False, description="Inline complete documents as data URLs"),
) -> list[dict]:
    """List documents attached to an assessment, oldest first."""
    db = request.app.state.db
    uploads = request.app.state.uploads

    if db.get_assessment(assessment_id) is None:
        raise AssessmentNotFoundError(f"Assessment {assessment_id} not found")

    documents = []
    for document in db.get_documents(assessment_id):
        item = document.to_dict()
        if include_data and document.is_complete:
            item["data"] = to_data_url(uploads.read(document.id), document.content_type)
        documents.append(item)

    return documents


@router.post("/assessments/{assessment_id}/documents")
async def upload_document(
    assessment_id: int,
    body: DocumentUpload,
    request: Request,
) -> dict:
    """Upload a whole document in one request."""
    uploads = request.app.state.uploads

    if not body.filename or not body.data:
        raise HTTPException(status_code=400, detail="Missing required fields")

    document = uploads.upload_whole(
        assessment_id=assessment_id,
        filename=body.filename,
        data=body.data,
        content_type=body.content_type,
    )
    return document.to_dict()


@router.post("/assessments/{assessment_id}/documents/uploads")
async def begin_chunked_upload(
    assessment_id: int,
    body: ChunkedUploadRequest,
    request: Request,
) -> dict:
    """Start a chunked upload. Returns the document id to PUT chunks to."""
    uploads = request.app.state.uploads

    document = uploads.begin(
        assessment_id=assessment_id,
        filename=body.filename,
        total_chunks=body.total_chunks,
        total_size=body.total_size,
        content_type=body.content_type,
    )
    return _upload_status(uploads, document)


@router.put("/documents/{document_id}/chunks/{chunk_index}")
async def put_chunk(
    document_id: int,
    chunk_index: int,
    request: Request,
) -> dict:
    """
    Store one chunk; the raw request body is the chunk payload.

    Responds with the upload status; isComplete turns true once the last
    missing chunk has been stored.
    """
    uploads = request.app.state.uploads

    data = await request.body()
    document = uploads.put_chunk(document_id, chunk_index, data)

    return _upload_status(uploads, document)


@router.get("/documents/{document_id}")
async def get_upload_status(document_id: int, request: Request) -> dict:
    """Get expected vs. received chunk counts for a document."""
    db = request.app.state.db
    uploads = request.app.state.uploads

    document = db.get_document(document_id)
    if not document:
        raise DocumentNotFoundError(f"Document {document_id} not found")

    return _upload_status(uploads, document)


@router.get("/documents/{document_id}/content")
async def download_document(document_id: int, request: Request) -> StreamingResponse:
    """Download the reassembled document."""
    db = request.app.state.db
    uploads = request.app.state.uploads

    document = db.get_document(document_id)
    if not document:
        raise DocumentNotFoundError(f"Document {document_id} not found")

    payload = uploads.read(document_id)

    return StreamingResponse(
        iter([payload]),
        media_type=document.content_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(document.filename)}",
        },
    )


@router.delete("/assessments/{assessment_id}/documents/{document_id}")
async def delete_document(
    assessment_id: int,
    document_id: int,
    request: Request,
) -> dict:
    """Delete a document if it belongs to the given assessment."""
    db = request.app.state.db

    if not db.delete_document(assessment_id, document_id):
        raise DocumentNotFoundError("Document not found")

    logger.info(f"Document deleted: id={document_id} assessment={assessment_id}")
    return {"success": True}
