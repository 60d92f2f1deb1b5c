"""
Assessment API routes.
"""

import logging

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .._types import AssessmentStatus
from ..exceptions import AssessmentNotFoundError, PracticeNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter()


class AssessmentUpdate(BaseModel):
    """Evidence and status submitted for one practice."""
    model_config = ConfigDict(populate_by_name=True)

    practice_id: str = Field(..., alias="practiceId", min_length=1)
    evidence: str
    status: AssessmentStatus = AssessmentStatus.NOT_STARTED

    @field_validator("evidence")
    @classmethod
    def evidence_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Evidence is required")
        return v


@router.get("")
async def list_assessments(request: Request) -> list[dict]:
    """List all recorded assessments."""
    db = request.app.state.db

    return [a.to_dict() for a in db.get_assessments()]


@router.post("")
async def save_assessment(body: AssessmentUpdate, request: Request) -> dict:
    """
    Record evidence and status for a practice.

    Creates the practice's assessment on first save and updates it after.
    """
    db = request.app.state.db

    if db.get_practice(body.practice_id) is None:
        raise PracticeNotFoundError(f"Practice {body.practice_id} not found")

    assessment = db.save_assessment(
        practice_id=body.practice_id,
        evidence=body.evidence,
        status=body.status,
    )
    logger.info(f"Assessment saved: practice={body.practice_id} status={body.status.value}")

    return assessment.to_dict()


@router.get("/{assessment_id}")
async def get_assessment(assessment_id: int, request: Request) -> dict:
    """Get one assessment with its document list."""
    db = request.app.state.db

    assessment = db.get_assessment(assessment_id)
    if not assessment:
        raise AssessmentNotFoundError(f"Assessment {assessment_id} not found")

    result = assessment.to_dict()
    result["documents"] = [d.to_dict() for d in db.get_documents(assessment_id)]
    return result


@router.delete("/{assessment_id}")
async def delete_assessment(assessment_id: int, request: Request) -> dict:
    """Delete an assessment and every document attached to it."""
    db = request.app.state.db

    if not db.delete_assessment(assessment_id):
        raise AssessmentNotFoundError(f"Assessment {assessment_id} not found")

    logger.info(f"Assessment deleted: id={assessment_id}")
    return {"success": True}
