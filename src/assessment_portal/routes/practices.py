"""
Practice catalog API routes.
"""

from typing import Optional

from fastapi import APIRouter, Query, Request

from ..exceptions import PracticeNotFoundError

router = APIRouter()


@router.get("")
async def list_practices(
    request: Request,
    domain: Optional[str] = Query(None, description="Filter by domain"),
) -> list[dict]:
    """List catalog practices in catalog order."""
    db = request.app.state.db

    return [p.to_dict() for p in db.get_practices(domain=domain)]


@router.get("/domains")
async def list_domains(request: Request) -> list[dict]:
    """
    Get practices grouped by domain for tabbed navigation.

    Each practice carries its current assessment, or null when nothing has
    been recorded yet.
    """
    db = request.app.state.db

    assessments = {a.practice_id: a for a in db.get_assessments()}

    domains = []
    for name in db.get_domains():
        practices = []
        for practice in db.get_practices(domain=name):
            assessment = assessments.get(practice.practice_id)
            item = practice.to_dict()
            item["currentAssessment"] = assessment.to_dict() if assessment else None
            practices.append(item)
        domains.append({"name": name, "practices": practices})

    return domains


@router.get("/{practice_id}")
async def get_practice(practice_id: str, request: Request) -> dict:
    """Get one practice with its current assessment."""
    db = request.app.state.db

    practice = db.get_practice(practice_id)
    if not practice:
        raise PracticeNotFoundError(f"Practice {practice_id} not found")

    assessment = db.get_assessment_by_practice(practice_id)

    return {
        "practice": practice.to_dict(),
        "assessment": assessment.to_dict() if assessment else None,
    }
