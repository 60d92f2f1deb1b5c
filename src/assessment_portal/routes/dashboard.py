"""
Dashboard API routes.

Provides progress figures for the overview page.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/dashboard")
async def get_dashboard(request: Request) -> dict:
    """
    Get dashboard summary data.

    Returns overall and per-domain completion, plus document and report
    counts.
    """
    db = request.app.state.db
    config = request.app.state.config

    progress = db.get_progress_summary()
    documents = db.count_documents()

    return {
        "organization": config.organization_name,
        "progress": {
            "totalPractices": progress["total"],
            "completed": progress["complete"],
            "inProgress": progress["in_progress"],
            "notStarted": progress["not_started"],
            "percent": progress["progress"],
        },
        "domains": [
            {
                "name": d["domain"],
                "total": d["total"],
                "completed": d["complete"],
                "inProgress": d["in_progress"],
                "notStarted": d["not_started"],
                "percent": d["progress"],
            }
            for d in progress["domains"]
        ],
        "documents": documents,
        "reports": db.count_reports(),
        "generatedAt": datetime.now(timezone.utc).isoformat(),
    }
