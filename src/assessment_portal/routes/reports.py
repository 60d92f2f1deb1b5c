"""
Report API routes.

Reports are JSON snapshots; the CSV export is a flat per-practice listing.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from ..exceptions import ReportNotFoundError
from ..services.reports import build_snapshot, group_by_domain, render_csv

logger = logging.getLogger(__name__)

router = APIRouter()


class ReportCreate(BaseModel):
    """Request to generate a report."""
    title: Optional[str] = None  # Defaults to "<prefix> - <date>"


def _get_report_or_404(db, report_id: int):
    report = db.get_report(report_id)
    if not report:
        raise ReportNotFoundError(f"Report {report_id} not found")
    return report


@router.post("")
async def create_report(request: Request, body: Optional[ReportCreate] = None) -> dict:
    """Snapshot current practices and assessments into a new report."""
    db = request.app.state.db
    config = request.app.state.config

    title = body.title if body else None
    if title is None:
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        title = f"{config.report_title_prefix} - {today}"
    elif not title.strip():
        raise HTTPException(status_code=400, detail="Report title is required")

    report = db.create_report(title.strip(), build_snapshot(db))
    logger.info(f"Report generated: id={report.id} title={report.title!r}")

    return report.to_dict()


@router.get("")
async def list_reports(request: Request) -> list[dict]:
    """List reports, newest first."""
    db = request.app.state.db

    return [r.to_dict() for r in db.get_reports()]


@router.get("/{report_id}")
async def get_report(report_id: int, request: Request) -> dict:
    """Get a stored report snapshot."""
    db = request.app.state.db

    return _get_report_or_404(db, report_id).to_dict()


@router.get("/{report_id}/sections")
async def get_report_sections(report_id: int, request: Request) -> dict:
    """Get a report's practices grouped by domain with their status."""
    db = request.app.state.db
    config = request.app.state.config

    report = _get_report_or_404(db, report_id)

    return {
        "id": report.id,
        "title": report.title,
        "organization": config.organization_name,
        "generatedAt": report.data.get("generatedAt"),
        "sections": group_by_domain(report.data),
    }


@router.get("/{report_id}/csv")
async def export_report_csv(report_id: int, request: Request) -> StreamingResponse:
    """Export a report as CSV."""
    db = request.app.state.db

    report = _get_report_or_404(db, report_id)
    timestamp = report.created_at.strftime("%Y%m%d_%H%M%S")

    return StreamingResponse(
        iter([render_csv(report)]),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename=assessment_report_{report.id}_{timestamp}.csv"
        },
    )


@router.delete("/{report_id}")
async def delete_report(report_id: int, request: Request) -> dict:
    db = request.app.state.db

    if not db.delete_report(report_id):
        raise ReportNotFoundError(f"Report {report_id} not found")

    return {"success": True}
