"""
Report snapshots.

A report freezes the current practices and assessments into JSON at the time
it is generated. Later edits to assessments do not touch stored reports.
"""

from __future__ import annotations

import csv
import io
from typing import Any

from .._types import AssessmentStatus, Report, now_utc
from ..db import AssessmentDatabase

CSV_FIELDS = [
    "domain",
    "practice_id",
    "name",
    "status",
    "evidence",
    "updated_at",
]


def build_snapshot(db: AssessmentDatabase) -> dict[str, Any]:
    """Serialize current practices and assessments."""
    return {
        "practices": [p.to_dict() for p in db.get_practices()],
        "assessments": [a.to_dict() for a in db.get_assessments()],
        "generatedAt": now_utc().isoformat(),
    }


def group_by_domain(snapshot: dict[str, Any]) -> list[dict[str, Any]]:
    """
    Join snapshot practices with their assessments, grouped by domain.

    Domains keep the order in which they first appear in the snapshot.
    Practices without an assessment report as Not Started.
    """
    by_practice = {a["practiceId"]: a for a in snapshot.get("assessments", [])}

    sections: dict[str, dict[str, Any]] = {}
    for practice in snapshot.get("practices", []):
        domain = practice["domain"]
        if domain not in sections:
            sections[domain] = {"domain": domain, "practices": [], "complete": 0}

        assessment = by_practice.get(practice["practiceId"])
        status = assessment["status"] if assessment else AssessmentStatus.NOT_STARTED.value

        sections[domain]["practices"].append({
            "practiceId": practice["practiceId"],
            "name": practice["name"],
            "description": practice["description"],
            "status": status,
            "evidence": assessment["evidence"] if assessment else None,
            "updatedAt": assessment["updatedAt"] if assessment else None,
        })
        if status == AssessmentStatus.COMPLETE.value:
            sections[domain]["complete"] += 1

    for section in sections.values():
        section["total"] = len(section["practices"])

    return list(sections.values())


def render_csv(report: Report) -> str:
    """Flatten a report into one CSV row per practice."""
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=CSV_FIELDS, extrasaction="ignore")
    writer.writeheader()

    for section in group_by_domain(report.data):
        for practice in section["practices"]:
            writer.writerow({
                "domain": section["domain"],
                "practice_id": practice["practiceId"],
                "name": practice["name"],
                "status": practice["status"],
                "evidence": practice["evidence"] or "",
                "updated_at": practice["updatedAt"] or "",
            })

    return output.getvalue()
