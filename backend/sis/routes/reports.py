"""Transcript and roster report endpoints."""

from __future__ import annotations

import csv
import io
import logging
from typing import Any, Dict, List

from flask import Blueprint, Response, jsonify

from ..db import get_students_collection, get_users_collection
from ..enrollment import load_course_group
from ..grades import transcript
from ..offerings import denormalize
from ..provisioning import load_student_by_number
from ..security import Capability
from .auth import require_capability

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

logger = logging.getLogger(__name__)

ROSTER_FIELDS = [
    "studentNumber",
    "name",
    "email",
    "class",
    "program",
]


@reports_bp.get("/transcript/<student_number>")
@require_capability(Capability.VIEW_REPORTS)
def student_transcript(student_number: str):
    return jsonify(transcript(load_student_by_number(student_number)))


@reports_bp.get("/roster/<group_id>.csv")
@require_capability(Capability.VIEW_REPORTS)
def export_roster_csv(group_id: str):
    group = load_course_group(group_id)
    offering = denormalize([group])[0]

    student_ids = group.get("enrolledStudents") or []
    students: List[Dict[str, Any]] = list(
        get_students_collection().find(
            {"_id": {"$in": student_ids}}, sort=[("studentNumber", 1)]
        )
    )
    user_ids = [student.get("user") for student in students]
    emails = {
        doc["_id"]: doc.get("email")
        for doc in get_users_collection().find(
            {"_id": {"$in": user_ids}}, projection={"email": 1}
        )
    }

    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=ROSTER_FIELDS)
    writer.writeheader()
    for student in students:
        writer.writerow(
            {
                "studentNumber": student.get("studentNumber", ""),
                "name": student.get("name", ""),
                "email": emails.get(student.get("user"), ""),
                "class": student.get("class", ""),
                "program": student.get("program", ""),
            }
        )

    course_number = offering.get("courseNumber") or "course"
    filename = f"{course_number}_group{offering.get('groupNumber')}_roster.csv"
    logger.info("Exported roster of %s (%d students)", filename, len(students))

    response = Response(output.getvalue(), mimetype="text/csv")
    response.headers["Content-Disposition"] = f"attachment; filename={filename}"
    return response


__all__ = ["reports_bp"]
