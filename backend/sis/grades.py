"""Letter grades per (student, offering) and transcript/GPA computation."""

from __future__ import annotations

import datetime
import logging
from typing import Any, Dict, List

from .db import (
    get_course_groups_collection,
    get_courses_collection,
    get_grades_collection,
    serialize_grade,
)
from .enrollment import load_course_group
from .errors import ConflictError, ValidationError

logger = logging.getLogger(__name__)

GRADE_POINTS: Dict[str, float] = {
    "AA": 4.0,
    "BA": 3.5,
    "BB": 3.0,
    "CB": 2.5,
    "CC": 2.0,
    "DC": 1.5,
    "DD": 1.0,
    "FF": 0.0,
}

# NA (not assessed) is a valid grade that does not count towards the GPA.
GRADES = tuple(GRADE_POINTS) + ("NA",)

# Calendar order of the semesters within one year.
_CALENDAR = ("Spring", "Summer", "Fall")


def _format_numeric(value: float) -> float | int:
    if abs(value - round(value)) < 1e-9:
        return int(round(value))
    return round(value, 2)


def record_grade(student: Dict[str, Any], group_id, grade: Any) -> Dict[str, Any]:
    """Set the student's grade for an offering they are enrolled in."""

    letter = str(grade).strip().upper() if grade is not None else ""
    if letter not in GRADES:
        raise ValidationError(
            "Validation failed.",
            {"grade": "Grade must be one of: " + ", ".join(GRADES) + "."},
        )

    group = load_course_group(group_id)
    if student["_id"] not in (group.get("enrolledStudents") or []):
        raise ConflictError("Student is not enrolled in this course")

    now = datetime.datetime.now(datetime.timezone.utc)
    get_grades_collection().update_one(
        {"student": student["_id"], "courseGroup": group["_id"]},
        {"$set": {"grade": letter, "updatedAt": now}, "$setOnInsert": {"createdAt": now}},
        upsert=True,
    )
    saved = get_grades_collection().find_one(
        {"student": student["_id"], "courseGroup": group["_id"]}
    )
    logger.info(
        "Recorded grade %s for student %s in course group %s",
        letter,
        student.get("studentNumber"),
        group["_id"],
    )
    return serialize_grade(saved)


def _term_order(row: Dict[str, Any]) -> tuple:
    semester = row.get("semester")
    semester_index = _CALENDAR.index(semester) if semester in _CALENDAR else len(_CALENDAR)
    return (row.get("year") or 0, semester_index, row.get("courseNumber") or "")


def transcript(student: Dict[str, Any]) -> Dict[str, Any]:
    """Return graded courses and the credit-weighted GPA for ``student``."""

    grades = list(get_grades_collection().find({"student": student["_id"]}))

    group_ids = [doc["courseGroup"] for doc in grades]
    groups = {
        doc["_id"]: doc
        for doc in get_course_groups_collection().find({"_id": {"$in": group_ids}})
    }
    course_ids = list({doc.get("course") for doc in groups.values()})
    courses = {
        doc["_id"]: doc
        for doc in get_courses_collection().find({"_id": {"$in": course_ids}})
    }

    rows: List[Dict[str, Any]] = []
    quality_points = 0.0
    total_hours = 0.0

    for entry in grades:
        group = groups.get(entry["courseGroup"], {})
        course = courses.get(group.get("course"), {})
        letter = entry.get("grade")
        try:
            hours = float(course.get("semesterHours") or 0)
        except (TypeError, ValueError):
            hours = 0.0

        rows.append(
            {
                "courseGroup": str(entry["courseGroup"]),
                "courseNumber": course.get("courseNumber"),
                "name": course.get("name"),
                "semester": group.get("semester"),
                "year": group.get("year"),
                "semesterHours": _format_numeric(hours),
                "grade": letter,
            }
        )

        if letter in GRADE_POINTS and hours > 0:
            total_hours += hours
            quality_points += GRADE_POINTS[letter] * hours

    rows.sort(key=_term_order)

    return {
        "studentNumber": student.get("studentNumber"),
        "name": student.get("name"),
        "totalHours": _format_numeric(total_hours),
        "gpa": round(quality_points / total_hours, 2) if total_hours > 0 else None,
        "courses": rows,
    }


__all__ = ["GRADE_POINTS", "GRADES", "record_grade", "transcript"]
