"""Course catalog search and term schedule endpoints."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..enrollment import enroll
from ..offerings import (
    create_offering,
    denormalize,
    list_schedule,
    remove_offering,
    search_courses,
)
from ..provisioning import load_student_by_number
from ..security import Capability
from ..utils.text import clean_string
from .auth import require_capability
from .common import current_term, json_error, json_object

courses_bp = Blueprint("courses", __name__, url_prefix="/api/courses")


@courses_bp.get("/schedule")
def get_course_schedule():
    return jsonify(list_schedule(current_term()))


@courses_bp.get("/search")
@require_capability(Capability.SEARCH_COURSES)
def search():
    query = clean_string(request.args.get("q"))
    if not query:
        return json_error("Search query is required", 400)
    return jsonify(search_courses(query))


@courses_bp.post("/schedule")
@require_capability(Capability.MANAGE_SCHEDULE)
def add_course_to_schedule():
    offering = create_offering(
        request.get_json(silent=True),
        current_term(),
        default_capacity=current_app.config["SIS_DEFAULT_CAPACITY"],
    )
    return (
        jsonify({"message": "Course added to schedule successfully", "courseGroup": offering}),
        201,
    )


@courses_bp.delete("/schedule/<group_id>")
@require_capability(Capability.MANAGE_SCHEDULE)
def remove_course_from_schedule(group_id: str):
    remove_offering(group_id)
    return jsonify({"message": "Course removed from schedule successfully"})


@courses_bp.post("/<group_id>/enroll")
@require_capability(Capability.MANAGE_ENROLLMENT)
def enroll_student(group_id: str):
    payload = json_object()
    student_number = clean_string(payload.get("studentId"))
    if not student_number:
        return json_error("Student ID is required", 400, {"studentId": "Required."})

    student = load_student_by_number(student_number)
    group = enroll(group_id, student)
    schedule = denormalize([group])[0]
    return jsonify(
        {
            "message": "Student enrolled successfully",
            "courseNumber": schedule.get("courseNumber"),
            "courseName": schedule.get("name"),
        }
    )


__all__ = ["courses_bp"]
