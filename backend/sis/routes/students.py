"""Student self-service and secretary student-management endpoints."""

from __future__ import annotations

import re
from typing import Any, Dict, List

from flask import Blueprint, g, jsonify, request

from ..db import get_students_collection, get_users_collection, serialize_student
from ..enrollment import drop, enroll, student_offerings
from ..grades import record_grade, transcript
from ..offerings import denormalize
from ..provisioning import (
    create_student,
    delete_student,
    load_student_by_number,
    load_student_for_user,
)
from ..security import Capability
from ..utils.paging import PagingParamError, parse_paging_params, paginate
from ..utils.text import clean_string
from .auth import require_capability
from .common import current_term, json_error, json_object

students_bp = Blueprint("students", __name__, url_prefix="/api/students")

_SEARCH_FIELDS = {
    "name": "name",
    "studentNumber": "studentNumber",
    "idNumber": "idNumber",
}

_COURSE_FIELDS = (
    "_id",
    "courseNumber",
    "name",
    "description",
    "instructor",
    "day",
    "startTime",
    "endTime",
)


def _current_courses(student: Dict[str, Any]) -> List[Dict[str, Any]]:
    groups = denormalize(student_offerings(student["_id"], current_term()))
    return [{field: group.get(field) for field in _COURSE_FIELDS} for group in groups]


@students_bp.get("/my-schedule")
@require_capability(Capability.VIEW_OWN_SCHEDULE)
def get_my_schedule():
    student = load_student_for_user(g.current_user)
    return jsonify(denormalize(student_offerings(student["_id"], current_term())))


@students_bp.get("/my-courses")
@require_capability(Capability.VIEW_OWN_SCHEDULE)
def get_my_courses():
    student = load_student_for_user(g.current_user)
    return jsonify(_current_courses(student))


@students_bp.post("/my-courses/<group_id>")
@require_capability(Capability.MANAGE_OWN_ENROLLMENT)
def add_my_course(group_id: str):
    enroll(group_id, load_student_for_user(g.current_user), self_service=True)
    return jsonify({"message": "Successfully enrolled in course"})


@students_bp.delete("/my-courses/<group_id>")
@require_capability(Capability.MANAGE_OWN_ENROLLMENT)
def remove_my_course(group_id: str):
    drop(group_id, load_student_for_user(g.current_user))
    return jsonify({"message": "Successfully removed from course"})


@students_bp.get("/my-grades")
@require_capability(Capability.VIEW_OWN_GRADES)
def get_my_grades():
    return jsonify(transcript(load_student_for_user(g.current_user)))


@students_bp.post("")
@require_capability(Capability.MANAGE_STUDENTS)
def add_student():
    created = create_student(request.get_json(silent=True), g.current_user)
    return jsonify({"message": "Student added successfully", "student": created}), 201


@students_bp.get("/search")
@require_capability(Capability.MANAGE_STUDENTS)
def search_students():
    query = clean_string(request.args.get("q") or request.args.get("query"))
    if not query:
        return json_error("Search query is required", 400)

    criteria = clean_string(request.args.get("criteria"))
    if criteria and criteria not in _SEARCH_FIELDS:
        return json_error(
            "criteria must be one of: " + ", ".join(_SEARCH_FIELDS) + ".", 400
        )

    try:
        paging = parse_paging_params(
            request.args,
            allowed_sort_fields=_SEARCH_FIELDS,
            default_sort="name",
        )
    except PagingParamError as exc:
        return json_error(str(exc), 400)

    pattern = {"$regex": re.escape(query), "$options": "i"}
    fields = [_SEARCH_FIELDS[criteria]] if criteria else list(_SEARCH_FIELDS.values())
    filters = {"$or": [{field: pattern} for field in fields]}

    return jsonify(
        paginate(get_students_collection(), filters, paging, serialize_student)
    )


@students_bp.get("/<student_number>/details")
@require_capability(Capability.MANAGE_STUDENTS)
def get_student_details(student_number: str):
    student = load_student_by_number(student_number)
    user = get_users_collection().find_one({"_id": student.get("user")})
    return jsonify(
        {
            "student": serialize_student(student, user),
            "enrolledCourses": _current_courses(student),
        }
    )


@students_bp.delete("/<student_number>")
@require_capability(Capability.MANAGE_STUDENTS)
def remove_student(student_number: str):
    delete_student(student_number)
    return jsonify({"message": "Student deleted successfully"})


@students_bp.get("/<student_number>/courses")
@require_capability(Capability.MANAGE_ENROLLMENT)
def get_student_courses(student_number: str):
    return jsonify(_current_courses(load_student_by_number(student_number)))


@students_bp.post("/<student_number>/courses/<group_id>")
@require_capability(Capability.MANAGE_ENROLLMENT)
def add_student_course(student_number: str, group_id: str):
    enroll(group_id, load_student_by_number(student_number))
    return jsonify({"message": "Successfully enrolled in course"})


@students_bp.delete("/<student_number>/courses/<group_id>")
@require_capability(Capability.MANAGE_ENROLLMENT)
def remove_student_course(student_number: str, group_id: str):
    drop(group_id, load_student_by_number(student_number))
    return jsonify({"message": "Successfully removed from course"})


@students_bp.put("/<student_number>/grades/<group_id>")
@require_capability(Capability.MANAGE_GRADES)
def set_student_grade(student_number: str, group_id: str):
    payload = json_object()
    grade = record_grade(
        load_student_by_number(student_number), group_id, payload.get("grade")
    )
    return jsonify({"message": "Grade recorded", "grade": grade})


__all__ = ["students_bp"]
