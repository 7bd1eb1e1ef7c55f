"""Creating, removing and listing scheduled course offerings."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Tuple

from pymongo import DESCENDING

from .db import (
    get_course_groups_collection,
    get_courses_collection,
    get_departments_collection,
    serialize_course,
    serialize_course_group,
    serialize_department,
    to_object_id,
)
from .errors import ConflictError, NotFoundError, ValidationError
from .scheduling import (
    DAYS,
    LAST_HOUR,
    OFFERING_LENGTH_HOURS,
    Term,
    TimeSlot,
    find_conflict,
    format_hour,
    parse_hour,
    weekly_order,
)
from .utils.text import clean_string

logger = logging.getLogger(__name__)


def validate_offering_payload(
    payload: Dict[str, Any] | None, *, default_capacity: int
) -> Tuple[Dict[str, Any], Dict[str, str]]:
    if not isinstance(payload, dict):
        return {}, {"_global": "Request body must be JSON."}

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}

    for field, message in (
        ("courseId", "Course is required."),
        ("day", "Day is required."),
        ("startTime", "Start time is required."),
        ("classroom", "Classroom is required."),
    ):
        value = clean_string(payload.get(field))
        if not value:
            errors[field] = message
        else:
            cleaned[field] = value

    day = cleaned.get("day")
    if day:
        normalized_day = day.capitalize()
        if normalized_day not in DAYS:
            errors["day"] = "Day must be one of: " + ", ".join(DAYS) + "."
        else:
            cleaned["day"] = normalized_day

    cleaned["instructor"] = clean_string(payload.get("instructor")) or "TBD"

    capacity_raw = payload.get("capacity")
    if capacity_raw in (None, ""):
        cleaned["capacity"] = default_capacity
    else:
        try:
            capacity = int(capacity_raw)
            if capacity < 1:
                raise ValueError
            cleaned["capacity"] = capacity
        except (TypeError, ValueError):
            errors["capacity"] = "Capacity must be at least 1."

    return cleaned, errors


def find_course(course_ref: str) -> Dict[str, Any] | None:
    """Look a course up by ObjectId, falling back to its course number."""

    courses = get_courses_collection()
    object_id = to_object_id(course_ref)
    if object_id is not None:
        course = courses.find_one({"_id": object_id})
        if course:
            return course
    return courses.find_one({"courseNumber": course_ref})


def create_offering(
    payload: Dict[str, Any] | None, term: Term, *, default_capacity: int
) -> Dict[str, Any]:
    """Schedule a one-hour offering of a course in ``term``."""

    cleaned, errors = validate_offering_payload(
        payload, default_capacity=default_capacity
    )
    if errors:
        details = {k: v for k, v in errors.items() if k != "_global"}
        raise ValidationError(
            errors.get("_global", "Validation failed."), details or None
        )

    course = find_course(cleaned["courseId"])
    if not course:
        raise NotFoundError("Course not found")

    try:
        start_hour = parse_hour(cleaned["startTime"])
    except ValueError:
        raise ValidationError("Invalid time format. Use HH:00") from None
    end_hour = start_hour + OFFERING_LENGTH_HOURS
    if end_hour > LAST_HOUR:
        raise ValidationError(f"Courses must end by {format_hour(LAST_HOUR)}")

    day = cleaned["day"]
    classroom = cleaned["classroom"]
    groups = get_course_groups_collection()

    same_course = groups.find_one(
        {"course": course["_id"], "day": day, **term.as_filter()},
        projection={"_id": 1},
    )
    if same_course:
        raise ConflictError("This course is already scheduled for this day")

    candidate = TimeSlot(day, start_hour, end_hour)
    in_room = groups.find({"day": day, "classroom": classroom, **term.as_filter()})
    clash = find_conflict(candidate, in_room)
    if clash is not None:
        other = get_courses_collection().find_one(
            {"_id": clash.get("course")}, projection={"courseNumber": 1}
        )
        label = other.get("courseNumber") if other else "Another course"
        raise ConflictError(
            f"Time conflict: {label} is already scheduled in room {classroom} "
            f"from {clash['startTime']} to {clash['endTime']}"
        )

    highest = groups.find_one(
        {"course": course["_id"], **term.as_filter()},
        projection={"groupNumber": 1},
        sort=[("groupNumber", DESCENDING)],
    )
    next_group_number = int(highest["groupNumber"]) + 1 if highest else 1

    document = {
        "course": course["_id"],
        "semester": term.semester,
        "year": term.year,
        "groupNumber": next_group_number,
        "day": day,
        "startTime": format_hour(start_hour),
        "endTime": format_hour(end_hour),
        "classroom": classroom,
        "instructor": cleaned["instructor"],
        "capacity": cleaned["capacity"],
        "enrolledStudents": [],
    }
    result = groups.insert_one(document)
    document["_id"] = result.inserted_id

    logger.info(
        "Scheduled %s group %s on %s %s in room %s (%s)",
        course.get("courseNumber"),
        next_group_number,
        day,
        document["startTime"],
        classroom,
        term,
    )
    return serialize_course_group(document, course)


def remove_offering(group_id) -> None:
    """Delete an offering; refused while any student is enrolled."""

    object_id = to_object_id(group_id)
    groups = get_course_groups_collection()
    group = groups.find_one({"_id": object_id}) if object_id else None
    if not group:
        raise NotFoundError("Course group not found")

    result = groups.delete_one({"_id": object_id, "enrolledStudents": {"$size": 0}})
    if result.deleted_count == 0:
        if groups.find_one({"_id": object_id}, projection={"_id": 1}) is None:
            raise NotFoundError("Course group not found")
        raise ConflictError(
            "Cannot remove course with enrolled students. "
            "Please remove students first."
        )
    logger.info("Removed course group %s", object_id)


def _departments_by_id(ids) -> Dict[Any, Dict[str, Any]]:
    ids = [value for value in ids if value is not None]
    if not ids:
        return {}
    cursor = get_departments_collection().find({"_id": {"$in": ids}})
    return {doc["_id"]: serialize_department(doc) for doc in cursor}


def denormalize(groups: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Serialize offerings with their course and department fields inlined."""

    course_ids = {doc.get("course") for doc in groups if doc.get("course")}
    courses_map: Dict[Any, Dict[str, Any]] = {}
    if course_ids:
        cursor = get_courses_collection().find({"_id": {"$in": list(course_ids)}})
        courses_map = {doc["_id"]: doc for doc in cursor}

    departments = _departments_by_id(
        {course.get("department") for course in courses_map.values()}
    )

    payload = []
    for doc in groups:
        course = courses_map.get(doc.get("course"))
        department = departments.get(course.get("department")) if course else None
        payload.append(serialize_course_group(doc, course or {}, department))
    return payload


def list_schedule(term: Term) -> List[Dict[str, Any]]:
    """Return every offering of ``term`` in weekly order."""

    groups = sorted(
        get_course_groups_collection().find(term.as_filter()), key=weekly_order
    )
    return denormalize(groups)


def search_courses(query: str) -> List[Dict[str, Any]]:
    """Case-insensitive match against course number, name and description."""

    pattern = {"$regex": re.escape(query), "$options": "i"}
    cursor = get_courses_collection().find(
        {
            "$or": [
                {"courseNumber": pattern},
                {"name": pattern},
                {"description": pattern},
            ]
        },
        sort=[("courseNumber", 1)],
    )
    courses = list(cursor)
    departments = _departments_by_id({course.get("department") for course in courses})

    results = []
    for course in courses:
        department = departments.get(course.get("department"))
        results.append(
            serialize_course(course, department["name"] if department else None)
        )
    return results


__all__ = [
    "validate_offering_payload",
    "find_course",
    "create_offering",
    "remove_offering",
    "denormalize",
    "list_schedule",
    "search_courses",
]
