"""Adding students to and removing them from course offerings."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from pymongo import ReturnDocument

from .db import (
    get_course_groups_collection,
    get_courses_collection,
    to_object_id,
)
from .errors import ConflictError, NotFoundError
from .scheduling import Term, TimeSlot, find_conflict, has_conflict, weekly_order

logger = logging.getLogger(__name__)


def load_course_group(group_id) -> Dict[str, Any]:
    object_id = to_object_id(group_id)
    group = (
        get_course_groups_collection().find_one({"_id": object_id})
        if object_id
        else None
    )
    if not group:
        raise NotFoundError("Course not found")
    return group


def student_offerings(student_id, term: Term) -> List[Dict[str, Any]]:
    """Return the offerings of ``term`` that list the student in their roster."""

    query = {"enrolledStudents": student_id, **term.as_filter()}
    return sorted(get_course_groups_collection().find(query), key=weekly_order)


def _describe(group: Dict[str, Any]) -> str:
    course = get_courses_collection().find_one(
        {"_id": group.get("course")}, projection={"courseNumber": 1}
    )
    label = course.get("courseNumber") if course else "another course"
    return f"{label} ({group['day']} {group['startTime']}-{group['endTime']})"


def _other_offerings(group: Dict[str, Any], student_id) -> List[Dict[str, Any]]:
    term = Term(group["semester"], group["year"])
    return [
        other
        for other in student_offerings(student_id, term)
        if other["_id"] != group["_id"]
    ]


def _check_time_conflict(group: Dict[str, Any], student_id) -> None:
    others = _other_offerings(group, student_id)
    clash = find_conflict(TimeSlot.from_document(group), others)
    if clash is not None:
        raise ConflictError(f"Time conflict with {_describe(clash)}")


def enroll(
    group_id, student: Dict[str, Any], *, self_service: bool = False
) -> Dict[str, Any]:
    """Add ``student`` to the offering's roster and return the updated offering.

    Checks run in order and the first failure wins: the offering exists, the
    student is not already enrolled, there is a free seat and the offering
    does not overlap another offering the student holds in the same term.
    The roster write is conditional on the same membership and capacity
    rules, so concurrent requests can never push it past capacity. The time
    conflict rule cannot be part of that write; it is checked again once the
    student is on the roster and the enrollment is backed out if another
    request added an overlapping offering in between. When two such requests
    race, both may be backed out.

    ``self_service`` selects the wording students see for a duplicate.
    """

    group = load_course_group(group_id)
    student_id = student["_id"]
    enrolled = group.get("enrolledStudents") or []
    duplicate = (
        "Already enrolled in this course"
        if self_service
        else "Student is already enrolled in this course"
    )

    if student_id in enrolled:
        raise ConflictError(duplicate)

    capacity = int(group.get("capacity") or 0)
    if len(enrolled) >= capacity:
        raise ConflictError("Course is full")

    _check_time_conflict(group, student_id)

    updated = get_course_groups_collection().find_one_and_update(
        {
            "_id": group["_id"],
            "capacity": group.get("capacity"),
            "enrolledStudents": {"$ne": student_id},
            f"enrolledStudents.{capacity - 1}": {"$exists": False},
        },
        {"$push": {"enrolledStudents": student_id}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        # Another request changed the roster between the checks and the write.
        current = load_course_group(group["_id"])
        if student_id in (current.get("enrolledStudents") or []):
            raise ConflictError(duplicate)
        logger.info(
            "Enrollment of %s in %s lost a race for the last seat",
            student.get("studentNumber"),
            group["_id"],
        )
        raise ConflictError("Course is full")

    slot = TimeSlot.from_document(updated)
    others = [
        TimeSlot.from_document(doc) for doc in _other_offerings(updated, student_id)
    ]
    if has_conflict(slot, others):
        get_course_groups_collection().update_one(
            {"_id": group["_id"]}, {"$pull": {"enrolledStudents": student_id}}
        )
        logger.info(
            "Backed out enrollment of %s in %s after an overlapping enrollment",
            student.get("studentNumber"),
            group["_id"],
        )
        raise ConflictError("Time conflict with existing course")

    logger.info(
        "Enrolled student %s in course group %s",
        student.get("studentNumber"),
        group["_id"],
    )
    return updated


def drop(group_id, student: Dict[str, Any]) -> Dict[str, Any]:
    """Remove ``student`` from the offering's roster."""

    group = load_course_group(group_id)
    student_id = student["_id"]

    updated = get_course_groups_collection().find_one_and_update(
        {"_id": group["_id"], "enrolledStudents": student_id},
        {"$pull": {"enrolledStudents": student_id}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise ConflictError("Not enrolled in this course")

    logger.info(
        "Removed student %s from course group %s",
        student.get("studentNumber"),
        group["_id"],
    )
    return updated


__all__ = ["load_course_group", "student_offerings", "enroll", "drop"]
