"""Load reference and sample documents into the configured database."""

from __future__ import annotations

import datetime
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from bson import ObjectId

from .db import (
    get_course_groups_collection,
    get_courses_collection,
    get_departments_collection,
    get_grades_collection,
    get_secretaries_collection,
    get_students_collection,
    get_users_collection,
)
from .scheduling import OFFERING_LENGTH_HOURS, Term, format_hour, parse_hour
from .security import Role, hash_password

logger = logging.getLogger(__name__)

_COLLECTIONS = (
    get_departments_collection,
    get_courses_collection,
    get_users_collection,
    get_secretaries_collection,
    get_students_collection,
    get_course_groups_collection,
    get_grades_collection,
)

_ACCOUNT_FIELDS = ("username", "email", "password")


def read_seed_file(path: Path) -> Dict[str, List[Dict[str, Any]]]:
    with path.open("r", encoding="utf-8") as seed_file:
        data = json.load(seed_file)
    if not isinstance(data, dict):
        raise ValueError("Seed file must contain an object of collections")
    for name, documents in data.items():
        if not isinstance(documents, list):
            raise ValueError(f"Seed data for '{name}' must be a list")
    return data


def _create_account(entry: Dict[str, Any], role: Role) -> ObjectId:
    user = {
        "_id": ObjectId(),
        "username": entry["username"],
        "email": entry["email"].lower(),
        "password": hash_password(entry["password"]),
        "role": role.value,
    }
    get_users_collection().insert_one(user)
    return user["_id"]


def _profile(entry: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in entry.items() if key not in _ACCOUNT_FIELDS}


def load_seed(data: Dict[str, List[Dict[str, Any]]], term: Term) -> Dict[str, int]:
    """Replace every collection with ``data`` and return per-collection counts.

    References are written by natural key in the seed file: departments by
    ``departmentCode``, courses by ``courseNumber``, students by
    ``studentNumber`` and offerings by ``[courseNumber, groupNumber]``.
    Offerings are scheduled in ``term``.
    """

    for getter in _COLLECTIONS:
        getter().delete_many({})

    departments: Dict[str, ObjectId] = {}
    for entry in data.get("departments", []):
        result = get_departments_collection().insert_one(dict(entry))
        departments[entry["departmentCode"]] = result.inserted_id

    courses: Dict[str, ObjectId] = {}
    for entry in data.get("courses", []):
        document = dict(entry, department=departments[entry["department"]])
        result = get_courses_collection().insert_one(document)
        courses[entry["courseNumber"]] = result.inserted_id

    for entry in data.get("secretaries", []):
        document = _profile(entry)
        document["department"] = departments[entry["department"]]
        document["user"] = _create_account(entry, Role.SECRETARY)
        get_secretaries_collection().insert_one(document)

    students: Dict[str, ObjectId] = {}
    for entry in data.get("students", []):
        document = _profile(entry)
        if entry.get("dateOfBirth"):
            document["dateOfBirth"] = datetime.datetime.fromisoformat(
                entry["dateOfBirth"]
            )
        document["mainDepartment"] = departments[entry["mainDepartment"]]
        if entry.get("minorDepartment"):
            document["minorDepartment"] = departments[entry["minorDepartment"]]
        document["user"] = _create_account(entry, Role.STUDENT)
        result = get_students_collection().insert_one(document)
        students[entry["studentNumber"]] = result.inserted_id

    groups: Dict[tuple, ObjectId] = {}
    for entry in data.get("courseGroups", []):
        start_hour = parse_hour(entry["startTime"])
        document = dict(
            entry,
            course=courses[entry["course"]],
            semester=term.semester,
            year=term.year,
            startTime=format_hour(start_hour),
            endTime=format_hour(start_hour + OFFERING_LENGTH_HOURS),
            instructor=entry.get("instructor") or "TBD",
            enrolledStudents=[
                students[number] for number in entry.get("enrolledStudents", [])
            ],
        )
        result = get_course_groups_collection().insert_one(document)
        groups[(entry["course"], entry["groupNumber"])] = result.inserted_id

    for entry in data.get("grades", []):
        course_number, group_number = entry["courseGroup"]
        get_grades_collection().insert_one(
            {
                "student": students[entry["student"]],
                "courseGroup": groups[(course_number, group_number)],
                "grade": entry["grade"],
            }
        )

    counts = {getter().name: getter().count_documents({}) for getter in _COLLECTIONS}
    for name, count in counts.items():
        logger.info("Loaded %d document(s) into '%s'", count, name)
    return counts


__all__ = ["read_seed_file", "load_seed"]
