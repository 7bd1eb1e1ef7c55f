"""Creating, looking up and deleting student records (identity + profile)."""

from __future__ import annotations

import datetime
import logging
from typing import Any, Dict, Tuple

from bson import ObjectId
from pymongo.errors import PyMongoError

from . import config
from .db import (
    get_client,
    get_course_groups_collection,
    get_departments_collection,
    get_grades_collection,
    get_secretaries_collection,
    get_students_collection,
    get_users_collection,
    to_object_id,
)
from .errors import ConflictError, NotFoundError, ValidationError
from .security import Role, hash_password
from .utils.text import clean_string

logger = logging.getLogger(__name__)

CLASS_YEARS = ("first year", "second year", "third year", "fourth year", "graduate")
PROGRAMS = ("undergraduate", "master's", "PhD")

_NOT_PROVIDED = "Not Provided"


def validate_student_payload(
    payload: Dict[str, Any] | None,
) -> Tuple[Dict[str, Any], Dict[str, str]]:
    if not isinstance(payload, dict):
        return {}, {"_global": "Request body must be JSON."}

    errors: Dict[str, str] = {}
    cleaned: Dict[str, Any] = {}

    def require_field(field: str, message: str) -> bool:
        if clean_string(payload.get(field)) == "":
            errors[field] = message
            return False
        cleaned[field] = clean_string(payload.get(field))
        return True

    require_field("name", "Name is required.")
    require_field("studentNumber", "Student number is required.")
    require_field("idNumber", "ID number is required.")

    if require_field("email", "Email is required."):
        email = cleaned["email"]
        if "@" not in email or "." not in email.split("@")[-1]:
            errors["email"] = "Enter a valid email address."
        else:
            cleaned["email"] = email.lower()

    password = payload.get("password")
    if not isinstance(password, str) or not password:
        errors["password"] = "Password is required."
    else:
        cleaned["password"] = password

    for field in ("currentAddress", "permanentAddress", "currentPhone", "permanentPhone"):
        cleaned[field] = clean_string(payload.get(field)) or _NOT_PROVIDED

    cleaned["gender"] = clean_string(payload.get("gender")) or "Not Specified"

    class_year = clean_string(payload.get("class")) or CLASS_YEARS[0]
    if class_year not in CLASS_YEARS:
        errors["class"] = "Class must be one of: " + ", ".join(CLASS_YEARS) + "."
    cleaned["class"] = class_year

    program = clean_string(payload.get("program")) or PROGRAMS[0]
    if program not in PROGRAMS:
        errors["program"] = "Program must be one of: " + ", ".join(PROGRAMS) + "."
    cleaned["program"] = program

    birth_raw = clean_string(payload.get("dateOfBirth"))
    if birth_raw:
        try:
            birth_date = datetime.date.fromisoformat(birth_raw[:10])
            cleaned["dateOfBirth"] = datetime.datetime.combine(
                birth_date, datetime.time.min
            )
        except ValueError:
            errors["dateOfBirth"] = "Date of birth must be an ISO date (YYYY-MM-DD)."

    minor_raw = clean_string(payload.get("minorDepartment"))
    if minor_raw:
        cleaned["minorDepartment"] = minor_raw

    return cleaned, errors


def find_secretary(user: Dict[str, Any]) -> Dict[str, Any]:
    secretary = get_secretaries_collection().find_one({"user": user["_id"]})
    if not secretary:
        raise ValidationError(
            "Secretary not found or not properly associated with a department"
        )
    if not secretary.get("department"):
        raise ValidationError("Secretary is not associated with any department")
    return secretary


def load_student_by_number(student_number: str) -> Dict[str, Any]:
    student = get_students_collection().find_one(
        {"studentNumber": clean_string(student_number)}
    )
    if not student:
        raise NotFoundError("Student not found")
    return student


def load_student_for_user(user: Dict[str, Any]) -> Dict[str, Any]:
    student = get_students_collection().find_one({"user": user["_id"]})
    if not student:
        raise NotFoundError("Student not found")
    return student


def _resolve_department(reference: str):
    """Return the id of the department named by ObjectId or department code."""

    departments = get_departments_collection()
    object_id = to_object_id(reference)
    query = {"_id": object_id} if object_id else {"departmentCode": reference}
    department = departments.find_one(query, projection={"_id": 1})
    if not department:
        raise ValidationError(
            "Validation failed.", {"minorDepartment": "Unknown department."}
        )
    return department["_id"]


def _insert_with_transaction(user_doc, student_doc) -> None:
    users = get_users_collection()
    students = get_students_collection()

    def _write(session):
        users.insert_one(user_doc, session=session)
        students.insert_one(student_doc, session=session)

    with get_client().start_session() as session:
        session.with_transaction(_write)


def _insert_with_compensation(user_doc, student_doc) -> None:
    users = get_users_collection()
    users.insert_one(user_doc)
    try:
        get_students_collection().insert_one(student_doc)
    except PyMongoError:
        logger.exception(
            "Failed to save student %s; removing identity %s",
            student_doc.get("studentNumber"),
            user_doc["_id"],
        )
        try:
            users.delete_one({"_id": user_doc["_id"]})
        except PyMongoError:
            logger.exception("Error cleaning up identity %s", user_doc["_id"])
        raise


def create_student(
    payload: Dict[str, Any] | None, secretary_user: Dict[str, Any]
) -> Dict[str, Any]:
    """Provision an identity and a student profile in the secretary's department."""

    cleaned, errors = validate_student_payload(payload)
    if errors:
        details = {k: v for k, v in errors.items() if k != "_global"}
        raise ValidationError(
            errors.get("_global", "Missing required fields"), details or None
        )

    students = get_students_collection()
    existing = students.find_one(
        {
            "$or": [
                {"studentNumber": cleaned["studentNumber"]},
                {"idNumber": cleaned["idNumber"]},
            ]
        },
        projection={"_id": 1},
    )
    if existing:
        raise ConflictError("Student number or ID number already exists")

    users = get_users_collection()
    if users.find_one({"email": cleaned["email"]}, projection={"_id": 1}):
        raise ConflictError("Email already exists")
    if users.find_one({"username": cleaned["studentNumber"]}, projection={"_id": 1}):
        raise ConflictError("Student number or ID number already exists")

    secretary = find_secretary(secretary_user)

    if "minorDepartment" in cleaned:
        cleaned["minorDepartment"] = _resolve_department(cleaned["minorDepartment"])

    now = datetime.datetime.now(datetime.timezone.utc)
    user_doc = {
        "_id": ObjectId(),
        "username": cleaned["studentNumber"],
        "email": cleaned["email"],
        "password": hash_password(cleaned.pop("password")),
        "role": Role.STUDENT.value,
        "createdAt": now,
    }
    student_doc = {key: value for key, value in cleaned.items() if key != "email"}
    student_doc.update(
        {
            "_id": ObjectId(),
            "mainDepartment": secretary["department"],
            "user": user_doc["_id"],
            "createdAt": now,
        }
    )

    if config.use_transactions():
        _insert_with_transaction(user_doc, student_doc)
    else:
        _insert_with_compensation(user_doc, student_doc)

    logger.info(
        "Secretary %s created student %s",
        secretary.get("idNumber"),
        student_doc["studentNumber"],
    )
    return {
        "name": student_doc["name"],
        "studentNumber": student_doc["studentNumber"],
        "email": user_doc["email"],
    }


def _delete_cascade(student, session=None) -> None:
    options = {"session": session} if session is not None else {}
    get_course_groups_collection().update_many(
        {"enrolledStudents": student["_id"]},
        {"$pull": {"enrolledStudents": student["_id"]}},
        **options,
    )
    get_grades_collection().delete_many({"student": student["_id"]}, **options)
    get_users_collection().delete_one({"_id": student.get("user")}, **options)
    get_students_collection().delete_one({"_id": student["_id"]}, **options)


def delete_student(student_number: str) -> None:
    """Remove a student from every roster, then delete grades, identity and profile."""

    student = load_student_by_number(student_number)

    if config.use_transactions():
        with get_client().start_session() as session:
            session.with_transaction(lambda s: _delete_cascade(student, s))
    else:
        _delete_cascade(student)

    logger.info("Deleted student %s", student.get("studentNumber"))


__all__ = [
    "CLASS_YEARS",
    "PROGRAMS",
    "validate_student_payload",
    "find_secretary",
    "load_student_by_number",
    "load_student_for_user",
    "create_student",
    "delete_student",
]
