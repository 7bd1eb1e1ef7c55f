"""MongoDB helpers for the application."""

import datetime

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, IndexModel, MongoClient
from pymongo.collection import Collection

from .config import get_db_name, get_mongo_uri

_MONGO_CLIENT = None
_MONGO_DB = None

# Names of collections whose indexes were created during this process.
_INDEXED = set()


def get_client():
    """Create (or reuse) a MongoDB client using the configured URI."""

    global _MONGO_CLIENT

    if _MONGO_CLIENT is None:
        _MONGO_CLIENT = MongoClient(get_mongo_uri(), serverSelectionTimeoutMS=5000)
    return _MONGO_CLIENT


def get_db():
    """Return the application's MongoDB database instance."""

    global _MONGO_DB

    if _MONGO_DB is None:
        _MONGO_DB = get_client()[get_db_name()]
    return _MONGO_DB


def set_client(client, db_name=None):
    """Use an already constructed client instead of one built from config."""

    global _MONGO_CLIENT, _MONGO_DB

    _MONGO_CLIENT = client
    _MONGO_DB = client[db_name or get_db_name()]
    _INDEXED.clear()
    return _MONGO_DB


_INDEXES = {
    "users": [
        IndexModel([("username", ASCENDING)], name="unique_username", unique=True),
        IndexModel([("email", ASCENDING)], name="unique_email", unique=True),
    ],
    "students": [
        IndexModel(
            [("studentNumber", ASCENDING)], name="unique_student_number", unique=True
        ),
        IndexModel([("idNumber", ASCENDING)], name="unique_id_number", unique=True),
        IndexModel([("user", ASCENDING)], name="user_idx"),
        IndexModel([("mainDepartment", ASCENDING)], name="main_department_idx"),
    ],
    "secretaries": [
        IndexModel([("idNumber", ASCENDING)], name="unique_id_number", unique=True),
        IndexModel([("user", ASCENDING)], name="user_idx"),
    ],
    "departments": [
        IndexModel([("name", ASCENDING)], name="unique_name", unique=True),
        IndexModel(
            [("departmentCode", ASCENDING)], name="unique_department_code", unique=True
        ),
    ],
    "courses": [
        IndexModel(
            [("courseNumber", ASCENDING)], name="unique_course_number", unique=True
        ),
        IndexModel([("department", ASCENDING)], name="department_idx"),
    ],
    "course_groups": [
        IndexModel(
            [
                ("semester", ASCENDING),
                ("year", ASCENDING),
                ("day", ASCENDING),
                ("classroom", ASCENDING),
            ],
            name="term_day_classroom",
        ),
        IndexModel(
            [("course", ASCENDING), ("semester", ASCENDING), ("year", ASCENDING)],
            name="course_term",
        ),
        IndexModel([("enrolledStudents", ASCENDING)], name="enrolled_students_idx"),
    ],
    "grades": [
        IndexModel(
            [("student", ASCENDING), ("courseGroup", ASCENDING)],
            name="unique_student_course_group",
            unique=True,
        ),
    ],
}


def _collection(name: str) -> Collection:
    collection = get_db()[name]
    if name not in _INDEXED:
        collection.create_indexes(_INDEXES[name])
        _INDEXED.add(name)
    return collection


def get_users_collection() -> Collection:
    """Return the collection that stores login identities."""

    return _collection("users")


def get_students_collection() -> Collection:
    """Return the collection that stores student profiles."""

    return _collection("students")


def get_secretaries_collection() -> Collection:
    return _collection("secretaries")


def get_departments_collection() -> Collection:
    return _collection("departments")


def get_courses_collection() -> Collection:
    """Return the course catalog collection."""

    return _collection("courses")


def get_course_groups_collection() -> Collection:
    """Return the collection of scheduled offerings (course groups)."""

    return _collection("course_groups")


def get_grades_collection() -> Collection:
    return _collection("grades")


def to_object_id(value):
    """Return ``value`` as an ObjectId, or None when it is not a valid id."""

    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def _json_value(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.isoformat()
    if isinstance(value, list):
        return [_json_value(item) for item in value]
    if isinstance(value, dict):
        return {key: _json_value(item) for key, item in value.items()}
    return value


def serialize_department(document):
    """Serialize a department document (reference data)."""

    return {
        "_id": str(document.get("_id", "")),
        "name": document.get("name"),
        "departmentCode": document.get("departmentCode"),
        "officeNumber": document.get("officeNumber"),
        "officePhone": document.get("officePhone"),
        "faculty": document.get("faculty"),
    }


def serialize_course(document, department=None):
    """Serialize a catalog course; ``department`` replaces the raw reference."""

    hours = document.get("semesterHours")
    try:
        hours_value = int(hours) if hours is not None else None
    except (TypeError, ValueError):
        hours_value = None

    return {
        "_id": str(document.get("_id", "")),
        "courseNumber": document.get("courseNumber"),
        "name": document.get("name"),
        "description": document.get("description"),
        "level": document.get("level"),
        "semesterHours": hours_value,
        "department": department
        if department is not None
        else _json_value(document.get("department")),
    }


def serialize_course_group(document, course=None, department=None):
    """Serialize an offering, denormalizing course fields when ``course`` is given."""

    enrolled = document.get("enrolledStudents") or []
    payload = {
        "_id": str(document.get("_id", "")),
        "course": _json_value(document.get("course")),
        "semester": document.get("semester"),
        "year": document.get("year"),
        "groupNumber": document.get("groupNumber"),
        "day": document.get("day"),
        "startTime": document.get("startTime"),
        "endTime": document.get("endTime"),
        "classroom": document.get("classroom"),
        "instructor": document.get("instructor"),
        "capacity": document.get("capacity"),
        "enrolledStudents": [str(student_id) for student_id in enrolled],
    }

    if course is not None:
        payload["courseNumber"] = course.get("courseNumber")
        payload["name"] = course.get("name")
        payload["description"] = course.get("description")
        payload["level"] = course.get("level")
        payload["semesterHours"] = course.get("semesterHours")
        payload["department"] = (
            department
            if department is not None
            else _json_value(course.get("department"))
        )
    return payload


def serialize_student(document, user=None):
    """Convert a student profile into a JSON-serialisable dict."""

    student = {
        key: _json_value(value)
        for key, value in document.items()
        if key not in ("_id", "password")
    }
    student["_id"] = str(document.get("_id", ""))
    if user is not None:
        student["user"] = serialize_user(user)
    return student


def serialize_user(document):
    """Serialize an identity record without its password hash."""

    return {
        "_id": str(document.get("_id", "")),
        "username": document.get("username"),
        "email": document.get("email"),
        "role": document.get("role"),
    }


def serialize_grade(document):
    return {
        "_id": str(document.get("_id", "")),
        "student": _json_value(document.get("student")),
        "courseGroup": _json_value(document.get("courseGroup")),
        "grade": document.get("grade"),
    }


__all__ = [
    "get_client",
    "get_db",
    "set_client",
    "to_object_id",
    "get_users_collection",
    "get_students_collection",
    "get_secretaries_collection",
    "get_departments_collection",
    "get_courses_collection",
    "get_course_groups_collection",
    "get_grades_collection",
    "serialize_department",
    "serialize_course",
    "serialize_course_group",
    "serialize_student",
    "serialize_user",
    "serialize_grade",
]
