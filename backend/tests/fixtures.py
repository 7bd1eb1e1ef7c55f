"""Shared test case: an in-memory database, the Flask client and sample data."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path
from typing import Any, Dict, Iterable

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

import mongomock
from bson import ObjectId

from sis import db
from sis.app import app
from sis.scheduling import Term, format_hour, parse_hour
from sis.security import Role, hash_password

TERM = Term("Fall", 2030)
PASSWORD = "password123"
PASSWORD_HASH = hash_password(PASSWORD)

SECRETARY_ID_NUMBER = "90000000001"


class SISTestCase(unittest.TestCase):
    """Fresh database per test with two departments, three courses and a secretary."""

    def setUp(self) -> None:
        self.database = db.set_client(mongomock.MongoClient(), "sis_test")
        app.config["TESTING"] = True
        self._saved_term = app.config["SIS_TERM"]
        app.config["SIS_TERM"] = TERM
        self.client = app.test_client()

        self.cs_id = self._insert(
            "departments",
            {
                "name": "Computer Science",
                "departmentCode": "CS",
                "officeNumber": "A-101",
                "officePhone": "(555) 123-4567",
                "faculty": "Engineering",
            },
        )
        self.math_id = self._insert(
            "departments",
            {
                "name": "Mathematics",
                "departmentCode": "MATH",
                "officeNumber": "B-201",
                "officePhone": "(555) 123-4568",
                "faculty": "Science",
            },
        )
        self.courses = {
            "CS101": self._course("CS101", "Introduction to Programming", 3, self.cs_id),
            "CS201": self._course("CS201", "Data Structures", 4, self.cs_id),
            "MATH101": self._course("MATH101", "Calculus I", 4, self.math_id),
        }

        self.secretary_user_id = self.add_user(
            "cs.secretary", "cs.secretary@example.com", Role.SECRETARY
        )
        self._insert(
            "secretaries",
            {
                "name": "CS Secretary",
                "idNumber": SECRETARY_ID_NUMBER,
                "department": self.cs_id,
                "user": self.secretary_user_id,
            },
        )

    def tearDown(self) -> None:
        app.config["SIS_TERM"] = self._saved_term

    def _insert(self, collection: str, document: Dict[str, Any]) -> ObjectId:
        return self.database[collection].insert_one(document).inserted_id

    def _course(self, number: str, name: str, hours: int, department) -> ObjectId:
        return self._insert(
            "courses",
            {
                "courseNumber": number,
                "name": name,
                "description": f"{name} course",
                "semesterHours": hours,
                "level": "Undergraduate",
                "department": department,
            },
        )

    def add_user(self, username: str, email: str, role: Role) -> ObjectId:
        return self._insert(
            "users",
            {
                "username": username,
                "email": email,
                "password": PASSWORD_HASH,
                "role": role.value,
            },
        )

    def add_student(
        self, student_number: str, id_number: str, name: str = "Test Student"
    ) -> Dict[str, Any]:
        user_id = self.add_user(
            student_number, f"{student_number}@example.com", Role.STUDENT
        )
        document = {
            "name": name,
            "studentNumber": student_number,
            "idNumber": id_number,
            "class": "first year",
            "program": "undergraduate",
            "mainDepartment": self.cs_id,
            "user": user_id,
        }
        document["_id"] = self._insert("students", document)
        return document

    def add_group(
        self,
        course_number: str,
        day: str,
        start: str,
        classroom: str = "101",
        *,
        hours: int = 1,
        capacity: int = 30,
        enrolled: Iterable[ObjectId] = (),
        term: Term = TERM,
        group_number: int = 1,
    ) -> ObjectId:
        start_hour = parse_hour(start)
        return self._insert(
            "course_groups",
            {
                "course": self.courses[course_number],
                "semester": term.semester,
                "year": term.year,
                "groupNumber": group_number,
                "day": day,
                "startTime": format_hour(start_hour),
                "endTime": format_hour(start_hour + hours),
                "classroom": classroom,
                "instructor": "Dr. Test",
                "capacity": capacity,
                "enrolledStudents": list(enrolled),
            },
        )

    def group(self, group_id) -> Dict[str, Any]:
        return self.database["course_groups"].find_one({"_id": group_id})

    def count(self, collection: str, query: Dict[str, Any] | None = None) -> int:
        return self.database[collection].count_documents(query or {})

    def login(self, id_number: str, role: Role) -> str:
        response = self.client.post(
            "/api/auth/login",
            json={"idNumber": id_number, "password": PASSWORD, "role": role.value},
        )
        self.assertEqual(200, response.status_code, response.get_json())
        return response.get_json()["token"]

    def secretary_headers(self) -> Dict[str, str]:
        token = self.login(SECRETARY_ID_NUMBER, Role.SECRETARY)
        return {"Authorization": f"Bearer {token}"}

    def student_headers(self, student: Dict[str, Any]) -> Dict[str, str]:
        token = self.login(student["idNumber"], Role.STUDENT)
        return {"Authorization": f"Bearer {token}"}
