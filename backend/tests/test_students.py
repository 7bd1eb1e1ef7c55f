"""Student provisioning, lookup, search and deletion."""

from __future__ import annotations

import unittest
from unittest import mock

from pymongo.errors import PyMongoError

from fixtures import SISTestCase

from sis import db, provisioning
from sis.security import verify_password


def student_payload(**overrides):
    payload = {
        "name": "Grace Hopper",
        "studentNumber": "2024200",
        "idNumber": "22200000001",
        "email": "Grace.Hopper@Example.com",
        "password": "s3cret-pass",
        "dateOfBirth": "2004-05-17",
    }
    payload.update(overrides)
    return payload


class AddStudentTestCase(SISTestCase):
    def post(self, payload):
        return self.client.post(
            "/api/students", json=payload, headers=self.secretary_headers()
        )

    def test_creates_identity_and_profile(self) -> None:
        response = self.post(student_payload(minorDepartment="MATH"))
        self.assertEqual(201, response.status_code, response.get_json())

        body = response.get_json()
        self.assertEqual("Student added successfully", body["message"])
        self.assertEqual(
            {
                "name": "Grace Hopper",
                "studentNumber": "2024200",
                "email": "grace.hopper@example.com",
            },
            body["student"],
        )

        student = self.database["students"].find_one({"studentNumber": "2024200"})
        user = self.database["users"].find_one({"_id": student["user"]})
        self.assertEqual("student", user["role"])
        self.assertEqual("2024200", user["username"])
        self.assertTrue(verify_password(user["password"], "s3cret-pass"))
        self.assertNotIn("password", student)
        self.assertEqual(self.cs_id, student["mainDepartment"])
        self.assertEqual(self.math_id, student["minorDepartment"])
        self.assertEqual("Not Provided", student["currentAddress"])
        self.assertEqual("Not Specified", student["gender"])
        self.assertEqual("first year", student["class"])
        self.assertEqual("undergraduate", student["program"])
        self.assertEqual(2004, student["dateOfBirth"].year)

    def test_new_student_can_log_in(self) -> None:
        self.assertEqual(201, self.post(student_payload()).status_code)

        response = self.client.post(
            "/api/auth/login",
            json={"idNumber": "22200000001", "password": "s3cret-pass"},
        )
        self.assertEqual(200, response.status_code)
        self.assertEqual("2024200", response.get_json()["studentNumber"])

    def test_duplicates_leave_no_partial_records(self) -> None:
        self.add_student("2024100", "11100000001")
        before = (self.count("users"), self.count("students"))

        cases = [
            (
                student_payload(studentNumber="2024100"),
                "Student number or ID number already exists",
            ),
            (
                student_payload(idNumber="11100000001"),
                "Student number or ID number already exists",
            ),
            (student_payload(email="2024100@example.com"), "Email already exists"),
        ]
        for payload, message in cases:
            with self.subTest(message=message, payload=payload):
                response = self.post(payload)
                self.assertEqual(400, response.status_code)
                self.assertEqual(message, response.get_json()["message"])
                self.assertEqual(
                    before, (self.count("users"), self.count("students"))
                )

    def test_missing_required_fields(self) -> None:
        response = self.post({"name": "No Details"})
        self.assertEqual(400, response.status_code)
        details = response.get_json()["details"]
        for field in ("studentNumber", "idNumber", "email", "password"):
            self.assertIn(field, details)
        self.assertEqual(0, self.count("students"))

    def test_rejects_body_that_is_not_an_object(self) -> None:
        response = self.post(["x"])
        self.assertEqual(400, response.status_code)
        self.assertEqual("Request body must be JSON.", response.get_json()["message"])
        self.assertEqual(0, self.count("students"))

    def test_rejects_unknown_enumerations_and_minor(self) -> None:
        for overrides, field in [
            ({"class": "fifth year"}, "class"),
            ({"program": "bootcamp"}, "program"),
            ({"dateOfBirth": "17/05/2004"}, "dateOfBirth"),
            ({"minorDepartment": "HIST"}, "minorDepartment"),
        ]:
            with self.subTest(field=field):
                response = self.post(student_payload(**overrides))
                self.assertEqual(400, response.status_code)
                self.assertIn(field, response.get_json()["details"])
        self.assertEqual(0, self.count("students"))
        self.assertEqual(1, self.count("users"))

    def test_profile_failure_removes_the_identity(self) -> None:
        real_students = db.get_students_collection()
        failing = mock.Mock(wraps=real_students)
        failing.insert_one.side_effect = PyMongoError("write failed")

        with mock.patch.object(
            provisioning, "get_students_collection", return_value=failing
        ):
            response = self.post(student_payload())

        self.assertEqual(503, response.status_code)
        self.assertEqual(0, self.count("users", {"username": "2024200"}))
        self.assertEqual(0, self.count("students"))

    def test_transactional_write_uses_a_session(self) -> None:
        session = mock.MagicMock()
        session.__enter__.return_value = session
        session.with_transaction.side_effect = lambda callback: callback(None)
        client = mock.Mock()
        client.start_session.return_value = session

        with mock.patch.object(provisioning.config, "use_transactions", return_value=True):
            with mock.patch.object(provisioning, "get_client", return_value=client):
                created = provisioning.create_student(
                    student_payload(), self.database["users"].find_one(
                        {"_id": self.secretary_user_id}
                    )
                )

        self.assertEqual("2024200", created["studentNumber"])
        client.start_session.assert_called_once_with()
        session.with_transaction.assert_called_once()
        self.assertEqual(1, self.count("students", {"studentNumber": "2024200"}))

    def test_requires_secretary_department(self) -> None:
        self.database["secretaries"].update_one(
            {"user": self.secretary_user_id}, {"$unset": {"department": ""}}
        )
        response = self.post(student_payload())
        self.assertEqual(400, response.status_code)
        self.assertEqual(
            "Secretary is not associated with any department",
            response.get_json()["message"],
        )


class StudentLookupTestCase(SISTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.ada = self.add_student("2024100", "11100000001", "Ada Lovelace")
        self.alan = self.add_student("2024101", "11100000002", "Alan Turing")
        self.adele = self.add_student("2024102", "11100000003", "Adele Goldberg")

    def search(self, query_string):
        return self.client.get(
            f"/api/students/search?{query_string}", headers=self.secretary_headers()
        )

    def test_search_matches_any_field_by_default(self) -> None:
        response = self.search("q=ad")
        self.assertEqual(200, response.status_code)
        body = response.get_json()
        self.assertEqual(2, body["total"])
        self.assertEqual(
            ["Ada Lovelace", "Adele Goldberg"], [item["name"] for item in body["items"]]
        )

        by_number = self.search("query=2024101").get_json()
        self.assertEqual(["Alan Turing"], [item["name"] for item in by_number["items"]])

    def test_search_by_criteria_and_pages(self) -> None:
        body = self.search("q=2024&criteria=studentNumber&page_size=2&sort=-studentNumber").get_json()
        self.assertEqual(3, body["total"])
        self.assertEqual(["2024102", "2024101"], [i["studentNumber"] for i in body["items"]])
        self.assertTrue(body["has_next"])

        by_name = self.search("q=2024&criteria=name").get_json()
        self.assertEqual(0, by_name["total"])

    def test_search_rejects_bad_parameters(self) -> None:
        for query_string in ["", "q=ad&criteria=email", "q=ad&page=0", "q=ad&sort=email"]:
            with self.subTest(query_string=query_string):
                self.assertEqual(400, self.search(query_string).status_code)

    def test_details_hide_the_password(self) -> None:
        self.add_group("CS101", "Monday", "9:00", enrolled=[self.ada["_id"]])

        response = self.client.get(
            "/api/students/2024100/details", headers=self.secretary_headers()
        )
        self.assertEqual(200, response.status_code)
        body = response.get_json()
        self.assertEqual("Ada Lovelace", body["student"]["name"])
        self.assertEqual("2024100@example.com", body["student"]["user"]["email"])
        self.assertNotIn("password", body["student"]["user"])
        self.assertEqual(["CS101"], [c["courseNumber"] for c in body["enrolledCourses"]])

    def test_unknown_student(self) -> None:
        response = self.client.get(
            "/api/students/1999999/details", headers=self.secretary_headers()
        )
        self.assertEqual(404, response.status_code)
        self.assertEqual("Student not found", response.get_json()["message"])


class DeleteStudentTestCase(SISTestCase):
    def test_cascades_to_rosters_grades_and_identity(self) -> None:
        student = self.add_student("2024100", "11100000001")
        other = self.add_student("2024101", "11100000002")
        group_id = self.add_group(
            "CS101", "Monday", "9:00", enrolled=[student["_id"], other["_id"]]
        )
        self.database["grades"].insert_one(
            {"student": student["_id"], "courseGroup": group_id, "grade": "AA"}
        )

        response = self.client.delete(
            "/api/students/2024100", headers=self.secretary_headers()
        )
        self.assertEqual(200, response.status_code)
        self.assertEqual("Student deleted successfully", response.get_json()["message"])

        self.assertEqual([other["_id"]], self.group(group_id)["enrolledStudents"])
        self.assertEqual(0, self.count("students", {"_id": student["_id"]}))
        self.assertEqual(0, self.count("users", {"_id": student["user"]}))
        self.assertEqual(0, self.count("grades"))
        self.assertEqual(1, self.count("students"))

    def test_unknown_student(self) -> None:
        response = self.client.delete(
            "/api/students/1999999", headers=self.secretary_headers()
        )
        self.assertEqual(404, response.status_code)


if __name__ == "__main__":
    unittest.main()
