"""Ensure protected endpoints require a token with the right role."""

from __future__ import annotations

import unittest

from fixtures import PASSWORD, SECRETARY_ID_NUMBER, SISTestCase

from sis.security import Role

GROUP = "507f1f77bcf86cd799439011"

SECRETARY_ENDPOINTS = [
    ("post", "/api/students"),
    ("get", "/api/students/search?q=ad"),
    ("get", "/api/students/2024100/details"),
    ("delete", "/api/students/2024100"),
    ("get", "/api/students/2024100/courses"),
    ("post", f"/api/students/2024100/courses/{GROUP}"),
    ("delete", f"/api/students/2024100/courses/{GROUP}"),
    ("put", f"/api/students/2024100/grades/{GROUP}"),
    ("post", "/api/courses/schedule"),
    ("delete", f"/api/courses/schedule/{GROUP}"),
    ("post", f"/api/courses/{GROUP}/enroll"),
    ("get", "/api/reports/transcript/2024100"),
    ("get", f"/api/reports/roster/{GROUP}.csv"),
]

STUDENT_ENDPOINTS = [
    ("get", "/api/students/my-schedule"),
    ("get", "/api/students/my-courses"),
    ("post", f"/api/students/my-courses/{GROUP}"),
    ("delete", f"/api/students/my-courses/{GROUP}"),
    ("get", "/api/students/my-grades"),
]


class RoleRequirementTestCase(SISTestCase):
    """Verify that each endpoint is closed to anonymous callers and the other role."""

    def setUp(self) -> None:
        super().setUp()
        self.student = self.add_student("2024100", "11100000001")

    def _call(self, method: str, path: str, headers=None):
        http_method = getattr(self.client, method)
        request_kwargs = {"headers": headers or {}}
        if method in {"post", "put"}:
            request_kwargs["json"] = {}
        return http_method(path, **request_kwargs)

    def test_anonymous_requests_are_unauthorized(self) -> None:
        for method, path in SECRETARY_ENDPOINTS + STUDENT_ENDPOINTS:
            with self.subTest(method=method, path=path):
                response = self._call(method, path)
                self.assertEqual(401, response.status_code)
                self.assertEqual(
                    "Not authorized, no token", response.get_json()["message"]
                )

    def test_secretary_endpoints_reject_students(self) -> None:
        headers = self.student_headers(self.student)
        for method, path in SECRETARY_ENDPOINTS:
            with self.subTest(method=method, path=path):
                response = self._call(method, path, headers)
                self.assertEqual(403, response.status_code)
                self.assertEqual(
                    "User role student is not authorized to access this route",
                    response.get_json()["message"],
                )

    def test_student_endpoints_reject_secretaries(self) -> None:
        headers = self.secretary_headers()
        for method, path in STUDENT_ENDPOINTS:
            with self.subTest(method=method, path=path):
                self.assertEqual(403, self._call(method, path, headers).status_code)

    def test_tampered_token_is_rejected(self) -> None:
        token = self.login(SECRETARY_ID_NUMBER, Role.SECRETARY)
        response = self.client.get(
            "/api/students/search?q=ad",
            headers={"Authorization": f"Bearer {token[:-2]}xx"},
        )
        self.assertEqual(401, response.status_code)
        self.assertEqual("Not authorized, token failed", response.get_json()["message"])

    def test_token_of_deleted_user_is_rejected(self) -> None:
        headers = self.student_headers(self.student)
        self.database["users"].delete_one({"_id": self.student["user"]})

        response = self.client.get("/api/students/my-courses", headers=headers)
        self.assertEqual(401, response.status_code)


class LoginTestCase(SISTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.student = self.add_student("2024100", "11100000001", "Ada Lovelace")

    def test_student_login_is_the_default_role(self) -> None:
        response = self.client.post(
            "/api/auth/login", json={"idNumber": "11100000001", "password": PASSWORD}
        )
        self.assertEqual(200, response.status_code)
        body = response.get_json()
        self.assertEqual("student", body["role"])
        self.assertEqual("Ada Lovelace", body["name"])
        self.assertEqual("2024100", body["studentNumber"])
        self.assertTrue(body["token"])

    def test_secretary_login(self) -> None:
        response = self.client.post(
            "/api/auth/login",
            json={
                "idNumber": SECRETARY_ID_NUMBER,
                "password": PASSWORD,
                "role": "department_secretary",
            },
        )
        self.assertEqual(200, response.status_code)
        self.assertNotIn("studentNumber", response.get_json())

    def test_failed_logins(self) -> None:
        for payload in [
            {"idNumber": "11100000001", "password": "wrong"},
            {"idNumber": "00000000000", "password": PASSWORD},
            {
                "idNumber": "11100000001",
                "password": PASSWORD,
                "role": "department_secretary",
            },
        ]:
            with self.subTest(payload=payload):
                response = self.client.post("/api/auth/login", json=payload)
                self.assertEqual(401, response.status_code)
                self.assertEqual(
                    "Invalid ID number or password", response.get_json()["message"]
                )

    def test_missing_credentials_and_unknown_role(self) -> None:
        missing = self.client.post("/api/auth/login", json={"idNumber": "11100000001"})
        self.assertEqual(400, missing.status_code)
        self.assertEqual(
            "ID number and password are required", missing.get_json()["message"]
        )

        bad_role = self.client.post(
            "/api/auth/login",
            json={"idNumber": "11100000001", "password": PASSWORD, "role": "admin"},
        )
        self.assertEqual(400, bad_role.status_code)

    def test_login_body_must_be_an_object(self) -> None:
        response = self.client.post("/api/auth/login", json=["x"])
        self.assertEqual(400, response.status_code)
        self.assertEqual("Request body must be JSON.", response.get_json()["message"])

    def test_me_lists_capabilities(self) -> None:
        response = self.client.get(
            "/api/auth/me", headers=self.student_headers(self.student)
        )
        self.assertEqual(200, response.status_code)
        body = response.get_json()
        self.assertEqual("student", body["role"])
        self.assertEqual("Ada Lovelace", body["name"])
        self.assertIn("manage_own_enrollment", body["capabilities"])
        self.assertNotIn("manage_students", body["capabilities"])

    def test_health_reports_term(self) -> None:
        body = self.client.get("/api/health").get_json()
        self.assertEqual({"ok": True, "term": "Fall 2030"}, body)


if __name__ == "__main__":
    unittest.main()
