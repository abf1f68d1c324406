import auth
from conftest import bearer, make_token


class TestUndergraduateDashboard:
    def test_admin_sees_every_course(self, client, school, admin_headers):
        response = client.get("/dashboard/undergraduate", headers=admin_headers)
        assert response.status_code == 200
        assert [row["course_id"] for row in response.json()] == [5, 6]

    def test_head_sees_own_department(self, client, school, physics_head_headers):
        rows = client.get("/dashboard/undergraduate", headers=physics_head_headers).json()
        assert [row["course_id"] for row in rows] == [6]

    def test_teacher_sees_assigned_courses(self, client, school, teacher_headers):
        rows = client.get("/dashboard/undergraduate", headers=teacher_headers).json()
        assert [row["course_id"] for row in rows] == [5]

    def test_teacher_without_courses(self, client, school):
        headers = bearer(make_token(auth.ROLE_TEACHER, "T2", 1))
        assert client.get("/dashboard/undergraduate", headers=headers).json() == []

    def test_head_without_department_sees_nothing(self, client, school):
        headers = bearer(make_token(auth.ROLE_HEAD, "HX", None))
        assert client.get("/dashboard/undergraduate", headers=headers).json() == []

    def test_row_is_joined_and_numeric(self, client, school, teacher_headers):
        row = client.get("/dashboard/undergraduate", headers=teacher_headers).json()[0]
        assert row["subject_name"] == "Linear Algebra"
        assert row["skill_name"] == "Theory"
        assert row["teacher_name"] == "An Nguyen"
        assert row["number_student"] == 60
        assert row["quantity"] == 30
        assert row["coef"] == 1.2
        assert row["standard_hours"] == 45.5
        assert row["note"] == "Morning sessions"

    def test_missing_joins_are_null(self, client, school, physics_head_headers):
        row = client.get("/dashboard/undergraduate", headers=physics_head_headers).json()[0]
        assert row["skill_name"] is None
        assert row["coef"] is None
        assert row["register_period"] is None

    def test_requires_authentication(self, client, school):
        assert client.get("/dashboard/undergraduate").status_code == 401


class TestTeacherListing:
    def test_admin_sees_everyone(self, client, school, admin_headers):
        rows = client.get("/teachers", headers=admin_headers).json()
        assert [row["id"] for row in rows] == ["T1", "T2", "T3", "A1", "HM", "HP"]

    def test_head_sees_department_only(self, client, school, math_head_headers):
        rows = client.get("/teachers", headers=math_head_headers).json()
        assert rows == [
            {"id": "T1", "name": "An Nguyen", "email": "t1@uni.edu", "department_id": 1},
            {"id": "T2", "name": "Binh Tran", "email": "t2@uni.edu", "department_id": 1},
            {"id": "HM", "name": "Hanh Mai", "email": "head.math@uni.edu", "department_id": 1},
        ]

    def test_teacher_is_forbidden(self, client, school, teacher_headers):
        assert client.get("/teachers", headers=teacher_headers).status_code == 403

    def test_requires_authentication(self, client, school):
        assert client.get("/teachers").status_code == 401

    def test_head_without_department_sees_nobody(self, client, school):
        headers = bearer(make_token(auth.ROLE_HEAD, "HX", None))
        assert client.get("/teachers", headers=headers).json() == []
