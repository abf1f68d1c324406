import json
import os
from pathlib import Path
from typing import Optional

import requests

API_URL = os.getenv("COURSELOAD_API_URL", "http://localhost:8000")
SESSION_FILE = Path(
    os.getenv(
        "COURSELOAD_SESSION_FILE",
        str(Path.home() / ".courseload" / "session.json"),
    )
)


class ApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SessionExpired(ApiError):
    """The server rejected the credential; the user has to log in again."""


class AuthSession:
    """Logged-in user and token, loaded at startup and cleared on logout."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else SESSION_FILE
        self.user = None
        self.token = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user and self.token)

    @property
    def role(self) -> str:
        return (self.user or {}).get("role", "")

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "AuthSession":
        session = cls(path)
        if not session.path.exists():
            return session

        try:
            data = json.loads(session.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return session

        if isinstance(data, dict) and data.get("user") and data.get("token"):
            session.user = data["user"]
            session.token = data["token"]
        return session

    def login(self, user: dict, token: str) -> None:
        self.user = dict(user)
        self.token = token
        self.save()

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps({"user": self.user, "token": self.token}),
            encoding="utf-8",
        )

    def clear(self) -> None:
        self.user = None
        self.token = None
        if self.path.exists():
            self.path.unlink()


def _error_message(response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return fallback


class CourseLoadClient:
    def __init__(self, session: AuthSession, base_url: str = API_URL, http=None):
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.http = http or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def login(self, email: str, password: str) -> dict:
        response = self.http.post(
            self._url("/login"),
            json={"email": email, "password": password},
        )
        if response.status_code == 401:
            raise ApiError("Account does not exist", status_code=401)
        if response.status_code == 403:
            raise ApiError("Incorrect password", status_code=403)
        if response.status_code >= 400:
            raise ApiError(
                _error_message(response, "Login failed"),
                status_code=response.status_code,
            )

        data = response.json()
        user = {
            "id": data["teacherId"],
            "email": email,
            "name": data.get("teacherName") or email.split("@")[0],
            "role": data["role"],
            "departmentId": data.get("departmentId"),
        }
        self.session.login(user, data["token"])
        return user

    def logout(self) -> None:
        self.session.clear()

    def _authorized(self, method: str, path: str, fallback: str, **kwargs):
        if not self.session.is_authenticated:
            raise SessionExpired("Please log in first", status_code=401)

        headers = {"Authorization": f"Bearer {self.session.token}"}
        response = self.http.request(method, self._url(path), headers=headers, **kwargs)
        if response.status_code == 401:
            self.session.clear()
            raise SessionExpired(
                "Your session has expired. Please log in again.",
                status_code=401,
            )
        if response.status_code >= 400:
            raise ApiError(
                _error_message(response, fallback),
                status_code=response.status_code,
            )
        return response.json()

    def fetch_courses(self) -> list:
        return self._authorized(
            "GET", "/dashboard/undergraduate", "Could not load courses."
        )

    def fetch_teachers(self) -> list:
        return self._authorized("GET", "/teachers", "Could not load teachers.")

    def fetch_course_requests(self, course_id: int) -> list:
        return self._authorized(
            "GET",
            f"/courses/{course_id}/requests",
            "Could not load course requests.",
        )

    def submit_course_requests(self, course_id: int, requests_payload: list) -> dict:
        return self._authorized(
            "POST",
            f"/courses/{course_id}/requests",
            "Could not submit course requests.",
            json={"requests": requests_payload},
        )
