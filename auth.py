import os
import re
from dataclasses import dataclass
from typing import Optional

import bcrypt
from fastapi import Depends, Header, HTTPException, Request
from itsdangerous import BadData, URLSafeTimedSerializer
from sqlalchemy.orm import Session

import models

ROLE_ADMIN = "admin"
ROLE_HEAD = "head"
ROLE_TEACHER = "teacher"
ROLES = frozenset({ROLE_ADMIN, ROLE_HEAD, ROLE_TEACHER})

CAP_VIEW_COURSES = "view_courses"
CAP_VIEW_TEACHERS = "view_teachers"
CAP_MANAGE_COURSE_REQUESTS = "manage_course_requests"
CAP_DOWNLOAD_AUDIT_LOG = "download_audit_log"

ROLE_CAPABILITIES = {
    ROLE_ADMIN: frozenset({
        CAP_VIEW_COURSES,
        CAP_VIEW_TEACHERS,
        CAP_MANAGE_COURSE_REQUESTS,
        CAP_DOWNLOAD_AUDIT_LOG,
    }),
    ROLE_HEAD: frozenset({
        CAP_VIEW_COURSES,
        CAP_VIEW_TEACHERS,
        CAP_MANAGE_COURSE_REQUESTS,
    }),
    ROLE_TEACHER: frozenset({
        CAP_VIEW_COURSES,
    }),
}


def load_token_secret() -> str:
    secret = os.getenv("JWT_SECRET", "").strip()
    if not secret:
        raise RuntimeError("JWT_SECRET environment variable is required")
    return secret


JWT_SECRET = load_token_secret()
TOKEN_SALT = "courseload-access"
TOKEN_MAX_AGE_SECONDS = int(os.getenv("TOKEN_MAX_AGE_SECONDS", str(2 * 60 * 60)))
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

serializer = URLSafeTimedSerializer(JWT_SECRET, salt=TOKEN_SALT)


@dataclass(frozen=True)
class Principal:
    role: str
    teacher_id: str
    email: str
    department_id: Optional[int] = None


def normalize_email(email: str) -> str:
    if not email:
        return ""
    return str(email).strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email or ""))


def get_admin_emails() -> set:
    raw_value = os.getenv("ADMIN_EMAILS", "")
    return {
        normalize_email(entry)
        for entry in raw_value.split(",")
        if entry.strip()
    }


def has_capability(principal, capability: str) -> bool:
    role = getattr(principal, "role", "")
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


def can_view_teachers(principal) -> bool:
    return has_capability(principal, CAP_VIEW_TEACHERS)


def can_manage_course_requests(principal) -> bool:
    return has_capability(principal, CAP_MANAGE_COURSE_REQUESTS)


def can_download_audit_log(principal) -> bool:
    return has_capability(principal, CAP_DOWNLOAD_AUDIT_LOG)


def owns_course(principal, course) -> bool:
    """A head may only act on courses of the department they run."""
    if principal.role == ROLE_ADMIN:
        return True
    if principal.role == ROLE_HEAD:
        return (
            principal.department_id is not None
            and course.department_id == principal.department_id
        )
    return False


def _to_bytes(value):
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")


def get_password_hash(password: str):
    # bcrypt limits password input to 72 bytes.
    password_bytes = _to_bytes(password)[:72]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password, hashed_password):
    try:
        plain_bytes = _to_bytes(plain_password)[:72]
        hashed_bytes = _to_bytes(hashed_password)
        return bcrypt.checkpw(plain_bytes, hashed_bytes)
    except (TypeError, ValueError):
        return False


def resolve_role(db: Session, teacher, email: str) -> str:
    if normalize_email(email) in get_admin_emails():
        return ROLE_ADMIN

    headed_department = db.query(models.Department).filter(
        models.Department.head_id == teacher.teacher_id
    ).first()
    if headed_department:
        return ROLE_HEAD

    return ROLE_TEACHER


def create_access_token(principal: Principal) -> str:
    return serializer.dumps(
        {
            "sub": principal.teacher_id,
            "role": principal.role,
            "teacherId": principal.teacher_id,
            "email": principal.email,
            "departmentId": principal.department_id,
        }
    )


def decode_access_token(token: str) -> Optional[Principal]:
    if not token:
        return None

    try:
        payload = serializer.loads(token, max_age=TOKEN_MAX_AGE_SECONDS)
    except BadData:
        return None

    if not isinstance(payload, dict):
        return None

    role = payload.get("role")
    teacher_id = payload.get("teacherId")
    department_id = payload.get("departmentId")
    if role not in ROLES or not isinstance(teacher_id, str) or not teacher_id:
        return None
    if department_id is not None and (
        isinstance(department_id, bool) or not isinstance(department_id, int)
    ):
        return None

    return Principal(
        role=role,
        teacher_id=teacher_id,
        email=str(payload.get("email") or ""),
        department_id=department_id,
    )


def parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


def get_current_principal(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> Principal:
    principal = decode_access_token(parse_bearer_token(authorization))
    if principal is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    request.state.audit_actor_teacher_id = principal.teacher_id
    request.state.audit_actor_email = principal.email
    request.state.audit_actor_role = principal.role
    request.state.audit_actor_department_id = principal.department_id
    return principal


def require_capability(capability: str):
    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not has_capability(principal, capability):
            raise HTTPException(status_code=403, detail="Forbidden")
        return principal

    return dependency


def ensure_course_access(db: Session, principal: Principal, course_id: int):
    course = db.query(models.Course).filter(
        models.Course.course_id == course_id
    ).first()
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")

    if not owns_course(principal, course):
        raise HTTPException(status_code=403, detail="Forbidden")

    return course


def authenticate_teacher(db: Session, email: str, password: str):
    """Return ``(teacher, status_code)``; status is 200 on success."""
    login_value = normalize_email(email)
    teacher = db.query(models.Teacher).filter(
        models.Teacher.teacher_email == login_value
    ).first()

    if not teacher or not teacher.password:
        return None, 401

    if not verify_password(password, teacher.password):
        return None, 403

    return teacher, 200
