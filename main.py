from fastapi import FastAPI, Request, Depends, Query
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from sqlalchemy.orm import Session
import os
import time

from database import engine
import models
import auth
from dependencies import get_db
from routers import course_requests, dashboard, teachers
from schemas import LoginRequest, LoginResponse
from audit import (
    get_audit_log_path,
    get_audit_logger,
    write_audit_event,
    iter_audit_csv_bytes,
    get_audit_csv_filename,
    build_audit_xlsx_bytes,
    get_audit_xlsx_filename,
)

# ---------------------------------------
# Create Tables
# ---------------------------------------
models.Base.metadata.create_all(bind=engine)

# ---------------------------------------
# App Initialization
# ---------------------------------------
app = FastAPI(title="Course Load Adjustment System")

CORS_ALLOW_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",")
    if origin.strip()
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)
get_audit_logger()


def _resolve_client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for", "")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host or ""
    return ""


def _resolve_audit_actor(request: Request):
    actor_teacher_id = getattr(request.state, "audit_actor_teacher_id", None)
    if actor_teacher_id:
        return {
            "actor_teacher_id": actor_teacher_id,
            "actor_email": getattr(request.state, "audit_actor_email", "") or "",
            "actor_role": getattr(request.state, "audit_actor_role", "") or "",
            "actor_department_id": getattr(request.state, "audit_actor_department_id", None),
        }

    return {
        "actor_teacher_id": "anonymous",
        "actor_email": "",
        "actor_role": "Anonymous",
        "actor_department_id": None,
    }


def _write_request_audit_log(
    request: Request,
    status_code: int,
    duration_ms: float,
    error_name: str = "",
):
    try:
        write_audit_event(
            {
                "event_type": "http_request",
                "method": request.method,
                "path": request.url.path,
                "query": str(request.url.query),
                "status_code": status_code,
                "duration_ms": duration_ms,
                "client_ip": _resolve_client_ip(request),
                "error": error_name,
                **_resolve_audit_actor(request),
            }
        )
    except (OSError, ValueError, TypeError):
        # Audit logging must not block business operations.
        pass


def _format_validation_errors(errors) -> str:
    messages = []
    for error in errors:
        location = ".".join(
            str(part) for part in error.get("loc", ()) if part != "body"
        )
        message = error.get("msg", "Invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages) or "Invalid request"


@app.middleware("http")
async def audit_logging_middleware(request: Request, call_next):
    started_at = time.perf_counter()
    status_code = 500
    error_name = ""

    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    except Exception as exc:
        error_name = exc.__class__.__name__
        raise
    finally:
        duration_ms = round((time.perf_counter() - started_at) * 1000, 2)
        _write_request_audit_log(
            request=request,
            status_code=status_code,
            duration_ms=duration_ms,
            error_name=error_name,
        )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content=jsonable_encoder({"detail": _format_validation_errors(exc.errors())}),
    )

# ---------------------------------------
# Include Routers
# ---------------------------------------
app.include_router(dashboard.router)
app.include_router(teachers.router)
app.include_router(course_requests.router)


# ---------------------------------------
# LOGIN
# ---------------------------------------
@app.post("/login", response_model=LoginResponse)
def login(
    request: Request,
    payload: LoginRequest,
    db: Session = Depends(get_db),
):
    email = auth.normalize_email(payload.email)
    request.state.audit_actor_teacher_id = email or "anonymous"
    request.state.audit_actor_email = email
    request.state.audit_actor_role = "Unauthenticated"

    if not auth.is_valid_email(email):
        return JSONResponse(
            status_code=400,
            content={"detail": "A valid email address is required"},
        )

    teacher, status_code = auth.authenticate_teacher(db, email, payload.password)
    if not teacher:
        return JSONResponse(
            status_code=status_code,
            content={"detail": "Invalid credentials"},
        )

    role = auth.resolve_role(db, teacher, email)
    principal = auth.Principal(
        role=role,
        teacher_id=teacher.teacher_id,
        email=email,
        department_id=teacher.department_id,
    )
    token = auth.create_access_token(principal)

    request.state.audit_actor_teacher_id = teacher.teacher_id
    request.state.audit_actor_role = role
    request.state.audit_actor_department_id = teacher.department_id
    try:
        write_audit_event(
            {
                "event_type": "login",
                "actor_teacher_id": teacher.teacher_id,
                "actor_email": email,
                "actor_role": role,
                "actor_department_id": teacher.department_id,
            }
        )
    except (OSError, ValueError, TypeError):
        pass

    return {
        "token": token,
        "role": role,
        "teacherId": teacher.teacher_id,
        "email": teacher.teacher_email,
        "teacherName": teacher.teacher_name,
        "departmentId": teacher.department_id,
    }


# ---------------------------------------
# ADMIN: DOWNLOAD AUDIT LOG
# ---------------------------------------
@app.get("/admin/audit-log")
def download_audit_log(
    format: str = Query(default="xlsx"),
    _: auth.Principal = Depends(auth.require_capability(auth.CAP_DOWNLOAD_AUDIT_LOG)),
):
    audit_log_path = get_audit_log_path()
    if not audit_log_path.exists():
        return PlainTextResponse(
            "Audit log file has not been created yet.",
            status_code=404
        )

    download_format = str(format).strip().lower()
    if download_format not in {"xlsx", "csv"}:
        return PlainTextResponse(
            "Unsupported format. Use ?format=xlsx or ?format=csv.",
            status_code=400
        )

    if download_format == "xlsx":
        try:
            payload = build_audit_xlsx_bytes(audit_log_path)
        except OSError:
            return PlainTextResponse(
                "Audit log file is temporarily unavailable. Please retry in a moment.",
                status_code=503
            )

        response = StreamingResponse(
            iter([payload]),
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )
        response.headers["Content-Disposition"] = (
            f"attachment; filename={get_audit_xlsx_filename()}"
        )
        return response

    response = StreamingResponse(
        iter_audit_csv_bytes(audit_log_path),
        media_type="text/csv",
    )
    response.headers["Content-Disposition"] = (
        f"attachment; filename={get_audit_csv_filename()}"
    )
    return response
