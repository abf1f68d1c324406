import csv
import io
import json
import logging
import os
import re
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill

AUDIT_LOG_DIR = Path(os.getenv("AUDIT_LOG_DIR", "logs"))
AUDIT_LOG_NAME = os.getenv("AUDIT_LOG_NAME", "courseload_audit.log")
AUDIT_LOG_MAX_BYTES = int(os.getenv("AUDIT_LOG_MAX_BYTES", str(5 * 1024 * 1024)))
AUDIT_LOG_BACKUP_COUNT = int(os.getenv("AUDIT_LOG_BACKUP_COUNT", "7"))

AUDIT_CSV_FIELDS = [
    "Date (UTC)",
    "Time (UTC)",
    "Teacher ID",
    "Email",
    "Role",
    "Department",
    "Action",
    "Action Details",
    "HTTP Method",
    "Endpoint",
    "Status",
    "Outcome",
    "Client IP",
    "Duration (ms)",
    "Error",
]

COURSE_REQUESTS_PATH = re.compile(r"^/courses/(\d+)/requests/?$")


def get_audit_log_path() -> Path:
    return AUDIT_LOG_DIR / AUDIT_LOG_NAME


def _export_filename(extension: str) -> str:
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    base_name = Path(AUDIT_LOG_NAME).stem
    return f"{base_name}_{timestamp}.{extension}"


def get_audit_csv_filename() -> str:
    return _export_filename("csv")


def get_audit_xlsx_filename() -> str:
    return _export_filename("xlsx")


def get_audit_logger() -> logging.Logger:
    logger = logging.getLogger("courseload.audit")
    if logger.handlers:
        return logger

    AUDIT_LOG_DIR.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=get_audit_log_path(),
        maxBytes=AUDIT_LOG_MAX_BYTES,
        backupCount=AUDIT_LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def write_audit_event(event: Dict[str, Any]) -> None:
    payload = dict(event)
    payload["timestamp_utc"] = datetime.now(timezone.utc).isoformat()
    get_audit_logger().info(
        json.dumps(payload, separators=(",", ":"), ensure_ascii=True, default=str)
    )


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _split_utc_timestamp(timestamp_value: Any) -> tuple[str, str]:
    timestamp_text = _to_text(timestamp_value)
    if not timestamp_text:
        return "", ""

    normalized = timestamp_text.replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return "", timestamp_text

    parsed_utc = parsed.astimezone(timezone.utc)
    return (
        parsed_utc.strftime("%Y-%m-%d"),
        parsed_utc.strftime("%H:%M:%S"),
    )


def classify_action(event: Dict[str, Any]) -> str:
    event_type = _to_text(event.get("event_type"))
    if event_type == "login":
        return "Login Attempt"
    if event_type == "course_requests_submitted":
        return "Course Requests Persisted"

    method = _to_text(event.get("method"))
    path = _to_text(event.get("path"))
    if method == "POST" and path == "/login":
        return "User Login"
    if method == "GET" and path == "/dashboard/undergraduate":
        return "View Undergraduate Dashboard"
    if method == "GET" and path in {"/teachers", "/teachers/"}:
        return "View Teachers"
    if method == "GET" and path == "/admin/audit-log":
        return "Download Audit Log"
    if COURSE_REQUESTS_PATH.match(path):
        if method == "POST":
            return "Submit Course Requests"
        if method == "GET":
            return "View Course Requests"

    return "System Action"


def _resolve_outcome(status_code: Any, error_name: str) -> str:
    if error_name:
        return "Error"

    try:
        code = int(status_code)
    except (TypeError, ValueError):
        return "Unknown"

    if code >= 500:
        return "Server Error"
    if code == 401:
        return "Unauthenticated"
    if code == 403:
        return "Forbidden"
    if code >= 400:
        return "Denied/Failed"
    return "Success"


def _build_action_details(event: Dict[str, Any]) -> str:
    details = []
    course_id = _to_text(event.get("course_id"))
    if not course_id:
        match = COURSE_REQUESTS_PATH.match(_to_text(event.get("path")))
        if match:
            course_id = match.group(1)
    if course_id:
        details.append(f"Course ID: {course_id}")

    request_count = _to_text(event.get("request_count"))
    if request_count:
        details.append(f"Rows: {request_count}")

    query = _to_text(event.get("query"))
    if query:
        details.append(f"Query: {query}")

    error_name = _to_text(event.get("error"))
    if error_name:
        details.append(f"Error: {error_name}")

    return " | ".join(details)


def _event_to_csv_row(event: Dict[str, Any]) -> Dict[str, str]:
    date_text, time_text = _split_utc_timestamp(event.get("timestamp_utc"))
    status_text = _to_text(event.get("status_code"))
    error_text = _to_text(event.get("error"))

    return {
        "Date (UTC)": date_text,
        "Time (UTC)": time_text,
        "Teacher ID": _to_text(event.get("actor_teacher_id")),
        "Email": _to_text(event.get("actor_email")),
        "Role": _to_text(event.get("actor_role")),
        "Department": _to_text(event.get("actor_department_id")),
        "Action": classify_action(event),
        "Action Details": _build_action_details(event),
        "HTTP Method": _to_text(event.get("method")),
        "Endpoint": _to_text(event.get("path")),
        "Status": status_text,
        "Outcome": _resolve_outcome(status_text, error_text) if status_text else "",
        "Client IP": _to_text(event.get("client_ip")),
        "Duration (ms)": _to_text(event.get("duration_ms")),
        "Error": error_text,
    }


def iter_audit_rows(log_path: Path) -> Iterator[Dict[str, str]]:
    with log_path.open("r", encoding="utf-8", errors="replace") as source:
        for raw_line in source:
            line = raw_line.strip()
            if not line:
                continue

            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                row = {field: "" for field in AUDIT_CSV_FIELDS}
                row["Action"] = "Unparsed Log Entry"
                row["Action Details"] = line[:240]
                yield row
                continue

            yield _event_to_csv_row(event)


def iter_audit_csv_bytes(log_path: Path) -> Iterator[bytes]:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=AUDIT_CSV_FIELDS)
    writer.writeheader()
    yield buffer.getvalue().encode("utf-8")
    buffer.seek(0)
    buffer.truncate(0)

    for row in iter_audit_rows(log_path):
        writer.writerow(row)
        yield buffer.getvalue().encode("utf-8")
        buffer.seek(0)
        buffer.truncate(0)


def build_audit_xlsx_bytes(log_path: Path) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Audit Log"

    sheet.append(AUDIT_CSV_FIELDS)
    header_fill = PatternFill(start_color="1D4ED8", end_color="1D4ED8", fill_type="solid")
    header_font = Font(color="FFFFFF", bold=True)

    for col_index, header in enumerate(AUDIT_CSV_FIELDS, start=1):
        cell = sheet.cell(row=1, column=col_index, value=header)
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center", vertical="center")

    for row in iter_audit_rows(log_path):
        sheet.append([row.get(field, "") for field in AUDIT_CSV_FIELDS])

    sheet.freeze_panes = "A2"

    preferred_widths = {
        "A": 13,  # Date
        "B": 11,  # Time
        "C": 14,  # Teacher ID
        "D": 28,  # Email
        "E": 10,  # Role
        "F": 12,  # Department
        "G": 30,  # Action
        "H": 36,  # Action Details
        "I": 12,  # Method
        "J": 30,  # Endpoint
        "K": 10,  # Status
        "L": 16,  # Outcome
        "M": 16,  # Client IP
        "N": 13,  # Duration
        "O": 20,  # Error
    }
    for column_key, width in preferred_widths.items():
        sheet.column_dimensions[column_key].width = width

    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()
