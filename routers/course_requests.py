from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

import auth
import models
from audit import write_audit_event
from dependencies import get_db
from schemas import CourseRequestRecord, CourseRequestSubmission

router = APIRouter(prefix="/courses", tags=["Course Requests"])

require_request_manager = auth.require_capability(auth.CAP_MANAGE_COURSE_REQUESTS)


def _find_unknown_teacher_ids(db: Session, teacher_ids):
    wanted = set(teacher_ids)
    if not wanted:
        return []

    known = {
        teacher_id
        for (teacher_id,) in db.query(models.Teacher.teacher_id).filter(
            models.Teacher.teacher_id.in_(wanted)
        ).all()
    }
    return sorted(wanted - known)


def _to_utc_iso(value: datetime) -> str:
    # Timestamps are stored as naive UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


@router.post("/{course_id}/requests")
def submit_course_requests(
    course_id: int,
    payload: CourseRequestSubmission,
    db: Session = Depends(get_db),
    principal: auth.Principal = Depends(require_request_manager),
):
    course = auth.ensure_course_access(db, principal, course_id)

    if not payload.requests:
        raise HTTPException(status_code=400, detail="At least one request is required")

    unknown_ids = _find_unknown_teacher_ids(
        db, [item.teacherId for item in payload.requests]
    )
    if unknown_ids:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown teacher: {', '.join(unknown_ids)}",
        )

    # Sums are not checked against the course totals here; the editor
    # enforces remaining capacity before submitting.
    submitted_at = datetime.utcnow()
    rows = [
        models.CourseRequest(
            teacher_id=item.teacherId,
            course_id=course.course_id,
            number_student=item.numberStudent,
            quantity=item.quantity,
            created_at=submitted_at,
            updated_at=submitted_at,
        )
        for item in payload.requests
    ]
    db.add_all(rows)
    db.commit()

    try:
        write_audit_event(
            {
                "event_type": "course_requests_submitted",
                "course_id": course.course_id,
                "request_count": len(rows),
                "actor_teacher_id": principal.teacher_id,
                "actor_email": principal.email,
                "actor_role": principal.role,
                "actor_department_id": principal.department_id,
            }
        )
    except (OSError, ValueError, TypeError):
        # The batch is already committed.
        pass
    return {"success": True}


@router.get("/{course_id}/requests", response_model=list[CourseRequestRecord])
def list_course_requests(
    course_id: int,
    db: Session = Depends(get_db),
    principal: auth.Principal = Depends(require_request_manager),
):
    course = auth.ensure_course_access(db, principal, course_id)

    rows = db.query(
        models.CourseRequest,
        models.Teacher.teacher_name,
    ).outerjoin(
        models.Teacher,
        models.CourseRequest.teacher_id == models.Teacher.teacher_id,
    ).filter(
        models.CourseRequest.course_id == course.course_id
    ).order_by(
        models.CourseRequest.created_at.asc(),
        models.CourseRequest.request_id.asc(),
    ).all()

    return [
        {
            "requestId": request.request_id,
            "teacherId": request.teacher_id,
            "teacherName": teacher_name,
            "numberStudent": request.number_student,
            "quantity": request.quantity,
            "createdAt": _to_utc_iso(request.created_at),
        }
        for request, teacher_name in rows
    ]
