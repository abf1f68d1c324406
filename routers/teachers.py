from fastapi import APIRouter, Depends
from sqlalchemy import false
from sqlalchemy.orm import Session

import auth
import models
from dependencies import get_db
from schemas import TeacherSummary

router = APIRouter(prefix="/teachers", tags=["Teachers"])


@router.get("", response_model=list[TeacherSummary])
def list_teachers(
    db: Session = Depends(get_db),
    principal: auth.Principal = Depends(auth.require_capability(auth.CAP_VIEW_TEACHERS)),
):
    query = db.query(models.Teacher)
    if principal.role == auth.ROLE_HEAD:
        if principal.department_id is None:
            query = query.filter(false())
        else:
            query = query.filter(
                models.Teacher.department_id == principal.department_id
            )

    teachers = query.order_by(
        models.Teacher.teacher_name.asc(),
        models.Teacher.teacher_id.asc(),
    ).all()
    return [
        {
            "id": teacher.teacher_id,
            "name": teacher.teacher_name,
            "email": teacher.teacher_email,
            "department_id": teacher.department_id,
        }
        for teacher in teachers
    ]
