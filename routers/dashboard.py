from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy import false
from sqlalchemy.orm import Session

import auth
import models
from dependencies import get_db

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


def _to_float(value):
    if value is None:
        return None
    if isinstance(value, Decimal):
        return float(value)
    return value


def _base_course_query(db: Session):
    return db.query(
        models.Course,
        models.Subject.subject_name,
        models.Skill.skill_name,
        models.Teacher.teacher_name,
    ).outerjoin(
        models.Subject,
        models.Course.subject_id == models.Subject.subject_id,
    ).outerjoin(
        models.Skill,
        models.Course.skill_id == models.Skill.skill_id,
    ).outerjoin(
        models.Teacher,
        models.Course.teacher_id == models.Teacher.teacher_id,
    )


def _filter_for_principal(query, principal: auth.Principal):
    if principal.role == auth.ROLE_ADMIN:
        return query
    if principal.role == auth.ROLE_HEAD:
        if principal.department_id is None:
            return query.filter(false())
        return query.filter(
            models.Course.department_id == principal.department_id
        )
    return query.filter(models.Course.teacher_id == principal.teacher_id)


def _serialize_course_row(course, subject_name, skill_name, teacher_name):
    return {
        "course_id": course.course_id,
        "course_year": course.course_year,
        "semester_name": course.semester_name,
        "register_period": course.register_period,
        "course_name": course.course_name,
        "subject_name": subject_name,
        "skill_name": skill_name,
        "number_student": course.number_student,
        "num_group": course.num_group,
        "unit": course.unit,
        "quantity": course.quantity,
        "coef": _to_float(course.coef),
        "coef_cttt": _to_float(course.coef_cttt),
        "coef_far": _to_float(course.coef_far),
        "num_out_hours": course.num_out_hours,
        "standard_hours": _to_float(course.standard_hours),
        "note": course.note,
        "teacher_id": course.teacher_id,
        "teacher_name": teacher_name,
        "department_id": course.department_id,
    }


@router.get("/undergraduate")
def list_undergraduate_courses(
    db: Session = Depends(get_db),
    principal: auth.Principal = Depends(auth.require_capability(auth.CAP_VIEW_COURSES)),
):
    query = _filter_for_principal(_base_course_query(db), principal)
    rows = query.order_by(models.Course.course_id.asc()).all()
    return [
        _serialize_course_row(course, subject_name, skill_name, teacher_name)
        for course, subject_name, skill_name, teacher_name in rows
    ]
