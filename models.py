from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, ForeignKey
from database import Base


class Skill(Base):
    __tablename__ = "skills"
    skill_id = Column(Integer, primary_key=True, index=True)
    skill_name = Column(String(100), nullable=False)


class Department(Base):
    __tablename__ = "departments"
    department_id = Column(Integer, primary_key=True, index=True)
    department_name = Column(String(255), nullable=False)
    head_id = Column(
        String(50),
        ForeignKey(
            "teachers.teacher_id",
            use_alter=True,
            name="fk_departments_head_id",
        ),
        nullable=True,
    )


class Teacher(Base):
    __tablename__ = "teachers"
    teacher_id = Column(String(50), primary_key=True)
    teacher_name = Column(String(255), nullable=False)
    teacher_email = Column(String(255), unique=True, index=True)
    password = Column(String, nullable=True)
    department_id = Column(Integer, ForeignKey("departments.department_id"))


class Subject(Base):
    __tablename__ = "subjects"
    subject_id = Column(Integer, primary_key=True)
    subject_name = Column(String(255), nullable=False)
    subject_code = Column(String(50))
    department_id = Column(Integer, ForeignKey("departments.department_id"))


class Course(Base):
    __tablename__ = "courses"
    course_id = Column(Integer, primary_key=True)
    course_year = Column(String(50), nullable=False)
    semester_name = Column(String(50), nullable=False)
    register_period = Column(String(100))
    subject_id = Column(Integer, ForeignKey("subjects.subject_id"))
    department_id = Column(Integer, ForeignKey("departments.department_id"), index=True)
    teacher_id = Column(String(50), ForeignKey("teachers.teacher_id"), index=True)
    course_name = Column(String(255), nullable=False)
    number_of_credit = Column(Integer)
    number_student = Column(Integer, default=0)
    num_group = Column(Integer)
    skill_id = Column(Integer, ForeignKey("skills.skill_id"))
    credit = Column(Integer)
    unit = Column(Integer)
    quantity = Column(Integer, default=0)
    coef = Column(Numeric(5, 2))
    num_out_hours = Column(Integer)
    coef_cttt = Column(Numeric(5, 2))
    coef_far = Column(Numeric(5, 2))
    standard_hours = Column(Numeric(6, 2))
    flag = Column(Integer)
    note = Column(Text)


class CourseRequest(Base):
    __tablename__ = "course_requests"
    request_id = Column(Integer, primary_key=True, autoincrement=True)
    teacher_id = Column(String(50), ForeignKey("teachers.teacher_id"), nullable=False)
    course_id = Column(Integer, ForeignKey("courses.course_id"), nullable=False, index=True)
    number_student = Column(Integer, nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )
