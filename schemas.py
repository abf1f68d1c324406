from typing import Optional

from pydantic import BaseModel, Field

# Upper bound of the Integer columns the counts are stored in.
MAX_COUNT = 2**31 - 1


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    token: str
    role: str
    teacherId: str
    email: Optional[str] = None
    teacherName: Optional[str] = None
    departmentId: Optional[int] = None


class CourseRequestItem(BaseModel):
    teacherId: str = Field(min_length=1, max_length=50)
    numberStudent: int = Field(ge=0, le=MAX_COUNT)
    quantity: int = Field(ge=0, le=MAX_COUNT)


class CourseRequestSubmission(BaseModel):
    requests: list[CourseRequestItem]


class CourseRequestRecord(BaseModel):
    requestId: int
    teacherId: str
    teacherName: Optional[str] = None
    numberStudent: int
    quantity: int
    createdAt: str


class TeacherSummary(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    department_id: Optional[int] = None
