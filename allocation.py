"""Splitting a course's student count or quantity across extra teachers.

``CapacityLedger`` holds the arithmetic: the course's two divisible totals,
the extra rows drawn against them, and the remainder left with the course's
originally assigned teacher (the *base row*). Only one dimension is split at
a time; the other dimension of every extra row carries the course's full
original value.

``AllocationEditor`` is the interactive flow on top of the ledger: a draft
(selected teacher, value, editing index), teacher resolution against the
roster, and submission of the finished rows.
"""
from dataclasses import dataclass
from typing import Callable, Optional

DIMENSION_STUDENTS = "students"
DIMENSION_QUANTITY = "quantity"
DIMENSIONS = (DIMENSION_STUDENTS, DIMENSION_QUANTITY)


class AllocationError(ValueError):
    """Advisory error; the ledger and editor state are left untouched."""


@dataclass(frozen=True)
class ExtraAllocation:
    teacher_id: str
    teacher_name: str
    students: int
    quantity: int

    def value(self, dimension: str) -> int:
        if dimension == DIMENSION_STUDENTS:
            return self.students
        return self.quantity


@dataclass(frozen=True)
class AllocationRow:
    teacher_id: str
    teacher_name: str
    students: int
    quantity: int
    is_original: bool = False


def _check_dimension(dimension: str) -> str:
    if dimension not in DIMENSIONS:
        raise AllocationError(f"Unknown allocation dimension: {dimension!r}")
    return dimension


class CapacityLedger:
    def __init__(self, number_student: int, quantity: int, dimension: str = DIMENSION_STUDENTS):
        self.number_student = max(int(number_student or 0), 0)
        self.quantity = max(int(quantity or 0), 0)
        self.dimension = _check_dimension(dimension)
        self.extras: list[ExtraAllocation] = []

    def original(self, dimension: Optional[str] = None) -> int:
        dimension = _check_dimension(dimension or self.dimension)
        if dimension == DIMENSION_STUDENTS:
            return self.number_student
        return self.quantity

    def allocated(self, dimension: Optional[str] = None, exclude_index: Optional[int] = None) -> int:
        dimension = dimension or self.dimension
        return sum(
            entry.value(dimension)
            for index, entry in enumerate(self.extras)
            if index != exclude_index
        )

    def remaining(self, dimension: Optional[str] = None, exclude_index: Optional[int] = None) -> int:
        dimension = dimension or self.dimension
        return max(self.original(dimension) - self.allocated(dimension, exclude_index), 0)

    def select_dimension(self, dimension: str) -> None:
        # Partial splits are not convertible between dimensions.
        self.dimension = _check_dimension(dimension)
        self.extras = []

    def build_entry(self, teacher_id: str, teacher_name: str, value: int) -> ExtraAllocation:
        if self.dimension == DIMENSION_STUDENTS:
            return ExtraAllocation(teacher_id, teacher_name, value, self.quantity)
        return ExtraAllocation(teacher_id, teacher_name, self.number_student, value)

    def check_value(self, value: int, exclude_index: Optional[int] = None) -> None:
        remaining = self.remaining(exclude_index=exclude_index)
        label = "students" if self.dimension == DIMENSION_STUDENTS else "quantity"
        if remaining <= 0:
            raise AllocationError(f"The course {label} is already fully allocated.")
        if isinstance(value, bool) or not isinstance(value, int):
            raise AllocationError(f"The {label} value must be a whole number.")
        if value <= 0:
            raise AllocationError(f"Enter a {label} value greater than 0.")
        if value > remaining:
            raise AllocationError(
                f"The allocated {label} would exceed the original total "
                f"({value} requested, {remaining} remaining)."
            )

    def put(self, entry: ExtraAllocation, index: Optional[int] = None) -> None:
        self.check_value(entry.value(self.dimension), exclude_index=index)
        if index is None:
            self.extras.append(entry)
        else:
            self.extras[index] = entry

    def remove(self, index: int) -> ExtraAllocation:
        if not 0 <= index < len(self.extras):
            raise AllocationError(f"No allocation row at index {index}.")
        return self.extras.pop(index)

    def base_values(self) -> tuple[int, int]:
        """Students and quantity left with the originally assigned teacher."""
        students = self.number_student
        quantity = self.quantity
        if self.dimension == DIMENSION_STUDENTS:
            students = max(students - self.allocated(DIMENSION_STUDENTS), 0)
        else:
            quantity = max(quantity - self.allocated(DIMENSION_QUANTITY), 0)
        return students, quantity


class AllocationEditor:
    """One user's adjustment dialog for a single course.

    ``course`` needs ``course_id``, ``number_student``, ``quantity`` and
    ``teacher_id`` (``teacher_name`` is optional). ``teachers`` is the roster
    the user may pick from, as returned by the teacher listing: each entry has
    ``id`` and optionally ``name`` and ``email``.
    """

    def __init__(self, course, teachers):
        self.course_id = _field(course, "course_id", "courseId")
        self.original_teacher_id = _field(course, "teacher_id", "teacherId")
        self.original_teacher_name = _field(course, "teacher_name", "teacherName")
        self.teachers = [teacher for teacher in teachers or [] if _field(teacher, "id")]
        self.ledger = CapacityLedger(
            _field(course, "number_student", "numberStudent") or 0,
            _field(course, "quantity") or 0,
        )
        self.closed = False
        self.reset(DIMENSION_STUDENTS)

    @property
    def dimension(self) -> str:
        return self.ledger.dimension

    @property
    def extras(self) -> list:
        return list(self.ledger.extras)

    def reset(self, dimension: str = DIMENSION_STUDENTS) -> None:
        self.ledger.select_dimension(dimension)
        self.clear_draft()

    def clear_draft(self) -> None:
        self.draft_teacher_id = ""
        self.draft_value = 0
        self.editing_index = None

    def select_dimension(self, dimension: str) -> None:
        self.reset(dimension)

    def remaining(self) -> int:
        return self.ledger.remaining(exclude_index=self.editing_index)

    def find_teacher(self, teacher_id: str):
        for teacher in self.teachers:
            if _field(teacher, "id") == teacher_id:
                return teacher
        return None

    def _taken_teacher_ids(self) -> set:
        taken = set()
        if self.original_teacher_id:
            taken.add(self.original_teacher_id)
        for index, entry in enumerate(self.ledger.extras):
            if index != self.editing_index:
                taken.add(entry.teacher_id)
        return taken

    def available_teachers(self) -> list:
        taken = self._taken_teacher_ids()
        editing_teacher_id = None
        if self.editing_index is not None:
            editing_teacher_id = self.ledger.extras[self.editing_index].teacher_id

        return [
            teacher
            for teacher in self.teachers
            if _field(teacher, "id") == editing_teacher_id
            or _field(teacher, "id") not in taken
        ]

    def add_or_update(self, teacher_id: str, value: int) -> ExtraAllocation:
        if not teacher_id:
            raise AllocationError("Select a teacher to add.")

        teacher = self.find_teacher(teacher_id)
        if teacher is None:
            raise AllocationError(f"Teacher {teacher_id} could not be found.")

        if teacher_id in self._taken_teacher_ids():
            raise AllocationError(f"Teacher {teacher_id} already has an allocation for this course.")

        teacher_name = (
            _field(teacher, "name") or _field(teacher, "email") or teacher_id
        )
        entry = self.ledger.build_entry(teacher_id, teacher_name, value)
        self.ledger.put(entry, index=self.editing_index)
        self.clear_draft()
        return entry

    def edit(self, index: int) -> None:
        if not 0 <= index < len(self.ledger.extras):
            raise AllocationError(f"No allocation row at index {index}.")

        entry = self.ledger.extras[index]
        self.editing_index = index
        self.draft_teacher_id = entry.teacher_id
        self.draft_value = entry.value(self.dimension)

    def cancel_edit(self) -> None:
        self.clear_draft()

    def remove(self, index: int) -> ExtraAllocation:
        removed = self.ledger.remove(index)
        self.clear_draft()
        return removed

    def base_row(self) -> AllocationRow:
        students, quantity = self.ledger.base_values()
        return AllocationRow(
            teacher_id=self.original_teacher_id or "unassigned",
            teacher_name=self._base_teacher_name(),
            students=students,
            quantity=quantity,
            is_original=True,
        )

    def _base_teacher_name(self) -> str:
        if self.original_teacher_name:
            return self.original_teacher_name
        teacher = self.find_teacher(self.original_teacher_id)
        if teacher is not None and _field(teacher, "name"):
            return _field(teacher, "name")
        return self.original_teacher_id or "Current teacher"

    def rows(self) -> list:
        return [self.base_row()] + [
            AllocationRow(
                teacher_id=entry.teacher_id,
                teacher_name=entry.teacher_name,
                students=entry.students,
                quantity=entry.quantity,
            )
            for entry in self.ledger.extras
        ]

    def totals(self) -> tuple[int, int]:
        rows = self.rows()
        return (
            sum(row.students for row in rows),
            sum(row.quantity for row in rows),
        )

    def payload(self) -> list:
        return [
            {
                "teacherId": entry.teacher_id,
                "numberStudent": entry.students,
                "quantity": entry.quantity,
            }
            for entry in self.ledger.extras
        ]

    def submit(self, submitter: Callable[[int, list], object]):
        if not self.ledger.extras:
            raise AllocationError("Add at least one teacher before submitting.")

        result = submitter(self.course_id, self.payload())
        self.reset(DIMENSION_STUDENTS)
        self.closed = True
        return result


def _field(source, *names):
    for name in names:
        if isinstance(source, dict):
            if name in source:
                return source[name]
        elif hasattr(source, name):
            return getattr(source, name)
    return None
