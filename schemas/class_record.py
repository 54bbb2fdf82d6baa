from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from schemas.assignment import Assignment


class Student(BaseModel):
    id: str = Field(..., description="Roster id of the student")
    name: Optional[str] = None
    email: Optional[str] = None


class Teacher(BaseModel):
    email: Optional[str] = None
    user_id: Optional[str] = None


def _nullable_int(value: Any, default: Optional[int]) -> Optional[int]:
    if value is None or value == "":
        return default
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


class ClassRecord(BaseModel):
    """Roster-level aggregate: one course with its people and the partial
    form of every assignment run recorded against it."""

    class_id: str = Field(..., min_length=1)
    class_name: Optional[str] = None
    cohort: Optional[str] = Field(None, description="Year the cohort started, kept as a string")
    course_length: int = 1
    year_group: Optional[int] = None
    class_owner: Optional[Teacher] = None
    teachers: List[Teacher] = Field(default_factory=list)
    students: List[Student] = Field(default_factory=list)
    assignments: List[Assignment] = Field(default_factory=list)

    @field_validator("cohort", mode="before")
    @classmethod
    def _cohort_as_string(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)

    @field_validator("course_length", mode="before")
    @classmethod
    def _parse_course_length(cls, value: Any) -> int:
        return _nullable_int(value, 1)

    @field_validator("year_group", mode="before")
    @classmethod
    def _parse_year_group(cls, value: Any) -> Optional[int]:
        return _nullable_int(value, None)

    def find_assignment_index(self, assignment_id: str) -> int:
        for i, assignment in enumerate(self.assignments):
            if assignment.assignment_id == assignment_id:
                return i
        return -1

    def find_assignment(self, assignment_id: str) -> Optional[Assignment]:
        index = self.find_assignment_index(assignment_id)
        return self.assignments[index] if index >= 0 else None

    def add_assignment(self, assignment: Assignment) -> Assignment:
        self.assignments.append(assignment)
        return assignment

    def add_student(self, student: Student) -> Student:
        self.students.append(student)
        return student

    def add_teacher(self, teacher: Teacher) -> Teacher:
        self.teachers.append(teacher)
        return teacher

    def cohort_start_year(self) -> Optional[int]:
        return _nullable_int(self.cohort, None)

    def cohort_year_ranges(self) -> List[str]:
        """Academic years covered by the course, e.g. cohort 2025 over 2 years -> ['2025-2026', '2026-2027']."""
        start = self.cohort_start_year()
        if not start or self.course_length < 1:
            return []
        return [f"{start + i}-{start + i + 1}" for i in range(self.course_length)]

    def to_json(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", exclude={"assignments"})
        data["assignments"] = [a.to_partial_json() for a in self.assignments]
        return data

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "ClassRecord":
        return cls.model_validate(data)
