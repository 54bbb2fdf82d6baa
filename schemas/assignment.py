from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, PrivateAttr, field_validator, model_validator

from schemas.assignment_definition import (
    DocumentType,
    FullAssignmentDefinition,
    HydrationLevel,
    PartialAssignmentDefinition,
    assignment_definition_from_json,
)
from schemas.submission import Submission
from utils.timestamps import now_iso


class Assignment(BaseModel):
    """One graded run of an assignment definition for one course.

    ``hydration_level`` is an in-memory marker only; it is never serialised.
    It starts from the form of the embedded definition and is overwritten by
    the persistence controller when it swaps full and partial instances.
    """

    course_id: str = Field(..., min_length=1)
    assignment_id: str = Field(..., min_length=1)
    assignment_name: Optional[str] = None
    document_type: Optional[DocumentType] = None
    assignment_definition: Union[FullAssignmentDefinition, PartialAssignmentDefinition]
    submissions: List[Submission] = Field(default_factory=list)
    last_updated: Optional[str] = None

    _hydration_level: HydrationLevel = PrivateAttr(default=HydrationLevel.PARTIAL)

    @field_validator("assignment_definition", mode="before")
    @classmethod
    def _dispatch_definition(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return assignment_definition_from_json(value)
        return value

    @model_validator(mode="after")
    def _defaults_from_definition(self) -> "Assignment":
        if self.document_type is None:
            self.document_type = self.assignment_definition.document_type
        if self.assignment_name is None:
            self.assignment_name = self.assignment_definition.primary_title
        self._hydration_level = self.assignment_definition.hydration_level
        return self

    @classmethod
    def create(
        cls,
        definition: FullAssignmentDefinition,
        course_id: str,
        assignment_id: str,
        assignment_name: Optional[str] = None,
    ) -> "Assignment":
        return cls(
            course_id=course_id,
            assignment_id=assignment_id,
            assignment_name=assignment_name,
            assignment_definition=definition,
        )

    @property
    def hydration_level(self) -> HydrationLevel:
        return self._hydration_level

    def mark_hydration(self, level: HydrationLevel) -> None:
        self._hydration_level = HydrationLevel(level)

    def touch_updated(self) -> str:
        self.last_updated = now_iso()
        return self.last_updated

    def add_submission(self, submission: Submission) -> Submission:
        """Add a submission, replacing any existing one for the same student."""
        for i, existing in enumerate(self.submissions):
            if existing.student_id == submission.student_id:
                self.submissions[i] = submission
                return submission
        self.submissions.append(submission)
        return submission

    def get_submission(self, student_id: str) -> Optional[Submission]:
        return next((s for s in self.submissions if s.student_id == student_id), None)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def to_partial_json(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", exclude={"assignment_definition", "submissions"})
        data["assignment_definition"] = self.assignment_definition.to_partial_json()
        data["submissions"] = [s.to_partial_json() for s in self.submissions]
        return data

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Assignment":
        return cls.model_validate(data)
