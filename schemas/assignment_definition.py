from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, StrictInt, field_validator, model_validator

from schemas.task_definition import TaskDefinition
from utils.naming import join_key_parts
from utils.timestamps import Timestamp, now_iso, to_iso


class DocumentType(str, Enum):
    SLIDES = "SLIDES"
    SHEETS = "SHEETS"


class HydrationLevel(str, Enum):
    FULL = "full"
    PARTIAL = "partial"


# Fields left out of the partial (registry) form.
FULL_ONLY_FIELDS = {
    "tasks",
    "reference_document_id",
    "template_document_id",
    "reference_last_modified",
    "template_last_modified",
}


def build_definition_key(primary_title: str, primary_topic: str, year_group: Optional[int]) -> str:
    """Natural key of a definition: escaped title, topic and year group (``null`` when absent)."""
    return join_key_parts(primary_title, primary_topic, year_group)


class AssignmentDefinitionBase(BaseModel):
    primary_title: str = Field(..., min_length=1, description="Canonical assignment title")
    primary_topic: str = Field(..., min_length=1, description="Canonical topic name")
    year_group: Optional[StrictInt] = Field(None, description="Intended year group; null until known")
    alternate_titles: List[str] = Field(default_factory=list)
    alternate_topics: List[str] = Field(default_factory=list)
    document_type: DocumentType
    assignment_weighting: Optional[float] = None
    definition_key: str = Field(..., description="Business key used for lookup and heavy-store routing")
    created_at: str
    updated_at: str

    @model_validator(mode="before")
    @classmethod
    def _fill_derived_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if isinstance(data.get("document_type"), str):
            data["document_type"] = data["document_type"].upper()
        for key in ("alternate_titles", "alternate_topics"):
            if data.get(key) is None:
                data[key] = []
        if not data.get("definition_key") and data.get("primary_title") and data.get("primary_topic"):
            data["definition_key"] = build_definition_key(
                data["primary_title"], data["primary_topic"], data.get("year_group")
            )
        if not data.get("created_at"):
            data["created_at"] = now_iso()
        if not data.get("updated_at"):
            data["updated_at"] = data["created_at"]
        return data

    def touch_updated(self) -> str:
        self.updated_at = now_iso()
        return self.updated_at

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class PartialAssignmentDefinition(AssignmentDefinitionBase):
    """Registry form: metadata only, ``tasks`` is always None."""

    tasks: None = None

    @property
    def hydration_level(self) -> HydrationLevel:
        return HydrationLevel.PARTIAL

    def to_partial_json(self) -> Dict[str, Any]:
        return self.to_json()


class FullAssignmentDefinition(AssignmentDefinitionBase):
    """Heavy-store form with every task and its artifact content."""

    reference_document_id: str = Field(..., min_length=1)
    template_document_id: str = Field(..., min_length=1)
    reference_last_modified: Optional[str] = Field(None, description="Reference document modified time at last parse")
    template_last_modified: Optional[str] = Field(None, description="Template document modified time at last parse")
    tasks: Dict[str, TaskDefinition]

    @field_validator("tasks", mode="before")
    @classmethod
    def _hydrate_tasks(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("Full definition cannot have tasks: None")
        if isinstance(value, dict):
            return {
                task_id: task if isinstance(task, TaskDefinition) else TaskDefinition.from_json(task)
                for task_id, task in value.items()
            }
        return value

    @field_validator("reference_last_modified", "template_last_modified", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> Optional[str]:
        return to_iso(value)

    @property
    def hydration_level(self) -> HydrationLevel:
        return HydrationLevel.FULL

    def update_modified_timestamps(
        self,
        reference_last_modified: Optional[Timestamp] = None,
        template_last_modified: Optional[Timestamp] = None,
    ) -> None:
        if reference_last_modified is not None:
            self.reference_last_modified = to_iso(reference_last_modified)
        if template_last_modified is not None:
            self.template_last_modified = to_iso(template_last_modified)
        self.touch_updated()

    def ordered_tasks(self) -> List[TaskDefinition]:
        return sorted(self.tasks.values(), key=lambda t: (t.index is None, t.index or 0))

    def to_partial_json(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", exclude=FULL_ONLY_FIELDS)
        data["tasks"] = None
        return data

    def to_partial(self) -> PartialAssignmentDefinition:
        return PartialAssignmentDefinition.model_validate(self.to_partial_json())


AssignmentDefinition = Union[FullAssignmentDefinition, PartialAssignmentDefinition]


def assignment_definition_from_json(data: Dict[str, Any]) -> AssignmentDefinition:
    """Rebuild either form; ``tasks: None`` marks the partial form, a missing key means no tasks yet."""
    if not data:
        raise ValueError("Invalid data for assignment definition")
    if "tasks" in data and data["tasks"] is None:
        return PartialAssignmentDefinition.model_validate(data)
    payload = dict(data)
    payload.setdefault("tasks", {})
    return FullAssignmentDefinition.model_validate(payload)
