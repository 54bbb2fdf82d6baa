from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, PrivateAttr, model_validator

from logging_config import logger
from schemas.artifact import Artifact, ArtifactRole, ArtifactType, BaseArtifact, artifact_from_json, create_artifact
from schemas.task_definition import TaskDefinition
from utils.hashing import generate_hash
from utils.timestamps import now_iso


class Assessment(BaseModel):
    score: Optional[float] = Field(None, description="Score awarded for one criterion")
    reasoning: Optional[str] = Field(None, description="Why the score was awarded")


def derive_item_id(task_id: str, artifact: BaseArtifact) -> str:
    resolved = artifact.uid or artifact.content_hash or ""
    return "ssi_" + generate_hash(f"{task_id}::{resolved}")[:16]


class SubmissionItem(BaseModel):
    """One student's answer to one task, with its assessments and feedback."""

    id: str
    task_id: str = Field(..., min_length=1)
    artifact: Artifact
    assessments: Dict[str, Assessment] = Field(default_factory=dict, description="criterion -> {score, reasoning}")
    feedback: Dict[str, Any] = Field(default_factory=dict, description="feedback type -> rendered result")

    @model_validator(mode="before")
    @classmethod
    def _derive_id(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        artifact = data.get("artifact")
        if artifact is None:
            raise ValueError("SubmissionItem requires artifact")
        if isinstance(artifact, dict):
            artifact = artifact_from_json(artifact)
            data["artifact"] = artifact
        if not data.get("id") and data.get("task_id"):
            data["id"] = derive_item_id(data["task_id"], artifact)
        for key in ("assessments", "feedback"):
            if data.get(key) is None:
                data[key] = {}
        return data

    def add_assessment(self, criterion: str, assessment: Any) -> None:
        if not criterion:
            raise ValueError("add_assessment requires a criterion")
        if not assessment:
            return
        if isinstance(assessment, Assessment):
            self.assessments[criterion] = assessment
        else:
            self.assessments[criterion] = Assessment.model_validate(assessment)

    def get_assessment(self, criterion: Optional[str] = None):
        if not criterion:
            return self.assessments
        return self.assessments.get(criterion)

    def add_feedback(self, feedback_type: str, feedback: Any) -> None:
        if not feedback_type:
            raise ValueError("add_feedback requires a feedback type")
        if not feedback:
            return
        self.feedback[feedback_type] = feedback.model_dump() if isinstance(feedback, BaseModel) else feedback

    def get_feedback(self, feedback_type: Optional[str] = None):
        if not feedback_type:
            return self.feedback
        return self.feedback.get(feedback_type)

    @property
    def type(self) -> str:
        return self.artifact.type

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def to_partial_json(self) -> Dict[str, Any]:
        data = self.to_json()
        data["artifact"] = self.artifact.to_partial_json()
        return data

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "SubmissionItem":
        return cls.model_validate(data)


class Submission(BaseModel):
    """Per-student mirror of an assignment's tasks.

    ``updated_at`` carries a ``#NNNNNN`` sequence suffix so that two touches in
    the same millisecond still compare in order.
    """

    student_id: str = Field(..., min_length=1)
    assignment_id: str = Field(..., min_length=1)
    document_id: Optional[str] = None
    student_name: Optional[str] = None
    items: Dict[str, SubmissionItem] = Field(default_factory=dict, description="task id -> item")
    created_at: str = Field(default_factory=now_iso)
    updated_at: Optional[str] = None

    _update_counter: int = PrivateAttr(default=0)

    def model_post_init(self, __context: Any) -> None:
        # continue the sequence of a loaded record
        _, sep, suffix = (self.updated_at or "").rpartition("#")
        if sep and suffix.isdigit():
            self._update_counter = int(suffix)

    @model_validator(mode="after")
    def _default_updated_at(self) -> "Submission":
        if not self.updated_at:
            self.updated_at = self.created_at
        return self

    def touch_updated(self) -> str:
        self._update_counter += 1
        self.updated_at = f"{now_iso()}#{self._update_counter:06d}"
        return self.updated_at

    def get_item(self, task_id: str) -> Optional[SubmissionItem]:
        return self.items.get(task_id)

    def upsert_item_from_extraction(
        self, task_definition: TaskDefinition, extraction: Optional[Dict[str, Any]] = None
    ) -> SubmissionItem:
        """Create or update the item for ``task_definition`` from raw extracted values.

        ``extraction`` may hold ``page_id``, ``content``, ``document_id`` and
        ``metadata``. On update only the keys present are applied: content goes
        through ``set_content`` and metadata is merged into the existing map.
        """
        if task_definition is None:
            raise ValueError("upsert_item_from_extraction requires a task definition")
        extraction = extraction or {}
        task_id = task_definition.id
        item = self.items.get(task_id)
        mutated = False

        if item is not None:
            if "content" in extraction:
                item.artifact.set_content(extraction["content"])
                mutated = True
            if "metadata" in extraction:
                item.artifact.metadata = {**item.artifact.metadata, **(extraction["metadata"] or {})}
                mutated = True
        else:
            page_id = extraction.get("page_id") or task_definition.page_id
            artifact = create_artifact(
                self._infer_type(task_definition),
                task_id=task_id,
                role=ArtifactRole.SUBMISSION,
                page_id=page_id,
                document_id=extraction.get("document_id") or self.document_id,
                content=extraction.get("content"),
                metadata=extraction.get("metadata") or {},
                uid=f"{task_id}-{self.student_id}-{page_id or 'na'}-0",
            )
            if artifact.content is None and artifact.type != ArtifactType.IMAGE.value:
                logger.warning(
                    f"No content found for {self.student_name or self.student_id} "
                    f"for task '{task_definition.task_title}'"
                )
            item = SubmissionItem(task_id=task_id, artifact=artifact)
            self.items[task_id] = item
            mutated = True

        if mutated:
            self.touch_updated()
        return item

    @staticmethod
    def _infer_type(task_definition: TaskDefinition) -> str:
        reference = task_definition.primary_reference()
        if reference is not None:
            return reference.type
        task_type = task_definition.task_metadata.get("task_type")
        if task_type:
            return str(task_type).upper()
        return ArtifactType.TEXT.value

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def to_partial_json(self) -> Dict[str, Any]:
        data = self.to_json()
        data["items"] = {task_id: item.to_partial_json() for task_id, item in self.items.items()}
        return data

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Submission":
        return cls.model_validate(data)
