from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from schemas.artifact import Artifact, ArtifactRole, BaseArtifact, artifact_from_json, create_artifact
from utils.hashing import generate_hash


def derive_task_id(task_title: str, page_id: Optional[str]) -> str:
    return "t_" + generate_hash(f"{task_title or ''}::{page_id or ''}")[:12]


class TaskArtifacts(BaseModel):
    reference: List[Artifact] = Field(default_factory=list)
    template: List[Artifact] = Field(default_factory=list)


class TaskValidation(BaseModel):
    ok: bool
    errors: List[str] = Field(default_factory=list)


class TaskDefinition(BaseModel):
    """A task extracted from the reference/template pair.

    ``id`` is derived from ``(task_title, page_id)`` once, at first
    construction, and is carried verbatim afterwards so that later edits to the
    title or page do not change the task's identity.
    """

    id: str = Field(..., description="Stable task id")
    task_title: str = Field(..., min_length=1)
    page_id: Optional[str] = None
    task_notes: Optional[str] = None
    task_metadata: Dict[str, Any] = Field(default_factory=dict)
    task_weighting: Optional[float] = Field(None, description="Weight of this task in the average score")
    index: Optional[int] = Field(None, description="Position within the source document, set by the parser")
    artifacts: TaskArtifacts = Field(default_factory=TaskArtifacts)

    @model_validator(mode="before")
    @classmethod
    def _derive_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("id"):
            data = dict(data)
            data["id"] = derive_task_id(data.get("task_title"), data.get("page_id"))
        if isinstance(data, dict) and data.get("task_metadata") is None:
            data = dict(data)
            data["task_metadata"] = {}
        return data

    def create_artifact(self, role: ArtifactRole, /, **params: Any) -> BaseArtifact:
        role = ArtifactRole(role)
        if role not in (ArtifactRole.REFERENCE, ArtifactRole.TEMPLATE):
            raise ValueError(f"Invalid artifact role for TaskDefinition: {role.value}")
        bucket = self.artifacts.reference if role is ArtifactRole.REFERENCE else self.artifacts.template
        fields = {k: v for k, v in params.items() if k not in ("role", "task_id", "task_index", "artifact_index")}
        artifact_type = fields.pop("type", "TEXT")
        if fields.get("page_id") is None:
            fields["page_id"] = self.page_id
        artifact = create_artifact(
            artifact_type,
            **fields,
            role=role,
            task_id=self.id,
            task_index=self.index,
            artifact_index=len(bucket),
        )
        bucket.append(artifact)
        return artifact

    def add_reference_artifact(self, **params: Any) -> BaseArtifact:
        return self.create_artifact(ArtifactRole.REFERENCE, **params)

    def add_template_artifact(self, **params: Any) -> BaseArtifact:
        return self.create_artifact(ArtifactRole.TEMPLATE, **params)

    def primary_reference(self) -> Optional[BaseArtifact]:
        return self.artifacts.reference[0] if self.artifacts.reference else None

    def primary_template(self) -> Optional[BaseArtifact]:
        return self.artifacts.template[0] if self.artifacts.template else None

    def validate_artifacts(self) -> TaskValidation:
        errors = []
        if not self.artifacts.reference:
            errors.append("TaskDefinition missing reference artifact")
        if not self.artifacts.template:
            errors.append("TaskDefinition missing template artifact")
        return TaskValidation(ok=not errors, errors=errors)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def to_partial_json(self) -> Dict[str, Any]:
        data = self.to_json()
        data["artifacts"] = {
            "reference": [a.to_partial_json() for a in self.artifacts.reference],
            "template": [a.to_partial_json() for a in self.artifacts.template],
        }
        return data

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "TaskDefinition":
        payload = dict(data)
        artifacts = payload.pop("artifacts", None) or {}
        task = cls.model_validate(payload)
        task.artifacts.reference.extend(artifact_from_json(a) for a in artifacts.get("reference") or [])
        task.artifacts.template.extend(artifact_from_json(a) for a in artifacts.get("template") or [])
        return task
