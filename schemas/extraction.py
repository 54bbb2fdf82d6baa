from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from schemas.task_definition import TaskDefinition


class ArtifactExtraction(BaseModel):
    type: str = Field("TEXT", description="Artifact type: TEXT, TABLE, SPREADSHEET or IMAGE")
    content: Any = None
    page_id: Optional[str] = None
    document_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class TaskExtraction(BaseModel):
    """Raw parser output for one task, before ids and hashes are assigned."""

    task_title: str = Field(..., min_length=1)
    page_id: Optional[str] = None
    index: Optional[int] = None
    task_notes: Optional[str] = None
    task_metadata: Dict[str, Any] = Field(default_factory=dict)
    task_weighting: Optional[float] = None
    reference: List[ArtifactExtraction] = Field(default_factory=list)
    template: List[ArtifactExtraction] = Field(default_factory=list)

    def to_task_definition(self) -> TaskDefinition:
        task = TaskDefinition(
            task_title=self.task_title,
            page_id=self.page_id,
            index=self.index,
            task_notes=self.task_notes,
            task_metadata=dict(self.task_metadata),
            task_weighting=self.task_weighting,
        )
        for artifact in self.reference:
            task.add_reference_artifact(**artifact.model_dump())
        for artifact in self.template:
            task.add_template_artifact(**artifact.model_dump())
        return task
