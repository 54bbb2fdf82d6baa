"""Tests for schemas/assignment_definition.py: the full and partial forms."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from schemas.assignment_definition import (
    DocumentType,
    FullAssignmentDefinition,
    HydrationLevel,
    PartialAssignmentDefinition,
    assignment_definition_from_json,
    build_definition_key,
)
from schemas.task_definition import TaskDefinition


def _task(title: str, page_id: str, index: int) -> TaskDefinition:
    task = TaskDefinition(task_title=title, page_id=page_id, index=index)
    task.add_reference_artifact(content=f"{title} reference")
    task.add_template_artifact(content=f"{title} template")
    return task


@pytest.fixture
def full_definition() -> FullAssignmentDefinition:
    tasks = [_task("Q1", "s1", 0), _task("Q2", "s2", 1)]
    return FullAssignmentDefinition(
        primary_title="Algorithms 1",
        primary_topic="Algorithms",
        year_group=10,
        document_type="slides",
        reference_document_id="ref",
        template_document_id="tpl",
        reference_last_modified="2025-01-01T10:00:00Z",
        template_last_modified="2025-01-01T09:00:00Z",
        tasks={t.id: t for t in tasks},
    )


class TestDefinitionKey:
    def test_key_parts(self):
        assert build_definition_key("Algorithms 1", "Algorithms", 10) == "Algorithms%201_Algorithms_10"

    def test_missing_year_group(self):
        assert build_definition_key("A", "B", None) == "A_B_null"

    def test_separator_in_parts_cannot_collide(self):
        assert build_definition_key("a_b", "c", None) != build_definition_key("a", "b_c", None)

    def test_key_derived_on_construction(self, full_definition):
        assert full_definition.definition_key == "Algorithms%201_Algorithms_10"


class TestValidation:
    def test_document_type_normalised(self, full_definition):
        assert full_definition.document_type is DocumentType.SLIDES

    def test_full_requires_document_ids(self):
        with pytest.raises(ValidationError):
            FullAssignmentDefinition(primary_title="T", primary_topic="P", document_type="SHEETS", tasks={})

    def test_full_rejects_null_tasks(self):
        with pytest.raises(ValidationError):
            FullAssignmentDefinition(
                primary_title="T",
                primary_topic="P",
                document_type="SHEETS",
                reference_document_id="r",
                template_document_id="t",
                tasks=None,
            )

    def test_year_group_must_be_int_or_null(self):
        with pytest.raises(ValidationError):
            PartialAssignmentDefinition(primary_title="T", primary_topic="P", document_type="SHEETS", year_group="ten")

    def test_partial_needs_only_metadata(self):
        partial = PartialAssignmentDefinition(primary_title="T", primary_topic="P", document_type="SHEETS")
        assert partial.tasks is None
        assert partial.year_group is None
        assert partial.hydration_level is HydrationLevel.PARTIAL

    def test_partial_rejects_tasks(self):
        with pytest.raises(ValidationError):
            PartialAssignmentDefinition(primary_title="T", primary_topic="P", document_type="SHEETS", tasks={})


class TestTimestamps:
    def test_updated_at_defaults_to_created_at(self, full_definition):
        assert full_definition.updated_at == full_definition.created_at

    def test_update_modified_timestamps_touches(self, full_definition):
        full_definition.updated_at = "2000-01-01T00:00:00.000Z"
        full_definition.update_modified_timestamps(reference_last_modified="2025-02-01T00:00:00Z")
        assert full_definition.reference_last_modified == "2025-02-01T00:00:00Z"
        assert full_definition.template_last_modified == "2025-01-01T09:00:00Z"
        assert full_definition.updated_at != "2000-01-01T00:00:00.000Z"


class TestForms:
    def test_full_round_trip(self, full_definition):
        restored = assignment_definition_from_json(full_definition.to_json())
        assert isinstance(restored, FullAssignmentDefinition)
        assert restored.to_json() == full_definition.to_json()
        assert list(restored.tasks) == list(full_definition.tasks)

    def test_partial_form_is_redacted(self, full_definition):
        partial = full_definition.to_partial_json()
        assert partial["tasks"] is None
        assert "reference_document_id" not in partial
        assert "template_last_modified" not in partial
        assert partial["definition_key"] == full_definition.definition_key
        assert partial["primary_title"] == "Algorithms 1"

    def test_partial_json_dispatches_to_partial(self, full_definition):
        restored = assignment_definition_from_json(full_definition.to_partial_json())
        assert isinstance(restored, PartialAssignmentDefinition)
        assert restored.definition_key == full_definition.definition_key
        assert restored.created_at == full_definition.created_at

    def test_missing_tasks_key_is_empty_full(self, full_definition):
        data = full_definition.to_json()
        del data["tasks"]
        restored = assignment_definition_from_json(data)
        assert isinstance(restored, FullAssignmentDefinition)
        assert restored.tasks == {}

    def test_to_partial_keeps_full_untouched(self, full_definition):
        partial = full_definition.to_partial()
        assert isinstance(partial, PartialAssignmentDefinition)
        assert len(full_definition.tasks) == 2
        assert full_definition.hydration_level is HydrationLevel.FULL

    def test_ordered_tasks(self, full_definition):
        assert [t.task_title for t in full_definition.ordered_tasks()] == ["Q1", "Q2"]
