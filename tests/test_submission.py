"""Tests for schemas/submission.py."""

from __future__ import annotations

import pytest

from schemas.artifact import ArtifactRole, SpreadsheetArtifact, TextArtifact
from schemas.submission import Assessment, Submission, SubmissionItem
from schemas.task_definition import TaskDefinition
from utils.hashing import generate_hash


@pytest.fixture
def task() -> TaskDefinition:
    task = TaskDefinition(task_title="Q1", page_id="slide-1", index=0)
    task.add_reference_artifact(content="reference")
    task.add_template_artifact(content="template")
    return task


@pytest.fixture
def submission() -> Submission:
    return Submission(student_id="stu-1", assignment_id="asg-1", document_id="doc-stu-1", student_name="Sam")


class TestUpsert:
    def test_creates_item(self, submission, task):
        item = submission.upsert_item_from_extraction(task, {"content": "  my answer "})
        assert submission.get_item(task.id) is item
        assert isinstance(item.artifact, TextArtifact)
        assert item.artifact.role is ArtifactRole.SUBMISSION
        assert item.artifact.content == "my answer"
        assert item.artifact.uid == f"{task.id}-stu-1-slide-1-0"
        assert item.artifact.document_id == "doc-stu-1"
        assert item.id == "ssi_" + generate_hash(f"{task.id}::{item.artifact.uid}")[:16]

    def test_updates_content_and_rehashes(self, submission, task):
        item = submission.upsert_item_from_extraction(task, {"content": "first"})
        item_id = item.id
        old_hash = item.artifact.content_hash
        again = submission.upsert_item_from_extraction(task, {"content": "second"})
        assert again is item
        assert item.id == item_id
        assert item.artifact.content == "second"
        assert item.artifact.content_hash != old_hash

    def test_metadata_merged_and_content_untouched_when_absent(self, submission, task):
        submission.upsert_item_from_extraction(task, {"content": "a", "metadata": {"x": 1}})
        item = submission.upsert_item_from_extraction(task, {"metadata": {"y": 2}})
        assert item.artifact.metadata == {"x": 1, "y": 2}
        assert item.artifact.content == "a"

    def test_type_from_primary_reference(self, submission):
        task = TaskDefinition(task_title="Sheet task")
        task.add_reference_artifact(type="SPREADSHEET", content=[["=a1"]])
        item = submission.upsert_item_from_extraction(task, {"content": [["=b2"]]})
        assert isinstance(item.artifact, SpreadsheetArtifact)
        assert item.artifact.content == [["=B2"]]

    def test_type_from_task_metadata(self, submission):
        task = TaskDefinition(task_title="Table task", task_metadata={"task_type": "table"})
        item = submission.upsert_item_from_extraction(task, {"content": [["a"]]})
        assert item.type == "TABLE"

    def test_missing_task_raises(self, submission):
        with pytest.raises(ValueError):
            submission.upsert_item_from_extraction(None, {})


class TestUpdatedAt:
    def test_monotonic_with_sequence_suffix(self, submission, task):
        submission.upsert_item_from_extraction(task, {"content": "a"})
        first = submission.updated_at
        submission.upsert_item_from_extraction(task, {"content": "b"})
        second = submission.updated_at
        assert first.endswith("#000001")
        assert second.endswith("#000002")
        assert second > first

    def test_no_mutation_no_touch(self, submission, task):
        submission.upsert_item_from_extraction(task, {"content": "a"})
        before = submission.updated_at
        submission.upsert_item_from_extraction(task, {})
        assert submission.updated_at == before


    def test_loaded_submission_continues_sequence(self, submission, task, monkeypatch):
        monkeypatch.setattr("schemas.submission.now_iso", lambda: "2025-01-01T00:00:00.000Z")
        submission.upsert_item_from_extraction(task, {"content": "a"})
        submission.upsert_item_from_extraction(task, {"content": "b"})
        submission.upsert_item_from_extraction(task, {"content": "c"})
        stored = submission.updated_at

        loaded = Submission.from_json(submission.to_json())
        loaded.upsert_item_from_extraction(task, {"content": "d"})

        assert stored == "2025-01-01T00:00:00.000Z#000003"
        assert loaded.updated_at == "2025-01-01T00:00:00.000Z#000004"
        assert loaded.updated_at > stored


class TestAssessmentsAndFeedback:
    def test_add_and_get(self, submission, task):
        item = submission.upsert_item_from_extraction(task, {"content": "a"})
        item.add_assessment("completeness", {"score": 3, "reasoning": "ok"})
        item.add_assessment("accuracy", Assessment(score=5, reasoning="good"))
        item.add_feedback("cell_reference", {"items": [1]})
        assert item.get_assessment("completeness").score == 3
        assert set(item.get_assessment()) == {"completeness", "accuracy"}
        assert item.get_feedback("cell_reference") == {"items": [1]}
        assert item.get_feedback("missing") is None

    def test_criterion_required(self, submission, task):
        item = submission.upsert_item_from_extraction(task, {"content": "a"})
        with pytest.raises(ValueError):
            item.add_assessment("", {"score": 1})


class TestSerialisation:
    def test_round_trip(self, submission, task):
        item = submission.upsert_item_from_extraction(task, {"content": "a"})
        item.add_assessment("accuracy", {"score": 4, "reasoning": "fine"})
        restored = Submission.from_json(submission.to_json())
        assert restored.to_json() == submission.to_json()
        assert restored.get_item(task.id).id == item.id

    def test_partial_redacts_artifacts(self, submission, task):
        submission.upsert_item_from_extraction(task, {"content": "a"})
        partial = submission.to_partial_json()
        artifact = partial["items"][task.id]["artifact"]
        assert artifact["content"] is None
        assert artifact["content_hash"] is None
        assert submission.get_item(task.id).artifact.content == "a"

    def test_item_from_json_keeps_id(self, submission, task):
        item = submission.upsert_item_from_extraction(task, {"content": "a"})
        data = item.to_json()
        data["id"] = "ssi_legacy"
        assert SubmissionItem.from_json(data).id == "ssi_legacy"
