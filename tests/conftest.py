"""Shared pytest fixtures.

Provides:
- ``store``: fresh InMemoryDocumentStore per test
- ``parser``: FakeParser returning two valid tasks per call
- ``timestamps``: FakeTimestampProvider with both source documents set
- ``definitions`` / ``assignments``: controllers wired to the fixtures above
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from assignment_controller import AssignmentPersistenceController
from database.memory import InMemoryDocumentStore
from definition_controller import AssignmentDefinitionController

REF_DOC = "doc-ref-001"
TPL_DOC = "doc-tpl-001"


def task_payload(title: str, page_id: str, index: int, answer: str = "42") -> Dict[str, Any]:
    return {
        "task_title": title,
        "page_id": page_id,
        "index": index,
        "reference": [{"type": "TEXT", "content": f"{title} answer {answer}"}],
        "template": [{"type": "TEXT", "content": f"{title} prompt"}],
    }


class FakeParser:
    def __init__(self, tasks: Optional[List[Dict[str, Any]]] = None) -> None:
        self.tasks = tasks if tasks is not None else [
            task_payload("Task One", "slide-1", 0),
            task_payload("Task Two", "slide-2", 1),
        ]
        self.calls: List[tuple] = []
        self.error: Optional[Exception] = None

    def extract_task_definitions(self, reference_document_id, template_document_id, document_type):
        self.calls.append((reference_document_id, template_document_id, document_type))
        if self.error is not None:
            raise self.error
        return list(self.tasks)


class FakeTimestampProvider:
    def __init__(self, times: Optional[Dict[str, Any]] = None) -> None:
        self.times = dict(times or {})
        self.error: Optional[Exception] = None

    def get_modified_time(self, document_id):
        if self.error is not None:
            raise self.error
        return self.times.get(document_id)


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def parser() -> FakeParser:
    return FakeParser()


@pytest.fixture
def timestamps() -> FakeTimestampProvider:
    return FakeTimestampProvider({
        REF_DOC: "2025-01-01T10:00:00Z",
        TPL_DOC: "2025-01-01T09:00:00Z",
    })


@pytest.fixture
def definitions(store, parser, timestamps) -> AssignmentDefinitionController:
    return AssignmentDefinitionController(store, parser=parser, timestamp_provider=timestamps)


@pytest.fixture
def assignments(store, definitions) -> AssignmentPersistenceController:
    return AssignmentPersistenceController(store, definition_controller=definitions)


@pytest.fixture
def ensure_args() -> Dict[str, Any]:
    return {
        "primary_title": "Algorithms 1",
        "primary_topic": "Algorithms",
        "year_group": 10,
        "document_type": "SLIDES",
        "reference_document_id": REF_DOC,
        "template_document_id": TPL_DOC,
    }
