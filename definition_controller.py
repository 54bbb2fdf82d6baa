import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Union

from pydantic import ValidationError

from config import StoreConfig
from database.protocols import DocumentStore
from errors import DefinitionRefreshError, PartialWriteError, PersistError
from logging_config import logger
from schemas.assignment_definition import (
    AssignmentDefinition,
    DocumentType,
    FullAssignmentDefinition,
    PartialAssignmentDefinition,
    assignment_definition_from_json,
    build_definition_key,
)
from schemas.extraction import TaskExtraction
from schemas.task_definition import TaskDefinition
from utils.db_utils import upsert_document
from utils.naming import collection_name
from utils.timestamps import Timestamp, is_newer, to_iso


class DocumentParser(Protocol):
    def extract_task_definitions(
        self, reference_document_id: str, template_document_id: str, document_type: str
    ) -> Iterable[Union[TaskExtraction, TaskDefinition, Dict[str, Any]]]: ...


class TimestampProvider(Protocol):
    def get_modified_time(self, document_id: str) -> Optional[Timestamp]: ...


# (course_id, topic_id) -> topic name
TopicResolver = Callable[[str, str], Optional[str]]


def definition_needs_refresh(
    definition: Optional[FullAssignmentDefinition],
    reference_modified: Optional[Timestamp],
    template_modified: Optional[Timestamp],
) -> bool:
    """Decide whether a stored definition must be re-derived from its source documents.

    Stale when there is no definition, it has no tasks, either stored timestamp
    is missing, or either observed timestamp is strictly newer than the stored
    one. Unparsable timestamps count as "not newer" for that document.
    """
    if definition is None:
        return True
    if not definition.tasks:
        return True
    if not definition.reference_last_modified or not definition.template_last_modified:
        return True
    return is_newer(reference_modified, definition.reference_last_modified) or is_newer(
        template_modified, definition.template_last_modified
    )


class AssignmentDefinitionController:
    """Keeps assignment definitions current and stored in two places.

    The registry collection holds one partial record per definition key and is
    cheap to list. Each definition's full record, with all artifact content,
    lives in its own collection named from the key. Writes always go to the
    full collection first, then the registry.
    """

    def __init__(
        self,
        store: DocumentStore,
        parser: Optional[DocumentParser] = None,
        timestamp_provider: Optional[TimestampProvider] = None,
        topic_resolver: Optional[TopicResolver] = None,
        registry_collection_name: Optional[str] = None,
        collection_prefix: Optional[str] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.parser = parser
        self.timestamp_provider = timestamp_provider
        self.topic_resolver = topic_resolver
        self.registry_collection_name = registry_collection_name or StoreConfig.get_registry_collection_name()
        self.collection_prefix = collection_prefix or StoreConfig.get_definition_collection_prefix()
        self.log = log or logger

    def full_collection_name(self, definition_key: str) -> str:
        return collection_name(self.collection_prefix, definition_key)

    # ── Ensure ──────────────────────────────────────────────────────────────

    def ensure_definition(
        self,
        primary_title: str,
        document_type: Union[DocumentType, str],
        reference_document_id: str,
        template_document_id: str,
        primary_topic: Optional[str] = None,
        year_group: Optional[int] = None,
        course_id: Optional[str] = None,
        topic_id: Optional[str] = None,
        alternate_titles: Optional[List[str]] = None,
        alternate_topics: Optional[List[str]] = None,
        assignment_weighting: Optional[float] = None,
    ) -> FullAssignmentDefinition:
        """Return a fully hydrated, up-to-date definition, re-parsing only when stale."""
        if not primary_title:
            raise ValueError("ensure_definition requires primary_title")
        if not document_type:
            raise ValueError("ensure_definition requires document_type")
        if not reference_document_id or not template_document_id:
            raise ValueError("ensure_definition requires reference_document_id and template_document_id")
        document_type = DocumentType(str(getattr(document_type, "value", document_type)).upper())

        topic = primary_topic or self._resolve_topic(course_id, topic_id)
        if not topic:
            raise ValueError(f"Could not resolve a topic for '{primary_title}' (course={course_id}, topic={topic_id})")

        key = build_definition_key(primary_title, topic, year_group)
        self.log.info(f"Ensuring definition {key}")

        reference_modified = self._fetch_modified_time(key, reference_document_id)
        template_modified = self._fetch_modified_time(key, template_document_id)

        existing = self._load_existing(key)
        ids_changed = existing is not None and (
            existing.reference_document_id != reference_document_id
            or existing.template_document_id != template_document_id
        )
        if ids_changed:
            self.log.info(
                f"Definition {key} now points at different source documents; refreshing",
                extra={"reference_document_id": reference_document_id, "template_document_id": template_document_id},
            )

        if not ids_changed and not definition_needs_refresh(existing, reference_modified, template_modified):
            self.log.info(f"Definition {key} is fresh; skipping re-parse")
            self._backfill_registry(existing)
            return existing

        if existing is None:
            definition = FullAssignmentDefinition(
                primary_title=primary_title,
                primary_topic=topic,
                year_group=year_group,
                document_type=document_type,
                reference_document_id=reference_document_id,
                template_document_id=template_document_id,
                tasks={},
            )
        else:
            definition = existing
            definition.reference_document_id = reference_document_id
            definition.template_document_id = template_document_id
            definition.document_type = document_type

        for title in alternate_titles or []:
            if title not in definition.alternate_titles:
                definition.alternate_titles.append(title)
        for alt_topic in alternate_topics or []:
            if alt_topic not in definition.alternate_topics:
                definition.alternate_topics.append(alt_topic)
        if assignment_weighting is not None:
            definition.assignment_weighting = assignment_weighting

        definition.tasks = self._parse_tasks(definition, previous=existing.tasks if existing else {})
        definition.update_modified_timestamps(reference_modified, template_modified)
        self.save_definition(definition)
        self.log.info(f"Definition {key} refreshed with {len(definition.tasks)} task(s)")
        return definition

    def _resolve_topic(self, course_id: Optional[str], topic_id: Optional[str]) -> Optional[str]:
        if self.topic_resolver is None or not topic_id:
            return None
        return self.topic_resolver(course_id, topic_id)

    def _fetch_modified_time(self, key: str, document_id: str) -> str:
        if self.timestamp_provider is None:
            raise DefinitionRefreshError("No timestamp provider configured", definition_key=key, document_id=document_id)
        try:
            value = self.timestamp_provider.get_modified_time(document_id)
        except Exception as e:
            self.log.error(f"Could not read modified time of {document_id} for {key}: {e}", exc_info=True)
            raise DefinitionRefreshError(
                f"Modified time lookup failed for document {document_id}", definition_key=key, document_id=document_id
            ) from e
        if value is None or value == "":
            self.log.error(f"No modified time returned for document {document_id} ({key})")
            raise DefinitionRefreshError(
                f"No modified time available for document {document_id}", definition_key=key, document_id=document_id
            )
        return to_iso(value)

    def _load_existing(self, key: str) -> Optional[FullAssignmentDefinition]:
        try:
            definition = self.get_definition_by_key(key, form="full")
        except ValidationError as e:
            self.log.warning(f"Stored definition {key} failed validation; it will be rebuilt: {e}")
            return None
        return definition

    def _backfill_registry(self, definition: FullAssignmentDefinition) -> None:
        registry = self.store.get_collection(self.registry_collection_name)
        if registry.find_one({"definition_key": definition.definition_key}) is None:
            self.log.warning(f"Registry record missing for {definition.definition_key}; rewriting partial record")
            self.save_partial_definition(definition)

    def _parse_tasks(
        self, definition: FullAssignmentDefinition, previous: Dict[str, TaskDefinition]
    ) -> Dict[str, TaskDefinition]:
        key = definition.definition_key
        if self.parser is None:
            raise DefinitionRefreshError("No document parser configured", definition_key=key)
        try:
            extracted = self.parser.extract_task_definitions(
                definition.reference_document_id,
                definition.template_document_id,
                definition.document_type.value,
            )
        except Exception as e:
            self.log.error(f"Parsing source documents for {key} failed: {e}", exc_info=True)
            raise DefinitionRefreshError(
                f"Parser failed for definition {key}",
                definition_key=key,
                document_id=definition.reference_document_id,
            ) from e

        tasks: Dict[str, TaskDefinition] = {}
        for raw in extracted or []:
            try:
                task = self._to_task_definition(raw)
            except (ValidationError, ValueError) as e:
                self.log.warning(f"Dropping unreadable task from parser output for {key}: {e}")
                continue
            validation = task.validate_artifacts()
            if not validation.ok:
                self.log.warning(
                    f"Dropping invalid task '{task.task_title}' ({task.id}) from {key}: {'; '.join(validation.errors)}"
                )
                continue
            if task.id in tasks:
                self.log.warning(f"Duplicate task id {task.id} in {key}; keeping the later one")
            tasks[task.id] = task

        removed = [task_id for task_id in previous if task_id not in tasks]
        if removed:
            self.log.warning(f"Tasks no longer present in source documents for {key}: {', '.join(removed)}")
        if not tasks:
            self.log.warning(f"Parser returned no valid tasks for {key}")
        return tasks

    @staticmethod
    def _to_task_definition(raw: Any) -> TaskDefinition:
        if isinstance(raw, TaskDefinition):
            return raw
        if isinstance(raw, TaskExtraction):
            return raw.to_task_definition()
        if isinstance(raw, dict):
            if "artifacts" in raw:
                return TaskDefinition.from_json(raw)
            return TaskExtraction.model_validate(raw).to_task_definition()
        raise ValueError(f"Unsupported task payload: {type(raw).__name__}")

    # ── Read ────────────────────────────────────────────────────────────────

    def get_definition_by_key(self, definition_key: str, form: str = "full") -> Optional[AssignmentDefinition]:
        """Load one definition; ``form`` is ``"full"`` (heavy collection) or ``"partial"`` (registry)."""
        if form == "full":
            name = self.full_collection_name(definition_key)
            if not self.store.has_collection(name):
                return None
            doc = self.store.get_collection(name).find_one({"definition_key": definition_key})
            if not doc:
                return None
            definition = assignment_definition_from_json(doc)
            if not isinstance(definition, FullAssignmentDefinition):
                self.log.warning(f"Full collection {name} holds a partial record for {definition_key}")
                return None
            return definition
        if form == "partial":
            doc = self.store.get_collection(self.registry_collection_name).find_one({"definition_key": definition_key})
            return PartialAssignmentDefinition.model_validate(doc) if doc else None
        raise ValueError(f"Unknown definition form: {form!r}")

    def list_definitions(self) -> List[PartialAssignmentDefinition]:
        docs = self.store.get_collection(self.registry_collection_name).find({})
        return [PartialAssignmentDefinition.model_validate(doc) for doc in docs]

    # ── Write ───────────────────────────────────────────────────────────────

    def save_definition(self, definition: FullAssignmentDefinition) -> FullAssignmentDefinition:
        """Write the full record, then the registry record.

        Raises PersistError when the full write fails (nothing was written) and
        PartialWriteError when only the registry write fails.
        """
        if not isinstance(definition, FullAssignmentDefinition):
            raise TypeError("save_definition requires a full assignment definition")
        definition.touch_updated()
        key = definition.definition_key
        name = self.full_collection_name(key)
        try:
            upsert_document(
                self.store.get_collection(name),
                {"definition_key": key},
                definition.to_json(),
                entity_type="full definition",
            )
        except Exception as e:
            raise PersistError(f"Failed to save full definition {key}", key=key, collection_name=name) from e

        try:
            self.save_partial_definition(definition)
        except PersistError as e:
            self.log.error(f"Full definition {key} saved but registry write failed; registry is behind")
            raise PartialWriteError(
                f"Registry write failed after full definition {key} was saved",
                key=key,
                collection_name=self.registry_collection_name,
            ) from e
        return definition

    def save_partial_definition(self, definition: AssignmentDefinition) -> None:
        key = definition.definition_key
        try:
            upsert_document(
                self.store.get_collection(self.registry_collection_name),
                {"definition_key": key},
                definition.to_partial_json(),
                entity_type="partial definition",
            )
        except Exception as e:
            raise PersistError(
                f"Failed to save partial definition {key}", key=key, collection_name=self.registry_collection_name
            ) from e
