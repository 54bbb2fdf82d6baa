import logging
from typing import Optional, Type

from pydantic import ValidationError

from config import StoreConfig
from database.protocols import DocumentStore
from definition_controller import AssignmentDefinitionController
from errors import (
    AssignmentNotInClassError,
    CollectionNotFoundError,
    DefinitionNotFoundError,
    MalformedRecordError,
    PersistError,
    RecordNotFoundError,
    RehydrationError,
)
from logging_config import logger
from schemas.assignment import Assignment
from schemas.assignment_definition import FullAssignmentDefinition, HydrationLevel, PartialAssignmentDefinition
from schemas.class_record import ClassRecord
from utils.db_utils import upsert_document
from utils.naming import collection_name, join_key_parts

REQUIRED_RECORD_FIELDS = ("course_id", "assignment_id", "assignment_definition")


class AssignmentPersistenceController:
    """Full/partial hydration of graded assignment runs inside a class record.

    The class record only ever stores partial assignments. The full payload
    of each run lives in its own collection keyed by course and assignment id.
    """

    def __init__(
        self,
        store: DocumentStore,
        definition_controller: Optional[AssignmentDefinitionController] = None,
        collection_prefix: Optional[str] = None,
        class_collection_name: Optional[str] = None,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self.store = store
        self.definition_controller = definition_controller
        self.collection_prefix = collection_prefix or StoreConfig.get_assignment_collection_prefix()
        self.class_collection_name = class_collection_name or StoreConfig.get_class_collection_name()
        self.log = log or logger

    def full_assignment_collection_name(self, course_id: str, assignment_id: str) -> str:
        return collection_name(self.collection_prefix, join_key_parts(course_id, assignment_id))

    def persist_assignment_run(self, class_record: ClassRecord, assignment: Assignment) -> Assignment:
        """Store the full run and put its partial form into ``class_record``.

        The passed ``assignment`` is left untouched; the partial instance placed
        in the class record is returned.
        """
        if class_record is None:
            raise TypeError("persist_assignment_run requires a class record")
        if assignment is None or not assignment.course_id or not assignment.assignment_id:
            raise TypeError("persist_assignment_run requires an assignment with course_id and assignment_id")
        if not isinstance(assignment.assignment_definition, FullAssignmentDefinition):
            raise ValueError(
                f"Assignment {assignment.assignment_id} must carry a full definition to be persisted"
            )

        course_id = assignment.course_id
        assignment_id = assignment.assignment_id
        name = self.full_assignment_collection_name(course_id, assignment_id)
        self.log.info(f"Persisting assignment run {assignment_id} (course {course_id}) → {name}")

        try:
            upsert_document(
                self.store.get_collection(name),
                {"course_id": course_id, "assignment_id": assignment_id},
                assignment.to_json(),
                entity_type="assignment run",
            )
        except Exception as e:
            raise PersistError(
                f"Failed to save assignment run {assignment_id}", key=assignment_id, collection_name=name
            ) from e

        partial = Assignment.from_json(assignment.to_partial_json())
        partial.mark_hydration(HydrationLevel.PARTIAL)

        index = class_record.find_assignment_index(assignment_id)
        if index >= 0:
            class_record.assignments[index] = partial
            self.log.info(f"Replaced partial assignment {assignment_id} at index {index} in class {class_record.class_id}")
        else:
            class_record.assignments.append(partial)
            self.log.info(f"Appended partial assignment {assignment_id} to class {class_record.class_id}")

        self.save_class(class_record)
        return partial

    def rehydrate_assignment(self, class_record: ClassRecord, assignment_id: str) -> Assignment:
        """Swap the partial entry for ``assignment_id`` in ``class_record`` with its full form."""
        index = class_record.find_assignment_index(assignment_id)
        if index < 0:
            raise self._fail(
                AssignmentNotInClassError,
                f"Assignment {assignment_id} not found in class {class_record.class_id}",
                assignment_id=assignment_id,
            )

        course_id = class_record.assignments[index].course_id
        name = self.full_assignment_collection_name(course_id, assignment_id)
        self.log.info(f"Rehydrating assignment {assignment_id} from {name}")

        if not self.store.has_collection(name):
            raise self._fail(
                CollectionNotFoundError,
                f"Collection {name} for assignment {assignment_id} does not exist",
                course_id=course_id,
                assignment_id=assignment_id,
                collection_name=name,
            )

        doc = self.store.get_collection(name).find_one({"course_id": course_id, "assignment_id": assignment_id})
        if not doc:
            raise self._fail(
                RecordNotFoundError,
                f"No stored record for assignment {assignment_id} in {name}",
                course_id=course_id,
                assignment_id=assignment_id,
                collection_name=name,
            )

        missing = [field for field in REQUIRED_RECORD_FIELDS if not doc.get(field)]
        if missing:
            raise self._fail(
                MalformedRecordError,
                f"Stored record for assignment {assignment_id} is missing {', '.join(missing)}",
                course_id=course_id,
                assignment_id=assignment_id,
                collection_name=name,
            )

        try:
            assignment = Assignment.from_json(doc)
        except (ValidationError, ValueError) as e:
            raise self._fail(
                MalformedRecordError,
                f"Stored record for assignment {assignment_id} is invalid: {e}",
                course_id=course_id,
                assignment_id=assignment_id,
                collection_name=name,
            ) from e

        if isinstance(assignment.assignment_definition, PartialAssignmentDefinition):
            assignment.assignment_definition = self._load_full_definition(assignment, name)

        assignment.mark_hydration(HydrationLevel.FULL)
        class_record.assignments[index] = assignment
        self.log.info(f"Assignment {assignment_id} rehydrated at index {index} in class {class_record.class_id}")
        return assignment

    def _load_full_definition(self, assignment: Assignment, name: str) -> FullAssignmentDefinition:
        key = assignment.assignment_definition.definition_key
        definition = None
        if self.definition_controller is not None:
            try:
                definition = self.definition_controller.get_definition_by_key(key, form="full")
            except (ValidationError, ValueError) as e:
                raise self._fail(
                    MalformedRecordError,
                    f"Stored full definition {key} for assignment {assignment.assignment_id} is invalid: {e}",
                    course_id=assignment.course_id,
                    assignment_id=assignment.assignment_id,
                    collection_name=self.definition_controller.full_collection_name(key),
                ) from e
        if definition is None:
            raise self._fail(
                DefinitionNotFoundError,
                f"Full definition {key} for assignment {assignment.assignment_id} could not be loaded",
                course_id=assignment.course_id,
                assignment_id=assignment.assignment_id,
                collection_name=name,
            )
        return definition

    def _fail(self, error_cls: Type[RehydrationError], message: str, **context) -> RehydrationError:
        self.log.error(message, extra={"error_kind": error_cls.kind.value})
        return error_cls(message, **context)

    # ── Class records ───────────────────────────────────────────────────────

    def save_class(self, class_record: ClassRecord) -> None:
        try:
            upsert_document(
                self.store.get_collection(self.class_collection_name),
                {"class_id": class_record.class_id},
                class_record.to_json(),
                entity_type="class record",
            )
        except Exception as e:
            raise PersistError(
                f"Failed to save class {class_record.class_id}",
                key=class_record.class_id,
                collection_name=self.class_collection_name,
            ) from e

    def load_class(self, class_id: str) -> Optional[ClassRecord]:
        if not self.store.has_collection(self.class_collection_name):
            return None
        doc = self.store.get_collection(self.class_collection_name).find_one({"class_id": class_id})
        if not doc:
            self.log.info(f"No stored class record for {class_id}")
            return None
        return ClassRecord.from_json(doc)
