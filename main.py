from datetime import datetime
from typing import Optional, Tuple

from assignment_controller import AssignmentPersistenceController
from database import MongoDocumentStore
from database.protocols import DocumentStore
from definition_controller import (
    AssignmentDefinitionController,
    DocumentParser,
    TimestampProvider,
    TopicResolver,
)
from logging_config import logger
from schemas.assignment import Assignment
from schemas.class_record import ClassRecord


def build_controllers(
    parser: DocumentParser,
    timestamp_provider: TimestampProvider,
    store: Optional[DocumentStore] = None,
    topic_resolver: Optional[TopicResolver] = None,
) -> Tuple[AssignmentDefinitionController, AssignmentPersistenceController]:
    """Wire both controllers to one store (MongoDB unless another store is given)."""
    store = store if store is not None else MongoDocumentStore()
    definitions = AssignmentDefinitionController(
        store,
        parser=parser,
        timestamp_provider=timestamp_provider,
        topic_resolver=topic_resolver,
    )
    assignments = AssignmentPersistenceController(store, definition_controller=definitions)
    return definitions, assignments


def prepare_assignment(
    definitions: AssignmentDefinitionController,
    course_id: str,
    assignment_id: str,
    primary_title: str,
    document_type: str,
    reference_document_id: str,
    template_document_id: str,
    primary_topic: Optional[str] = None,
    topic_id: Optional[str] = None,
    year_group: Optional[int] = None,
    assignment_name: Optional[str] = None,
) -> Assignment:
    """Ensure the definition is current and start a full assignment run from it."""
    logger.info(f"[{assignment_id}] Preparing assignment '{primary_title}' for course {course_id}")
    definition = definitions.ensure_definition(
        primary_title=primary_title,
        document_type=document_type,
        reference_document_id=reference_document_id,
        template_document_id=template_document_id,
        primary_topic=primary_topic,
        year_group=year_group,
        course_id=course_id,
        topic_id=topic_id,
    )
    assignment = Assignment.create(
        definition,
        course_id=course_id,
        assignment_id=assignment_id,
        assignment_name=assignment_name,
    )
    logger.info(f"[{assignment_id}] Ready → {len(definition.tasks)} task(s), definition {definition.definition_key}")
    return assignment


def record_assignment_run(
    assignments: AssignmentPersistenceController,
    class_record: ClassRecord,
    assignment: Assignment,
) -> Assignment:
    start_time = datetime.now()
    logger.info("=" * 70)
    logger.info(f"RECORD RUN START → {assignment.assignment_id} | class {class_record.class_id}")
    logger.info("=" * 70)

    try:
        partial = assignments.persist_assignment_run(class_record, assignment)
    except Exception as e:
        logger.error(f"Recording run {assignment.assignment_id} failed: {str(e)}", exc_info=True)
        raise

    duration = (datetime.now() - start_time).total_seconds()
    logger.info(
        f"RECORD RUN DONE → {assignment.assignment_id} | {len(assignment.submissions)} submission(s) | took {duration:.2f}s"
    )
    logger.info("=" * 70 + "\n")
    return partial
