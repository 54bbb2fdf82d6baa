"""Exceptions raised by the definition and assignment persistence layers.

Callers can tell failure modes apart by type (``except RecordNotFoundError``)
or, for rehydration failures, by the ``kind`` attribute.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class AssessmentRecordsError(Exception):
    """Base class for all errors raised by this package."""


class PersistError(AssessmentRecordsError):
    """A store write failed in a way the caller must see."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        collection_name: Optional[str] = None,
    ) -> None:
        self.key = key
        self.collection_name = collection_name
        super().__init__(message)

    def to_json(self) -> Dict[str, Any]:
        cause = self.__cause__
        return {
            "name": type(self).__name__,
            "message": str(self),
            "key": self.key,
            "collection_name": self.collection_name,
            "cause": {"name": type(cause).__name__, "message": str(cause)} if cause else None,
        }


class PartialWriteError(PersistError):
    """The heavy-store write succeeded but the registry write did not.

    The full record is current; the registry still holds the previous partial
    record (or none). Re-running ``save_definition`` repairs it.
    """


class DefinitionRefreshError(AssessmentRecordsError):
    """The parser or timestamp provider failed while resolving staleness."""

    def __init__(
        self,
        message: str,
        definition_key: Optional[str] = None,
        document_id: Optional[str] = None,
    ) -> None:
        self.definition_key = definition_key
        self.document_id = document_id
        super().__init__(message)


class RehydrationErrorKind(str, Enum):
    NOT_IN_CLASS = "not_in_class"
    COLLECTION_MISSING = "collection_missing"
    RECORD_MISSING = "record_missing"
    RECORD_MALFORMED = "record_malformed"
    DEFINITION_MISSING = "definition_missing"


class RehydrationError(AssessmentRecordsError):
    """Loading the full form of an assignment run failed."""

    kind: RehydrationErrorKind = RehydrationErrorKind.RECORD_MISSING

    def __init__(
        self,
        message: str,
        course_id: Optional[str] = None,
        assignment_id: Optional[str] = None,
        collection_name: Optional[str] = None,
    ) -> None:
        self.course_id = course_id
        self.assignment_id = assignment_id
        self.collection_name = collection_name
        super().__init__(message)


class AssignmentNotInClassError(RehydrationError):
    kind = RehydrationErrorKind.NOT_IN_CLASS


class CollectionNotFoundError(RehydrationError):
    kind = RehydrationErrorKind.COLLECTION_MISSING


class RecordNotFoundError(RehydrationError):
    kind = RehydrationErrorKind.RECORD_MISSING


class MalformedRecordError(RehydrationError):
    kind = RehydrationErrorKind.RECORD_MALFORMED


class DefinitionNotFoundError(RehydrationError):
    kind = RehydrationErrorKind.DEFINITION_MISSING
