import base64
from enum import Enum
from typing import Any, Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, model_validator

from utils.hashing import content_hash as hash_content


class ArtifactRole(str, Enum):
    REFERENCE = "reference"
    TEMPLATE = "template"
    SUBMISSION = "submission"


class ArtifactType(str, Enum):
    TEXT = "TEXT"
    TABLE = "TABLE"
    SPREADSHEET = "SPREADSHEET"
    IMAGE = "IMAGE"


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


class BaseArtifact(BaseModel):
    """One typed, normalised, hashed piece of content tied to a task and a role.

    Content is normalised and hashed during construction. Later changes must go
    through ``set_content`` so the hash never drifts from the content.
    """

    task_id: str = Field(..., description="Id of the owning task definition")
    role: ArtifactRole = Field(..., description="Whose content this is: reference, template or submission")
    page_id: Optional[str] = Field(None, description="Locator inside the source document (slide id, sheet range)")
    document_id: Optional[str] = Field(None, description="Source document id")
    content: Any = Field(None, description="Normalised, type-dependent content")
    content_hash: Optional[str] = Field(None, description="SHA-256 of the canonical content; null iff content is null")
    metadata: Dict[str, Any] = Field(default_factory=dict)
    uid: str = Field(..., description="Stable identity; derived from task/role/page/index when not supplied")

    @model_validator(mode="before")
    @classmethod
    def _derive_uid(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        task_index = data.pop("task_index", None)
        artifact_index = data.pop("artifact_index", 0)
        if not data.get("task_id"):
            raise ValueError("Artifact requires task_id")
        role = data.get("role")
        if not role:
            raise ValueError("Artifact requires role")
        if data.get("metadata") is None:
            data["metadata"] = {}
        if not data.get("uid"):
            role_value = role.value if isinstance(role, ArtifactRole) else str(role)
            data["uid"] = (
                f"{data['task_id']}-{task_index if task_index is not None else 0}-"
                f"{role_value}-{data.get('page_id') or 'na'}-{artifact_index}"
            )
        return data

    @model_validator(mode="after")
    def _normalise_and_hash(self) -> "BaseArtifact":
        self.set_content(self.content)
        return self

    @classmethod
    def normalize_content(cls, content: Any) -> Any:
        return None if _is_blank(content) else content

    def set_content(self, content: Any) -> "BaseArtifact":
        self.content = self.normalize_content(content)
        self.content_hash = hash_content(self.content) if self.content is not None else None
        return self

    def has_content(self) -> bool:
        return self.content is not None

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def to_partial_json(self) -> Dict[str, Any]:
        data = self.to_json()
        data["content"] = None
        data["content_hash"] = None
        return data


class TextArtifact(BaseArtifact):
    type: Literal["TEXT"] = "TEXT"

    @classmethod
    def normalize_content(cls, content: Any) -> Optional[str]:
        if _is_blank(content):
            return None
        text = str(content).replace("\r\n", "\n").replace("\r", "\n").strip()
        return text or None


def _normalise_cell(cell: Any) -> Union[str, int, float, None]:
    if cell is None:
        return None
    if isinstance(cell, (int, float)) and not isinstance(cell, bool):
        return cell
    text = str(cell).strip()
    return text or None


def _normalise_rows(content: Any) -> Optional[List[List[Any]]]:
    rows = [
        [_normalise_cell(c) for c in row] if isinstance(row, (list, tuple)) else []
        for row in content
    ]
    while rows and all(c is None for c in rows[-1]):
        rows.pop()
    if not rows:
        return None
    width = max(len(r) for r in rows)
    keep = [c for c in range(width) if any(c < len(r) and r[c] is not None for r in rows)]
    return [[r[c] for c in keep if c < len(r)] for r in rows]


class TableArtifact(BaseArtifact):
    """Tabular content stored as trimmed rows; legacy string content is kept as-is (trimmed)."""

    type: Literal["TABLE"] = "TABLE"

    @classmethod
    def normalize_content(cls, content: Any) -> Union[str, List[List[Any]], None]:
        if content is None:
            return None
        if isinstance(content, str):
            return content.strip() or None
        if not isinstance(content, (list, tuple)):
            return None
        return _normalise_rows(content)

    @property
    def rows(self) -> List[List[Any]]:
        if isinstance(self.content, list):
            return [list(r) for r in self.content]
        return []

    def to_markdown(self) -> str:
        if isinstance(self.content, str):
            return self.content
        rows = self.rows
        if not rows:
            return ""

        def _line(cells):
            return "| " + " | ".join("" if c is None else str(c) for c in cells) + " |"

        lines = [_line(rows[0]), "| " + " | ".join("---" for _ in rows[0]) + " |"]
        lines.extend(_line(r) for r in rows[1:])
        return "\n".join(lines)


def canonicalise_formula(formula: str) -> str:
    """Upper-case a formula everywhere except inside double-quoted literals."""
    result = []
    in_quote = False
    for ch in formula:
        if ch == '"':
            in_quote = not in_quote
            result.append(ch)
            continue
        result.append(ch if in_quote else ch.upper())
    return "".join(result)


class SpreadsheetArtifact(TableArtifact):
    type: Literal["SPREADSHEET"] = "SPREADSHEET"

    @classmethod
    def normalize_content(cls, content: Any) -> Union[str, List[List[Any]], None]:
        normalised = super().normalize_content(content)
        if not isinstance(normalised, list):
            return normalised
        return [
            [canonicalise_formula(c) if isinstance(c, str) and c.startswith("=") else c for c in row]
            for row in normalised
        ]


class ImageArtifact(BaseArtifact):
    """Image reference. Content stays null until ``materialize_from_bytes`` runs;
    until then only ``metadata`` (e.g. a source URL) is carried."""

    type: Literal["IMAGE"] = "IMAGE"

    @classmethod
    def normalize_content(cls, content: Any) -> Optional[str]:
        if not isinstance(content, str):
            return None
        return content.strip() or None

    def materialize_from_bytes(self, data: bytes, mime_type: str = "image/png") -> "ImageArtifact":
        if not data:
            raise ValueError(f"No image bytes to materialise for artifact {self.uid}")
        encoded = base64.b64encode(bytes(data)).decode("ascii")
        self.set_content(f"data:{mime_type};base64,{encoded}")
        return self


Artifact = Annotated[
    Union[TextArtifact, TableArtifact, SpreadsheetArtifact, ImageArtifact],
    Field(discriminator="type"),
]

ARTIFACT_CLASSES = {
    ArtifactType.TEXT.value: TextArtifact,
    ArtifactType.TABLE.value: TableArtifact,
    ArtifactType.SPREADSHEET.value: SpreadsheetArtifact,
    ArtifactType.IMAGE.value: ImageArtifact,
}

_artifact_adapter = TypeAdapter(Artifact)


def _type_key(artifact_type: Any) -> str:
    if isinstance(artifact_type, ArtifactType):
        return artifact_type.value
    return str(artifact_type or "").upper()


def create_artifact(artifact_type: Union[ArtifactType, str], **params: Any) -> BaseArtifact:
    """Build the artifact subclass for ``artifact_type``.

    ``params`` must include ``task_id`` and ``role``; ``task_index`` and
    ``artifact_index`` feed the derived uid when no ``uid`` is given.
    """
    artifact_cls = ARTIFACT_CLASSES.get(_type_key(artifact_type))
    if artifact_cls is None:
        raise ValueError(f"Unknown artifact type: {artifact_type!r}")
    params.pop("type", None)
    return artifact_cls(**params)


def artifact_from_json(data: Dict[str, Any]) -> BaseArtifact:
    payload = dict(data)
    payload["type"] = _type_key(payload.get("type"))
    return _artifact_adapter.validate_python(payload)
