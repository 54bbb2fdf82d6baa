import hashlib
import json
from typing import Any, Union


def stable_stringify(value: Any) -> str:
    """Canonical JSON: object keys sorted, arrays kept in order, no whitespace."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def generate_hash(value: Union[str, bytes]) -> str:
    if isinstance(value, str):
        value = value.encode("utf-8")
    return hashlib.sha256(value).hexdigest()


def content_hash(content: Any) -> str:
    return generate_hash(stable_stringify(content))
