from typing import Any, Dict, List, Optional, Protocol


class DocumentCollection(Protocol):
    def find_one(self, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]: ...

    def find(self, filter: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]: ...

    def insert_one(self, doc: Dict[str, Any]) -> None: ...

    def replace_one(self, filter: Dict[str, Any], doc: Dict[str, Any]) -> None: ...

    def save(self) -> None: ...


class DocumentStore(Protocol):
    def get_collection(self, name: str) -> DocumentCollection: ...

    def has_collection(self, name: str) -> bool: ...
