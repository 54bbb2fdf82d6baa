import os

from dotenv import load_dotenv

load_dotenv()


class StoreConfig:
    """Collection names used by the persistence controllers."""

    @classmethod
    def get_registry_collection_name(cls) -> str:
        return os.getenv("DEFINITION_REGISTRY_COLLECTION", "assignment_definitions")

    @classmethod
    def get_definition_collection_prefix(cls) -> str:
        return os.getenv("DEFINITION_COLLECTION_PREFIX", "assdef_full")

    @classmethod
    def get_assignment_collection_prefix(cls) -> str:
        return os.getenv("ASSIGNMENT_COLLECTION_PREFIX", "assign_full")

    @classmethod
    def get_class_collection_name(cls) -> str:
        return os.getenv("CLASS_COLLECTION", "classes")
