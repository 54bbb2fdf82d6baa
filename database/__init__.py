# Package marker for database subpackage
from .memory import InMemoryCollection, InMemoryDocumentStore
from .mongodb import MongoCollection, MongoDBConfig, MongoDBConnection, MongoDocumentStore
from .protocols import DocumentCollection, DocumentStore

__all__ = [
    "DocumentCollection",
    "DocumentStore",
    "InMemoryCollection",
    "InMemoryDocumentStore",
    "MongoCollection",
    "MongoDBConfig",
    "MongoDBConnection",
    "MongoDocumentStore",
]
