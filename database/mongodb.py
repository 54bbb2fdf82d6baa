import logging
import os
from threading import Lock
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import ConfigurationError, ConnectionFailure

from logging_config import logger

load_dotenv()

# Suppress verbose pymongo debug logs
logging.getLogger("pymongo").setLevel(logging.WARNING)


class MongoDBConfig:
    @classmethod
    def get_uri(cls) -> str:
        uri = os.getenv("MONGODB_CONNECTION_STRING")
        if not uri:
            raise ValueError(
                "MONGODB_CONNECTION_STRING environment variable is not set. "
                "Cannot connect to MongoDB."
            )
        return uri

    @classmethod
    def get_database_name(cls) -> str:
        return os.getenv("MONGODB_DATABASE", "assessment_records")

    @classmethod
    def get_client_kwargs(cls) -> dict:
        return {
            "connectTimeoutMS": 15000,
            "serverSelectionTimeoutMS": 10000,
            "socketTimeoutMS": 20000,
            "retryWrites": True,
            "retryReads": True,
        }


class MongoDBConnection:
    _client: Optional[MongoClient] = None
    _db: Optional[Database] = None
    _lock = Lock()  # protects initialization

    @classmethod
    def _initialize(cls) -> None:
        if cls._client is not None:
            return

        with cls._lock:
            if cls._client is not None:  # double-checked locking
                return

            logger.info("Initializing MongoDB connection...")

            uri = MongoDBConfig.get_uri()
            db_name = MongoDBConfig.get_database_name()
            kwargs = MongoDBConfig.get_client_kwargs()

            def _try_connect(test_uri: str):
                c = MongoClient(test_uri, **kwargs)
                # Force connection check
                c.admin.command("ping")
                return c

            try:
                cls._client = _try_connect(uri)
                cls._db = cls._client.get_database(db_name)
                logger.info("MongoDB connection established", extra={"database": db_name})
            except (ConfigurationError, ConnectionFailure) as e:
                logger.warning("Primary MongoDB connection failed", exc_info=True)

                # Fallback: allow providing a non-SRV (mongodb://) URI via env
                std_uri = os.getenv("MONGODB_STANDARD_URI") or os.getenv("MONGODB_DIRECT_URI")
                if std_uri:
                    try:
                        logger.info("Attempting non-SRV MongoDB URI from environment variable")
                        cls._client = _try_connect(std_uri)
                        cls._db = cls._client.get_database(db_name)
                        logger.info("MongoDB connected via non-SRV URI")
                    except (ConfigurationError, ConnectionFailure):
                        logger.error("Non-SRV URI attempt failed", exc_info=True)
                        cls._client = None
                        cls._db = None

                if cls._client is None:
                    msg = (
                        f"MongoDB connection failed: {e}. "
                        "If your network blocks SRV DNS queries, set MONGODB_STANDARD_URI to a mongodb:// URI with host:port list and retry."
                    )
                    logger.error(msg)
                    raise ConnectionError(msg) from e

    @classmethod
    def get_db(cls) -> Database:
        cls._initialize()
        if cls._db is None:
            raise RuntimeError("MongoDB database not initialized")
        return cls._db

    @classmethod
    def close(cls) -> None:
        if cls._client:
            try:
                cls._client.close()
                logger.info("MongoDB connection closed")
            except Exception as e:
                logger.warning(f"Error while closing MongoDB connection: {e}")
            finally:
                cls._client = None
                cls._db = None


class MongoCollection:
    """Adapts a pymongo collection to the find/insert/replace/save surface."""

    def __init__(self, collection: Collection) -> None:
        self._collection = collection

    @property
    def name(self) -> str:
        return self._collection.name

    def find_one(self, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self._collection.find_one(filter, projection={"_id": False})

    def find(self, filter: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return list(self._collection.find(filter or {}, projection={"_id": False}))

    def insert_one(self, doc: Dict[str, Any]) -> None:
        # insert_one adds _id to the dict it is given
        self._collection.insert_one(dict(doc))

    def replace_one(self, filter: Dict[str, Any], doc: Dict[str, Any]) -> None:
        self._collection.replace_one(filter, dict(doc))

    def save(self) -> None:
        # Writes are acknowledged per call; nothing is buffered client-side.
        pass


class MongoDocumentStore:
    """Document store over one MongoDB database.

    Without an explicit ``db`` it uses the shared ``MongoDBConnection`` and
    ``close`` shuts that connection down.
    """

    def __init__(self, db: Optional[Database] = None) -> None:
        self._db = db
        self._shared = db is None

    @property
    def db(self) -> Database:
        if self._db is None:
            self._db = MongoDBConnection.get_db()
        return self._db

    def get_collection(self, name: str) -> MongoCollection:
        return MongoCollection(self.db[name])

    def has_collection(self, name: str) -> bool:
        return name in self.db.list_collection_names(filter={"name": name})

    def close(self) -> None:
        if self._shared:
            MongoDBConnection.close()
        self._db = None
