"""MongoDB Client - Connection, Collection and Session Management"""
from datetime import datetime
from typing import Any, Dict, Optional
from pymongo import MongoClient as PyMongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure
from pydantic import BaseModel

from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Collection names
TEMPLATES = "workflow_templates"
PROCESSES = "process_instances"
PROCESS_STEPS = "process_step_instances"
AUDIT_LOGS = "audit_logs"
NOTIFICATIONS = "notifications"
USERS = "users"

# Global client instance
_client: Optional[PyMongoClient] = None
_database: Optional[Database] = None


def get_client() -> PyMongoClient:
    """Get or create MongoDB client"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
        _client = PyMongoClient(
            settings.mongo_uri,
            tz_aware=True,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            socketTimeoutMS=30000,
        )
        try:
            _client.admin.command("ping")
            logger.info("MongoDB connection successful")
        except ConnectionFailure as e:
            logger.error(f"MongoDB connection failed: {e}")
            raise
    return _client


def get_database() -> Database:
    """Get the application database"""
    global _database
    if _database is None:
        client = get_client()
        _database = client[settings.mongo_db]
        logger.info(f"Using database: {settings.mongo_db}")
    return _database


def get_collection(name: str) -> Collection:
    """Get a collection from the database"""
    return get_database()[name]


def close_connection() -> None:
    """Close MongoDB connection"""
    global _client, _database
    if _client is not None:
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


def to_document(model: BaseModel, doc_id: str) -> Dict[str, Any]:
    """
    Serialize a model for storage

    Enums and nested models are dumped as JSON values; top-level datetimes
    stay native so range queries and sorting work on BSON dates.
    """
    doc = model.model_dump(mode="json")
    for key, value in model:
        if isinstance(value, datetime):
            doc[key] = value
    doc["_id"] = doc_id
    return doc


def create_indexes() -> None:
    """Create all required indexes"""
    db = get_database()
    logger.info("Creating MongoDB indexes...")

    templates = db[TEMPLATES]
    templates.create_index("template_id", unique=True)
    templates.create_index("status")
    templates.create_index("updated_at")

    processes = db[PROCESSES]
    processes.create_index("process_id", unique=True)
    processes.create_index([("created_by", ASCENDING), ("status", ASCENDING)])
    processes.create_index("template_id")
    processes.create_index("created_at")

    steps = db[PROCESS_STEPS]
    steps.create_index("step_instance_id", unique=True)
    steps.create_index([("process_id", ASCENDING), ("step_order", ASCENDING)], unique=True)

    audit_logs = db[AUDIT_LOGS]
    audit_logs.create_index("audit_id", unique=True)
    audit_logs.create_index([("process_id", ASCENDING), ("created_at", DESCENDING)])
    audit_logs.create_index([("actor_id", ASCENDING), ("created_at", DESCENDING)])
    audit_logs.create_index("action")

    notifications = db[NOTIFICATIONS]
    notifications.create_index("notification_id", unique=True)
    notifications.create_index([("user_id", ASCENDING), ("is_read", ASCENDING), ("created_at", DESCENDING)])

    users = db[USERS]
    users.create_index("user_id", unique=True)
    users.create_index("email", unique=True)
    users.create_index("role")

    logger.info("MongoDB indexes created successfully")


def health_check() -> Dict[str, Any]:
    """Check MongoDB health"""
    try:
        client = get_client()
        client.admin.command("ping")
        return {
            "status": "healthy",
            "backend": "mongo",
            "database": settings.mongo_db,
            "connection": "ok"
        }
    except Exception as e:
        logger.error(f"MongoDB health check failed: {e}")
        return {
            "status": "unhealthy",
            "backend": "mongo",
            "database": settings.mongo_db,
            "error": str(e)
        }
