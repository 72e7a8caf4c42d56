"""
MongoDB access helpers.

The client is built once at startup by ``connect`` and handed to route
handlers through the ``get_db`` dependency.
"""

import os
from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from errors import InternalError, ValidationError
from logger import logger

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "krishilink")

USERS = "users"
PRODUCTS = "products"


def connect(url: Optional[str] = None, name: Optional[str] = None) -> Optional[Database]:
    url = url or DATABASE_URL
    if not url:
        logger.warning("DATABASE_URL not set, database not available")
        return None
    client = MongoClient(url)
    db = client[name or DATABASE_NAME]
    logger.info("Connected to MongoDB database %s", db.name)
    return db


def close(db: Optional[Database]) -> None:
    if db is not None:
        db.client.close()


def ensure_indexes(db: Database) -> None:
    db[PRODUCTS].create_index([("created_at", DESCENDING)])
    db[PRODUCTS].create_index([("owner.ownerEmail", ASCENDING)])
    db[PRODUCTS].create_index([("interests.userEmail", ASCENDING)])
    db[USERS].create_index([("email", ASCENDING)])


def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise InternalError("Database not available")
    return db


def parse_object_id(value: str, label: str = "document") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid {label} id", error=str(value))


def serialize(value: Any) -> Any:
    """Convert ObjectIds (at any depth) to strings so the value is JSON-encodable."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize(v) for v in value]
    return value


def create_document(db: Database, collection_name: str, data) -> str:
    if hasattr(data, "model_dump"):
        data = data.model_dump()
    doc = dict(data)
    now = datetime.now(timezone.utc)
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: Optional[dict] = None,
                  limit: Optional[int] = None) -> list:
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def health(db: Optional[Database]) -> dict:
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["database_name"] = db.name if hasattr(db, 'name') else "✅ Connected"
            response["connection_status"] = "Connected"
            try:
                collections = db.list_collection_names()
                response["collections"] = collections[:10]
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"

    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    return response
