"""
Database helpers

Connection bootstrap, id conversion and document serialization shared by
the stores. Collection name is the lowercase of the entity name.
"""
from datetime import datetime, timezone
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, TEXT, MongoClient
from pymongo.database import Database

from config import Settings
from errors import InvalidInput


def connect(settings: Settings) -> MongoClient:
    return MongoClient(settings.database_url, tz_aware=True)


def ensure_indexes(db: Database) -> None:
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["customer"].create_index([("email", ASCENDING)], unique=True)
    db["customer"].create_index([("seller", ASCENDING)])
    db["product"].create_index([("name", TEXT)])
    db["order"].create_index([("seller", ASCENDING), ("state", ASCENDING)])
    db["order"].create_index([("customer", ASCENDING)])


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_object_id(id_str: Any) -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise InvalidInput("Invalid ID format")


def create_document(db: Database, collection_name: str, data: dict) -> ObjectId:
    now = utcnow()
    doc = {**data, "created_at": now, "updated_at": now}
    return db[collection_name].insert_one(doc).inserted_id


def serialize(value: Any) -> Any:
    """Turn a stored document into its API shape: `_id` becomes `id`, ObjectIds become strings, hashes are dropped."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, dict):
        d = {k: serialize(v) for k, v in value.items() if k != "password_hash"}
        if "_id" in d:
            d["id"] = d.pop("_id")
        return d
    return value
