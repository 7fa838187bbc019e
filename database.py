"""
Database helpers for the bookstore.

A single MongoDB client is opened when the application starts and closed
when it stops. Routes never touch the module globals directly: they receive
the database handle through the ``get_db`` dependency, so tests can swap in
an in-memory database.
"""

import logging
import math
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from bson import ObjectId
from fastapi import HTTPException
from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from pymongo import DESCENDING, MongoClient
from pymongo.database import Database

from config import config
from errors import InvalidIdError

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None
db: Optional[Database] = None


def connect() -> Optional[Database]:
    global _client, db
    if db is not None:
        return db
    if not config.DATABASE_URL or not config.DATABASE_NAME:
        logger.warning("DATABASE_URL or DATABASE_NAME not set, running without a database")
        return None
    _client = MongoClient(
        config.DATABASE_URL,
        serverSelectionTimeoutMS=config.SERVER_SELECTION_TIMEOUT_MS,
    )
    db = _client[config.DATABASE_NAME]
    logger.info("MongoDB client created for database %s", config.DATABASE_NAME)
    return db


def close() -> None:
    global _client, db
    if _client is not None:
        _client.close()
        logger.info("MongoDB connection closed")
    _client = None
    db = None


def get_db() -> Database:
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def ensure_indexes(database: Database) -> None:
    database["book"].create_index("isbn", unique=True)
    database["book"].create_index("author")
    database["book"].create_index("genre")
    database["author"].create_index("nationality")
    database["order"].create_index("status")
    database["order"].create_index([("created_at", DESCENDING)])
    logger.info("Indexes ensured on %s", database.name)


# ----------------------
# Conversion helpers
# ----------------------

def to_object_id(id_str: Any) -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    if not isinstance(id_str, str) or not ObjectId.is_valid(id_str):
        raise InvalidIdError(id_str)
    return ObjectId(id_str)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_storage(value: Any) -> Any:
    """Make a plain value BSON-encodable (dates become midnight datetimes)."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, dict):
        return {k: to_storage(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_storage(v) for v in value]
    return value


def _camel(key: str) -> str:
    return to_camel(key) if "_" in key else key


def serialize(doc: Any) -> Any:
    """Convert a stored document into its JSON shape.

    ``_id`` becomes ``id``, ObjectIds become strings, dates become ISO
    strings and snake_case keys become camelCase. Nested documents are
    converted the same way.
    """
    if isinstance(doc, dict):
        d = {**doc}
        if "_id" in d:
            d["id"] = d.pop("_id")
        return {_camel(k): serialize(v) for k, v in d.items()}
    if isinstance(doc, list):
        return [serialize(v) for v in doc]
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, (datetime, date)):
        return doc.isoformat()
    return doc


# ----------------------
# Collection helpers
# ----------------------

def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()
    data_dict = to_storage(data_dict)
    now = utcnow()
    data_dict["created_at"] = now
    data_dict["updated_at"] = now
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[dict] = None,
    limit: Optional[int] = None,
) -> List[dict]:
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def pagination_meta(page: int, limit: int, total: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "currentPage": page,
        "totalPages": total_pages,
        "totalCount": total,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }


def paginate(
    database: Database,
    collection_name: str,
    query: dict,
    sort: Sequence[Tuple[str, int]],
    page: int,
    limit: int,
) -> Tuple[List[dict], Dict[str, Any]]:
    """Return one page of documents plus the pagination envelope."""
    collection = database[collection_name]
    skip = (page - 1) * limit
    docs = list(collection.find(query).sort(list(sort)).skip(skip).limit(limit))
    total = collection.count_documents(query)
    return docs, pagination_meta(page, limit, total)
