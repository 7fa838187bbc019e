"""
Author endpoints and the queries behind them.

Endpoints under /api/authors:
- GET    ""           : list authors (nationality filter, name order, paginated)
- GET    /{author_id} : one author with age and the books that reference it
- POST   ""           : create
- PUT    /{author_id} : full replace
- DELETE /{author_id} : delete, refused while books still reference the author
"""

import logging
import re
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pymongo import ASCENDING
from pymongo.database import Database

from config import config
from database import (
    create_document,
    get_db,
    get_documents,
    paginate,
    serialize,
    to_object_id,
    to_storage,
    utcnow,
)
from errors import BusinessRuleError, NotFoundError
from responses import envelope
from schemas import Author

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/authors", tags=["authors"])

AUTHOR_BOOK_FIELDS = {"title": 1, "isbn": 1, "genre": 1, "price": 1, "stock": 1, "published_date": 1}


def author_age(birth_date: Optional[datetime], today: Optional[date] = None) -> Optional[int]:
    if birth_date is None:
        return None
    today = today or date.today()
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def present_author(doc: dict, books: Optional[List[dict]] = None) -> dict:
    d = {**doc, "age": author_age(doc.get("birth_date"))}
    if books is not None:
        d["books"] = [{**b, "in_stock": b.get("stock", 0) > 0} for b in books]
    return serialize(d)


def find_author(db: Database, author_id) -> dict:
    doc = db["author"].find_one({"_id": to_object_id(author_id)})
    if not doc:
        raise NotFoundError("Author not found")
    return doc


# ----------------------
# Queries
# ----------------------

def list_authors(db: Database, page: int = 1, limit: int = 10, nationality: Optional[str] = None):
    query = {}
    if nationality:
        query["nationality"] = {"$regex": re.escape(nationality), "$options": "i"}
    docs, pagination = paginate(db, "author", query, [("name", ASCENDING)], page, limit)
    return [present_author(d) for d in docs], pagination


def get_author(db: Database, author_id: str) -> dict:
    author = find_author(db, author_id)
    books = get_documents(db, "book", {"author": author["_id"]})
    books = [{k: v for k, v in b.items() if k == "_id" or k in AUTHOR_BOOK_FIELDS} for b in books]
    return present_author(author, books)


def create_author(db: Database, payload: Author) -> dict:
    new_id = create_document(db, "author", payload)
    logger.info("Created author %s (%s)", new_id, payload.name)
    return present_author(db["author"].find_one({"_id": to_object_id(new_id)}))


def replace_author(db: Database, author_id: str, payload: Author) -> dict:
    existing = find_author(db, author_id)
    doc = to_storage(payload.model_dump())
    doc["created_at"] = existing.get("created_at")
    doc["updated_at"] = utcnow()
    db["author"].replace_one({"_id": existing["_id"]}, doc)
    return present_author(db["author"].find_one({"_id": existing["_id"]}))


def delete_author(db: Database, author_id: str) -> dict:
    oid = to_object_id(author_id)
    books_count = db["book"].count_documents({"author": oid})
    if books_count > 0:
        raise BusinessRuleError(
            f"Cannot delete author. They have {books_count} book(s) in the system. "
            "Please reassign or delete the books first."
        )
    deleted = db["author"].find_one_and_delete({"_id": oid})
    if not deleted:
        raise NotFoundError("Author not found")
    logger.info("Deleted author %s", author_id)
    return present_author(deleted)


# ----------------------
# Routes
# ----------------------

@router.get("")
def list_authors_api(
    page: int = Query(1, ge=1, description="1-indexed page"),
    limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, description="Page size"),
    nationality: Optional[str] = Query(None, description="Case-insensitive nationality match"),
    db: Database = Depends(get_db),
):
    authors, pagination = list_authors(db, page, limit, nationality)
    return envelope(data=authors, pagination=pagination)


@router.get("/{author_id}")
def get_author_api(author_id: str, db: Database = Depends(get_db)):
    return envelope(data=get_author(db, author_id))


@router.post("", status_code=201)
def create_author_api(payload: Author, db: Database = Depends(get_db)):
    return envelope(data=create_author(db, payload), message="Author created successfully")


@router.put("/{author_id}")
def replace_author_api(author_id: str, payload: Author, db: Database = Depends(get_db)):
    return envelope(data=replace_author(db, author_id, payload), message="Author updated successfully")


@router.delete("/{author_id}")
def delete_author_api(author_id: str, db: Database = Depends(get_db)):
    return envelope(data=delete_author(db, author_id), message="Author deleted successfully")
