"""
Book endpoints and the queries behind them.

Endpoints under /api/books:
- GET    ""               : list books (genre / text filters, newest first, paginated)
- GET    /{book_id}       : one book with author details
- POST   ""               : create (author must exist, ISBN unique)
- PUT    /{book_id}       : full replace
- PATCH  /{book_id}       : partial update
- PATCH  /{book_id}/stock : set stock to an explicit value
- DELETE /{book_id}       : delete
"""

import logging
import re
from typing import Iterable, List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Query
from pymongo import DESCENDING
from pymongo.database import Database

from authors import find_author
from config import config
from database import create_document, get_db, paginate, serialize, to_object_id, to_storage, utcnow
from errors import BookstoreError, DuplicateError, NotFoundError
from responses import envelope
from schemas import Book, BookPatch, StockUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/books", tags=["books"])

AUTHOR_LIST_FIELDS = ("name", "nationality")
AUTHOR_DETAIL_FIELDS = ("name", "nationality", "biography", "website")


def _author_summaries(db: Database, author_ids: Iterable[ObjectId], fields) -> dict:
    ids = list({a for a in author_ids if a is not None})
    if not ids:
        return {}
    projection = {f: 1 for f in fields}
    return {a["_id"]: a for a in db["author"].find({"_id": {"$in": ids}}, projection)}


def present_book(doc: dict) -> dict:
    return serialize({**doc, "in_stock": doc.get("stock", 0) > 0})


def present_books(db: Database, docs: List[dict], fields=AUTHOR_LIST_FIELDS) -> List[dict]:
    authors = _author_summaries(db, (d.get("author") for d in docs), fields)
    return [present_book({**d, "author": authors.get(d.get("author"))}) for d in docs]


def find_book(db: Database, book_id) -> dict:
    doc = db["book"].find_one({"_id": to_object_id(book_id)})
    if not doc:
        raise NotFoundError("Book not found")
    return doc


def _ensure_isbn_free(db: Database, isbn: str, exclude_id: Optional[ObjectId] = None) -> None:
    query = {"isbn": isbn}
    if exclude_id is not None:
        query["_id"] = {"$ne": exclude_id}
    if db["book"].find_one(query, {"_id": 1}):
        raise DuplicateError("isbn")


# ----------------------
# Queries
# ----------------------

def list_books(
    db: Database,
    page: int = 1,
    limit: int = 10,
    genre: Optional[str] = None,
    q: Optional[str] = None,
):
    query = {}
    if genre:
        query["genre"] = genre
    if q:
        pattern = re.escape(q)
        query["$or"] = [
            {"title": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]
    docs, pagination = paginate(db, "book", query, [("created_at", DESCENDING)], page, limit)
    return present_books(db, docs), pagination


def get_book(db: Database, book_id: str) -> dict:
    return present_books(db, [find_book(db, book_id)], AUTHOR_DETAIL_FIELDS)[0]


def create_book(db: Database, payload: Book) -> dict:
    author = find_author(db, payload.author)
    _ensure_isbn_free(db, payload.isbn)
    doc = payload.model_dump()
    doc["author"] = author["_id"]
    new_id = create_document(db, "book", doc)
    logger.info("Created book %s (%s), stock %d", new_id, payload.title, payload.stock)
    return get_book(db, new_id)


def replace_book(db: Database, book_id: str, payload: Book) -> dict:
    existing = find_book(db, book_id)
    author = find_author(db, payload.author)
    _ensure_isbn_free(db, payload.isbn, exclude_id=existing["_id"])
    doc = to_storage(payload.model_dump())
    doc["author"] = author["_id"]
    doc["created_at"] = existing.get("created_at")
    doc["updated_at"] = utcnow()
    db["book"].replace_one({"_id": existing["_id"]}, doc)
    return get_book(db, book_id)


def patch_book(db: Database, book_id: str, payload: BookPatch) -> dict:
    existing = find_book(db, book_id)
    update = payload.model_dump(exclude_none=True)
    if not update:
        return get_book(db, book_id)
    if "author" in update:
        update["author"] = find_author(db, update["author"])["_id"]
    if "isbn" in update:
        _ensure_isbn_free(db, update["isbn"], exclude_id=existing["_id"])
    update = to_storage(update)
    update["updated_at"] = utcnow()
    db["book"].update_one({"_id": existing["_id"]}, {"$set": update})
    return get_book(db, book_id)


def set_stock(db: Database, book_id: str, stock: Optional[int]) -> dict:
    if stock is None or stock < 0:
        raise BookstoreError("Valid stock quantity is required")
    result = db["book"].update_one(
        {"_id": to_object_id(book_id)},
        {"$set": {"stock": stock, "updated_at": utcnow()}},
    )
    if result.matched_count == 0:
        raise NotFoundError("Book not found")
    logger.info("Stock of book %s set to %d", book_id, stock)
    return get_book(db, book_id)


def delete_book(db: Database, book_id: str) -> dict:
    deleted = db["book"].find_one_and_delete({"_id": to_object_id(book_id)})
    if not deleted:
        raise NotFoundError("Book not found")
    logger.info("Deleted book %s", book_id)
    return present_book(deleted)


# ----------------------
# Routes
# ----------------------

@router.get("")
def list_books_api(
    page: int = Query(1, ge=1, description="1-indexed page"),
    limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, description="Page size"),
    genre: Optional[str] = Query(None, description="Exact genre"),
    q: Optional[str] = Query(None, description="Search in title or description"),
    db: Database = Depends(get_db),
):
    books, pagination = list_books(db, page, limit, genre, q)
    return envelope(data=books, pagination=pagination)


@router.get("/{book_id}")
def get_book_api(book_id: str, db: Database = Depends(get_db)):
    return envelope(data=get_book(db, book_id))


@router.post("", status_code=201)
def create_book_api(payload: Book, db: Database = Depends(get_db)):
    return envelope(data=create_book(db, payload), message="Book created successfully")


@router.put("/{book_id}")
def replace_book_api(book_id: str, payload: Book, db: Database = Depends(get_db)):
    return envelope(data=replace_book(db, book_id, payload), message="Book updated successfully")


@router.patch("/{book_id}/stock")
def set_stock_api(book_id: str, payload: StockUpdate, db: Database = Depends(get_db)):
    return envelope(data=set_stock(db, book_id, payload.stock), message="Book stock updated successfully")


@router.patch("/{book_id}")
def patch_book_api(book_id: str, payload: BookPatch, db: Database = Depends(get_db)):
    return envelope(data=patch_book(db, book_id, payload), message="Book updated successfully")


@router.delete("/{book_id}")
def delete_book_api(book_id: str, db: Database = Depends(get_db)):
    return envelope(data=delete_book(db, book_id), message="Book deleted successfully")
