"""
Order endpoints and the order placement workflow.

Placing an order checks every requested book against its current stock,
snapshots the current prices, records the order as ``pending`` and then
takes the ordered copies out of stock. Each stock decrement is a
conditional ``$inc`` on a single book document, so two orders racing for
the last copies cannot both succeed. When a decrement loses that race the
decrements already applied are put back and the order record is removed.
There is no multi-document transaction: a crash between the order insert
and the stock updates still leaves them out of step.

Endpoints under /api/orders:
- GET    ""                 : list orders (status filter, newest first, paginated)
- GET    /{order_id}        : one order with line item books expanded
- POST   ""                 : place an order
- PUT    /{order_id}        : full replace, no stock handling
- PATCH  /{order_id}/status : set the status, any value of the enumeration
- DELETE /{order_id}        : delete a pending or cancelled order
"""

import logging
from typing import Dict, List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Query
from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import config
from database import create_document, get_db, paginate, serialize, to_object_id, to_storage, utcnow
from errors import BookstoreError, BusinessRuleError, InsufficientStockError, NotFoundError
from responses import envelope
from schemas import Order, OrderCreate, OrderStatus, StatusUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])

TAX_RATE = 0.08
FREE_SHIPPING_THRESHOLD = 50
SHIPPING_FEE = 9.99
DELETABLE_STATUSES = ("pending", "cancelled")

BOOK_LIST_FIELDS = ("title", "author", "isbn", "price")
BOOK_DETAIL_FIELDS = ("title", "author", "isbn", "price", "genre")


def compute_totals(subtotal: float) -> Dict[str, float]:
    tax = subtotal * TAX_RATE
    shipping = 0 if subtotal > FREE_SHIPPING_THRESHOLD else SHIPPING_FEE
    return {
        "subtotal": subtotal,
        "tax": tax,
        "shipping": shipping,
        "total": subtotal + tax + shipping,
    }


def _book_summaries(db: Database, orders: List[dict], fields, with_author: bool = False) -> dict:
    ids = list({item["book"] for o in orders for item in o.get("items", [])})
    if not ids:
        return {}
    books = {b["_id"]: b for b in db["book"].find({"_id": {"$in": ids}}, {f: 1 for f in fields})}
    if with_author:
        author_ids = list({b.get("author") for b in books.values() if b.get("author")})
        authors = {a["_id"]: a for a in db["author"].find({"_id": {"$in": author_ids}}, {"name": 1})}
        for b in books.values():
            b["author"] = authors.get(b.get("author"))
    return books


def present_order(doc: dict, books: Optional[dict] = None) -> dict:
    items = doc.get("items", [])
    if books is not None:
        items = [{**item, "book": books.get(item["book"])} for item in items]
    d = {
        **doc,
        "items": items,
        "total_items": sum(item.get("quantity", 0) for item in doc.get("items", [])),
    }
    return serialize(d)


def present_orders(db: Database, docs: List[dict], detailed: bool = False) -> List[dict]:
    fields = BOOK_DETAIL_FIELDS if detailed else BOOK_LIST_FIELDS
    books = _book_summaries(db, docs, fields, with_author=detailed)
    return [present_order(d, books) for d in docs]


def find_order(db: Database, order_id) -> dict:
    doc = db["order"].find_one({"_id": to_object_id(order_id)})
    if not doc:
        raise NotFoundError("Order not found")
    return doc


# ----------------------
# Stock adjustments
# ----------------------

def _take_stock(db: Database, book_id: ObjectId, quantity: int) -> bool:
    result = db["book"].update_one(
        {"_id": book_id, "stock": {"$gte": quantity}},
        {"$inc": {"stock": -quantity}, "$set": {"updated_at": utcnow()}},
    )
    return result.modified_count == 1


def restore_stock(db: Database, lines: List[dict]) -> None:
    for line in lines:
        db["book"].update_one(
            {"_id": line["book"]},
            {"$inc": {"stock": line["quantity"]}, "$set": {"updated_at": utcnow()}},
        )
        logger.info("Restored %d copies of book %s", line["quantity"], line["book"])


def _check_lines(db: Database, payload: OrderCreate) -> List[dict]:
    """Resolve every requested line and snapshot the current price.

    Quantities asked for the same book on several lines are added up before
    comparing against stock.
    """
    books: Dict[ObjectId, dict] = {}
    requested: Dict[ObjectId, int] = {}
    lines = []
    for item in payload.items:
        oid = to_object_id(item.book)
        book = books.get(oid) or db["book"].find_one({"_id": oid})
        if not book:
            raise NotFoundError(f"Book with ID {item.book} not found")
        books[oid] = book
        requested[oid] = requested.get(oid, 0) + item.quantity
        available = book.get("stock", 0)
        if available < requested[oid]:
            raise InsufficientStockError(book.get("title", ""), available, requested[oid])
        lines.append({"book": oid, "quantity": item.quantity, "price": book["price"]})
    return lines


# ----------------------
# Queries
# ----------------------

def list_orders(db: Database, page: int = 1, limit: int = 10, status: Optional[str] = None):
    query = {}
    if status:
        query["status"] = status
    docs, pagination = paginate(db, "order", query, [("created_at", DESCENDING)], page, limit)
    return present_orders(db, docs), pagination


def get_order(db: Database, order_id: str) -> dict:
    return present_orders(db, [find_order(db, order_id)], detailed=True)[0]


def create_order(db: Database, payload: OrderCreate) -> dict:
    lines = _check_lines(db, payload)
    subtotal = sum(line["price"] * line["quantity"] for line in lines)

    order_doc = payload.model_dump(exclude={"items"})
    order_doc.update(
        items=lines,
        status="pending",
        payment_status="pending",
        **compute_totals(subtotal),
    )
    order_id = create_document(db, "order", order_doc)
    oid = ObjectId(order_id)

    taken: List[dict] = []
    try:
        for line in lines:
            if not _take_stock(db, line["book"], line["quantity"]):
                # Another order took the copies after the check above
                logger.warning("Stock for book %s changed while placing order %s", line["book"], order_id)
                restore_stock(db, taken)
                db["order"].delete_one({"_id": oid})
                book = db["book"].find_one({"_id": line["book"]}) or {}
                raise InsufficientStockError(book.get("title", ""), book.get("stock", 0), line["quantity"])
            taken.append(line)
    except PyMongoError:
        logger.exception("Order %s saved but stock update failed, stock may be inconsistent", order_id)
        raise

    logger.info("Created order %s: %d line(s), total %.2f", order_id, len(lines), order_doc["total"])
    return get_order(db, order_id)


def replace_order(db: Database, order_id: str, payload: Order) -> dict:
    existing = find_order(db, order_id)
    doc = to_storage(payload.model_dump())
    for item in doc["items"]:
        item["book"] = to_object_id(item["book"])
    doc["created_at"] = existing.get("created_at")
    doc["updated_at"] = utcnow()
    db["order"].replace_one({"_id": existing["_id"]}, doc)
    return get_order(db, order_id)


def set_status(db: Database, order_id: str, status: Optional[OrderStatus]) -> dict:
    if not status:
        raise BookstoreError("Status is required")
    result = db["order"].update_one(
        {"_id": to_object_id(order_id)},
        {"$set": {"status": status, "updated_at": utcnow()}},
    )
    if result.matched_count == 0:
        raise NotFoundError("Order not found")
    logger.info("Order %s status set to %s", order_id, status)
    return get_order(db, order_id)


def delete_order(db: Database, order_id: str) -> dict:
    # Status check and removal are a single atomic operation
    order = db["order"].find_one_and_delete(
        {"_id": to_object_id(order_id), "status": {"$in": list(DELETABLE_STATUSES)}}
    )
    if not order:
        find_order(db, order_id)
        raise BusinessRuleError("Can only delete pending or cancelled orders")
    # Cancelled orders are deleted without touching stock
    if order["status"] == "pending":
        restore_stock(db, order.get("items", []))
    logger.info("Deleted %s order %s", order["status"], order_id)
    return present_order(order)


# ----------------------
# Routes
# ----------------------

@router.get("")
def list_orders_api(
    page: int = Query(1, ge=1, description="1-indexed page"),
    limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, description="Page size"),
    status: Optional[str] = Query(None, description="Order status"),
    db: Database = Depends(get_db),
):
    orders, pagination = list_orders(db, page, limit, status)
    return envelope(data=orders, pagination=pagination)


@router.get("/{order_id}")
def get_order_api(order_id: str, db: Database = Depends(get_db)):
    return envelope(data=get_order(db, order_id))


@router.post("", status_code=201)
def create_order_api(payload: OrderCreate, db: Database = Depends(get_db)):
    return envelope(data=create_order(db, payload), message="Order created successfully")


@router.put("/{order_id}")
def replace_order_api(order_id: str, payload: Order, db: Database = Depends(get_db)):
    return envelope(data=replace_order(db, order_id, payload), message="Order updated successfully")


@router.patch("/{order_id}/status")
def set_status_api(order_id: str, payload: StatusUpdate, db: Database = Depends(get_db)):
    return envelope(data=set_status(db, order_id, payload.status), message="Order status updated successfully")


@router.delete("/{order_id}")
def delete_order_api(order_id: str, db: Database = Depends(get_db)):
    return envelope(data=delete_order(db, order_id), message="Order deleted successfully")
