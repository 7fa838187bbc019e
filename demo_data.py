"""
Demo data for the bookstore.

Inserts sample authors, books and two orders through the same functions the
API uses, so the orders go through stock checks and stock decrements.

    python demo_data.py [--reset]
"""

import argparse
import logging
from typing import Dict, List

from pymongo.database import Database

import database
from authors import create_author
from books import create_book
from errors import BookstoreError
from orders import create_order
from schemas import Author, Book, OrderCreate

logger = logging.getLogger(__name__)

AUTHORS = [
    {
        "name": "R.K. Narayan",
        "nationality": "Indian",
        "biography": "Indian writer known for his works set in the fictional South Indian town of Malgudi",
        "birthDate": "1906-10-10",
        "awards": [
            {"name": "Sahitya Akademi Award", "year": 1958},
            {"name": "Padma Bhushan", "year": 1964},
        ],
    },
    {
        "name": "Arundhati Roy",
        "nationality": "Indian",
        "biography": 'Indian author best known for her novel "The God of Small Things"',
        "birthDate": "1961-11-24",
        "awards": [{"name": "Booker Prize", "year": 1997}],
    },
    {
        "name": "Vikram Seth",
        "nationality": "Indian",
        "biography": 'Indian novelist and poet, author of "A Suitable Boy"',
        "birthDate": "1952-06-20",
        "website": "https://www.vikramseth.co.uk",
    },
]

# author is the index into AUTHORS
BOOKS = [
    {
        "title": "Malgudi Days",
        "author": 0,
        "isbn": "978-0143039655",
        "genre": "Fiction",
        "price": 12.99,
        "stock": 25,
        "description": "A collection of short stories set in the town of Malgudi",
        "publishedDate": "1943-01-01",
        "pages": 256,
    },
    {
        "title": "The Guide",
        "author": 0,
        "isbn": "978-0143039648",
        "genre": "Fiction",
        "price": 10.5,
        "stock": 15,
        "publishedDate": "1958-01-01",
        "pages": 220,
    },
    {
        "title": "The God of Small Things",
        "author": 1,
        "isbn": "978-0812979657",
        "genre": "Fiction",
        "price": 16.0,
        "stock": 30,
        "description": "A story of twins growing up in Kerala",
        "publishedDate": "1997-04-04",
        "pages": 340,
    },
    {
        "title": "A Suitable Boy",
        "author": 2,
        "isbn": "978-0060786526",
        "genre": "Fiction",
        "price": 24.99,
        "stock": 8,
        "publishedDate": "1993-01-01",
        "pages": 1488,
    },
]

ORDERS = [
    {
        "customerName": "Priya Sharma",
        "customerEmail": "priya.sharma@example.com",
        "customerPhone": "+91 98765 43210",
        "shippingAddress": {
            "street": "12 MG Road",
            "city": "Bengaluru",
            "state": "Karnataka",
            "zipCode": "560001",
            "country": "India",
        },
        "items": [{"book": 0, "quantity": 2}, {"book": 2, "quantity": 1}],
        "paymentMethod": "credit_card",
    },
    {
        "customerName": "Arjun Mehta",
        "customerEmail": "arjun.mehta@example.com",
        "shippingAddress": {
            "street": "45 Park Street",
            "city": "Kolkata",
            "state": "West Bengal",
            "zipCode": "700016",
            "country": "India",
        },
        "items": [{"book": 3, "quantity": 1}],
        "paymentMethod": "cash_on_delivery",
        "notes": "Please call before delivery",
    },
]


def reset(db: Database) -> None:
    for name in ("order", "book", "author"):
        deleted = db[name].delete_many({}).deleted_count
        logger.info("Removed %d document(s) from %s", deleted, name)


def seed(db: Database) -> Dict[str, List[str]]:
    created: Dict[str, List[str]] = {"authors": [], "books": [], "orders": []}
    # BOOKS index -> id of the book created for it
    book_ids: Dict[int, str] = {}

    for raw in AUTHORS:
        author = create_author(db, Author.model_validate(raw))
        created["authors"].append(author["id"])
        logger.info("Created author: %s", author["name"])

    for index, raw in enumerate(BOOKS):
        data = {**raw, "author": created["authors"][raw["author"]]}
        try:
            book = create_book(db, Book.model_validate(data))
        except BookstoreError as e:
            logger.warning("Skipped book %s: %s", raw["title"], e.message)
            continue
        book_ids[index] = book["id"]
        created["books"].append(book["id"])
        logger.info("Created book: %s", book["title"])

    for raw in ORDERS:
        missing = [i["book"] for i in raw["items"] if i["book"] not in book_ids]
        if missing:
            logger.warning(
                "Skipped order for %s: book(s) %s were not created",
                raw["customerName"], ", ".join(BOOKS[i]["title"] for i in missing),
            )
            continue
        items = [{"book": book_ids[i["book"]], "quantity": i["quantity"]} for i in raw["items"]]
        try:
            order = create_order(db, OrderCreate.model_validate({**raw, "items": items}))
        except BookstoreError as e:
            logger.warning("Skipped order for %s: %s", raw["customerName"], e.message)
            continue
        created["orders"].append(order["id"])
        logger.info("Created order for %s, total %.2f", order["customerName"], order["total"])

    return created


def main() -> None:
    parser = argparse.ArgumentParser(description="Populate the bookstore database with demo data")
    parser.add_argument("--reset", action="store_true", help="empty the collections first")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    db = database.connect()
    if db is None:
        raise SystemExit("Database not configured, set DATABASE_URL and DATABASE_NAME")
    try:
        database.ensure_indexes(db)
        if args.reset:
            reset(db)
        created = seed(db)
        logger.info(
            "Demo data done: %d author(s), %d book(s), %d order(s)",
            len(created["authors"]), len(created["books"]), len(created["orders"]),
        )
    finally:
        database.close()


if __name__ == "__main__":
    main()
