import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from authors import create_author
from books import create_book
from main import app
from schemas import Author, Book


@pytest.fixture
def db():
    client = mongomock.MongoClient()
    test_db = client["bookstore_test"]
    database.ensure_indexes(test_db)
    yield test_db
    client.close()


@pytest.fixture
def client(db):
    app.dependency_overrides[database.get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_author(db):
    def _make(name="A", **fields):
        return create_author(db, Author(name=name, **fields))
    return _make


@pytest.fixture
def make_book(db, make_author):
    counter = iter(range(1000000000, 9999999999))

    def _make(author_id=None, **fields):
        if author_id is None:
            author_id = make_author()["id"]
        data = {
            "title": "B",
            "author": author_id,
            "isbn": str(next(counter)),
            "genre": "Fiction",
            "price": 10,
            "stock": 5,
        }
        data.update(fields)
        return create_book(db, Book(**data))
    return _make


@pytest.fixture
def order_payload():
    """Request body for POST /api/orders with (book_id, quantity) lines."""
    def _payload(*lines, **overrides):
        body = {
            "customerName": "Jane Reader",
            "customerEmail": "jane@example.com",
            "shippingAddress": {
                "street": "1 Main St",
                "city": "Springfield",
                "state": "IL",
                "zipCode": "62701",
                "country": "USA",
            },
            "items": [{"book": book_id, "quantity": qty} for book_id, qty in lines],
            "paymentMethod": "credit_card",
        }
        body.update(overrides)
        return body
    return _payload
