from datetime import date, datetime, timedelta

from bson import ObjectId


def book_body(author_id, **fields):
    body = {
        "title": "The Guide",
        "author": author_id,
        "isbn": "978-0143039648",
        "genre": "Fiction",
        "price": 10.5,
        "stock": 3,
        "description": "A tour guide in Malgudi",
        "publishedDate": "1958-01-01",
        "pages": 220,
    }
    body.update(fields)
    return body


def test_create_then_fetch_round_trip(client, make_author):
    author = make_author(name="R.K. Narayan", nationality="Indian", website="https://example.com")
    body = book_body(author["id"])

    created = client.post("/api/books", json=body)
    assert created.status_code == 201
    assert created.json()["message"] == "Book created successfully"
    book_id = created.json()["data"]["id"]

    book = client.get(f"/api/books/{book_id}").json()["data"]
    for key in ("title", "isbn", "genre", "price", "stock", "description", "pages"):
        assert book[key] == body[key]
    assert book["publishedDate"].startswith("1958-01-01")
    assert book["inStock"] is True
    assert book["author"]["id"] == author["id"]
    assert book["author"]["name"] == "R.K. Narayan"
    assert book["author"]["website"] == "https://example.com"
    assert "createdAt" in book and "updatedAt" in book


def test_create_requires_existing_author(client, db):
    resp = client.post("/api/books", json=book_body(str(ObjectId())))
    assert resp.status_code == 404
    assert resp.json()["message"] == "Author not found"
    assert db["book"].count_documents({}) == 0


def test_duplicate_isbn(client, make_author):
    author_id = make_author()["id"]
    assert client.post("/api/books", json=book_body(author_id)).status_code == 201

    resp = client.post("/api/books", json=book_body(author_id, title="Copy"))

    assert resp.status_code == 400
    assert resp.json()["message"] == "isbn already exists"
    assert resp.json()["error"] == "Duplicate Entry"


def test_validation_errors_are_aggregated(client, make_author):
    body = book_body(
        make_author()["id"],
        isbn="12345",
        genre="Cookbook",
        price=10.123,
        stock=-1,
        pages=0,
        publishedDate=(date.today() + timedelta(days=2)).isoformat(),
    )
    del body["title"]

    resp = client.post("/api/books", json=body)

    assert resp.status_code == 400
    payload = resp.json()
    assert payload["success"] is False
    assert payload["message"] == "Validation Error"
    joined = " | ".join(payload["errors"])
    for field in ("title", "isbn", "genre", "price", "stock", "pages", "publishedDate"):
        assert field in joined
    assert "Invalid ISBN format" in joined
    assert "at most 2 decimal places" in joined


def test_out_of_stock_book(client, make_book):
    book = make_book(stock=0)
    assert client.get(f"/api/books/{book['id']}").json()["data"]["inStock"] is False


def test_list_filters_and_pagination(client, make_book):
    make_book(title="Dune", genre="Sci-Fi")
    make_book(title="Foundation", genre="Sci-Fi", description="Psychohistory and an empire")
    make_book(title="Emma", genre="Romance", description="A matchmaker in Highbury")
    make_book(title="Persuasion", genre="Romance")

    sci_fi = client.get("/api/books", params={"genre": "Sci-Fi"}).json()
    assert {b["title"] for b in sci_fi["data"]} == {"Dune", "Foundation"}

    by_title = client.get("/api/books", params={"q": "dUnE"}).json()
    assert [b["title"] for b in by_title["data"]] == ["Dune"]

    by_description = client.get("/api/books", params={"q": "EMPIRE"}).json()
    assert [b["title"] for b in by_description["data"]] == ["Foundation"]

    combined = client.get("/api/books", params={"genre": "Romance", "q": "highbury"}).json()
    assert [b["title"] for b in combined["data"]] == ["Emma"]

    page = client.get("/api/books", params={"page": 2, "limit": 3}).json()
    assert len(page["data"]) == 1
    assert page["pagination"] == {
        "currentPage": 2,
        "totalPages": 2,
        "totalCount": 4,
        "hasNextPage": False,
        "hasPrevPage": True,
    }
    assert set(page["data"][0]["author"]) == {"id", "name", "nationality"}


def test_search_text_is_not_a_regex(client, make_book):
    make_book(title="C++ Primer", genre="Technical")
    make_book(title="Cxx", genre="Technical")
    resp = client.get("/api/books", params={"q": "c++"}).json()
    assert [b["title"] for b in resp["data"]] == ["C++ Primer"]


def test_list_sorted_newest_first(client, db, make_book):
    old = make_book(title="Old")
    new = make_book(title="New")
    db["book"].update_one({"_id": ObjectId(old["id"])}, {"$set": {"created_at": datetime(2001, 1, 1)}})
    db["book"].update_one({"_id": ObjectId(new["id"])}, {"$set": {"created_at": datetime(2002, 1, 1)}})

    titles = [b["title"] for b in client.get("/api/books").json()["data"]]
    assert titles == ["New", "Old"]


def test_full_replace(client, make_author, make_book):
    book = make_book(stock=5)
    other_author = make_author(name="Other")

    resp = client.put(
        f"/api/books/{book['id']}",
        json=book_body(other_author["id"], isbn=book["isbn"], title="Renamed", stock=9),
    )

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["title"] == "Renamed"
    assert data["stock"] == 9
    assert data["author"]["name"] == "Other"
    assert data["createdAt"] == book["createdAt"]


def test_full_replace_requires_complete_document(client, make_book):
    book = make_book()
    resp = client.put(f"/api/books/{book['id']}", json={"title": "Only a title"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Validation Error"


def test_partial_update(client, make_book):
    book = make_book(title="Before", price=10, stock=2)

    resp = client.patch(f"/api/books/{book['id']}", json={"title": "After", "price": 12.25})

    data = resp.json()["data"]
    assert resp.status_code == 200
    assert data["title"] == "After"
    assert data["price"] == 12.25
    assert data["stock"] == 2


def test_partial_update_validates_supplied_fields(client, make_book):
    book = make_book()
    assert client.patch(f"/api/books/{book['id']}", json={"price": -1}).status_code == 400
    resp = client.patch(f"/api/books/{book['id']}", json={"author": str(ObjectId())})
    assert resp.status_code == 404
    assert resp.json()["message"] == "Author not found"


def test_partial_update_ignores_blank_optional_fields(client, make_book):
    book = make_book(description="Kept", pages=120)

    resp = client.patch(f"/api/books/{book['id']}", json={"pages": "", "description": "", "publishedDate": ""})

    assert resp.status_code == 200
    assert resp.json()["data"]["pages"] == 120
    assert resp.json()["data"]["description"] == "Kept"


def test_partial_update_isbn_must_stay_unique(client, make_book):
    first = make_book()
    second = make_book()
    resp = client.patch(f"/api/books/{second['id']}", json={"isbn": first["isbn"]})
    assert resp.status_code == 400
    assert resp.json()["message"] == "isbn already exists"


def test_set_stock(client, make_book):
    book = make_book(stock=5)

    resp = client.patch(f"/api/books/{book['id']}/stock", json={"stock": 0})
    assert resp.status_code == 200
    assert resp.json()["data"]["stock"] == 0
    assert resp.json()["data"]["inStock"] is False

    for bad in ({}, {"stock": -3}):
        resp = client.patch(f"/api/books/{book['id']}/stock", json=bad)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Valid stock quantity is required"


def test_delete_book(client, db, make_book, order_payload):
    book = make_book(stock=5)
    client.post("/api/orders", json=order_payload((book["id"], 1)))

    resp = client.delete(f"/api/books/{book['id']}")

    assert resp.status_code == 200
    assert resp.json()["data"]["id"] == book["id"]
    assert db["book"].count_documents({}) == 0
    assert client.delete(f"/api/books/{book['id']}").status_code == 404


def test_malformed_id(client):
    resp = client.get("/api/books/123")
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Invalid ID format", "error": "Cast Error"}
