import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
from authors import router as authors_router
from books import router as books_router
from config import config
from errors import BookstoreError
from orders import router as orders_router
from responses import error_envelope
from schemas import Author as AuthorSchema, Book as BookSchema, Order as OrderSchema

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = database.connect()
    if db is not None:
        try:
            database.ensure_indexes(db)
        except Exception:
            logger.exception("Could not ensure indexes, is MongoDB reachable?")
    yield
    database.close()


app = FastAPI(
    title="Bookstore Management API",
    description="Books, authors and orders for a small bookstore",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.monotonic()
    response = await call_next(request)
    elapsed_ms = (time.monotonic() - start) * 1000
    logger.info("%s %s -> %d (%.1fms)", request.method, request.url.path, response.status_code, elapsed_ms)
    return response


# ----------------------
# Error translation
# ----------------------

def _field_errors(errors) -> list:
    messages = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc) or "request"
        messages.append(f"{field}: {err.get('msg')}")
    return messages


@app.exception_handler(BookstoreError)
async def bookstore_error_handler(request: Request, exc: BookstoreError):
    return JSONResponse(status_code=exc.status_code, content=error_envelope(exc.message, exc.error))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content=error_envelope("Validation Error", errors=_field_errors(exc.errors())),
    )


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    key_value = (exc.details or {}).get("keyValue") or {}
    field = next(iter(key_value), "value")
    return JSONResponse(status_code=400, content=error_envelope(f"{field} already exists", "Duplicate Entry"))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Route {request.url.path} not found"
    else:
        message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(message, "Not Found" if exc.status_code == 404 else None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    detail = str(exc) if config.ENVIRONMENT == "development" else "Something went wrong"
    return JSONResponse(status_code=500, content=error_envelope("Internal Server Error", detail))


# ----------------------
# Health & Schema
# ----------------------

@app.get("/")
def read_root():
    return {
        "message": "Welcome to Bookstore Management API",
        "version": app.version,
        "description": "A RESTful API for managing books, authors, and orders",
        "endpoints": {
            "books": "/api/books",
            "authors": "/api/authors",
            "orders": "/api/orders",
        },
        "documentation": "/docs",
    }


@app.get("/health")
def health():
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": time.monotonic() - STARTED_AT,
        "environment": config.ENVIRONMENT,
    }


@app.get("/test")
def test_database():
    response = {
        "backend": "Running",
        "database": "Not Available",
        "database_url": "Set" if config.DATABASE_URL else "Not Set",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
    }
    db = database.db
    if db is None:
        return response
    response["database"] = "Available"
    response["database_name"] = db.name
    try:
        response["collections"] = db.list_collection_names()[:10]
        response["connection_status"] = "Connected"
        response["database"] = "Connected & Working"
    except Exception as e:
        response["database"] = f"Connected but Error: {str(e)[:50]}"
    return response


@app.get("/schema")
def get_schema():
    # JSON Schema of each stored collection, keyed by collection name
    return {
        "author": AuthorSchema.model_json_schema(),
        "book": BookSchema.model_json_schema(),
        "order": OrderSchema.model_json_schema(),
    }


app.include_router(books_router)
app.include_router(authors_router)
app.include_router(orders_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
