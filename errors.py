"""
Error hierarchy for the bookstore API.

Every error carries the HTTP status and the short ``error`` label that the
exception handlers in ``main`` put into the response envelope.
"""

from typing import Optional


class BookstoreError(Exception):
    status_code = 400
    error = "Bad Request"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidIdError(BookstoreError):
    error = "Cast Error"

    def __init__(self, value: Optional[str] = None) -> None:
        self.value = value
        super().__init__("Invalid ID format")


class NotFoundError(BookstoreError):
    status_code = 404
    error = "Not Found"


class DuplicateError(BookstoreError):
    error = "Duplicate Entry"

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"{field} already exists")


class BusinessRuleError(BookstoreError):
    error = "Business Rule Violation"


class InsufficientStockError(BusinessRuleError):
    error = "Insufficient Stock"

    def __init__(self, title: str, available: int, requested: int) -> None:
        self.title = title
        self.available = available
        self.requested = requested
        super().__init__(
            f'Insufficient stock for "{title}". Available: {available}, Requested: {requested}'
        )
