"""
Database Schemas for the Bookstore

Each Pydantic model represents a MongoDB collection.
Collection name is the lowercase of the class name:
- Author -> "author"
- Book -> "book"
- Order -> "order"

Request bodies use camelCase keys (``birthDate``, ``customerName``...);
snake_case names are accepted as well. Documents are stored snake_case.
"""

import re
from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

Genre = Literal[
    "Fiction", "Non-Fiction", "Mystery", "Romance", "Sci-Fi",
    "Fantasy", "Biography", "History", "Self-Help", "Technical",
]
OrderStatus = Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled"]
PaymentMethod = Literal["credit_card", "debit_card", "paypal", "cash_on_delivery"]
PaymentStatus = Literal["pending", "paid", "failed", "refunded"]

GENRES = get_args(Genre)
ORDER_STATUSES = get_args(OrderStatus)
PAYMENT_METHODS = get_args(PaymentMethod)
PAYMENT_STATUSES = get_args(PaymentStatus)

ISBN_SEPARATORS = re.compile(r"[-\s]")
ISBN_DIGITS = re.compile(r"^(?:\d{10}|\d{13})$")
PHONE_SEPARATORS = re.compile(r"[\s\-()]")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{0,15}$")
WEBSITE_PATTERN = r"^https?://.+"


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ----------------------
# Shared validators
# ----------------------

def _blank_to_none(v):
    # Browser forms send "" for untouched optional inputs
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _not_in_future(v: Optional[date], label: str) -> Optional[date]:
    if v is not None and v > date.today():
        raise ValueError(f"{label} cannot be in the future")
    return v


def _check_isbn(v: Optional[str]) -> Optional[str]:
    if v is not None and not ISBN_DIGITS.match(ISBN_SEPARATORS.sub("", v)):
        raise ValueError("Invalid ISBN format")
    return v


def _check_price(v: Optional[float]) -> Optional[float]:
    if v is not None and Decimal(str(v)).as_tuple().exponent < -2:
        raise ValueError("Price must have at most 2 decimal places")
    return v


def _check_phone(v: Optional[str]) -> Optional[str]:
    if v is not None and not PHONE_PATTERN.match(PHONE_SEPARATORS.sub("", v)):
        raise ValueError("Invalid phone number format")
    return v


def _lower(v: Optional[str]) -> Optional[str]:
    return v.lower() if v is not None else v


# ----------------------
# Author
# ----------------------

class Award(CamelModel):
    name: Optional[str] = Field(None, max_length=200, description="Award name")
    year: Optional[int] = Field(None, ge=1900, description="Year the award was received")

    @field_validator("year")
    @classmethod
    def year_not_in_future(cls, v):
        if v is not None and v > date.today().year:
            raise ValueError("Year cannot be in the future")
        return v


class Author(CamelModel):
    name: str = Field(..., min_length=1, max_length=100, description="Author name")
    email: Optional[EmailStr] = Field(None, description="Contact email")
    nationality: Optional[str] = Field(None, max_length=50, description="Nationality")
    birth_date: Optional[date] = Field(None, description="Date of birth")
    biography: Optional[str] = Field(None, max_length=2000, description="Short biography")
    website: Optional[str] = Field(None, pattern=WEBSITE_PATTERN, description="Website URL")
    awards: List[Award] = Field(default_factory=list, description="Awards and achievements")

    @field_validator("email", "nationality", "birth_date", "biography", "website", mode="before")
    @classmethod
    def blank_optional(cls, v):
        return _blank_to_none(v)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v):
        return _lower(v)

    @field_validator("birth_date")
    @classmethod
    def birth_date_not_in_future(cls, v):
        return _not_in_future(v, "Birth date")


# ----------------------
# Book
# ----------------------

class Book(CamelModel):
    title: str = Field(..., min_length=1, max_length=200, description="Book title")
    author: str = Field(..., min_length=1, description="Author ObjectId as string")
    isbn: str = Field(..., min_length=1, description="ISBN-10 or ISBN-13, separators allowed")
    genre: Genre = Field(..., description="Genre")
    price: float = Field(..., ge=0, description="Price in dollars")
    stock: int = Field(0, ge=0, description="Copies available for sale")
    description: Optional[str] = Field(None, max_length=1000, description="Book description")
    published_date: Optional[date] = Field(None, description="Publication date")
    pages: Optional[int] = Field(None, ge=1, description="Page count")

    @field_validator("description", "published_date", "pages", mode="before")
    @classmethod
    def blank_optional(cls, v):
        return _blank_to_none(v)

    @field_validator("isbn")
    @classmethod
    def valid_isbn(cls, v):
        return _check_isbn(v)

    @field_validator("price")
    @classmethod
    def two_decimals(cls, v):
        return _check_price(v)

    @field_validator("published_date")
    @classmethod
    def published_not_in_future(cls, v):
        return _not_in_future(v, "Published date")


class BookPatch(CamelModel):
    """Partial book update: only the supplied fields are validated."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    author: Optional[str] = Field(None, min_length=1)
    isbn: Optional[str] = Field(None, min_length=1)
    genre: Optional[Genre] = None
    price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=1000)
    published_date: Optional[date] = None
    pages: Optional[int] = Field(None, ge=1)

    @field_validator("description", "published_date", "pages", mode="before")
    @classmethod
    def blank_optional(cls, v):
        return _blank_to_none(v)

    @field_validator("isbn")
    @classmethod
    def valid_isbn(cls, v):
        return _check_isbn(v)

    @field_validator("price")
    @classmethod
    def two_decimals(cls, v):
        return _check_price(v)

    @field_validator("published_date")
    @classmethod
    def published_not_in_future(cls, v):
        return _not_in_future(v, "Published date")


class StockUpdate(CamelModel):
    stock: Optional[int] = None


# ----------------------
# Order
# ----------------------

class ShippingAddress(CamelModel):
    street: str = Field(..., min_length=1, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    zip_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field("USA", min_length=1, max_length=100)


class OrderLineRequest(CamelModel):
    book: str = Field(..., min_length=1, description="Book ObjectId as string")
    quantity: int = Field(..., ge=1)


class OrderLine(OrderLineRequest):
    price: float = Field(..., ge=0, description="Unit price captured when the order was placed")


class CustomerFields(CamelModel):
    customer_name: str = Field(..., min_length=1, max_length=100)
    customer_email: EmailStr
    customer_phone: Optional[str] = None
    shipping_address: ShippingAddress
    payment_method: PaymentMethod
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator("customer_phone", "notes", mode="before")
    @classmethod
    def blank_optional(cls, v):
        return _blank_to_none(v)

    @field_validator("customer_email")
    @classmethod
    def lower_email(cls, v):
        return _lower(v)

    @field_validator("customer_phone")
    @classmethod
    def valid_phone(cls, v):
        return _check_phone(v)


class OrderCreate(CustomerFields):
    """What a customer submits; prices and totals are computed server side."""

    items: List[OrderLineRequest] = Field(..., min_length=1)


class Order(CustomerFields):
    items: List[OrderLine] = Field(..., min_length=1)
    status: OrderStatus = "pending"
    payment_status: PaymentStatus = "pending"
    subtotal: float = Field(..., ge=0)
    tax: float = Field(0, ge=0)
    shipping: float = Field(0, ge=0)
    total: float = Field(..., ge=0)


class StatusUpdate(CamelModel):
    status: Optional[OrderStatus] = None
