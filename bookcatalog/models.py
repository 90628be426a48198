# bookcatalog/models.py
from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from typing_extensions import Annotated


def _check_object_id(value: str) -> str:
    if not ObjectId.is_valid(value):
        raise ValueError(f"'{value}' is not a valid ObjectId")
    return value


ObjectIdStr = Annotated[str, AfterValidator(_check_object_id)]


def _required_text(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("must not be empty")
    return value.strip()


class Rating(BaseModel):
    star: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    postedby: Optional[ObjectIdStr] = None


# ---------------------------------------------------------------------------
# Stored documents
#
# These are the schema rules the entity store enforces on insert and on
# update. Field aliases follow the document store naming (``_id``,
# ``__v``, camelCase timestamps) so documents round-trip unchanged.


class Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: ObjectIdStr = Field(..., alias="_id")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")
    version: int = Field(0, alias="__v")


class CategoryDocument(Document):
    title: str

    @field_validator("title")
    @classmethod
    def title_required(cls, value: str) -> str:
        return _required_text(value)


class BookDocument(Document):
    title: str
    slug: Optional[str] = None
    author: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    pages: Optional[int] = Field(None, ge=0)
    category: Optional[ObjectIdStr] = None
    tags: Optional[str] = None
    ratings: List[Rating] = Field(default_factory=list)
    totalrating: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_required(cls, value: str) -> str:
        return _required_text(value)


class UserDocument(Document):
    firstname: str
    lastname: str
    email: str
    password_hash: str = Field(..., alias="passwordHash")

    @field_validator("email")
    @classmethod
    def email_required(cls, value: str) -> str:
        return _required_text(value).lower()


# ---------------------------------------------------------------------------
# Records returned to clients
#
# Every field is optional: a ``fields`` projection may leave any of them
# out (even ``_id``), and routes serialize with ``exclude_unset`` so
# omitted fields stay omitted.


class Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(None, alias="_id")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
    version: Optional[int] = Field(None, alias="__v")


class Category(Record):
    title: Optional[str] = None


class Book(Record):
    title: Optional[str] = None
    slug: Optional[str] = None
    author: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    pages: Optional[int] = None
    # Expanded Category, or None when unset or dangling.
    category: Optional[Category] = None
    tags: Optional[str] = None
    ratings: Optional[List[Rating]] = None
    totalrating: Optional[str] = None


class User(Record):
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    email: Optional[str] = None


# ---------------------------------------------------------------------------
# Request payloads


class CategoryCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None


class CategoryUpdate(CategoryCreate):
    pass


class BookCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    author: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    pages: Optional[int] = None
    category: Optional[str] = None
    tags: Optional[str] = None
    ratings: Optional[List[Rating]] = None
    totalrating: Optional[str] = None


class BookUpdate(BookCreate):
    pass


class RegisterRequest(BaseModel):
    firstname: str
    lastname: str
    email: str
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    token: str
    user: User


class Identity(BaseModel):
    """Who a verified bearer token belongs to."""

    user_id: str
    email: str
