from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# --- Envelope ---

class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str = ""
    data: T | None = None


class PagedResponse(ApiResponse[list[T]], Generic[T]):
    page: int
    page_size: int
    total_count: int
    total_pages: int


# --- Auth ---

class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1)


class UserResponse(BaseModel):
    id: int
    username: str
    full_name: str
    email: str
    role: str
    is_active: bool
    model_config = ConfigDict(from_attributes=True)


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: UserResponse


# --- User ---

class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=100)
    password: str = Field(min_length=6, max_length=128)
    full_name: str = Field(min_length=1, max_length=200)
    email: str = Field(max_length=200, pattern=_EMAIL_PATTERN)


class UserUpdate(BaseModel):
    full_name: str | None = Field(None, min_length=1, max_length=200)
    email: str | None = Field(None, max_length=200, pattern=_EMAIL_PATTERN)
    is_active: bool | None = None
    password: str | None = Field(None, min_length=6, max_length=128)
    role: str | None = None


# --- Category ---

class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class CategoryResponse(BaseModel):
    id: int
    name: str
    slug: str
    article_count: int = 0


# --- Image ---

class ImageResponse(BaseModel):
    id: int
    article_id: int
    file_name: str
    url: str
    file_size: int
    is_primary: bool


# --- Article ---

class ArticleCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    content: str = Field(min_length=1)
    summary: str | None = Field(None, max_length=1000)
    category_id: int
    is_published: bool = True


class ArticleUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=500)
    content: str | None = Field(None, min_length=1)
    summary: str | None = Field(None, max_length=1000)
    category_id: int | None = None
    is_published: bool | None = None


class ArticleListItem(BaseModel):
    id: int
    title: str
    slug: str
    summary: str | None
    category_name: str | None
    category_slug: str | None
    author_name: str | None
    view_count: int
    is_published: bool
    published_at: datetime | None
    created_at: datetime
    primary_image_url: str | None


class ArticleDetail(BaseModel):
    id: int
    title: str
    slug: str
    content: str
    summary: str | None
    category_id: int
    category_name: str | None
    category_slug: str | None
    author_id: int
    author_name: str | None
    view_count: int
    is_published: bool
    published_at: datetime | None
    created_at: datetime
    updated_at: datetime
    images: list[ImageResponse] = []


# --- Health ---

class HealthResponse(BaseModel):
    status: str
    version: str
    cache: dict = {}
