from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.database import get_db
from newsdesk.dependencies import (
    AdminPaginationParams,
    PaginationParams,
    get_image_store,
    require_staff,
)
from newsdesk.image_store import ImageStore
from newsdesk.models import User
from newsdesk.schemas import (
    ApiResponse,
    ArticleCreate,
    ArticleDetail,
    ArticleListItem,
    ArticleUpdate,
    PagedResponse,
)
from newsdesk.services import article_service

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])


@router.get("", response_model=PagedResponse[ArticleListItem])
async def list_articles(
    pagination: PaginationParams = Depends(),
    category: str | None = Query(None, description="Category slug."),
    search: str | None = Query(None, max_length=200),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.get_published_articles(
        db, pagination.page, pagination.page_size, category, search
    )


@router.get("/admin", response_model=PagedResponse[ArticleListItem])
async def list_admin_articles(
    pagination: AdminPaginationParams = Depends(),
    category: str | None = Query(None, description="Category slug."),
    search: str | None = Query(None, max_length=200),
    is_published: bool | None = None,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_staff),
):
    return await article_service.get_admin_articles(
        db, pagination.page, pagination.page_size, category, search, is_published
    )


@router.get("/slug/{slug}", response_model=ApiResponse[ArticleDetail])
async def get_article_by_slug(slug: str, db: AsyncSession = Depends(get_db)):
    article = await article_service.get_published_article_by_slug(db, slug)
    return ApiResponse(data=article)


@router.get("/{article_id}", response_model=ApiResponse[ArticleDetail])
async def get_article(
    article_id: int,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_staff),
):
    return ApiResponse(data=await article_service.get_article(db, article_id))


@router.post("", status_code=201, response_model=ApiResponse[ArticleDetail])
async def create_article(
    data: ArticleCreate,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    article = await article_service.create_article(db, data, author_id=user.id)
    return ApiResponse(message="Article created", data=article)


@router.put("/{article_id}", response_model=ApiResponse[ArticleDetail])
async def update_article(
    article_id: int,
    data: ArticleUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_staff),
):
    article = await article_service.update_article(db, article_id, data)
    return ApiResponse(message="Article updated", data=article)


@router.delete("/{article_id}", response_model=ApiResponse[None])
async def delete_article(
    article_id: int,
    db: AsyncSession = Depends(get_db),
    store: ImageStore = Depends(get_image_store),
    _: User = Depends(require_staff),
):
    await article_service.delete_article(db, article_id, store)
    return ApiResponse(message="Article deleted")
