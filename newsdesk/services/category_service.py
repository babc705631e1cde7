"""
Category service: public listing plus back-office CRUD.

A category cannot be deleted while any article points at it; that mirrors
the ``ON DELETE RESTRICT`` foreign key but is checked up front so the
caller gets a readable error instead of an integrity failure.
"""
import logging

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.cache import CATEGORY_LIST_KEY, cache
from newsdesk.config import settings
from newsdesk.exceptions import NotFoundError, ValidationError
from newsdesk.models import Article, Category
from newsdesk.schemas import CategoryCreate
from newsdesk.slugs import generate_slug

logger = logging.getLogger(__name__)

CATEGORY_NOT_FOUND = "Category not found"


def _category_query():
    """Categories with the number of *published* articles in each."""
    published_count = func.count(Article.id)
    return (
        select(Category, published_count)
        .outerjoin(
            Article,
            and_(Article.category_id == Category.id, Article.is_published.is_(True)),
        )
        .group_by(Category.id)
    )


def _category_to_dict(category: Category, article_count: int = 0) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "slug": category.slug,
        "article_count": article_count,
    }


async def get_categories(db: AsyncSession) -> list[dict]:
    cached = await cache.get(CATEGORY_LIST_KEY)
    if cached is not None:
        return cached

    result = await db.execute(_category_query().order_by(Category.name))
    categories = [_category_to_dict(c, count) for c, count in result.all()]
    await cache.set(CATEGORY_LIST_KEY, categories, ttl=settings.CACHE_TTL_CATEGORIES)
    return categories


async def get_category_by_slug(db: AsyncSession, slug: str) -> dict:
    result = await db.execute(_category_query().where(Category.slug == slug))
    row = result.first()
    if row is None:
        raise NotFoundError(CATEGORY_NOT_FOUND)
    return _category_to_dict(*row)


async def _slug_for(db: AsyncSession, name: str, exclude_id: int | None = None) -> str:
    slug = generate_slug(name)
    if not slug:
        raise ValidationError("Category name must contain letters or digits")
    q = select(Category.id).where(Category.slug == slug)
    if exclude_id is not None:
        q = q.where(Category.id != exclude_id)
    if await db.scalar(q) is not None:
        raise ValidationError("A category with this name already exists")
    return slug


async def create_category(db: AsyncSession, data: CategoryCreate) -> dict:
    category = Category(name=data.name, slug=await _slug_for(db, data.name))
    db.add(category)
    await db.flush()
    logger.info("Created category id=%s slug=%s", category.id, category.slug)

    await cache.invalidate_categories()
    return _category_to_dict(category)


async def update_category(db: AsyncSession, category_id: int, data: CategoryCreate) -> dict:
    category = await db.get(Category, category_id)
    if category is None:
        raise NotFoundError(CATEGORY_NOT_FOUND)

    category.slug = await _slug_for(db, data.name, exclude_id=category_id)
    category.name = data.name
    await db.flush()
    logger.info("Renamed category id=%s to slug=%s", category.id, category.slug)

    await cache.invalidate_categories()
    return await get_category_by_slug(db, category.slug)


async def delete_category(db: AsyncSession, category_id: int) -> None:
    category = await db.get(Category, category_id)
    if category is None:
        raise NotFoundError(CATEGORY_NOT_FOUND)

    in_use = await db.scalar(
        select(func.count()).select_from(Article).where(Article.category_id == category_id)
    )
    if in_use:
        raise ValidationError(f"Category is used by {in_use} article(s) and cannot be deleted")

    await db.delete(category)
    await db.flush()
    logger.info("Deleted category id=%s", category_id)
    await cache.invalidate_categories()
