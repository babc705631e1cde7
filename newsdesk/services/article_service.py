"""
Article service: business logic for the Article aggregate.

Design notes
------------
- Slugs come from ``generate_slug``.  On collision a single 8-character
  UUID suffix is appended; the unique index on ``articles.slug`` is the
  backstop if a concurrent request wins the race in between.
- ``published_at`` is stamped on the first publish only.  Unpublishing
  keeps it, so an article always remembers when it first went live.
- The public feed is cached in Redis (cache-aside); every write purges
  the feed pages.  Detail-by-slug is never cached because each hit
  bumps the view counter.
- The view counter is bumped with a single ``UPDATE ... SET view_count =
  view_count + 1`` so concurrent readers never lose increments.
- Relationships are ``noload`` on the models; every read here states its
  eager loads explicitly.
"""
import logging
import math
import uuid
from datetime import datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from newsdesk.cache import article_list_key, cache
from newsdesk.config import settings
from newsdesk.exceptions import NotFoundError, ValidationError
from newsdesk.image_store import ImageStore
from newsdesk.models import Article, Category, Image, utcnow
from newsdesk.schemas import ArticleCreate, ArticleUpdate
from newsdesk.slugs import generate_slug

logger = logging.getLogger(__name__)

ARTICLE_NOT_FOUND = "Article not found"


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def image_to_dict(image: Image) -> dict:
    return {
        "id": image.id,
        "article_id": image.article_id,
        "file_name": image.file_name,
        "url": image.file_path,
        "file_size": image.file_size,
        "is_primary": image.is_primary,
    }


def _primary_image_url(images: list[Image]) -> str | None:
    """The primary image's URL, else any image's, else None."""
    for image in images:
        if image.is_primary:
            return image.file_path
    return images[0].file_path if images else None


def _article_to_list_item(article: Article) -> dict:
    return {
        "id": article.id,
        "title": article.title,
        "slug": article.slug,
        "summary": article.summary,
        "category_name": article.category.name if article.category else None,
        "category_slug": article.category.slug if article.category else None,
        "author_name": article.author.full_name if article.author else None,
        "view_count": article.view_count,
        "is_published": article.is_published,
        "published_at": _iso(article.published_at),
        "created_at": _iso(article.created_at),
        "primary_image_url": _primary_image_url(article.images),
    }


def _article_to_detail(article: Article) -> dict:
    return {
        "id": article.id,
        "title": article.title,
        "slug": article.slug,
        "content": article.content,
        "summary": article.summary,
        "category_id": article.category_id,
        "category_name": article.category.name if article.category else None,
        "category_slug": article.category.slug if article.category else None,
        "author_id": article.author_id,
        "author_name": article.author.full_name if article.author else None,
        "view_count": article.view_count,
        "is_published": article.is_published,
        "published_at": _iso(article.published_at),
        "created_at": _iso(article.created_at),
        "updated_at": _iso(article.updated_at),
        "images": [image_to_dict(i) for i in article.images],
    }


# ---------------------------------------------------------------------------
# Query helpers
# ---------------------------------------------------------------------------

def _with_relations(query):
    return query.options(
        joinedload(Article.category),
        joinedload(Article.author),
        selectinload(Article.images),
    )


async def _load_article(db: AsyncSession, *criteria) -> Article | None:
    """Fetch one article with category, author and images, bypassing stale identity-map state."""
    q = (
        _with_relations(select(Article).where(*criteria))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


async def _ensure_category(db: AsyncSession, category_id: int) -> None:
    if await db.get(Category, category_id) is None:
        raise ValidationError("Category not found")


async def unique_slug(db: AsyncSession, title: str) -> str:
    """
    Slug for *title*, suffixed with 8 random characters when an article
    already uses the plain form.  Checked once; not retried.  The result
    always fits the ``articles.slug`` column.
    """
    max_length = Article.__table__.c.slug.type.length
    slug = generate_slug(title)[:max_length].rstrip("-")
    taken = await db.scalar(select(func.count()).select_from(Article).where(Article.slug == slug))
    if taken or not slug:
        suffix = uuid.uuid4().hex[:8]
        base = slug[: max_length - len(suffix) - 1].rstrip("-")
        slug = f"{base}-{suffix}" if base else suffix
    return slug


async def _paginate(db: AsyncSession, base_query, order_by, page: int, page_size: int) -> dict:
    total: int = await db.scalar(select(func.count()).select_from(base_query.subquery()))
    q = (
        _with_relations(base_query)
        .order_by(*order_by)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    articles = (await db.execute(q)).unique().scalars().all()
    return {
        "data": [_article_to_list_item(a) for a in articles],
        "page": page,
        "page_size": page_size,
        "total_count": total,
        "total_pages": math.ceil(total / page_size) if total > 0 else 0,
    }


def _apply_filters(query, category: str | None, search: str | None):
    if category:
        query = query.join(Category, Article.category_id == Category.id).where(
            Category.slug == category
        )
    if search:
        # % and _ in the search term match literally.
        escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        query = query.where(
            or_(
                Article.title.ilike(pattern, escape="\\"),
                Article.content.ilike(pattern, escape="\\"),
            )
        )
    return query


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_published_articles(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 12,
    category: str | None = None,
    search: str | None = None,
) -> dict:
    """
    Paginated public feed: published articles only, newest publication
    first, optionally narrowed to one category slug and/or a search term
    matched against title and content.
    """
    cache_key = article_list_key(page, page_size, category, search)
    cached = await cache.get(cache_key)
    if cached:
        return cached

    query = _apply_filters(select(Article).where(Article.is_published.is_(True)), category, search)
    response = await _paginate(
        db, query, [Article.published_at.desc(), Article.id.desc()], page, page_size
    )
    await cache.set(cache_key, response, ttl=settings.CACHE_TTL_LIST)
    return response


async def get_admin_articles(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    category: str | None = None,
    search: str | None = None,
    is_published: bool | None = None,
) -> dict:
    """
    Paginated back-office listing over every status.  Drafts that were
    never published have no ``published_at`` and sort by ``created_at``.
    """
    query = select(Article)
    if is_published is not None:
        query = query.where(Article.is_published.is_(is_published))
    query = _apply_filters(query, category, search)
    sort_key = func.coalesce(Article.published_at, Article.created_at)
    return await _paginate(db, query, [sort_key.desc(), Article.id.desc()], page, page_size)


async def get_article(db: AsyncSession, article_id: int) -> dict:
    """Full detail for *article_id* regardless of status; no view is counted."""
    article = await _load_article(db, Article.id == article_id)
    if article is None:
        raise NotFoundError(ARTICLE_NOT_FOUND)
    return _article_to_detail(article)


async def get_published_article_by_slug(db: AsyncSession, slug: str) -> dict:
    """
    Public detail for a published article, counting the read.

    The increment is a single atomic UPDATE; the article is then loaded
    fresh so the response includes this view.
    """
    result = await db.execute(
        update(Article)
        .where(Article.slug == slug, Article.is_published.is_(True))
        .values(view_count=Article.view_count + 1)
    )
    if result.rowcount == 0:
        raise NotFoundError(ARTICLE_NOT_FOUND)

    article = await _load_article(db, Article.slug == slug)
    return _article_to_detail(article)


async def create_article(db: AsyncSession, data: ArticleCreate, author_id: int) -> dict:
    await _ensure_category(db, data.category_id)

    now = utcnow()
    article = Article(
        title=data.title,
        slug=await unique_slug(db, data.title),
        content=data.content,
        summary=data.summary,
        category_id=data.category_id,
        author_id=author_id,
        is_published=data.is_published,
        published_at=now if data.is_published else None,
        created_at=now,
        updated_at=now,
    )
    db.add(article)
    await db.flush()
    logger.info("Created article id=%s slug=%s published=%s", article.id, article.slug, article.is_published)

    await cache.invalidate_articles()
    return _article_to_detail(await _load_article(db, Article.id == article.id))


async def update_article(db: AsyncSession, article_id: int, data: ArticleUpdate) -> dict:
    """
    Apply the fields present in *data*.  The slug is kept as-is so that
    published URLs survive title edits.
    """
    article = await db.get(Article, article_id)
    if article is None:
        raise NotFoundError(ARTICLE_NOT_FOUND)

    changes = data.model_dump(exclude_unset=True)
    if changes.get("category_id") is not None:
        await _ensure_category(db, changes["category_id"])

    for field in ("title", "content", "category_id", "is_published"):
        if changes.get(field) is not None:
            setattr(article, field, changes[field])
    if "summary" in changes:
        article.summary = changes["summary"]

    if article.is_published and article.published_at is None:
        article.published_at = utcnow()
    article.updated_at = utcnow()

    await db.flush()
    logger.info("Updated article id=%s published=%s", article.id, article.is_published)

    await cache.invalidate_articles()
    return _article_to_detail(await _load_article(db, Article.id == article_id))


async def delete_article(db: AsyncSession, article_id: int, store: ImageStore | None = None) -> None:
    """
    Delete *article_id*; its image rows go with it through the
    ``ON DELETE CASCADE`` foreign key.  Stored files are removed
    afterwards on a best-effort basis.
    """
    article = await db.get(Article, article_id)
    if article is None:
        raise NotFoundError(ARTICLE_NOT_FOUND)

    paths = (
        await db.scalars(select(Image.file_path).where(Image.article_id == article_id))
    ).all()

    await db.delete(article)
    await db.flush()
    logger.info("Deleted article id=%s with %d image(s)", article_id, len(paths))

    if store is not None:
        for path in paths:
            try:
                await store.delete(path)
            except Exception:
                logger.warning("Could not remove stored image %s", path, exc_info=True)

    await cache.invalidate_articles()
