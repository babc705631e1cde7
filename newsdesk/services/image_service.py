"""
Image service: uploads, primary selection and deletion.

Every operation leaves the owning article with exactly one primary image
whenever it has any images at all, and never touches images of another
article.  The individual statements run inside the request transaction
opened by ``get_db``, so a failure part-way rolls back the whole step.
"""
import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.cache import cache
from newsdesk.exceptions import NotFoundError
from newsdesk.image_store import ImageStore
from newsdesk.models import Article, Image
from newsdesk.services.article_service import ARTICLE_NOT_FOUND, image_to_dict

logger = logging.getLogger(__name__)

IMAGE_NOT_FOUND = "Image not found"


async def upload_image(
    db: AsyncSession,
    store: ImageStore,
    article_id: int,
    file_name: str | None,
    content: bytes,
) -> dict:
    """
    Store *content* and attach it to *article_id*.  The first image an
    article receives becomes its primary image.
    """
    if await db.get(Article, article_id) is None:
        raise NotFoundError(ARTICLE_NOT_FOUND)

    stored = await store.save(file_name, content)

    existing = await db.scalar(
        select(func.count()).select_from(Image).where(Image.article_id == article_id)
    )
    image = Image(
        article_id=article_id,
        file_name=stored.file_name,
        file_path=stored.url,
        file_size=stored.file_size,
        is_primary=existing == 0,
    )
    db.add(image)
    await db.flush()
    logger.info(
        "Uploaded image id=%s for article id=%s primary=%s", image.id, article_id, image.is_primary
    )

    await cache.invalidate_articles()
    return image_to_dict(image)


async def set_primary_image(db: AsyncSession, image_id: int) -> dict:
    """Make *image_id* the only primary image of its article."""
    image = await db.get(Image, image_id)
    if image is None:
        raise NotFoundError(IMAGE_NOT_FOUND)

    await db.execute(
        update(Image)
        .where(Image.article_id == image.article_id, Image.id != image.id)
        .values(is_primary=False)
    )
    image.is_primary = True
    await db.flush()
    logger.info("Image id=%s is now primary for article id=%s", image.id, image.article_id)

    await cache.invalidate_articles()
    return image_to_dict(image)


async def delete_image(db: AsyncSession, store: ImageStore, image_id: int) -> None:
    """
    Remove *image_id*.  If it was the primary image, the remaining image
    with the lowest id takes over.  The stored file goes best-effort, and
    only once the row changes have been flushed.
    """
    image = await db.get(Image, image_id)
    if image is None:
        raise NotFoundError(IMAGE_NOT_FOUND)

    article_id = image.article_id
    was_primary = image.is_primary
    file_path = image.file_path

    await db.delete(image)
    await db.flush()

    if was_primary:
        successor = await db.scalar(
            select(Image).where(Image.article_id == article_id).order_by(Image.id).limit(1)
        )
        if successor is not None:
            successor.is_primary = True
            await db.flush()
            logger.info("Image id=%s promoted to primary for article id=%s", successor.id, article_id)

    try:
        removed = await store.delete(file_path)
    except Exception:
        logger.warning("Could not remove stored image %s", file_path, exc_info=True)
        removed = False
    if not removed:
        logger.info("Stored file for image id=%s was not removed", image_id)

    logger.info("Deleted image id=%s from article id=%s", image_id, article_id)
    await cache.invalidate_articles()
