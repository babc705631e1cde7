from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.database import get_db
from newsdesk.dependencies import get_image_store, require_staff
from newsdesk.exceptions import ValidationError
from newsdesk.image_store import ImageStore
from newsdesk.schemas import ApiResponse, ImageResponse
from newsdesk.services import image_service

router = APIRouter(
    prefix="/api/v1/images",
    tags=["images"],
    dependencies=[Depends(require_staff)],
)


@router.post("/upload/{article_id}", response_model=ApiResponse[ImageResponse])
async def upload_image(
    article_id: int,
    file: UploadFile | None = File(None),
    db: AsyncSession = Depends(get_db),
    store: ImageStore = Depends(get_image_store),
):
    if file is None:
        raise ValidationError("No file was uploaded or the file is empty")
    if file.size is not None:
        store.check_size(file.size)
    # Never buffer more than one byte past the limit.
    content = await file.read(store.max_size + 1)
    image = await image_service.upload_image(db, store, article_id, file.filename, content)
    return ApiResponse(message="Image uploaded", data=image)


@router.put("/{image_id}/set-primary", response_model=ApiResponse[ImageResponse])
async def set_primary_image(image_id: int, db: AsyncSession = Depends(get_db)):
    image = await image_service.set_primary_image(db, image_id)
    return ApiResponse(message="Primary image set", data=image)


@router.delete("/{image_id}", response_model=ApiResponse[None])
async def delete_image(
    image_id: int,
    db: AsyncSession = Depends(get_db),
    store: ImageStore = Depends(get_image_store),
):
    await image_service.delete_image(db, store, image_id)
    return ApiResponse(message="Image deleted")
