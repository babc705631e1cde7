from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.database import get_db
from newsdesk.dependencies import require_staff
from newsdesk.models import User
from newsdesk.schemas import ApiResponse, CategoryCreate, CategoryResponse
from newsdesk.services import category_service

router = APIRouter(prefix="/api/v1/categories", tags=["categories"])


@router.get("", response_model=ApiResponse[list[CategoryResponse]])
async def list_categories(db: AsyncSession = Depends(get_db)):
    return ApiResponse(data=await category_service.get_categories(db))


@router.get("/{slug}", response_model=ApiResponse[CategoryResponse])
async def get_category(slug: str, db: AsyncSession = Depends(get_db)):
    return ApiResponse(data=await category_service.get_category_by_slug(db, slug))


@router.post("", status_code=201, response_model=ApiResponse[CategoryResponse])
async def create_category(
    data: CategoryCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_staff),
):
    category = await category_service.create_category(db, data)
    return ApiResponse(message="Category created", data=category)


@router.put("/{category_id}", response_model=ApiResponse[CategoryResponse])
async def update_category(
    category_id: int,
    data: CategoryCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_staff),
):
    category = await category_service.update_category(db, category_id, data)
    return ApiResponse(message="Category updated", data=category)


@router.delete("/{category_id}", response_model=ApiResponse[None])
async def delete_category(
    category_id: int,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(require_staff),
):
    await category_service.delete_category(db, category_id)
    return ApiResponse(message="Category deleted")
