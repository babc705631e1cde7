from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.database import get_db
from newsdesk.dependencies import require_owner
from newsdesk.models import User
from newsdesk.schemas import ApiResponse, UserCreate, UserResponse, UserUpdate
from newsdesk.services import user_service

router = APIRouter(
    prefix="/api/v1/users",
    tags=["users"],
    dependencies=[Depends(require_owner)],
)


@router.get("", response_model=ApiResponse[list[UserResponse]])
async def list_users(db: AsyncSession = Depends(get_db)):
    return ApiResponse(data=await user_service.get_users(db))


@router.get("/{user_id}", response_model=ApiResponse[UserResponse])
async def get_user(user_id: int, db: AsyncSession = Depends(get_db)):
    return ApiResponse(data=await user_service.get_user(db, user_id))


@router.post("", status_code=201, response_model=ApiResponse[UserResponse])
async def create_user(data: UserCreate, db: AsyncSession = Depends(get_db)):
    user = await user_service.create_user(db, data)
    return ApiResponse(message="Admin created", data=user)


@router.put("/{user_id}", response_model=ApiResponse[UserResponse])
async def update_user(user_id: int, data: UserUpdate, db: AsyncSession = Depends(get_db)):
    user = await user_service.update_user(db, user_id, data)
    return ApiResponse(message="Admin updated", data=user)


@router.delete("/{user_id}", response_model=ApiResponse[None])
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_owner),
):
    await user_service.delete_user(db, user_id, current_user.id)
    return ApiResponse(message="Admin deleted")
