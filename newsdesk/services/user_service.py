"""
User service: admin account management (Owner only at the API).

Rules enforced here rather than in the router so they hold for every
caller:

- the Owner account cannot be updated (role included) or deleted;
- nobody can delete their own account;
- accounts created here are always Admins;
- a user who authored articles cannot be deleted (the articles'
  ``author_id`` restricts it).
"""
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.exceptions import ForbiddenError, NotFoundError, ValidationError
from newsdesk.models import Article, User, UserRole, utcnow
from newsdesk.schemas import UserCreate, UserUpdate
from newsdesk.security import hash_password

logger = logging.getLogger(__name__)

USER_NOT_FOUND = "User not found"


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "full_name": user.full_name,
        "email": user.email,
        "role": user.role,
        "is_active": user.is_active,
    }


async def _email_taken(db: AsyncSession, email: str, exclude_id: int | None = None) -> bool:
    q = select(User.id).where(func.lower(User.email) == email.lower())
    if exclude_id is not None:
        q = q.where(User.id != exclude_id)
    return await db.scalar(q) is not None


async def get_users(db: AsyncSession) -> list[dict]:
    result = await db.execute(select(User).order_by(User.id))
    return [user_to_dict(u) for u in result.scalars().all()]


async def get_user(db: AsyncSession, user_id: int) -> dict:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError(USER_NOT_FOUND)
    return user_to_dict(user)


async def create_user(db: AsyncSession, data: UserCreate) -> dict:
    """Create an active Admin account."""
    if await db.scalar(select(User.id).where(User.username == data.username)) is not None:
        raise ValidationError("Username already exists")
    if await _email_taken(db, data.email):
        raise ValidationError("Email already exists")

    now = utcnow()
    user = User(
        username=data.username,
        password_hash=hash_password(data.password),
        full_name=data.full_name,
        email=data.email,
        role=UserRole.ADMIN.value,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    await db.flush()
    logger.info("Created admin user id=%s username=%s", user.id, user.username)
    return user_to_dict(user)


async def update_user(db: AsyncSession, user_id: int, data: UserUpdate) -> dict:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError(USER_NOT_FOUND)
    if user.is_owner:
        raise ForbiddenError("The owner account cannot be updated")

    changes = data.model_dump(exclude_unset=True)
    if changes.get("role") is not None and changes["role"] != UserRole.ADMIN.value:
        raise ValidationError(f"Invalid role: {changes['role']}")
    if changes.get("email") is not None:
        if await _email_taken(db, changes["email"], exclude_id=user_id):
            raise ValidationError("Email already exists")
        user.email = changes["email"]
    if changes.get("full_name") is not None:
        user.full_name = changes["full_name"]
    if changes.get("is_active") is not None:
        user.is_active = changes["is_active"]
    if changes.get("password"):
        user.password_hash = hash_password(changes["password"])

    user.updated_at = utcnow()
    await db.flush()
    logger.info("Updated user id=%s", user.id)
    return user_to_dict(user)


async def delete_user(db: AsyncSession, user_id: int, current_user_id: int) -> None:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError(USER_NOT_FOUND)
    if user.id == current_user_id:
        raise ForbiddenError("You cannot delete your own account")
    if user.is_owner:
        raise ForbiddenError("The owner account cannot be deleted")

    authored = await db.scalar(
        select(func.count()).select_from(Article).where(Article.author_id == user_id)
    )
    if authored:
        raise ValidationError(
            f"User is the author of {authored} article(s); deactivate the account instead"
        )

    await db.delete(user)
    await db.flush()
    logger.info("Deleted user id=%s", user_id)
