import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from newsdesk.exceptions import ValidationError
from newsdesk.models import User
from newsdesk.schemas import LoginRequest
from newsdesk.security import create_access_token, verify_password
from newsdesk.services.user_service import user_to_dict

logger = logging.getLogger(__name__)


async def login(db: AsyncSession, data: LoginRequest) -> dict:
    """
    Exchange credentials for a bearer token.  Unknown users, inactive
    users and wrong passwords all get the same answer.
    """
    user = await db.scalar(
        select(User).where(User.username == data.username, User.is_active.is_(True))
    )
    if user is None or not verify_password(data.password, user.password_hash):
        logger.info("Failed login for username=%s", data.username)
        raise ValidationError("Invalid username or password")

    token = create_access_token(user.id, user.username, user.role)
    logger.info("User id=%s logged in", user.id)
    return {"token": token, "token_type": "bearer", "user": user_to_dict(user)}
