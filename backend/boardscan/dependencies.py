"""
BoardScan Backend — Request Identity Dependencies
===================================================

What:  FastAPI dependencies resolving the acting user for a request.
How:   Authentication is terminated upstream (reverse proxy / identity
       provider), which forwards the authenticated user's id in the
       X-User-ID header. The id is loaded from the database on every request
       so deactivation and role changes take effect immediately.

Failure modes (all → 401 via AuthenticationError):
    - header missing or not a UUID
    - no such user
    - user deactivated
"""

import logging
import uuid
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from boardscan.database import get_db_session
from boardscan.exceptions import AuthenticationError, ForbiddenError
from boardscan.models import User
from boardscan.services.user_service import user_service

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-ID"


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    if not x_user_id:
        raise AuthenticationError()

    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError:
        raise AuthenticationError(message="Invalid user identity")

    user = await user_service.get_user(db, user_id)
    if user is None or not user.is_active:
        logger.info("Rejected identity %s (unknown or inactive)", user_id)
        raise AuthenticationError(message="Unknown or inactive user")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise ForbiddenError(message="Admin access required")
    return user
