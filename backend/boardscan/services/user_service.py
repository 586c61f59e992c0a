"""
BoardScan Backend — User Service
==================================

What:  Account lookup, admin-driven user management and the startup admin
       bootstrap.
Who:   routes/users.py, dependencies.get_current_user and the app lifespan.

Authorization rules:
    - list / create / deactivate: admin only
    - update: the user themselves or an admin; only admins may change
      `role` or `is_active`
    - an admin cannot deactivate their own account
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from boardscan.exceptions import (
    ConflictError,
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from boardscan.models import ROLE_ADMIN, User
from boardscan.schemas.user import UserCreate, UserListResponse, UserResponse, UserUpdate
from boardscan.security import hash_password

logger = logging.getLogger(__name__)


def _require_admin(actor: User) -> None:
    if not actor.is_admin:
        raise ForbiddenError(message="Admin access required")


class UserService:

    async def get_user(self, db: AsyncSession, user_id: UUID) -> Optional[User]:
        """Raw ORM lookup; None when missing. Used by the identity dependency."""
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_current(self, db: AsyncSession, actor: User) -> UserResponse:
        user = await self.get_user(db, actor.id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(actor.id))
        return UserResponse.model_validate(user)

    async def list_users(self, db: AsyncSession, actor: User) -> UserListResponse:
        _require_admin(actor)
        try:
            result = await db.execute(select(User).order_by(User.created_at.desc()))
            users = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database error listing users: %s", str(e), exc_info=True)
            raise DatabaseError(message="Could not retrieve users. Please try again.")
        return UserListResponse(
            users=[UserResponse.model_validate(u) for u in users],
            total_count=len(users),
        )

    async def create_user(self, db: AsyncSession, actor: User, data: UserCreate) -> UserResponse:
        _require_admin(actor)
        email = data.email.lower()

        existing = await db.execute(select(User.id).where(func.lower(User.email) == email))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(
                message=f"A user with email '{email}' already exists",
                context={"email": email},
            )

        user = User(
            email=email,
            password_hash=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role=data.role,
        )
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(
                message=f"A user with email '{email}' already exists",
                context={"email": email},
            )

        logger.info("User %s created by admin %s (role=%s)", user.id, actor.id, user.role)
        return UserResponse.model_validate(user)

    async def update_user(
        self,
        db: AsyncSession,
        actor: User,
        user_id: UUID,
        data: UserUpdate,
    ) -> UserResponse:
        if actor.id != user_id and not actor.is_admin:
            raise ForbiddenError(message="You can only update your own profile")

        changes = data.model_dump(exclude_unset=True)
        if ("role" in changes or "is_active" in changes) and not actor.is_admin:
            raise ForbiddenError(message="Only admins can change role or account status")
        if actor.id == user_id and changes.get("is_active") is False:
            raise ValidationError(message="You cannot deactivate your own account", field="is_active")

        user = await self.get_user(db, user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))

        for field_name, value in changes.items():
            if field_name in ("role", "is_active") and value is None:
                continue
            setattr(user, field_name, value)
        await db.flush()
        await db.refresh(user)

        logger.info("User %s updated by %s: %s", user_id, actor.id, sorted(changes))
        return UserResponse.model_validate(user)

    async def deactivate_user(self, db: AsyncSession, actor: User, user_id: UUID) -> UserResponse:
        _require_admin(actor)
        if actor.id == user_id:
            raise ValidationError(message="You cannot deactivate your own account", field="user_id")

        user = await self.get_user(db, user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))

        user.is_active = False
        await db.flush()
        await db.refresh(user)
        logger.info("User %s deactivated by admin %s", user_id, actor.id)
        return UserResponse.model_validate(user)

    async def ensure_admin_user(
        self,
        db: AsyncSession,
        email: str,
        password_hash: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> User:
        """
        Create the bootstrap admin unless an account with this email exists.

        Idempotent: calling it on every startup leaves exactly one such user,
        and an existing account is returned untouched (its role included).
        """
        email = email.lower()
        result = await db.execute(select(User).where(func.lower(User.email) == email))
        existing = result.scalar_one_or_none()
        if existing is not None:
            logger.info("Admin bootstrap skipped: %s already exists", email)
            return existing

        admin = User(
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            role=ROLE_ADMIN,
        )
        db.add(admin)
        await db.flush()
        logger.info("Bootstrap admin created: %s", email)
        return admin


# ── Singleton Instance ────────────────────────────────────────────────────
user_service = UserService()
