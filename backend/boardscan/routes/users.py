"""
BoardScan Backend — User Routes
=================================

GET /api/auth/user returns the identity resolved from X-User-ID; the
/api/users endpoints are user management (admin, except self-updates).
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from boardscan.database import get_db_session
from boardscan.dependencies import get_current_user, require_admin
from boardscan.models import User
from boardscan.schemas.user import UserCreate, UserListResponse, UserResponse, UserUpdate
from boardscan.services.user_service import user_service

router = APIRouter(prefix="/api", tags=["Users"])


@router.get("/auth/user", response_model=UserResponse, summary="Current user")
async def current_user(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    return await user_service.get_current(db, user)


@router.get("/users", response_model=UserListResponse, summary="List users")
async def list_users(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> UserListResponse:
    return await user_service.list_users(db, admin)


@router.post("/users", status_code=201, response_model=UserResponse, summary="Create a user")
async def create_user(
    payload: UserCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    return await user_service.create_user(db, admin, payload)


@router.put("/users/{user_id}", response_model=UserResponse, summary="Update a user")
async def update_user(
    user_id: UUID,
    payload: UserUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    return await user_service.update_user(db, user, user_id, payload)


@router.delete("/users/{user_id}", response_model=UserResponse, summary="Deactivate a user")
async def deactivate_user(
    user_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db_session),
) -> UserResponse:
    return await user_service.deactivate_user(db, admin, user_id)
