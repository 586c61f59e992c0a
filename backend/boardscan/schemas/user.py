"""
BoardScan Backend — User Schemas
==================================

What:  Request/response models for the current-user and user-management endpoints.
Why:   password_hash never leaves the service layer; UserResponse simply does
       not declare it.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

ROLE_PATTERN = r"^(user|admin)$"


class UserResponse(BaseModel):
    id: uuid.UUID
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    users: List[UserResponse]
    total_count: int


class UserCreate(BaseModel):
    """
    Admin-only account creation.

    The password is hashed with bcrypt before it reaches the database.
    """
    email: EmailStr = Field(description="Login email (unique)")
    password: str = Field(min_length=8, max_length=72, description="Plain-text password (bcrypt limit: 72 bytes)")
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    role: str = Field(default="user", pattern=ROLE_PATTERN)

    model_config = {"extra": "forbid"}


class UserUpdate(BaseModel):
    """
    Partial profile update.

    Any user may edit their own names and avatar. Only admins may change
    `role` or `is_active`; UserService enforces that, not this schema.
    """
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    profile_image_url: Optional[str] = Field(default=None, max_length=500)
    role: Optional[str] = Field(default=None, pattern=ROLE_PATTERN)
    is_active: Optional[bool] = None

    model_config = {"extra": "forbid"}
