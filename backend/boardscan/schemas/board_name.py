"""
BoardScan Backend — Board Name Catalog Schemas
================================================
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class BoardNameCreate(BaseModel):
    board_type: str = Field(min_length=1, max_length=255)
    category: str = Field(min_length=1, max_length=100)
    device_type: str = Field(min_length=1, max_length=100)
    manufacturer: Optional[str] = Field(default=None, max_length=255)
    model: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None

    model_config = {"extra": "forbid", "protected_namespaces": ()}


class BoardNameUpdate(BaseModel):
    board_type: Optional[str] = Field(default=None, min_length=1, max_length=255)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    device_type: Optional[str] = Field(default=None, min_length=1, max_length=100)
    manufacturer: Optional[str] = Field(default=None, max_length=255)
    model: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    is_active: Optional[bool] = None

    model_config = {"extra": "forbid", "protected_namespaces": ()}


class BoardNameResponse(BaseModel):
    id: uuid.UUID
    board_type: str
    category: str
    device_type: str
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    description: Optional[str] = None
    is_active: bool
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "protected_namespaces": ()}


class BoardNameListResponse(BaseModel):
    board_names: List[BoardNameResponse]
