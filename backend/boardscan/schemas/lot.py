"""
BoardScan Backend — Lot Schemas
=================================

What:  Request/response models for lot management and lot statistics.
Who:   routes/lots.py (admin only) and LotService.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class LotCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120, description="Unique lot code")
    description: Optional[str] = None

    model_config = {"extra": "forbid"}


class BoardIdsRequest(BaseModel):
    """Body for add/remove membership calls. Every id is applied, in order."""
    board_ids: List[uuid.UUID] = Field(min_length=1, max_length=500)


class LotResponse(BaseModel):
    id: uuid.UUID
    name: str
    status: str
    description: Optional[str] = None
    created_by: uuid.UUID
    total_weight: float
    total_value: Decimal
    item_count: int
    created_at: datetime
    closed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class LotListResponse(BaseModel):
    lots: List[LotResponse]
    total_count: int


class BoardTypeCount(BaseModel):
    board_type: str
    count: int


class LotStatsResponse(BaseModel):
    """
    Live aggregates over current members.

    Computed directly from scan_records, so they match the stored rollups
    whenever those are up to date.
    """
    lot_id: uuid.UUID
    total_boards: int
    total_weight: float
    total_value: Decimal
    breakdown: List[BoardTypeCount] = Field(
        description="Member counts per board type, most frequent first"
    )
