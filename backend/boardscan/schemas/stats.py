"""
BoardScan Backend — Dashboard Statistics Schema
=================================================
"""

from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field


class NameCount(BaseModel):
    name: str
    count: int


class DashboardStatsResponse(BaseModel):
    scans_today: int = Field(description="Records created on the current local day")
    scans_this_month: int = Field(description="Records created in the current local month")
    total_scans: int
    total_weight: float = Field(description="Sum of weight_kg over all records")
    total_value: Decimal = Field(description="Sum of total_price over all records")
    top_board_types: List[NameCount]
    top_categories: List[NameCount]
    active_users: int = Field(description="Active accounts with the 'user' role")
