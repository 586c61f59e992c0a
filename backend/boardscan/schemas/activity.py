"""
BoardScan Backend — Activity Session Schemas
==============================================
"""

import uuid
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel


class ActivitySessionResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    started_at: datetime
    last_active_at: datetime
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None
    activity_date: date
    created_at: datetime

    model_config = {"from_attributes": True}


class ActivitySessionListResponse(BaseModel):
    sessions: List[ActivitySessionResponse]


class ActivityStatsResponse(BaseModel):
    """
    total_sessions and the minute figures count completed sessions only;
    active_days counts distinct days over every session in range, open or
    closed.
    """
    total_sessions: int
    total_minutes: int
    average_session_minutes: int
    active_days: int
