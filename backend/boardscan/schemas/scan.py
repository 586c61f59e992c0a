"""
BoardScan Backend — Scan Record Schemas
=========================================

What:  API contract for scanning images and managing scan records.
Who:   Used by routes/scans.py and returned by ScanService.

Pricing contract:
    Clients send weight_kg and price_per_kg. total_price is output only:
    it is absent from ScanRecordCreate and ScanRecordUpdate, and both
    schemas forbid unknown fields, so a client-supplied total_price is
    rejected with 422 instead of being silently ignored.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class ScanRecordCreate(BaseModel):
    """Structured record entry (no image upload, no classifier call)."""
    board_type: str = Field(min_length=1, max_length=255)
    category: str = Field(default="Unknown", min_length=1, max_length=100)
    device_type: str = Field(default="Unknown", min_length=1, max_length=100)
    manufacturer: Optional[str] = Field(default=None, max_length=255)
    model: Optional[str] = Field(default=None, max_length=255)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    image_path: Optional[str] = Field(default=None, max_length=255)
    location: Optional[str] = Field(default=None, max_length=255)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    weight_kg: Optional[float] = Field(default=None, ge=0)
    price_per_kg: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    lot_id: Optional[uuid.UUID] = None
    description: Optional[str] = None

    model_config = {"extra": "forbid", "protected_namespaces": ()}


class ScanRecordUpdate(BaseModel):
    """
    Partial update. Only fields present in the request body are applied;
    an explicit null clears the field. Lot membership is changed through
    the lot endpoints, never here.
    """
    board_type: Optional[str] = Field(default=None, min_length=1, max_length=255)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    device_type: Optional[str] = Field(default=None, min_length=1, max_length=100)
    manufacturer: Optional[str] = Field(default=None, max_length=255)
    model: Optional[str] = Field(default=None, max_length=255)
    location: Optional[str] = Field(default=None, max_length=255)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    weight_kg: Optional[float] = Field(default=None, ge=0)
    price_per_kg: Optional[Decimal] = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    description: Optional[str] = None

    model_config = {"extra": "forbid", "protected_namespaces": ()}


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class ScanRecordResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    board_type: str
    category: str
    device_type: str
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    confidence: float
    image_path: Optional[str] = None
    image_url: Optional[str] = Field(default=None, description="URL path to the stored image")
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    weight_kg: Optional[float] = None
    price_per_kg: Optional[Decimal] = None
    total_price: Optional[Decimal] = None
    lot_id: Optional[uuid.UUID] = None
    description: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True, "protected_namespaces": ()}

    @classmethod
    def from_record(cls, record) -> "ScanRecordResponse":
        response = cls.model_validate(record)
        if record.image_path:
            response.image_url = f"/api/files/{record.image_path}"
        return response


class ScanRecordListResponse(BaseModel):
    """Offset-paginated listing, newest first."""
    records: List[ScanRecordResponse]
    total_count: int = Field(description="Records matching the filters, ignoring limit/offset")
    limit: int
    offset: int


class ScanResultResponse(BaseModel):
    """
    Returned by POST /api/scan with HTTP 201.

    `components` and `description` come from the classifier and are not
    persisted as separate columns (description is stored on the record).
    """
    message: str = Field(default="Board scanned successfully")
    record: ScanRecordResponse
    components: List[str] = Field(default_factory=list)
    description: str
