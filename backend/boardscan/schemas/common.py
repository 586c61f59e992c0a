"""
BoardScan Backend — Shared Response Schemas
=============================================

What:  Envelope models reused by every router: the error body, the health
       report and a plain acknowledgement message.
Who:   ErrorResponse is produced by the global exception handlers in main.py;
       HealthResponse by GET /health.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error body for all API errors.

    Example:
        {
            "error": "conflict",
            "message": "Lot 'L1' is closed",
            "details": {"lot_id": "..."},
            "request_id": "550e8400-e29b-41d4-a716-446655440000"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    """
    Service and dependency status.

    A backend that cannot reach its database is effectively down, so the
    database probe decides between healthy and unhealthy; the vision service
    only downgrades to degraded.
    """
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    vision: str = Field(description="Vision service status: available, unavailable, circuit_open")
    uptime_seconds: float = Field(description="Seconds since service started")
