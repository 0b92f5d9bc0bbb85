"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, validator
from typing import Dict, Optional
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Trigger Schemas
# ============================================================================

class AcceptedResponse(BaseModel):
    """Response for the ingestion and enrichment triggers"""
    status: str = "accepted"
    request_id: str
    objects_scheduled: Optional[int] = None

    class Config:
        json_schema_extra = {
            "example": {
                "status": "accepted",
                "request_id": "req_3f2a9c1b7d4e",
                "objects_scheduled": 42
            }
        }


# ============================================================================
# Health Check Schemas
# ============================================================================

class DispatcherInfo(BaseModel):
    """Enrichment pool state"""
    pool_size: int
    in_flight: int


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    database_connected: bool
    status: str = Field("healthy", description="Overall system status: healthy, unhealthy")
    timestamp: datetime = Field(default_factory=_utcnow)
    dispatcher: DispatcherInfo

    @validator("status", pre=True, always=True)
    def determine_status(cls, v, values):
        """Database connectivity decides overall health"""
        if not values.get("database_connected", False):
            return "unhealthy"
        return "healthy"

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2025-01-15T10:30:00Z",
                "database_connected": True,
                "dispatcher": {"pool_size": 2, "in_flight": 1}
            }
        }


# ============================================================================
# Statistics Schemas
# ============================================================================

class StatsResponse(BaseModel):
    """Statistics response model"""
    timestamp: datetime = Field(default_factory=_utcnow)

    total_regions: int
    total_areas: int
    total_quarters: int
    total_objects: int

    objects_by_status: Dict[str, int]
    objects_updated_today: int

    request_id: str

    class Config:
        json_schema_extra = {
            "example": {
                "timestamp": "2025-01-15T10:30:00Z",
                "total_regions": 1,
                "total_areas": 3,
                "total_quarters": 120,
                "total_objects": 5000,
                "objects_by_status": {
                    "NEW": 10,
                    "SUCCESS": 4900,
                    "NOT FOUND": 60,
                    "ERROR": 30
                },
                "objects_updated_today": 4990,
                "request_id": "req_3f2a9c1b7d4e"
            }
        }

