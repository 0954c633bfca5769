"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from models.base import CaptureStatus, TransformStatus, ZoneJobStatus


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(..., description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    raw_storage_writable: bool
    pending_items: int = 0
    failed_items: int = 0

    @model_validator(mode="before")
    @classmethod
    def determine_status(cls, values):
        """Determine overall health status"""
        if not isinstance(values, dict):
            return values
        if not values.get("database_connected", False):
            values["status"] = "unhealthy"
        elif not values.get("raw_storage_writable", False):
            values["status"] = "degraded"
        else:
            values["status"] = "healthy"
        return values

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00Z",
                "database_connected": True,
                "raw_storage_writable": True,
                "pending_items": 12,
                "failed_items": 1,
            }
        }
    )


# ============================================================================
# Listing Pipeline Schemas
# ============================================================================

class TransformRequest(BaseModel):
    """Request body for a single-item transform"""
    source_item_id: str = Field(..., min_length=1, description="Item identifier within the source")
    force: bool = Field(default=False, description="Re-run even if already transformed")

    @field_validator("source_item_id")
    @classmethod
    def strip_item_id(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("source_item_id cannot be blank")
        return v


class BackfillRequest(BaseModel):
    force: bool = False
    limit: Optional[int] = Field(default=None, ge=1, le=10000)


class CaptureResponse(BaseModel):
    metadata_id: int
    source: str
    source_item_id: str
    storage_path: Optional[str]
    already_captured: bool


class MetadataResponse(BaseModel):
    """Tracker row for one captured item"""
    id: int
    source: str
    source_item_id: str
    source_url: Optional[str] = None
    scraper_version: Optional[str] = None
    storage_path: Optional[str] = None
    raw_data_size_bytes: Optional[int] = None

    capture_status: CaptureStatus
    capture_error: Optional[str] = None
    captured_at: datetime

    title_preview: Optional[str] = None
    price_preview: Optional[str] = None
    address_preview: Optional[str] = None

    transform_status: TransformStatus
    transform_error: Optional[str] = None
    transform_attempts: int
    transformed_at: Optional[datetime] = None
    curated_id: Optional[int] = None
    canonical_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    @field_validator("source", mode="before")
    @classmethod
    def enum_to_value(cls, v):
        return getattr(v, "value", v)


class BatchSummaryResponse(BaseModel):
    source: str
    total: int
    succeeded: int
    failed: int
    skipped: int
    failures: List[Dict[str, str]] = Field(default_factory=list)
    cancelled: bool = False
    started_at: datetime
    completed_at: Optional[datetime] = None


# ============================================================================
# Zone Schemas
# ============================================================================

class ZoneCreate(BaseModel):
    """Zone definition: a lat/lng box plus optional unit-count range"""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    min_lat: float = Field(..., ge=-90, le=90)
    max_lat: float = Field(..., ge=-90, le=90)
    min_lng: float = Field(..., ge=-180, le=180)
    max_lng: float = Field(..., ge=-180, le=180)
    min_units: Optional[int] = Field(default=None, ge=0)
    max_units: Optional[int] = Field(default=None, ge=0)
    target_limit: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def check_bounds(self):
        if self.min_lat >= self.max_lat:
            raise ValueError("min_lat must be less than max_lat")
        if self.min_lng >= self.max_lng:
            raise ValueError("min_lng must be less than max_lng")
        if self.min_units is not None and self.max_units is not None and self.min_units > self.max_units:
            raise ValueError("min_units must not exceed max_units")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Plateau - 6+ units",
                "min_lat": 45.51,
                "max_lat": 45.54,
                "min_lng": -73.60,
                "max_lng": -73.56,
                "min_units": 6,
            }
        }
    )


class ZoneResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float
    min_units: Optional[int] = None
    max_units: Optional[int] = None
    target_limit: Optional[int] = None
    total_properties: int
    scraped_count: int
    last_scraped_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ZoneStatsResponse(BaseModel):
    zone_id: int
    total: int
    scraped: int
    unscraped: int
    percentage_complete: float


class JobCreate(BaseModel):
    limit: int = Field(..., ge=1, le=1000, description="Maximum number of items to capture")


class ZoneJobResponse(BaseModel):
    id: int
    zone_id: int
    requested_limit: int
    total_to_scrape: int
    item_keys: List[str]
    status: ZoneJobStatus
    scraped_count: int
    failed_count: int
    error_message: Optional[str] = None
    summary: Optional[Dict[str, Any]] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class AlreadyCompleteResponse(BaseModel):
    already_complete: bool = True
    zone_id: int
    stats: ZoneStatsResponse


# ============================================================================
# Statistics Schemas
# ============================================================================

class StatsResponse(BaseModel):
    """Pipeline statistics response model"""
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    total_items: int
    total_curated: int
    total_rentals: int
    geocoded_rentals: int

    # source -> transform_status -> count
    transform_status_by_source: Dict[str, Dict[str, int]]

    zones: int = 0
    active_jobs: int = 0
    request_id: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "timestamp": "2024-01-15T10:30:00Z",
                "total_items": 420,
                "total_curated": 400,
                "total_rentals": 398,
                "geocoded_rentals": 371,
                "transform_status_by_source": {
                    "facebook": {"success": 300, "failed": 4, "pending": 10},
                    "centris": {"success": 98, "failed": 0},
                },
            }
        }
    )


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    status: str = "error"
    kind: str
    details: Any = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "not_found",
                "kind": "not_found",
                "details": "No capture recorded for facebook:123",
                "timestamp": "2024-01-15T10:30:00Z",
            }
        }
    )
