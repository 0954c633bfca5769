"""
Pydantic schemas for curated (Stage-1) and canonical (Stage-2) listings.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.base import SourceName


def _clean_strings(values) -> List[str]:
    if values is None:
        return []
    return [str(v).strip() for v in values if v is not None and str(v).strip()]


class CuratedListingCreate(BaseModel):
    """
    Stage-1 output, validated before it is upserted.

    Ensures:
    - Title is present and non-blank
    - Collections are lists of non-blank strings, order preserved
    """
    model_config = ConfigDict(from_attributes=True)

    # Source tracking
    source: SourceName
    source_item_id: str = Field(..., min_length=1, max_length=255)
    source_url: Optional[str] = Field(None, max_length=1000)
    extracted_date: Optional[datetime] = None
    scraper_version: Optional[str] = None
    raw_data_storage_path: Optional[str] = None

    # Core fields
    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    rental_location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    # Price
    price: Optional[float] = None
    price_currency: Optional[str] = None
    price_display: Optional[str] = None

    # Unit
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    square_footage: Optional[int] = None
    unit_type: Optional[str] = None

    # Collections
    pet_policy: List[str] = Field(default_factory=list)
    amenities: List[str] = Field(default_factory=list)
    unit_details_raw: List[str] = Field(default_factory=list)
    building_details: List[str] = Field(default_factory=list)
    image_urls: List[str] = Field(default_factory=list)
    video_urls: List[str] = Field(default_factory=list)

    # Seller
    seller_name: Optional[str] = None
    seller_profile_url: Optional[str] = None
    notes: Optional[str] = None

    attributes: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("title")
    @classmethod
    def clean_title(cls, v):
        """Clean and normalize title"""
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty after stripping")
        return v

    @field_validator(
        "pet_policy", "amenities", "unit_details_raw", "building_details",
        "image_urls", "video_urls", mode="before",
    )
    @classmethod
    def clean_collections(cls, v):
        return _clean_strings(v)

    @field_validator("attributes", mode="before")
    @classmethod
    def clean_attributes(cls, v):
        return v if isinstance(v, dict) else {}


class RentalDraft(BaseModel):
    """
    Canonical rental as produced by Stage-2, before enrichment.

    Out-of-range values fail validation; Stage-2 reports them as errors.
    """

    source_name: str = Field(..., min_length=1, max_length=50)
    source_url: Optional[str] = None
    facebook_id: Optional[str] = None
    centris_id: Optional[str] = None
    raw_data_storage_path: Optional[str] = None
    extracted_date: Optional[datetime] = None

    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    rental_location: Optional[str] = None

    monthly_rent: Optional[float] = Field(None, ge=0)
    price_display: Optional[str] = None
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[float] = Field(None, ge=0)
    square_footage: Optional[int] = Field(None, ge=0)
    unit_type: Optional[str] = None

    pet_policy: List[str] = Field(default_factory=list)
    amenities: List[str] = Field(default_factory=list)
    unit_details_raw: List[str] = Field(default_factory=list)
    building_details: List[str] = Field(default_factory=list)

    seller_name: Optional[str] = None
    seller_profile_url: Optional[str] = None
    notes: Optional[str] = None

    # Enrichment (coordinates may already be known from the source)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    images: List[str] = Field(default_factory=list)
    videos: List[str] = Field(default_factory=list)

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class Coordinates(BaseModel):
    latitude: float
    longitude: float
    display_name: Optional[str] = None
