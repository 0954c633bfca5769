"""
Raw document schemas per capture source.

Capture collaborators hand over documents in more than one wire shape.
The shape is resolved once, at the capture boundary, into a tagged
document (`variant: legacy | wrapped`); the stored artifact keeps that tag
so downstream stages never re-inspect the shape.

Facebook shapes:
    wrapped: {facebook_id, source_url, extracted_date, scraper_version, raw_data: {...}}
    legacy:  {id, url, title, price, ..., extractedDate} (flat console export)

Centris has a single (wrapped) shape.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from core.exceptions import SchemaValidationError
from models.base import SourceName

LEGACY_SCRAPER_VERSION = "console-v1"
PREVIEW_TITLE_LENGTH = 100


class CapturePreview(BaseModel):
    """Listing excerpts stored on the metadata row."""
    title: Optional[str] = None
    price: Optional[str] = None
    address: Optional[str] = None


# ============================================================================
# Facebook Marketplace
# ============================================================================

class FacebookSellerInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: Optional[str] = None
    profile_url: Optional[str] = Field(None, alias="profileUrl")


class FacebookMedia(BaseModel):
    images: List[str] = Field(default_factory=list)
    videos: List[str] = Field(default_factory=list)


class FacebookListingData(BaseModel):
    """Listing fields as exported by the capture script."""
    model_config = ConfigDict(populate_by_name=True, extra="allow", coerce_numbers_to_str=True)

    id: Optional[str] = None
    url: Optional[str] = None
    extracted_date: Optional[str] = Field(None, alias="extractedDate")
    title: Optional[str] = None
    price: Optional[str] = None
    address: Optional[str] = None
    building_details: List[str] = Field(default_factory=list, alias="buildingDetails")
    unit_details: List[str] = Field(default_factory=list, alias="unitDetails")
    rental_location: Optional[str] = Field(None, alias="rentalLocation")
    description: Optional[str] = None
    seller_info: FacebookSellerInfo = Field(default_factory=FacebookSellerInfo, alias="sellerInfo")
    media: FacebookMedia = Field(default_factory=FacebookMedia)


class FacebookRawDocument(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    variant: Literal["legacy", "wrapped"]
    facebook_id: str = Field(..., min_length=1)
    source_url: Optional[str] = None
    extracted_date: Optional[str] = None
    scraper_version: Optional[str] = None
    raw_data: FacebookListingData

    @property
    def source_item_id(self) -> str:
        return self.facebook_id

    def preview(self) -> CapturePreview:
        data = self.raw_data
        return CapturePreview(
            title=data.title[:PREVIEW_TITLE_LENGTH] if data.title else None,
            price=data.price,
            address=data.address,
        )


# ============================================================================
# Centris
# ============================================================================

class CentrisBroker(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    title: Optional[str] = None
    phone: Optional[str] = None
    agency: Optional[str] = None
    photo: Optional[str] = None
    website: Optional[str] = None


class CentrisListingData(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    listing_id: Optional[str] = None
    property_type: Optional[str] = None
    address: Optional[str] = None
    price: Optional[str] = None
    price_currency: Optional[str] = None
    price_display: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    rooms: Optional[str] = None
    bedrooms: Optional[str] = None
    bathrooms: Optional[str] = None
    characteristics: Dict[str, str] = Field(default_factory=dict)
    description: Optional[str] = None
    walk_score: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    images_high_res: List[str] = Field(default_factory=list)
    brokers: List[CentrisBroker] = Field(default_factory=list)


class CentrisRawDocument(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    variant: Literal["wrapped"] = "wrapped"
    centris_id: str = Field(..., min_length=1)
    source_url: Optional[str] = None
    scraped_at: Optional[str] = None
    scraper_version: Optional[str] = None
    raw_data: CentrisListingData

    @property
    def source_item_id(self) -> str:
        return self.centris_id

    def preview(self) -> CapturePreview:
        data = self.raw_data
        return CapturePreview(
            title=data.property_type[:PREVIEW_TITLE_LENGTH] if data.property_type else None,
            price=data.price_display or data.price,
            address=data.address,
        )


RawDocument = Union[FacebookRawDocument, CentrisRawDocument]

RAW_DOCUMENT_TYPES = {
    SourceName.FACEBOOK: FacebookRawDocument,
    SourceName.CENTRIS: CentrisRawDocument,
}


# ============================================================================
# Resolution
# ============================================================================

def _tag_facebook_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Tag an incoming Facebook payload with its wire variant."""
    if "variant" in payload:
        return payload

    if "raw_data" in payload:
        return {**payload, "variant": "wrapped"}

    if "id" in payload:
        return {
            "variant": "legacy",
            "facebook_id": payload.get("id"),
            "source_url": payload.get("url"),
            "extracted_date": payload.get("extractedDate") or datetime.utcnow().isoformat(),
            "scraper_version": LEGACY_SCRAPER_VERSION,
            "raw_data": payload,
        }

    raise SchemaValidationError(
        "Unrecognized Facebook document shape",
        context={"source": SourceName.FACEBOOK.value, "keys": sorted(payload.keys())[:10]},
    )


def resolve_raw_document(source: SourceName, payload: Dict[str, Any]) -> RawDocument:
    """
    Resolve an incoming capture payload into its tagged document type.

    Raises:
        SchemaValidationError: Unknown source, unknown shape or invalid fields
    """
    source = SourceName(source)
    if source not in RAW_DOCUMENT_TYPES:
        raise SchemaValidationError(
            f"No raw document schema for source {source.value}",
            context={"source": source.value},
        )
    if not isinstance(payload, dict):
        raise SchemaValidationError(
            "Raw document must be a JSON object",
            context={"source": source.value, "type": type(payload).__name__},
        )

    if source == SourceName.FACEBOOK:
        payload = _tag_facebook_payload(payload)

    return load_raw_document(source, payload)


def load_raw_document(source: SourceName, data: Dict[str, Any]) -> RawDocument:
    """Load an already-tagged document (as stored in the artifact store)."""
    document_type = RAW_DOCUMENT_TYPES.get(SourceName(source))
    if document_type is None:
        raise SchemaValidationError(
            f"No raw document schema for source {source}",
            context={"source": str(source)},
        )
    try:
        return document_type.model_validate(data)
    except PydanticValidationError as e:
        raise SchemaValidationError(
            f"Invalid {SourceName(source).value} raw document",
            context={"source": SourceName(source).value, "errors": e.error_count()},
            original_exception=e,
        )
