"""
Stage-2 transformer: curated listing -> canonical rental draft.

Fields are copied or renamed 1:1. Enrichment fields are left unset, except
coordinates already known from the source. Values that are invalid for
the canonical schema are reported as errors, never dropped.
"""

from typing import List

from pydantic import ValidationError as PydanticValidationError

from ingestion.transformers.base import StageResult, validation_messages
from models.base import CANONICAL_SOURCE_KEYS, CANONICAL_SOURCE_NAMES, SourceName
from schemas.listing import CuratedListingCreate, RentalDraft

INCOMPLETE_COORDINATES_ERROR = "coordinates: latitude and longitude must be given together"


class CanonicalProjector:
    """Project curated listings into the cross-source rental schema."""

    def project(self, curated: CuratedListingCreate) -> StageResult[RentalDraft]:
        source = SourceName(curated.source)
        warnings: List[str] = []

        if source not in CANONICAL_SOURCE_NAMES:
            return StageResult(errors=[f"No canonical mapping for source {source.value}"])

        if (curated.latitude is None) != (curated.longitude is None):
            return StageResult(errors=[INCOMPLETE_COORDINATES_ERROR])

        data = {
            "source_name": CANONICAL_SOURCE_NAMES[source],
            CANONICAL_SOURCE_KEYS[source]: curated.source_item_id,
            "source_url": curated.source_url,
            "raw_data_storage_path": curated.raw_data_storage_path,
            "extracted_date": curated.extracted_date,
            "title": curated.title,
            "description": curated.description,
            "address": curated.address,
            "city": curated.city,
            "postal_code": curated.postal_code,
            "rental_location": curated.rental_location,
            "monthly_rent": curated.price,
            "price_display": curated.price_display,
            "bedrooms": curated.bedrooms,
            "bathrooms": curated.bathrooms,
            "square_footage": curated.square_footage,
            "unit_type": curated.unit_type,
            "pet_policy": list(curated.pet_policy),
            "amenities": list(curated.amenities),
            "unit_details_raw": list(curated.unit_details_raw),
            "building_details": list(curated.building_details),
            "seller_name": curated.seller_name,
            "seller_profile_url": curated.seller_profile_url,
            "notes": curated.notes,
            "latitude": curated.latitude,
            "longitude": curated.longitude,
        }

        try:
            draft = RentalDraft(**data)
        except PydanticValidationError as e:
            return StageResult(warnings=warnings, errors=validation_messages(e))

        return StageResult(record=draft, warnings=warnings)
