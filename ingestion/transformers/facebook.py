"""
Stage-1 transformer for Facebook Marketplace rentals (raw -> curated).
"""

from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from ingestion.transformers import rules
from ingestion.transformers.base import StageResult, apply_rule, validation_messages
from models.base import SourceName
from schemas.listing import CuratedListingCreate
from schemas.raw import FacebookRawDocument
import logging

logger = logging.getLogger(__name__)

PRICE_CURRENCY = "CAD"


class FacebookCuratedTransformer:
    """
    Normalize a Facebook Marketplace capture into a curated listing.

    Handles:
    - Rent parsing ("CA$2,175 / Month")
    - Bed/bath/area extraction from unit detail lines
    - City and postal code from the rental location
    - Unit type / pet policy / amenity categorization
    """

    source = SourceName.FACEBOOK

    def parse(
        self,
        document: FacebookRawDocument,
        storage_path: Optional[str] = None,
    ) -> StageResult[CuratedListingCreate]:
        warnings: List[str] = []
        errors: List[str] = []
        data = document.raw_data

        title = (data.title or "").strip()
        if not title:
            errors.append("Missing required field: title")

        price = apply_rule(rules.parse_price, data.price, "price", warnings)
        location = rules.parse_location(data.rental_location)
        if data.rental_location and location.postal_code is None:
            warnings.append(f"No postal code in location: {data.rental_location}")

        details = data.unit_details
        bedrooms = rules.match_bedrooms(details)
        bathrooms = rules.match_bathrooms(details)
        square_footage = rules.match_square_footage(details)
        buckets = rules.categorize_details(details)

        extracted_date = apply_rule(
            rules.parse_timestamp,
            document.extracted_date or data.extracted_date,
            "extracted date",
            warnings,
        )

        if errors:
            logger.info(f"Facebook listing {document.facebook_id} rejected: {'; '.join(errors)}")
            return StageResult(record=None, warnings=warnings, errors=errors)

        try:
            record = CuratedListingCreate(
                source=self.source,
                source_item_id=document.facebook_id,
                source_url=document.source_url or data.url,
                extracted_date=extracted_date,
                scraper_version=document.scraper_version,
                raw_data_storage_path=storage_path,
                title=title,
                description=data.description,
                address=data.address,
                city=location.city,
                postal_code=location.postal_code,
                rental_location=data.rental_location,
                price=price,
                price_currency=PRICE_CURRENCY,
                price_display=data.price,
                bedrooms=bedrooms,
                bathrooms=bathrooms,
                square_footage=square_footage,
                unit_type=buckets.unit_type,
                pet_policy=buckets.pet_policy,
                amenities=buckets.amenities,
                unit_details_raw=details,
                building_details=data.building_details,
                image_urls=data.media.images,
                video_urls=data.media.videos,
                seller_name=data.seller_info.name,
                seller_profile_url=data.seller_info.profile_url,
                attributes={"variant": document.variant},
            )
        except PydanticValidationError as e:
            return StageResult(record=None, warnings=warnings, errors=validation_messages(e))

        return StageResult(record=record, warnings=warnings, errors=[])
