"""
Stage-1 transformer for Centris rentals (raw -> curated).

Centris pages are French; numbers use spaces as thousands separators
("2 175 $") and most unit attributes live in a free-form
`characteristics` mapping.
"""

from typing import Dict, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from ingestion.transformers import rules
from ingestion.transformers.base import StageResult, apply_rule, validation_messages
from models.base import SourceName
from schemas.listing import CuratedListingCreate
from schemas.raw import CentrisListingData, CentrisRawDocument
import logging

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "CAD"
DEFAULT_TITLE = "Rental"

AREA_KEY = "Superficie"
PARKING_KEY = "Stationnement"
AVAILABILITY_KEY = "Disponibilité"
BUILDING_KEYS = [
    "Type de bâtiment",
    "Année de construction",
    "Nombre d'étages",
    "Nombre de logements",
]


def split_characteristics(
    characteristics: Dict[str, str],
    warnings: List[str],
) -> Tuple[Optional[int], Optional[int], Optional[int], Dict[str, str]]:
    """
    Pull square footage, construction year and parking out of the
    characteristics mapping.

    Returns:
        (square_footage, year_built, parking_spaces, remaining characteristics)
    """
    square_footage = None
    year_built = None
    parking_spaces = None
    remaining: Dict[str, str] = {}

    for key, value in characteristics.items():
        lower = key.lower()
        if key == AREA_KEY or "superficie" in lower:
            square_footage = apply_rule(rules.parse_area_sqft, value, "square footage", warnings)
        elif "année" in lower or "construction" in lower:
            year_built = apply_rule(rules.parse_year, value, "year of construction", warnings)
        elif key == PARKING_KEY or "stationnement" in lower:
            parking_spaces = rules.parse_count(value)
            remaining[key] = value
        else:
            remaining[key] = value

    return square_footage, year_built, parking_spaces, remaining


def build_unit_details(data: CentrisListingData) -> List[str]:
    details = []
    if data.rooms:
        details.append(data.rooms)
    if data.characteristics.get(AREA_KEY):
        details.append(data.characteristics[AREA_KEY])
    if data.characteristics.get(PARKING_KEY):
        details.append(f"Stationnement: {data.characteristics[PARKING_KEY]}")
    if data.characteristics.get(AVAILABILITY_KEY):
        details.append(f"Disponible: {data.characteristics[AVAILABILITY_KEY]}")
    return details


def build_building_details(characteristics: Dict[str, str]) -> List[str]:
    return [f"{key}: {characteristics[key]}" for key in BUILDING_KEYS if characteristics.get(key)]


def build_notes(data: CentrisListingData) -> Optional[str]:
    """Broker block, walk score and unused characteristics as free text."""
    lines: List[str] = []

    if data.brokers:
        lines.append("=== Courtiers ===")
        for index, broker in enumerate(data.brokers, start=1):
            lines.append(f"Courtier {index}:")
            for label, value in (
                ("Nom", broker.name),
                ("Titre", broker.title),
                ("Agence", broker.agency),
                ("Téléphone", broker.phone),
                ("Site web", broker.website),
            ):
                if value:
                    lines.append(f"  {label}: {value}")
            lines.append("")

    if data.walk_score:
        lines.append(f"Walk Score: {data.walk_score}")
        lines.append("")

    used = {AREA_KEY, PARKING_KEY, AVAILABILITY_KEY, *BUILDING_KEYS}
    others = [f"{k}: {v}" for k, v in data.characteristics.items() if k not in used]
    if others:
        lines.append("=== Autres caractéristiques ===")
        lines.extend(others)

    return "\n".join(lines).strip() or None


class CentrisCuratedTransformer:
    """Normalize a Centris capture into a curated listing."""

    source = SourceName.CENTRIS

    def parse(
        self,
        document: CentrisRawDocument,
        storage_path: Optional[str] = None,
    ) -> StageResult[CuratedListingCreate]:
        warnings: List[str] = []
        data = document.raw_data

        price = apply_rule(rules.parse_price, data.price, "price", warnings)
        rooms = apply_rule(rules.parse_count, data.rooms, "rooms", warnings)
        bedrooms = apply_rule(rules.parse_count, data.bedrooms, "bedrooms", warnings)
        bathrooms = apply_rule(rules.parse_fractional_count, data.bathrooms, "bathrooms", warnings)
        latitude = apply_rule(lambda v: rules.parse_coordinate(v, 90), data.latitude, "latitude", warnings)
        longitude = apply_rule(lambda v: rules.parse_coordinate(v, 180), data.longitude, "longitude", warnings)
        scraped_at = apply_rule(rules.parse_timestamp, document.scraped_at, "scraped date", warnings)

        square_footage, year_built, parking_spaces, remaining = split_characteristics(
            data.characteristics, warnings
        )
        city, borough = rules.parse_city_borough(data.address)
        images = data.images_high_res or data.images
        broker = data.brokers[0] if data.brokers else None

        try:
            record = CuratedListingCreate(
                source=self.source,
                source_item_id=document.centris_id,
                source_url=document.source_url,
                extracted_date=scraped_at,
                scraper_version=document.scraper_version,
                raw_data_storage_path=storage_path,
                title=data.property_type or DEFAULT_TITLE,
                description=data.description,
                address=data.address,
                city=city,
                postal_code=rules.parse_postal_code(data.address),
                rental_location=borough,
                latitude=latitude,
                longitude=longitude,
                price=price,
                price_currency=data.price_currency or DEFAULT_CURRENCY,
                price_display=data.price_display or data.price,
                bedrooms=bedrooms,
                bathrooms=bathrooms,
                square_footage=square_footage,
                unit_type=rules.infer_unit_type(data.property_type),
                pet_policy=rules.extract_pet_policy(data.characteristics),
                amenities=rules.translate_amenities(data.characteristics),
                unit_details_raw=build_unit_details(data),
                building_details=build_building_details(data.characteristics),
                image_urls=images,
                seller_name=broker.name if broker else None,
                seller_profile_url=broker.website if broker else None,
                notes=build_notes(data),
                attributes={
                    "listing_id": data.listing_id,
                    "rooms": rooms,
                    "parking_spaces": parking_spaces,
                    "year_built": year_built,
                    "walk_score": data.walk_score,
                    "brokers": [b.model_dump(exclude_none=True) for b in data.brokers],
                    "characteristics": remaining,
                },
            )
        except PydanticValidationError as e:
            return StageResult(record=None, warnings=warnings, errors=validation_messages(e))

        return StageResult(record=record, warnings=warnings, errors=[])
