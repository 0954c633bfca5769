"""
Unit tests for the Stage-1 (raw -> curated) transformers
"""

from datetime import datetime

from ingestion.transformers import CURATED_TRANSFORMERS
from ingestion.transformers.centris import CentrisCuratedTransformer, build_notes, split_characteristics
from ingestion.transformers.facebook import FacebookCuratedTransformer
from models.base import SourceName
from schemas.raw import resolve_raw_document


class TestFacebookTransformer:
    """Facebook Marketplace normalization"""

    def test_wrapped_document(self, facebook_wrapped_payload):
        document = resolve_raw_document(SourceName.FACEBOOK, facebook_wrapped_payload)
        result = FacebookCuratedTransformer().parse(document, storage_path="facebook/2024/01/1234567890.json")

        assert result.ok
        assert result.warnings == []
        record = result.record
        assert record.source_item_id == "1234567890"
        assert record.title == "Beautiful 4 1/2 in the Plateau"
        assert record.price == 2175.0
        assert record.price_currency == "CAD"
        assert record.price_display == "CA$2,175 / Month"
        assert record.city == "Montréal"
        assert record.postal_code == "H2J 2L3"
        assert record.bedrooms == 2
        assert record.bathrooms == 1.0
        assert record.square_footage == 850
        assert record.unit_type == "apartment"
        assert record.pet_policy == ["cat_friendly", "dog_friendly"]
        assert record.amenities == ["In-unit laundry", "Central AC"]
        assert record.seller_name == "Marie Tremblay"
        assert record.seller_profile_url == "https://www.facebook.com/marie"
        assert record.extracted_date == datetime(2024, 1, 15, 10, 0)
        assert record.raw_data_storage_path == "facebook/2024/01/1234567890.json"
        assert record.attributes == {"variant": "wrapped"}
        assert len(record.image_urls) == 2

    def test_legacy_document(self, facebook_legacy_payload):
        document = resolve_raw_document(SourceName.FACEBOOK, facebook_legacy_payload)
        result = FacebookCuratedTransformer().parse(document)

        assert result.ok
        record = result.record
        assert record.source_item_id == "9876543210"
        assert record.scraper_version == "console-v1"
        assert record.price == 1250.0
        assert record.unit_type == "studio"
        assert record.amenities == ["Furnished"]
        assert record.attributes == {"variant": "legacy"}
        assert "No postal code in location: Montreal, QC" in result.warnings

    def test_missing_title_is_an_error(self, facebook_wrapped_payload):
        facebook_wrapped_payload["raw_data"]["title"] = "   "
        document = resolve_raw_document(SourceName.FACEBOOK, facebook_wrapped_payload)

        result = FacebookCuratedTransformer().parse(document)

        assert not result.ok
        assert result.record is None
        assert result.errors == ["Missing required field: title"]

    def test_unparseable_price_is_a_warning(self, facebook_wrapped_payload):
        facebook_wrapped_payload["raw_data"]["price"] = "Contact me"
        document = resolve_raw_document(SourceName.FACEBOOK, facebook_wrapped_payload)

        result = FacebookCuratedTransformer().parse(document)

        assert result.ok
        assert result.record.price is None
        assert "Could not parse price from: Contact me" in result.warnings

    def test_parse_is_deterministic(self, facebook_wrapped_payload):
        document = resolve_raw_document(SourceName.FACEBOOK, facebook_wrapped_payload)
        transformer = FacebookCuratedTransformer()

        assert transformer.parse(document).record == transformer.parse(document).record


class TestCentrisTransformer:
    """Centris normalization"""

    def test_full_document(self, centris_payload):
        document = resolve_raw_document(SourceName.CENTRIS, centris_payload)
        result = CentrisCuratedTransformer().parse(document)

        assert result.ok
        assert result.warnings == []
        record = result.record
        assert record.source_item_id == "28374651"
        assert record.title == "Condo à louer"
        assert record.price == 2450.0
        assert record.price_display == "2 450 $/mois"
        assert record.bedrooms == 2
        assert record.bathrooms == 1.0
        assert record.square_footage == 850
        assert record.latitude == 45.5017
        assert record.longitude == -73.5673
        assert record.city == "Montreal"
        assert record.rental_location == "Ville-Marie"
        assert record.postal_code == "H3A 1H6"
        assert record.unit_type == "apartment"
        assert record.pet_policy == ["cat_friendly"]
        assert {"elevator", "pool", "parking"} <= set(record.amenities)
        assert record.image_urls == ["https://media.centris.ca/a_large.jpg"]
        assert record.seller_name == "Luc Gagnon"
        assert record.building_details == ["Année de construction: 2015"]
        assert record.attributes["rooms"] == 5
        assert record.attributes["year_built"] == 2015
        assert record.attributes["parking_spaces"] == 1
        assert "=== Courtiers ===" in record.notes
        assert "Walk Score: 98" in record.notes

    def test_defaults_when_fields_missing(self):
        document = resolve_raw_document(
            SourceName.CENTRIS,
            {"centris_id": "111", "raw_data": {"price": "sur demande"}},
        )

        result = CentrisCuratedTransformer().parse(document)

        assert result.ok
        assert result.record.title == "Rental"
        assert result.record.price is None
        assert result.record.city == "Montreal"
        assert result.record.price_currency == "CAD"
        assert "Could not parse price from: sur demande" in result.warnings

    def test_split_characteristics(self):
        warnings = []
        area, year, parking, remaining = split_characteristics(
            {"Superficie": "1 200 pc", "Année de construction": "inconnue", "Stationnement": "2"},
            warnings,
        )

        assert area == 1200
        assert year is None
        assert parking == 2
        assert remaining == {"Stationnement": "2"}
        assert warnings == ["Could not parse year of construction from: inconnue"]

    def test_notes_empty_without_extras(self):
        document = resolve_raw_document(SourceName.CENTRIS, {"centris_id": "1", "raw_data": {}})
        assert build_notes(document.raw_data) is None


def test_transformer_registry():
    assert CURATED_TRANSFORMERS[SourceName.FACEBOOK] is FacebookCuratedTransformer
    assert CURATED_TRANSFORMERS[SourceName.CENTRIS] is CentrisCuratedTransformer
    assert SourceName.MONTREAL_EVALUATION not in CURATED_TRANSFORMERS
