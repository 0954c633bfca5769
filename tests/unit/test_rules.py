"""
Unit tests for the named parsing rules
"""

import pytest
from datetime import datetime
from ingestion.transformers import rules


class TestNumberRules:
    """Locale-aware number parsing"""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("CA$2,175 / Month", 2175.0),
            ("2 175 $", 2175.0),
            ("2 175,50 $", 2175.5),
            ("$1,500.00", 1500.0),
            ("1.500 €", 1500.0),
            ("950", 950.0),
        ],
    )
    def test_parse_price_formats(self, text, expected):
        assert rules.parse_price(text) == expected

    @pytest.mark.parametrize("text", [None, "", "Free", "0 $"])
    def test_parse_price_unparseable(self, text):
        assert rules.parse_price(text) is None

    def test_counts(self):
        assert rules.parse_count("2 chambres") == 2
        assert rules.parse_count("aucune") is None
        assert rules.parse_fractional_count("1,5 salle de bain") == 1.5

    def test_parse_coordinate_range(self):
        assert rules.parse_coordinate("45.5017", 90) == 45.5017
        assert rules.parse_coordinate("-73.5673", 180) == -73.5673
        assert rules.parse_coordinate("91", 90) is None
        assert rules.parse_coordinate("north", 90) is None

    def test_parse_timestamp_is_naive_utc(self):
        assert rules.parse_timestamp("2024-01-15T10:00:00Z") == datetime(2024, 1, 15, 10, 0)
        assert rules.parse_timestamp("2024-01-15T10:00:00-05:00") == datetime(2024, 1, 15, 15, 0)
        assert rules.parse_timestamp("yesterday") is None


class TestDetailLineRules:
    """Fixed-pattern extraction from free-text lines"""

    def test_bedrooms_first_match_wins(self):
        assert rules.match_bedrooms(["850 square feet", "3 beds", "2 beds"]) == 3

    def test_bathrooms_fractional(self):
        assert rules.match_bathrooms(["2 beds 1.5 baths"]) == 1.5

    def test_square_footage_with_grouping(self):
        assert rules.match_square_footage(["1,200 sq ft"]) == 1200

    def test_no_match_returns_none(self):
        assert rules.match_bedrooms(["Elevator"]) is None
        assert rules.match_square_footage([]) is None

    @pytest.mark.parametrize(
        "text, expected",
        [("850 pc", 850), ("79 m²", 850), ("1 200 pi²", 1200), ("n/d", None)],
    )
    def test_parse_area_sqft(self, text, expected):
        assert rules.parse_area_sqft(text) == expected

    def test_parse_year(self):
        assert rules.parse_year("Construit en 1985") == 1985
        assert rules.parse_year("inconnue") is None


class TestLocationRules:

    def test_postal_code_normalized(self):
        assert rules.parse_postal_code("Montréal, QC h2j2l3") == "H2J 2L3"
        assert rules.parse_postal_code("Montréal, QC") is None

    def test_parse_location(self):
        parts = rules.parse_location("Montréal, QC H2J 2L3")
        assert parts.city == "Montréal"
        assert parts.postal_code == "H2J 2L3"

    def test_parse_location_without_postal_code(self):
        parts = rules.parse_location("Montreal, QC")
        assert parts.city == "Montreal"
        assert parts.postal_code is None

    def test_parse_location_empty(self):
        assert rules.parse_location(None) == rules.LocationParts()

    def test_city_borough(self):
        city, borough = rules.parse_city_borough("1200, Rue Sherbrooke Ouest, Montréal (Ville-Marie), QC")
        assert city == "Montreal"
        assert borough == "Ville-Marie"
        assert rules.parse_city_borough("12 rue Principale, Laval") == ("Montreal", None)


class TestCategorization:
    """Disjoint unit type / pet policy / amenities buckets"""

    def test_categorize_details(self):
        buckets = rules.categorize_details([
            "2 beds 1 bath",
            "850 square feet",
            "Apartment",
            "Condo",
            "CATS OK",
            "Dog friendly",
            "In-unit laundry",
        ])

        assert buckets.unit_type == "apartment"
        assert buckets.pet_policy == ["cat_friendly", "dog_friendly"]
        assert buckets.amenities == ["In-unit laundry"]

    def test_known_categories_take_priority_over_amenities(self):
        buckets = rules.categorize_details(["Pet friendly", "Loft"])
        assert buckets.amenities == []
        assert buckets.pet_policy == ["pets_allowed"]
        assert buckets.unit_type == "loft"

    def test_unit_type_needs_whole_word(self):
        assert rules.match_unit_type("Household appliances") is None

    def test_infer_unit_type(self):
        assert rules.infer_unit_type("Condo à louer") == "apartment"
        assert rules.infer_unit_type("Maison à louer") == "house"
        assert rules.infer_unit_type(None) == "apartment"

    def test_extract_pet_policy(self):
        assert rules.extract_pet_policy({"Animaux": "Chats acceptés"}) == ["cat_friendly"]
        assert rules.extract_pet_policy({"Animaux acceptés": "Oui"}) == ["pets_allowed"]

    def test_translate_amenities(self):
        amenities = rules.translate_amenities({"Caractéristiques": "Ascenseur, Piscine, Ascenseur"})
        assert amenities == ["elevator", "pool"]
