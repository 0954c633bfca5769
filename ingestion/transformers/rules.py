"""
Named, deterministic parsing rules used by the Stage-1 transformers.

Every rule is a pure function of its input. A rule returns `None` when
nothing matches; the calling transformer turns that into a warning.
When several candidates match, the first one wins.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

SQ_METERS_TO_SQ_FEET = 10.764
DEFAULT_CITY = "Montreal"

# ============================================================================
# Patterns
# ============================================================================

# First run of digits with grouping separators ("2 175", "2,175.50", "1.500")
NUMBER_RUN_PATTERN = re.compile(
    r"\d{1,3}(?:[ \u00a0\u202f]\d{3})+(?:[.,]\d+)?|\d[\d,.]*\d|\d"
)
INTEGER_PATTERN = re.compile(r"\d+")
FRACTIONAL_PATTERN = re.compile(r"\d+(?:[.,]\d+)?")

BEDROOMS_PATTERN = re.compile(r"(\d+)\s*(?:beds?|bedrooms?|chambres?)\b", re.IGNORECASE)
BATHROOMS_PATTERN = re.compile(
    r"(\d+(?:[.,]\d+)?)\s*(?:baths?|bathrooms?|salles?\s+de\s+bains?)\b", re.IGNORECASE
)
SQUARE_FEET_PATTERN = re.compile(
    r"(\d+(?:,\d{3})?)\s*(?:square\s*feet|sq\.?\s*ft\.?)", re.IGNORECASE
)
AREA_PATTERN = re.compile(
    r"(\d{1,3}(?:[ \u00a0\u202f]\d{3})+(?:[.,]\d+)?|\d[\d,.]*\d|\d)\s*"
    r"(pc|pi\u00b2|pi2|sq\.?\s*ft\.?|square\s*feet|m\u00b2|m2|sq\.?\s*m\.?|mc)?",
    re.IGNORECASE,
)
POSTAL_CODE_PATTERN = re.compile(r"([A-Z]\d[A-Z])\s*(\d[A-Z]\d)", re.IGNORECASE)
YEAR_PATTERN = re.compile(r"\b(19\d{2}|20\d{2})\b")
BOROUGH_PATTERN = re.compile(r"Montr[ée]al\s*\(([^)]+)\)", re.IGNORECASE)
METRIC_UNITS = {"m\u00b2", "m2", "mc", "sqm"}

# ============================================================================
# Keyword tables
# ============================================================================

UNIT_TYPE_KEYWORDS = ["apartment", "house", "condo", "townhouse", "studio", "loft"]

PET_KEYWORDS = {
    "cat friendly": "cat_friendly",
    "cats ok": "cat_friendly",
    "dog friendly": "dog_friendly",
    "dogs ok": "dog_friendly",
    "pet friendly": "pets_allowed",
}

# Centris property type -> canonical unit type (first match wins)
PROPERTY_TYPE_UNIT_TYPES = [
    (("condo", "appartement", "apartment"), "apartment"),
    (("maison", "house"), "house"),
    (("studio",), "studio"),
    (("loft",), "loft"),
]

AMENITY_TRANSLATIONS = {
    "ascenseur": "elevator",
    "balcon": "balcony",
    "piscine": "pool",
    "gym": "gym",
    "salle d'entraînement": "gym",
    "terrasse": "terrace",
    "stationnement": "parking",
    "garage": "garage",
    "laveuse": "washer",
    "sécheuse": "dryer",
    "lave-vaisselle": "dishwasher",
    "climatisation": "air_conditioning",
    "chauffage": "heating",
    "meublé": "furnished",
}


# ============================================================================
# Numbers
# ============================================================================

def _normalize_number(token: str) -> Optional[float]:
    """Resolve grouping vs decimal separators in a numeric token."""
    token = re.sub(r"[\s\u00a0\u202f]", "", token).strip(",.")
    if not token:
        return None

    if "," in token and "." in token:
        # The right-most separator is the decimal one
        if token.rfind(",") > token.rfind("."):
            token = token.replace(".", "").replace(",", ".")
        else:
            token = token.replace(",", "")
    elif "," in token:
        if re.fullmatch(r"\d{1,3}(,\d{3})+", token):
            token = token.replace(",", "")
        else:
            token = token.replace(",", ".")
    elif "." in token:
        if re.fullmatch(r"\d{1,3}(\.\d{3})+", token):
            token = token.replace(".", "")

    try:
        return float(token)
    except ValueError:
        return None


def parse_price(text: Optional[str]) -> Optional[float]:
    """
    Parse a locale-formatted price.

    Examples:
        "CA$2,175 / Month" -> 2175.0
        "2 175 $"          -> 2175.0
        "2 175,50 $"       -> 2175.5
        "not a price"      -> None

    Non-positive amounts are treated as unparsed.
    """
    if not text:
        return None
    match = NUMBER_RUN_PATTERN.search(str(text))
    if not match:
        return None
    value = _normalize_number(match.group(0))
    if value is None or value <= 0:
        return None
    return value


def parse_count(text: Optional[str]) -> Optional[int]:
    """First integer in the text ("2 chambres" -> 2)."""
    if not text:
        return None
    match = INTEGER_PATTERN.search(str(text))
    return int(match.group(0)) if match else None


def parse_fractional_count(text: Optional[str]) -> Optional[float]:
    """First decimal number in the text ("1,5 salle de bain" -> 1.5)."""
    if not text:
        return None
    match = FRACTIONAL_PATTERN.search(str(text))
    return float(match.group(0).replace(",", ".")) if match else None


def parse_coordinate(text: Optional[str], limit: float) -> Optional[float]:
    """Float coordinate within [-limit, limit]."""
    if text is None or str(text).strip() == "":
        return None
    try:
        value = float(str(text).strip())
    except ValueError:
        return None
    if not -limit <= value <= limit:
        return None
    return value


def parse_timestamp(text: Optional[str]) -> Optional[datetime]:
    """ISO-8601 timestamp, naive UTC. Unparseable input yields None."""
    if not text:
        return None
    try:
        value = datetime.fromisoformat(str(text).strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# ============================================================================
# Free-text detail lines
# ============================================================================

def _first_match(pattern: re.Pattern, lines: Iterable[str]) -> Optional[re.Match]:
    for line in lines:
        match = pattern.search(line or "")
        if match:
            return match
    return None


def match_bedrooms(lines: Iterable[str]) -> Optional[int]:
    """Bedroom count from the first line mentioning beds/bedrooms."""
    match = _first_match(BEDROOMS_PATTERN, lines)
    return int(match.group(1)) if match else None


def match_bathrooms(lines: Iterable[str]) -> Optional[float]:
    """Bathroom count from the first line mentioning baths/bathrooms."""
    match = _first_match(BATHROOMS_PATTERN, lines)
    return float(match.group(1).replace(",", ".")) if match else None


def match_square_footage(lines: Iterable[str]) -> Optional[int]:
    """Square footage from the first "N square feet" / "N sq ft" line."""
    match = _first_match(SQUARE_FEET_PATTERN, lines)
    return int(match.group(1).replace(",", "")) if match else None


def parse_area_sqft(text: Optional[str]) -> Optional[int]:
    """
    Area in square feet; metric areas are converted.

    Examples:
        "850 pc"  -> 850
        "79 m²"   -> 850
    """
    if not text:
        return None
    match = AREA_PATTERN.search(str(text))
    if not match:
        return None
    value = _normalize_number(match.group(1))
    if value is None or value <= 0:
        return None
    unit = re.sub(r"[\s.]", "", (match.group(2) or "").lower())
    if unit in METRIC_UNITS:
        value = value * SQ_METERS_TO_SQ_FEET
    return int(round(value))


def parse_year(text: Optional[str]) -> Optional[int]:
    """First 19xx/20xx year in the text."""
    if not text:
        return None
    match = YEAR_PATTERN.search(str(text))
    return int(match.group(1)) if match else None


# ============================================================================
# Location
# ============================================================================

def parse_postal_code(text: Optional[str]) -> Optional[str]:
    """Canadian postal code, normalized to "A1A 1A1"."""
    if not text:
        return None
    match = POSTAL_CODE_PATTERN.search(str(text))
    if not match:
        return None
    return f"{match.group(1).upper()} {match.group(2).upper()}"


@dataclass(frozen=True)
class LocationParts:
    city: Optional[str] = None
    postal_code: Optional[str] = None


def parse_location(text: Optional[str]) -> LocationParts:
    """
    Split a comma separated location string.

    The city is the first part; the postal code is looked up in the last.
    "Montréal, QC H2X 1Y4" -> LocationParts("Montréal", "H2X 1Y4")
    """
    if not text or not str(text).strip():
        return LocationParts()
    parts = [p.strip() for p in str(text).split(",") if p.strip()]
    if not parts:
        return LocationParts()
    city = parts[0]
    postal_code = parse_postal_code(parts[-1])
    if postal_code and len(parts) == 1:
        # A lone part holding only the postal code has no city
        city = POSTAL_CODE_PATTERN.sub("", city).strip() or None
    return LocationParts(city=city, postal_code=postal_code)


def parse_city_borough(address: Optional[str]) -> Tuple[str, Optional[str]]:
    """
    City and borough from a Centris address.

    "123 rue X, Montréal (Ville-Marie), QC" -> ("Montreal", "Ville-Marie")
    Addresses outside Montreal still default to Montreal.
    """
    if not address:
        return DEFAULT_CITY, None
    match = BOROUGH_PATTERN.search(address)
    if match:
        return DEFAULT_CITY, match.group(1).strip()
    return DEFAULT_CITY, None


# ============================================================================
# Categorization
# ============================================================================

@dataclass
class DetailBuckets:
    """Disjoint buckets for free-form unit detail strings."""
    unit_type: Optional[str] = None
    pet_policy: List[str] = field(default_factory=list)
    amenities: List[str] = field(default_factory=list)


def _is_measurement_line(line: str) -> bool:
    return bool(
        BEDROOMS_PATTERN.search(line)
        or BATHROOMS_PATTERN.search(line)
        or SQUARE_FEET_PATTERN.search(line)
    )


def match_unit_type(line: str) -> Optional[str]:
    lower = line.lower()
    for keyword in UNIT_TYPE_KEYWORDS:
        if re.search(rf"\b{keyword}\b", lower):
            return keyword
    return None


def match_pet_policies(line: str) -> List[str]:
    lower = line.lower()
    return [policy for keyword, policy in PET_KEYWORDS.items() if keyword in lower]


def categorize_details(lines: Iterable[str]) -> DetailBuckets:
    """
    Sort unit detail strings into unit type / pet policy / amenities.

    Matching is case-insensitive keyword membership. Unit type and pet
    keywords take priority; lines consumed by the bed, bath and area rules
    are skipped; everything else is an amenity. The first unit type wins.
    """
    buckets = DetailBuckets()
    for raw_line in lines:
        line = (raw_line or "").strip()
        if not line or _is_measurement_line(line):
            continue

        unit_type = match_unit_type(line)
        if unit_type:
            if buckets.unit_type is None:
                buckets.unit_type = unit_type
            continue

        policies = match_pet_policies(line)
        if policies:
            for policy in policies:
                if policy not in buckets.pet_policy:
                    buckets.pet_policy.append(policy)
            continue

        buckets.amenities.append(line)
    return buckets


def infer_unit_type(property_type: Optional[str]) -> str:
    """Canonical unit type from a Centris property type; defaults to apartment."""
    if not property_type:
        return "apartment"
    lower = property_type.lower()
    for keywords, unit_type in PROPERTY_TYPE_UNIT_TYPES:
        if any(k in lower for k in keywords):
            return unit_type
    return "apartment"


def _characteristics_text(characteristics: Dict[str, str]) -> str:
    return " ".join(f"{k} {v}" for k, v in characteristics.items()).lower()


def extract_pet_policy(characteristics: Dict[str, str]) -> List[str]:
    """Pet policy flags from French/English characteristic text."""
    text = _characteristics_text(characteristics)
    policy = []
    if "animaux acceptés" in text or "pets allowed" in text or "pet friendly" in text:
        policy.append("pets_allowed")
    if re.search(r"\b(chats?|cats?)\b", text):
        policy.append("cat_friendly")
    if re.search(r"\b(chiens?|dogs?)\b", text):
        policy.append("dog_friendly")
    return policy


def translate_amenities(characteristics: Dict[str, str]) -> List[str]:
    """English amenity names for French characteristic keys/values, deduplicated."""
    amenities: List[str] = []
    for key, value in characteristics.items():
        combined = f"{key} {value}".lower()
        for french, english in AMENITY_TRANSLATIONS.items():
            if french in combined and english not in amenities:
                amenities.append(english)
    return amenities
