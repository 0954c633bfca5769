from sqlalchemy import JSON, BigInteger, Enum, Integer
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# COLUMN TYPES
# ============================================================================

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# SQLite only autoincrements INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")


def enum_column(enum_cls):
    """String-backed enum column storing member values (not names)."""
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=32,
        validate_strings=True,
    )


# ============================================================================
# ENUMS
# ============================================================================

class SourceName(str, enum.Enum):
    """Capture sources"""
    FACEBOOK = "facebook"
    CENTRIS = "centris"
    MONTREAL_EVALUATION = "montreal_evaluation"


class CaptureStatus(str, enum.Enum):
    """Outcome of a raw capture"""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class TransformStatus(str, enum.Enum):
    """Status of the raw -> canonical transformation"""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class ZoneJobStatus(str, enum.Enum):
    """Zone capture job status"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class MatchType(str, enum.Enum):
    """How a company name was matched"""
    EXACT = "exact"
    FUZZY = "fuzzy"


# Canonical `source_name` values and FK columns per transformable source
CANONICAL_SOURCE_NAMES = {
    SourceName.FACEBOOK: "facebook_marketplace",
    SourceName.CENTRIS: "centris",
}

CANONICAL_SOURCE_KEYS = {
    SourceName.FACEBOOK: "facebook_id",
    SourceName.CENTRIS: "centris_id",
}
