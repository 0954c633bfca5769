from sqlalchemy import Column, String, BigInteger, Integer, Text, DateTime, ForeignKey, Index
from datetime import datetime
from models.base import Base, BigIntPK, SourceName, CaptureStatus, TransformStatus, enum_column


class IngestionMetadata(Base):
    """
    One tracking row per captured item.

    Purpose:
    - Points at the immutable raw artifact (never embeds it)
    - Preview fields for listing without fetching the blob
    - Status of every downstream stage, attempts and last error

    Invariants:
    - (source, source_item_id) is unique
    - transform_status == success implies curated_id and canonical_id are set
    - curated_id set with canonical_id null is a valid partial state
    """
    __tablename__ = "ingestion_metadata"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)

    # Source identification
    source = Column(enum_column(SourceName), nullable=False, index=True)
    source_item_id = Column(String(255), nullable=False)
    source_url = Column(String(1000), nullable=True)
    scraper_version = Column(String(50), nullable=True)

    # Raw artifact location
    storage_path = Column(String(500), nullable=True)
    raw_data_size_bytes = Column(Integer, nullable=True)

    # Capture outcome
    capture_status = Column(enum_column(CaptureStatus), nullable=False, default=CaptureStatus.SUCCESS)
    capture_error = Column(Text, nullable=True)
    capture_duration_ms = Column(Integer, nullable=True)
    captured_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Previews
    title_preview = Column(String(100), nullable=True)
    price_preview = Column(String(100), nullable=True)
    address_preview = Column(String(255), nullable=True)

    # Transformation tracking
    transform_status = Column(
        enum_column(TransformStatus), nullable=False, default=TransformStatus.PENDING, index=True
    )
    transform_error = Column(Text, nullable=True)
    transform_attempts = Column(Integer, nullable=False, default=0)
    transformed_at = Column(DateTime, nullable=True)
    curated_id = Column(BigInteger, ForeignKey("curated_listings.id"), nullable=True)
    canonical_id = Column(BigInteger, ForeignKey("rentals.id"), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_metadata_source_item", "source", "source_item_id", unique=True),
        Index("idx_metadata_transform", "source", "transform_status"),
    )

    @property
    def item_key(self) -> str:
        return f"{self.source.value}:{self.source_item_id}"
