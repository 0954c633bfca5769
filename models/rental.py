from sqlalchemy import Column, String, Integer, Float, Text, DateTime, Index
from datetime import datetime
from models.base import Base, BigIntPK, JSONType


class Rental(Base):
    """
    Canonical cross-source rental listing.

    Core descriptive fields are overwritten wholesale on re-transformation.
    Enrichment fields (coordinates, geocoded_at, images, videos) are
    mutable after creation.

    At most one row per source item: facebook_id and centris_id are
    unique and nullable.
    """
    __tablename__ = "rentals"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)

    # Source tracking
    source_name = Column(String(50), nullable=False, index=True)
    source_url = Column(String(1000), nullable=True)
    facebook_id = Column(String(255), nullable=True)
    centris_id = Column(String(255), nullable=True)
    raw_data_storage_path = Column(String(500), nullable=True)
    extracted_date = Column(DateTime, nullable=True)

    # Core fields
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    address = Column(String(500), nullable=True)
    city = Column(String(100), nullable=True, index=True)
    postal_code = Column(String(10), nullable=True)
    rental_location = Column(String(255), nullable=True)

    monthly_rent = Column(Float, nullable=True)
    price_display = Column(String(100), nullable=True)
    bedrooms = Column(Integer, nullable=True)
    bathrooms = Column(Float, nullable=True)
    square_footage = Column(Integer, nullable=True)
    unit_type = Column(String(50), nullable=True)

    pet_policy = Column(JSONType, nullable=False, default=list)
    amenities = Column(JSONType, nullable=False, default=list)
    unit_details_raw = Column(JSONType, nullable=False, default=list)
    building_details = Column(JSONType, nullable=False, default=list)

    seller_name = Column(String(255), nullable=True)
    seller_profile_url = Column(String(1000), nullable=True)
    notes = Column(Text, nullable=True)

    # Enrichment
    images = Column(JSONType, nullable=False, default=list)
    videos = Column(JSONType, nullable=False, default=list)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    geocoded_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_rentals_facebook_id", "facebook_id", unique=True),
        Index("idx_rentals_centris_id", "centris_id", unique=True),
    )
