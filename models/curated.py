from sqlalchemy import Column, String, Integer, Float, Text, DateTime, Index
from datetime import datetime
from models.base import Base, BigIntPK, JSONType, SourceName, enum_column


class CuratedListing(Base):
    """
    Stage-1 output: a typed, normalized intermediate record.

    One row per (source, source_item_id), upserted on re-transformation.

    Field Mapping Strategy:

    Facebook Marketplace:
    - raw_data.title -> title
    - raw_data.price ("CA$2,175 / Month") -> price, price_display
    - raw_data.rentalLocation ("Montréal, QC H2X 1Y4") -> city, postal_code
    - raw_data.unitDetails -> bedrooms, bathrooms, square_footage,
      unit_type, pet_policy, amenities
    - raw_data.media -> image_urls, video_urls

    Centris:
    - raw_data.price ("2 175 $") -> price
    - raw_data.latitude/longitude -> latitude, longitude
    - raw_data.characteristics -> square_footage, building_details,
      amenities (translated), pet_policy, attributes
    - raw_data.brokers -> seller_name, seller_profile_url, notes
    """
    __tablename__ = "curated_listings"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)

    # Source tracking
    source = Column(enum_column(SourceName), nullable=False, index=True)
    source_item_id = Column(String(255), nullable=False)
    source_url = Column(String(1000), nullable=True)
    extracted_date = Column(DateTime, nullable=True)
    scraper_version = Column(String(50), nullable=True)
    raw_data_storage_path = Column(String(500), nullable=True)

    # Core fields
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    address = Column(String(500), nullable=True)
    city = Column(String(100), nullable=True)
    postal_code = Column(String(10), nullable=True)
    rental_location = Column(String(255), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Price
    price = Column(Float, nullable=True)
    price_currency = Column(String(3), nullable=True)
    price_display = Column(String(100), nullable=True)

    # Unit
    bedrooms = Column(Integer, nullable=True)
    bathrooms = Column(Float, nullable=True)
    square_footage = Column(Integer, nullable=True)
    unit_type = Column(String(50), nullable=True)

    # Ordered collections
    pet_policy = Column(JSONType, nullable=False, default=list)
    amenities = Column(JSONType, nullable=False, default=list)
    unit_details_raw = Column(JSONType, nullable=False, default=list)
    building_details = Column(JSONType, nullable=False, default=list)
    image_urls = Column(JSONType, nullable=False, default=list)
    video_urls = Column(JSONType, nullable=False, default=list)

    # Seller
    seller_name = Column(String(255), nullable=True)
    seller_profile_url = Column(String(1000), nullable=True)
    notes = Column(Text, nullable=True)

    # Source-specific extras (rooms, parking, brokers, walk score...)
    attributes = Column(JSONType, nullable=False, default=dict)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_curated_source_item", "source", "source_item_id", unique=True),
    )
