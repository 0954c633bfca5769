from sqlalchemy import Column, String, BigInteger, Integer, Float, Text, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from models.base import Base, BigIntPK, JSONType, ZoneJobStatus, enum_column


class ScrapeZone(Base):
    """
    Bounding box plus optional unit-count filters used to batch-plan
    capture work. Counters are caches, recomputed on demand.
    """
    __tablename__ = "scrape_zones"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)

    # Bounds
    min_lat = Column(Float, nullable=False)
    max_lat = Column(Float, nullable=False)
    min_lng = Column(Float, nullable=False)
    max_lng = Column(Float, nullable=False)

    # Attribute filters
    min_units = Column(Integer, nullable=True)
    max_units = Column(Integer, nullable=True)
    target_limit = Column(Integer, nullable=True)

    # Cached statistics
    total_properties = Column(Integer, nullable=False, default=0)
    scraped_count = Column(Integer, nullable=False, default=0)
    last_scraped_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    jobs = relationship("ZoneJob", back_populates="zone", order_by="ZoneJob.id")

    __table_args__ = (
        CheckConstraint("min_lat < max_lat", name="ck_zone_lat_order"),
        CheckConstraint("min_lng < max_lng", name="ck_zone_lng_order"),
        CheckConstraint("min_lat >= -90 AND max_lat <= 90", name="ck_zone_lat_range"),
        CheckConstraint("min_lng >= -180 AND max_lng <= 180", name="ck_zone_lng_range"),
    )


class ZoneJob(Base):
    """
    One bounded capture run over a zone.

    The job records intended work (item_keys) and completed work
    (scraped_count, failed_count); capture itself happens out-of-band.
    """
    __tablename__ = "zone_jobs"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    zone_id = Column(BigInteger, ForeignKey("scrape_zones.id", ondelete="CASCADE"), nullable=False, index=True)

    requested_limit = Column(Integer, nullable=False)
    total_to_scrape = Column(Integer, nullable=False, default=0)
    item_keys = Column(JSONType, nullable=False, default=list)

    status = Column(enum_column(ZoneJobStatus), nullable=False, default=ZoneJobStatus.PENDING, index=True)
    scraped_count = Column(Integer, nullable=False, default=0)
    failed_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    summary = Column(JSONType, nullable=True)

    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    zone = relationship("ScrapeZone", back_populates="jobs")

    __table_args__ = (
        Index("idx_zone_jobs_zone_status", "zone_id", "status"),
    )
