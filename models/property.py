from sqlalchemy import Column, String, BigInteger, Integer, Float, DateTime, ForeignKey, Index
from datetime import datetime
from models.base import Base, BigIntPK, MatchType, enum_column


class PropertyEvaluation(Base):
    """
    Municipal evaluation roll entry.

    This is the candidate universe for zones: rows are inserted in roll
    order, so `id` is the stable ordering key for job selection.
    """
    __tablename__ = "property_evaluations"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    matricule = Column(String(30), nullable=False, unique=True)
    address = Column(String(500), nullable=True)
    unit_count = Column(Integer, nullable=True)
    owner_name = Column(String(500), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_evaluations_coords", "latitude", "longitude"),
    )


class Company(Base):
    """Registry company (name and optional NEQ registry number)."""
    __tablename__ = "companies"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String(500), nullable=False)
    neq = Column(String(10), nullable=True, unique=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class PropertyCompanyLink(Base):
    """Owner-name link between an evaluation row and a company."""
    __tablename__ = "property_company_links"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    property_id = Column(BigInteger, ForeignKey("property_evaluations.id", ondelete="CASCADE"), nullable=False)
    company_id = Column(BigInteger, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False)
    match_type = Column(enum_column(MatchType), nullable=False)
    confidence = Column(Float, nullable=False)
    matcher = Column(String(50), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_property_company", "property_id", "company_id", unique=True),
    )
