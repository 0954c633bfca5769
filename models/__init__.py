"""
SQLAlchemy ORM models for database tables.

This package defines the database schema using SQLAlchemy ORM models:

Models:
    base: Base declarative class, shared enums (SourceName, CaptureStatus,
          TransformStatus, ZoneJobStatus) and portable column types
    metadata: Per-item ingestion tracking (IngestionMetadata)
    curated: Stage-1 output (CuratedListing)
    rental: Canonical cross-source rental (Rental)
    zone: Capture planning regions and jobs (ScrapeZone, ZoneJob)
    property: Evaluation roll, companies and owner links

Database Schema:
    JSON collections are stored as JSONB on PostgreSQL and JSON on other
    dialects, so the same models run against SQLite in tests.

Usage:
    from models import IngestionMetadata, CuratedListing, Rental
    from models.base import SourceName, TransformStatus

Relationships:
    - IngestionMetadata → CuratedListing (curated_id, nullable)
    - IngestionMetadata → Rental (canonical_id, nullable)
    - ScrapeZone → ZoneJob (one-to-many)
    - PropertyEvaluation ↔ Company (through PropertyCompanyLink)
"""

from models.base import Base, SourceName, CaptureStatus, TransformStatus, ZoneJobStatus, MatchType
from models.curated import CuratedListing
from models.rental import Rental
from models.metadata import IngestionMetadata
from models.zone import ScrapeZone, ZoneJob
from models.property import PropertyEvaluation, Company, PropertyCompanyLink

__all__ = [
    "Base",
    "SourceName",
    "CaptureStatus",
    "TransformStatus",
    "ZoneJobStatus",
    "MatchType",
    "IngestionMetadata",
    "CuratedListing",
    "Rental",
    "ScrapeZone",
    "ZoneJob",
    "PropertyEvaluation",
    "Company",
    "PropertyCompanyLink",
]
