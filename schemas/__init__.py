"""
Pydantic schemas for data validation and serialization.

This package defines Pydantic models for every document shape the
pipeline handles:

Schemas:
    raw: Per-source raw capture documents (Facebook legacy/wrapped, Centris)
    listing: Curated (Stage-1) records, canonical drafts and coordinates
    api: API endpoint request/response schemas

Features:
    - Raw documents resolved by source and variant into tagged models
    - Curated and canonical records validated before every upsert
    - OpenAPI schema generation for FastAPI

Usage:
    from schemas.raw import resolve_raw_document
    from schemas.listing import CuratedListingCreate, RentalDraft
    from schemas.api import TransformRequest, ZoneCreate

Example:
    document = resolve_raw_document(SourceName.FACEBOOK, payload)
    assert document.variant in ("legacy", "wrapped")
    print(document.preview().title)

Validation:
    Raw-document problems surface as SchemaValidationError; curated and
    canonical problems are collected as stage errors by the transformers.
"""

__all__ = [
    "FacebookRawDocument",
    "CentrisRawDocument",
    "CuratedListingCreate",
    "RentalDraft",
    "TransformRequest",
    "ZoneCreate",
    "StatsResponse",
]
