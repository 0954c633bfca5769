"""
Listing ingestion pipeline components.

This package captures raw listing documents, tracks their lifecycle and
transforms them in two stages into canonical rental records:

Modules:
    storage: Write-once blob store for raw artifacts and media
    tracker: Per-item capture/transform metadata (single source of truth)
    capture: Capture boundary that stores artifacts and records them
    pipeline: Per-item orchestrator (capture -> curate -> canonicalize -> enrich)
    backfill: Sequential batch driver over pending items
    zones: Zone statistics, job planning and job execution
    matching: Owner-name to registry-company linking
    scheduler: APScheduler integration for periodic backfills
    runtime: Process-wide wiring of the collaborators above

Subpackages:
    transformers: Pure Stage-1 (raw -> curated) and Stage-2 (curated -> canonical) rules
    loaders: Idempotent upserts of curated and canonical records
    enrichment: Best-effort geocoding and media materialization

Architecture:
    Each item moves through a fixed sequence of stages:

    1. Capture - Raw document stored once, metadata recorded
    2. Curate - Source-specific parsing into a typed intermediate record
    3. Canonicalize - Projection onto the canonical rental schema
    4. Enrich - Geocoding and media download, never blocking completion

    Stage failures are recorded on the metadata row; warnings accumulate
    without blocking progress.

Usage:
    from ingestion.runtime import build_runtime

    runtime = build_runtime()
    async with runtime.session_factory() as session:
        result = await runtime.orchestrator(session).run_pipeline("facebook", "123")

    print(result.to_dict())

Error Handling:
    All components raise exceptions from core.exceptions; expected
    per-item failures are returned as results rather than raised.
"""

__all__ = [
    "LocalBlobStore",
    "MetadataTracker",
    "CaptureService",
    "PipelineOrchestrator",
    "BackfillRunner",
    "ZoneOrchestrator",
    "ZoneJobRunner",
    "CompanyLinker",
    "BackfillScheduler",
    "PipelineRuntime",
]
