"""
Pure transformation stages.

Modules:
    rules: Named parsing rules (prices, counts, areas, locations, keywords)
    facebook: Stage-1 transformer for Facebook Marketplace captures
    centris: Stage-1 transformer for Centris captures
    canonical: Stage-2 projection into the canonical rental schema

None of these modules perform I/O.
"""

from ingestion.transformers.base import StageResult
from ingestion.transformers.canonical import CanonicalProjector
from ingestion.transformers.centris import CentrisCuratedTransformer
from ingestion.transformers.facebook import FacebookCuratedTransformer
from models.base import SourceName

CURATED_TRANSFORMERS = {
    SourceName.FACEBOOK: FacebookCuratedTransformer,
    SourceName.CENTRIS: CentrisCuratedTransformer,
}


__all__ = [
    "StageResult",
    "CanonicalProjector",
    "CentrisCuratedTransformer",
    "FacebookCuratedTransformer",
    "CURATED_TRANSFORMERS",
]
