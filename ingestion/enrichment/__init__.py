"""
Best-effort post-transform enrichment.

Modules:
    geocoding: Rate-limited, retried address geocoding (Nominatim)
    media: Download-and-relocate of listing images and videos
"""

from ingestion.enrichment.geocoding import NominatimGeocoder
from ingestion.enrichment.media import MediaMaterializer

__all__ = ["NominatimGeocoder", "MediaMaterializer"]
