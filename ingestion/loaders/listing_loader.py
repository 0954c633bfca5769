"""
Upsert curated listings and canonical rentals (idempotent on source keys)
"""

from typing import Any, Dict, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from core.database import dialect_insert
from models.base import CANONICAL_SOURCE_KEYS, SourceName
from models.curated import CuratedListing
from models.rental import Rental
from schemas.listing import CuratedListingCreate, RentalDraft
from datetime import datetime
import logging

logger = logging.getLogger(__name__)

# Columns never rewritten by an upsert
_IMMUTABLE_COLUMNS = {"id", "created_at"}


class ListingLoader:
    """
    Load curated and canonical records with INSERT ... ON CONFLICT UPDATE.

    Ensures:
    - One curated row per (source, source_item_id)
    - One rental per per-source foreign key (facebook_id / centris_id)
    - Re-runs update rows in place; core fields are replaced wholesale
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def upsert_curated(self, record: CuratedListingCreate) -> int:
        """
        Upsert a Stage-1 record.

        Returns:
            Curated row id
        """
        values = record.model_dump()
        values["updated_at"] = datetime.utcnow()

        insert = dialect_insert(self.db)
        stmt = insert(CuratedListing).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["source", "source_item_id"],
            set_={
                key: stmt.excluded[key]
                for key in values
                if key not in _IMMUTABLE_COLUMNS | {"source", "source_item_id"}
            },
        ).returning(CuratedListing.id)

        result = await self.db.execute(stmt)
        curated_id = result.scalar_one()
        await self.db.commit()

        logger.debug(f"Upserted curated listing {record.source}:{record.source_item_id} -> {curated_id}")
        return curated_id

    async def get_rental(self, source: SourceName, source_item_id: str) -> Optional[Rental]:
        key_column = getattr(Rental, CANONICAL_SOURCE_KEYS[SourceName(source)])
        result = await self.db.execute(
            select(Rental)
            .where(key_column == str(source_item_id))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def upsert_rental(
        self,
        source: SourceName,
        draft: RentalDraft,
        enrichment: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Upsert a canonical rental keyed by the source's foreign key.

        Args:
            source: Capture source (selects facebook_id / centris_id)
            draft: Stage-2 output
            enrichment: latitude, longitude, geocoded_at, images, videos

        Returns:
            Rental id
        """
        key = CANONICAL_SOURCE_KEYS[SourceName(source)]
        values = draft.model_dump()
        values.update(enrichment or {})
        values["updated_at"] = datetime.utcnow()

        if not values.get(key):
            raise ValueError(f"Rental draft is missing its source key {key}")

        insert = dialect_insert(self.db)
        stmt = insert(Rental).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[key],
            set_={k: stmt.excluded[k] for k in values if k not in _IMMUTABLE_COLUMNS | {key}},
        ).returning(Rental.id)

        result = await self.db.execute(stmt)
        rental_id = result.scalar_one()
        await self.db.commit()

        logger.debug(f"Upserted rental {key}={values[key]} -> {rental_id}")
        return rental_id
