import asyncio
import logging
import sys
import os

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import create_engine, create_tables
from core.logging import setup_logging

logger = logging.getLogger(__name__)


async def init_database():
    logger.info("Connecting to database...")
    engine = create_engine(settings.DATABASE_URL)

    try:
        logger.info("Creating tables...")
        await create_tables(engine)
        logger.info("Tables created successfully.")
    finally:
        await engine.dispose()

    for root in (settings.RAW_STORAGE_ROOT, settings.MEDIA_STORAGE_ROOT):
        os.makedirs(root, exist_ok=True)
        logger.info(f"Storage root ready: {root}")


if __name__ == "__main__":
    setup_logging()
    asyncio.run(init_database())
