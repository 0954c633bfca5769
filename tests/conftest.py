"""
Pytest configuration and fixtures
"""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession
from typing import AsyncGenerator

from core.database import create_engine, create_session_factory, create_tables
from ingestion.storage import LocalBlobStore


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a file-backed SQLite engine with all tables"""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    await create_tables(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return create_session_factory(test_engine)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def artifact_store(tmp_path):
    return LocalBlobStore(str(tmp_path / "raw"))


@pytest.fixture
def media_store(tmp_path):
    return LocalBlobStore(str(tmp_path / "media"))


@pytest.fixture
def facebook_wrapped_payload():
    """Facebook document in the wrapped capture shape"""
    return {
        "facebook_id": "1234567890",
        "source_url": "https://www.facebook.com/marketplace/item/1234567890/",
        "extracted_date": "2024-01-15T10:00:00Z",
        "scraper_version": "bookmarklet-v2",
        "raw_data": {
            "title": "Beautiful 4 1/2 in the Plateau",
            "price": "CA$2,175 / Month",
            "address": "4500 Rue Saint-Denis",
            "rentalLocation": "Montréal, QC H2J 2L3",
            "unitDetails": [
                "2 beds 1 bath",
                "850 square feet",
                "Apartment",
                "Cat friendly",
                "Dog friendly",
                "In-unit laundry",
                "Central AC",
            ],
            "buildingDetails": ["Elevator"],
            "description": "Bright unit close to the metro.",
            "sellerInfo": {"name": "Marie Tremblay", "profileUrl": "https://www.facebook.com/marie"},
            "media": {
                "images": ["https://cdn.example.com/a.jpg", "https://cdn.example.com/b.jpg"],
                "videos": [],
            },
        },
    }


@pytest.fixture
def facebook_legacy_payload():
    """Facebook document in the flat console-export shape"""
    return {
        "id": "9876543210",
        "url": "https://www.facebook.com/marketplace/item/9876543210/",
        "extractedDate": "2024-01-10T08:30:00Z",
        "title": "Studio near McGill",
        "price": "1 250 $",
        "rentalLocation": "Montreal, QC",
        "unitDetails": ["1 bed 1 bath", "Studio", "Furnished"],
        "sellerInfo": {"name": "Jean Roy"},
    }


@pytest.fixture
def centris_payload():
    """Centris document (single wrapped shape)"""
    return {
        "centris_id": "28374651",
        "source_url": "https://www.centris.ca/fr/condo~a-louer~montreal/28374651",
        "scraped_at": "2024-02-01T12:00:00Z",
        "scraper_version": "centris-v1",
        "raw_data": {
            "listing_id": "28374651",
            "property_type": "Condo à louer",
            "address": "1200, Rue Sherbrooke Ouest, Montréal (Ville-Marie), QC H3A 1H6",
            "price": "2 450 $",
            "price_display": "2 450 $/mois",
            "latitude": "45.5017",
            "longitude": "-73.5673",
            "rooms": "5 pièces",
            "bedrooms": "2 chambres",
            "bathrooms": "1 salle de bain",
            "characteristics": {
                "Superficie": "79 m²",
                "Année de construction": "2015",
                "Stationnement": "Garage (1)",
                "Disponibilité": "2024-03-01",
                "Caractéristiques": "Ascenseur, Piscine",
                "Animaux": "Chats acceptés",
            },
            "description": "Condo lumineux au centre-ville.",
            "walk_score": "98",
            "images": ["https://media.centris.ca/a_small.jpg"],
            "images_high_res": ["https://media.centris.ca/a_large.jpg"],
            "brokers": [
                {
                    "name": "Luc Gagnon",
                    "title": "Courtier immobilier",
                    "agency": "Groupe Sutton",
                    "phone": "514-555-0100",
                    "website": "https://luc.example.com",
                }
            ],
        },
    }
