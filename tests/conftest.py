"""Pytest configuration and fixtures for test suite.

Provides:
- Basic environment variable defaults (set before any settings import)
- The packaged vendor profile table
- An isolated in-memory SQLite session per test
"""
import os
import sys
from pathlib import Path

# Project root on the path so tests can import shared sample documents
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

# Set environment variables BEFORE importing modules that use settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_LEVEL", "INFO")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vendor_ingestion.db.base import Base
from vendor_ingestion.db import models  # noqa: F401  (registers tables)
from vendor_ingestion.services.classification import load_vendor_profiles


@pytest.fixture(scope="session")
def vendor_profiles():
    """The vendor profile table shipped with the package."""
    return load_vendor_profiles()


@pytest.fixture
def get_profile(vendor_profiles):
    """Look up a packaged profile by id."""
    def _get(vendor_id: str):
        profile = vendor_profiles.get(vendor_id)
        assert profile is not None, f"profile {vendor_id} missing"
        return profile
    return _get


@pytest_asyncio.fixture
async def db_session():
    """Fresh in-memory database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session

    await engine.dispose()
