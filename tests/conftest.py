"""
Shared fixtures: sample alerts/contacts, log stores and a throwaway
SQLite database per test.
"""

from __future__ import annotations

from typing import Optional

import pytest
from sqlalchemy.pool import NullPool

from backend.app.alerts.log_store import LocalLogStore
from backend.app.alerts.models import AlertRecord, Contact
from backend.app.alerts.validation import build_alert
from backend.app.core.database import build_engine, build_session_factory, init_db
from backend.app.storage.repository import EmergencyRepository

# New York City Hall (40.7128°N, 74.0060°W)
NYC_LAT = 40.7128
NYC_LON = -74.0060


def make_alert(
    category: str = "medical",
    message: str = "Chest pain, need help",
    originator_id: str = "user-1",
    latitude: Optional[float] = NYC_LAT,
    longitude: Optional[float] = NYC_LON,
    address: str = "City Hall Park, New York",
) -> AlertRecord:
    return build_alert(
        originator_id,
        category,
        message,
        latitude=latitude,
        longitude=longitude,
        address=address,
    )


def make_contact(
    cid: str = "C001",
    name: str = "Test Contact",
    phone: Optional[str] = "+12125550100",
    email: Optional[str] = "contact@example.com",
    priority: int = 1,
) -> Contact:
    return Contact(contact_id=cid, name=name, phone=phone, email=email, priority=priority)


@pytest.fixture
def memory_store() -> LocalLogStore:
    return LocalLogStore()


@pytest.fixture
def file_store(tmp_path) -> LocalLogStore:
    return LocalLogStore(tmp_path / "logs" / "emergency_logs.json")


def sqlite_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
async def db_engine(tmp_path):
    # NullPool: no connection outlives the event loop that opened it
    engine = build_engine(sqlite_url(tmp_path), poolclass=NullPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def repo(session) -> EmergencyRepository:
    return EmergencyRepository(session)
