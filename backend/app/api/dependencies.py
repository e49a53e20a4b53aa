"""
FastAPI dependencies — caller identity, repository, log store, coordinator.

Authentication is handled upstream; the verified user id arrives in the
``X-User-Id`` header. Everything else is built per request from settings,
except the local log store, which is shared by the whole process.
"""

from __future__ import annotations

from functools import lru_cache
from typing import AsyncGenerator, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.alerts.alert_service import NotificationCoordinator, StatusPolicy
from backend.app.alerts.log_store import LocalLogStore
from backend.app.core.config import settings
from backend.app.core.database import get_db, get_session_factory
from backend.app.core.errors import AuthenticationError, AuthorizationError
from backend.app.spatial.location import FallbackGeocoder, Geocoder, NominatimGeocoder
from backend.app.storage.notifier import (
    EmergencyNotifier,
    HttpEmergencyNotifier,
    StorageAuthorityRegistrar,
)
from backend.app.storage.repository import EmergencyRepository


async def get_optional_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> Optional[str]:
    if x_user_id is None:
        return None
    return x_user_id.strip() or None


async def get_current_user(
    user_id: Optional[str] = Depends(get_optional_user),
) -> str:
    if not user_id:
        raise AuthenticationError()
    return user_id


async def get_repository(db: AsyncSession = Depends(get_db)) -> EmergencyRepository:
    return EmergencyRepository(db)


async def require_admin(
    user_id: str = Depends(get_current_user),
    repo: EmergencyRepository = Depends(get_repository),
) -> str:
    if not await repo.is_admin(user_id):
        raise AuthorizationError("Admin role required", user_id=user_id)
    return user_id


@lru_cache()
def get_log_store() -> LocalLogStore:
    """Process-wide log store; mutations are serialised inside the store."""
    return LocalLogStore(
        settings.LOG_STORE_PATH or None,
        max_entries=settings.LOG_STORE_MAX_ENTRIES,
    )


async def get_geocoder() -> AsyncGenerator[Geocoder, None]:
    if not settings.GEOCODER_URL:
        yield FallbackGeocoder()
        return
    geocoder = NominatimGeocoder(
        settings.GEOCODER_URL,
        timeout_seconds=settings.GEOCODER_TIMEOUT_SECONDS,
    )
    try:
        yield geocoder
    finally:
        await geocoder.close()


async def get_notifier() -> Optional[EmergencyNotifier]:
    """Remote notifier when NOTIFIER_URL is set; None runs it in-process."""
    if not settings.NOTIFIER_URL:
        return None
    return HttpEmergencyNotifier(
        settings.NOTIFIER_URL,
        timeout_seconds=settings.NOTIFIER_TIMEOUT_SECONDS,
    )


async def get_coordinator(
    user_id: str = Depends(get_current_user),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    notifier: Optional[EmergencyNotifier] = Depends(get_notifier),
) -> NotificationCoordinator:
    return NotificationCoordinator(
        StorageAuthorityRegistrar(session_factory, user_id, notifier=notifier),
        channel_timeout_seconds=settings.CHANNEL_TIMEOUT_SECONDS,
        policy=StatusPolicy(settings.STATUS_POLICY),
    )
