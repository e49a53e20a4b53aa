"""
Health probes for the alert service.

Three components are checked:

    database    SELECT 1 through the async engine; failure is UNHEALTHY
    log_store   the local emergency log file; problems are only DEGRADED
                because the log falls back to memory and never blocks dispatch
    disk_space  free space where the log/SQLite files live

The overall status is the worst component status.
"""

from __future__ import annotations

import logging
import os
import shutil
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from backend.app.core.config import settings

logger = logging.getLogger(__name__)

_GB = 1024 ** 3
_STARTED = time.monotonic()


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


_SEVERITY = {HealthStatus.HEALTHY: 0, HealthStatus.DEGRADED: 1, HealthStatus.UNHEALTHY: 2}


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    latency_ms: float = 0.0
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def mark(self, status: HealthStatus, message: str) -> None:
        self.status = status
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            out["message"] = self.message
        if self.details:
            out["details"] = self.details
        return out


@dataclass
class HealthReport:
    components: List[ComponentHealth] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def status(self) -> HealthStatus:
        if not self.components:
            return HealthStatus.HEALTHY
        return max((c.status for c in self.components), key=_SEVERITY.__getitem__)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "timestamp": self.timestamp,
            "uptime_seconds": round(time.monotonic() - _STARTED, 1),
            "components": [c.to_dict() for c in self.components],
        }


@contextmanager
def _probe(name: str) -> Iterator[ComponentHealth]:
    comp = ComponentHealth(name=name)
    start = time.monotonic()
    try:
        yield comp
    finally:
        comp.latency_ms = (time.monotonic() - start) * 1000


def _log_directory(path: Optional[str]) -> Path:
    if not path:
        return Path(".")
    return Path(path).parent if str(Path(path).parent) else Path(".")


async def check_database(bind: Optional[AsyncEngine] = None) -> ComponentHealth:
    if bind is None:
        from backend.app.core.database import engine as bind

    with _probe("database") as comp:
        try:
            async with bind.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            comp.mark(HealthStatus.UNHEALTHY, str(exc))
        else:
            comp.message = "Connection available"
            comp.details = {"backend": bind.dialect.name}
    return comp


async def check_log_store(path: Optional[str] = None) -> ComponentHealth:
    raw = settings.LOG_STORE_PATH if path is None else path

    with _probe("log_store") as comp:
        if not raw:
            comp.message = "In-memory log"
            return comp

        log_path = Path(raw)
        directory = _log_directory(raw)
        comp.details = {"path": str(log_path), "exists": log_path.exists()}
        if log_path.exists() and not os.access(log_path, os.R_OK | os.W_OK):
            comp.mark(HealthStatus.DEGRADED, "Log file is not readable/writable")
        elif directory.exists() and not os.access(directory, os.W_OK):
            comp.mark(HealthStatus.DEGRADED, "Log directory is not writable")
        else:
            comp.message = "Log file available"
    return comp


async def check_disk_space(path: Optional[str] = None) -> ComponentHealth:
    directory = _log_directory(settings.LOG_STORE_PATH if path is None else path)
    if not directory.exists():
        directory = Path(".")

    with _probe("disk_space") as comp:
        try:
            total, used, free = shutil.disk_usage(directory)
        except OSError as exc:
            comp.mark(HealthStatus.DEGRADED, str(exc))
            return comp

        free_gb = free / _GB
        comp.details = {
            "free_gb": round(free_gb, 1),
            "used_pct": round(used / total * 100, 1),
        }
        if free_gb < 0.1:
            comp.mark(HealthStatus.UNHEALTHY, f"Low disk space: {free_gb:.2f} GB free")
        elif free_gb < 1.0:
            comp.mark(HealthStatus.DEGRADED, f"Disk space warning: {free_gb:.2f} GB free")
        else:
            comp.message = f"{free_gb:.1f} GB free"
    return comp


async def run_health_check(bind: Optional[AsyncEngine] = None) -> HealthReport:
    report = HealthReport(components=[
        await check_database(bind),
        await check_log_store(),
        await check_disk_space(),
    ])
    if report.status != HealthStatus.HEALTHY:
        logger.warning(
            "Health %s: %s", report.status.value,
            ", ".join(f"{c.name}={c.status.value}" for c in report.components),
        )
    return report
