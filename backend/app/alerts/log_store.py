"""
log_store.py — Append-only, capacity-bounded local log of completed dispatches.

Entries are kept most-recent-first and capped (default 100); appending past
the cap drops the oldest entries. The collection is persisted as a JSON
array in a single file, or held in memory when no path is configured.

All operations are synchronous and local. Storage problems never escape:
they are logged and reported as ``False`` (writes) or an empty list (reads),
so the dispatch path cannot be crashed by the log. A single undecodable
record is skipped (and logged) on read; the rest of the log stays readable.

Mutations are serialised with a lock to keep the cap and ordering intact
when several requests append at once.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from backend.app.alerts.models import LogEntry

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 100


class LocalLogStore:
    """
    Bounded, ordered log of :class:`LogEntry` snapshots.

    Parameters
    ----------
    path : str | Path | None
        JSON file backing the log. None keeps the log in memory.
    max_entries : int
        Capacity; the oldest entries are evicted beyond it.
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self.path = Path(path) if path is not None else None
        self.max_entries = max_entries
        self._lock = threading.Lock()
        self._memory: List[Dict[str, Any]] = []

    # ── Raw storage ──

    def _load(self) -> List[Dict[str, Any]]:
        if self.path is None:
            return list(self._memory)
        if not self.path.exists():
            return []
        with self.path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, list):
            raise ValueError(f"Log file {self.path} does not hold a JSON array")
        return data

    def _save(self, records: List[Dict[str, Any]]) -> None:
        if self.path is None:
            self._memory = list(records)
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(records, fh, indent=2)
        os.replace(tmp, self.path)

    # ── Writes ──

    def append(self, entry: LogEntry) -> bool:
        """Insert ``entry`` at the front and trim to capacity."""
        with self._lock:
            try:
                records = self._load()
                records.insert(0, entry.to_dict())
                evicted = len(records) - self.max_entries
                if evicted > 0:
                    del records[self.max_entries:]
                self._save(records)
            except (OSError, ValueError, TypeError) as exc:
                logger.error(
                    "Failed to save log for alert %s: %s", entry.alert_id, exc,
                    extra={"alert_id": entry.alert_id},
                )
                return False

        logger.info(
            "Log saved: %s%s", entry.alert_id,
            f" (evicted {evicted} oldest)" if evicted > 0 else "",
            extra={"alert_id": entry.alert_id},
        )
        return True

    def remove(self, alert_id: str) -> bool:
        """Delete the entry for ``alert_id``; absent ids are a no-op."""
        with self._lock:
            try:
                records = self._load()
                kept = [
                    r for r in records
                    if not (isinstance(r, dict) and r.get("alert_id") == alert_id)
                ]
                if len(kept) != len(records):
                    self._save(kept)
                    logger.info("Log deleted: %s", alert_id)
            except (OSError, ValueError) as exc:
                logger.error("Failed to delete log %s: %s", alert_id, exc)
                return False
        return True

    def clear(self) -> bool:
        with self._lock:
            try:
                if self.path is None:
                    self._memory = []
                elif self.path.exists():
                    self.path.unlink()
            except OSError as exc:
                logger.error("Failed to clear logs: %s", exc)
                return False
        logger.info("All logs cleared")
        return True

    # ── Reads ──

    def read_all(self) -> List[LogEntry]:
        """Entries, most recent first; undecodable records are skipped."""
        with self._lock:
            try:
                records = self._load()
            except (OSError, ValueError) as exc:
                logger.error("Failed to read logs: %s", exc)
                return []
        return self._decode(records)

    def _decode(self, records: List[Any]) -> List[LogEntry]:
        entries = []
        for position, record in enumerate(records):
            try:
                entries.append(LogEntry.from_dict(record))
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                logger.error(
                    "Skipping unreadable log record #%d (%s): %s",
                    position,
                    record.get("alert_id", "?") if isinstance(record, dict) else "?",
                    exc,
                )
        return entries

    def read_by_originator(self, originator_id: str) -> List[LogEntry]:
        return [e for e in self.read_all() if e.originator_id == originator_id]

    def statistics(self, originator_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Counts over the current contents.

        Returns
        -------
        dict
            ``{"total": int, "by_category": {...}, "by_status": {...}}``
        """
        entries = (
            self.read_by_originator(originator_id)
            if originator_id else self.read_all()
        )
        by_category = Counter(e.category.value for e in entries)
        by_status = Counter(e.final_status.value for e in entries)
        return {
            "total": len(entries),
            "by_category": dict(by_category),
            "by_status": dict(by_status),
        }

    # ── Export ──

    def export_json(self, originator_id: Optional[str] = None) -> str:
        """Ordered JSON array of entries, for download."""
        entries = (
            self.read_by_originator(originator_id)
            if originator_id else self.read_all()
        )
        return json.dumps([e.to_dict() for e in entries], indent=2)

    @staticmethod
    def export_filename(now: Optional[datetime] = None) -> str:
        stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H-%M-%SZ")
        return f"emergency_logs_{stamp}.json"
