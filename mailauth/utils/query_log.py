"""
F32 - Query log for domain lookups.

Every lookup (successful, rate-limited or failed) is recorded as a small
JSON-serialisable entry.  The most recent entries are always kept in an
in-memory ring buffer so they can be inspected without disk I/O on
restricted hosts.  When persistence is enabled the entry is also written
to the ``query_log`` table through Flask-SQLAlchemy; a failing database
never fails the request.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 500


class QueryLog:
    """Ring buffer of recent lookups with optional database persistence.

    Args:
        max_entries: Size of the in-memory ring buffer.
        persist: Also insert each entry as a QueryLogEntry row.  Requires
            an active Flask application context.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES, persist: bool = False) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be a positive number")
        self.max_entries = max_entries
        self.persist = persist
        self._entries: deque[dict[str, Any]] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def log(self, entry: dict[str, Any]) -> dict[str, Any]:
        """Timestamp and record *entry*.

        Args:
            entry: Dict with at least ``domain`` and ``success``; optionally
                ``results``, ``ip``, ``errors`` and ``validationSummary``.

        Returns:
            The stored entry, including its ``timestamp``.
        """
        stored = {"timestamp": datetime.now(timezone.utc).isoformat(), **entry}

        with self._lock:
            self._entries.append(stored)

        if self.persist:
            self._persist(stored)

        logger.debug("Logged lookup for %s (success=%s)", stored.get("domain"), stored.get("success"))
        return stored

    def _persist(self, entry: dict[str, Any]) -> None:
        from mailauth import db
        from mailauth.models import QueryLogEntry

        try:
            db.session.add(QueryLogEntry.from_entry(entry))
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to persist query log entry for %s", entry.get("domain"))

    def entries(self, limit: int = 100) -> list[dict[str, Any]]:
        """Return up to *limit* entries, newest first."""
        with self._lock:
            recent = list(self._entries)
        recent.reverse()
        return recent[: max(limit, 0)]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
