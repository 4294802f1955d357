"""
F03 - SQLAlchemy models for the DKIM/DMARC publication checker.

Only the optional query-log persistence needs a table:
  QueryLogEntry
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from mailauth import db

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    """Return the current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# QueryLogEntry
# ---------------------------------------------------------------------------


class QueryLogEntry(db.Model):
    """One logged domain lookup (successful, rate-limited or failed)."""

    __tablename__ = "query_log"

    id: db.Mapped[int] = db.mapped_column(db.Integer, primary_key=True, autoincrement=True)
    timestamp: db.Mapped[datetime] = db.mapped_column(
        db.DateTime(timezone=True), default=_utcnow, nullable=False, index=True
    )
    domain: db.Mapped[str] = db.mapped_column(db.String(253), nullable=False, index=True)
    ip: db.Mapped[str | None] = db.mapped_column(db.String(45), nullable=True)
    success: db.Mapped[bool] = db.mapped_column(db.Boolean, nullable=False)

    # JSON-encoded remainder of the entry (results, errors, validation summary)
    payload: db.Mapped[str] = db.mapped_column(db.Text, nullable=False, default="{}")

    @classmethod
    def from_entry(cls, entry: dict[str, Any]) -> QueryLogEntry:
        """Build a row from a query-log entry dict."""
        timestamp = datetime.fromisoformat(entry["timestamp"])
        extra = {
            key: value
            for key, value in entry.items()
            if key not in ("timestamp", "domain", "ip", "success")
        }
        return cls(
            timestamp=timestamp,
            domain=entry["domain"],
            ip=entry.get("ip"),
            success=bool(entry["success"]),
            payload=json.dumps(extra, sort_keys=True, default=str),
        )

    def get_payload(self) -> dict[str, Any]:
        """Return the deserialised JSON payload."""
        try:
            return json.loads(self.payload or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_entry(self) -> dict[str, Any]:
        """Rebuild the entry dict this row was created from."""
        entry: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "domain": self.domain,
            "success": self.success,
        }
        if self.ip is not None:
            entry["ip"] = self.ip
        entry.update(self.get_payload())
        return entry

    def __repr__(self) -> str:
        return f"<QueryLogEntry id={self.id} domain={self.domain!r} success={self.success}>"
