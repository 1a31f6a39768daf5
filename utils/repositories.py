"""
Repositories - Tenant and Event Persistence

SQLite-backed stores consumed by the extraction engine:
- TenantRepository: tenant configuration plus extraction state
- EventRepository: append-only store of extracted events

Usage:
    from utils.repositories import EventRepository, TenantRepository

    tenants = TenantRepository(db_path)
    for tenant in tenants.find_eligible_for_extraction(now):
        ...
"""

import logging
import sqlite3
from datetime import datetime
from typing import Iterable, Optional

from utils.db import transaction
from utils.schemas import (
    EventCategory,
    ExtractedEvent,
    ProcessingStatus,
    TenantConfig,
    utcnow,
)

logger = logging.getLogger(__name__)

_TENANT_COLUMNS = (
    "tenant_id",
    "company_name",
    "api_url",
    "api_key",
    "active",
    "extraction_interval_minutes",
    "extract_custom_events",
    "extract_standard_events",
    "max_retry_attempts",
    "timeout_seconds",
    "last_successful_extraction",
    "last_attempted_extraction",
    "last_extraction_error",
    "last_custom_cursor",
    "last_standard_cursor",
    "created_at",
    "updated_at",
)

# Columns the extraction engine is allowed to write
_STATE_COLUMNS = (
    "last_successful_extraction",
    "last_attempted_extraction",
    "last_extraction_error",
    "last_custom_cursor",
    "last_standard_cursor",
    "updated_at",
)

_EVENT_COLUMNS = (
    "tenant_id",
    "event_id",
    "category",
    "event_name",
    "payload",
    "event_timestamp",
    "extracted_at",
    "status",
    "processing_error",
    "retry_count",
)


def _to_db(value: object) -> object:
    if isinstance(value, datetime):
        return value.isoformat(timespec="microseconds")
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (EventCategory, ProcessingStatus)):
        return value.value
    return value


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_tenant(row: sqlite3.Row) -> TenantConfig:
    data = dict(row)
    for key in (
        "last_successful_extraction",
        "last_attempted_extraction",
        "created_at",
        "updated_at",
    ):
        data[key] = _parse_dt(data[key])
    for key in ("active", "extract_custom_events", "extract_standard_events"):
        data[key] = bool(data[key])
    return TenantConfig(**data)


def _row_to_event(row: sqlite3.Row) -> ExtractedEvent:
    data = dict(row)
    data.pop("id", None)
    data["event_timestamp"] = _parse_dt(data["event_timestamp"])
    data["extracted_at"] = _parse_dt(data["extracted_at"])
    return ExtractedEvent(**data)


class TenantRepository:
    """Persisted tenant store."""

    def __init__(self, db_path: str | None = None) -> None:
        self.db_path = db_path

    def _select(self, where: str = "", params: tuple = ()) -> list[TenantConfig]:
        query = "SELECT * FROM tenant_configurations"
        if where:
            query += f" WHERE {where}"
        query += " ORDER BY tenant_id"
        with transaction(self.db_path) as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_tenant(row) for row in rows]

    def find_by_tenant_id(self, tenant_id: str) -> Optional[TenantConfig]:
        tenants = self._select("tenant_id = ?", (tenant_id,))
        return tenants[0] if tenants else None

    def find_all(self) -> list[TenantConfig]:
        return self._select()

    def find_active(self) -> list[TenantConfig]:
        return self._select("active = 1")

    def find_with_errors(self) -> list[TenantConfig]:
        """Active tenants whose last run recorded an error."""
        return self._select("active = 1 AND last_extraction_error IS NOT NULL")

    def find_eligible_for_extraction(self, now: datetime) -> list[TenantConfig]:
        """
        Active tenants never attempted, or last attempted at least their
        configured interval before `now`.

        The interval is per tenant, so the cutoff is applied in Python on top
        of the indexed `active` filter.
        """
        return [tenant for tenant in self.find_active() if tenant.is_due(now)]

    def save(self, tenant: TenantConfig) -> TenantConfig:
        """Insert or fully replace a tenant record."""
        tenant.updated_at = utcnow()
        placeholders = ", ".join("?" for _ in _TENANT_COLUMNS)
        updates = ", ".join(
            f"{col} = excluded.{col}" for col in _TENANT_COLUMNS if col not in ("tenant_id", "created_at")
        )
        values = tuple(_to_db(getattr(tenant, col)) for col in _TENANT_COLUMNS)

        with transaction(self.db_path) as conn:
            conn.execute(
                f"INSERT INTO tenant_configurations ({', '.join(_TENANT_COLUMNS)}) "
                f"VALUES ({placeholders}) "
                f"ON CONFLICT(tenant_id) DO UPDATE SET {updates}",
                values,
            )
        return tenant

    def update_extraction_state(self, tenant: TenantConfig) -> None:
        """Write only the extraction-state columns of an existing tenant."""
        tenant.updated_at = utcnow()
        assignments = ", ".join(f"{col} = ?" for col in _STATE_COLUMNS)
        values = tuple(_to_db(getattr(tenant, col)) for col in _STATE_COLUMNS)

        with transaction(self.db_path) as conn:
            cursor = conn.execute(
                f"UPDATE tenant_configurations SET {assignments} WHERE tenant_id = ?",
                values + (tenant.tenant_id,),
            )
            if cursor.rowcount == 0:
                logger.warning(
                    "Extraction state not saved, tenant no longer exists",
                    extra={"tenant_id": tenant.tenant_id},
                )


class EventRepository:
    """Persisted event store. Append-only from the extractor's perspective."""

    def __init__(self, db_path: str | None = None) -> None:
        self.db_path = db_path

    def exists(self, tenant_id: str, event_id: str) -> bool:
        with transaction(self.db_path) as conn:
            row = conn.execute(
                "SELECT 1 FROM extracted_events WHERE tenant_id = ? AND event_id = ? LIMIT 1",
                (tenant_id, event_id),
            ).fetchone()
        return row is not None

    def save_all(self, events: Iterable[ExtractedEvent]) -> int:
        """
        Insert events in a single transaction.

        Rows colliding with an existing (tenant_id, event_id) are ignored.

        Returns:
            Number of rows actually inserted
        """
        rows = [tuple(_to_db(getattr(event, col)) for col in _EVENT_COLUMNS) for event in events]
        if not rows:
            return 0

        placeholders = ", ".join("?" for _ in _EVENT_COLUMNS)
        with transaction(self.db_path) as conn:
            before = conn.total_changes
            conn.executemany(
                f"INSERT OR IGNORE INTO extracted_events ({', '.join(_EVENT_COLUMNS)}) "
                f"VALUES ({placeholders})",
                rows,
            )
            inserted = conn.total_changes - before
        return inserted

    def count_for_tenant(self, tenant_id: str) -> int:
        with transaction(self.db_path) as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM extracted_events WHERE tenant_id = ?",
                (tenant_id,),
            ).fetchone()
        return row[0]

    def count_since(self, tenant_id: str, since: datetime) -> int:
        """Events stored for the tenant after `since` (by ingestion time)."""
        with transaction(self.db_path) as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM extracted_events WHERE tenant_id = ? AND extracted_at > ?",
                (tenant_id, _to_db(since)),
            ).fetchone()
        return row[0]

    def latest_for_tenant(self, tenant_id: str) -> Optional[ExtractedEvent]:
        """Most recent event for the tenant by occurrence time."""
        with transaction(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM extracted_events WHERE tenant_id = ? "
                "ORDER BY event_timestamp DESC LIMIT 1",
                (tenant_id,),
            ).fetchone()
        return _row_to_event(row) if row else None

    def find_by_status(self, tenant_id: str, status: ProcessingStatus) -> list[ExtractedEvent]:
        with transaction(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM extracted_events WHERE tenant_id = ? AND status = ? ORDER BY id",
                (tenant_id, status.value),
            ).fetchall()
        return [_row_to_event(row) for row in rows]
