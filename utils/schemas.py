"""
Pydantic Schemas - Data Validation Models

Defines the Pydantic schemas shared by the extraction engine:
- Tenant configuration and extraction state
- Extracted event records
- Normalized API response envelopes
- Redis Pub/Sub messages

Usage:
    from utils.schemas import EventCategory, TenantConfig

    tenant = TenantConfig(tenant_id="tenant-001", api_url="https://api.px", api_key="k")
    for category in tenant.enabled_categories():
        cursor = tenant.cursor_for(category)
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from utils.config import settings
from utils.errors import ConfigurationError


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class EventCategory(str, Enum):
    """Closed set of event classes extracted per tenant."""

    CUSTOM = "CUSTOM"
    STANDARD = "STANDARD"

    @classmethod
    def parse(cls, value: "EventCategory | str") -> "EventCategory":
        """Coerce a member or a case-insensitive name into a category.

        Raises:
            ConfigurationError: If the value is not a known category
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ConfigurationError(f"Unknown event category: {value}") from None


class ProcessingStatus(str, Enum):
    """Downstream processing status of a stored event."""

    EXTRACTED = "EXTRACTED"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"


class TenantConfig(BaseModel):
    """Tenant configuration plus its mutable extraction state.

    The configuration fields are owned by the tenant management layer. The
    extraction engine only writes the state fields (timestamps, error and the
    two per-category cursors).
    """

    tenant_id: str = Field(..., min_length=1, description="Unique tenant identifier")
    company_name: str = Field(default="", description="Display name")
    api_url: str = Field(..., min_length=1, description="Remote API base URL")
    api_key: str = Field(..., min_length=1, description="Bearer credential")
    active: bool = Field(default=True)

    # Extraction preferences
    extraction_interval_minutes: int = Field(default=5, ge=1)
    extract_custom_events: bool = Field(default=True)
    extract_standard_events: bool = Field(default=True)
    max_retry_attempts: int = Field(default_factory=lambda: settings.EXTRACT_MAX_RETRIES, ge=1)
    timeout_seconds: float = Field(default_factory=lambda: settings.API_TIMEOUT, gt=0)

    # Extraction state
    last_successful_extraction: Optional[datetime] = None
    last_attempted_extraction: Optional[datetime] = None
    last_extraction_error: Optional[str] = None
    last_custom_cursor: Optional[str] = None
    last_standard_cursor: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URL so endpoint paths can be appended directly."""
        return v.rstrip("/")

    @field_validator(
        "last_successful_extraction",
        "last_attempted_extraction",
        "created_at",
        "updated_at",
    )
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    def enabled_categories(self) -> list[EventCategory]:
        """Categories to extract, in the order they must run."""
        categories = []
        if self.extract_custom_events:
            categories.append(EventCategory.CUSTOM)
        if self.extract_standard_events:
            categories.append(EventCategory.STANDARD)
        return categories

    def cursor_for(self, category: EventCategory) -> Optional[str]:
        if category is EventCategory.CUSTOM:
            return self.last_custom_cursor
        return self.last_standard_cursor

    def set_cursor(self, category: EventCategory, cursor: Optional[str]) -> None:
        if category is EventCategory.CUSTOM:
            self.last_custom_cursor = cursor
        else:
            self.last_standard_cursor = cursor

    def is_due(self, now: datetime) -> bool:
        """True if the tenant is active and its polling interval has elapsed."""
        if not self.active:
            return False
        if self.last_attempted_extraction is None:
            return True
        elapsed = now - self.last_attempted_extraction
        return elapsed >= timedelta(minutes=self.extraction_interval_minutes)


class ExtractedEvent(BaseModel):
    """One event pulled from the remote API, unique per (tenant_id, event_id)."""

    tenant_id: str
    event_id: str
    category: EventCategory
    event_name: str = "unknown"
    payload: str = Field(..., description="Raw item serialized as JSON")
    event_timestamp: datetime
    extracted_at: datetime = Field(default_factory=utcnow)
    status: ProcessingStatus = ProcessingStatus.EXTRACTED
    processing_error: Optional[str] = None
    retry_count: int = 0

    @field_validator("event_timestamp", "extracted_at")
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class Envelope(BaseModel):
    """Normalized result of one page fetch. Never persisted."""

    success: bool
    status_code: int
    raw_body: str = ""
    items: list[Any] = Field(default_factory=list)
    next_cursor: Optional[str] = None
    has_more: bool = False


class RedisEvent(BaseModel):
    """Redis Pub/Sub event payload.

    Standard format for extraction completion events:
    {
        "type": "extraction_completed",
        "ts": "2025-01-15T03:15:02Z",
        "succeeded": 2, "failed": 1, "skipped": 0,
        "tenants": [...]
    }
    """

    type: str = Field(..., description="Event type")
    ts: datetime = Field(default_factory=utcnow, description="Timestamp")
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    events: int = 0
    tenants: list[dict[str, Any]] = Field(default_factory=list)
