"""Tests for tenant configuration helpers and category parsing."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from utils.errors import ConfigurationError
from utils.schemas import EventCategory, ExtractedEvent, TenantConfig

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _tenant(**overrides) -> TenantConfig:
    fields = {"tenant_id": "t1", "api_url": "https://px.example.com/", "api_key": "k"}
    fields.update(overrides)
    return TenantConfig(**fields)


class TestEventCategory:
    @pytest.mark.parametrize("value", ["custom", "CUSTOM", "Custom", EventCategory.CUSTOM])
    def test_parse_custom(self, value) -> None:
        assert EventCategory.parse(value) is EventCategory.CUSTOM

    def test_parse_unknown_raises_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown event category"):
            EventCategory.parse("PAGEVIEW")


class TestTenantConfig:
    def test_defaults(self) -> None:
        tenant = _tenant()
        assert tenant.active is True
        assert tenant.extraction_interval_minutes == 5
        assert tenant.max_retry_attempts == 3
        assert tenant.timeout_seconds == 30
        assert tenant.api_url == "https://px.example.com"

    def test_required_fields(self) -> None:
        with pytest.raises(ValidationError):
            TenantConfig(tenant_id="", api_url="u", api_key="k")

    def test_enabled_categories_order(self) -> None:
        assert _tenant().enabled_categories() == [EventCategory.CUSTOM, EventCategory.STANDARD]
        assert _tenant(extract_custom_events=False).enabled_categories() == [EventCategory.STANDARD]
        assert _tenant(extract_custom_events=False, extract_standard_events=False).enabled_categories() == []

    def test_cursors_are_independent(self) -> None:
        tenant = _tenant()
        tenant.set_cursor(EventCategory.CUSTOM, "c-1")
        assert tenant.cursor_for(EventCategory.CUSTOM) == "c-1"
        assert tenant.cursor_for(EventCategory.STANDARD) is None

        tenant.set_cursor(EventCategory.STANDARD, "s-9")
        tenant.set_cursor(EventCategory.CUSTOM, None)
        assert tenant.cursor_for(EventCategory.STANDARD) == "s-9"
        assert tenant.cursor_for(EventCategory.CUSTOM) is None

    def test_is_due_never_attempted(self) -> None:
        assert _tenant().is_due(NOW) is True

    def test_is_due_respects_interval(self) -> None:
        assert _tenant(last_attempted_extraction=NOW - timedelta(minutes=10)).is_due(NOW) is True
        assert _tenant(last_attempted_extraction=NOW - timedelta(minutes=5)).is_due(NOW) is True
        assert _tenant(last_attempted_extraction=NOW - timedelta(minutes=4)).is_due(NOW) is False

    def test_inactive_never_due(self) -> None:
        assert _tenant(active=False).is_due(NOW) is False

    def test_naive_datetimes_treated_as_utc(self) -> None:
        tenant = _tenant(last_attempted_extraction=datetime(2024, 6, 1, 11, 0))
        assert tenant.last_attempted_extraction.tzinfo is timezone.utc
        assert tenant.is_due(NOW) is True


def test_extracted_event_defaults() -> None:
    event = ExtractedEvent(
        tenant_id="t1",
        event_id="e1",
        category="CUSTOM",
        payload="{}",
        event_timestamp=datetime(2024, 1, 1),
    )
    assert event.status.value == "EXTRACTED"
    assert event.retry_count == 0
    assert event.event_name == "unknown"
    assert event.event_timestamp.tzinfo is timezone.utc
