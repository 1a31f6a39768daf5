"""
Tenant Extractor - Per-Tenant Pagination Loop

Drives one tenant's extraction through IDLE -> CONNECTING -> PAGING ->
SUCCESS | FAILED.

For each enabled category (custom first, then standard) pages are fetched
sequentially from the category's persisted cursor. After every page the new
events are stored and the cursor is persisted, so an interrupted run resumes
from the last completed page. A page ceiling bounds each category per run;
hitting it leaves the cursor in place for the next run.

Errors never escape run(): they are written to the tenant record and
returned in the ExtractionResult, so one tenant cannot abort the others.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

import orjson

from apps.extractor.client import PXClient
from apps.extractor.dedup import DedupGate
from apps.extractor.fields import EventIdentifier, TimestampResolver
from apps.extractor.state import TenantStateTracker
from utils.config import settings
from utils.errors import ExtractorError, RemoteRequestError
from utils.repositories import EventRepository
from utils.schemas import EventCategory, ExtractedEvent, TenantConfig, utcnow

logger = logging.getLogger(__name__)


class ExtractionState(str, Enum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    PAGING = "PAGING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


@dataclass
class ExtractionResult:
    """Outcome of one tenant run."""

    tenant_id: str
    state: ExtractionState = ExtractionState.IDLE
    events_by_category: dict[str, int] = field(default_factory=dict)
    pages: int = 0
    skipped_items: int = 0
    duplicates: int = 0
    truncated: bool = False
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def total_events(self) -> int:
        return sum(self.events_by_category.values())

    @property
    def succeeded(self) -> bool:
        return self.state is ExtractionState.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "state": self.state.value,
            "events": self.total_events,
            "events_by_category": dict(self.events_by_category),
            "pages": self.pages,
            "skipped_items": self.skipped_items,
            "duplicates": self.duplicates,
            "truncated": self.truncated,
            "error": self.error,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class TenantExtractor:
    """Runs the sequential, cursor-driven extraction for a single tenant."""

    def __init__(
        self,
        client: PXClient,
        events: EventRepository,
        tracker: TenantStateTracker,
        identifier: Optional[EventIdentifier] = None,
        timestamps: Optional[TimestampResolver] = None,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
        page_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.client = client
        self.events = events
        self.tracker = tracker
        self.identifier = identifier or EventIdentifier()
        self.timestamps = timestamps or TimestampResolver()
        self.page_size = page_size if page_size is not None else settings.EXTRACT_PAGE_SIZE
        self.max_pages = max_pages if max_pages is not None else settings.EXTRACT_MAX_PAGES
        self.page_delay = page_delay if page_delay is not None else settings.EXTRACT_PAGE_DELAY_SECONDS
        self.sleep = sleep
        self.clock = clock

    def run(self, tenant: TenantConfig) -> ExtractionResult:
        """
        Extract every enabled category for a tenant.

        Args:
            tenant: Tenant to extract; its state fields are updated in place

        Returns:
            ExtractionResult in SUCCESS or FAILED state
        """
        result = ExtractionResult(tenant_id=tenant.tenant_id, started_at=self.clock())
        gate = DedupGate(self.events)
        logger.info("Starting event extraction", extra={"tenant_id": tenant.tenant_id})

        try:
            result.state = ExtractionState.CONNECTING
            self.tracker.mark_attempt(tenant, result.started_at)

            if not self.client.test_connection(tenant):
                raise ExtractorError("Connection test failed")

            result.state = ExtractionState.PAGING
            for category in tenant.enabled_categories():
                stored = self._extract_category(tenant, category, gate, result)
                logger.info(
                    "Extracted category",
                    extra={"tenant_id": tenant.tenant_id, "category": category.value, "events": stored},
                )

            self.tracker.mark_success(tenant, self.clock())
            result.state = ExtractionState.SUCCESS
            logger.info(
                "Extraction succeeded",
                extra={"tenant_id": tenant.tenant_id, "events": result.total_events, "pages": result.pages},
            )

        except Exception as e:
            result.state = ExtractionState.FAILED
            result.error = str(e) or type(e).__name__
            logger.error(
                "Extraction failed",
                extra={"tenant_id": tenant.tenant_id, "error": result.error},
                exc_info=True,
            )
            self._record_failure(tenant, result.error)

        result.finished_at = self.clock()
        return result

    def _record_failure(self, tenant: TenantConfig, error: str) -> None:
        try:
            self.tracker.mark_failure(tenant, error)
        except Exception:
            logger.exception("Could not record extraction failure", extra={"tenant_id": tenant.tenant_id})

    def _extract_category(
        self,
        tenant: TenantConfig,
        category: EventCategory,
        gate: DedupGate,
        result: ExtractionResult,
    ) -> int:
        cursor = tenant.cursor_for(category)
        if cursor:
            logger.info(
                "Resuming from persisted cursor",
                extra={"tenant_id": tenant.tenant_id, "category": category.value},
            )

        stored = 0
        pages = 0
        has_more = True

        while has_more and pages < self.max_pages:
            envelope = self.client.fetch_page(tenant, category, cursor, self.page_size)
            if not envelope.success:
                raise RemoteRequestError(
                    f"API request failed with status: {envelope.status_code}",
                    status_code=envelope.status_code,
                )

            batch = self._build_events(tenant, category, envelope.items, gate, result)
            if batch:
                stored += self.events.save_all(batch)

            pages += 1
            has_more = envelope.has_more
            cursor = envelope.next_cursor if has_more else None
            self.tracker.advance_cursor(tenant, category, cursor)

            if has_more and pages < self.max_pages:
                self.sleep(self.page_delay)

        if has_more:
            result.truncated = True
            logger.warning(
                "Reached maximum page limit, continuing next run",
                extra={"tenant_id": tenant.tenant_id, "category": category.value, "max_pages": self.max_pages},
            )

        result.pages += pages
        result.events_by_category[category.value] = stored
        return stored

    def _build_events(
        self,
        tenant: TenantConfig,
        category: EventCategory,
        items: list[Any],
        gate: DedupGate,
        result: ExtractionResult,
    ) -> list[ExtractedEvent]:
        now = self.clock()
        batch = []

        for item in items:
            event_id = self.identifier.extract_id(item)
            if event_id is None:
                result.skipped_items += 1
                logger.warning("Skipping event without ID", extra={"tenant_id": tenant.tenant_id})
                continue

            try:
                event = ExtractedEvent(
                    tenant_id=tenant.tenant_id,
                    event_id=event_id,
                    category=category,
                    event_name=self.identifier.extract_name(item),
                    payload=orjson.dumps(item).decode("utf-8"),
                    event_timestamp=self.timestamps.resolve(item, now),
                    extracted_at=now,
                )
            except (TypeError, ValueError) as e:
                result.skipped_items += 1
                logger.error(
                    "Error processing event",
                    extra={"tenant_id": tenant.tenant_id, "event_id": event_id, "error": str(e)},
                )
                continue

            if not gate.accept(tenant.tenant_id, event_id):
                result.duplicates += 1
                logger.debug(
                    "Skipping duplicate event",
                    extra={"tenant_id": tenant.tenant_id, "event_id": event_id},
                )
                continue

            batch.append(event)

        return batch
