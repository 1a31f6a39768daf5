"""
Extraction Orchestrator - Cross-Tenant Fan-Out

Selects eligible tenants and runs one TenantExtractor per tenant on a bounded
thread pool owned by the orchestrator. Tenants run in parallel with each
other; a tenant's own categories never do.

A per-tenant in-flight guard makes double dispatch impossible when the
periodic job, the hourly backup job or an on-demand run overlap.

Usage:
    from apps.extractor.orchestrator import ExtractionOrchestrator

    with ExtractionOrchestrator(extractor, tracker) as orchestrator:
        summary = orchestrator.run_all()
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_for_all
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from apps.extractor.extractor import ExtractionResult, ExtractionState, TenantExtractor
from apps.extractor.state import TenantStateTracker
from utils.config import settings
from utils.errors import ExtractionInProgressError, TenantNotFoundError
from utils.schemas import TenantConfig, utcnow

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """Aggregated outcome of one run_all() pass."""

    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    results: list[ExtractionResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.state is ExtractionState.FAILED)

    @property
    def total_events(self) -> int:
        return sum(r.total_events for r in self.results)

    def to_message(self) -> dict[str, Any]:
        """Payload published on the extraction-completed channel."""
        return {
            "type": "extraction_completed",
            "ts": (self.finished_at or utcnow()).isoformat(),
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": len(self.skipped),
            "events": self.total_events,
            "tenants": [r.to_dict() for r in self.results],
        }


class ExtractionOrchestrator:
    """Owns the worker pool and the per-tenant in-flight guard."""

    def __init__(
        self,
        extractor: TenantExtractor,
        tracker: TenantStateTracker,
        max_workers: Optional[int] = None,
    ) -> None:
        self.extractor = extractor
        self.tracker = tracker
        self.max_workers = max_workers or settings.EXTRACT_MAX_WORKERS
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="tenant-extract",
        )
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()
        self._closed = False

    def __enter__(self) -> "ExtractionOrchestrator":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown(wait=True)

    @property
    def in_flight(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._in_flight)

    def _claim(self, tenant_id: str) -> bool:
        with self._lock:
            if tenant_id in self._in_flight:
                return False
            self._in_flight.add(tenant_id)
            return True

    def _release(self, tenant_id: str) -> None:
        with self._lock:
            self._in_flight.discard(tenant_id)

    def _run_claimed(self, tenant: TenantConfig) -> ExtractionResult:
        try:
            return self.extractor.run(tenant)
        finally:
            self._release(tenant.tenant_id)

    def run_all(self) -> RunSummary:
        """
        Extract every eligible tenant and block until all runs finish.

        Never raises: store failures and unexpected worker errors are logged
        and reflected in the returned summary.
        """
        summary = RunSummary()
        if self._closed:
            logger.warning("Orchestrator is shut down, skipping extraction run")
            summary.finished_at = utcnow()
            return summary

        try:
            tenants = self.tracker.eligible(summary.started_at)
        except Exception:
            logger.exception("Could not load tenants eligible for extraction")
            summary.finished_at = utcnow()
            return summary

        logger.info("Starting event extraction for eligible tenants", extra={"tenants": len(tenants)})

        futures: dict[Future, str] = {}
        for tenant in tenants:
            if not self._claim(tenant.tenant_id):
                logger.info("Tenant extraction already in flight, skipping", extra={"tenant_id": tenant.tenant_id})
                summary.skipped.append(tenant.tenant_id)
                continue
            try:
                futures[self._executor.submit(self._run_claimed, tenant)] = tenant.tenant_id
            except RuntimeError:
                # executor shut down concurrently
                self._release(tenant.tenant_id)
                summary.skipped.append(tenant.tenant_id)

        wait_for_all(futures)

        for future, tenant_id in futures.items():
            try:
                summary.results.append(future.result())
            except Exception as e:
                logger.exception("Tenant worker crashed", extra={"tenant_id": tenant_id})
                summary.results.append(
                    ExtractionResult(tenant_id=tenant_id, state=ExtractionState.FAILED, error=str(e))
                )

        summary.finished_at = utcnow()
        logger.info(
            "Completed event extraction for all tenants",
            extra={
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "skipped": len(summary.skipped),
                "events": summary.total_events,
            },
        )
        return summary

    def run_one(self, tenant_id: str) -> ExtractionResult:
        """
        Extract a single tenant on demand, in the calling thread.

        Eligibility (active flag, interval) is not checked.

        Raises:
            TenantNotFoundError: If no tenant has this id
            ExtractionInProgressError: If the tenant is already being extracted
        """
        tenant = self.tracker.get(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)
        if not self._claim(tenant_id):
            raise ExtractionInProgressError(tenant_id)
        return self._run_claimed(tenant)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting runs; with wait=True, drain in-flight tenant runs."""
        self._closed = True
        self._executor.shutdown(wait=wait)
        logger.info("Extraction orchestrator shut down")
