"""
Extraction Scheduler - Interval and On-Demand Execution

Manages scheduled and manual extraction runs using APScheduler.

Features:
- Periodic run every EXTRACT_INTERVAL_MINUTES
- Backup run every EXTRACT_BACKUP_INTERVAL_MINUTES for missed cycles
- Both jobs serialized on one lock; the orchestrator's in-flight guard
  covers any other caller
- RUN_ONCE mode for a single pass, RUN_TENANT for one tenant
- Optional Redis event publishing after each run
- Graceful shutdown handling

Usage:
    # Scheduled mode (default)
    python -m apps.extractor

    # Run once and exit
    RUN_ONCE=true python -m apps.extractor

    # Extract a single tenant and exit
    RUN_TENANT=tenant-001 python -m apps.extractor
"""

import asyncio
import logging
import os
import signal
import sys
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from apps.extractor.client import PXClient
from apps.extractor.extractor import ExtractionResult, TenantExtractor
from apps.extractor.orchestrator import ExtractionOrchestrator, RunSummary
from apps.extractor.publisher import publish_extraction_event
from apps.extractor.seed import seed_tenants
from apps.extractor.state import TenantStateTracker
from utils.config import settings
from utils.db import init_schema
from utils.logging import setup_logging
from utils.repositories import EventRepository, TenantRepository

logger = logging.getLogger(__name__)


def build_orchestrator(db_path: Optional[str] = None) -> tuple[ExtractionOrchestrator, PXClient]:
    """
    Wire stores, client, extractor and orchestrator from settings.

    Returns:
        The orchestrator and the HTTP client it uses (caller closes both)
    """
    init_schema(db_path)
    tenants = TenantRepository(db_path)
    if settings.TENANTS_FILE:
        seed_tenants(settings.TENANTS_FILE, tenants)

    client = PXClient()
    tracker = TenantStateTracker(tenants)
    extractor = TenantExtractor(client, EventRepository(db_path), tracker)
    return ExtractionOrchestrator(extractor, tracker), client


class ExtractionScheduler:
    """
    Scheduler for periodic or on-demand extraction runs.

    Handles:
    - APScheduler setup and management
    - Serializing the periodic and backup jobs
    - RUN_ONCE / RUN_TENANT immediate execution
    - Signal handling for graceful shutdown
    """

    def __init__(
        self,
        orchestrator: ExtractionOrchestrator,
        run_once: bool = False,
        tenant_id: Optional[str] = None,
        publish_events: Optional[bool] = None,
    ) -> None:
        """
        Initialize scheduler.

        Args:
            orchestrator: Orchestrator whose run_all()/run_one() are triggered
            run_once: If True, run extraction once and exit
            tenant_id: If set, extract only this tenant and exit
            publish_events: Publish run summaries, defaults to settings.PUBLISH_EVENTS
        """
        self.orchestrator = orchestrator
        self.run_once = run_once or tenant_id is not None
        self.tenant_id = tenant_id
        self.publish_events = settings.PUBLISH_EVENTS if publish_events is None else publish_events
        self.scheduler: AsyncIOScheduler | None = None
        self.shutdown_event = asyncio.Event()
        self._run_lock = asyncio.Lock()

        logger.info(
            "ExtractionScheduler initialized",
            extra={
                "run_once": self.run_once,
                "tenant_id": tenant_id,
                "interval_minutes": settings.EXTRACT_INTERVAL_MINUTES,
                "backup_interval_minutes": settings.EXTRACT_BACKUP_INTERVAL_MINUTES,
            },
        )

    async def execute_extraction(self) -> RunSummary:
        """
        Run one extraction pass over all eligible tenants and publish its summary.

        Returns:
            Summary of the pass
        """
        logger.info("Starting extraction execution")

        try:
            async with self._run_lock:
                summary = await asyncio.to_thread(self.orchestrator.run_all)

            if self.publish_events:
                try:
                    await publish_extraction_event(summary)
                except Exception as e:
                    logger.warning("Run summary not published", extra={"error": str(e)})

            logger.info(
                "Extraction execution completed",
                extra={"succeeded": summary.succeeded, "failed": summary.failed},
            )
            return summary

        except Exception as e:
            logger.error(
                "Extraction execution failed",
                extra={"error": str(e)},
                exc_info=True,
            )
            raise

        finally:
            if self.run_once:
                logger.info("RUN_ONCE mode: signaling shutdown")
                self.shutdown_event.set()

    async def execute_single(self, tenant_id: str) -> ExtractionResult:
        """
        Extract one tenant on demand.

        Raises:
            TenantNotFoundError: If the tenant does not exist
            ExtractionInProgressError: If the tenant is already running
        """
        try:
            result = await asyncio.to_thread(self.orchestrator.run_one, tenant_id)
            logger.info("Single-tenant extraction finished", extra=result.to_dict())
            return result
        finally:
            if self.run_once:
                self.shutdown_event.set()

    def setup_signal_handlers(self) -> None:
        """Setup handlers for graceful shutdown on SIGINT/SIGTERM."""

        def signal_handler(signum: int, frame: object) -> None:
            logger.info(f"Received signal {signum}, initiating graceful shutdown")
            self.shutdown_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def _add_job(self, job_id: str, name: str, minutes: int) -> None:
        self.scheduler.add_job(
            self.execute_extraction,
            trigger=IntervalTrigger(minutes=minutes),
            id=job_id,
            name=name,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    async def start(self) -> None:
        """
        Start scheduler or execute once.

        In scheduled mode, runs continuously until shutdown signal.
        In RUN_ONCE / RUN_TENANT mode, executes immediately and exits.
        """
        self.setup_signal_handlers()

        try:
            if self.tenant_id is not None:
                logger.info("Running in RUN_TENANT mode", extra={"tenant_id": self.tenant_id})
                await self.execute_single(self.tenant_id)
                return

            if self.run_once:
                logger.info("Running in RUN_ONCE mode")
                await self.execute_extraction()
                return

            await self._run_scheduled()
        finally:
            await asyncio.to_thread(self.orchestrator.shutdown, True)

    async def _run_scheduled(self) -> None:
        logger.info("Running in scheduled mode")

        self.scheduler = AsyncIOScheduler()
        self._add_job("extraction_job", "Periodic Tenant Extraction", settings.EXTRACT_INTERVAL_MINUTES)
        self._add_job(
            "backup_extraction_job",
            "Backup Tenant Extraction",
            settings.EXTRACT_BACKUP_INTERVAL_MINUTES,
        )

        # Start scheduler first to get next_run_time
        self.scheduler.start()
        logger.info("Scheduler started")

        job = self.scheduler.get_job("extraction_job")
        next_run = getattr(job, "next_run_time", None)
        logger.info(
            "Scheduled extraction jobs",
            extra={"next_run": str(next_run) if next_run is not None else None},
        )

        # First pass immediately rather than one interval after startup
        await self.execute_extraction()

        logger.info("Waiting for jobs...")
        await self.shutdown_event.wait()

        logger.info("Shutting down scheduler")
        self.scheduler.shutdown(wait=False)
        # let a run already holding the lock drain before the pool closes
        async with self._run_lock:
            pass
        logger.info("Scheduler shutdown complete")


async def main() -> None:
    """Main entry point for scheduler."""
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    logger.info(
        "Starting extractor",
        extra={"app": settings.APP_NAME, "version": settings.APP_VERSION, "environment": settings.ENVIRONMENT},
    )

    run_once = os.getenv("RUN_ONCE", "false").lower() in ("true", "1", "yes")
    tenant_id = os.getenv("RUN_TENANT") or None

    try:
        orchestrator, client = build_orchestrator()
    except Exception as e:
        logger.error("Extractor startup failed", extra={"error": str(e)}, exc_info=True)
        sys.exit(1)

    scheduler = ExtractionScheduler(orchestrator, run_once=run_once, tenant_id=tenant_id)

    try:
        await scheduler.start()
    except Exception as e:
        logger.error("Scheduler failed", extra={"error": str(e)}, exc_info=True)
        sys.exit(1)
    finally:
        client.close()


if __name__ == "__main__":
    asyncio.run(main())
