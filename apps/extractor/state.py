"""
Tenant State Tracker - Extraction Bookkeeping

Records per-tenant attempt, success and error timestamps and the two
per-category cursors, and answers the orchestrator's eligibility query.
Only the extraction-state columns are written, never tenant configuration.
"""

import logging
from datetime import datetime
from typing import Optional

from utils.repositories import TenantRepository
from utils.schemas import EventCategory, TenantConfig, utcnow

logger = logging.getLogger(__name__)


class TenantStateTracker:
    """Reads eligibility from, and writes lifecycle state to, the tenant store."""

    def __init__(self, tenants: TenantRepository) -> None:
        self.tenants = tenants

    def eligible(self, now: Optional[datetime] = None) -> list[TenantConfig]:
        return self.tenants.find_eligible_for_extraction(now or utcnow())

    def get(self, tenant_id: str) -> Optional[TenantConfig]:
        return self.tenants.find_by_tenant_id(tenant_id)

    def mark_attempt(self, tenant: TenantConfig, now: Optional[datetime] = None) -> None:
        tenant.last_attempted_extraction = now or utcnow()
        self.tenants.update_extraction_state(tenant)

    def mark_success(self, tenant: TenantConfig, now: Optional[datetime] = None) -> None:
        tenant.last_successful_extraction = now or utcnow()
        tenant.last_extraction_error = None
        self.tenants.update_extraction_state(tenant)

    def mark_failure(self, tenant: TenantConfig, error: str) -> None:
        tenant.last_extraction_error = error
        self.tenants.update_extraction_state(tenant)

    def advance_cursor(
        self,
        tenant: TenantConfig,
        category: EventCategory,
        cursor: Optional[str],
    ) -> None:
        """Persist the cursor right after a page is stored so a crash resumes there."""
        tenant.set_cursor(category, cursor)
        self.tenants.update_extraction_state(tenant)
        logger.debug(
            "Cursor advanced",
            extra={"tenant_id": tenant.tenant_id, "category": category.value, "cursor": cursor},
        )
