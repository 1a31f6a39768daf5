"""
PX API Client - Multi-Tenant Remote Event Source

Wraps outbound calls to the PX analytics API with bearer authentication,
per-tenant timeouts and retry/backoff, and returns normalized envelopes.

Endpoints:
- GET {api_url}/v1/events/custom  (CUSTOM category)
- GET {api_url}/v1/events         (STANDARD category)
- GET {api_url}/v1/users

Query parameters: pageSize (capped at 1000), scrollId (cursor), from
(incremental runs only).

Usage:
    from apps.extractor.client import PXClient

    with PXClient() as client:
        envelope = client.fetch_page(tenant, EventCategory.CUSTOM, cursor=None, page_size=100)
"""

import logging
from typing import Any, Optional

import httpx

from apps.extractor.normalizer import normalize
from apps.extractor.retry import RetryPolicy
from utils.errors import RemoteRequestError, TransientRemoteError
from utils.schemas import Envelope, EventCategory, TenantConfig

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 1000
FROM_FORMAT = "%Y-%m-%dT%H:%M:%S"
RETRYABLE_STATUS = frozenset({408, 429})

_CATEGORY_PATHS = {
    EventCategory.CUSTOM: "/v1/events/custom",
    EventCategory.STANDARD: "/v1/events",
}


class PXClient:
    """HTTP client for the PX API, shared by all tenant workers."""

    def __init__(
        self,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """
        Initialize client.

        Args:
            retry_policy: Backoff policy, defaults to RetryPolicy.from_settings()
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.http = httpx.Client(
            transport=transport,
            headers={"Accept": "application/json", "Content-Type": "application/json"},
        )

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "PXClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def fetch_page(
        self,
        tenant: TenantConfig,
        category: EventCategory | str,
        cursor: Optional[str],
        page_size: Optional[int],
    ) -> Envelope:
        """
        Fetch one page of events for a tenant and category.

        A "from" filter built from the last successful extraction is attached
        only on the first page of an incremental run; a cursor already encodes
        the position.

        Args:
            tenant: Tenant to fetch for
            category: CUSTOM or STANDARD
            cursor: Cursor returned by the previous page, None for the first
            page_size: Requested page size, clamped to 1000

        Returns:
            Normalized envelope

        Raises:
            ConfigurationError: If the category is unknown
            TransientRemoteError: If every attempt failed transiently
            RemoteRequestError: On a non-retriable HTTP status
            ResponseParseError: If the body cannot be normalized
        """
        category = EventCategory.parse(category)
        params = self._page_params(cursor, page_size)
        if not cursor and tenant.last_successful_extraction is not None:
            params["from"] = tenant.last_successful_extraction.strftime(FROM_FORMAT)

        url = tenant.api_url + _CATEGORY_PATHS[category]
        logger.debug(
            "Fetching events",
            extra={"tenant_id": tenant.tenant_id, "category": category.value, "url": url, "params": params},
        )
        return self._get_with_retry(tenant, url, params)

    def fetch_users(
        self,
        tenant: TenantConfig,
        cursor: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> Envelope:
        """Fetch one page of users for a tenant."""
        url = tenant.api_url + "/v1/users"
        return self._get_with_retry(tenant, url, self._page_params(cursor, page_size))

    def test_connection(self, tenant: TenantConfig) -> bool:
        """
        Minimal single-item fetch used for onboarding and extraction pre-flight.

        Returns:
            True on a 2xx response, False on any error
        """
        try:
            response = self._get(tenant, tenant.api_url + "/v1/users", {"pageSize": 1})
            return response.is_success
        except Exception as e:
            logger.warning(
                "Connection test failed",
                extra={"tenant_id": tenant.tenant_id, "error": str(e)},
            )
            return False

    def _page_params(self, cursor: Optional[str], page_size: Optional[int]) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if page_size is not None and page_size > 0:
            params["pageSize"] = min(page_size, MAX_PAGE_SIZE)
        if cursor:
            params["scrollId"] = cursor
        return params

    def _get(self, tenant: TenantConfig, url: str, params: dict[str, Any]) -> httpx.Response:
        return self.http.get(
            url,
            params=params,
            headers={"Authorization": f"Bearer {tenant.api_key}"},
            timeout=tenant.timeout_seconds,
        )

    def _get_with_retry(self, tenant: TenantConfig, url: str, params: dict[str, Any]) -> Envelope:
        policy = self.retry_policy.with_max_attempts(tenant.max_retry_attempts)
        return policy.call(self._attempt, tenant, url, params)

    def _attempt(self, tenant: TenantConfig, url: str, params: dict[str, Any]) -> Envelope:
        """Single request; classifies failures for the retry policy."""
        try:
            response = self._get(tenant, url, params)
        except httpx.TransportError as e:
            raise TransientRemoteError(f"{type(e).__name__}: {e}") from e

        status = response.status_code
        if status >= 500 or status in RETRYABLE_STATUS:
            raise TransientRemoteError(f"Remote returned HTTP {status}", status_code=status)
        if not response.is_success:
            raise RemoteRequestError(f"Remote rejected request with HTTP {status}", status_code=status)

        return normalize(response.content, status)
