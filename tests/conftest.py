"""Shared fixtures: temporary SQLite stores, tenant factory and a fake PX API.

The fake API is served through httpx.MockTransport so every request the
client makes can be inspected and failures can be injected per endpoint.
"""

from datetime import datetime, timezone
from typing import Any, Callable

import httpx
import pytest

from apps.extractor.client import PXClient
from apps.extractor.extractor import TenantExtractor
from apps.extractor.retry import RetryPolicy
from apps.extractor.state import TenantStateTracker
from tests.fakes import BASE_URL, FakePXApi
from utils.db import init_schema
from utils.repositories import EventRepository, TenantRepository
from utils.schemas import TenantConfig


@pytest.fixture
def db_path(tmp_path) -> str:
    path = str(tmp_path / "extractor.db")
    init_schema(path)
    return path


@pytest.fixture
def tenant_repo(db_path) -> TenantRepository:
    return TenantRepository(db_path)


@pytest.fixture
def event_repo(db_path) -> EventRepository:
    return EventRepository(db_path)


@pytest.fixture
def tracker(tenant_repo) -> TenantStateTracker:
    return TenantStateTracker(tenant_repo)


@pytest.fixture
def make_tenant(tenant_repo) -> Callable[..., TenantConfig]:
    """Create and persist a tenant; keyword arguments override defaults."""

    def _make(tenant_id: str = "tenant-001", **overrides: Any) -> TenantConfig:
        fields: dict[str, Any] = {
            "tenant_id": tenant_id,
            "company_name": "Acme Corporation",
            "api_url": BASE_URL,
            "api_key": f"key-{tenant_id}",
        }
        fields.update(overrides)
        return tenant_repo.save(TenantConfig(**fields))

    return _make


@pytest.fixture
def fake_api() -> FakePXApi:
    return FakePXApi()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def retry_policy(sleeps) -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=1.0, multiplier=2.0, sleep=sleeps.append)


@pytest.fixture
def px_client(fake_api, retry_policy):
    client = PXClient(retry_policy=retry_policy, transport=httpx.MockTransport(fake_api.handler))
    yield client
    client.close()


@pytest.fixture
def page_sleeps() -> list[float]:
    return []


@pytest.fixture
def extractor(px_client, event_repo, tracker, page_sleeps) -> TenantExtractor:
    return TenantExtractor(
        px_client,
        event_repo,
        tracker,
        page_size=100,
        max_pages=100,
        page_delay=0.1,
        sleep=page_sleeps.append,
    )


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
