"""
Tenant Seeding - Initial Tenant Configurations

Loads tenant definitions from a JSON file (a list of tenant objects) and
inserts the ones not yet stored. Existing tenants are never modified, so
the file can stay in place across restarts.
"""

import logging
from pathlib import Path

import orjson
from pydantic import ValidationError

from utils.repositories import TenantRepository
from utils.schemas import TenantConfig

logger = logging.getLogger(__name__)


def seed_tenants(path: str, tenants: TenantRepository) -> int:
    """
    Insert tenants from a JSON seed file.

    Args:
        path: Path to the JSON file
        tenants: Tenant store

    Returns:
        Number of tenants inserted

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not a JSON list
    """
    seed_path = Path(path)
    if not seed_path.is_file():
        raise FileNotFoundError(f"Tenant seed file not found: {path}")

    try:
        entries = orjson.loads(seed_path.read_bytes())
    except orjson.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in tenant seed file {path}: {e}") from e

    if not isinstance(entries, list):
        raise ValueError(f"Tenant seed file must contain a JSON list: {path}")

    inserted = 0
    for index, entry in enumerate(entries):
        try:
            tenant = TenantConfig.model_validate(entry)
        except ValidationError as e:
            logger.warning(
                "Skipping invalid tenant entry",
                extra={"file_path": path, "index": index, "error": str(e)},
            )
            continue

        if tenants.find_by_tenant_id(tenant.tenant_id) is not None:
            continue

        tenants.save(tenant)
        inserted += 1

    logger.info(
        "Tenant seeding completed",
        extra={"file_path": path, "inserted": inserted, "total": len(tenants.find_all())},
    )
    return inserted
