"""
Extractor App - Multi-Tenant PX Event Extraction

Responsibilities:
- Scheduled execution (interval + hourly backup via APScheduler)
- Per-tenant resumable pagination with one persisted cursor per category
- Bounded concurrent fan-out across tenants, failures isolated per tenant
- Exponential backoff retries on transient remote failures (tenacity)
- Exactly-once event storage per (tenant_id, event_id)
- Optional Redis Pub/Sub event after each run

Output:
- extracted_events rows in SQLite
- Redis event: channel=extraction.completed, payload={type, ts, succeeded, failed, ...}
"""
