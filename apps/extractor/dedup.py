"""
Dedup Gate - (tenant_id, event_id) Existence Check

One gate is created per tenant run and used sequentially by that run's
worker. Besides the store lookup it remembers the pairs it has already
accepted, so an item repeated across pages of the same run is not buffered
twice before the first copy is persisted.
"""

import logging

from utils.repositories import EventRepository

logger = logging.getLogger(__name__)


class DedupGate:
    """Decides whether an event may be inserted."""

    def __init__(self, events: EventRepository) -> None:
        self.events = events
        self._accepted: set[tuple[str, str]] = set()

    def accept(self, tenant_id: str, event_id: str) -> bool:
        """
        Args:
            tenant_id: Tenant owning the event
            event_id: Event identifier, unique per tenant

        Returns:
            True if the pair was never stored nor accepted in this run
        """
        key = (tenant_id, event_id)
        if key in self._accepted:
            return False
        if self.events.exists(tenant_id, event_id):
            return False
        self._accepted.add(key)
        return True
