"""Shared integration list with last-writer-wins updates per integration id."""

import itertools
import logging

from .models import Integration

logger = logging.getLogger(__name__)


class IntegrationStore:
    """
    In-memory integration records keyed by id.

    Every write carries the sequence number taken when the request that
    produced it was issued. A write older than the stamp already held for an
    id is dropped, so a slow list refresh cannot overwrite the record a
    connect just saved. Removals leave a tombstone stamp for the same reason.
    """

    def __init__(self):
        self._counter = itertools.count(1)
        self._records: dict[str, Integration] = {}
        self._stamps: dict[str, int] = {}
        self._tombstones: set[str] = set()

    def next_seq(self) -> int:
        """Take a sequence number before issuing a request."""
        return next(self._counter)

    def _accepts(self, integration_id: str, seq: int) -> bool:
        return seq >= self._stamps.get(integration_id, 0)

    def upsert(self, integration: Integration, seq: int) -> bool:
        """
        Insert or replace one record.

        Returns:
            True if the write was applied, False if a newer write won
        """
        if not self._accepts(integration.id, seq):
            logger.debug(f"Dropping stale write for integration {integration.id} (seq {seq})")
            return False
        self._records[integration.id] = integration
        self._stamps[integration.id] = seq
        self._tombstones.discard(integration.id)
        return True

    def replace_all(self, integrations: list[Integration], seq: int) -> None:
        """
        Apply a full list refresh.

        Records absent from the list are removed unless a newer write for
        them has landed since the list request was issued.
        """
        listed = {integration.id for integration in integrations}

        for integration_id in list(self._records):
            if integration_id not in listed and self._accepts(integration_id, seq):
                del self._records[integration_id]
                self._stamps[integration_id] = seq

        for integration in integrations:
            self.upsert(integration, seq)

    def remove(self, integration_id: str, seq: int) -> bool:
        """Remove a record and leave a tombstone at seq."""
        if not self._accepts(integration_id, seq):
            return False
        self._records.pop(integration_id, None)
        self._stamps[integration_id] = seq
        self._tombstones.add(integration_id)
        return True

    def get(self, integration_id: str) -> Integration | None:
        return self._records.get(integration_id)

    def is_removed(self, integration_id: str) -> bool:
        return integration_id in self._tombstones

    def __contains__(self, integration_id: str) -> bool:
        return integration_id in self._records

    def snapshot(self) -> tuple[Integration, ...]:
        """Current records in insertion order."""
        return tuple(self._records.values())
