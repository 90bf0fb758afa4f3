"""Domain port definitions for adapters."""

from __future__ import annotations

from .ingestion import SnapshotLoader
from .journal import JournalEntryNotifier, JournalEntryRequest
from .period_lock import LockStatus, PeriodLockGate
from .persistence import ActionPayload, GatewayReceipt, PersistenceGateway

__all__ = [
    "ActionPayload",
    "GatewayReceipt",
    "JournalEntryNotifier",
    "JournalEntryRequest",
    "LockStatus",
    "PeriodLockGate",
    "PersistenceGateway",
    "SnapshotLoader",
]
