"""Port for the downstream journal-entry generator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from recreview.domain.model import ActionKind, Record


@dataclass(frozen=True, slots=True, kw_only=True)
class JournalEntryRequest:
    """Ask for a suggested (or reversing) journal entry for one record."""

    company_id: str
    period: str
    source: str
    action: ActionKind
    record: Record


@runtime_checkable
class JournalEntryNotifier(Protocol):
    """Fire-and-forget consumer; no return contract."""

    async def notify(self, request: JournalEntryRequest) -> None: ...


__all__ = ["JournalEntryNotifier", "JournalEntryRequest"]
