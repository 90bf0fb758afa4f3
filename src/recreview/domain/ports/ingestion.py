"""Port for loading the authoritative reconciliation state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from recreview.domain.model import ReconciliationSnapshot


@runtime_checkable
class SnapshotLoader(Protocol):
    """Return unmatched records, review entries and auto-matcher suggestions.

    How the pre-matched groups are computed is owned by the collaborator.
    """

    async def load(self, *, company_id: str, period: str) -> ReconciliationSnapshot: ...


__all__ = ["SnapshotLoader"]
