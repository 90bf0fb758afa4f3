"""Point-in-time view of every partition."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .groups import PreMatchedGroup
    from .records import Record, ReviewEntry


@dataclass(frozen=True, slots=True, kw_only=True)
class ReconciliationSnapshot:
    """Ordered content of all partitions for one company and period.

    Returned by the ingestion collaborator and by ``PartitionStore.snapshot``;
    equality is order-sensitive.
    """

    unmatched_left: tuple[Record, ...] = ()
    unmatched_right: tuple[Record, ...] = ()
    follow_up: tuple[ReviewEntry, ...] = ()
    resolved: tuple[ReviewEntry, ...] = ()
    pre_matched: tuple[PreMatchedGroup, ...] = ()

    @property
    def record_count(self) -> int:
        return (
            len(self.unmatched_left)
            + len(self.unmatched_right)
            + len(self.follow_up)
            + len(self.resolved)
            + sum(len(group.records) for group in self.pre_matched)
        )
