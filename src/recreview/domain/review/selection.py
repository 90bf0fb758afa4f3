"""Working selection of unmatched records before a manual match."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from recreview.domain.model import MatchHint, Side

if TYPE_CHECKING:
    from recreview.domain.model import Record, RecordId

    from .dispatcher import ActionDispatcher, PendingAction
    from .partitions import PartitionStore


@dataclass(slots=True)
class WorkingSelection:
    left: set[RecordId] = field(default_factory=set["RecordId"])
    right: set[RecordId] = field(default_factory=set["RecordId"])

    def ids(self, side: Side) -> set[RecordId]:
        return self.left if side is Side.LEFT else self.right

    def toggle(self, side: Side, record_id: RecordId) -> bool:
        """Add the record if absent, remove it if present; return the new state."""

        ids = self.ids(side)
        if record_id in ids:
            ids.discard(record_id)
            return False
        ids.add(record_id)
        return True

    def seed(self, side: Side, record_id: RecordId) -> None:
        """Start a fresh selection holding only this record."""

        self.clear()
        self.ids(side).add(record_id)

    def is_selected(self, side: Side, record_id: RecordId) -> bool:
        return record_id in self.ids(side)

    @property
    def is_empty(self) -> bool:
        return not self.left and not self.right

    @property
    def is_matchable(self) -> bool:
        return bool(self.left) and bool(self.right)

    def clear(self) -> None:
        self.left.clear()
        self.right.clear()

    def cancel(self) -> None:
        self.clear()

    def prune(self, store: PartitionStore) -> None:
        """Drop ids that are no longer unmatched."""

        for side in Side:
            unmatched = {record.id for record in store.unmatched(side)}
            self.ids(side).intersection_update(unmatched)

    def selected_records(self, store: PartitionStore) -> tuple[Record, ...]:
        records: list[Record] = []
        for side in Side:
            records.extend(r for r in store.unmatched(side) if r.id in self.ids(side))
        return tuple(records)

    def preview(self, store: PartitionStore) -> MatchHint:
        return MatchHint.from_records(self.selected_records(store))

    def commit(self, dispatcher: ActionDispatcher) -> PendingAction:
        """Match the selection and clear it; a rejected match keeps the selection."""

        store = dispatcher.store
        left = [r.id for r in store.unmatched(Side.LEFT) if r.id in self.left]
        right = [r.id for r in store.unmatched(Side.RIGHT) if r.id in self.right]
        # ids no longer unmatched are passed through so validation can reject them
        left += sorted(self.left - set(left))
        right += sorted(self.right - set(right))
        pending = dispatcher.match_records(left, right)
        self.clear()
        return pending


__all__ = ["WorkingSelection"]
