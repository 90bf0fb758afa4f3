"""Presentation grouping of resolved entries.

Grouping is a pure projection of the resolved partition: entries sharing a
``match_group_id`` form one group; entries without one get a synthetic
single-member id so every entry belongs to exactly one group.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from recreview.domain.model import MatchHint, Side, total_amount

if TYPE_CHECKING:
    from collections.abc import Iterable
    from decimal import Decimal

    from recreview.domain.model import RecordKey, ReviewEntry

    from .partitions import PartitionStore

SINGLETON_PREFIX = "single-"


def singleton_group_id(entry: ReviewEntry) -> str:
    side, record_id = entry.key
    return f"{SINGLETON_PREFIX}{entry.disposition.resolved_at.isoformat()}-{side}-{record_id}"


@dataclass(frozen=True, slots=True, kw_only=True)
class ResolvedGroup:
    group_id: str
    entries: tuple[ReviewEntry, ...]
    synthetic: bool = False

    @property
    def is_multi(self) -> bool:
        return len(self.entries) > 1

    @property
    def collapsed_by_default(self) -> bool:
        return self.is_multi

    @property
    def left_entries(self) -> tuple[ReviewEntry, ...]:
        return tuple(entry for entry in self.entries if entry.side is Side.LEFT)

    @property
    def right_entries(self) -> tuple[ReviewEntry, ...]:
        return tuple(entry for entry in self.entries if entry.side is Side.RIGHT)

    @property
    def left_total(self) -> Decimal:
        return total_amount(entry.record for entry in self.left_entries)

    @property
    def right_total(self) -> Decimal:
        return total_amount(entry.record for entry in self.right_entries)

    @property
    def hint(self) -> MatchHint:
        return MatchHint(left_total=self.left_total, right_total=self.right_total)

    @property
    def record_keys(self) -> tuple[RecordKey, ...]:
        return tuple(entry.key for entry in self.entries)


def group_resolved(entries: Iterable[ReviewEntry]) -> tuple[ResolvedGroup, ...]:
    """Group entries by match group id, in order of each group's first entry."""

    buckets: dict[str, list[ReviewEntry]] = {}
    synthetic: set[str] = set()
    for entry in entries:
        group_id = entry.match_group_id
        if group_id is None:
            group_id = singleton_group_id(entry)
            synthetic.add(group_id)
        buckets.setdefault(group_id, []).append(entry)
    return tuple(
        ResolvedGroup(group_id=group_id, entries=tuple(members), synthetic=group_id in synthetic)
        for group_id, members in buckets.items()
    )


class GroupingIndex:
    """Read-only grouping view over a store; holds no state of its own."""

    def __init__(self, store: PartitionStore) -> None:
        self._store = store

    @property
    def groups(self) -> tuple[ResolvedGroup, ...]:
        return group_resolved(self._store.resolved)

    def group_for(self, key: RecordKey) -> ResolvedGroup | None:
        for group in self.groups:
            if key in group.record_keys:
                return group
        return None


@dataclass(slots=True)
class GroupExpansion:
    """Which multi-member groups the user has expanded; purely local."""

    expanded: set[str] = field(default_factory=set["str"])

    def toggle(self, group_id: str) -> bool:
        if group_id in self.expanded:
            self.expanded.discard(group_id)
            return False
        self.expanded.add(group_id)
        return True

    def is_expanded(self, group: ResolvedGroup) -> bool:
        if not group.is_multi:
            return True
        return group.group_id in self.expanded

    def prune(self, groups: Iterable[ResolvedGroup]) -> None:
        """Forget expansion state for groups that no longer exist."""
        self.expanded &= {group.group_id for group in groups}


__all__ = [
    "SINGLETON_PREFIX",
    "GroupExpansion",
    "GroupingIndex",
    "ResolvedGroup",
    "group_resolved",
    "singleton_group_id",
]
