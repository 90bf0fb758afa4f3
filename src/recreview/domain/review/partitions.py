"""Partition store: the single source of truth for where a record lives.

Every mutation validates all of its preconditions before touching state and
then applies a changeset. The changeset is kept on the returned
``Transition``; reverting it is the precomputed inverse used for rollback.

Unmatched records are listed in ingestion order (a record that returns to
unmatched takes its original place back). Follow-up and resolved entries are
listed in the order they entered the partition; reverting a changeset restores
the original positions, so a rolled back store compares equal to its
pre-action snapshot.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import UTC, datetime
from functools import partial
from typing import TYPE_CHECKING, Protocol

from recreview.domain.errors import InvariantViolation, ValidationError
from recreview.domain.model import (
    ActionKind,
    Disposition,
    DispositionStatus,
    MatchGroup,
    MatchOrigin,
    Partition,
    PreMatchedGroup,
    ReconciliationSnapshot,
    Record,
    ReviewEntry,
    Side,
    format_key,
    new_match_group_id,
    synthetic_group_id,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from recreview.domain.model import RecordId, RecordKey, RecordPatch

type ResolutionTarget = RecordKey | str

_SINGLE_RECORD_STATUSES = frozenset(
    {
        DispositionStatus.APPROVED_FOR_ENTRY,
        DispositionStatus.REVERSED_ENTRY,
        DispositionStatus.TIMING_DIFFERENCE,
        DispositionStatus.IGNORED,
    }
)
_SYNTHETIC_STATUSES = frozenset({DispositionStatus.TIMING_DIFFERENCE, DispositionStatus.IGNORED})


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


class _Bucket[K, V]:
    """Keyed partition with an explicit listing position per item."""

    __slots__ = ("_items", "_positions")

    def __init__(self) -> None:
        self._items: dict[K, V] = {}
        self._positions: dict[K, int] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[K]:
        return iter(self._items)

    def get(self, key: K) -> V | None:
        return self._items.get(key)

    def position(self, key: K) -> int:
        return self._positions[key]

    def put(self, key: K, value: V, position: int) -> None:
        self._items[key] = value
        self._positions[key] = position

    def pop(self, key: K) -> V:
        del self._positions[key]
        return self._items.pop(key)

    def ordered(self) -> tuple[V, ...]:
        keys = sorted(self._items, key=self._positions.__getitem__)
        return tuple(self._items[key] for key in keys)


@dataclass(slots=True)
class _State:
    unmatched: _Bucket[RecordKey, Record] = field(default_factory=_Bucket)
    follow_up: _Bucket[RecordKey, ReviewEntry] = field(default_factory=_Bucket)
    resolved: _Bucket[RecordKey, ReviewEntry] = field(default_factory=_Bucket)
    pre_matched: _Bucket[str, PreMatchedGroup] = field(default_factory=_Bucket)
    pre_matched_index: dict[RecordKey, str] = field(default_factory=dict["RecordKey", "str"])
    groups: dict[str, MatchGroup] = field(default_factory=dict["str", "MatchGroup"])
    sequence: dict[RecordKey, int] = field(default_factory=dict["RecordKey", "int"])
    counter: Iterator[int] = field(default_factory=itertools.count)

    def bucket(self, partition: Partition) -> _Bucket[RecordKey, Record] | _Bucket[
        RecordKey, ReviewEntry
    ]:
        if partition is Partition.UNMATCHED:
            return self.unmatched
        if partition is Partition.FOLLOW_UP:
            return self.follow_up
        if partition is Partition.RESOLVED:
            return self.resolved
        raise InvariantViolation(f"{partition} is not a per-record partition")

    def add_pre_matched(self, group: PreMatchedGroup, position: int) -> None:
        self.pre_matched.put(group.id, group, position)
        for record in group.records:
            self.pre_matched_index[record.key] = group.id

    def remove_pre_matched(self, group_id: str) -> PreMatchedGroup:
        group = self.pre_matched.pop(group_id)
        for record in group.records:
            del self.pre_matched_index[record.key]
        return group


@dataclass(frozen=True, slots=True)
class _Placement:
    """Where a record sits; ``partition=None`` means it does not exist."""

    partition: Partition | None
    value: Record | ReviewEntry | None = None
    position: int | None = None


@dataclass(frozen=True, slots=True)
class _Move:
    key: RecordKey
    before: _Placement
    after: _Placement


@dataclass(slots=True)
class _Changeset:
    moves: list[_Move] = field(default_factory=list["_Move"])
    groups_added: list[MatchGroup] = field(default_factory=list["MatchGroup"])
    groups_removed: list[MatchGroup] = field(default_factory=list["MatchGroup"])
    pre_matched_removed: list[tuple[PreMatchedGroup, int]] = field(
        default_factory=list[tuple["PreMatchedGroup", "int"]]
    )


@dataclass(frozen=True, slots=True, kw_only=True)
class Transition:
    """An applied optimistic mutation and its inverse.

    ``records`` are the pre-action values of every record involved and
    ``entries`` the review entries the action removed.
    """

    action: ActionKind
    record_keys: tuple[RecordKey, ...]
    records: tuple[Record, ...]
    undo: Callable[[], None]
    entries: tuple[ReviewEntry, ...] = ()
    group_id: str | None = None


class PartitionStore:
    """Holds unmatched, follow-up, resolved and pre-matched partitions."""

    def __init__(
        self,
        snapshot: ReconciliationSnapshot | None = None,
        *,
        clock: Clock = _utcnow,
    ) -> None:
        self._clock = clock
        self._state = _State()
        self._revision = 0
        if snapshot is not None:
            self.load(snapshot)

    # ------------------------------------------------------------------ reads

    @property
    def revision(self) -> int:
        """Counter bumped by every change; lets projections detect staleness."""
        return self._revision

    def unmatched(self, side: Side) -> tuple[Record, ...]:
        return tuple(record for record in self._state.unmatched.ordered() if record.side is side)

    @property
    def follow_up(self) -> tuple[ReviewEntry, ...]:
        return self._state.follow_up.ordered()

    @property
    def resolved(self) -> tuple[ReviewEntry, ...]:
        return self._state.resolved.ordered()

    @property
    def pre_matched(self) -> tuple[PreMatchedGroup, ...]:
        return self._state.pre_matched.ordered()

    @property
    def match_groups(self) -> tuple[MatchGroup, ...]:
        return tuple(self._state.groups.values())

    def group(self, group_id: str) -> MatchGroup | None:
        return self._state.groups.get(group_id)

    def pre_matched_group(self, group_id: str) -> PreMatchedGroup | None:
        return self._state.pre_matched.get(group_id)

    def locate(self, key: RecordKey) -> Partition | None:
        return self._placement(key).partition

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple):
            return False
        return self._placement(key).partition is not None  # type: ignore[arg-type]

    def record(self, key: RecordKey) -> Record | None:
        placement = self._placement(key)
        if placement.partition is Partition.PRE_MATCHED:
            group = self._state.pre_matched.get(self._state.pre_matched_index[key])
            assert group is not None
            return next(record for record in group.records if record.key == key)
        value = placement.value
        if isinstance(value, ReviewEntry):
            return value.record
        return value

    def entry(self, key: RecordKey) -> ReviewEntry | None:
        return self._state.follow_up.get(key) or self._state.resolved.get(key)

    def entries_in_group(self, group_id: str) -> tuple[ReviewEntry, ...]:
        return tuple(entry for entry in self.resolved if entry.match_group_id == group_id)

    def snapshot(self) -> ReconciliationSnapshot:
        return ReconciliationSnapshot(
            unmatched_left=self.unmatched(Side.LEFT),
            unmatched_right=self.unmatched(Side.RIGHT),
            follow_up=self.follow_up,
            resolved=self.resolved,
            pre_matched=self.pre_matched,
        )

    def resolution_members(
        self,
        target: ResolutionTarget,
        *,
        action: ActionKind = ActionKind.REVERSE_RESOLUTION,
    ) -> tuple[str | None, tuple[RecordKey, ...]]:
        """Return the group id and every record key a reversal of ``target`` restores."""

        if isinstance(target, str):
            keys = tuple(entry.key for entry in self.entries_in_group(target))
            if not keys:
                raise ValidationError(
                    f"No resolved records belong to group {target}",
                    action=action,
                    group_id=target,
                )
            return target, keys

        entry = self._state.resolved.get(target)
        if entry is None:
            raise ValidationError(
                f"Record {format_key(target)} is not resolved",
                action=action,
                record_keys=(target,),
            )
        group_id = entry.match_group_id
        if group_id is None:
            return None, (target,)
        return group_id, tuple(e.key for e in self.entries_in_group(group_id))

    # ------------------------------------------------------------------ load

    def load(self, snapshot: ReconciliationSnapshot) -> None:
        """Replace all partitions with ``snapshot``.

        The new state is built aside and only swapped in once it is consistent.
        """

        state = _State()
        for expected_side, records in (
            (Side.LEFT, snapshot.unmatched_left),
            (Side.RIGHT, snapshot.unmatched_right),
        ):
            for record in records:
                if record.side is not expected_side:
                    raise InvariantViolation(
                        f"Record {format_key(record.key)} listed as unmatched {expected_side}"
                    )
                _claim(state, record.key)
                state.unmatched.put(record.key, record, state.sequence[record.key])
        for entries, bucket in (
            (snapshot.follow_up, state.follow_up),
            (snapshot.resolved, state.resolved),
        ):
            for entry in entries:
                _claim(state, entry.key)
                bucket.put(entry.key, entry, next(state.counter))
        for pre_matched in snapshot.pre_matched:
            if pre_matched.id in state.pre_matched:
                raise InvariantViolation(f"Duplicate pre-matched group {pre_matched.id}")
            for record in pre_matched.records:
                _claim(state, record.key)
            state.add_pre_matched(pre_matched, next(state.counter))
        state.groups = _groups_from_entries(state.resolved.ordered())

        _check_state(state)
        self._state = state
        self._revision += 1

    # ------------------------------------------------------------- mutations

    def match(
        self,
        left_ids: Iterable[RecordId],
        right_ids: Iterable[RecordId],
        *,
        group_id: str | None = None,
    ) -> Transition:
        action = ActionKind.MATCH_RECORDS
        left = _unique(left_ids)
        right = _unique(right_ids)
        keys = tuple((Side.LEFT, i) for i in left) + tuple((Side.RIGHT, i) for i in right)
        if not left or not right:
            raise ValidationError(
                "Select at least one record from each side to match",
                action=action,
                record_keys=keys,
            )
        records = self._require_unmatched(keys, action=action)

        new_group_id = group_id or new_match_group_id()
        if new_group_id in self._state.groups or new_group_id in self._state.pre_matched:
            raise ValidationError(
                f"Match group {new_group_id} already exists",
                action=action,
                record_keys=keys,
                group_id=new_group_id,
            )
        now = self._clock()
        group = MatchGroup(
            id=new_group_id,
            left_record_ids=frozenset(left),
            right_record_ids=frozenset(right),
            created_at=now,
            origin=MatchOrigin.MANUAL,
        )
        disposition = Disposition(
            status=DispositionStatus.MATCHED,
            resolved_at=now,
            match_group_id=new_group_id,
        )
        changeset = _Changeset(groups_added=[group])
        for record in records:
            changeset.moves.append(
                self._move(record.key, Partition.RESOLVED, ReviewEntry(record, disposition))
            )
        return self._commit(action, changeset, records=records, group_id=new_group_id)

    def resolve(
        self,
        key: RecordKey,
        status: DispositionStatus,
        *,
        action: ActionKind,
    ) -> Transition:
        """Move one unmatched record to resolved with a single-record status."""

        if status not in _SINGLE_RECORD_STATUSES:
            raise ValueError(f"{status} is not a single-record resolution")
        if status is DispositionStatus.REVERSED_ENTRY and key[0] is not Side.RIGHT:
            raise ValidationError(
                "Only right-side records can be reversed with an entry",
                action=action,
                record_keys=(key,),
            )
        (record,) = self._require_unmatched((key,), action=action)
        group_id = self._synthetic_group_id(status, key) if status in _SYNTHETIC_STATUSES else None
        disposition = Disposition(status=status, resolved_at=self._clock(), match_group_id=group_id)
        changeset = _Changeset(
            moves=[self._move(key, Partition.RESOLVED, ReviewEntry(record, disposition))]
        )
        return self._commit(action, changeset, records=(record,), group_id=group_id)

    def flag_follow_up(self, key: RecordKey, note: str) -> Transition:
        action = ActionKind.REQUEST_FOLLOW_UP
        cleaned = note.strip() if note else ""
        if not cleaned:
            raise ValidationError(
                "A follow-up request needs a note",
                action=action,
                record_keys=(key,),
            )
        (record,) = self._require_unmatched((key,), action=action)
        disposition = Disposition(
            status=DispositionStatus.FOLLOW_UP,
            resolved_at=self._clock(),
            note=cleaned,
        )
        changeset = _Changeset(
            moves=[self._move(key, Partition.FOLLOW_UP, ReviewEntry(record, disposition))]
        )
        return self._commit(action, changeset, records=(record,))

    def return_follow_up(self, key: RecordKey) -> Transition:
        action = ActionKind.RETURN_FOLLOW_UP
        entry = self._state.follow_up.get(key)
        if entry is None:
            raise ValidationError(
                f"Record {format_key(key)} is not awaiting follow-up",
                action=action,
                record_keys=(key,),
            )
        changeset = _Changeset(moves=[self._move(key, Partition.UNMATCHED, entry.record)])
        return self._commit(action, changeset, records=(entry.record,), entries=(entry,))

    def reverse_resolution(self, target: ResolutionTarget) -> Transition:
        """Return a resolution to unmatched; a shared group id reverses the whole group."""

        group_id, keys = self.resolution_members(target)
        entries = tuple(self._state.resolved.get(key) for key in keys)
        changeset = _Changeset()
        for entry in entries:
            assert entry is not None
            changeset.moves.append(self._move(entry.key, Partition.UNMATCHED, entry.record))
        if group_id is not None and group_id in self._state.groups:
            changeset.groups_removed.append(self._state.groups[group_id])
        return self._commit(
            ActionKind.REVERSE_RESOLUTION,
            changeset,
            records=tuple(entry.record for entry in entries if entry is not None),
            entries=tuple(entry for entry in entries if entry is not None),
            group_id=group_id,
        )

    def unmatch_pre_matched(self, group_id: str) -> Transition:
        action = ActionKind.UNMATCH_PRE_MATCHED
        pre_matched = self._state.pre_matched.get(group_id)
        if pre_matched is None:
            if group_id in self._state.groups:
                message = f"Group {group_id} was matched manually; reverse the resolution instead"
            else:
                message = f"No pre-matched group {group_id}"
            raise ValidationError(message, action=action, group_id=group_id)
        changeset = _Changeset(
            pre_matched_removed=[(pre_matched, self._state.pre_matched.position(group_id))]
        )
        for record in pre_matched.records:
            changeset.moves.append(self._move(record.key, Partition.UNMATCHED, record))
        return self._commit(action, changeset, records=pre_matched.records, group_id=group_id)

    def edit(self, key: RecordKey, patch: RecordPatch) -> Transition:
        """Patch a record in place; partition and disposition are unchanged."""

        action = ActionKind.EDIT_RECORD
        if patch.is_empty:
            raise ValidationError("Nothing to update", action=action, record_keys=(key,))
        placement = self._placement(key)
        value = placement.value
        if isinstance(value, Record):
            updated: Record | ReviewEntry = value.patched(patch)
            original = value
        elif isinstance(value, ReviewEntry):
            updated = value.with_record(value.record.patched(patch))
            original = value.record
        else:
            where = "pre-matched" if placement.partition is Partition.PRE_MATCHED else "unknown"
            raise ValidationError(
                f"Record {format_key(key)} is {where} and cannot be edited",
                action=action,
                record_keys=(key,),
            )
        after = _Placement(placement.partition, updated, placement.position)
        changeset = _Changeset(moves=[_Move(key, placement, after)])
        return self._commit(action, changeset, records=(original,))

    def delete(self, key: RecordKey) -> Transition:
        action = ActionKind.DELETE_RECORD
        (record,) = self._require_unmatched((key,), action=action)
        changeset = _Changeset(moves=[_Move(key, self._placement(key), _Placement(None))])
        return self._commit(action, changeset, records=(record,))

    def adopt_group_id(self, current_id: str, new_id: str) -> None:
        """Re-key a confirmed manual group to the id assigned by the remote side."""

        if current_id == new_id:
            return
        group = self._state.groups.get(current_id)
        if group is None:
            raise InvariantViolation(f"Cannot re-key unknown group {current_id}")
        if new_id in self._state.groups or new_id in self._state.pre_matched:
            raise InvariantViolation(f"Cannot re-key {current_id}: group {new_id} already exists")
        resolved = self._state.resolved
        for key in [k for k in resolved if group.contains(k)]:
            entry = resolved.get(key)
            assert entry is not None
            resolved.put(key, entry.with_group_id(new_id), resolved.position(key))
        del self._state.groups[current_id]
        self._state.groups[new_id] = group.with_id(new_id)
        self._revision += 1

    # ------------------------------------------------------------ invariants

    def check_invariants(self) -> None:
        """Raise ``InvariantViolation`` unless partitions are exclusive and groups symmetric."""
        _check_state(self._state)

    # ------------------------------------------------------------- internals

    def _placement(self, key: RecordKey) -> _Placement:
        state = self._state
        for partition in (Partition.UNMATCHED, Partition.FOLLOW_UP, Partition.RESOLVED):
            bucket = state.bucket(partition)
            value = bucket.get(key)
            if value is not None:
                return _Placement(partition, value, bucket.position(key))
        if key in state.pre_matched_index:
            return _Placement(Partition.PRE_MATCHED)
        return _Placement(None)

    def _require_unmatched(
        self,
        keys: tuple[RecordKey, ...],
        *,
        action: ActionKind,
    ) -> tuple[Record, ...]:
        records: list[Record] = []
        missing: list[RecordKey] = []
        for key in keys:
            record = self._state.unmatched.get(key)
            if record is None:
                missing.append(key)
            else:
                records.append(record)
        if missing:
            listed = ", ".join(format_key(key) for key in missing)
            raise ValidationError(
                f"Not in the unmatched partition: {listed}",
                action=action,
                record_keys=keys,
            )
        return tuple(records)

    def _move(self, key: RecordKey, partition: Partition, value: Record | ReviewEntry) -> _Move:
        if partition is Partition.UNMATCHED:
            position = self._state.sequence[key]
        else:
            position = next(self._state.counter)
        return _Move(key, self._placement(key), _Placement(partition, value, position))

    def _synthetic_group_id(self, status: DispositionStatus, key: RecordKey) -> str:
        side, record_id = key
        group_id = synthetic_group_id(status, record_id)
        if self.entries_in_group(group_id):
            # the same id exists on the other side of the pair
            group_id = synthetic_group_id(status, f"{side}-{record_id}")
        return group_id

    def _commit(
        self,
        action: ActionKind,
        changeset: _Changeset,
        *,
        records: tuple[Record, ...],
        entries: tuple[ReviewEntry, ...] = (),
        group_id: str | None = None,
    ) -> Transition:
        self._apply(changeset)
        return Transition(
            action=action,
            record_keys=tuple(move.key for move in changeset.moves),
            records=records,
            entries=entries,
            group_id=group_id,
            undo=partial(self._revert, changeset),
        )

    def _apply(self, changeset: _Changeset) -> None:
        state = self._state
        for group in changeset.groups_removed:
            del state.groups[group.id]
        for pre_matched, _position in changeset.pre_matched_removed:
            state.remove_pre_matched(pre_matched.id)
        for move in changeset.moves:
            self._leave(move.key, move.before)
        for move in changeset.moves:
            self._enter(move.key, move.after)
        for group in changeset.groups_added:
            state.groups[group.id] = group
        self._revision += 1

    def _revert(self, changeset: _Changeset) -> None:
        self._verify_revertible(changeset)
        state = self._state
        for group in changeset.groups_added:
            del state.groups[group.id]
        for move in changeset.moves:
            self._leave(move.key, move.after)
        for move in changeset.moves:
            self._enter(move.key, move.before)
        for pre_matched, position in changeset.pre_matched_removed:
            state.add_pre_matched(pre_matched, position)
        for group in changeset.groups_removed:
            state.groups[group.id] = group
        self._revision += 1

    def _verify_revertible(self, changeset: _Changeset) -> None:
        state = self._state
        for move in changeset.moves:
            current = self._placement(move.key)
            if current.partition is not move.after.partition or current.value != move.after.value:
                raise InvariantViolation(
                    f"Record {format_key(move.key)} changed since the action was applied"
                )
        for group in changeset.groups_added:
            if state.groups.get(group.id) != group:
                raise InvariantViolation(f"Group {group.id} changed since the action was applied")
        for group in changeset.groups_removed:
            if group.id in state.groups:
                raise InvariantViolation(f"Group {group.id} was re-created in the meantime")
        for pre_matched, _position in changeset.pre_matched_removed:
            if pre_matched.id in state.pre_matched:
                raise InvariantViolation(f"Pre-matched group {pre_matched.id} already restored")

    def _leave(self, key: RecordKey, placement: _Placement) -> None:
        if placement.partition in (Partition.UNMATCHED, Partition.FOLLOW_UP, Partition.RESOLVED):
            self._state.bucket(placement.partition).pop(key)

    def _enter(self, key: RecordKey, placement: _Placement) -> None:
        if placement.partition in (Partition.UNMATCHED, Partition.FOLLOW_UP, Partition.RESOLVED):
            assert placement.value is not None
            assert placement.position is not None
            bucket = self._state.bucket(placement.partition)
            bucket.put(key, placement.value, placement.position)  # type: ignore[arg-type]


def _unique(ids: Iterable[RecordId]) -> tuple[RecordId, ...]:
    return tuple(dict.fromkeys(ids))


def _claim(state: _State, key: RecordKey) -> None:
    if key in state.sequence:
        raise InvariantViolation(f"Record {format_key(key)} appears in more than one partition")
    state.sequence[key] = next(state.counter)


def _groups_from_entries(entries: Iterable[ReviewEntry]) -> dict[str, MatchGroup]:
    members: dict[str, list[ReviewEntry]] = {}
    for entry in entries:
        if entry.status is not DispositionStatus.MATCHED:
            continue
        if entry.match_group_id is None:
            raise InvariantViolation(f"Matched record {format_key(entry.key)} has no group id")
        members.setdefault(entry.match_group_id, []).append(entry)

    groups: dict[str, MatchGroup] = {}
    for group_id, grouped in members.items():
        try:
            groups[group_id] = MatchGroup(
                id=group_id,
                left_record_ids=frozenset(e.record.id for e in grouped if e.side is Side.LEFT),
                right_record_ids=frozenset(e.record.id for e in grouped if e.side is Side.RIGHT),
                created_at=min(e.disposition.resolved_at for e in grouped),
                origin=MatchOrigin.MANUAL,
            )
        except ValueError as exc:
            raise InvariantViolation(str(exc)) from exc
    return groups


def _check_state(state: _State) -> None:
    seen: dict[RecordKey, Partition] = {}

    def claim(key: RecordKey, partition: Partition) -> None:
        previous = seen.get(key)
        if previous is not None:
            raise InvariantViolation(
                f"Record {format_key(key)} is in both {previous} and {partition}"
            )
        seen[key] = partition

    for key in state.unmatched:
        claim(key, Partition.UNMATCHED)
    for key in state.follow_up:
        claim(key, Partition.FOLLOW_UP)
        entry = state.follow_up.get(key)
        if entry is not None and entry.status is not DispositionStatus.FOLLOW_UP:
            raise InvariantViolation(
                f"Follow-up record {format_key(key)} has status {entry.status}"
            )
    for key in state.resolved:
        claim(key, Partition.RESOLVED)
        entry = state.resolved.get(key)
        if entry is not None and entry.status is DispositionStatus.FOLLOW_UP:
            raise InvariantViolation(f"Resolved record {format_key(key)} has follow-up status")
    for pre_matched in state.pre_matched.ordered():
        for record in pre_matched.records:
            claim(record.key, Partition.PRE_MATCHED)
            if state.pre_matched_index.get(record.key) != pre_matched.id:
                raise InvariantViolation(f"Pre-matched index out of date for {pre_matched.id}")
    if len(state.pre_matched_index) != sum(
        len(group.records) for group in state.pre_matched.ordered()
    ):
        raise InvariantViolation("Pre-matched index references removed groups")

    for key in state.resolved:
        entry = state.resolved.get(key)
        if entry is None or entry.status is not DispositionStatus.MATCHED:
            continue
        group_id = entry.match_group_id
        group = state.groups.get(group_id) if group_id is not None else None
        if group is None or not group.contains(key):
            raise InvariantViolation(
                f"Matched record {format_key(key)} references missing group {group_id}"
            )
    for group in state.groups.values():
        for key in group.record_keys:
            entry = state.resolved.get(key)
            if (
                entry is None
                or entry.status is not DispositionStatus.MATCHED
                or entry.match_group_id != group.id
            ):
                raise InvariantViolation(
                    f"Group {group.id} lists unresolved record {format_key(key)}"
                )


__all__ = ["Clock", "PartitionStore", "ResolutionTarget", "Transition"]
