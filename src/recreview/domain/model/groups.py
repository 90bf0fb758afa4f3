"""Match groups and the amount hint surfaced while matching."""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import TYPE_CHECKING, Final
from uuid import uuid4

from .enums import DispositionStatus, MatchOrigin, Side
from .records import total_amount

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from .records import Record, RecordId, RecordKey

EXACT_MATCH_TOLERANCE: Final[Decimal] = Decimal("0.01")

_SYNTHETIC_PREFIXES: Final[dict[DispositionStatus, str]] = {
    DispositionStatus.TIMING_DIFFERENCE: "timing-",
    DispositionStatus.IGNORED: "ignored-",
}


def new_match_group_id() -> str:
    return f"match-{uuid4().hex}"


def synthetic_group_id(status: DispositionStatus, record_id: RecordId) -> str:
    """Single-record group id used for timing differences and ignored records."""

    try:
        prefix = _SYNTHETIC_PREFIXES[status]
    except KeyError:
        raise ValueError(f"No synthetic group id for status {status}") from None
    return f"{prefix}{record_id}"


def is_synthetic_group_id(group_id: str) -> bool:
    return group_id.startswith(tuple(_SYNTHETIC_PREFIXES.values()))


@dataclass(frozen=True, slots=True, kw_only=True)
class MatchGroup:
    """Atomic linkage between one or more left and one or more right records."""

    id: str
    left_record_ids: frozenset[RecordId]
    right_record_ids: frozenset[RecordId]
    created_at: datetime
    origin: MatchOrigin
    confidence: float | None = None

    def __post_init__(self) -> None:
        if not self.left_record_ids or not self.right_record_ids:
            raise ValueError(f"Match group {self.id} needs at least one record on each side")

    @property
    def record_keys(self) -> frozenset[RecordKey]:
        left = {(Side.LEFT, record_id) for record_id in self.left_record_ids}
        right = {(Side.RIGHT, record_id) for record_id in self.right_record_ids}
        return frozenset(left | right)

    def contains(self, key: RecordKey) -> bool:
        side, record_id = key
        ids = self.left_record_ids if side is Side.LEFT else self.right_record_ids
        return record_id in ids

    def with_id(self, group_id: str) -> MatchGroup:
        return replace(self, id=group_id)


@dataclass(frozen=True, slots=True)
class MatchHint:
    """Advisory side totals for a prospective or committed match."""

    left_total: Decimal
    right_total: Decimal

    @classmethod
    def from_records(cls, records: Iterable[Record]) -> MatchHint:
        collected = list(records)
        return cls(
            left_total=total_amount(r for r in collected if r.side is Side.LEFT),
            right_total=total_amount(r for r in collected if r.side is Side.RIGHT),
        )

    @property
    def difference(self) -> Decimal:
        return abs(self.left_total - self.right_total)

    @property
    def is_exact(self) -> bool:
        return self.difference < EXACT_MATCH_TOLERANCE


@dataclass(frozen=True, slots=True)
class PreMatchedGroup:
    """Auto-matcher suggestion together with the records it owns."""

    group: MatchGroup
    left_records: tuple[Record, ...]
    right_records: tuple[Record, ...]

    def __post_init__(self) -> None:
        if self.group.origin is not MatchOrigin.AUTO:
            raise ValueError(f"Pre-matched group {self.group.id} must originate from auto-matching")
        left_ids = frozenset(r.id for r in self.left_records)
        right_ids = frozenset(r.id for r in self.right_records)
        if left_ids != self.group.left_record_ids or right_ids != self.group.right_record_ids:
            raise ValueError(f"Pre-matched group {self.group.id} records do not match its ids")
        if any(r.side is not Side.LEFT for r in self.left_records) or any(
            r.side is not Side.RIGHT for r in self.right_records
        ):
            raise ValueError(f"Pre-matched group {self.group.id} has records on the wrong side")

    @property
    def id(self) -> str:
        return self.group.id

    @property
    def records(self) -> tuple[Record, ...]:
        return self.left_records + self.right_records

    @property
    def hint(self) -> MatchHint:
        return MatchHint.from_records(self.records)
