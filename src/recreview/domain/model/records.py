"""Records, dispositions and the entries that pair them."""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import TYPE_CHECKING

from .enums import DispositionStatus, Side

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import date, datetime

type RecordId = str
type RecordKey = tuple[Side, RecordId]


def format_key(key: RecordKey) -> str:
    side, record_id = key
    return f"{side}:{record_id}"


@dataclass(frozen=True, slots=True, kw_only=True)
class Record:
    """A single transaction-like unit from one side of a feed pair.

    ``id`` is only unique within its side, so the engine identifies records by
    ``key`` (side + id).
    """

    id: RecordId
    side: Side
    date: date
    description: str
    amount: Decimal
    source_ref: str | None = None

    @property
    def key(self) -> RecordKey:
        return (self.side, self.id)

    def patched(self, patch: RecordPatch) -> Record:
        return replace(self, **patch.changes())


@dataclass(frozen=True, slots=True, kw_only=True)
class RecordPatch:
    """Partial update for the editable fields of a record."""

    date: date | None = None
    description: str | None = None
    amount: Decimal | None = None

    @property
    def is_empty(self) -> bool:
        return not self.changes()

    def changes(self) -> dict[str, object]:
        values: dict[str, object] = {}
        if self.date is not None:
            values["date"] = self.date
        if self.description is not None:
            values["description"] = self.description
        if self.amount is not None:
            values["amount"] = self.amount
        return values


@dataclass(frozen=True, slots=True, kw_only=True)
class Disposition:
    status: DispositionStatus
    resolved_at: datetime
    note: str | None = None
    match_group_id: str | None = None


@dataclass(frozen=True, slots=True)
class ReviewEntry:
    """A record that has left the unmatched partition, with its disposition."""

    record: Record
    disposition: Disposition

    @property
    def key(self) -> RecordKey:
        return self.record.key

    @property
    def side(self) -> Side:
        return self.record.side

    @property
    def status(self) -> DispositionStatus:
        return self.disposition.status

    @property
    def match_group_id(self) -> str | None:
        return self.disposition.match_group_id

    def with_record(self, record: Record) -> ReviewEntry:
        return ReviewEntry(record=record, disposition=self.disposition)

    def with_group_id(self, group_id: str) -> ReviewEntry:
        return ReviewEntry(
            record=self.record,
            disposition=replace(self.disposition, match_group_id=group_id),
        )


def total_amount(records: Iterable[Record]) -> Decimal:
    return sum((record.amount for record in records), start=Decimal(0))
