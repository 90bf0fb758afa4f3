"""Translate review service payloads to domain objects and back."""

from __future__ import annotations

from datetime import UTC
from logging import getLogger
from typing import TYPE_CHECKING, Any

from recreview.domain.model import (
    ActionKind,
    Disposition,
    DispositionStatus,
    MatchGroup,
    MatchOrigin,
    PreMatchedGroup,
    ReconciliationSnapshot,
    Record,
    ReviewEntry,
    Side,
    is_synthetic_group_id,
)

from .schema import (
    FollowUpItemPayload,
    LockStatusPayload,
    ReconciliationPayload,
    RecordPayload,
    ResolvedItemPayload,
    ReviewItemPayload,
)

if TYPE_CHECKING:
    import datetime as dt

    from recreview.domain.ports import ActionPayload

    from .routes import FeedWire

log = getLogger(__name__)

type JsonBody = dict[str, Any]

_REVERSING_PREFIX = "reversing"

_STATUS_FROM_WIRE: dict[str, DispositionStatus] = {
    "matched": DispositionStatus.MATCHED,
    "approved": DispositionStatus.APPROVED_FOR_ENTRY,
    "approved_for_entry": DispositionStatus.APPROVED_FOR_ENTRY,
    "reversed": DispositionStatus.REVERSED_ENTRY,
    "reversed_entry": DispositionStatus.REVERSED_ENTRY,
    "timing_difference": DispositionStatus.TIMING_DIFFERENCE,
    "ignored": DispositionStatus.IGNORED,
}

_STATUS_TO_WIRE: dict[DispositionStatus, str] = {
    DispositionStatus.MATCHED: "matched",
    DispositionStatus.APPROVED_FOR_ENTRY: "resolved",
    DispositionStatus.REVERSED_ENTRY: "resolved",
    DispositionStatus.TIMING_DIFFERENCE: "timing_difference",
    DispositionStatus.IGNORED: "ignored",
    DispositionStatus.FOLLOW_UP: "follow_up",
}

_RESOLUTION_TEXT: dict[DispositionStatus, str] = {
    DispositionStatus.MATCHED: "Matched items",
    DispositionStatus.APPROVED_FOR_ENTRY: (
        "Transaction sent to Journal Entries section to be recorded"
    ),
    DispositionStatus.REVERSED_ENTRY: "Reversing journal entry sent to Journal Entries section",
    DispositionStatus.TIMING_DIFFERENCE: "Will clear next period",
    DispositionStatus.IGNORED: "Marked as non-issue",
}


# --------------------------------------------------------------------- inbound


def _aware(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def parse_record(payload: RecordPayload, side: Side) -> Record:
    return Record(
        id=payload.id,
        side=side,
        date=payload.date,
        description=payload.display_description,
        amount=payload.signed_amount,
        source_ref=payload.reference,
    )


def parse_status(status: str, *, resolution: str | None, group_id: str | None) -> DispositionStatus:
    """Map a wire status onto a disposition.

    The service reports approvals and reversing entries both as ``resolved``;
    they are told apart by the resolution text. A ``resolved`` item carrying a
    real match group id is a manual match.
    """

    normalized = status.strip().lower()
    if normalized in _STATUS_FROM_WIRE:
        return _STATUS_FROM_WIRE[normalized]
    if normalized == "resolved":
        if group_id is not None and not is_synthetic_group_id(group_id):
            return DispositionStatus.MATCHED
        if resolution and resolution.strip().lower().startswith(_REVERSING_PREFIX):
            return DispositionStatus.REVERSED_ENTRY
        return DispositionStatus.APPROVED_FOR_ENTRY
    raise ValueError(f"Unknown resolution status {status!r}")


def _unwrap(item: ReviewItemPayload, side: Side) -> RecordPayload:
    record = item.transaction if side is Side.LEFT else item.entry
    if record is None:
        wrapper = "transaction" if side is Side.LEFT else "entry"
        raise ValueError(f"Review item has no {wrapper!r} for the {side} side")
    return record


def parse_resolved_item(payload: ResolvedItemPayload, wire: FeedWire) -> ReviewEntry:
    side = wire.side_for(payload.type)
    record = parse_record(_unwrap(payload.item, side), side)
    status = parse_status(
        payload.status, resolution=payload.resolution, group_id=payload.match_group_id
    )
    group_id = payload.match_group_id
    if status in (DispositionStatus.APPROVED_FOR_ENTRY, DispositionStatus.REVERSED_ENTRY):
        group_id = None
    return ReviewEntry(
        record=record,
        disposition=Disposition(
            status=status,
            resolved_at=_aware(payload.marked_at),
            note=payload.resolution,
            match_group_id=group_id,
        ),
    )


def parse_follow_up_item(payload: FollowUpItemPayload, wire: FeedWire) -> ReviewEntry:
    side = wire.side_for(payload.type)
    record = parse_record(_unwrap(payload.item, side), side)
    return ReviewEntry(
        record=record,
        disposition=Disposition(
            status=DispositionStatus.FOLLOW_UP,
            resolved_at=_aware(payload.marked_at),
            note=payload.note or None,
        ),
    )


def parse_snapshot(
    raw: ReconciliationPayload | dict[str, Any], wire: FeedWire
) -> ReconciliationSnapshot:
    payload = (
        raw if isinstance(raw, ReconciliationPayload) else ReconciliationPayload.model_validate(raw)
    )

    unmatched_left = [
        parse_record(item.transaction, Side.LEFT)
        for item in getattr(payload, wire.unmatched_left_field)
    ]
    unmatched_right = [
        parse_record(item.entry, Side.RIGHT)
        for item in getattr(payload, wire.unmatched_right_field)
    ]

    pre_matched: list[PreMatchedGroup] = []
    for item in payload.pre_matched_items:
        left = tuple(parse_record(r, Side.LEFT) for r in getattr(item, wire.pre_matched_left_field))
        right = tuple(
            parse_record(r, Side.RIGHT) for r in getattr(item, wire.pre_matched_right_field)
        )
        if not left or not right:
            log.warning(
                "Pre-matched group %s is one-sided; listing its records as unmatched",
                item.match_group_id,
            )
            unmatched_left.extend(left)
            unmatched_right.extend(right)
            continue
        group = MatchGroup(
            id=item.match_group_id,
            left_record_ids=frozenset(r.id for r in left),
            right_record_ids=frozenset(r.id for r in right),
            created_at=_aware(item.matched_at),
            origin=MatchOrigin.AUTO,
            confidence=item.confidence,
        )
        pre_matched.append(PreMatchedGroup(group=group, left_records=left, right_records=right))

    return ReconciliationSnapshot(
        unmatched_left=tuple(unmatched_left),
        unmatched_right=tuple(unmatched_right),
        follow_up=tuple(parse_follow_up_item(i, wire) for i in payload.follow_up_items),
        resolved=tuple(parse_resolved_item(i, wire) for i in payload.resolved_items),
        pre_matched=tuple(pre_matched),
    )


def parse_lock_status(raw: dict[str, Any]) -> LockStatusPayload:
    return LockStatusPayload.model_validate(raw)


# -------------------------------------------------------------------- outbound


def record_to_wire(record: Record) -> JsonBody:
    return {
        "id": record.id,
        "date": record.date.isoformat(),
        "description": record.description,
        "amount": float(record.amount),
    }


def item_to_wire(record: Record) -> JsonBody:
    wrapper = "transaction" if record.side is Side.LEFT else "entry"
    return {wrapper: record_to_wire(record)}


def entry_to_wire(entry: ReviewEntry, wire: FeedWire) -> JsonBody:
    body: JsonBody = {
        "type": wire.type_for(entry.side),
        "item": item_to_wire(entry.record),
        "markedAt": entry.disposition.resolved_at.isoformat(),
        "status": _STATUS_TO_WIRE[entry.status],
    }
    if entry.status is DispositionStatus.FOLLOW_UP:
        body["note"] = entry.disposition.note or ""
    else:
        body["resolution"] = entry.disposition.note or _RESOLUTION_TEXT[entry.status]
    if entry.match_group_id is not None:
        body["matchGroupId"] = entry.match_group_id
    return body


def build_request(
    payload: ActionPayload,
    *,
    wire: FeedWire,
    company_id: str,
    period: str,
) -> tuple[str, JsonBody]:
    """Return the path and JSON body the service expects for ``payload``."""

    action = payload.action
    body: JsonBody = {"companyId": company_id, "period": period}

    if action is ActionKind.MATCH_RECORDS:
        body[wire.left_items_key] = [
            item_to_wire(r) for r in payload.records if r.side is Side.LEFT
        ]
        body[wire.right_items_key] = [
            item_to_wire(r) for r in payload.records if r.side is Side.RIGHT
        ]
        body["matchGroupId"] = payload.group_id
        return wire.action_path(action), body

    if action is ActionKind.UNMATCH_PRE_MATCHED:
        body["matchGroupId"] = payload.group_id
        return wire.action_path(action), body

    if action is ActionKind.REVERSE_RESOLUTION and len(payload.entries) > 1:
        body["matchGroupId"] = payload.group_id
        body["items"] = [entry_to_wire(entry, wire) for entry in payload.entries]
        return wire.action_path(action, group_reversal=True), body

    (record,) = payload.records
    if action is ActionKind.EDIT_RECORD:
        if payload.patch is None:
            raise ValueError("edit_record payload carries no patch")
        body["type"] = wire.type_for(record.side)
        body["originalItem"] = record_to_wire(record)
        body["updatedData"] = record_to_wire(record.patched(payload.patch))
        return wire.action_path(action), body

    body["item"] = item_to_wire(record)
    if action is not ActionKind.REVERSE_ENTRY:
        body["type"] = wire.type_for(record.side)
    if action is ActionKind.APPROVE_FOR_ENTRY:
        body["source"] = wire.prefix
    if action is ActionKind.REQUEST_FOLLOW_UP:
        body["note"] = payload.note or ""
    if action is ActionKind.REVERSE_RESOLUTION and payload.group_id is not None:
        body["matchGroupId"] = payload.group_id
    return wire.action_path(action), body


__all__ = [
    "JsonBody",
    "build_request",
    "entry_to_wire",
    "item_to_wire",
    "parse_follow_up_item",
    "parse_lock_status",
    "parse_record",
    "parse_resolved_item",
    "parse_snapshot",
    "parse_status",
    "record_to_wire",
]
