"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Side(StrEnum):
    """Which feed of a reconciliation pair a record came from."""

    LEFT = "left"
    RIGHT = "right"

    @property
    def opposite(self) -> Side:
        return Side.RIGHT if self is Side.LEFT else Side.LEFT


class DispositionStatus(StrEnum):
    MATCHED = "matched"
    APPROVED_FOR_ENTRY = "approved_for_entry"
    REVERSED_ENTRY = "reversed_entry"
    TIMING_DIFFERENCE = "timing_difference"
    IGNORED = "ignored"
    FOLLOW_UP = "follow_up"


class MatchOrigin(StrEnum):
    AUTO = "auto"
    MANUAL = "manual"


class Partition(StrEnum):
    """Mutually exclusive buckets a record can live in."""

    UNMATCHED = "unmatched"
    FOLLOW_UP = "follow_up"
    RESOLVED = "resolved"
    PRE_MATCHED = "pre_matched"


class ActionKind(StrEnum):
    """User-initiated review transitions.

    Values double as the method names of the persistence gateway port.
    """

    MATCH_RECORDS = "match_records"
    APPROVE_FOR_ENTRY = "approve_for_entry"
    REVERSE_ENTRY = "reverse_entry"
    MARK_TIMING_DIFFERENCE = "mark_timing_difference"
    MARK_IGNORED = "mark_ignored"
    REQUEST_FOLLOW_UP = "request_follow_up"
    RETURN_FOLLOW_UP = "return_follow_up"
    REVERSE_RESOLUTION = "reverse_resolution"
    UNMATCH_PRE_MATCHED = "unmatch_pre_matched"
    EDIT_RECORD = "edit_record"
    DELETE_RECORD = "delete_record"
