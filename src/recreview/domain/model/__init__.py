"""Public surface of the review domain model."""

from __future__ import annotations

from .enums import ActionKind, DispositionStatus, MatchOrigin, Partition, Side
from .groups import (
    EXACT_MATCH_TOLERANCE,
    MatchGroup,
    MatchHint,
    PreMatchedGroup,
    is_synthetic_group_id,
    new_match_group_id,
    synthetic_group_id,
)
from .records import (
    Disposition,
    Record,
    RecordId,
    RecordKey,
    RecordPatch,
    ReviewEntry,
    format_key,
    total_amount,
)
from .snapshot import ReconciliationSnapshot

__all__ = [
    "EXACT_MATCH_TOLERANCE",
    "ActionKind",
    "Disposition",
    "DispositionStatus",
    "MatchGroup",
    "MatchHint",
    "MatchOrigin",
    "Partition",
    "PreMatchedGroup",
    "ReconciliationSnapshot",
    "Record",
    "RecordId",
    "RecordKey",
    "RecordPatch",
    "ReviewEntry",
    "Side",
    "format_key",
    "is_synthetic_group_id",
    "new_match_group_id",
    "synthetic_group_id",
    "total_amount",
]
