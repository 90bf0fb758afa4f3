"""Notifications published by the dispatcher."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from recreview.domain.model import ActionKind, RecordKey


class ReviewEventKind(StrEnum):
    APPLIED = "applied"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"
    RELOADED = "reloaded"
    JOURNAL_FAILED = "journal_failed"
    LOCK_CHANGED = "lock_changed"


@dataclass(frozen=True, slots=True, kw_only=True)
class ReviewEvent:
    kind: ReviewEventKind
    action: ActionKind | None = None
    record_keys: tuple[RecordKey, ...] = ()
    group_id: str | None = None
    error: BaseException | None = None
    message: str | None = None


type ReviewListener = Callable[[ReviewEvent], None]


__all__ = ["ReviewEvent", "ReviewEventKind", "ReviewListener"]
