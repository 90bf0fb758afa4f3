"""Review state machine: partitions, dispatcher and presentation projections."""

from __future__ import annotations

from .dispatcher import (
    DEFAULT_TIMEOUT_SECONDS,
    PERIOD_LOCKED_CODE,
    ActionDispatcher,
    ActionOutcome,
    DispatcherConfig,
    PendingAction,
    ReviewScope,
)
from .events import ReviewEvent, ReviewEventKind, ReviewListener
from .grouping import (
    GroupExpansion,
    GroupingIndex,
    ResolvedGroup,
    group_resolved,
    singleton_group_id,
)
from .partitions import Clock, PartitionStore, ResolutionTarget, Transition
from .selection import WorkingSelection

__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "PERIOD_LOCKED_CODE",
    "ActionDispatcher",
    "ActionOutcome",
    "Clock",
    "DispatcherConfig",
    "GroupExpansion",
    "GroupingIndex",
    "PartitionStore",
    "PendingAction",
    "ResolutionTarget",
    "ResolvedGroup",
    "ReviewEvent",
    "ReviewEventKind",
    "ReviewListener",
    "ReviewScope",
    "Transition",
    "WorkingSelection",
    "group_resolved",
    "singleton_group_id",
]
