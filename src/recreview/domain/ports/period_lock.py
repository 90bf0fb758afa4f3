"""Port for the period-lock gate."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime


@dataclass(frozen=True, slots=True, kw_only=True)
class LockStatus:
    """Whether a company/period is closed for edits."""

    is_locked: bool
    closed_at: datetime | None = None
    closed_by: str | None = None
    metadata: Mapping[str, object] = field(default_factory=dict["str", "object"])

    @classmethod
    def unlocked(cls) -> LockStatus:
        return cls(is_locked=False)


@runtime_checkable
class PeriodLockGate(Protocol):
    """Read-only view on the month-end close lock."""

    async def status(self, *, company_id: str, period: str) -> LockStatus: ...


__all__ = ["LockStatus", "PeriodLockGate"]
