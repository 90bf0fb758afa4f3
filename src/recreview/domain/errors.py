"""Error taxonomy of the review engine.

``ValidationError`` and ``LockedPeriodError`` are raised before any local
mutation. ``PersistenceError`` and ``TransportError`` are raised after the
optimistic mutation has been rolled back (or the rollback has failed, see
``rolled_back``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .model import format_key

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .model import ActionKind, RecordKey
    from .ports.period_lock import LockStatus
    from .ports.persistence import GatewayReceipt


class ReviewError(Exception):
    """Base class for errors surfaced to the caller of a review action."""

    def __init__(
        self,
        message: str,
        *,
        action: ActionKind | None = None,
        record_keys: Iterable[RecordKey] = (),
        group_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.action = action
        self.record_keys: tuple[RecordKey, ...] = tuple(record_keys)
        self.group_id = group_id

    def describe(self) -> str:
        """Return the message with the action context appended."""

        context: list[str] = []
        if self.action is not None:
            context.append(f"action={self.action}")
        if self.record_keys:
            context.append("records=" + ",".join(format_key(key) for key in self.record_keys))
        if self.group_id is not None:
            context.append(f"group={self.group_id}")
        if not context:
            return self.message
        return f"{self.message} ({'; '.join(context)})"


class ValidationError(ReviewError):
    """Raised when an action's preconditions do not hold."""


class UnsupportedActionError(ValidationError):
    """Raised when an action is outside the feed pair's capability set."""


class DuplicateSubmissionError(ValidationError):
    """Raised when the same action is already in flight for a record or group."""


class LockedPeriodError(ReviewError):
    """Raised when a mutation is attempted on a locked period."""

    def __init__(
        self,
        message: str,
        *,
        lock: LockStatus | None = None,
        action: ActionKind | None = None,
        record_keys: Iterable[RecordKey] = (),
        group_id: str | None = None,
    ) -> None:
        super().__init__(message, action=action, record_keys=record_keys, group_id=group_id)
        self.lock = lock


class SettlementError(ReviewError):
    """Raised when a persistence call failed after the optimistic mutation."""

    def __init__(
        self,
        message: str,
        *,
        action: ActionKind | None = None,
        record_keys: Iterable[RecordKey] = (),
        group_id: str | None = None,
        rolled_back: bool = False,
        reloaded: bool = False,
    ) -> None:
        super().__init__(message, action=action, record_keys=record_keys, group_id=group_id)
        self.rolled_back = rolled_back
        self.reloaded = reloaded


class PersistenceError(SettlementError):
    """The gateway answered with a structured failure."""

    def __init__(
        self,
        message: str,
        *,
        receipt: GatewayReceipt,
        action: ActionKind | None = None,
        record_keys: Iterable[RecordKey] = (),
        group_id: str | None = None,
        rolled_back: bool = False,
        reloaded: bool = False,
    ) -> None:
        super().__init__(
            message,
            action=action,
            record_keys=record_keys,
            group_id=group_id,
            rolled_back=rolled_back,
            reloaded=reloaded,
        )
        self.receipt = receipt
        self.code = receipt.code


class TransportError(SettlementError):
    """The gateway call could not complete (network failure or timeout)."""


class InvariantViolation(RuntimeError):  # noqa: N818
    """Raised when the partition store would enter or is in an inconsistent state."""
