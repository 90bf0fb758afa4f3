"""Action dispatcher: optimistic review transitions settled against the gateway.

Each operation validates, applies its mutation to the ``PartitionStore``
synchronously and returns a ``PendingAction``. The persistence call runs as a
task on the running event loop; when it fails the mutation is inverted (or the
authoritative snapshot reloaded) before the error reaches whoever awaits the
pending action.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any, NoReturn

from recreview.domain.errors import (
    DuplicateSubmissionError,
    InvariantViolation,
    LockedPeriodError,
    PersistenceError,
    SettlementError,
    TransportError,
)
from recreview.domain.model import (
    ActionKind,
    DispositionStatus,
    MatchHint,
    Side,
    format_key,
)
from recreview.domain.ports import (
    ActionPayload,
    GatewayReceipt,
    JournalEntryRequest,
    LockStatus,
)

from .events import ReviewEvent, ReviewEventKind

if TYPE_CHECKING:
    from collections.abc import Callable, Generator, Iterable

    from recreview.domain.feeds import FeedProfile
    from recreview.domain.model import (
        RecordId,
        RecordKey,
        RecordPatch,
        ReconciliationSnapshot,
    )
    from recreview.domain.ports import (
        JournalEntryNotifier,
        PeriodLockGate,
        PersistenceGateway,
        SnapshotLoader,
    )

    from .events import ReviewListener
    from .partitions import PartitionStore, ResolutionTarget, Transition

log = getLogger(__name__)

PERIOD_LOCKED_CODE = "period_locked"
DEFAULT_TIMEOUT_SECONDS = 30.0

_JOURNAL_ACTIONS = frozenset({ActionKind.APPROVE_FOR_ENTRY, ActionKind.REVERSE_ENTRY})

type _Token = tuple[ActionKind, str]


@dataclass(frozen=True, slots=True)
class DispatcherConfig:
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")


@dataclass(frozen=True, slots=True, kw_only=True)
class ReviewScope:
    """Company, period and feed pair a review session works on."""

    company_id: str
    period: str
    feed: FeedProfile


@dataclass(frozen=True, slots=True, kw_only=True)
class ActionOutcome:
    action: ActionKind
    record_keys: tuple[RecordKey, ...]
    receipt: GatewayReceipt
    group_id: str | None = None
    hint: MatchHint | None = None
    journal_error: BaseException | None = None


class PendingAction:
    """An applied action whose persistence call may still be in flight.

    Await it for the ``ActionOutcome``; a failed call raises the settlement
    error after the local state has been restored.
    """

    __slots__ = ("action", "group_id", "hint", "record_keys", "task")

    def __init__(
        self,
        *,
        action: ActionKind,
        record_keys: tuple[RecordKey, ...],
        group_id: str | None,
        hint: MatchHint | None,
        task: asyncio.Task[ActionOutcome],
    ) -> None:
        self.action = action
        self.record_keys = record_keys
        self.group_id = group_id
        self.hint = hint
        self.task = task

    def __await__(self) -> Generator[Any, None, ActionOutcome]:
        return self.task.__await__()

    @property
    def done(self) -> bool:
        return self.task.done()

    def __repr__(self) -> str:
        keys = ",".join(format_key(key) for key in self.record_keys)
        state = "done" if self.done else "pending"
        return f"<PendingAction {self.action} [{keys}] {state}>"


@dataclass(slots=True)
class _Listeners:
    items: list[ReviewListener] = field(default_factory=list["ReviewListener"])

    def publish(self, event: ReviewEvent) -> None:
        for listener in tuple(self.items):
            try:
                listener(event)
            except Exception:
                log.exception("Review listener failed on %s event", event.kind)


class ActionDispatcher:
    """Single writer of a ``PartitionStore`` for one review scope."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        scope: ReviewScope,
        store: PartitionStore,
        gateway: PersistenceGateway,
        loader: SnapshotLoader,
        lock_gate: PeriodLockGate,
        journal: JournalEntryNotifier | None = None,
        config: DispatcherConfig | None = None,
    ) -> None:
        self.scope = scope
        self.store = store
        self._gateway = gateway
        self._loader = loader
        self._lock_gate = lock_gate
        self._journal = journal
        self._config = config or DispatcherConfig()
        self._lock = LockStatus.unlocked()
        self._in_flight: set[_Token] = set()
        self._tasks: set[asyncio.Task[ActionOutcome]] = set()
        self._listeners = _Listeners()

    # ---------------------------------------------------------------- state

    @property
    def lock_status(self) -> LockStatus:
        return self._lock

    @property
    def read_only(self) -> bool:
        return self._lock.is_locked

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def is_in_flight(self, action: ActionKind, target: RecordKey | str) -> bool:
        token = target if isinstance(target, str) else format_key(target)
        return (action, token) in self._in_flight

    def subscribe(self, listener: ReviewListener) -> Callable[[], None]:
        """Register ``listener`` for review events; returns the unsubscribe callable."""

        self._listeners.items.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners.items:
                self._listeners.items.remove(listener)

        return unsubscribe

    # -------------------------------------------------------------- loading

    async def load(self) -> ReconciliationSnapshot:
        """Query the period lock and the authoritative snapshot, then replace local state."""

        lock = await self._lock_gate.status(
            company_id=self.scope.company_id, period=self.scope.period
        )
        snapshot = await self._loader.load(
            company_id=self.scope.company_id, period=self.scope.period
        )
        self.store.load(snapshot)
        self._set_lock(lock)
        log.info(
            "Loaded %s review for %s/%s: %s records, locked=%s",
            self.scope.feed.name,
            self.scope.company_id,
            self.scope.period,
            snapshot.record_count,
            lock.is_locked,
        )
        return snapshot

    async def reload(self) -> ReconciliationSnapshot:
        snapshot = await self.load()
        self._listeners.publish(ReviewEvent(kind=ReviewEventKind.RELOADED))
        return snapshot

    async def refresh_lock_status(self) -> LockStatus:
        lock = await self._lock_gate.status(
            company_id=self.scope.company_id, period=self.scope.period
        )
        self._set_lock(lock)
        return lock

    async def drain(self) -> None:
        """Wait until every in-flight persistence call has settled."""

        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # ----------------------------------------------------------- operations

    def match_records(
        self,
        left_ids: Iterable[RecordId],
        right_ids: Iterable[RecordId],
    ) -> PendingAction:
        left = tuple(left_ids)
        right = tuple(right_ids)
        keys = tuple((Side.LEFT, i) for i in left) + tuple((Side.RIGHT, i) for i in right)
        return self._submit(
            ActionKind.MATCH_RECORDS,
            record_keys=keys,
            mutate=lambda: self.store.match(left, right),
        )

    def approve_for_entry(self, record_id: RecordId, side: Side) -> PendingAction:
        return self._resolve(
            ActionKind.APPROVE_FOR_ENTRY, DispositionStatus.APPROVED_FOR_ENTRY, (side, record_id)
        )

    def reverse_entry(self, record_id: RecordId) -> PendingAction:
        return self._resolve(
            ActionKind.REVERSE_ENTRY, DispositionStatus.REVERSED_ENTRY, (Side.RIGHT, record_id)
        )

    def mark_timing_difference(self, record_id: RecordId, side: Side) -> PendingAction:
        return self._resolve(
            ActionKind.MARK_TIMING_DIFFERENCE,
            DispositionStatus.TIMING_DIFFERENCE,
            (side, record_id),
        )

    def mark_ignored(self, record_id: RecordId, side: Side) -> PendingAction:
        return self._resolve(ActionKind.MARK_IGNORED, DispositionStatus.IGNORED, (side, record_id))

    def request_follow_up(self, record_id: RecordId, side: Side, note: str) -> PendingAction:
        key: RecordKey = (side, record_id)
        return self._submit(
            ActionKind.REQUEST_FOLLOW_UP,
            record_keys=(key,),
            mutate=lambda: self.store.flag_follow_up(key, note),
            note=note.strip() if note else None,
        )

    def return_follow_up(self, record_id: RecordId, side: Side) -> PendingAction:
        key: RecordKey = (side, record_id)
        return self._submit(
            ActionKind.RETURN_FOLLOW_UP,
            record_keys=(key,),
            mutate=lambda: self.store.return_follow_up(key),
        )

    def reverse_resolution(self, target: ResolutionTarget) -> PendingAction:
        """Return a resolved record, or its whole group, to unmatched."""

        action = ActionKind.REVERSE_RESOLUTION
        # members are only looked up once the session may mutate at all
        self._guard(action)
        group_id, keys = self.store.resolution_members(target, action=action)
        return self._submit(
            action,
            record_keys=keys,
            group_id=group_id,
            mutate=lambda: self.store.reverse_resolution(target),
        )

    def unmatch_pre_matched(self, group_id: str) -> PendingAction:
        pre_matched = self.store.pre_matched_group(group_id)
        keys = tuple(r.key for r in pre_matched.records) if pre_matched is not None else ()
        return self._submit(
            ActionKind.UNMATCH_PRE_MATCHED,
            record_keys=keys,
            group_id=group_id,
            mutate=lambda: self.store.unmatch_pre_matched(group_id),
        )

    def edit_record(self, record_id: RecordId, side: Side, patch: RecordPatch) -> PendingAction:
        key: RecordKey = (side, record_id)
        return self._submit(
            ActionKind.EDIT_RECORD,
            record_keys=(key,),
            mutate=lambda: self.store.edit(key, patch),
            patch=patch,
        )

    def delete_record(self, record_id: RecordId, side: Side) -> PendingAction:
        key: RecordKey = (side, record_id)
        return self._submit(
            ActionKind.DELETE_RECORD,
            record_keys=(key,),
            mutate=lambda: self.store.delete(key),
        )

    # ------------------------------------------------------------ internals

    def _resolve(
        self,
        action: ActionKind,
        status: DispositionStatus,
        key: RecordKey,
    ) -> PendingAction:
        return self._submit(
            action,
            record_keys=(key,),
            mutate=lambda: self.store.resolve(key, status, action=action),
        )

    def _guard(
        self,
        action: ActionKind,
        *,
        record_keys: tuple[RecordKey, ...] = (),
        group_id: str | None = None,
    ) -> None:
        if self._lock.is_locked:
            closed_by = f" by {self._lock.closed_by}" if self._lock.closed_by else ""
            raise LockedPeriodError(
                f"Period {self.scope.period} is closed{closed_by}; review is read-only",
                lock=self._lock,
                action=action,
                record_keys=record_keys,
                group_id=group_id,
            )
        self.scope.feed.require(action, record_keys=record_keys, group_id=group_id)

    def _submit(  # noqa: PLR0913
        self,
        action: ActionKind,
        *,
        record_keys: tuple[RecordKey, ...],
        mutate: Callable[[], Transition],
        group_id: str | None = None,
        note: str | None = None,
        patch: RecordPatch | None = None,
    ) -> PendingAction:
        loop = asyncio.get_running_loop()
        self._guard(action, record_keys=record_keys, group_id=group_id)

        tokens = _tokens(action, record_keys, group_id)
        if tokens & self._in_flight:
            raise DuplicateSubmissionError(
                f"{action} is already in flight",
                action=action,
                record_keys=record_keys,
                group_id=group_id,
            )

        transition = mutate()
        self._in_flight |= tokens
        hint = (
            MatchHint.from_records(transition.records)
            if action is ActionKind.MATCH_RECORDS
            else None
        )
        payload = ActionPayload(
            action=action,
            feed=self.scope.feed.name,
            records=transition.records,
            entries=transition.entries,
            group_id=transition.group_id,
            note=note,
            patch=patch,
        )
        self._listeners.publish(
            ReviewEvent(
                kind=ReviewEventKind.APPLIED,
                action=action,
                record_keys=transition.record_keys,
                group_id=transition.group_id,
            )
        )

        task = loop.create_task(
            self._settle(transition, payload, tokens, hint),
            name=f"recreview-{action}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._forget)
        return PendingAction(
            action=action,
            record_keys=transition.record_keys,
            group_id=transition.group_id,
            hint=hint,
            task=task,
        )

    def _forget(self, task: asyncio.Task[ActionOutcome]) -> None:
        self._tasks.discard(task)
        if not task.cancelled():
            # failures are delivered to awaiters and listeners
            task.exception()

    async def _settle(
        self,
        transition: Transition,
        payload: ActionPayload,
        tokens: frozenset[_Token],
        hint: MatchHint | None,
    ) -> ActionOutcome:
        action = transition.action
        try:
            try:
                receipt = await self._persist(action, payload)
            except TimeoutError as exc:
                await self._fail(
                    transition,
                    TransportError(
                        f"{action} timed out after {self._config.timeout_seconds:g}s",
                        **_context(transition),
                    ),
                    cause=exc,
                )
            except asyncio.CancelledError:
                await self._restore(transition)
                raise
            except Exception as exc:
                await self._fail(
                    transition,
                    TransportError(
                        f"{action} could not be persisted: {exc}", **_context(transition)
                    ),
                    cause=exc,
                )
            if not receipt.ok:
                await self._fail(
                    transition,
                    PersistenceError(
                        f"{action} was rejected: {receipt.message or receipt.code or 'unknown'}",
                        receipt=receipt,
                        **_context(transition),
                    ),
                    cause=None,
                )
            return await self._confirm(transition, receipt, hint)
        finally:
            self._in_flight -= tokens

    async def _persist(self, action: ActionKind, payload: ActionPayload) -> GatewayReceipt:
        call = getattr(self._gateway, action.value)
        async with asyncio.timeout(self._config.timeout_seconds):
            return await call(
                company_id=self.scope.company_id,
                period=self.scope.period,
                payload=payload,
            )

    async def _confirm(
        self,
        transition: Transition,
        receipt: GatewayReceipt,
        hint: MatchHint | None,
    ) -> ActionOutcome:
        action = transition.action
        group_id = transition.group_id
        if (
            action is ActionKind.MATCH_RECORDS
            and group_id is not None
            and receipt.group_id
            and receipt.group_id != group_id
        ):
            if self.store.group(group_id) is not None:
                self.store.adopt_group_id(group_id, receipt.group_id)
            group_id = receipt.group_id

        journal_error: BaseException | None = None
        if action in _JOURNAL_ACTIONS and self._journal is not None:
            journal_error = await self._notify_journal(transition)

        log.info(
            "Confirmed %s for %s",
            action,
            ", ".join(format_key(key) for key in transition.record_keys),
        )
        self._listeners.publish(
            ReviewEvent(
                kind=ReviewEventKind.CONFIRMED,
                action=action,
                record_keys=transition.record_keys,
                group_id=group_id,
            )
        )
        return ActionOutcome(
            action=action,
            record_keys=transition.record_keys,
            receipt=receipt,
            group_id=group_id,
            hint=hint,
            journal_error=journal_error,
        )

    async def _notify_journal(self, transition: Transition) -> BaseException | None:
        assert self._journal is not None
        for record in transition.records:
            request = JournalEntryRequest(
                company_id=self.scope.company_id,
                period=self.scope.period,
                source=self.scope.feed.journal_source,
                action=transition.action,
                record=record,
            )
            try:
                async with asyncio.timeout(self._config.timeout_seconds):
                    await self._journal.notify(request)
            except Exception as exc:
                log.warning(
                    "Journal entry request for %s failed: %s", format_key(record.key), exc
                )
                self._listeners.publish(
                    ReviewEvent(
                        kind=ReviewEventKind.JOURNAL_FAILED,
                        action=transition.action,
                        record_keys=(record.key,),
                        error=exc,
                        message=str(exc),
                    )
                )
                return exc
        return None

    async def _fail(
        self,
        transition: Transition,
        error: SettlementError,
        *,
        cause: BaseException | None,
    ) -> NoReturn:
        rolled_back, reloaded, restore_error = await self._restore(transition)
        error.rolled_back = rolled_back
        error.reloaded = reloaded
        log.warning(
            "Rolled back %s (restored=%s, reloaded=%s): %s",
            transition.action,
            rolled_back,
            reloaded,
            error.message,
        )
        self._listeners.publish(
            ReviewEvent(
                kind=ReviewEventKind.ROLLED_BACK,
                action=transition.action,
                record_keys=transition.record_keys,
                group_id=transition.group_id,
                error=error,
                message=error.message,
            )
        )
        if restore_error is not None:
            raise error from restore_error

        if isinstance(error, PersistenceError) and error.code == PERIOD_LOCKED_CODE:
            self._set_lock(
                LockStatus(is_locked=True, metadata={"reason": error.receipt.message or ""})
            )
            locked = LockedPeriodError(
                f"Period {self.scope.period} was closed while {transition.action} was in flight",
                lock=self._lock,
                **_context(transition),
            )
            raise locked from error
        if cause is not None:
            raise error from cause
        raise error

    async def _restore(self, transition: Transition) -> tuple[bool, bool, BaseException | None]:
        """Invert ``transition``; fall back to reloading the authoritative snapshot."""

        try:
            transition.undo()
        except InvariantViolation as exc:
            log.warning("Cannot invert %s (%s); reloading snapshot", transition.action, exc)
            try:
                await self.reload()
            except Exception as reload_exc:
                log.exception("Reload after failed %s also failed", transition.action)
                return False, False, reload_exc
            return True, True, None
        return True, False, None

    def _set_lock(self, lock: LockStatus) -> None:
        changed = lock.is_locked != self._lock.is_locked
        self._lock = lock
        if changed:
            log.info(
                "Period %s/%s is now %s",
                self.scope.company_id,
                self.scope.period,
                "locked" if lock.is_locked else "open",
            )
            self._listeners.publish(ReviewEvent(kind=ReviewEventKind.LOCK_CHANGED))


def _tokens(
    action: ActionKind,
    record_keys: tuple[RecordKey, ...],
    group_id: str | None,
) -> frozenset[_Token]:
    tokens = {(action, format_key(key)) for key in record_keys}
    if group_id is not None:
        tokens.add((action, group_id))
    return frozenset(tokens)


def _context(transition: Transition) -> dict[str, Any]:
    return {
        "action": transition.action,
        "record_keys": transition.record_keys,
        "group_id": transition.group_id,
    }


__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "PERIOD_LOCKED_CODE",
    "ActionDispatcher",
    "ActionOutcome",
    "DispatcherConfig",
    "PendingAction",
    "ReviewScope",
]
