from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from recreview.domain.errors import (
    DuplicateSubmissionError,
    LockedPeriodError,
    PersistenceError,
    TransportError,
    UnsupportedActionError,
    ValidationError,
)
from recreview.domain.feeds import ACCOUNTS_PAYABLE, CREDIT_CARD
from recreview.domain.model import (
    ActionKind,
    DispositionStatus,
    Partition,
    RecordPatch,
    Side,
)
from recreview.domain.ports import GatewayReceipt, LockStatus
from recreview.domain.review import DispatcherConfig, ReviewEventKind

from tests.helpers.review import (
    COMPANY_ID,
    PERIOD,
    FakeGateway,
    RecordingJournal,
    make_harness,
    make_record,
    make_snapshot,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from recreview.domain.feeds import FeedProfile
    from recreview.domain.model import ReconciliationSnapshot
    from recreview.domain.review import ActionDispatcher, ReviewEvent


def test_action_is_visible_before_persistence_settles(
    bank_snapshot: ReconciliationSnapshot,
) -> None:
    async def scenario() -> None:
        hold = asyncio.Event()
        harness = make_harness(bank_snapshot, gateway=FakeGateway(hold=hold))

        pending = harness.dispatcher.approve_for_entry("a", Side.LEFT)

        assert harness.store.locate((Side.LEFT, "a")) is Partition.RESOLVED
        assert not pending.done
        assert harness.dispatcher.pending_count == 1

        hold.set()
        outcome = await pending

        assert outcome.receipt.ok
        assert outcome.record_keys == ((Side.LEFT, "a"),)
        assert harness.dispatcher.pending_count == 0
        entry = harness.store.entry((Side.LEFT, "a"))
        assert entry is not None
        assert entry.status is DispositionStatus.APPROVED_FOR_ENTRY

    asyncio.run(scenario())


def test_match_reports_hint_and_sends_pre_action_records(
    bank_snapshot: ReconciliationSnapshot,
) -> None:
    async def scenario() -> None:
        harness = make_harness(bank_snapshot)

        pending = harness.dispatcher.match_records(["a", "b"], ["x"])
        outcome = await pending

        assert pending.hint is not None
        assert pending.hint.is_exact
        assert outcome.hint == pending.hint
        assert outcome.group_id == pending.group_id
        ((action, payload),) = harness.gateway.calls
        assert action is ActionKind.MATCH_RECORDS
        assert payload.feed == "bank"
        assert payload.group_id == pending.group_id
        assert [record.id for record in payload.records] == ["a", "b", "x"]

    asyncio.run(scenario())


def test_match_hint_reports_difference(bank_snapshot: ReconciliationSnapshot) -> None:
    async def scenario() -> None:
        harness = make_harness(bank_snapshot)

        pending = harness.dispatcher.match_records(["a"], ["z"])
        await pending

        assert pending.hint is not None
        assert not pending.hint.is_exact
        assert str(pending.hint.difference) == "60.00"

    asyncio.run(scenario())


def test_failed_receipt_rolls_back_to_pre_action_snapshot(
    bank_snapshot: ReconciliationSnapshot,
) -> None:
    async def scenario() -> None:
        gateway = FakeGateway(
            failures={ActionKind.MATCH_RECORDS: GatewayReceipt.failure("conflict", "Stale data")}
        )
        harness = make_harness(bank_snapshot, gateway=gateway)
        before = harness.store.snapshot()

        pending = harness.dispatcher.match_records(["a"], ["x"])
        with pytest.raises(PersistenceError) as excinfo:
            await pending

        error = excinfo.value
        assert error.code == "conflict"
        assert error.rolled_back
        assert not error.reloaded
        assert error.action is ActionKind.MATCH_RECORDS
        assert "Stale data" in error.message
        assert harness.store.snapshot() == before
        assert harness.store.match_groups == ()
        harness.store.check_invariants()

    asyncio.run(scenario())


def test_gateway_exception_becomes_transport_error(bank_snapshot: ReconciliationSnapshot) -> None:
    async def scenario() -> None:
        reset = ConnectionError("connection reset")
        gateway = FakeGateway(failures={ActionKind.MARK_IGNORED: reset})
        harness = make_harness(bank_snapshot, gateway=gateway)

        pending = harness.dispatcher.mark_ignored("z", Side.RIGHT)
        with pytest.raises(TransportError) as excinfo:
            await pending

        assert excinfo.value.__cause__ is reset
        assert excinfo.value.rolled_back
        assert harness.store.snapshot() == bank_snapshot

    asyncio.run(scenario())


def test_timeout_rolls_back(bank_snapshot: ReconciliationSnapshot) -> None:
    async def scenario() -> None:
        gateway = FakeGateway(hold=asyncio.Event())
        harness = make_harness(bank_snapshot, gateway=gateway, timeout_seconds=0.05)

        pending = harness.dispatcher.mark_timing_difference("c", Side.LEFT)
        with pytest.raises(TransportError, match="timed out after 0.05s"):
            await pending

        assert harness.store.snapshot() == bank_snapshot
        assert not harness.dispatcher.is_in_flight(
            ActionKind.MARK_TIMING_DIFFERENCE, (Side.LEFT, "c")
        )

    asyncio.run(scenario())


def test_cancelled_settlement_restores_state(bank_snapshot: ReconciliationSnapshot) -> None:
    async def scenario() -> None:
        gateway = FakeGateway(hold=asyncio.Event())
        harness = make_harness(bank_snapshot, gateway=gateway)

        pending = harness.dispatcher.delete_record("y", Side.RIGHT)
        await asyncio.sleep(0)
        pending.task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending

        assert harness.store.snapshot() == bank_snapshot

    asyncio.run(scenario())


def test_duplicate_submission_is_rejected_while_in_flight(
    bank_snapshot: ReconciliationSnapshot,
) -> None:
    async def scenario() -> None:
        hold = asyncio.Event()
        harness = make_harness(bank_snapshot, gateway=FakeGateway(hold=hold))
        dispatcher = harness.dispatcher

        first = dispatcher.request_follow_up("b", Side.LEFT, "Need the invoice")
        assert dispatcher.is_in_flight(ActionKind.REQUEST_FOLLOW_UP, (Side.LEFT, "b"))
        with pytest.raises(DuplicateSubmissionError):
            dispatcher.request_follow_up("b", Side.LEFT, "Need the invoice")

        other = dispatcher.approve_for_entry("a", Side.LEFT)
        hold.set()
        await first
        await other

        assert not dispatcher.is_in_flight(ActionKind.REQUEST_FOLLOW_UP, (Side.LEFT, "b"))
        assert harness.gateway.actions() == [
            ActionKind.REQUEST_FOLLOW_UP,
            ActionKind.APPROVE_FOR_ENTRY,
        ]
        again = dispatcher.return_follow_up("b", Side.LEFT)
        await again
        assert harness.store.locate((Side.LEFT, "b")) is Partition.UNMATCHED

    asyncio.run(scenario())


def test_follow_up_payload_carries_trimmed_note(bank_snapshot: ReconciliationSnapshot) -> None:
    async def scenario() -> None:
        harness = make_harness(bank_snapshot)

        await harness.dispatcher.request_follow_up("c", Side.LEFT, " Ask the vendor ")

        ((_action, payload),) = harness.gateway.calls
        assert payload.note == "Ask the vendor"

    asyncio.run(scenario())


def test_validation_error_leaves_state_and_gateway_untouched(
    bank_snapshot: ReconciliationSnapshot,
) -> None:
    async def scenario() -> None:
        harness = make_harness(bank_snapshot)

        with pytest.raises(ValidationError):
            harness.dispatcher.request_follow_up("a", Side.LEFT, "   ")
        with pytest.raises(ValidationError):
            harness.dispatcher.reverse_entry("missing")

        assert harness.store.snapshot() == bank_snapshot
        assert harness.gateway.calls == []

    asyncio.run(scenario())


def test_locked_period_rejects_before_mutation(bank_snapshot: ReconciliationSnapshot) -> None:
    async def scenario() -> None:
        lock = LockStatus(is_locked=True, closed_by="controller")
        harness = make_harness(bank_snapshot, lock=lock)
        await harness.dispatcher.refresh_lock_status()

        assert harness.dispatcher.read_only
        with pytest.raises(LockedPeriodError, match="by controller") as excinfo:
            harness.dispatcher.approve_for_entry("a", Side.LEFT)
        with pytest.raises(LockedPeriodError):
            harness.dispatcher.reverse_resolution((Side.LEFT, "a"))

        assert excinfo.value.lock == lock
        assert harness.store.snapshot() == bank_snapshot
        assert harness.gateway.calls == []

    asyncio.run(scenario())


def test_server_period_lock_switches_session_to_read_only(
    bank_snapshot: ReconciliationSnapshot,
) -> None:
    async def scenario() -> None:
        gateway = FakeGateway(
            failures={
                ActionKind.APPROVE_FOR_ENTRY: GatewayReceipt.failure(
                    "period_locked", "March is closed"
                )
            }
        )
        harness = make_harness(bank_snapshot, gateway=gateway)
        events: list[ReviewEvent] = []
        harness.dispatcher.subscribe(events.append)

        pending = harness.dispatcher.approve_for_entry("a", Side.LEFT)
        with pytest.raises(LockedPeriodError) as excinfo:
            await pending

        assert isinstance(excinfo.value.__cause__, PersistenceError)
        assert excinfo.value.__cause__.rolled_back
        assert harness.dispatcher.read_only
        assert harness.store.snapshot() == bank_snapshot
        assert [event.kind for event in events] == [
            ReviewEventKind.APPLIED,
            ReviewEventKind.ROLLED_BACK,
            ReviewEventKind.LOCK_CHANGED,
        ]

    asyncio.run(scenario())


@pytest.mark.parametrize(
    ("feed", "call"),
    [
        (CREDIT_CARD, lambda d: d.delete_record("a", Side.LEFT)),
        (CREDIT_CARD, lambda d: d.unmatch_pre_matched("pre-1")),
        (ACCOUNTS_PAYABLE, lambda d: d.reverse_entry("x")),
    ],
)
def test_feed_capabilities_are_enforced(
    bank_snapshot: ReconciliationSnapshot,
    feed: FeedProfile,
    call: Callable[[ActionDispatcher], object],
) -> None:
    async def scenario() -> None:
        harness = make_harness(bank_snapshot, feed=feed)

        with pytest.raises(UnsupportedActionError):
            call(harness.dispatcher)

        assert harness.store.snapshot() == bank_snapshot

    asyncio.run(scenario())


def test_reverse_resolution_restores_whole_group(bank_snapshot: ReconciliationSnapshot) -> None:
    async def scenario() -> None:
        harness = make_harness(bank_snapshot)
        before = harness.store.snapshot()
        matched = await harness.dispatcher.match_records(["a", "b"], ["x"])

        pending = harness.dispatcher.reverse_resolution((Side.RIGHT, "x"))
        await pending

        assert pending.group_id == matched.group_id
        assert set(pending.record_keys) == {
            (Side.LEFT, "a"),
            (Side.LEFT, "b"),
            (Side.RIGHT, "x"),
        }
        _action, payload = harness.gateway.calls[-1]
        assert len(payload.entries) == 3
        assert harness.store.snapshot() == before

    asyncio.run(scenario())


def test_unmatch_pre_matched_through_dispatcher(bank_snapshot: ReconciliationSnapshot) -> None:
    async def scenario() -> None:
        harness = make_harness(bank_snapshot)

        pending = harness.dispatcher.unmatch_pre_matched("pre-1")
        assert set(pending.record_keys) == {(Side.LEFT, "p"), (Side.RIGHT, "q")}
        await pending

        assert harness.store.pre_matched == ()
        assert harness.store.locate((Side.RIGHT, "q")) is Partition.UNMATCHED

    asyncio.run(scenario())


def test_edit_payload_carries_patch(bank_snapshot: ReconciliationSnapshot) -> None:
    async def scenario() -> None:
        harness = make_harness(bank_snapshot)
        patch = RecordPatch(description="Wire fee")

        await harness.dispatcher.edit_record("z", Side.RIGHT, patch)

        ((_action, payload),) = harness.gateway.calls
        assert payload.patch == patch
        assert payload.records[0].description == "right record z"
        record = harness.store.record((Side.RIGHT, "z"))
        assert record is not None
        assert record.description == "Wire fee"

    asyncio.run(scenario())


def test_server_group_id_is_adopted(bank_snapshot: ReconciliationSnapshot) -> None:
    async def scenario() -> None:
        harness = make_harness(bank_snapshot, gateway=FakeGateway(server_group_id="srv-1"))

        pending = harness.dispatcher.match_records(["c"], ["y"])
        outcome = await pending

        assert pending.group_id != "srv-1"
        assert outcome.group_id == "srv-1"
        assert harness.store.group("srv-1") is not None
        assert {entry.match_group_id for entry in harness.store.resolved} == {"srv-1"}

    asyncio.run(scenario())


def test_approve_and_reverse_entry_request_journal_entries(
    bank_snapshot: ReconciliationSnapshot,
) -> None:
    async def scenario() -> None:
        harness = make_harness(bank_snapshot)

        await harness.dispatcher.approve_for_entry("a", Side.LEFT)
        await harness.dispatcher.reverse_entry("z")
        await harness.dispatcher.mark_ignored("b", Side.LEFT)

        requests = harness.journal.requests
        assert [request.action for request in requests] == [
            ActionKind.APPROVE_FOR_ENTRY,
            ActionKind.REVERSE_ENTRY,
        ]
        assert [request.record.id for request in requests] == ["a", "z"]
        assert {request.source for request in requests} == {"bank-rec"}
        assert {(request.company_id, request.period) for request in requests} == {
            (COMPANY_ID, PERIOD)
        }

    asyncio.run(scenario())


def test_journal_failure_does_not_roll_back(bank_snapshot: ReconciliationSnapshot) -> None:
    async def scenario() -> None:
        failure = RuntimeError("journal service down")
        harness = make_harness(bank_snapshot, journal=RecordingJournal(error=failure))
        events: list[ReviewEvent] = []
        harness.dispatcher.subscribe(events.append)

        outcome = await harness.dispatcher.approve_for_entry("a", Side.LEFT)

        assert outcome.journal_error is failure
        assert harness.store.locate((Side.LEFT, "a")) is Partition.RESOLVED
        assert [event.kind for event in events] == [
            ReviewEventKind.APPLIED,
            ReviewEventKind.JOURNAL_FAILED,
            ReviewEventKind.CONFIRMED,
        ]

    asyncio.run(scenario())


def test_stale_rollback_falls_back_to_reload(bank_snapshot: ReconciliationSnapshot) -> None:
    async def scenario() -> None:
        hold = asyncio.Event()
        gateway = FakeGateway(
            hold=hold,
            failures={ActionKind.MATCH_RECORDS: GatewayReceipt.failure("conflict")},
        )
        harness = make_harness(bank_snapshot, gateway=gateway)
        events: list[ReviewEvent] = []
        harness.dispatcher.subscribe(events.append)

        pending = harness.dispatcher.match_records(["a"], ["x"])
        # state replaced behind the dispatcher's back
        harness.store.load(bank_snapshot)
        hold.set()
        with pytest.raises(PersistenceError) as excinfo:
            await pending

        assert excinfo.value.rolled_back
        assert excinfo.value.reloaded
        assert harness.loader.calls == 1
        assert harness.store.snapshot() == bank_snapshot
        assert ReviewEventKind.RELOADED in [event.kind for event in events]

    asyncio.run(scenario())


def test_failed_reload_is_chained_to_settlement_error(
    bank_snapshot: ReconciliationSnapshot,
) -> None:
    async def scenario() -> None:
        hold = asyncio.Event()
        gateway = FakeGateway(
            hold=hold,
            failures={ActionKind.APPROVE_FOR_ENTRY: GatewayReceipt.failure("conflict")},
        )
        harness = make_harness(bank_snapshot, gateway=gateway)
        outage = RuntimeError("snapshot service down")
        harness.loader.error = outage

        pending = harness.dispatcher.approve_for_entry("a", Side.LEFT)
        harness.store.load(bank_snapshot)
        hold.set()
        with pytest.raises(PersistenceError) as excinfo:
            await pending

        assert not excinfo.value.rolled_back
        assert not excinfo.value.reloaded
        assert excinfo.value.__cause__ is outage

    asyncio.run(scenario())


def test_load_and_reload_replace_state(bank_snapshot: ReconciliationSnapshot) -> None:
    async def scenario() -> None:
        harness = make_harness(make_snapshot())
        events: list[ReviewEvent] = []
        unsubscribe = harness.dispatcher.subscribe(events.append)

        harness.loader.snapshot = bank_snapshot
        harness.lock_gate.lock = LockStatus(is_locked=True)
        await harness.dispatcher.reload()

        assert harness.store.snapshot() == bank_snapshot
        assert harness.dispatcher.read_only
        assert [event.kind for event in events] == [
            ReviewEventKind.LOCK_CHANGED,
            ReviewEventKind.RELOADED,
        ]

        unsubscribe()
        harness.lock_gate.lock = LockStatus.unlocked()
        await harness.dispatcher.load()
        assert not harness.dispatcher.read_only
        assert len(events) == 2

    asyncio.run(scenario())


def test_failing_listener_does_not_break_dispatch(bank_snapshot: ReconciliationSnapshot) -> None:
    def broken(_event: ReviewEvent) -> None:
        raise RuntimeError("listener bug")

    async def scenario() -> None:
        harness = make_harness(bank_snapshot)
        harness.dispatcher.subscribe(broken)

        outcome = await harness.dispatcher.mark_timing_difference("y", Side.RIGHT)

        assert outcome.receipt.ok

    asyncio.run(scenario())


def test_drain_waits_for_every_pending_action() -> None:
    async def scenario() -> None:
        hold = asyncio.Event()
        snapshot = make_snapshot(
            left=[make_record("1"), make_record("2")],
            right=[make_record("9", Side.RIGHT)],
        )
        harness = make_harness(snapshot, gateway=FakeGateway(hold=hold))

        first = harness.dispatcher.mark_ignored("1", Side.LEFT)
        second = harness.dispatcher.mark_ignored("2", Side.LEFT)
        assert harness.dispatcher.pending_count == 2

        hold.set()
        await harness.dispatcher.drain()

        assert first.done
        assert second.done
        assert harness.dispatcher.pending_count == 0

    asyncio.run(scenario())


def test_dispatcher_config_requires_positive_timeout() -> None:
    with pytest.raises(ValueError, match="positive"):
        DispatcherConfig(timeout_seconds=0)
