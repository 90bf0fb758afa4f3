from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest

from recreview.domain.errors import ValidationError
from recreview.domain.model import Partition, Side
from recreview.domain.review import PartitionStore, WorkingSelection

from tests.helpers.review import make_harness

if TYPE_CHECKING:
    from recreview.domain.model import ReconciliationSnapshot


def test_toggle_and_seed() -> None:
    selection = WorkingSelection()

    assert selection.toggle(Side.LEFT, "a") is True
    assert selection.toggle(Side.RIGHT, "x") is True
    assert selection.is_matchable
    assert selection.toggle(Side.LEFT, "a") is False
    assert not selection.is_matchable
    assert not selection.is_empty

    selection.seed(Side.LEFT, "b")

    assert selection.left == {"b"}
    assert selection.right == set()
    assert selection.is_selected(Side.LEFT, "b")

    selection.cancel()
    assert selection.is_empty


def test_preview_totals_selected_records(bank_snapshot: ReconciliationSnapshot) -> None:
    store = PartitionStore(bank_snapshot)
    selection = WorkingSelection(left={"a", "c"}, right={"x"})

    hint = selection.preview(store)

    assert hint.left_total == Decimal("125.00")
    assert hint.right_total == Decimal("150.00")
    assert hint.difference == Decimal("25.00")
    assert not hint.is_exact
    assert [record.id for record in selection.selected_records(store)] == ["a", "c", "x"]


def test_prune_drops_records_that_left_unmatched(bank_snapshot: ReconciliationSnapshot) -> None:
    store = PartitionStore(bank_snapshot)
    selection = WorkingSelection(left={"a", "b"}, right={"y"})
    store.delete((Side.LEFT, "b"))

    selection.prune(store)

    assert selection.left == {"a"}
    assert selection.right == {"y"}


def test_commit_matches_in_listing_order_and_clears(
    bank_snapshot: ReconciliationSnapshot,
) -> None:
    async def scenario() -> None:
        harness = make_harness(bank_snapshot)
        selection = WorkingSelection(left={"b", "a"}, right={"x"})

        pending = selection.commit(harness.dispatcher)
        await pending

        assert selection.is_empty
        ((_action, payload),) = harness.gateway.calls
        assert [record.id for record in payload.records] == ["a", "b", "x"]
        assert harness.store.locate((Side.LEFT, "a")) is Partition.RESOLVED

    asyncio.run(scenario())


def test_rejected_commit_keeps_selection(bank_snapshot: ReconciliationSnapshot) -> None:
    async def scenario() -> None:
        harness = make_harness(bank_snapshot)
        selection = WorkingSelection(left={"a", "p"}, right={"x"})

        with pytest.raises(ValidationError):
            selection.commit(harness.dispatcher)

        assert selection.left == {"a", "p"}
        assert harness.gateway.calls == []

    asyncio.run(scenario())
