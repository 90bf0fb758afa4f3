from __future__ import annotations

import pytest

from recreview.domain.model import ReconciliationSnapshot, Side

from tests.helpers.review import make_pre_matched, make_record, make_snapshot


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("RECREVIEW_API_BASE_URL", "RECREVIEW_API_TOKEN", "RECREVIEW_TIMEOUT_SECONDS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def bank_snapshot() -> ReconciliationSnapshot:
    """Three statement lines, three ledger entries and one auto-matched pair."""

    return make_snapshot(
        left=(
            make_record("a", Side.LEFT, amount="100.00"),
            make_record("b", Side.LEFT, amount="50.00"),
            make_record("c", Side.LEFT, amount="25.00"),
        ),
        right=(
            make_record("x", Side.RIGHT, amount="150.00"),
            make_record("y", Side.RIGHT, amount="25.00"),
            make_record("z", Side.RIGHT, amount="40.00"),
        ),
        pre_matched=(
            make_pre_matched(
                "pre-1",
                [make_record("p", Side.LEFT, amount="70.00")],
                [make_record("q", Side.RIGHT, amount="70.00")],
            ),
        ),
    )
