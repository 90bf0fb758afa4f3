from __future__ import annotations

import asyncio
import json
from collections.abc import Callable  # noqa: TC003
from datetime import UTC, datetime

import httpx
import pytest

from recreview.adapters.http import HttpReviewBackend, ReviewServiceError
from recreview.adapters.http_resilience import ResilienceConfig, ResilientClient
from recreview.config import ReviewServiceConfig
from recreview.domain.model import ActionKind, Side
from recreview.domain.ports import ActionPayload

from tests.helpers.review import COMPANY_ID, PERIOD, make_record

BASE_URL = "https://review.test/api/"


def _make_client_factory(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            base_url=BASE_URL, transport=httpx.MockTransport(async_handler)
        )
        return client

    return factory


def _backend(
    handler: Callable[[httpx.Request], httpx.Response], feed: str = "bank"
) -> HttpReviewBackend:
    config = ReviewServiceConfig(
        base_url=BASE_URL,
        api_token="token",
        resilience=ResilienceConfig(name="recreview-test", base_url=BASE_URL),
    )
    return HttpReviewBackend(feed, config=config, client_factory=_make_client_factory(handler))


def _approve_payload() -> ActionPayload:
    return ActionPayload(
        action=ActionKind.APPROVE_FOR_ENTRY, feed="bank", records=(make_record("a"),)
    )


def test_load_fetches_feed_reconciliation() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "unmatched_bank": [
                    {"transaction": {"id": "1", "date": "2024-03-05", "amount": "4.50"}}
                ],
                "unmatched_ledger": [],
            },
        )

    snapshot = asyncio.run(_backend(handler).load(company_id=COMPANY_ID, period=PERIOD))

    (request,) = seen
    assert request.method == "GET"
    assert request.url.path == "/api/bank-rec/reconciliation"
    assert request.url.params["companyId"] == COMPANY_ID
    assert request.url.params["period"] == PERIOD
    assert [record.key for record in snapshot.unmatched_left] == [(Side.LEFT, "1")]


def test_load_wraps_http_errors() -> None:
    backend = _backend(lambda _request: httpx.Response(503))

    with pytest.raises(ReviewServiceError) as excinfo:
        asyncio.run(backend.load(company_id=COMPANY_ID, period=PERIOD))

    assert excinfo.value.status_code == 503


def test_load_wraps_unreadable_payloads() -> None:
    backend = _backend(
        lambda _request: httpx.Response(
            200, json={"unmatched_bank": [{"transaction": {"id": "1"}}]}
        )
    )

    with pytest.raises(ReviewServiceError, match="Unreadable"):
        asyncio.run(backend.load(company_id=COMPANY_ID, period=PERIOD))


def test_status_maps_lock_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/month-close/status"
        return httpx.Response(
            200,
            json={"isLocked": True, "closedAt": "2024-04-02T10:00:00Z", "closedBy": "cfo"},
        )

    lock = asyncio.run(_backend(handler).status(company_id=COMPANY_ID, period=PERIOD))

    assert lock.is_locked
    assert lock.closed_by == "cfo"
    assert lock.closed_at == datetime(2024, 4, 2, 10, tzinfo=UTC)
    assert lock.metadata["closedBy"] == "cfo"


def test_status_treats_null_lock_as_open() -> None:
    backend = _backend(lambda _request: httpx.Response(200, json={"isLocked": None}))

    lock = asyncio.run(backend.status(company_id=COMPANY_ID, period=PERIOD))

    assert not lock.is_locked


def test_successful_post_returns_server_group_id() -> None:
    bodies: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/api/bank-rec/match-items"
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True, "matchGroupId": "srv-9"})

    payload = ActionPayload(
        action=ActionKind.MATCH_RECORDS,
        feed="bank",
        records=(make_record("a"), make_record("x", Side.RIGHT)),
        group_id="match-local",
    )
    receipt = asyncio.run(
        _backend(handler).match_records(company_id=COMPANY_ID, period=PERIOD, payload=payload)
    )

    assert receipt.ok
    assert receipt.group_id == "srv-9"
    assert bodies[0]["matchGroupId"] == "match-local"
    assert bodies[0]["companyId"] == COMPANY_ID


def test_structured_error_becomes_failed_receipt() -> None:
    backend = _backend(
        lambda _request: httpx.Response(
            409, json={"code": "period_locked", "message": "March is closed"}
        )
    )

    receipt = asyncio.run(
        backend.approve_for_entry(company_id=COMPANY_ID, period=PERIOD, payload=_approve_payload())
    )

    assert not receipt.ok
    assert receipt.code == "period_locked"
    assert receipt.message == "March is closed"


def test_error_without_body_uses_status_code() -> None:
    backend = _backend(lambda _request: httpx.Response(500))

    receipt = asyncio.run(
        backend.approve_for_entry(company_id=COMPANY_ID, period=PERIOD, payload=_approve_payload())
    )

    assert receipt.code == "http_500"
    assert receipt.message == "Internal Server Error"


def test_reported_failure_is_rejected() -> None:
    backend = _backend(lambda _request: httpx.Response(200, json={"success": False}))

    receipt = asyncio.run(
        backend.approve_for_entry(company_id=COMPANY_ID, period=PERIOD, payload=_approve_payload())
    )

    assert receipt.code == "rejected"


def test_unknown_feed_is_rejected() -> None:
    with pytest.raises(ValueError, match="No wire mapping"):
        _backend(lambda _request: httpx.Response(200), feed="payroll")
