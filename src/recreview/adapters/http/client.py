"""HTTP client for the reconciliation review service."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PayloadValidationError

from recreview.adapters.http_resilience import ResilientClient
from recreview.config.service import get_review_service_config
from recreview.domain.ports import (
    GatewayReceipt,
    LockStatus,
    PeriodLockGate,
    PersistenceGateway,
    SnapshotLoader,
)

from .routes import LOCK_STATUS_PATH, get_feed_wire
from .schema import ErrorPayload, ReceiptPayload
from .translator import build_request, parse_lock_status, parse_snapshot

if TYPE_CHECKING:
    from collections.abc import Callable

    import httpx

    from recreview.config.http_resilience import ResilienceConfig
    from recreview.config.service import ReviewServiceConfig
    from recreview.domain.model import ReconciliationSnapshot
    from recreview.domain.ports import ActionPayload

    from .routes import FeedWire

log = getLogger(__name__)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class ReviewServiceError(RuntimeError):
    """Raised when a read request to the review service fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class HttpReviewBackend:
    """Snapshot loader, lock gate and persistence gateway for one feed pair."""

    feed: str
    config: ReviewServiceConfig = field(default_factory=get_review_service_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    wire: FeedWire = field(init=False)

    def __post_init__(self) -> None:
        self.wire = get_feed_wire(self.feed)

    # ------------------------------------------------------------ reads

    async def load(self, *, company_id: str, period: str) -> ReconciliationSnapshot:
        raw = await self._get_json(
            self.wire.path("reconciliation"),
            params={"companyId": company_id, "period": period},
        )
        try:
            return parse_snapshot(raw, self.wire)
        except (PayloadValidationError, ValueError) as exc:
            log.exception("Unreadable %s reconciliation payload", self.wire.prefix)
            raise ReviewServiceError(f"Unreadable reconciliation payload: {exc}") from exc

    async def status(self, *, company_id: str, period: str) -> LockStatus:
        raw = await self._get_json(
            LOCK_STATUS_PATH, params={"companyId": company_id, "period": period}
        )
        payload = parse_lock_status(raw)
        return LockStatus(
            is_locked=payload.is_locked,
            closed_at=payload.closed_at,
            closed_by=payload.closed_by,
            metadata=raw,
        )

    # -------------------------------------------------------- mutations

    async def match_records(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt:
        return await self._submit(company_id=company_id, period=period, payload=payload)

    async def approve_for_entry(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt:
        return await self._submit(company_id=company_id, period=period, payload=payload)

    async def reverse_entry(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt:
        return await self._submit(company_id=company_id, period=period, payload=payload)

    async def mark_timing_difference(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt:
        return await self._submit(company_id=company_id, period=period, payload=payload)

    async def mark_ignored(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt:
        return await self._submit(company_id=company_id, period=period, payload=payload)

    async def request_follow_up(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt:
        return await self._submit(company_id=company_id, period=period, payload=payload)

    async def return_follow_up(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt:
        return await self._submit(company_id=company_id, period=period, payload=payload)

    async def reverse_resolution(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt:
        return await self._submit(company_id=company_id, period=period, payload=payload)

    async def unmatch_pre_matched(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt:
        return await self._submit(company_id=company_id, period=period, payload=payload)

    async def edit_record(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt:
        return await self._submit(company_id=company_id, period=period, payload=payload)

    async def delete_record(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt:
        return await self._submit(company_id=company_id, period=period, payload=payload)

    # -------------------------------------------------------- internals

    async def _get_json(self, path: str, *, params: dict[str, str]) -> dict[str, Any]:
        async with self.client_factory(self.config.resilience) as client:
            response = await client.get(path, params=params)
        if response.is_error:
            log.error("Review service GET %s failed with %s", path, response.status_code)
            raise ReviewServiceError(
                f"GET {path} failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ReviewServiceError(f"GET {path} returned invalid JSON") from exc
        if not isinstance(payload, dict):
            raise ReviewServiceError(f"Unexpected payload from GET {path}")
        return payload

    async def _submit(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt:
        path, body = build_request(payload, wire=self.wire, company_id=company_id, period=period)
        async with self.client_factory(self.config.resilience) as client:
            response = await client.post(path, json=body)

        if response.is_success:
            receipt = ReceiptPayload.model_validate(_json_or_empty(response))
            if receipt.success is False:
                return GatewayReceipt.failure("rejected", f"POST {path} reported failure")
            return GatewayReceipt.success(group_id=receipt.match_group_id)

        error = ErrorPayload.model_validate(_json_or_empty(response))
        code = error.failure_code or f"http_{response.status_code}"
        log.warning(f"Review service rejected {payload.action}: {response.status_code} {code}")
        return GatewayReceipt.failure(code, error.failure_message or response.reason_phrase)


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


if TYPE_CHECKING:
    _loader_check: SnapshotLoader = HttpReviewBackend("bank")
    _lock_check: PeriodLockGate = HttpReviewBackend("bank")
    _gateway_check: PersistenceGateway = HttpReviewBackend("bank")
