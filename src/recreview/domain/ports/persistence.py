"""Port for persisting review actions remotely."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from recreview.domain.model import ActionKind, Record, RecordPatch, ReviewEntry


@dataclass(frozen=True, slots=True, kw_only=True)
class ActionPayload:
    """Everything the remote side needs to replay one review action.

    ``records`` carry the pre-action values of every record involved;
    ``entries`` carry the review entries an action removed (reversals).
    """

    action: ActionKind
    feed: str
    records: tuple[Record, ...] = ()
    entries: tuple[ReviewEntry, ...] = ()
    group_id: str | None = None
    note: str | None = None
    patch: RecordPatch | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class GatewayReceipt:
    """Success or structured failure returned by a gateway call."""

    ok: bool
    code: str | None = None
    message: str | None = None
    group_id: str | None = None

    @classmethod
    def success(cls, *, group_id: str | None = None) -> GatewayReceipt:
        return cls(ok=True, group_id=group_id)

    @classmethod
    def failure(cls, code: str, message: str | None = None) -> GatewayReceipt:
        return cls(ok=False, code=code, message=message)


@runtime_checkable
class PersistenceGateway(Protocol):
    """One RPC per review action.

    Calls are at-least-once from the engine's perspective. Raising means the
    call could not complete; a failed receipt means the remote side refused.
    """

    async def match_records(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt: ...

    async def approve_for_entry(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt: ...

    async def reverse_entry(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt: ...

    async def mark_timing_difference(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt: ...

    async def mark_ignored(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt: ...

    async def request_follow_up(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt: ...

    async def return_follow_up(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt: ...

    async def reverse_resolution(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt: ...

    async def unmatch_pre_matched(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt: ...

    async def edit_record(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt: ...

    async def delete_record(
        self, *, company_id: str, period: str, payload: ActionPayload
    ) -> GatewayReceipt: ...


__all__ = ["ActionPayload", "GatewayReceipt", "PersistenceGateway"]
