"""Pydantic models describing the review service payloads."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class ReviewBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class RecordPayload(ReviewBaseModel):
    """Bank/card/vendor transaction or ledger entry.

    Card ledger entries carry ``vendor``/``memo`` and ``debit``/``credit``
    instead of ``description``/``amount``.
    """

    id: str
    date: dt.date
    description: str | None = None
    vendor: str | None = None
    memo: str | None = None
    merchant: str | None = None
    amount: Decimal | None = None
    debit: Decimal | None = None
    credit: Decimal | None = None
    reference: str | None = None

    _normalize_text = field_validator("description", "vendor", "memo", "merchant", mode="before")(
        _blank_to_none
    )

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("date", mode="before")
    @classmethod
    def _date_only(cls, value: object) -> object:
        # timestamps such as "2024-03-05T00:00:00Z" are reduced to their date part
        if isinstance(value, str) and len(value) > 10 and value[10] in "T ":
            return value[:10]
        return value

    @property
    def display_description(self) -> str:
        return self.description or self.vendor or self.memo or self.merchant or ""

    @property
    def signed_amount(self) -> Decimal:
        if self.amount is not None:
            return self.amount
        return (self.debit or Decimal(0)) - (self.credit or Decimal(0))


class UnmatchedTransactionPayload(ReviewBaseModel):
    transaction: RecordPayload
    reason: str | None = None
    action: str | None = None


class UnmatchedEntryPayload(ReviewBaseModel):
    entry: RecordPayload
    reason: str | None = None
    action: str | None = None


class ReviewItemPayload(ReviewBaseModel):
    """Wrapped record inside a resolved or follow-up item."""

    transaction: RecordPayload | None = None
    entry: RecordPayload | None = None


class ResolvedItemPayload(ReviewBaseModel):
    type: str
    item: ReviewItemPayload
    marked_at: dt.datetime = Field(alias="markedAt")
    status: str
    resolution: str | None = None
    match_group_id: str | None = Field(default=None, alias="matchGroupId")

    _normalize_group = field_validator("match_group_id", mode="before")(_blank_to_none)


class FollowUpItemPayload(ReviewBaseModel):
    type: str
    item: ReviewItemPayload
    marked_at: dt.datetime = Field(alias="markedAt")
    note: str = ""


class PreMatchedItemPayload(ReviewBaseModel):
    match_group_id: str = Field(alias="matchGroupId")
    matched_at: dt.datetime = Field(alias="matchedAt")
    confidence: float | None = None
    bank_transactions: list[RecordPayload] = Field(default_factory=list, alias="bankTransactions")
    cc_transactions: list[RecordPayload] = Field(default_factory=list, alias="ccTransactions")
    vendor_transactions: list[RecordPayload] = Field(
        default_factory=list, alias="vendorTransactions"
    )
    ledger_entries: list[RecordPayload] = Field(default_factory=list, alias="ledgerEntries")
    ap_entries: list[RecordPayload] = Field(default_factory=list, alias="apEntries")


class ReconciliationPayload(ReviewBaseModel):
    unmatched_bank: list[UnmatchedTransactionPayload] = Field(
        default_factory=list, validation_alias=AliasChoices("unmatched_bank", "unmatchedBank")
    )
    unmatched_cc: list[UnmatchedTransactionPayload] = Field(
        default_factory=list, validation_alias=AliasChoices("unmatched_cc", "unmatchedCC")
    )
    unmatched_vendor: list[UnmatchedTransactionPayload] = Field(
        default_factory=list, validation_alias=AliasChoices("unmatched_vendor", "unmatchedVendor")
    )
    unmatched_ledger: list[UnmatchedEntryPayload] = Field(
        default_factory=list, validation_alias=AliasChoices("unmatched_ledger", "unmatchedLedger")
    )
    unmatched_ap: list[UnmatchedEntryPayload] = Field(
        default_factory=list, validation_alias=AliasChoices("unmatched_ap", "unmatchedAP")
    )
    resolved_items: list[ResolvedItemPayload] = Field(default_factory=list)
    follow_up_items: list[FollowUpItemPayload] = Field(default_factory=list)
    pre_matched_items: list[PreMatchedItemPayload] = Field(default_factory=list)
    locked: bool = False


class LockStatusPayload(ReviewBaseModel):
    is_locked: bool = Field(default=False, alias="isLocked")
    closed_at: dt.datetime | None = Field(default=None, alias="closedAt")
    closed_by: str | None = Field(default=None, alias="closedBy")

    @field_validator("is_locked", mode="before")
    @classmethod
    def _null_is_unlocked(cls, value: object) -> object:
        return False if value is None else value


class ReceiptPayload(ReviewBaseModel):
    success: bool | None = None
    match_group_id: str | None = Field(
        default=None, validation_alias=AliasChoices("matchGroupId", "groupId", "match_group_id")
    )


class ErrorPayload(ReviewBaseModel):
    code: str | None = None
    error: str | None = None
    message: str | None = None

    @field_validator("code", "error", mode="before")
    @classmethod
    def _stringify(cls, value: object) -> object:
        if isinstance(value, int | float):
            return str(value)
        return value

    @property
    def failure_code(self) -> str | None:
        return self.code or self.error

    @property
    def failure_message(self) -> str | None:
        return self.message or self.error


__all__ = [
    "ErrorPayload",
    "FollowUpItemPayload",
    "LockStatusPayload",
    "PreMatchedItemPayload",
    "ReceiptPayload",
    "ReconciliationPayload",
    "RecordPayload",
    "ResolvedItemPayload",
    "ReviewItemPayload",
    "UnmatchedEntryPayload",
    "UnmatchedTransactionPayload",
]
