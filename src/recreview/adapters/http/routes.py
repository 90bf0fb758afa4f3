"""Per-feed wire vocabulary of the review service."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from recreview.domain.model import ActionKind, Side

if TYPE_CHECKING:
    from collections.abc import Mapping

APPROVE_SUGGESTION_PATH: Final = "journal-entries/approve-suggestion"
REVERSE_JE_PATH: Final = "journal-entries/reverse-je"
LOCK_STATUS_PATH: Final = "month-close/status"

_COMMON_ROUTES: Final[dict[ActionKind, str]] = {
    ActionKind.MATCH_RECORDS: "match-items",
    ActionKind.MARK_TIMING_DIFFERENCE: "mark-timing-difference",
    ActionKind.MARK_IGNORED: "mark-ignored",
    ActionKind.REQUEST_FOLLOW_UP: "request-information",
    ActionKind.RETURN_FOLLOW_UP: "reverse-follow-up",
    ActionKind.REVERSE_RESOLUTION: "reverse-resolved",
    ActionKind.UNMATCH_PRE_MATCHED: "unmatch-group",
    ActionKind.EDIT_RECORD: "update-transaction",
    ActionKind.DELETE_RECORD: "delete-transaction",
}

_JOURNAL_PATHS: Final[dict[ActionKind, str]] = {
    ActionKind.APPROVE_FOR_ENTRY: APPROVE_SUGGESTION_PATH,
    ActionKind.REVERSE_ENTRY: REVERSE_JE_PATH,
}


@dataclass(frozen=True, slots=True, kw_only=True)
class FeedWire:
    """Route prefix and field names one feed pair uses on the wire.

    ``left_type``/``right_type`` are the ``type`` discriminators of items;
    the ``*_field`` names select attributes of the parsed payload models.
    """

    prefix: str
    left_type: str
    right_type: str
    left_items_key: str
    right_items_key: str
    unmatched_left_field: str
    unmatched_right_field: str
    pre_matched_left_field: str
    pre_matched_right_field: str
    routes: Mapping[ActionKind, str]
    group_reversal_route: str = "reverse-match-group"

    def type_for(self, side: Side) -> str:
        return self.left_type if side is Side.LEFT else self.right_type

    def side_for(self, item_type: str) -> Side:
        if item_type == self.left_type:
            return Side.LEFT
        if item_type == self.right_type:
            return Side.RIGHT
        raise ValueError(f"Unknown {self.prefix} item type {item_type!r}")

    def path(self, route: str) -> str:
        return f"{self.prefix}/{route}"

    def action_path(self, action: ActionKind, *, group_reversal: bool = False) -> str:
        if action in _JOURNAL_PATHS:
            return _JOURNAL_PATHS[action]
        if action is ActionKind.REVERSE_RESOLUTION and group_reversal:
            return self.path(self.group_reversal_route)
        try:
            return self.path(self.routes[action])
        except KeyError:
            raise ValueError(f"{self.prefix} has no route for {action}") from None


BANK_WIRE: Final = FeedWire(
    prefix="bank-rec",
    left_type="bank",
    right_type="ledger",
    left_items_key="bankItems",
    right_items_key="ledgerItems",
    unmatched_left_field="unmatched_bank",
    unmatched_right_field="unmatched_ledger",
    pre_matched_left_field="bank_transactions",
    pre_matched_right_field="ledger_entries",
    routes=_COMMON_ROUTES,
)

CREDIT_CARD_WIRE: Final = FeedWire(
    prefix="cc-rec",
    left_type="cc",
    right_type="ledger",
    left_items_key="ccItems",
    right_items_key="ledgerItems",
    unmatched_left_field="unmatched_cc",
    unmatched_right_field="unmatched_ledger",
    pre_matched_left_field="cc_transactions",
    pre_matched_right_field="ledger_entries",
    routes={
        action: route
        for action, route in _COMMON_ROUTES.items()
        if action
        not in {ActionKind.UNMATCH_PRE_MATCHED, ActionKind.EDIT_RECORD, ActionKind.DELETE_RECORD}
    },
)

ACCOUNTS_PAYABLE_WIRE: Final = FeedWire(
    prefix="ap-rec",
    left_type="vendor",
    right_type="ap",
    left_items_key="vendorItems",
    right_items_key="apItems",
    unmatched_left_field="unmatched_vendor",
    unmatched_right_field="unmatched_ap",
    pre_matched_left_field="vendor_transactions",
    pre_matched_right_field="ap_entries",
    routes={
        **_COMMON_ROUTES,
        ActionKind.RETURN_FOLLOW_UP: "move-to-needs-attention",
        ActionKind.REVERSE_RESOLUTION: "move-to-needs-attention",
    },
)

FEED_WIRES: Final[dict[str, FeedWire]] = {
    "bank": BANK_WIRE,
    "credit_card": CREDIT_CARD_WIRE,
    "accounts_payable": ACCOUNTS_PAYABLE_WIRE,
}


def get_feed_wire(feed: str) -> FeedWire:
    try:
        return FEED_WIRES[feed]
    except KeyError:
        raise ValueError(f"No wire mapping for feed {feed!r}") from None


__all__ = [
    "ACCOUNTS_PAYABLE_WIRE",
    "APPROVE_SUGGESTION_PATH",
    "BANK_WIRE",
    "CREDIT_CARD_WIRE",
    "FEED_WIRES",
    "LOCK_STATUS_PATH",
    "REVERSE_JE_PATH",
    "FeedWire",
    "get_feed_wire",
]
