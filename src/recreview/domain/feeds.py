"""Feed-pair profiles.

The same review engine serves every feed pair; a profile names the two sides
and declares which actions the pair supports.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from .errors import UnsupportedActionError
from .model import ActionKind, Side

if TYPE_CHECKING:
    from .model import RecordKey

ALL_ACTIONS: Final[frozenset[ActionKind]] = frozenset(ActionKind)


@dataclass(frozen=True, slots=True, kw_only=True)
class FeedProfile:
    name: str
    left_label: str
    right_label: str
    journal_source: str
    capabilities: frozenset[ActionKind] = ALL_ACTIONS

    def supports(self, action: ActionKind) -> bool:
        return action in self.capabilities

    def require(
        self,
        action: ActionKind,
        *,
        record_keys: tuple[RecordKey, ...] = (),
        group_id: str | None = None,
    ) -> None:
        if not self.supports(action):
            raise UnsupportedActionError(
                f"{self.name} reconciliation does not support {action}",
                action=action,
                record_keys=record_keys,
                group_id=group_id,
            )

    def label(self, side: Side) -> str:
        return self.left_label if side is Side.LEFT else self.right_label


BANK: Final = FeedProfile(
    name="bank",
    left_label="Bank statement",
    right_label="General ledger",
    journal_source="bank-rec",
)

CREDIT_CARD: Final = FeedProfile(
    name="credit_card",
    left_label="Card statement",
    right_label="General ledger",
    journal_source="cc-rec",
    capabilities=ALL_ACTIONS
    - {ActionKind.UNMATCH_PRE_MATCHED, ActionKind.EDIT_RECORD, ActionKind.DELETE_RECORD},
)

ACCOUNTS_PAYABLE: Final = FeedProfile(
    name="accounts_payable",
    left_label="Vendor statement",
    right_label="AP ledger",
    journal_source="ap-rec",
    capabilities=ALL_ACTIONS - {ActionKind.REVERSE_ENTRY},
)

FEED_PROFILES: Final[dict[str, FeedProfile]] = {
    profile.name: profile for profile in (BANK, CREDIT_CARD, ACCOUNTS_PAYABLE)
}


def get_feed_profile(name: str) -> FeedProfile:
    try:
        return FEED_PROFILES[name]
    except KeyError:
        known = ", ".join(sorted(FEED_PROFILES))
        raise ValueError(f"Unknown feed {name!r} (expected one of: {known})") from None


__all__ = [
    "ACCOUNTS_PAYABLE",
    "ALL_ACTIONS",
    "BANK",
    "CREDIT_CARD",
    "FEED_PROFILES",
    "FeedProfile",
    "get_feed_profile",
]
