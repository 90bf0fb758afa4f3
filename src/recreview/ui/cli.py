from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from recreview.app import open_review_session
from recreview.config import configure_logging
from recreview.domain.feeds import FEED_PROFILES
from recreview.domain.model import Side, total_amount

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from recreview.app import ReviewSession

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect reconciliation reviews")
    subparsers = parser.add_subparsers(dest="command", required=True)

    summary = subparsers.add_parser("summary", help="Summarise the review state of a period")
    summary.add_argument(
        "--feed",
        choices=sorted(FEED_PROFILES),
        required=True,
        help="Feed pair to review",
    )
    summary.add_argument("--company", type=str, required=True, help="Company id")
    summary.add_argument(
        "--period",
        type=str,
        required=True,
        help="Accounting period, e.g. 2024-03",
    )
    summary.add_argument(
        "--verbose",
        action="store_true",
        help="Also list every resolved group",
    )
    return parser.parse_args(list(argv))


def summary_lines(session: ReviewSession, *, verbose: bool = False) -> list[str]:
    """Describe partitions, lock state and resolved groups of a loaded session."""

    profile = session.dispatcher.scope.feed
    store = session.store
    lines: list[str] = []

    lock = session.dispatcher.lock_status
    if lock.is_locked:
        closed_by = f" by {lock.closed_by}" if lock.closed_by else ""
        lines.append(f"Period is locked{closed_by}; review is read-only")

    for side in Side:
        records = store.unmatched(side)
        lines.append(
            f"Unmatched {profile.label(side)}: {len(records)} records, "
            f"total {total_amount(records)}"
        )
    lines.append(f"Needs follow-up: {len(store.follow_up)}")

    groups = session.grouping.groups
    lines.append(f"Resolved: {len(store.resolved)} records in {len(groups)} groups")
    pre_matched = store.pre_matched
    exact = sum(1 for group in pre_matched if group.hint.is_exact)
    lines.append(f"Pre-matched suggestions: {len(pre_matched)} ({exact} exact)")

    if verbose:
        for group in groups:
            statuses = sorted({str(entry.status) for entry in group.entries})
            lines.append(
                f"  {group.group_id}: {len(group.entries)} records "
                f"[{', '.join(statuses)}] left={group.left_total} right={group.right_total}"
            )
    return lines


async def _summarise(args: argparse.Namespace) -> list[str]:
    session = await open_review_session(
        feed=args.feed,
        company_id=args.company,
        period=args.period,
    )
    return summary_lines(session, verbose=args.verbose)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)

    try:
        if parsed_args.command == "summary":
            for line in asyncio.run(_summarise(parsed_args)):
                log.info(line)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except Exception:
        log.exception("Fatal error while reading the review")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
