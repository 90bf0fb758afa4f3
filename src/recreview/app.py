"""Application orchestration entry points."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from recreview.adapters.http import HttpReviewBackend
from recreview.config.service import get_dispatcher_config
from recreview.domain.feeds import get_feed_profile
from recreview.domain.review import (
    ActionDispatcher,
    DispatcherConfig,
    GroupExpansion,
    GroupingIndex,
    PartitionStore,
    ReviewScope,
    WorkingSelection,
)

if TYPE_CHECKING:
    from typing import Protocol

    from recreview.domain.ports import (
        JournalEntryNotifier,
        PeriodLockGate,
        PersistenceGateway,
        SnapshotLoader,
    )
    from recreview.domain.review import Clock

    class ReviewBackend(SnapshotLoader, PeriodLockGate, PersistenceGateway, Protocol): ...


log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReviewSession:
    """A loaded review with its state store and presentation helpers."""

    dispatcher: ActionDispatcher
    store: PartitionStore
    selection: WorkingSelection
    grouping: GroupingIndex
    expansion: GroupExpansion

    @property
    def read_only(self) -> bool:
        return self.dispatcher.read_only


async def open_review_session(  # noqa: PLR0913
    *,
    feed: str,
    company_id: str,
    period: str,
    backend: ReviewBackend | None = None,
    journal: JournalEntryNotifier | None = None,
    config: DispatcherConfig | None = None,
    clock: Clock | None = None,
) -> ReviewSession:
    """Build a dispatcher for ``feed`` and load the authoritative snapshot."""

    profile = get_feed_profile(feed)
    effective_backend = backend or HttpReviewBackend(feed)
    store = PartitionStore(clock=clock) if clock is not None else PartitionStore()
    dispatcher = ActionDispatcher(
        scope=ReviewScope(company_id=company_id, period=period, feed=profile),
        store=store,
        gateway=effective_backend,
        loader=effective_backend,
        lock_gate=effective_backend,
        journal=journal,
        config=config or get_dispatcher_config(),
    )
    log.info("Opening %s review for %s/%s", profile.name, company_id, period)
    await dispatcher.load()
    return ReviewSession(
        dispatcher=dispatcher,
        store=store,
        selection=WorkingSelection(),
        grouping=GroupingIndex(store),
        expansion=GroupExpansion(),
    )
