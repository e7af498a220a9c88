# src/copytrader/core/detector.py
from __future__ import annotations

import logging
from typing import Any, Iterable

from src.copytrader.feed.models import NewPositionEvent, Position, TrackedAccount
from src.copytrader.notifications.base import PositionNotifier
from src.copytrader.state.seen_store import SeenPositionsStore

log = logging.getLogger("copytrader.core.detector")


class NewPositionDetector:
    """
    Owns the set of reported entry_oids.

    Identity is global: an oid seen once (any account, any symbol) is never new again.
    Each new oid is persisted and notified before the next position is looked at.
    """

    def __init__(
        self,
        *,
        store: SeenPositionsStore,
        seen: set[Any] | None = None,
        notifier: PositionNotifier | None = None,
    ):
        self.store = store
        self.seen: set[Any] = seen if seen is not None else set()
        self.notifier = notifier

    def is_new(self, position: Position) -> bool:
        return position.has_entry and position.entry_oid not in self.seen

    def process(self, accounts: Iterable[TrackedAccount]) -> list[NewPositionEvent]:
        events: list[NewPositionEvent] = []

        for account in accounts:
            for symbol, position in account.positions.items():
                if not self.is_new(position):
                    continue

                self.seen.add(position.entry_oid)
                if not self.store.save(self.seen):
                    log.warning("oid=%s kept in memory only (save failed)", position.entry_oid)

                ev = NewPositionEvent(account_id=account.account_id, symbol=symbol, position=position)
                events.append(ev)

                log.info(
                    "NEW %s POSITION OPENED | %s %s qty=%s entry=%s lev=%s oid=%s",
                    account.account_id.upper(),
                    symbol,
                    position.side,
                    position.quantity,
                    position.entry_price,
                    position.leverage,
                    position.entry_oid,
                )

                if self.notifier is not None:
                    self.notifier.notify(**ev.trade_params())

        return events
