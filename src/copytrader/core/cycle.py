# src/copytrader/core/cycle.py
from __future__ import annotations

import logging
from typing import Iterable

from src.copytrader.core.detector import NewPositionDetector
from src.copytrader.feed.models import NewPositionEvent
from src.copytrader.feed.normalize import available_account_ids, select_accounts
from src.copytrader.feed.report import log_accounts_snapshot
from src.copytrader.feed.rest import PositionsFeedREST

log = logging.getLogger("copytrader.core.cycle")


class CopyTradeCycle:
    """One fetch -> select -> detect/notify pass. Errors from fetch propagate to the poller."""

    def __init__(
        self,
        *,
        feed: PositionsFeedREST,
        detector: NewPositionDetector,
        prefixes: Iterable[str],
        verbose: bool = False,
    ):
        self.feed = feed
        self.detector = detector
        self.prefixes = [str(p).lower() for p in prefixes if p]
        self.verbose = bool(verbose)

    def run(self) -> list[NewPositionEvent]:
        payload = self.feed.fetch()
        accounts = select_accounts(payload, self.prefixes)

        if not accounts:
            ids = available_account_ids(payload)
            log.info(
                "No tracked accounts in response (prefixes=%s) | available: %s",
                ",".join(self.prefixes),
                ", ".join(ids) if ids else "none",
            )
            return []

        log.info("Found %d tracked accounts", len(accounts))
        if self.verbose:
            log_accounts_snapshot(accounts, is_new=self.detector.is_new)

        events = self.detector.process(accounts)
        log.info("Processed %d accounts, new positions: %d", len(accounts), len(events))
        return events

    __call__ = run
