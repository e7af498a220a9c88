# src/copytrader/feed/report.py
from __future__ import annotations

import logging
from typing import Callable, Iterable

from src.copytrader.feed.models import Position, TrackedAccount

log = logging.getLogger("copytrader.feed.report")


def _fmt(x: float | None, nd: int = 2) -> str:
    return "N/A" if x is None else f"{x:.{nd}f}"


def log_accounts_snapshot(
    accounts: Iterable[TrackedAccount],
    *,
    is_new: Callable[[Position], bool],
) -> None:
    """Verbose dump of tracked accounts and their open positions."""
    accounts = list(accounts)
    log.info("=== TRACKED MODEL POSITIONS (%d accounts) ===", len(accounts))

    for i, acc in enumerate(accounts, start=1):
        log.info("Account %d: %s", i, acc.account_id)
        if acc.stats is not None:
            st = acc.stats
            log.info(
                "  equity=$%s realized=$%s unrealized=$%s sharpe=%s cum_pnl=%s%%",
                _fmt(st.dollar_equity),
                _fmt(st.realized_pnl),
                _fmt(st.total_unrealized_pnl),
                _fmt(st.sharpe_ratio),
                _fmt(st.cum_pnl_pct),
            )

        if not acc.positions:
            log.info("  no active positions")
            continue

        log.info("  active positions: %d", len(acc.positions))
        for symbol, p in acc.positions.items():
            ep = p.exit_plan
            log.info(
                "  [%s] %s entry=$%s now=$%s upnl=$%s lev=%sx qty=%s conf=%s oid=%s "
                "commission=$%s margin=$%s sl=%s tp=%s",
                "NEW" if is_new(p) else "seen",
                symbol,
                p.entry_price if p.entry_price is not None else "N/A",
                p.current_price if p.current_price is not None else "N/A",
                _fmt(p.unrealized_pnl),
                p.leverage if p.leverage is not None else "N/A",
                p.quantity if p.quantity is not None else "N/A",
                p.confidence if p.confidence is not None else "N/A",
                p.entry_oid,
                p.commission if p.commission is not None else "N/A",
                _fmt(p.margin),
                ep.stop_loss if ep and ep.stop_loss is not None else "N/A",
                ep.profit_target if ep and ep.profit_target is not None else "N/A",
            )

    log.info("=== END TRACKED MODEL POSITIONS ===")
