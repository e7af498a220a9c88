# src/copytrader/notifications/base.py
from __future__ import annotations

import logging
from typing import Any, Iterable, List, Protocol

log = logging.getLogger("copytrader.notifications")


class PositionNotifier(Protocol):
    """Downstream action invoked once per newly detected position."""

    def notify(
        self,
        *,
        symbol: str,
        entry_price: float | None,
        leverage: float | None,
        quantity: float | None,
        entry_time: float | None,
        entry_oid: Any,
        side: str | None = None,
        account_id: str | None = None,
    ) -> None:
        ...


class TradeLogNotifier:
    """
    Placeholder mirroring action: logs the trade it would open.
    Swap for a real exchange client to place orders.
    """

    def __init__(self, *, dry_run: bool = True):
        self.dry_run = bool(dry_run)

    def notify(
        self,
        *,
        symbol: str,
        entry_price: float | None,
        leverage: float | None,
        quantity: float | None,
        entry_time: float | None,
        entry_oid: Any,
        side: str | None = None,
        account_id: str | None = None,
    ) -> None:
        log.info(
            "OPEN TRADE%s symbol=%s side=%s qty=%s entry=%s lev=%s entry_time=%s oid=%s model=%s",
            " [DRY_RUN]" if self.dry_run else "",
            symbol, side, quantity, entry_price, leverage, entry_time, entry_oid, account_id,
        )


class FanoutNotifier:
    def __init__(self, notifiers: Iterable[PositionNotifier]):
        self.notifiers: List[PositionNotifier] = list(notifiers)

    def notify(self, **kwargs: Any) -> None:
        for n in self.notifiers:
            n.notify(**kwargs)


def build_notifier(names: Iterable[str], *, dry_run: bool = True) -> PositionNotifier:
    out: List[PositionNotifier] = []
    for raw in names:
        name = str(raw).strip().lower()
        if name == "log":
            out.append(TradeLogNotifier(dry_run=dry_run))
        elif name == "telegram":
            from src.copytrader.notifications.telegram import TelegramNotifier

            out.append(TelegramNotifier.from_env())
        else:
            raise ValueError(f"Unknown notifier: {raw}")

    if not out:
        out.append(TradeLogNotifier(dry_run=dry_run))
    if len(out) == 1:
        return out[0]
    return FanoutNotifier(out)
