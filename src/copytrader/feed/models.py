# src/copytrader/feed/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


NO_ENTRY_OID = -1


def is_sentinel_oid(oid: Any) -> bool:
    """entry_oid that means "no position": missing, empty or -1. Non-scalar ids count as missing."""
    if oid is None or isinstance(oid, bool) or not isinstance(oid, (int, float, str)):
        return True
    if isinstance(oid, str):
        s = oid.strip()
        return not s or s == str(NO_ENTRY_OID)
    return oid == NO_ENTRY_OID


@dataclass(frozen=True, slots=True)
class ExitPlan:
    stop_loss: float | None = None
    profit_target: float | None = None


@dataclass(frozen=True, slots=True)
class Position:
    symbol: str
    entry_oid: Any  # int | str, opaque upstream id

    entry_price: float | None = None
    current_price: float | None = None
    quantity: float | None = None
    leverage: float | None = None

    unrealized_pnl: float | None = None
    commission: float | None = None
    margin: float | None = None
    confidence: float | None = None

    entry_time: float | None = None  # epoch seconds
    exit_plan: ExitPlan | None = None

    @property
    def has_entry(self) -> bool:
        return not is_sentinel_oid(self.entry_oid)

    @property
    def side(self) -> str:
        if self.quantity is not None and self.quantity < 0:
            return "short"
        return "long"


@dataclass(frozen=True, slots=True)
class AccountStats:
    """Aggregates of the account-totals feed. Only used for reporting."""

    dollar_equity: float | None = None
    realized_pnl: float | None = None
    total_unrealized_pnl: float | None = None
    sharpe_ratio: float | None = None
    cum_pnl_pct: float | None = None


@dataclass(frozen=True, slots=True)
class TrackedAccount:
    account_id: str
    positions: Dict[str, Position] = field(default_factory=dict)
    stats: Optional[AccountStats] = None


@dataclass(frozen=True, slots=True)
class NewPositionEvent:
    account_id: str
    symbol: str
    position: Position

    def trade_params(self) -> dict:
        p = self.position
        return {
            "symbol": self.symbol,
            "entry_price": p.entry_price,
            "leverage": p.leverage,
            "quantity": p.quantity,
            "entry_time": p.entry_time,
            "entry_oid": p.entry_oid,
            "side": p.side,
            "account_id": self.account_id,
        }
