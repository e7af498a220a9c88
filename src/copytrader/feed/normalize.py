# src/copytrader/feed/normalize.py
from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from src.copytrader.feed.models import AccountStats, ExitPlan, Position, TrackedAccount

log = logging.getLogger("copytrader.feed.normalize")


def _safe_float(x: Any) -> float | None:
    try:
        if x is None or isinstance(x, bool):
            return None
        if isinstance(x, (int, float)):
            return float(x)
        s = str(x).strip()
        if not s:
            return None
        return float(s)
    except Exception:
        return None


# -------------------------
# position
# -------------------------
def _norm_oid(symbol: str, oid: Any) -> Any:
    # the oid goes into a set: only hashable scalars, same filter as the seen file
    if oid is None or isinstance(oid, bool) or not isinstance(oid, (int, float, str)):
        if oid is not None:
            log.debug("Unusable entry_oid for %s: %r", symbol, oid)
        return None
    return oid


def norm_position(symbol: str, raw: Any) -> Position | None:
    if not isinstance(raw, dict):
        return None

    exit_plan = None
    ep = raw.get("exit_plan")
    if isinstance(ep, dict):
        exit_plan = ExitPlan(
            stop_loss=_safe_float(ep.get("stop_loss")),
            profit_target=_safe_float(ep.get("profit_target")),
        )

    return Position(
        symbol=str(symbol),
        entry_oid=_norm_oid(symbol, raw.get("entry_oid")),
        entry_price=_safe_float(raw.get("entry_price")),
        current_price=_safe_float(raw.get("current_price")),
        quantity=_safe_float(raw.get("quantity")),
        leverage=_safe_float(raw.get("leverage")),
        unrealized_pnl=_safe_float(raw.get("unrealized_pnl")),
        commission=_safe_float(raw.get("commission")),
        margin=_safe_float(raw.get("margin")),
        confidence=_safe_float(raw.get("confidence")),
        entry_time=_safe_float(raw.get("entry_time")),
        exit_plan=exit_plan,
    )


def _norm_positions_map(raw: Any) -> dict[str, Position] | None:
    if not isinstance(raw, dict):
        return None
    out: dict[str, Position] = {}
    for symbol, item in raw.items():
        pos = norm_position(symbol, item)
        if pos is None:
            log.debug("Skip malformed position entry: %s", symbol)
            continue
        out[str(symbol)] = pos
    return out


# -------------------------
# adapters (one per upstream schema)
# -------------------------
def _from_models(entries: list) -> list[TrackedAccount]:
    """{"positions": [{"id": ..., "positions": {...}}]}"""
    out: list[TrackedAccount] = []
    for e in entries:
        if not isinstance(e, dict):
            continue
        account_id = e.get("id")
        positions = _norm_positions_map(e.get("positions"))
        if not isinstance(account_id, str) or not account_id or positions is None:
            continue
        out.append(TrackedAccount(account_id=account_id, positions=positions))
    return out


def _from_account_totals(entries: list) -> list[TrackedAccount]:
    """{"accountTotals": [{"model_id": ..., "positions": {...}, <stats>}]}"""
    out: list[TrackedAccount] = []
    for e in entries:
        if not isinstance(e, dict):
            continue
        account_id = e.get("model_id")
        positions = _norm_positions_map(e.get("positions"))
        if not isinstance(account_id, str) or not account_id or positions is None:
            continue
        stats = AccountStats(
            dollar_equity=_safe_float(e.get("dollar_equity")),
            realized_pnl=_safe_float(e.get("realized_pnl")),
            total_unrealized_pnl=_safe_float(e.get("total_unrealized_pnl")),
            sharpe_ratio=_safe_float(e.get("sharpe_ratio")),
            cum_pnl_pct=_safe_float(e.get("cum_pnl_pct")),
        )
        out.append(TrackedAccount(account_id=account_id, positions=positions, stats=stats))
    return out


_ADAPTERS: tuple[tuple[str, str, Callable[[list], list[TrackedAccount]]], ...] = (
    ("accountTotals", "model_id", _from_account_totals),
    ("positions", "id", _from_models),
)


def parse_accounts(payload: Any) -> list[TrackedAccount]:
    """Reduce any supported payload shape to a list of TrackedAccount."""
    if not isinstance(payload, dict):
        return []
    for key, _, adapter in _ADAPTERS:
        entries = payload.get(key)
        if isinstance(entries, list):
            return adapter(entries)
    log.warning("Unrecognized payload shape: keys=%s", ",".join(sorted(map(str, payload.keys()))))
    return []


def matches_prefix(account_id: str, prefixes: Iterable[str]) -> bool:
    aid = str(account_id).lower()
    return any(p and aid.startswith(str(p).lower()) for p in prefixes)


def select_accounts(payload: Any, prefixes: Iterable[str]) -> list[TrackedAccount]:
    prefixes = [str(p) for p in prefixes if p]
    if not prefixes:
        return []
    return [a for a in parse_accounts(payload) if matches_prefix(a.account_id, prefixes)]


def available_account_ids(payload: Any) -> list[str]:
    """Distinct ids present in the payload, first-seen order (for logs)."""
    if not isinstance(payload, dict):
        return []
    for key, id_field, _ in _ADAPTERS:
        entries = payload.get(key)
        if not isinstance(entries, list):
            continue
        seen: list[str] = []
        for e in entries:
            aid = e.get(id_field) if isinstance(e, dict) else None
            if isinstance(aid, str) and aid and aid not in seen:
                seen.append(aid)
        return seen
    return []
