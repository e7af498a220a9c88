# src/copytrader/notifications/telegram.py
from __future__ import annotations

import os
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, List

import requests

log = logging.getLogger("copytrader.notifications.telegram")


# -------------------------
# models
# -------------------------
@dataclass(frozen=True)
class TelegramTarget:
    name: str
    bot_token: str
    chat_id: str


def _env(name: str) -> str:
    v = os.getenv(name)
    return v.strip() if isinstance(v, str) else ""


# -------------------------
# targets resolving
# -------------------------
def resolve_targets_from_env(*, max_friends: int = 10) -> List[TelegramTarget]:
    """
    MAIN:
      TELEGRAM_BOT_TOKEN
      TELEGRAM_CHAT_ID

    FRIENDS (token falls back to the main one):
      TELEGRAM_FRIEND_CHAT_ID_1
      TELEGRAM_FRIEND_BOT_TOKEN_1
      ...
    """
    targets: List[TelegramTarget] = []

    primary_token = _env("TELEGRAM_BOT_TOKEN")
    primary_chat = _env("TELEGRAM_CHAT_ID")

    if primary_token and primary_chat:
        targets.append(TelegramTarget(name="primary", bot_token=primary_token, chat_id=primary_chat))

    for i in range(1, max(1, int(max_friends)) + 1):
        chat = _env(f"TELEGRAM_FRIEND_CHAT_ID_{i}")
        if not chat:
            continue
        token = _env(f"TELEGRAM_FRIEND_BOT_TOKEN_{i}") or primary_token
        if not token:
            continue
        targets.append(TelegramTarget(name=f"friend_{i}", bot_token=token, chat_id=chat))

    return targets


# -------------------------
# message
# -------------------------
def _fmt_entry_time(entry_time: Any) -> str:
    if not entry_time:
        return "N/A"
    try:
        dt = datetime.fromtimestamp(float(entry_time), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return "N/A"
    return dt.strftime("%Y-%m-%d %H:%M:%S") + " UTC"


def format_new_position(
    *,
    symbol: str,
    entry_price: Any,
    leverage: Any,
    quantity: Any,
    entry_time: Any,
    entry_oid: Any,
    side: Optional[str] = None,
    account_id: Optional[str] = None,
) -> str:
    model = account_id or "unknown"
    return "\n".join(
        [
            f"NEW {model.upper()} POSITION OPENED",
            f"Model: {model}",
            f"Symbol: {symbol} ({side or 'long'})",
            f"Entry price: {entry_price if entry_price is not None else 'N/A'}",
            f"Leverage: {leverage if leverage is not None else 'N/A'}x",
            f"Quantity: {quantity if quantity is not None else 'N/A'}",
            f"Entry time: {_fmt_entry_time(entry_time)}",
            f"Entry OID: {entry_oid}",
        ]
    )


# -------------------------
# send
# -------------------------
def send_telegram_message(text: str, *, target: TelegramTarget, disable_preview: bool = True) -> bool:
    text = (text or "").strip()
    if not text:
        return False

    url = f"https://api.telegram.org/bot{target.bot_token}/sendMessage"
    payload = {
        "chat_id": target.chat_id,
        "text": text,
        "disable_web_page_preview": bool(disable_preview),
    }

    try:
        r = requests.post(url, json=payload, timeout=15)
        if r.status_code != 200:
            log.error("Telegram send failed (%s): %s %s", target.name, r.status_code, r.text[:300])
            return False
        return True
    except Exception:
        log.exception("Telegram send exception (%s)", target.name)
        return False


def broadcast_telegram_message(text: str, *, targets: List[TelegramTarget]) -> int:
    """Returns the number of successful sends."""
    ok = 0
    for t in targets:
        if send_telegram_message(text, target=t):
            ok += 1
    return ok


class TelegramNotifier:
    """New-position alert to every configured Telegram target. Never raises on send errors."""

    def __init__(self, targets: List[TelegramTarget]):
        self.targets = list(targets)
        if not self.targets:
            log.warning("Telegram notifier has no targets (missing TELEGRAM_BOT_TOKEN/TELEGRAM_CHAT_ID)")

    @classmethod
    def from_env(cls) -> "TelegramNotifier":
        return cls(resolve_targets_from_env())

    def notify(self, **kwargs: Any) -> None:
        if not self.targets:
            return
        text = format_new_position(**kwargs)
        ok = broadcast_telegram_message(text, targets=self.targets)
        log.info("Telegram alert sent: %d/%d targets (oid=%s)", ok, len(self.targets), kwargs.get("entry_oid"))
