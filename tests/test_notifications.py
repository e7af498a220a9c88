import logging

import pytest

from fakes import RecordingNotifier
from src.copytrader.notifications import telegram
from src.copytrader.notifications.base import FanoutNotifier, TradeLogNotifier, build_notifier
from src.copytrader.notifications.telegram import (
    TelegramNotifier,
    TelegramTarget,
    format_new_position,
    resolve_targets_from_env,
)

PARAMS = dict(
    symbol="BTCUSDT",
    entry_price=50000.0,
    leverage=10.0,
    quantity=0.1,
    entry_time=1700000000,
    entry_oid=42,
    side="long",
    account_id="deepseek-v3",
)


@pytest.fixture
def tg_env(monkeypatch):
    for k in ("TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID", "TELEGRAM_FRIEND_CHAT_ID_1", "TELEGRAM_FRIEND_BOT_TOKEN_1"):
        monkeypatch.delenv(k, raising=False)
    return monkeypatch


def test_trade_log_notifier_logs_params(caplog):
    with caplog.at_level(logging.INFO, logger="copytrader.notifications"):
        TradeLogNotifier(dry_run=True).notify(**PARAMS)

    assert "[DRY_RUN]" in caplog.text
    assert "symbol=BTCUSDT" in caplog.text
    assert "oid=42" in caplog.text


def test_fanout_calls_every_notifier():
    a, b = RecordingNotifier(), RecordingNotifier()
    FanoutNotifier([a, b]).notify(**PARAMS)
    assert a.calls == b.calls == [PARAMS]


def test_build_notifier(tg_env):
    assert isinstance(build_notifier(["log"]), TradeLogNotifier)
    assert isinstance(build_notifier([]), TradeLogNotifier)
    both = build_notifier(["log", "Telegram"])
    assert isinstance(both, FanoutNotifier)
    assert isinstance(both.notifiers[1], TelegramNotifier)
    with pytest.raises(ValueError):
        build_notifier(["fax"])


def test_resolve_targets_from_env(tg_env):
    tg_env.setenv("TELEGRAM_BOT_TOKEN", "tok")
    tg_env.setenv("TELEGRAM_CHAT_ID", "100")
    tg_env.setenv("TELEGRAM_FRIEND_CHAT_ID_1", "200")

    targets = resolve_targets_from_env()

    assert targets == [
        TelegramTarget(name="primary", bot_token="tok", chat_id="100"),
        TelegramTarget(name="friend_1", bot_token="tok", chat_id="200"),
    ]


def test_format_new_position():
    text = format_new_position(**PARAMS)
    assert text.startswith("NEW DEEPSEEK-V3 POSITION OPENED")
    assert "Symbol: BTCUSDT (long)" in text
    assert "Leverage: 10.0x" in text
    assert "Entry time: 2023-11-14 22:13:20 UTC" in text
    assert "Entry OID: 42" in text


def test_telegram_notifier_broadcasts(monkeypatch):
    sent = []

    def fake_send(text, *, target, disable_preview=True):
        sent.append((target.chat_id, text))
        return target.chat_id != "bad"

    monkeypatch.setattr(telegram, "send_telegram_message", fake_send)
    n = TelegramNotifier([TelegramTarget("a", "t", "1"), TelegramTarget("b", "t", "bad")])

    n.notify(**PARAMS)

    assert [c for c, _ in sent] == ["1", "bad"]
    assert "BTCUSDT" in sent[0][1]


def test_telegram_notifier_without_targets_is_noop(monkeypatch):
    monkeypatch.setattr(telegram, "send_telegram_message", lambda *a, **k: pytest.fail("should not send"))
    TelegramNotifier([]).notify(**PARAMS)


def test_send_failure_returns_false(monkeypatch):
    class Resp:
        status_code = 401
        text = "Unauthorized"

    monkeypatch.setattr(telegram.requests, "post", lambda *a, **k: Resp())
    assert telegram.send_telegram_message("hi", target=TelegramTarget("a", "t", "1")) is False
