import pytest

from fakes import MemoryStore, RecordingNotifier, account_totals_payload, models_payload
from src.copytrader.core.detector import NewPositionDetector
from src.copytrader.feed.models import Position, TrackedAccount
from src.copytrader.feed.normalize import parse_accounts
from src.copytrader.state.seen_store import SeenPositionsStore


def _account(account_id, **positions):
    return TrackedAccount(
        account_id=account_id,
        positions={sym: Position(symbol=sym, entry_oid=oid) for sym, oid in positions.items()},
    )


def test_new_position_is_recorded_persisted_and_notified():
    store, notifier = MemoryStore(), RecordingNotifier()
    det = NewPositionDetector(store=store, notifier=notifier)

    events = det.process(parse_accounts(models_payload()))

    assert len(events) == 1
    ev = events[0]
    assert (ev.account_id, ev.symbol, ev.position.entry_oid) == ("deepseek-v3", "BTCUSDT", 42)
    assert det.seen == {42}
    assert store.saves == [{42}]
    assert notifier.calls == [
        {
            "symbol": "BTCUSDT",
            "entry_price": 50000,
            "leverage": 10,
            "quantity": 0.1,
            "entry_time": 1700000000,
            "entry_oid": 42,
            "side": "long",
            "account_id": "deepseek-v3",
        }
    ]


def test_replaying_same_payload_is_idempotent():
    store, notifier = MemoryStore(), RecordingNotifier()
    det = NewPositionDetector(store=store, notifier=notifier)
    accounts = parse_accounts(account_totals_payload())

    first = det.process(accounts)
    second = det.process(accounts)

    assert sorted(str(e.position.entry_oid) for e in first) == ["7", "eth-1"]
    assert second == []
    assert len(notifier.calls) == 2


def test_sentinel_oids_never_notify():
    store, notifier = MemoryStore(), RecordingNotifier()
    det = NewPositionDetector(store=store, notifier=notifier)

    events = det.process([_account("deepseek", A=-1, B=None, C="", D="-1")])

    assert events == []
    assert det.seen == set()
    assert store.saves == []
    assert notifier.calls == []


def test_identity_is_global_across_accounts_and_symbols():
    det = NewPositionDetector(store=MemoryStore(), notifier=RecordingNotifier())

    assert len(det.process([_account("deepseek-a", BTC=100)])) == 1
    assert det.process([_account("qwen-b", ETH=100)]) == []


def test_save_happens_once_per_new_oid_before_next_notify():
    order: list[str] = []

    class Store(MemoryStore):
        def save(self, seen):
            order.append(f"save:{len(seen)}")
            return super().save(seen)

    class Notifier:
        def notify(self, **kw):
            order.append(f"notify:{kw['entry_oid']}")

    det = NewPositionDetector(store=Store(), notifier=Notifier())
    det.process([_account("deepseek", BTC=1, ETH=2)])

    assert order == ["save:1", "notify:1", "save:2", "notify:2"]


def test_save_failure_still_deduplicates_in_memory():
    store, notifier = MemoryStore(fail=True), RecordingNotifier()
    det = NewPositionDetector(store=store, notifier=notifier)

    det.process([_account("deepseek", BTC=9)])
    det.process([_account("deepseek", BTC=9)])

    assert len(notifier.calls) == 1
    assert det.seen == {9}


def test_preloaded_seen_set_is_respected():
    notifier = RecordingNotifier()
    det = NewPositionDetector(store=MemoryStore(), seen={5}, notifier=notifier)

    assert det.process([_account("deepseek", BTC=5)]) == []
    assert notifier.calls == []


def test_persisted_oid_is_seen_after_restart(tmp_path):
    path = tmp_path / "seen.json"
    det = NewPositionDetector(store=SeenPositionsStore(path))
    det.process([_account("deepseek", BTC="42")])

    store = SeenPositionsStore(path)
    fresh = NewPositionDetector(store=store, seen=store.load())
    assert not fresh.is_new(Position(symbol="BTC", entry_oid="42"))
    assert fresh.process([_account("deepseek", BTC="42")]) == []


def test_notifier_error_propagates_but_oid_stays_recorded():
    class Boom:
        def notify(self, **kw):
            raise RuntimeError("exchange down")

    det = NewPositionDetector(store=MemoryStore(), notifier=Boom())
    with pytest.raises(RuntimeError):
        det.process([_account("deepseek", BTC=1)])

    assert det.seen == {1}


def test_unhashable_oid_does_not_block_other_positions():
    payload = {
        "positions": [
            {"id": "deepseek", "positions": {"AAA": {"entry_oid": {"x": 1}}, "BTC": {"entry_oid": 42}}}
        ]
    }
    notifier = RecordingNotifier()
    det = NewPositionDetector(store=MemoryStore(), notifier=notifier)

    events = det.process(parse_accounts(payload))

    assert [e.symbol for e in events] == ["BTC"]
    assert det.seen == {42}


def test_position_built_with_unhashable_oid_is_skipped():
    det = NewPositionDetector(store=MemoryStore(), notifier=RecordingNotifier())
    assert det.process([_account("deepseek", AAA=["x"], BTC=7)])[0].symbol == "BTC"
    assert det.seen == {7}
