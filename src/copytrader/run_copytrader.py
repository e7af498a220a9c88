# src/copytrader/run_copytrader.py
from __future__ import annotations

import argparse
import logging
import os
import signal
from typing import Optional, Sequence

from dotenv import load_dotenv

from src.copytrader.config import CopyTraderConfig, load_config
from src.copytrader.core.cycle import CopyTradeCycle
from src.copytrader.core.detector import NewPositionDetector
from src.copytrader.core.poller import CopyTradePoller
from src.copytrader.feed.rest import PositionsFeedREST
from src.copytrader.notifications.base import PositionNotifier, build_notifier
from src.copytrader.state.seen_store import SeenPositionsStore

log = logging.getLogger("copytrader.run")


# ============================================================
# LOGGING / ARGS
# ============================================================

def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(threadName)s | %(message)s",
    )


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Mirror newly opened positions of tracked models")
    ap.add_argument("--config", default=None, help="path to copytrader.yaml (or $COPYTRADER_CONFIG)")
    ap.add_argument("--once", action="store_true", help="run a single cycle and exit")
    ap.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"))
    return ap.parse_args(argv)


# ============================================================
# WIRING
# ============================================================

def build_poller(
    cfg: CopyTraderConfig,
    *,
    feed: PositionsFeedREST,
    notifier: PositionNotifier,
    max_cycles: Optional[int] = None,
) -> CopyTradePoller:
    store = SeenPositionsStore(cfg.seen_file)
    detector = NewPositionDetector(store=store, seen=store.load(), notifier=notifier)

    cycle = CopyTradeCycle(
        feed=feed,
        detector=detector,
        prefixes=cfg.model_prefixes,
        verbose=cfg.log_verbose,
    )
    return CopyTradePoller(
        cycle=cycle,
        poll_sec=cfg.poll_sec,
        error_retry_sec=cfg.error_retry_sec,
        max_cycles=max_cycles,
    )


def _install_signal_handlers(poller: CopyTradePoller) -> None:
    def _handler(signum, _frame):
        log.warning("Signal %s received -> stopping", signal.Signals(signum).name)
        poller.stop()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    args = _parse_args(argv)
    _setup_logging(args.log_level)

    log.info("=== COPYTRADER START ===")

    try:
        cfg = load_config(args.config)
        notifier = build_notifier(cfg.notifiers, dry_run=cfg.dry_run)
    except (OSError, ValueError) as e:
        raise SystemExit(f"Config error: {e}")

    log.info("Config: %s", cfg.source or "defaults")
    log.info("Monitoring: %s", cfg.api_url)
    log.info("Target models: %s", ", ".join(cfg.model_prefixes))
    log.info("Poll interval: %.0fs (error retry %.0fs)", cfg.poll_sec, cfg.error_retry_sec)
    log.warning("DRY_RUN=%s (%s)", cfg.dry_run, "NO REAL ORDERS" if cfg.dry_run else "REAL ORDERS ENABLED")

    feed = PositionsFeedREST(
        url=cfg.api_url,
        timeout=cfg.timeout_sec,
        max_attempts=cfg.max_attempts,
        retry_delay=cfg.retry_delay_sec,
        user_agent=cfg.user_agent,
    )

    if cfg.connectivity_url:
        feed.check_connectivity(cfg.connectivity_url, timeout=cfg.connectivity_timeout_sec)

    poller = build_poller(cfg, feed=feed, notifier=notifier, max_cycles=1 if args.once else None)
    _install_signal_handlers(poller)

    poller.start()
    try:
        # join with timeout keeps the main thread responsive to signals
        while poller.is_alive():
            poller.join(timeout=1.0)
    finally:
        poller.stop()
        feed.close()
        log.info("=== COPYTRADER STOP ===")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
