# src/copytrader/config.py
from __future__ import annotations

import os
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Optional, Tuple

import yaml

log = logging.getLogger("copytrader.config")

CONFIG_ENV = "COPYTRADER_CONFIG"
CONFIG_REL = Path("config") / "copytrader.yaml"


@dataclass(frozen=True)
class CopyTraderConfig:
    api_url: str = "https://nof1.ai/api/account-totals"
    model_prefixes: Tuple[str, ...] = ("deepseek", "qwen")
    seen_file: str = "seen_positions.json"

    poll_sec: float = 15.0
    error_retry_sec: float = 45.0

    timeout_sec: float = 15.0
    max_attempts: int = 3
    retry_delay_sec: float = 10.0
    user_agent: str = "DeepSeekCopyTrader/1.0"

    # startup probe, advisory only; empty url disables it
    connectivity_url: str = "https://nof1.ai"
    connectivity_timeout_sec: float = 5.0

    log_verbose: bool = True
    notifiers: Tuple[str, ...] = ("log",)
    dry_run: bool = True

    source: Optional[str] = None

    def validate(self) -> "CopyTraderConfig":
        if not self.api_url:
            raise ValueError("api_url is required")
        if not self.api_url.lower().startswith(("http://", "https://")):
            raise ValueError(f"api_url must be an http(s) url: {self.api_url!r}")
        if not self.model_prefixes:
            raise ValueError("model_prefixes must not be empty")
        if self.poll_sec <= 0 or self.error_retry_sec <= 0:
            raise ValueError("poll_sec and error_retry_sec must be > 0")
        if self.timeout_sec <= 0:
            raise ValueError("timeout_sec must be > 0")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.retry_delay_sec < 0:
            raise ValueError("retry_delay_sec must be >= 0")
        return self


# -------------------------
# parsing helpers
# -------------------------
def _as_bool(x: Any) -> bool:
    if isinstance(x, bool):
        return x
    return str(x).strip().lower() in ("1", "true", "yes", "on", "y")


def _as_list(x: Any) -> Tuple[str, ...]:
    if x is None:
        return ()
    if isinstance(x, str):
        items = x.split(",")
    elif isinstance(x, (list, tuple)):
        items = x
    else:
        raise ValueError(f"expected list or comma separated string, got {type(x).__name__}")
    return tuple(str(i).strip().lower() for i in items if str(i).strip())


def _get_env(name: str) -> Optional[str]:
    v = os.getenv(name)
    if v is None:
        return None
    v = v.strip()
    return v or None


# -------------------------
# path resolving
# -------------------------
def _find_upwards(base: Path) -> Optional[Path]:
    base = base.resolve()
    for _ in range(0, 12):
        p = base / CONFIG_REL
        if p.exists():
            return p
        if base.parent == base:
            break
        base = base.parent
    return None


def resolve_config_path(explicit: str | Path | None = None) -> Optional[Path]:
    """--config, then $COPYTRADER_CONFIG (both must exist), then config/copytrader.yaml upwards."""
    for cand in (explicit, _get_env(CONFIG_ENV)):
        if cand:
            p = Path(cand).expanduser()
            if not p.is_absolute():
                p = (Path.cwd() / p).resolve()
            if not p.exists():
                raise FileNotFoundError(f"Config file not found: {p}")
            return p

    return _find_upwards(Path.cwd()) or _find_upwards(Path(__file__).resolve().parent)


# -------------------------
# load
# -------------------------
def config_from_mapping(raw: dict, *, source: Optional[str] = None) -> CopyTraderConfig:
    if not isinstance(raw, dict):
        raise ValueError("config root must be a mapping")

    d = CopyTraderConfig()
    feed = raw.get("feed") or {}
    poll = raw.get("poll") or {}
    if not isinstance(feed, dict) or not isinstance(poll, dict):
        raise ValueError("'feed' and 'poll' sections must be mappings")

    def _get(section: dict, key: str, default: Any) -> Any:
        # "key: null" in YAML means "not set"
        v = section.get(key)
        return default if v is None else v

    prefixes = raw.get("model_prefixes")
    notifiers = raw.get("notifiers")

    return CopyTraderConfig(
        api_url=str(_get(feed, "url", d.api_url)).strip(),
        model_prefixes=_as_list(prefixes) if prefixes is not None else d.model_prefixes,
        seen_file=str(_get(raw, "seen_file", d.seen_file)),
        poll_sec=float(_get(poll, "poll_sec", d.poll_sec)),
        error_retry_sec=float(_get(poll, "error_retry_sec", d.error_retry_sec)),
        timeout_sec=float(_get(feed, "timeout_sec", d.timeout_sec)),
        max_attempts=int(_get(feed, "max_attempts", d.max_attempts)),
        retry_delay_sec=float(_get(feed, "retry_delay_sec", d.retry_delay_sec)),
        user_agent=str(_get(feed, "user_agent", d.user_agent)),
        connectivity_url=str(feed.get("connectivity_url", d.connectivity_url) or ""),
        connectivity_timeout_sec=float(_get(feed, "connectivity_timeout_sec", d.connectivity_timeout_sec)),
        log_verbose=_as_bool(_get(raw, "log_verbose", d.log_verbose)),
        notifiers=_as_list(notifiers) if notifiers is not None else d.notifiers,
        dry_run=_as_bool(_get(raw, "dry_run", d.dry_run)),
        source=source,
    )


def apply_env_overrides(cfg: CopyTraderConfig) -> CopyTraderConfig:
    changes: dict[str, Any] = {}

    url = _get_env("COPYTRADER_API_URL")
    if url:
        changes["api_url"] = url

    seen_file = _get_env("COPYTRADER_SEEN_FILE")
    if seen_file:
        changes["seen_file"] = seen_file

    prefixes = _get_env("COPYTRADER_PREFIXES")
    if prefixes:
        changes["model_prefixes"] = _as_list(prefixes)

    dry_run = _get_env("DRY_RUN")
    if dry_run is not None:
        changes["dry_run"] = _as_bool(dry_run)

    return replace(cfg, **changes) if changes else cfg


def load_config(path: str | Path | None = None) -> CopyTraderConfig:
    cfg_path = resolve_config_path(path)

    if cfg_path is None:
        log.warning("No %s found, using defaults + env", CONFIG_REL)
        cfg = CopyTraderConfig()
    else:
        try:
            with cfg_path.open("r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"invalid YAML in {cfg_path}: {e}") from e
        cfg = config_from_mapping(raw, source=str(cfg_path))

    return apply_env_overrides(cfg).validate()
