# src/copytrader/state/seen_store.py
from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable

log = logging.getLogger("copytrader.state.seen_store")

DEFAULT_SEEN_FILE = "seen_positions.json"


class SeenPositionsStore:
    """
    JSON file with every entry_oid already reported.
    Fail-open: a broken file never blocks startup, a failed write never stops the cycle.
    """

    def __init__(self, path: str | Path = DEFAULT_SEEN_FILE):
        self.path = Path(path)

    def load(self) -> set[Any]:
        if not self.path.exists():
            log.info("No seen positions file yet (%s), starting empty", self.path)
            return set()

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except Exception:
            log.exception("Error loading seen positions: %s", self.path)
            return set()

        if not isinstance(data, list):
            log.error("Seen positions file is not a JSON array: %s", self.path)
            return set()

        # lists/dicts are unhashable and can't be an oid anyway
        seen = {x for x in data if isinstance(x, (int, float, str)) and not isinstance(x, bool)}
        log.info("Loaded %d previously seen positions", len(seen))
        return seen

    def save(self, seen: Iterable[Any]) -> bool:
        tmp_name: str | None = None
        try:
            items = sorted(seen, key=lambda x: (isinstance(x, str), str(x)))
            self.path.parent.mkdir(parents=True, exist_ok=True)

            # temp file + os.replace: a crash mid-write never truncates the existing file
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=str(self.path.parent), prefix=".seen.", suffix=".tmp", delete=False
            ) as tmp:
                tmp_name = tmp.name
                json.dump(items, tmp, indent=2, ensure_ascii=False)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, str(self.path))
            tmp_name = None
            return True
        except Exception:
            log.exception("Error saving seen positions: %s", self.path)
            return False
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                try:
                    os.unlink(tmp_name)
                except OSError:
                    log.warning("Could not remove temp file %s", tmp_name)
