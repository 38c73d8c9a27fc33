# services/history.py
# Movieo - watch history: most recent completions first, capped
from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from _logging import log as _log
from mv_platform.kv_store import CommitResult, KeyValueStore, commit_json, read_json
from mv_platform.storage_keys import WATCH_HISTORY_KEY

log = _log.child("HISTORY")

MAX_HISTORY = 100


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _key(x: Mapping[str, Any]) -> tuple[str, str]:
    return str(x.get("id")), str(x.get("media_type") or "").lower()


def history_entry(item: Mapping[str, Any], watched_at: str | None = None) -> dict[str, Any]:
    ts = watched_at or _now_iso()
    return {
        "id": item.get("id"),
        "media_type": item.get("media_type"),
        "title": item.get("title") or item.get("name"),
        "poster_path": item.get("poster_path"),
        "episodes_watched": item.get("episodes_watched") or 1,
        "watched_at": ts,
        "timestamp": ts,
    }


class WatchHistory:
    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self._lock = threading.RLock()

    def get(self) -> list[dict[str, Any]]:
        raw = read_json(self.store, WATCH_HISTORY_KEY, [])
        if not isinstance(raw, list):
            return []
        return [dict(x) for x in raw if isinstance(x, Mapping)]

    def track(self, item: Mapping[str, Any]) -> CommitResult:
        """Record a completion. An existing row for the same title is replaced in place."""
        row = history_entry(item)
        with self._lock:
            rows = self.get()
            for i, x in enumerate(rows):
                if _key(x) == _key(row):
                    rows[i] = row
                    break
            else:
                rows.insert(0, row)
            return commit_json(self.store, WATCH_HISTORY_KEY, rows[:MAX_HISTORY])

    def migrate(self, entries: Iterable[Mapping[str, Any]]) -> int:
        """Backfill rows for completed entries that predate history tracking."""
        with self._lock:
            rows = self.get()
            seen = {_key(x) for x in rows}
            added = 0
            for it in entries:
                if not isinstance(it, Mapping) or str(it.get("status") or "") != "completed":
                    continue
                if _key(it) in seen:
                    continue
                rows.insert(0, history_entry(it, watched_at=it.get("last_updated")))
                seen.add(_key(it))
                added += 1
            if added:
                commit_json(self.store, WATCH_HISTORY_KEY, rows[:MAX_HISTORY])
                log.info(f"migrated {added} completed entries into watch history")
            return added

    def refresh(self) -> list[dict[str, Any]]:
        with self._lock:
            rows = self.get()
            if not rows:
                return []
            now = _now_iso()
            rows = [{**x, "timestamp": x.get("timestamp") or x.get("watched_at") or now} for x in rows]
            commit_json(self.store, WATCH_HISTORY_KEY, rows)
            return rows


__all__ = ["MAX_HISTORY", "WatchHistory", "history_entry"]
