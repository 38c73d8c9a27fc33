# Movieo test scripts
from __future__ import annotations

import json

from mv_platform.kv_store import MemoryStore
from mv_platform.storage_keys import WATCH_HISTORY_KEY, WATCHLIST_KEY
from services.context import WatchlistContext, build_context
from services.history import MAX_HISTORY, WatchHistory


def test_completion_is_recorded_once_per_title(ctx: WatchlistContext) -> None:
    ctx.watchlist.add({"id": 42, "title": "Nightfall"})
    assert ctx.watchlist.get_watch_history() == []

    ctx.watchlist.update(42, "movie", "completed")
    ctx.watchlist.add({"id": 7, "name": "Harbor Lights", "media_type": "tv"}, "completed")
    ctx.watchlist.update(42, "movie", "completed")

    rows = ctx.watchlist.get_watch_history()
    assert [(r["id"], r["media_type"]) for r in rows] == [(7, "tv"), (42, "movie")]
    assert rows[0]["episodes_watched"] == 22
    assert rows[1]["title"] == "Nightfall"
    assert rows[1]["watched_at"]


def test_other_statuses_are_not_recorded(ctx: WatchlistContext) -> None:
    ctx.watchlist.add({"id": 42, "title": "Nightfall"}, "watching")
    ctx.watchlist.update(42, "movie", "dropped")
    assert ctx.watchlist.get_watch_history() == []


def test_history_is_capped() -> None:
    history = WatchHistory(MemoryStore())
    for n in range(MAX_HISTORY + 5):
        history.track({"id": n, "media_type": "movie", "title": f"M{n}"})
    rows = history.get()
    assert len(rows) == MAX_HISTORY
    assert rows[0]["id"] == MAX_HISTORY + 4


def test_completed_entries_are_migrated_on_load() -> None:
    stored = [
        {"id": 1, "media_type": "movie", "title": "Old", "status": "completed", "last_updated": "2023-05-01T00:00:00+00:00"},
        {"id": 2, "media_type": "movie", "title": "Later", "status": "watching"},
    ]
    kv = MemoryStore({WATCHLIST_KEY: json.dumps(stored)})
    ctx = build_context(kv)
    rows = ctx.watchlist.get_watch_history()
    assert [r["id"] for r in rows] == [1]
    assert rows[0]["watched_at"] == "2023-05-01T00:00:00+00:00"

    build_context(kv)
    assert len(json.loads(kv.get(WATCH_HISTORY_KEY) or "[]")) == 1


def test_refresh_backfills_timestamps() -> None:
    kv = MemoryStore({WATCH_HISTORY_KEY: json.dumps([{"id": 1, "media_type": "movie"}, {"id": 2, "timestamp": "t0"}])})
    history = WatchHistory(kv)
    rows = history.refresh()
    assert rows[0]["timestamp"]
    assert rows[1]["timestamp"] == "t0"
    assert json.loads(kv.get(WATCH_HISTORY_KEY) or "[]") == rows
    assert WatchHistory(MemoryStore()).refresh() == []


def test_malformed_history_reads_empty() -> None:
    assert WatchHistory(MemoryStore({WATCH_HISTORY_KEY: "{oops"})).get() == []
