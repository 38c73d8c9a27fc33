# Movieo test scripts
from __future__ import annotations

import csv
import io
import json
from pathlib import Path

from services.context import WatchlistContext
from services.export import (
    CSV_COLUMNS,
    export_csv,
    export_to_file,
    export_watchlist,
    import_watchlist,
)


def test_export_is_the_collection_as_json(ctx: WatchlistContext) -> None:
    ctx.watchlist.add({"id": 42, "title": "Nightfall"})
    ctx.watchlist.add({"id": 7, "name": "Harbor Lights", "media_type": "tv"}, "watching")
    doc = json.loads(export_watchlist(ctx.watchlist))
    assert [(it["id"], it["media_type"]) for it in doc] == [(42, "movie"), (7, "tv")]


def test_export_to_file(ctx: WatchlistContext, tmp_path: Path) -> None:
    ctx.watchlist.add({"id": 42, "title": "Nightfall"})
    p = export_to_file(ctx.watchlist, tmp_path / "out" / "wl.json")
    assert json.loads(p.read_text(encoding="utf-8"))[0]["title"] == "Nightfall"


def test_export_csv(ctx: WatchlistContext) -> None:
    ctx.watchlist.add({"id": 42, "title": "Nightfall, Part 2"}, "completed")
    rows = list(csv.reader(io.StringIO(export_csv(ctx.watchlist))))
    assert rows[0] == CSV_COLUMNS
    assert rows[1][:4] == ["42", "movie", "Nightfall, Part 2", "completed"]


def test_import_replaces_wholesale(ctx: WatchlistContext) -> None:
    ctx.watchlist.add({"id": 7, "name": "Harbor Lights", "media_type": "tv"})
    ctx.watchlist.add({"id": 42, "title": "Nightfall"})
    payload = [
        {"id": 7, "media_type": "tv", "title": "Harbor Lights", "status": "watching"},
        {"id": 7, "media_type": "tv", "title": "Harbor Lights", "status": "completed"},
    ]
    res = import_watchlist(ctx.watchlist, json.dumps(payload))
    assert res.ok and res.count == 2 and res.persisted
    assert res.message == "Watchlist imported successfully!"
    assert ctx.watchlist.items() == payload


def test_import_rejects_non_array_without_mutation(ctx: WatchlistContext) -> None:
    ctx.watchlist.add({"id": 42, "title": "Nightfall"})
    before = ctx.watchlist.items()

    res = import_watchlist(ctx.watchlist, json.dumps({"id": 1}))
    assert not res.ok and res.message == "Invalid watchlist format"
    res = import_watchlist(ctx.watchlist, "{not json")
    assert not res.ok and res.message == "Error importing watchlist"

    assert ctx.watchlist.items() == before


def test_import_can_restore_ledger_progress(ctx: WatchlistContext) -> None:
    ctx.cache.ensure(7)
    payload = [
        {"id": 7, "media_type": "tv", "status": "watching", "episodes_watched": 14},
        {"id": 42, "media_type": "movie", "status": "completed", "episodes_watched": 1},
    ]
    assert import_watchlist(ctx.watchlist, json.dumps(payload), restore_progress=True).ok
    assert ctx.ledger.get_watched_count(7, 1) == 12
    assert ctx.ledger.get_watched_count(7, 2) == 2
    assert ctx.ledger.series_ids() == [7]


def test_import_leaves_ledger_alone_by_default(ctx: WatchlistContext) -> None:
    payload = [{"id": 7, "media_type": "tv", "status": "watching", "episodes_watched": 5}]
    import_watchlist(ctx.watchlist, json.dumps(payload))
    assert ctx.ledger.series_ids() == []


def test_import_keeps_non_object_members_out_of_reads(ctx: WatchlistContext) -> None:
    text = '[{"id": 1, "media_type": "movie", "status": "completed", "is_favourite": true}, 5, "junk"]'
    assert import_watchlist(ctx.watchlist, text).ok

    assert [it["id"] for it in ctx.watchlist.items()] == [1]
    assert len(ctx.watchlist) == 1
    assert ctx.watchlist.get_status(1, "movie") == "completed"
    assert [it["id"] for it in ctx.watchlist.by_status("completed")] == [1]
    assert [it["id"] for it in ctx.watchlist.favourites()] == [1]
    assert ctx.watchlist.clean_duplicates() == 0
    assert ctx.watchlist.remove(5, "movie").changed is False

    assert json.loads(export_watchlist(ctx.watchlist))[1:] == [5, "junk"]
    assert len(export_csv(ctx.watchlist).splitlines()) == 2
