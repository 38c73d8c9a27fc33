# services/export.py
# Movieo - watchlist export/import (JSON document, CSV export)
from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response
from fastapi.responses import JSONResponse

from _logging import log as _log

from .classifier import is_series
from .context import WatchlistContext, get_context
from .watchlist import WatchlistStore

log = _log.child("EXPORT")

router = APIRouter(prefix="/api/watchlist", tags=["export"])

EXPORT_FILENAME = "movieo_watchlist.json"
CSV_COLUMNS = [
    "id",
    "media_type",
    "title",
    "status",
    "is_favourite",
    "episodes_watched",
    "total_episodes",
    "release_date",
    "added_at",
    "last_updated",
]


@dataclass(frozen=True)
class ImportResult:
    ok: bool
    message: str
    count: int = 0
    persisted: bool = False


def export_watchlist(store: WatchlistStore) -> str:
    return json.dumps(store.raw_items(), ensure_ascii=False, indent=2)


def export_to_file(store: WatchlistStore, path: Path | str) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(export_watchlist(store), encoding="utf-8")
    log.info(f"exported {len(store)} entries to {p}")
    return p


def export_csv(store: WatchlistStore) -> str:
    buf = io.StringIO()
    w = csv.writer(buf, lineterminator="\n")
    w.writerow(CSV_COLUMNS)
    for it in store.items():
        w.writerow(["" if it.get(c) is None else str(it.get(c)) for c in CSV_COLUMNS])
    return buf.getvalue()


def _restore_progress(store: WatchlistStore, items: list[Any]) -> int:
    agg = store.aggregator
    restored = 0
    for it in items:
        if not isinstance(it, dict) or not is_series(it):
            continue
        try:
            sid = int(it.get("id"))
            watched = int(it.get("episodes_watched") or 0)
        except (TypeError, ValueError):
            continue
        if watched <= 0 or agg.ledger.seasons_for(sid):
            continue
        applied, _ = agg.apply_distribution(sid, watched, it)
        restored += applied
    return restored


def import_watchlist(store: WatchlistStore, text: str | bytes, restore_progress: bool = False) -> ImportResult:
    """Replace the whole collection with a JSON array. Entries are taken as-is."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        log.warn(f"import rejected, not JSON: {e}")
        return ImportResult(ok=False, message="Error importing watchlist")
    if not isinstance(data, list):
        log.warn(f"import rejected, top level is {type(data).__name__}")
        return ImportResult(ok=False, message="Invalid watchlist format")

    res = store.replace_all(data)
    if restore_progress:
        n = _restore_progress(store, data)
        if n:
            log.info(f"restored {n} watched episodes into the ledger")
    log.info(f"imported {len(data)} entries")
    return ImportResult(ok=True, message="Watchlist imported successfully!", count=len(data), persisted=res.ok)


# HTTP
@router.get("/export")
def api_export(fmt: str = Query("json", pattern="^(json|csv)$"), ctx: WatchlistContext = Depends(get_context)) -> Response:
    if fmt == "csv":
        return Response(
            content=export_csv(ctx.watchlist).encode("utf-8"),
            media_type="text/csv; charset=utf-8",
            headers={
                "Content-Disposition": 'attachment; filename="movieo_watchlist.csv"',
                "Cache-Control": "no-store",
            },
        )
    return Response(
        content=export_watchlist(ctx.watchlist).encode("utf-8"),
        media_type="application/json",
        headers={
            "Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"',
            "Cache-Control": "no-store",
        },
    )


@router.post("/import", response_class=JSONResponse)
def api_import(
    payload: Any = Body(...),
    restore_progress: bool = Query(False),
    ctx: WatchlistContext = Depends(get_context),
) -> dict[str, Any]:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    res = import_watchlist(ctx.watchlist, text, restore_progress=restore_progress)
    if not res.ok:
        raise HTTPException(status_code=400, detail=res.message)
    return {"ok": True, "message": res.message, "count": res.count, "persisted": res.persisted}


__all__ = [
    "router",
    "ImportResult",
    "export_watchlist",
    "export_to_file",
    "export_csv",
    "import_watchlist",
]
