# /api/watchlistAPI.py
# Movieo - watchlist HTTP surface for the UI
from __future__ import annotations

from typing import Any, Literal, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path as FPath
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from services.classifier import classify
from services.context import WatchlistContext, get_context
from mv_platform.kv_store import CommitResult

router = APIRouter(prefix="/api/watchlist", tags=["watchlist"])

StatusLiteral = Literal["plan_to_watch", "watching", "completed", "dropped"]
MediaLiteral = Literal["movie", "tv", "anime"]


class AddBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    media_type: Optional[str] = None
    title: Optional[str] = None
    name: Optional[str] = None
    status: StatusLiteral = "plan_to_watch"
    episodes_watched: int = 1


class StatusBody(BaseModel):
    status: StatusLiteral
    episodes_watched: Optional[int] = None


class CountBody(BaseModel):
    count: int


def _commit(res: CommitResult, **extra: Any) -> dict[str, Any]:
    out: dict[str, Any] = {"ok": True, "persisted": res.ok, "changed": res.changed}
    if res.error:
        out["error"] = res.error
    out.update(extra)
    return out


def _entry_or_404(ctx: WatchlistContext, item_id: int, media_type: str) -> dict[str, Any]:
    it = ctx.watchlist.get(item_id, media_type)
    if it is None:
        raise HTTPException(status_code=404, detail=f"{media_type} {item_id} not in watchlist")
    return it


@router.get("", response_class=JSONResponse)
def api_list(status: Optional[StatusLiteral] = None, favourites: bool = False, ctx: WatchlistContext = Depends(get_context)) -> dict[str, Any]:
    if favourites:
        items = ctx.watchlist.favourites()
    elif status:
        items = ctx.watchlist.by_status(status)
    else:
        items = ctx.watchlist.items()
    return {"items": items, "count": len(items)}


@router.post("", response_class=JSONResponse)
def api_add(body: AddBody, ctx: WatchlistContext = Depends(get_context)) -> dict[str, Any]:
    item = body.model_dump(exclude={"status", "episodes_watched"}, exclude_none=True)
    res = ctx.watchlist.add(item, body.status, body.episodes_watched)
    return _commit(res, item=ctx.watchlist.get(body.id, classify(item)))


@router.get("/stats", response_class=JSONResponse)
def api_stats(ctx: WatchlistContext = Depends(get_context)) -> dict[str, Any]:
    return ctx.stats.summarize()


@router.get("/stats/detailed", response_class=JSONResponse)
def api_stats_detailed(ctx: WatchlistContext = Depends(get_context)) -> dict[str, Any]:
    return ctx.stats.detailed_summarize()


@router.post("/clean", response_class=JSONResponse)
def api_clean(ctx: WatchlistContext = Depends(get_context)) -> dict[str, Any]:
    return {"ok": True, "removed": ctx.watchlist.clean_duplicates()}


@router.post("/clear", response_class=JSONResponse)
def api_clear(ctx: WatchlistContext = Depends(get_context)) -> dict[str, Any]:
    return _commit(ctx.watchlist.clear())


@router.get("/history", response_class=JSONResponse)
def api_history(ctx: WatchlistContext = Depends(get_context)) -> dict[str, Any]:
    rows = ctx.watchlist.get_watch_history()
    return {"items": rows, "count": len(rows)}


@router.post("/history/refresh", response_class=JSONResponse)
def api_history_refresh(ctx: WatchlistContext = Depends(get_context)) -> dict[str, Any]:
    rows = ctx.watchlist.refresh_watch_history()
    return {"ok": True, "items": rows, "count": len(rows)}


@router.get("/series/{series_id}/progress", response_class=JSONResponse)
def api_series_progress(series_id: int = FPath(..., ge=0), ctx: WatchlistContext = Depends(get_context)) -> dict[str, Any]:
    agg = ctx.aggregator
    return {
        "series_id": series_id,
        "watched": agg.total_watched(series_id),
        "total": agg.total_episodes(series_id),
        "seasons": agg.episode_distribution(series_id),
        "completed": agg.completion_record(series_id),
    }


@router.post("/series/{series_id}/seasons/{season}/episodes/{episode}/toggle", response_class=JSONResponse)
def api_toggle_episode(
    series_id: int = FPath(..., ge=0),
    season: int = FPath(..., ge=0),
    episode: int = FPath(..., ge=1),
    ctx: WatchlistContext = Depends(get_context),
) -> dict[str, Any]:
    count = ctx.watchlist.toggle_episode(series_id, season, episode)
    return {
        "ok": True,
        "season_watched": count,
        "watched": ctx.ledger.is_watched(series_id, season, episode),
        "total_watched": ctx.aggregator.total_watched(series_id),
    }


@router.post("/series/{series_id}/seasons/{season}/progress", response_class=JSONResponse)
def api_season_progress(
    series_id: int = FPath(..., ge=0),
    season: int = FPath(..., ge=0),
    body: CountBody = Body(...),
    ctx: WatchlistContext = Depends(get_context),
) -> dict[str, Any]:
    res = ctx.watchlist.set_season_progress(series_id, season, body.count)
    return _commit(res, season_watched=ctx.ledger.get_watched_count(series_id, season))


@router.get("/{media_type}/{item_id}", response_class=JSONResponse)
def api_get(media_type: MediaLiteral, item_id: int, ctx: WatchlistContext = Depends(get_context)) -> dict[str, Any]:
    return _entry_or_404(ctx, item_id, media_type)


@router.put("/{media_type}/{item_id}/status", response_class=JSONResponse)
def api_update_status(
    media_type: MediaLiteral,
    item_id: int,
    body: StatusBody,
    ctx: WatchlistContext = Depends(get_context),
) -> dict[str, Any]:
    _entry_or_404(ctx, item_id, media_type)
    res = ctx.watchlist.update(item_id, media_type, body.status, body.episodes_watched)
    return _commit(res, item=ctx.watchlist.get(item_id, media_type))


@router.delete("/{media_type}/{item_id}", response_class=JSONResponse)
def api_remove(media_type: MediaLiteral, item_id: int, ctx: WatchlistContext = Depends(get_context)) -> dict[str, Any]:
    _entry_or_404(ctx, item_id, media_type)
    return _commit(ctx.watchlist.remove(item_id, media_type))


@router.post("/{media_type}/{item_id}/favourite", response_class=JSONResponse)
def api_toggle_favourite(media_type: MediaLiteral, item_id: int, ctx: WatchlistContext = Depends(get_context)) -> dict[str, Any]:
    _entry_or_404(ctx, item_id, media_type)
    res = ctx.watchlist.toggle_favourite(item_id, media_type)
    return _commit(res, is_favourite=ctx.watchlist.is_favourite(item_id, media_type))


@router.post("/{media_type}/{item_id}/completion", response_class=JSONResponse)
def api_toggle_completion(media_type: MediaLiteral, item_id: int, ctx: WatchlistContext = Depends(get_context)) -> dict[str, Any]:
    res = ctx.watchlist.toggle_series_completion(item_id, media_type)
    return _commit(res, item=ctx.watchlist.get(item_id, media_type))


@router.put("/{media_type}/{item_id}/episodes", response_class=JSONResponse)
def api_set_episode_count(
    media_type: MediaLiteral,
    item_id: int,
    body: CountBody,
    ctx: WatchlistContext = Depends(get_context),
) -> dict[str, Any]:
    res = ctx.watchlist.set_episode_count(item_id, media_type, body.count)
    return _commit(res, distribution=ctx.watchlist.episode_distribution(item_id), item=ctx.watchlist.get(item_id, media_type))


__all__ = ["router"]
