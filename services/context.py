# services/context.py
# Movieo - explicit owner of the watchlist engine state for the lifetime of the process
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import Request

from mv_platform.kv_store import KeyValueStore

from .history import WatchHistory
from .ledger import EpisodeLedger
from .progress import ProgressAggregator, SeriesCatalog, SeriesMetadataCache
from .statistics import StatisticsEngine
from .watchlist import WatchlistStore


@dataclass
class WatchlistContext:
    store: KeyValueStore
    ledger: EpisodeLedger
    history: WatchHistory
    cache: SeriesMetadataCache
    aggregator: ProgressAggregator
    watchlist: WatchlistStore
    stats: StatisticsEngine


def build_context(store: KeyValueStore, catalog: SeriesCatalog | None = None) -> WatchlistContext:
    ledger = EpisodeLedger(store)
    cache = SeriesMetadataCache(store, catalog)
    aggregator = ProgressAggregator(ledger, cache)
    history = WatchHistory(store)
    watchlist = WatchlistStore(store, aggregator, history)
    return WatchlistContext(
        store=store,
        ledger=ledger,
        history=history,
        cache=cache,
        aggregator=aggregator,
        watchlist=watchlist,
        stats=StatisticsEngine(watchlist),
    )


def get_context(request: Request) -> WatchlistContext:
    ctx: Any = getattr(request.app.state, "ctx", None)
    if ctx is None:
        raise RuntimeError("watchlist context not initialised on app.state.ctx")
    return ctx


__all__ = ["WatchlistContext", "build_context", "get_context"]
