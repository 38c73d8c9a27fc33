# services/__init__.py
from __future__ import annotations

from fastapi import FastAPI

from . import classifier, ledger, history, progress, watchlist, statistics, export
from .context import WatchlistContext, build_context, get_context

SERVICE_MODULES = (watchlist, statistics, export)

__all__ = [
    "classifier",
    "ledger",
    "history",
    "progress",
    "watchlist",
    "statistics",
    "export",
    "WatchlistContext",
    "build_context",
    "get_context",
    "register",
]


def register(app: FastAPI) -> None:
    for mod in SERVICE_MODULES:
        router = getattr(mod, "router", None)
        if router is not None:
            app.include_router(router)
