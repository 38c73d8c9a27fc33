# /movieo.py
# Movieo - watchlist and progress-tracking engine
from __future__ import annotations

from pathlib import Path
from typing import Any

import uvicorn
from fastapi import FastAPI

from _logging import log as _log
from api import register as register_api
from mv_platform.config_base import CONFIG_BASE, load_config, storage_path
from mv_platform.kv_store import JsonFileStore, KeyValueStore
from providers.metadata.registry import get_catalog
from services import register as register_services
from services.context import WatchlistContext, build_context

log = _log.child("MOVIEO")


def _configure_logging(cfg: dict[str, Any]) -> None:
    rt = cfg.get("runtime") or {}
    _log.set_level(str(rt.get("log_level") or "info"))
    json_path = str(rt.get("log_json") or "").strip()
    if json_path:
        p = Path(json_path)
        _log.enable_json(str(p if p.is_absolute() else CONFIG_BASE() / p))


def default_context(store: KeyValueStore | None = None) -> WatchlistContext:
    cfg = load_config()
    store = store if store is not None else JsonFileStore(storage_path(cfg))
    return build_context(store, get_catalog(load_config))


def create_app(ctx: WatchlistContext | None = None) -> FastAPI:
    app = FastAPI(title="Movieo", version="1.0.0")
    app.state.ctx = ctx if ctx is not None else default_context()
    # service routers (export/import) before the watchlist catch-all routes
    register_services(app)
    register_api(app)
    log.info(f"watchlist loaded: {len(app.state.ctx.watchlist)} entries")
    return app


def main(host: str = "0.0.0.0", port: int = 8788) -> None:
    cfg = load_config()
    _configure_logging(cfg)
    debug = bool((cfg.get("runtime") or {}).get("debug"))
    print("\nMovieo engine running:")
    print(f"  Local:   http://127.0.0.1:{port}")
    print(f"  Bind:    {host}:{port}")
    print(f"  Config:  {CONFIG_BASE() / 'config.json'} (JSON)")
    print(f"  Store:   {storage_path(cfg)}\n")
    uvicorn.run(
        create_app(),
        host=host,
        port=port,
        log_level=("debug" if debug else "warning"),
    )


if __name__ == "__main__":
    main()
