# mv_platform/config_base.py
# Movieo - config directory resolution and config.json handling
from __future__ import annotations

import copy
import json
import os
import secrets
import time
from pathlib import Path
from typing import Any, Dict


def CONFIG_BASE() -> Path:
    """
    Determine the base directory for config and state files.

    Priority:
      1) $CONFIG_BASE if set
      2) /config (container images mount it as a writable volume)
      3) Project root (one level up from this file)
    """
    env = os.getenv("CONFIG_BASE")
    if env:
        return Path(env)
    if Path("/app").exists():
        return Path("/config")
    return Path(__file__).resolve().parents[1]


CONFIG: Path = CONFIG_BASE()

DEFAULT_CFG: Dict[str, Any] = {
    # --- Catalog -------------------------------------------------------------
    "tmdb": {
        "api_key": "",                                  # v3 api key (query param)
        "api_token": "",                                # v4 read access token (Bearer); wins over api_key
        "base_url": "https://api.themoviedb.org/3",
        "timeout": 10.0,                                # HTTP timeout (seconds)
        "max_retries": 3,                               # Retry budget for 429/5xx
        "backoff_base_ms": 500,
        "backoff_max_ms": 4000,
    },

    # --- Durable store -------------------------------------------------------
    "storage": {
        "file": "movieo_store.json",                    # relative to the config dir unless absolute
    },

    # --- Runtime -------------------------------------------------------------
    "runtime": {
        "debug": False,                                 # enables DEBUG lines in _logging
        "log_level": "info",                            # silent | error | warn | info | debug
        "log_json": "",                                 # optional JSON-lines log file
    },
}


def _cfg_file() -> Path:
    return CONFIG_BASE() / "config.json"


def config_path() -> Path:
    return _cfg_file()


def storage_path(cfg: Dict[str, Any] | None = None) -> Path:
    cfg = cfg if cfg is not None else load_config()
    name = str(((cfg.get("storage") or {}).get("file")) or DEFAULT_CFG["storage"]["file"])
    p = Path(name)
    return p if p.is_absolute() else CONFIG_BASE() / p


def _read_json(p: Path) -> Dict[str, Any]:
    with p.open("r", encoding="utf-8") as f:
        return json.load(f)


def _write_json_atomic(p: Path, data: Dict[str, Any]) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_suffix(f".{time.time_ns()}.{os.getpid()}.{secrets.token_hex(4)}.tmp")
    with tmp.open("w", encoding="utf-8", newline="\n") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")
    tmp.replace(p)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config() -> Dict[str, Any]:
    """Read config.json merged over DEFAULT_CFG. A missing or broken file yields defaults."""
    p = _cfg_file()
    user_cfg: Dict[str, Any] = {}
    if p.exists():
        try:
            data = _read_json(p)
            user_cfg = data if isinstance(data, dict) else {}
        except Exception:
            user_cfg = {}
    return _deep_merge(DEFAULT_CFG, user_cfg)


def save_config(cfg: Dict[str, Any]) -> None:
    _write_json_atomic(_cfg_file(), dict(cfg or {}))
