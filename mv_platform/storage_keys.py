# mv_platform/storage_keys.py
# Movieo - key shapes used in the durable key-value store
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, Optional

WATCHLIST_KEY = "movieo_watchlist"
WATCH_HISTORY_KEY = "movieo_watch_history"
# written by older releases; only removed by a full clear
LEGACY_FAVOURITES_KEY = "favourites"

KeyKind = Literal["watchlist", "history", "season", "series_data", "series_completed", "series_episode_count"]

_SEASON_RE = re.compile(r"^season_(\d+)_(\d+)_watched$")
_SERIES_RE = re.compile(r"^series_(\d+)_(data|completed|episode_count)$")

# keys cleared by a full reset
RESET_PREFIXES = ("series_", "season_")


@dataclass(frozen=True)
class ParsedKey:
    kind: KeyKind
    series_id: Optional[int] = None
    season: Optional[int] = None


def season_key(series_id: int, season: int) -> str:
    return f"season_{int(series_id)}_{int(season)}_watched"


def series_data_key(series_id: int) -> str:
    return f"series_{int(series_id)}_data"


def completion_key(series_id: int) -> str:
    return f"series_{int(series_id)}_completed"


def episode_count_key(series_id: int) -> str:
    return f"series_{int(series_id)}_episode_count"


def episode_id(season: int, episode: int) -> str:
    return f"episode_{int(season)}_{int(episode)}"


def parse_key(key: str) -> Optional[ParsedKey]:
    """Map a raw store key back to its kind and ids; None for keys we don't own."""
    if key == WATCHLIST_KEY:
        return ParsedKey("watchlist")
    if key == WATCH_HISTORY_KEY:
        return ParsedKey("history")
    m = _SEASON_RE.match(key or "")
    if m:
        return ParsedKey("season", int(m.group(1)), int(m.group(2)))
    m = _SERIES_RE.match(key or "")
    if m:
        kind: KeyKind = {
            "data": "series_data",
            "completed": "series_completed",
            "episode_count": "series_episode_count",
        }[m.group(2)]  # type: ignore[assignment]
        return ParsedKey(kind, int(m.group(1)))
    return None


def is_reset_key(key: str) -> bool:
    return key.startswith(RESET_PREFIXES)


__all__ = [
    "WATCHLIST_KEY",
    "WATCH_HISTORY_KEY",
    "LEGACY_FAVOURITES_KEY",
    "ParsedKey",
    "season_key",
    "series_data_key",
    "completion_key",
    "episode_count_key",
    "episode_id",
    "parse_key",
    "is_reset_key",
]
