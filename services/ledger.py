# services/ledger.py
# Movieo - per-season watched-episode ledger
from __future__ import annotations

import threading
from typing import Any, Iterable, Iterator

from _logging import log as _log
from mv_platform.kv_store import (
    CommitResult,
    KeyValueStore,
    commit_json,
    commit_remove,
    read_json,
    safe_keys,
)
from mv_platform.storage_keys import episode_id, parse_key, season_key

log = _log.child("LEDGER")


def _as_id_list(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    out: list[str] = []
    seen: set[str] = set()
    for x in raw:
        s = str(x)
        if s not in seen:
            seen.add(s)
            out.append(s)
    return out


def synthetic_ids(season: int, count: int) -> list[str]:
    return [episode_id(season, n) for n in range(1, max(0, int(count)) + 1)]


class EpisodeLedger:
    """Watched episode ids per (series, season), one store key per season."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self._lock = threading.RLock()

    def get_watched_episodes(self, series_id: int, season: int) -> list[str]:
        return _as_id_list(read_json(self.store, season_key(series_id, season), []))

    def get_watched_count(self, series_id: int, season: int) -> int:
        return len(self.get_watched_episodes(series_id, season))

    def is_watched(self, series_id: int, season: int, episode: int) -> bool:
        return episode_id(season, episode) in self.get_watched_episodes(series_id, season)

    def toggle_episode(self, series_id: int, season: int, episode: int) -> int:
        key = season_key(series_id, season)
        eid = episode_id(season, episode)
        with self._lock:
            ids = self.get_watched_episodes(series_id, season)
            if eid in ids:
                ids = [x for x in ids if x != eid]
            else:
                ids.append(eid)
            res = commit_json(self.store, key, ids)
            if not res.ok:
                log.warn(f"toggle {eid} for series {series_id} not persisted")
            log.debug(f"series {series_id} season {season}: {eid} -> {len(ids)} watched")
            return len(ids)

    def set_watched_episodes(self, series_id: int, season: int, ids: Iterable[str]) -> CommitResult:
        with self._lock:
            return commit_json(self.store, season_key(series_id, season), _as_id_list(list(ids)))

    def clear(self, series_id: int, season: int) -> CommitResult:
        with self._lock:
            return commit_remove(self.store, season_key(series_id, season))

    def seasons_for(self, series_id: int) -> list[int]:
        out: set[int] = set()
        for k in safe_keys(self.store):
            pk = parse_key(k)
            if pk and pk.kind == "season" and pk.series_id == int(series_id):
                out.add(int(pk.season or 0))
        return sorted(out)

    def series_ids(self) -> list[int]:
        out: set[int] = set()
        for k in safe_keys(self.store):
            pk = parse_key(k)
            if pk and pk.kind == "season" and pk.series_id is not None:
                out.add(pk.series_id)
        return sorted(out)

    def iter_records(self) -> Iterator[tuple[int, int, list[str]]]:
        for k in sorted(safe_keys(self.store)):
            pk = parse_key(k)
            if not pk or pk.kind != "season" or pk.series_id is None:
                continue
            yield pk.series_id, int(pk.season or 0), _as_id_list(read_json(self.store, k, []))


__all__ = ["EpisodeLedger", "synthetic_ids"]
