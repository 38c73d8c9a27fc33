# services/progress.py
# Movieo - series metadata cache and watched-episode aggregation across seasons
from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Protocol

from _logging import log as _log
from mv_platform.kv_store import (
    CommitResult,
    KeyValueStore,
    commit_json,
    commit_remove,
    read_json,
)
from mv_platform.storage_keys import completion_key, series_data_key

from .classifier import is_anime_content
from .ledger import EpisodeLedger, synthetic_ids

log = _log.child("PROGRESS")


class SeriesCatalog(Protocol):
    def fetch_series_metadata(self, series_id: int) -> Mapping[str, Any] | None: ...


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def fallback_total(item: Mapping[str, Any] | None) -> int:
    if not isinstance(item, Mapping):
        return 0
    for k in (
        "total_episodes",
        "number_of_episodes",
        "episode_count",
        "totalEpisodes",
        "numberOfEpisodes",
        "episodeCount",
    ):
        n = _int(item.get(k))
        if n > 0:
            return n
    return 0


def normalize_series_metadata(series_id: int, raw: Mapping[str, Any]) -> dict[str, Any]:
    """Reduce a catalog series payload to what the cache keeps. Accepts snake or camel case."""
    seasons: list[dict[str, int]] = []
    for s in raw.get("seasons") or []:
        if not isinstance(s, Mapping):
            continue
        num = s.get("season_number", s.get("seasonNumber"))
        if num is None:
            continue
        seasons.append(
            {
                "season_number": _int(num),
                "episode_count": max(0, _int(s.get("episode_count", s.get("episodeCount")))),
            }
        )
    seasons.sort(key=lambda s: s["season_number"])
    return {
        "id": _int(raw.get("id"), int(series_id)),
        "name": raw.get("name") or raw.get("title") or "",
        "media_type": raw.get("media_type") or "tv",
        "genres": list(raw.get("genres") or []),
        "genre_ids": list(raw.get("genre_ids") or []),
        "number_of_episodes": _int(raw.get("number_of_episodes", raw.get("numberOfEpisodes"))),
        "seasons": seasons,
        "fetched_at": _now_iso(),
    }


class SeriesMetadataCache:
    """Season list per series. No TTL; entries change only via put/invalidate/refresh."""

    def __init__(self, store: KeyValueStore, catalog: SeriesCatalog | None = None) -> None:
        self.store = store
        self.catalog = catalog
        self._lock = threading.RLock()

    def get(self, series_id: int) -> dict[str, Any] | None:
        data = read_json(self.store, series_data_key(series_id))
        return data if isinstance(data, dict) else None

    def put(self, series_id: int, raw: Mapping[str, Any]) -> CommitResult:
        return commit_json(self.store, series_data_key(series_id), normalize_series_metadata(series_id, raw))

    def invalidate(self, series_id: int) -> CommitResult:
        return commit_remove(self.store, series_data_key(series_id))

    def ensure(self, series_id: int, seed: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
        """Cached entry, else one built from `seed` when it carries seasons, else a catalog fetch."""
        with self._lock:
            cached = self.get(series_id)
            if cached is not None:
                log.debug(f"using cached series data for {series_id}")
                return cached
            if seed is not None and seed.get("seasons"):
                self.put(series_id, seed)
                return self.get(series_id)
            return self._fetch(series_id)

    def refresh(self, series_id: int) -> dict[str, Any] | None:
        with self._lock:
            return self._fetch(series_id) or self.get(series_id)

    def _fetch(self, series_id: int) -> dict[str, Any] | None:
        if self.catalog is None:
            return None
        try:
            raw = self.catalog.fetch_series_metadata(int(series_id))
        except Exception as e:
            log.warn(f"fetching series {series_id} failed: {e}")
            return None
        if not raw:
            return None
        data = normalize_series_metadata(series_id, raw)
        commit_json(self.store, series_data_key(series_id), data)
        log.info(f"cached series {series_id}: {len(data['seasons'])} seasons, {data['number_of_episodes']} episodes")
        return data

    def seasons(self, series_id: int) -> list[tuple[int, int]]:
        data = self.get(series_id) or {}
        out = []
        for s in data.get("seasons") or []:
            if isinstance(s, Mapping) and s.get("season_number") is not None:
                out.append((_int(s.get("season_number")), max(0, _int(s.get("episode_count")))))
        return sorted(out)

    def is_anime(self, series_id: int) -> bool:
        return is_anime_content(self.get(series_id))


class ProgressAggregator:
    def __init__(
        self,
        ledger: EpisodeLedger,
        cache: SeriesMetadataCache,
        entry_lookup: Callable[[int], Mapping[str, Any] | None] | None = None,
    ) -> None:
        self.ledger = ledger
        self.cache = cache
        self.store = ledger.store
        # resolves the watchlist entry of a series; set by WatchlistStore
        self.entry_lookup = entry_lookup

    def _fallback_entry(self, series_id: int) -> Mapping[str, Any] | None:
        if self.entry_lookup is None:
            return None
        try:
            return self.entry_lookup(int(series_id))
        except Exception as e:
            log.warn(f"entry lookup for series {series_id} failed: {e}")
            return None

    # season plan: cached seasons, else one implicit season sized from the
    # entry fallback chain, else from the last completion record
    def _plan(self, series_id: int, fallback: Mapping[str, Any] | None = None) -> list[tuple[int, int]]:
        seasons = self.cache.seasons(series_id)
        if sum(n for _, n in seasons) > 0:
            return seasons
        data = self.cache.get(series_id) or {}
        total = _int(data.get("number_of_episodes"))
        if total <= 0:
            total = fallback_total(fallback if fallback is not None else self._fallback_entry(series_id))
        if total <= 0:
            total = fallback_total(self.completion_record(series_id))
        return [(1, total)] if total > 0 else []

    def total_watched(self, series_id: int) -> int:
        seasons = self.cache.seasons(series_id)
        numbers = [s for s, _ in seasons] if seasons else self.ledger.seasons_for(series_id)
        return sum(self.ledger.get_watched_count(series_id, s) for s in numbers)

    def total_episodes(self, series_id: int, fallback: Mapping[str, Any] | None = None) -> int:
        total = sum(n for _, n in self._plan(series_id, fallback))
        return total if total > 0 else 1

    def distribute_watched(
        self, series_id: int, watched: int, fallback: Mapping[str, Any] | None = None
    ) -> list[dict[str, int]]:
        remaining = max(0, _int(watched))
        out: list[dict[str, int]] = []
        for season, total in self._plan(series_id, fallback) or [(1, 1)]:
            take = min(remaining, total)
            out.append({"season": season, "watched": take, "total": total})
            remaining -= take
        return out

    def apply_distribution(
        self, series_id: int, watched: int, fallback: Mapping[str, Any] | None = None
    ) -> tuple[int, CommitResult]:
        results: list[CommitResult] = []
        applied = 0
        for row in self.distribute_watched(series_id, watched, fallback):
            if row["watched"] > 0:
                res = self.ledger.set_watched_episodes(series_id, row["season"], synthetic_ids(row["season"], row["watched"]))
            else:
                res = self.ledger.clear(series_id, row["season"])
            if res.ok:
                applied += row["watched"]
            results.append(res)
        return applied, CommitResult.merge(results)

    def episode_distribution(self, series_id: int) -> list[dict[str, int]]:
        return [
            {
                "season_number": season,
                "total_episodes": total,
                "watched_episodes": self.ledger.get_watched_count(series_id, season),
            }
            for season, total in self.cache.seasons(series_id)
        ]

    def set_season_progress(self, series_id: int, season: int, count: int) -> CommitResult:
        count = max(0, _int(count))
        for s, total in self.cache.seasons(series_id):
            if s == int(season) and total > 0:
                count = min(count, total)
        if count == 0:
            return self.ledger.clear(series_id, season)
        return self.ledger.set_watched_episodes(series_id, season, synthetic_ids(season, count))

    def completion_record(self, series_id: int) -> dict[str, Any] | None:
        data = read_json(self.store, completion_key(series_id))
        return data if isinstance(data, dict) else None

    def mark_completed(self, series_id: int, fallback: Mapping[str, Any] | None = None) -> tuple[int, CommitResult]:
        plan = self._plan(series_id, fallback) or [(1, 1)]
        results: list[CommitResult] = []
        total = 0
        for season, count in plan:
            total += count
            if count <= 0:
                continue
            # full id list is built before the single write for this season
            results.append(self.ledger.set_watched_episodes(series_id, season, synthetic_ids(season, count)))
        results.append(
            commit_json(
                self.store,
                completion_key(series_id),
                {"total_episodes": total, "completed_at": _now_iso(), "status": "completed"},
            )
        )
        log.debug(f"series {series_id} marked completed ({total} episodes, {len(plan)} seasons)")
        return total, CommitResult.merge(results)

    def mark_unwatched(self, series_id: int) -> CommitResult:
        seasons = {s for s, _ in self.cache.seasons(series_id)} | set(self.ledger.seasons_for(series_id))
        results = [self.ledger.clear(series_id, s) for s in sorted(seasons)]
        results.append(commit_remove(self.store, completion_key(series_id)))
        log.debug(f"series {series_id} marked unwatched ({len(seasons)} seasons cleared)")
        return CommitResult.merge(results)


__all__ = [
    "SeriesCatalog",
    "SeriesMetadataCache",
    "ProgressAggregator",
    "normalize_series_metadata",
    "fallback_total",
]
