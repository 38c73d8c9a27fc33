# services/statistics.py
# Movieo - watchlist statistics, including progress left behind by removed series
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from _logging import log as _log

from .classifier import is_anime_content, is_series
from .watchlist import STATUSES, Status, WatchlistStore

log = _log.child("STATS")

BUCKETS = ("movies", "series", "anime_movies", "anime_series")


def _int(v: Any) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return 0


def bucket_of(entry: Mapping[str, Any]) -> str:
    anime = is_anime_content(entry)
    if is_series(entry):
        return "anime_series" if anime else "series"
    return "anime_movies" if anime else "movies"


class StatisticsEngine:
    def __init__(self, watchlist: WatchlistStore) -> None:
        self.watchlist = watchlist
        self.aggregator = watchlist.aggregator
        self.ledger = self.aggregator.ledger
        self.cache = self.aggregator.cache

    def summarize(self) -> dict[str, Any]:
        items = self.watchlist.items()
        by_status = {s: 0 for s in STATUSES}
        for it in items:
            st = str(it.get("status") or "")
            if st in by_status:
                by_status[st] += 1
        return {
            "total": len(items),
            "by_status": by_status,
            "favourites_count": sum(1 for it in items if it.get("is_favourite")),
        }

    def _series_episodes(self, entry: Mapping[str, Any]) -> int:
        stored = _int(entry.get("episodes_watched"))
        if stored <= 0:
            return self.aggregator.total_episodes(_int(entry.get("id")), entry)
        return stored

    def detailed_summarize(self) -> dict[str, dict[str, int]]:
        out = {name: {"total": 0, "completed": 0, "episodes": 0} for name in BUCKETS}
        attributed: set[int] = set()

        for it in self.watchlist.items():
            name = bucket_of(it)
            bucket = out[name]
            done = str(it.get("status") or "") == Status.COMPLETED.value
            bucket["total"] += 1
            if done:
                bucket["completed"] += 1
            if name in ("series", "anime_series"):
                # every series entry is attributed; only completed ones add episodes
                attributed.add(_int(it.get("id")))
                if done:
                    bucket["episodes"] += self._series_episodes(it)
            elif done:
                bucket["episodes"] += _int(it.get("episodes_watched")) or 1

        # orphaned ledger progress: series with watched episodes but no watchlist entry
        orphans: dict[int, int] = {}
        for series_id, _season, ids in self.ledger.iter_records():
            if series_id in attributed:
                continue
            orphans[series_id] = orphans.get(series_id, 0) + len(ids)
        for series_id, n in orphans.items():
            name = "anime_series" if self.cache.is_anime(series_id) else "series"
            out[name]["episodes"] += n
        if orphans:
            log.debug(f"counted {sum(orphans.values())} episodes from {len(orphans)} series outside the watchlist")
        return out

    def report(self) -> dict[str, Any]:
        return {
            "generated_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "summary": self.summarize(),
            "detailed": self.detailed_summarize(),
        }


__all__ = ["BUCKETS", "StatisticsEngine", "bucket_of"]
