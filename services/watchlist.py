# services/watchlist.py
# Movieo - watchlist collection: status, favourites and episode progress per title
from __future__ import annotations

import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from _logging import log as _log
from mv_platform.kv_store import (
    CommitResult,
    KeyValueStore,
    commit_json,
    commit_remove,
    commit_text,
    read_json,
    safe_keys,
)
from mv_platform.storage_keys import (
    LEGACY_FAVOURITES_KEY,
    WATCH_HISTORY_KEY,
    WATCHLIST_KEY,
    episode_count_key,
    is_reset_key,
)

from .classifier import Category, classify, get_media_type, is_anime_content, is_series
from .history import WatchHistory
from .progress import ProgressAggregator

log = _log.child("WATCHLIST")


class Status(str, Enum):
    PLAN_TO_WATCH = "plan_to_watch"
    WATCHING = "watching"
    COMPLETED = "completed"
    DROPPED = "dropped"

    def __str__(self) -> str:
        return self.value


STATUSES: tuple[str, ...] = tuple(s.value for s in Status)


# small helpers
def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def _mt(x: Any) -> str:
    return str(getattr(x, "value", x) or "").strip().lower()


def _status(x: Any) -> Status | None:
    try:
        return Status(_mt(x))
    except ValueError:
        return None


def _same(entry: Mapping[str, Any], item_id: Any, media_type: Any) -> bool:
    if not isinstance(entry, Mapping):
        return False
    return str(entry.get("id")) == str(item_id) and _mt(entry.get("media_type")) == _mt(media_type)


def _is_anime_movie(entry: Mapping[str, Any]) -> bool:
    return is_anime_content(entry) and not is_series(entry)


def _clamp(n: Any, lo: int, hi: int) -> int:
    return max(lo, min(hi, _int(n)))


def _build_entry(
    item: Mapping[str, Any],
    media_type: Category,
    kind: Category,
    status: Status,
    episodes_watched: int,
) -> dict[str, Any]:
    now = _now_iso()
    return {
        "id": _int(item.get("id")),
        "media_type": media_type.value,
        "kind": kind.value,
        "title": item.get("title") or item.get("name"),
        "poster_path": item.get("poster_path"),
        "backdrop_path": item.get("backdrop_path"),
        "overview": item.get("overview"),
        "vote_average": item.get("vote_average"),
        "release_date": item.get("release_date") or item.get("first_air_date"),
        "first_air_date": item.get("first_air_date"),
        "number_of_episodes": item.get("number_of_episodes"),
        "episode_count": item.get("episode_count"),
        "total_episodes": item.get("total_episodes"),
        "genres": item.get("genres"),
        "genre_ids": item.get("genre_ids"),
        "status": status.value,
        "is_favourite": False,
        "episodes_watched": episodes_watched,
        "added_at": now,
        "last_updated": now,
    }


class WatchlistStore:
    """
    Ordered watchlist entries, unique per (id, media_type).

    The in-memory list is authoritative: read once from the durable store,
    written through on every mutation. A failed write is logged and reported
    through the returned CommitResult; memory is never rolled back.

    Imported collections may hold non-object members. They are kept (export
    returns them unchanged) but every read skips them.
    """

    def __init__(
        self,
        store: KeyValueStore,
        aggregator: ProgressAggregator,
        history: WatchHistory | None = None,
    ) -> None:
        self.store = store
        self.aggregator = aggregator
        self.cache = aggregator.cache
        self.history = history if history is not None else WatchHistory(store)
        self._lock = threading.RLock()
        self._items: list[Any] = []
        self.last_commit: CommitResult = CommitResult.noop(WATCHLIST_KEY)
        aggregator.entry_lookup = self.series_entry
        self.reload()

    # load/save
    def reload(self) -> None:
        raw = read_json(self.store, WATCHLIST_KEY, [])
        if not isinstance(raw, list):
            log.warn("stored watchlist is not a list, starting empty")
            raw = []
        items, fixed = self._repair(raw)
        with self._lock:
            self._items = items
        if fixed:
            log.info(f"repaired {fixed} anime movie episode counts")
            self._save(items)
        self.history.migrate(self._entries())

    @staticmethod
    def _repair(items: list[Any]) -> tuple[list[Any], int]:
        fixed = 0
        out = []
        for it in items:
            if (
                isinstance(it, dict)
                and _mt(it.get("status")) == Status.COMPLETED.value
                and _is_anime_movie(it)
                and _int(it.get("episodes_watched")) > 1
            ):
                it = {**it, "episodes_watched": 1}
                fixed += 1
            out.append(it)
        return out, fixed

    def _save(self, items: list[Any]) -> CommitResult:
        with self._lock:
            self._items = items
            res = commit_json(self.store, WATCHLIST_KEY, items)
            self.last_commit = res
        if not res.ok:
            log.error(f"watchlist not persisted ({len(items)} entries kept in memory): {res.error}")
        return res

    def _entries(self) -> list[dict[str, Any]]:
        with self._lock:
            return [it for it in self._items if isinstance(it, Mapping)]

    def _index(self, item_id: Any, media_type: Any) -> int:
        for i, it in enumerate(self._items):
            if _same(it, item_id, media_type):
                return i
        return -1

    def _replace_at(self, idx: int, entry: dict[str, Any]) -> CommitResult:
        items = list(self._items)
        items[idx] = entry
        return self._save(items)

    def series_entry(self, series_id: int) -> dict[str, Any] | None:
        for it in self._entries():
            if str(it.get("id")) == str(series_id) and is_series(it):
                return dict(it)
        return None

    def _track_completion(self, entry: Mapping[str, Any]) -> None:
        if _mt(entry.get("status")) != Status.COMPLETED.value:
            return
        res = self.history.track(entry)
        if not res.ok:
            log.warn(f"watch history for {entry.get('media_type')} {entry.get('id')} not persisted")

    # mutations
    def add(
        self,
        item: Mapping[str, Any],
        status: Status | str = Status.PLAN_TO_WATCH,
        episodes_watched: int = 1,
    ) -> CommitResult:
        item = dict(item or {})
        st = _status(status)
        if st is None:
            log.warn(f"unknown status {status!r} for {item.get('id')}, using plan_to_watch")
            st = Status.PLAN_TO_WATCH
        category = classify(item)
        kind = get_media_type(item)
        sid = _int(item.get("id"))

        if self.is_in_watchlist(sid, category):
            return self.update(sid, category, st, episodes_watched)

        # catalog fetch happens outside the collection lock
        meta = self.cache.ensure(sid, seed=item) if kind is Category.TV else None

        with self._lock:
            if self._index(sid, category) < 0:
                results: list[CommitResult] = []
                if kind is Category.TV:
                    if meta and not item.get("number_of_episodes") and meta.get("number_of_episodes"):
                        item["number_of_episodes"] = meta["number_of_episodes"]
                    total = self.aggregator.total_episodes(sid, item)
                    item["total_episodes"] = total
                    if st is Status.COMPLETED:
                        episodes, res = self.aggregator.mark_completed(sid, item)
                        results.append(res)
                    else:
                        episodes = min(self.aggregator.total_watched(sid), total)
                elif st is Status.COMPLETED and category is Category.ANIME:
                    episodes = 1
                else:
                    episodes = _clamp(episodes_watched, 0, 1)

                entry = _build_entry(item, category, kind, st, episodes)
                log.info(f"added {category.value} {sid} '{entry['title']}' as {st.value}")
                results.append(self._save(self._items + [entry]))
                self._track_completion(entry)
                return CommitResult.merge(results)

        # added by another caller while the catalog was queried
        return self.update(sid, category, st, episodes_watched)

    def update(
        self,
        item_id: int,
        media_type: Category | str,
        status: Status | str,
        episodes_watched: int | None = None,
    ) -> CommitResult:
        st = _status(status)
        if st is None:
            log.warn(f"unknown status {status!r} for {media_type} {item_id}")
            return CommitResult(ok=False, key=WATCHLIST_KEY, error=f"unknown status {status!r}", changed=False)

        current = self.get(item_id, media_type)
        if current is not None and st is Status.COMPLETED and is_series(current):
            self.cache.ensure(_int(current.get("id")), seed=current)

        with self._lock:
            idx = self._index(item_id, media_type)
            if idx < 0:
                log.debug(f"update: {media_type} {item_id} not in watchlist")
                return CommitResult.noop(WATCHLIST_KEY)
            entry = dict(self._items[idx])
            sid = _int(entry.get("id"))
            results: list[CommitResult] = []

            if is_series(entry):
                total = self.aggregator.total_episodes(sid, entry)
                entry["total_episodes"] = total
                if st is Status.COMPLETED:
                    episodes, res = self.aggregator.mark_completed(sid, entry)
                    results.append(res)
                elif episodes_watched is None:
                    episodes = _clamp(entry.get("episodes_watched"), 0, total)
                else:
                    episodes = _clamp(episodes_watched, 0, total)
            elif st is Status.COMPLETED and _is_anime_movie(entry):
                episodes = 1
            elif episodes_watched is None:
                episodes = 1 if st is Status.COMPLETED else _clamp(entry.get("episodes_watched"), 0, 1)
            else:
                episodes = _clamp(episodes_watched, 0, 1)

            entry.update(status=st.value, episodes_watched=episodes, last_updated=_now_iso())
            log.debug(f"{media_type} {item_id} -> {st.value} ({episodes} episodes)")
            results.append(self._replace_at(idx, entry))
            self._track_completion(entry)
            return CommitResult.merge(results)

    def remove(self, item_id: int, media_type: Category | str) -> CommitResult:
        # ledger records intentionally survive removal
        with self._lock:
            items = [it for it in self._items if not _same(it, item_id, media_type)]
            if len(items) == len(self._items):
                return CommitResult.noop(WATCHLIST_KEY)
            log.info(f"removed {media_type} {item_id}")
            return self._save(items)

    def toggle_favourite(self, item_id: int, media_type: Category | str) -> CommitResult:
        with self._lock:
            idx = self._index(item_id, media_type)
            if idx < 0:
                return CommitResult.noop(WATCHLIST_KEY)
            entry = dict(self._items[idx])
            entry["is_favourite"] = not bool(entry.get("is_favourite"))
            entry["last_updated"] = _now_iso()
            return self._replace_at(idx, entry)

    def toggle_series_completion(self, series_id: int, media_type: Category | str) -> CommitResult:
        entry = self.get(series_id, media_type)
        if entry and _mt(entry.get("status")) == Status.COMPLETED.value:
            res = self.update(series_id, media_type, Status.PLAN_TO_WATCH, 0)
            return CommitResult.merge([res, self.aggregator.mark_unwatched(_int(series_id))])
        if entry:
            return self.update(series_id, media_type, Status.COMPLETED)
        _, res = self.aggregator.mark_completed(_int(series_id))
        return res

    def _sync_series(self, series_id: int) -> CommitResult:
        watched = self.aggregator.total_watched(series_id)
        items = list(self._items)
        changed = False
        for i, it in enumerate(items):
            if not isinstance(it, Mapping) or str(it.get("id")) != str(series_id) or not is_series(it):
                continue
            total = self.aggregator.total_episodes(series_id, it)
            n = min(watched, total)
            if _int(it.get("episodes_watched")) != n:
                items[i] = {**it, "episodes_watched": n, "last_updated": _now_iso()}
                changed = True
        return self._save(items) if changed else CommitResult.noop(WATCHLIST_KEY)

    def toggle_episode(self, series_id: int, season: int, episode: int) -> int:
        with self._lock:
            count = self.aggregator.ledger.toggle_episode(series_id, season, episode)
            self._sync_series(series_id)
            return count

    def set_season_progress(self, series_id: int, season: int, count: int) -> CommitResult:
        with self._lock:
            res = self.aggregator.set_season_progress(series_id, season, count)
            return CommitResult.merge([res, self._sync_series(series_id)])

    def mark_season_watched(self, series_id: int, season: int) -> CommitResult:
        total = dict(self.cache.seasons(series_id)).get(int(season), 0)
        return self.set_season_progress(series_id, season, total)

    def mark_season_unwatched(self, series_id: int, season: int) -> CommitResult:
        return self.set_season_progress(series_id, season, 0)

    def set_episode_count(self, series_id: int, media_type: Category | str, count: int) -> CommitResult:
        with self._lock:
            idx = self._index(series_id, media_type)
            entry = dict(self._items[idx]) if idx >= 0 else None
            total = self.aggregator.total_episodes(series_id, entry)
            n = _clamp(count, 0, total)
            applied, res = self.aggregator.apply_distribution(series_id, n, entry)
            results = [res, commit_text(self.store, episode_count_key(series_id), str(n))]
            if entry is not None:
                entry.update(episodes_watched=n, total_episodes=total, last_updated=_now_iso())
                results.append(self._replace_at(idx, entry))
            log.debug(f"series {series_id}: episode count set to {n} ({applied} materialized)")
            return CommitResult.merge(results)

    def replace_all(self, items: list[Any]) -> CommitResult:
        with self._lock:
            return self._save(list(items))

    def clean_duplicates(self) -> int:
        with self._lock:
            seen: set[tuple[str, str]] = set()
            cleaned = []
            for it in self._items:
                if not isinstance(it, Mapping):
                    cleaned.append(it)
                    continue
                key = (str(it.get("id")), _mt(it.get("media_type")))
                if key in seen:
                    continue
                seen.add(key)
                cleaned.append(it)
            removed = len(self._items) - len(cleaned)
            if removed:
                self._save(cleaned)
                log.info(f"cleaned watchlist: removed {removed} duplicates")
            return removed

    def clear(self) -> CommitResult:
        with self._lock:
            self._items = []
            results = [commit_remove(self.store, WATCHLIST_KEY)]
            for k in safe_keys(self.store):
                if is_reset_key(k):
                    results.append(commit_remove(self.store, k))
            results.append(commit_remove(self.store, WATCH_HISTORY_KEY))
            results.append(commit_remove(self.store, LEGACY_FAVOURITES_KEY))
            res = CommitResult.merge(results)
            self.last_commit = res
            log.info("watchlist cleared")
            return res

    # queries
    def items(self) -> list[dict[str, Any]]:
        return [dict(it) for it in self._entries()]

    def raw_items(self) -> list[Any]:
        """The collection exactly as stored, including members that are not entries."""
        with self._lock:
            return [dict(it) if isinstance(it, Mapping) else it for it in self._items]

    def __len__(self) -> int:
        return len(self._entries())

    def get(self, item_id: int, media_type: Category | str) -> dict[str, Any] | None:
        with self._lock:
            idx = self._index(item_id, media_type)
            return dict(self._items[idx]) if idx >= 0 else None

    def is_in_watchlist(self, item_id: int, media_type: Category | str) -> bool:
        return self._index(item_id, media_type) >= 0

    def get_status(self, item_id: int, media_type: Category | str) -> str | None:
        it = self.get(item_id, media_type)
        return it.get("status") if it else None

    def is_favourite(self, item_id: int, media_type: Category | str) -> bool:
        it = self.get(item_id, media_type)
        return bool(it.get("is_favourite")) if it else False

    def by_status(self, status: Status | str) -> list[dict[str, Any]]:
        want = _mt(status)
        return [it for it in self.items() if _mt(it.get("status")) == want]

    def favourites(self) -> list[dict[str, Any]]:
        return [it for it in self.items() if it.get("is_favourite")]

    def get_episode_count(self, series_id: int) -> int:
        return sum(n for _, n in self.cache.seasons(series_id))

    def episode_distribution(self, series_id: int) -> list[dict[str, int]]:
        return self.aggregator.episode_distribution(series_id)

    def get_watch_history(self) -> list[dict[str, Any]]:
        return self.history.get()

    def refresh_watch_history(self) -> list[dict[str, Any]]:
        return self.history.refresh()


__all__ = ["Status", "STATUSES", "WatchlistStore"]
