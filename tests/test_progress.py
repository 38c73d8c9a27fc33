# Movieo test scripts
from __future__ import annotations

from mv_platform.kv_store import MemoryStore
from mv_platform.storage_keys import completion_key, series_data_key
from services.ledger import EpisodeLedger
from services.progress import (
    ProgressAggregator,
    SeriesMetadataCache,
    fallback_total,
    normalize_series_metadata,
)

from conftest import FakeCatalog, series_payload


def _agg(kv: MemoryStore, catalog: FakeCatalog | None = None) -> ProgressAggregator:
    return ProgressAggregator(EpisodeLedger(kv), SeriesMetadataCache(kv, catalog))


def test_normalize_accepts_camel_case_and_sorts_seasons() -> None:
    data = normalize_series_metadata(
        3,
        {
            "name": "Camel",
            "numberOfEpisodes": 5,
            "seasons": [{"seasonNumber": 2, "episodeCount": 3}, {"seasonNumber": 1, "episodeCount": 2}, {"x": 1}],
        },
    )
    assert data["id"] == 3
    assert data["number_of_episodes"] == 5
    assert data["seasons"] == [
        {"season_number": 1, "episode_count": 2},
        {"season_number": 2, "episode_count": 3},
    ]


def test_fallback_total_prefers_first_positive_field() -> None:
    assert fallback_total({"total_episodes": 0, "number_of_episodes": 8, "episode_count": 3}) == 8
    assert fallback_total({"episode_count": "4"}) == 4
    assert fallback_total(None) == 0


def test_cache_fetches_once_and_serves_cached(kv: MemoryStore, catalog: FakeCatalog) -> None:
    cache = SeriesMetadataCache(kv, catalog)
    assert cache.ensure(7)["number_of_episodes"] == 22
    assert cache.ensure(7)["number_of_episodes"] == 22
    assert catalog.calls == [7]
    assert cache.seasons(7) == [(1, 12), (2, 10)]
    assert series_data_key(7) in kv.list_keys()


def test_cache_failure_is_not_cached(kv: MemoryStore) -> None:
    catalog = FakeCatalog(fail=True)
    cache = SeriesMetadataCache(kv, catalog)
    assert cache.ensure(7) is None
    assert cache.get(7) is None
    catalog.fail = False
    catalog.series[7] = series_payload(7, [(1, 3)])
    assert cache.ensure(7)["number_of_episodes"] == 3
    assert catalog.calls == [7, 7]


def test_cache_seeds_from_item_with_seasons(kv: MemoryStore) -> None:
    catalog = FakeCatalog()
    cache = SeriesMetadataCache(kv, catalog)
    cache.ensure(8, seed=series_payload(8, [(1, 6)]))
    assert catalog.calls == []
    assert cache.seasons(8) == [(1, 6)]


def test_refresh_keeps_old_entry_when_catalog_fails(kv: MemoryStore, catalog: FakeCatalog) -> None:
    cache = SeriesMetadataCache(kv, catalog)
    cache.ensure(7)
    catalog.fail = True
    assert cache.refresh(7)["number_of_episodes"] == 22


def test_total_episodes_sources(kv: MemoryStore, catalog: FakeCatalog) -> None:
    agg = _agg(kv, catalog)
    agg.cache.ensure(7)
    assert agg.total_episodes(7) == 22
    assert agg.total_episodes(500, {"number_of_episodes": 9}) == 9
    assert agg.total_episodes(501) == 1


def test_distribution_fills_seasons_in_order(kv: MemoryStore, catalog: FakeCatalog) -> None:
    agg = _agg(kv, catalog)
    agg.cache.ensure(7)
    total = agg.total_episodes(7)
    for n in range(total + 1):
        rows = agg.distribute_watched(7, n)
        assert sum(r["watched"] for r in rows) == n
        for i, r in enumerate(rows):
            assert 0 <= r["watched"] <= r["total"]
            if r["watched"] > 0:
                assert all(p["watched"] == p["total"] for p in rows[:i])
    assert [r["watched"] for r in agg.distribute_watched(7, 15)] == [12, 3]
    assert [r["watched"] for r in agg.distribute_watched(7, 99)] == [12, 10]


def test_mark_completed_fills_every_season(kv: MemoryStore, catalog: FakeCatalog) -> None:
    agg = _agg(kv, catalog)
    agg.cache.ensure(7)
    total, res = agg.mark_completed(7)
    assert res.ok
    assert total == 22
    assert agg.total_watched(7) == agg.total_episodes(7)
    assert agg.ledger.get_watched_count(7, 1) == 12
    assert agg.ledger.get_watched_count(7, 2) == 10
    rec = agg.completion_record(7)
    assert rec and rec["total_episodes"] == 22 and rec["status"] == "completed"


def test_mark_completed_without_metadata_uses_one_season(kv: MemoryStore) -> None:
    agg = _agg(kv)
    total, _ = agg.mark_completed(40, {"number_of_episodes": 5})
    assert total == 5
    assert agg.ledger.seasons_for(40) == [1]
    assert agg.total_watched(40) == 5


def test_mark_unwatched_clears_ledger_and_completion(kv: MemoryStore, catalog: FakeCatalog) -> None:
    agg = _agg(kv, catalog)
    agg.cache.ensure(7)
    agg.mark_completed(7)
    agg.ledger.set_watched_episodes(7, 5, ["episode_5_1"])
    assert agg.mark_unwatched(7).ok
    assert agg.total_watched(7) == 0
    assert agg.ledger.seasons_for(7) == []
    assert completion_key(7) not in kv.list_keys()


def test_set_season_progress_caps_at_season_size(kv: MemoryStore, catalog: FakeCatalog) -> None:
    agg = _agg(kv, catalog)
    agg.cache.ensure(7)
    agg.set_season_progress(7, 2, 50)
    assert agg.ledger.get_watched_count(7, 2) == 10
    agg.set_season_progress(7, 2, 0)
    assert agg.ledger.seasons_for(7) == []
    dist = agg.episode_distribution(7)
    assert dist[0] == {"season_number": 1, "total_episodes": 12, "watched_episodes": 0}
