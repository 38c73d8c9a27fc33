# Movieo test scripts
from __future__ import annotations

import json
from pathlib import Path

from mv_platform.config_base import load_config, save_config, storage_path
from mv_platform.kv_store import (
    CommitResult,
    JsonFileStore,
    MemoryStore,
    commit_json,
    commit_remove,
    read_json,
)
from mv_platform.storage_keys import (
    WATCHLIST_KEY,
    completion_key,
    episode_count_key,
    episode_id,
    is_reset_key,
    parse_key,
    season_key,
    series_data_key,
)

from conftest import FlakyStore


def test_key_shapes() -> None:
    assert season_key(7, 1) == "season_7_1_watched"
    assert series_data_key(7) == "series_7_data"
    assert completion_key(7) == "series_7_completed"
    assert episode_count_key(7) == "series_7_episode_count"
    assert episode_id(2, 5) == "episode_2_5"


def test_parse_key_recovers_ids() -> None:
    pk = parse_key(season_key(123, 4))
    assert pk is not None and (pk.kind, pk.series_id, pk.season) == ("season", 123, 4)
    pk = parse_key(series_data_key(55))
    assert pk is not None and (pk.kind, pk.series_id) == ("series_data", 55)
    assert parse_key(completion_key(55)).kind == "series_completed"
    assert parse_key(episode_count_key(55)).kind == "series_episode_count"
    assert parse_key(WATCHLIST_KEY).kind == "watchlist"
    assert parse_key("theme") is None
    assert parse_key("season_x_1_watched") is None


def test_keys_do_not_collide_across_ids_and_kinds() -> None:
    keys: dict[str, tuple] = {}
    for sid in (1, 12, 123, 11, 2, 23):
        for season in (0, 1, 2, 3, 23):
            k = season_key(sid, season)
            assert k not in keys
            keys[k] = ("season", sid, season)
        for kind, k in (
            ("data", series_data_key(sid)),
            ("completed", completion_key(sid)),
            ("count", episode_count_key(sid)),
        ):
            assert k not in keys
            keys[k] = (kind, sid)
    for k, want in keys.items():
        pk = parse_key(k)
        assert pk is not None
        assert pk.series_id == want[1]
        assert is_reset_key(k)
    assert not is_reset_key(WATCHLIST_KEY)


def test_read_json_treats_malformed_as_absent() -> None:
    kv = MemoryStore({"a": "{not json", "b": "[1, 2]"})
    assert read_json(kv, "a", []) == []
    assert read_json(kv, "b", []) == [1, 2]
    assert read_json(kv, "missing", {"x": 1}) == {"x": 1}


def test_commit_reports_failure_instead_of_raising() -> None:
    kv = FlakyStore()
    assert commit_json(kv, "k", [1]).ok
    kv.broken = True
    res = commit_json(kv, "k", [2])
    assert isinstance(res, CommitResult)
    assert not res.ok and "disk full" in (res.error or "")
    assert not commit_remove(kv, "k")
    assert read_json(kv, "k") == [1]


def test_commit_result_merge() -> None:
    ok = CommitResult(ok=True, key="a")
    bad = CommitResult(ok=False, key="b", error="nope")
    assert CommitResult.merge([ok, bad]) is bad
    assert CommitResult.merge([ok, CommitResult.noop("c")]).changed is True
    assert CommitResult.merge([CommitResult.noop("c")]).changed is False


def test_json_file_store_round_trip(tmp_path: Path) -> None:
    p = tmp_path / "store" / "movieo.json"
    s = JsonFileStore(p)
    s.set("season_7_1_watched", json.dumps(["episode_1_1"]))
    s.set("other", "x")
    s.remove("other")
    s.remove("never-there")

    again = JsonFileStore(p)
    assert again.list_keys() == ["season_7_1_watched"]
    assert json.loads(again.get("season_7_1_watched") or "[]") == ["episode_1_1"]
    assert list(p.parent.glob("*.tmp")) == []


def test_json_file_store_survives_corrupt_file(tmp_path: Path) -> None:
    p = tmp_path / "movieo.json"
    p.write_text("{{{", encoding="utf-8")
    s = JsonFileStore(p)
    assert s.list_keys() == []
    s.set("k", "v")
    assert JsonFileStore(p).get("k") == "v"


def test_config_defaults_and_overrides(config_base: Path) -> None:
    cfg = load_config()
    assert cfg["tmdb"]["base_url"] == "https://api.themoviedb.org/3"
    assert storage_path(cfg) == config_base / "movieo_store.json"

    save_config({"tmdb": {"api_key": "abc"}, "storage": {"file": str(config_base / "x.json")}})
    cfg = load_config()
    assert cfg["tmdb"]["api_key"] == "abc"
    assert cfg["tmdb"]["timeout"] == 10.0
    assert storage_path(cfg) == config_base / "x.json"
