# Movieo test scripts
from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from mv_platform.kv_store import MemoryStore, StorageError  # noqa: E402
from services.context import WatchlistContext, build_context  # noqa: E402


@dataclass
class FakeCatalog:
    series: dict[int, dict[str, Any]] = field(default_factory=dict)
    calls: list[int] = field(default_factory=list)
    fail: bool = False

    def fetch_series_metadata(self, series_id: int) -> dict[str, Any] | None:
        self.calls.append(series_id)
        if self.fail:
            raise ConnectionError("catalog unreachable")
        return self.series.get(series_id)


class FlakyStore(MemoryStore):
    """MemoryStore whose writes fail while `broken` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.broken = False

    def set(self, key: str, value: str) -> None:
        if self.broken:
            raise StorageError("disk full")
        super().set(key, value)

    def remove(self, key: str) -> None:
        if self.broken:
            raise StorageError("disk full")
        super().remove(key)


def series_payload(series_id: int, seasons: list[tuple[int, int]], **extra: Any) -> dict[str, Any]:
    return {
        "id": series_id,
        "name": extra.pop("name", f"Series {series_id}"),
        "media_type": "tv",
        "seasons": [{"season_number": s, "episode_count": n} for s, n in seasons],
        "number_of_episodes": sum(n for _, n in seasons),
        **extra,
    }


@pytest.fixture()
def config_base(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("CONFIG_BASE", str(tmp_path))
    return tmp_path


@pytest.fixture()
def kv() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def catalog() -> FakeCatalog:
    return FakeCatalog(
        series={
            7: series_payload(7, [(1, 12), (2, 10)], name="Harbor Lights"),
            99: series_payload(
                99,
                [(1, 24), (2, 12)],
                name="Sky Pirates",
                genres=[{"id": 16, "name": "Animation"}],
            ),
        }
    )


@pytest.fixture()
def ctx(kv: MemoryStore, catalog: FakeCatalog) -> WatchlistContext:
    return build_context(kv, catalog)
