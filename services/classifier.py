# services/classifier.py
# Movieo - movie / tv / anime classification from catalog signals
from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Mapping

# TMDb genre id for "Animation"
ANIMATION_GENRE_ID = 16


class Category(str, Enum):
    MOVIE = "movie"
    TV = "tv"
    ANIME = "anime"

    def __str__(self) -> str:
        return self.value


def _get(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _genre_name(g: Any) -> str:
    if isinstance(g, str):
        return g
    return str(_get(g, "name") or "")


def _has_animation_genre(genres: Any) -> bool:
    if not isinstance(genres, Iterable) or isinstance(genres, (str, bytes)):
        return False
    return any("animation" in _genre_name(g).lower() for g in genres)


def _has_animation_genre_id(genre_ids: Any) -> bool:
    if not isinstance(genre_ids, Iterable) or isinstance(genre_ids, (str, bytes)):
        return False
    for gid in genre_ids:
        try:
            if int(gid) == ANIMATION_GENRE_ID:
                return True
        except (TypeError, ValueError):
            continue
    return False


def is_anime_content(item: Any) -> bool:
    """Rules 1-3 of classify(): explicit anime marker, Animation genre name, Animation genre id."""
    if item is None:
        return False
    if str(_get(item, "media_type") or "").lower() == Category.ANIME.value:
        return True
    if _has_animation_genre(_get(item, "genres")):
        return True
    return _has_animation_genre_id(_get(item, "genre_ids"))


def get_media_type(item: Any) -> Category:
    """Declared movie/tv type, falling back to title (movie) vs name (tv)."""
    mt = str(_get(item, "media_type") or "").lower() if item is not None else ""
    if mt == Category.MOVIE.value:
        return Category.MOVIE
    if mt == Category.TV.value:
        return Category.TV
    if item is not None and _get(item, "title"):
        return Category.MOVIE
    if item is not None and _get(item, "name"):
        return Category.TV
    return Category.MOVIE


def classify(item: Any) -> Category:
    # an explicit movie/tv type with an Animation genre still lands in anime
    if is_anime_content(item):
        return Category.ANIME
    return get_media_type(item)


def entry_kind(entry: Mapping[str, Any]) -> Category:
    """movie or tv for a stored entry, including entries normalized to anime."""
    kind = str(entry.get("kind") or "").lower()
    if kind in (Category.MOVIE.value, Category.TV.value):
        return Category(kind)
    mt = str(entry.get("media_type") or "").lower()
    if mt in (Category.MOVIE.value, Category.TV.value):
        return Category(mt)
    for k in ("first_air_date", "number_of_episodes", "episode_count", "total_episodes"):
        if entry.get(k):
            return Category.TV
    return Category.MOVIE


def is_series(entry: Mapping[str, Any]) -> bool:
    return entry_kind(entry) is Category.TV


__all__ = [
    "ANIMATION_GENRE_ID",
    "Category",
    "classify",
    "is_anime_content",
    "get_media_type",
    "entry_kind",
    "is_series",
]
