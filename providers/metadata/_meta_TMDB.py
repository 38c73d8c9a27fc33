# providers/metadata/_meta_TMDB.py
# Movieo - TMDb catalog client (series season/episode counts)
from __future__ import annotations

import random
import time
from email.utils import parsedate_to_datetime
from typing import Any, Callable

import requests

from _logging import log as _real_log


def log(msg: str, level: str = "INFO", module: str = "META") -> None:
    _real_log(msg, level=level, module=module)


class TmdbProvider:
    name = "TMDB"
    UA = "Movieo/1.0"

    @staticmethod
    def manifest() -> dict[str, Any]:
        return {"id": "tmdb", "name": "TMDB", "enabled": True, "version": "1.0"}

    def __init__(self, load_cfg: Callable[[], dict[str, Any]], session: requests.Session | None = None) -> None:
        self.load_cfg = load_cfg
        self.session = session or requests.Session()

    def _tmdb_cfg(self) -> dict[str, Any]:
        return dict((self.load_cfg() or {}).get("tmdb") or {})

    def _base_url(self) -> str:
        return str(self._tmdb_cfg().get("base_url") or "https://api.themoviedb.org/3").rstrip("/")

    def _auth(self) -> tuple[dict[str, str], dict[str, str]]:
        cfg = self._tmdb_cfg()
        token = str(cfg.get("api_token") or "").strip()
        if token:
            return {"Authorization": f"Bearer {token}"}, {}
        api_key = str(cfg.get("api_key") or "").strip()
        if not api_key:
            raise RuntimeError("TMDb credentials are missing (tmdb.api_token or tmdb.api_key)")
        return {}, {"api_key": api_key}

    def _timeout(self) -> float:
        try:
            return max(1.0, float(self._tmdb_cfg().get("timeout", 10.0)))
        except (TypeError, ValueError):
            return 10.0

    def _backoff_params(self) -> tuple[int, float, float]:
        cfg = self._tmdb_cfg()
        max_retries = int(cfg.get("max_retries", 3))
        base_ms = int(cfg.get("backoff_base_ms", 500))
        max_ms = int(cfg.get("backoff_max_ms", 4000))
        return max(0, max_retries), max(0.0, base_ms / 1000.0), max(0.0, max_ms / 1000.0)

    @staticmethod
    def _retry_delay(attempt: int, base_s: float, max_s: float) -> float:
        return min(max_s, base_s * (2**attempt)) + random.uniform(0.0, 0.25 * base_s)

    @staticmethod
    def _seconds_from_retry_after(header: str | None) -> float | None:
        if not header:
            return None
        header = header.strip()
        if header.isdigit():
            return float(header)
        try:
            return max(0.0, parsedate_to_datetime(header).timestamp() - time.time())
        except (TypeError, ValueError):
            return None

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        headers, auth_params = self._auth()
        headers.update({"User-Agent": self.UA, "Accept": "application/json"})
        q = dict(params or {})
        q.update(auth_params)
        url = f"{self._base_url()}/{path.lstrip('/')}"

        max_retries, base_s, max_s = self._backoff_params()
        attempt = 0
        while True:
            try:
                r = self.session.get(url, params=q, headers=headers, timeout=self._timeout())
                status = r.status_code
                if status == 429 and attempt < max_retries:
                    retry_after = self._seconds_from_retry_after(r.headers.get("Retry-After"))
                    time.sleep(retry_after if retry_after is not None else self._retry_delay(attempt, base_s, max_s))
                    attempt += 1
                    continue
                if 500 <= status < 600 and attempt < max_retries:
                    time.sleep(self._retry_delay(attempt, base_s, max_s))
                    attempt += 1
                    continue
                r.raise_for_status()
                return r.json()
            except requests.exceptions.RequestException as e:
                status = getattr(getattr(e, "response", None), "status_code", None)
                retryable = status is None or status == 429 or 500 <= int(status) < 600
                if not retryable or attempt >= max_retries:
                    lvl = "INFO" if status == 404 else "WARNING"
                    log(f"TMDb request failed ({status or 'n/a'}) at {url}", level=lvl)
                    raise
                time.sleep(self._retry_delay(attempt, base_s, max_s))
                attempt += 1

    def fetch_series_metadata(self, series_id: int) -> dict[str, Any] | None:
        """GET /tv/{id}: seasons with episode counts, genres and the episode total."""
        try:
            data = self._get(f"tv/{int(series_id)}")
        except (requests.exceptions.RequestException, RuntimeError, ValueError) as e:
            log(f"series {series_id} metadata unavailable: {e}", level="WARNING")
            return None
        if not isinstance(data, dict):
            return None
        return {
            "id": data.get("id", series_id),
            "name": data.get("name") or data.get("original_name") or "",
            "media_type": "tv",
            "genres": [g for g in (data.get("genres") or []) if isinstance(g, dict)],
            "number_of_episodes": data.get("number_of_episodes") or 0,
            "number_of_seasons": data.get("number_of_seasons") or 0,
            "first_air_date": data.get("first_air_date"),
            "seasons": [
                {"season_number": s.get("season_number"), "episode_count": s.get("episode_count") or 0}
                for s in (data.get("seasons") or [])
                if isinstance(s, dict) and s.get("season_number") is not None
            ],
        }


PROVIDER = TmdbProvider

__all__ = ["TmdbProvider", "PROVIDER"]
