# mv_platform/kv_store.py
# Movieo - durable string-keyed store and the commit seam used by the services
from __future__ import annotations

import json
import os
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from _logging import log as _log

log = _log.child("STORE")


class StorageError(Exception):
    """Raised by store implementations when a read or write cannot be completed."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def remove(self, key: str) -> None: ...
    def list_keys(self) -> list[str]: ...


@dataclass(frozen=True)
class CommitResult:
    ok: bool
    key: str = ""
    error: str | None = None
    changed: bool = True

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def noop(cls, key: str = "") -> "CommitResult":
        return cls(ok=True, key=key, changed=False)

    @classmethod
    def merge(cls, results: list["CommitResult"]) -> "CommitResult":
        bad = [r for r in results if not r.ok]
        if bad:
            return bad[0]
        return cls(ok=True, key=results[0].key if results else "", changed=any(r.changed for r in results))


class MemoryStore:
    def __init__(self, data: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(data or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageError(f"value for {key!r} must be a string")
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def list_keys(self) -> list[str]:
        with self._lock:
            return list(self._data.keys())

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._data)


class JsonFileStore:
    """Whole-store JSON document on disk; every write replaces the file atomically."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._data: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        try:
            if not self.path.exists():
                return {}
            with self.path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except Exception as e:
            log.warn(f"store file {self.path} unreadable, starting empty: {e}")
            return {}
        if not isinstance(raw, dict):
            log.warn(f"store file {self.path} is not an object, starting empty")
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _flush(self, data: dict[str, str]) -> None:
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=str(self.path.parent),
                prefix=self.path.name + ".",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                json.dump(data, tmp, ensure_ascii=False, indent=2)
                tmp_name = tmp.name
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as e:
            raise StorageError(f"write to {self.path} failed: {e}") from e
        finally:
            if tmp_name and Path(tmp_name).exists():
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise StorageError(f"value for {key!r} must be a string")
        with self._lock:
            nxt = dict(self._data)
            nxt[key] = value
            self._flush(nxt)
            self._data = nxt

    def remove(self, key: str) -> None:
        with self._lock:
            if key not in self._data:
                return
            nxt = dict(self._data)
            nxt.pop(key, None)
            self._flush(nxt)
            self._data = nxt

    def list_keys(self) -> list[str]:
        with self._lock:
            return list(self._data.keys())


# helpers used by every service; none of them raise


def read_json(store: KeyValueStore, key: str, default: Any = None) -> Any:
    try:
        raw = store.get(key)
    except Exception as e:
        log.error(f"read {key} failed: {e}")
        return default
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        log.warn(f"malformed JSON under {key}, treating as absent")
        return default


def commit_json(store: KeyValueStore, key: str, data: Any) -> CommitResult:
    try:
        store.set(key, json.dumps(data, ensure_ascii=False))
    except Exception as e:
        log.error(f"write {key} failed: {e}")
        return CommitResult(ok=False, key=key, error=str(e))
    return CommitResult(ok=True, key=key)


def commit_text(store: KeyValueStore, key: str, value: str) -> CommitResult:
    try:
        store.set(key, value)
    except Exception as e:
        log.error(f"write {key} failed: {e}")
        return CommitResult(ok=False, key=key, error=str(e))
    return CommitResult(ok=True, key=key)


def commit_remove(store: KeyValueStore, key: str) -> CommitResult:
    try:
        store.remove(key)
    except Exception as e:
        log.error(f"remove {key} failed: {e}")
        return CommitResult(ok=False, key=key, error=str(e))
    return CommitResult(ok=True, key=key)


def safe_keys(store: KeyValueStore) -> list[str]:
    try:
        return list(store.list_keys())
    except Exception as e:
        log.error(f"listing keys failed: {e}")
        return []


__all__ = [
    "StorageError",
    "KeyValueStore",
    "CommitResult",
    "MemoryStore",
    "JsonFileStore",
    "read_json",
    "commit_json",
    "commit_text",
    "commit_remove",
    "safe_keys",
]
