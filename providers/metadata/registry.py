# providers/metadata/registry.py
# Movieo - catalog provider discovery (providers/metadata/_meta_*.py)
from __future__ import annotations

import importlib
import pkgutil
from types import ModuleType
from typing import Any, Callable

import providers.metadata as _metapkg
from _logging import log as _log

log = _log.child("META")

PKG_NAME: str = __package__ or "providers.metadata"
PKG_PATHS: list[str] = list(getattr(_metapkg, "__path__", []))


def _iter_meta_modules() -> list[ModuleType]:
    mods: list[ModuleType] = []
    for _, name, ispkg in pkgutil.iter_modules(PKG_PATHS):
        if ispkg or not name.startswith("_meta_"):
            continue
        try:
            mods.append(importlib.import_module(f"{PKG_NAME}.{name}"))
        except ImportError as e:
            log.warn(f"metadata module {name} not loadable: {e}")
    return mods


def provider_classes() -> dict[str, type]:
    out: dict[str, type] = {}
    for mod in _iter_meta_modules():
        cls = getattr(mod, "PROVIDER", None)
        if cls is None or not hasattr(cls, "manifest"):
            continue
        pid = str((cls.manifest() or {}).get("id") or mod.__name__.rsplit("_", 1)[-1]).lower()
        out[pid] = cls
    return out


def metadata_providers_manifests() -> list[dict[str, Any]]:
    return [dict(cls.manifest()) for cls in provider_classes().values()]


def get_catalog(load_cfg: Callable[[], dict[str, Any]], provider_id: str = "tmdb") -> Any | None:
    cls = provider_classes().get(provider_id.lower())
    if cls is None:
        log.warn(f"no catalog provider '{provider_id}' found")
        return None
    return cls(load_cfg)


__all__ = ["provider_classes", "metadata_providers_manifests", "get_catalog"]
