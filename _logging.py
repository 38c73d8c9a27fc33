# _logging.py
# Movieo - structured console logger with optional JSON-lines sink
from __future__ import annotations

import datetime
import json
import sys
import threading
import time
from typing import Any, Dict, Mapping, Optional, TextIO

RESET = "\033[0m"
DIM = "\033[90m"
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[33m"
BLUE = "\033[94m"

LEVELS = {"silent": 60, "error": 40, "warn": 30, "info": 20, "debug": 10}

# runtime.debug gate, cached for a few seconds so hot paths don't re-read config.json
_DEBUG_TTL = 5.0
_debug_cache: Dict[str, Any] = {"value": None, "ts": 0.0}


def _debug_enabled() -> bool:
    now = time.time()
    if _debug_cache["value"] is None or (now - _debug_cache["ts"]) > _DEBUG_TTL:
        try:
            from mv_platform.config_base import load_config

            rt = (load_config() or {}).get("runtime") or {}
            _debug_cache["value"] = bool(rt.get("debug"))
        except Exception:
            _debug_cache["value"] = False
        _debug_cache["ts"] = now
    return bool(_debug_cache["value"])


def reset_debug_gate() -> None:
    _debug_cache["value"] = None
    _debug_cache["ts"] = 0.0


class Logger:
    def __init__(
        self,
        stream: TextIO = sys.stdout,
        level: str = "info",
        use_color: bool = True,
        show_time: bool = True,
        time_fmt: str = "%Y-%m-%d %H:%M:%S",
        *,
        _context: Optional[Dict[str, Any]] = None,
        _json_stream: Optional[TextIO] = None,
        _lock: Optional[threading.Lock] = None,
        _shared: Optional[Dict[str, Any]] = None,
    ):
        self.stream = stream
        # level and JSON sink are shared by every logger bound from the same root
        self._shared: Dict[str, Any] = _shared if _shared is not None else {
            "level_no": LEVELS.get(level, LEVELS["info"]),
            "json": _json_stream,
        }
        self.use_color = use_color
        self.show_time = show_time
        self.time_fmt = time_fmt
        self.colors = {
            "DEBUG": YELLOW,
            "INFO": BLUE,
            "WARN": YELLOW,
            "ERROR": RED,
            "SUCCESS": GREEN,
        }
        self._context: Dict[str, Any] = dict(_context or {})
        self._lock = _lock or threading.Lock()

    @property
    def level_no(self) -> int:
        return int(self._shared["level_no"])

    @property
    def _json_stream(self) -> Optional[TextIO]:
        return self._shared.get("json")

    def set_level(self, level: str) -> None:
        self._shared["level_no"] = LEVELS.get(level, self.level_no)

    def enable_color(self, on: bool = True) -> None:
        self.use_color = on

    def enable_json(self, file_path: str) -> None:
        self._shared["json"] = open(file_path, "a", encoding="utf-8")

    @property
    def level_name(self) -> str:
        for k, v in LEVELS.items():
            if v == self.level_no:
                return k
        return "info"

    @property
    def module(self) -> str:
        return str(self._context.get("module") or "").strip()

    def bind(self, **ctx: Any) -> "Logger":
        merged = dict(self._context)
        merged.update(ctx)
        child = Logger(
            stream=self.stream,
            level=self.level_name,
            use_color=self.use_color,
            show_time=self.show_time,
            time_fmt=self.time_fmt,
            _context=merged,
            _lock=self._lock,
            _shared=self._shared,
        )
        child.colors = dict(self.colors)
        return child

    def child(self, name: str) -> "Logger":
        return self.bind(module=name)

    def _line(self, label: str, msg: str) -> str:
        col = self.colors.get(label) if self.use_color else None
        lvl = f"{col}{label}{RESET}" if col else label
        head = f"[{self.module}] " if self.module else ""
        line = f"{head}{lvl} {msg}"
        if not self.show_time:
            return line
        ts = datetime.datetime.now().strftime(self.time_fmt)
        return f"{DIM}[{ts}]{RESET} {line}" if self.use_color else f"[{ts}] {line}"

    def _emit(self, severity: str, label: str, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        if severity == "debug":
            if not _debug_enabled():
                return
        elif self.level_no > LEVELS.get(severity, LEVELS["info"]):
            return
        msg = " ".join(str(p) for p in parts)
        with self._lock:
            self.stream.write(self._line(label, msg) + "\n")
            self.stream.flush()
            if self._json_stream:
                rec: Dict[str, Any] = {
                    "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="milliseconds"),
                    "level": label,
                    "msg": msg,
                    "ctx": self._context,
                }
                if extra:
                    rec["extra"] = dict(extra)
                self._json_stream.write(json.dumps(rec, ensure_ascii=False, default=str) + "\n")
                self._json_stream.flush()

    def debug(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("debug", "DEBUG", *parts, extra=extra)

    def info(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("info", "INFO", *parts, extra=extra)

    def warn(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("warn", "WARN", *parts, extra=extra)

    warning = warn

    def error(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("error", "ERROR", *parts, extra=extra)

    def success(self, *parts: Any, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("info", "SUCCESS", *parts, extra=extra)

    # log("text", level="WARN", module="LEDGER")
    def __call__(
        self,
        message: str,
        *,
        level: str = "INFO",
        module: Optional[str] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        target = self.bind(module=module) if module else self
        lvl = (level or "INFO").lower()
        if lvl == "debug":
            target.debug(message, extra=extra)
        elif lvl in ("warn", "warning"):
            target.warn(message, extra=extra)
        elif lvl == "error":
            target.error(message, extra=extra)
        elif lvl == "success":
            target.success(message, extra=extra)
        else:
            target.info(message, extra=extra)


log = Logger()

__all__ = ["Logger", "log", "LEVELS", "reset_debug_gate"]
