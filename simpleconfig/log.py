"""
日志模块 - 彩色分级输出与可选的结构化日志

Levels:
- DEBUG:    dim      - internal detail (cache hits, queue activity)
- INFO:     white    - lifecycle events
- SUCCESS:  green    - completed writes
- FALLBACK: yellow   - remote store failed, serving from the local snapshot
- WARNING:  orange   - absorbed failures (snapshot missing, persistence dropped)
- ERROR:    red      - failures surfaced to the caller

Environment:
- LOG_LEVEL=debug|info|warning|error (default info)
- LOG_FORMAT=json switches console output to one JSON object per line
- LOG_FILE=path also appends plain text lines to that file
"""

import json
import os
import sys
import threading
from datetime import datetime
from typing import Any, Dict, Optional


class Colors:
    """ANSI 颜色代码"""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    YELLOW = "\033[33m"
    WHITE = "\033[37m"
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_MAGENTA = "\033[95m"


def _supports_color() -> bool:
    if os.getenv("NO_COLOR"):
        return False
    if os.getenv("FORCE_COLOR"):
        return True
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


_color_enabled = _supports_color()

LOG_LEVELS = {
    "debug": 0,
    "info": 1,
    "success": 1,
    "fallback": 2,
    "warning": 3,
    "error": 4,
    "critical": 5,
}

LOG_STYLES = {
    "debug":    (Colors.DIM + Colors.WHITE, "DEBUG"),
    "info":     (Colors.WHITE, "INFO"),
    "success":  (Colors.BRIGHT_GREEN, "SUCCESS"),
    "fallback": (Colors.BRIGHT_YELLOW, "FALLBACK"),
    "warning":  (Colors.YELLOW + Colors.BOLD, "WARNING"),
    "error":    (Colors.RED, "ERROR"),
    "critical": (Colors.BRIGHT_RED + Colors.BOLD, "CRITICAL"),
}

_file_lock = threading.Lock()
_file_writing_disabled = False


def _get_current_log_level() -> int:
    level = os.getenv("LOG_LEVEL", "info").lower()
    return LOG_LEVELS.get(level, LOG_LEVELS["info"])


def _structured_enabled() -> bool:
    return os.getenv("LOG_FORMAT", "text").lower() == "json"


def _write_to_file(message: str) -> None:
    global _file_writing_disabled
    log_file = os.getenv("LOG_FILE")
    if not log_file or _file_writing_disabled:
        return
    try:
        with _file_lock:
            with open(log_file, "a", encoding="utf-8") as f:
                f.write(message + "\n")
    except OSError as e:
        # 文件不可写时只提示一次，之后停止写文件
        _file_writing_disabled = True
        print(f"Warning: Disabling log file writing: {e}", file=sys.stderr)


def _colorize(text: str, color: str) -> str:
    if not _color_enabled:
        return text
    return f"{color}{text}{Colors.RESET}"


def _log(level: str, message: str, tag: Optional[str] = None, **extra: Any) -> None:
    """
    核心日志函数

    Args:
        level: 日志级别
        message: 日志消息
        tag: 可选标签 (e.g. "TIERED_CACHE")
        **extra: 额外的结构化字段 (namespace, key, ...)
    """
    level = level.lower()
    if level not in LOG_LEVELS:
        print(f"Warning: Unknown log level '{level}'", file=sys.stderr)
        return

    if LOG_LEVELS[level] < _get_current_log_level():
        return

    color, label = LOG_STYLES[level]
    now = datetime.now()
    timestamp = now.strftime("%H:%M:%S")

    if tag:
        plain_entry = f"[{timestamp}] [{label}] [{tag}] {message}"
        colored_entry = (
            f"{Colors.DIM}[{timestamp}]{Colors.RESET} "
            f"{_colorize(f'[{label}]', color)} "
            f"{_colorize(f'[{tag}]', Colors.BRIGHT_MAGENTA)} "
            f"{message}"
        )
    else:
        plain_entry = f"[{timestamp}] [{label}] {message}"
        colored_entry = (
            f"{Colors.DIM}[{timestamp}]{Colors.RESET} "
            f"{_colorize(f'[{label}]', color)} "
            f"{message}"
        )

    if extra:
        extra_str = " ".join(f"{k}={v!r}" for k, v in extra.items())
        plain_entry += f" | {extra_str}"
        colored_entry += f" {Colors.DIM}| {extra_str}{Colors.RESET}"

    if _structured_enabled():
        log_entry: Dict[str, Any] = {
            "timestamp": now.isoformat(),
            "level": label,
            "message": message,
        }
        if tag:
            log_entry["tag"] = tag
        log_entry.update(extra)
        print(json.dumps(log_entry, ensure_ascii=False, default=str), file=sys.stderr)
    else:
        print(colored_entry if _color_enabled else plain_entry, file=sys.stderr)

    _write_to_file(plain_entry)


class Logger:
    """支持多种调用方式的日志器"""

    def __call__(self, level: str, message: str, tag: Optional[str] = None, **extra: Any):
        _log(level, message, tag, **extra)

    def debug(self, message: str, tag: Optional[str] = None, **extra: Any):
        _log("debug", message, tag, **extra)

    def info(self, message: str, tag: Optional[str] = None, **extra: Any):
        _log("info", message, tag, **extra)

    def success(self, message: str, tag: Optional[str] = None, **extra: Any):
        _log("success", message, tag, **extra)

    def fallback(self, message: str, tag: Optional[str] = None, **extra: Any):
        _log("fallback", message, tag, **extra)

    def warning(self, message: str, tag: Optional[str] = None, **extra: Any):
        _log("warning", message, tag, **extra)

    def error(self, message: str, tag: Optional[str] = None, **extra: Any):
        _log("error", message, tag, **extra)

    def critical(self, message: str, tag: Optional[str] = None, **extra: Any):
        _log("critical", message, tag, **extra)

    def get_current_level(self) -> str:
        current_level = _get_current_log_level()
        for name, value in LOG_LEVELS.items():
            if value == current_level:
                return name
        return "info"

    def is_color_enabled(self) -> bool:
        return _color_enabled

    def set_color_enabled(self, enabled: bool):
        global _color_enabled
        _color_enabled = enabled


log = Logger()

__all__ = [
    "log",
    "Logger",
    "LOG_LEVELS",
    "Colors",
]
