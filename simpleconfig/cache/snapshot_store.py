"""
Snapshot Store - Local durable fallback copy of configuration values (L2)
本地快照持久化层 - 远程存储不可用时的后备数据源

This module provides:
    - One `<namespace>.properties` file per namespace
    - Full rewrite on every save (temp file + atomic rename)
    - Strict loading: missing or malformed files raise SnapshotUnavailable

File format:
    # Client-side property cache
    # 2026-01-01T12:00:00
    key=value

Keys and values are escaped so that any string survives a save/load cycle;
see escape() for the rules.
"""

import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Mapping, Tuple, Union
from urllib.parse import quote, unquote

from ..errors import SnapshotUnavailable
from ..log import log

SNAPSHOT_SUFFIX = ".properties"
SNAPSHOT_HEADER = "Client-side property cache"

_WHITESPACE = " \t\f"
_SIMPLE_ESCAPES = {
    "\\": "\\\\",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\f": "\\f",
    "=": "\\=",
    ":": "\\:",
    "#": "\\#",
    "!": "\\!",
}
_SIMPLE_UNESCAPES = {"n": "\n", "r": "\r", "t": "\t", "f": "\f"}


def _needs_unicode_escape(ch: str) -> bool:
    code = ord(ch)
    return code < 0x20 or 0x7F <= code < 0xA0 or code in (0x2028, 0x2029)


def escape(text: str, is_key: bool = False) -> str:
    """
    Escape a key or value for one `key=value` line

    Backslash, separators, comment markers and line breaks get a backslash
    escape. Spaces are escaped everywhere in keys and at the start of values.
    Remaining control characters become \\uXXXX.
    """
    out = []
    for i, ch in enumerate(text):
        if ch in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[ch])
        elif ch == " " and (is_key or i == 0):
            out.append("\\ ")
        elif _needs_unicode_escape(ch):
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(ch)
    return "".join(out)


def unescape(text: str) -> str:
    out = []
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue
        if i + 1 >= n:
            raise ValueError("dangling backslash")
        nxt = text[i + 1]
        if nxt == "u":
            digits = text[i + 2:i + 6]
            if len(digits) != 4:
                raise ValueError(f"truncated unicode escape: {text[i:i + 6]!r}")
            out.append(chr(int(digits, 16)))
            i += 6
            continue
        out.append(_SIMPLE_UNESCAPES.get(nxt, nxt))
        i += 2
    return "".join(out)


def _split_line(line: str) -> Tuple[str, str]:
    """Split one logical line into raw (still escaped) key and value."""
    i, n = 0, len(line)
    while i < n:
        ch = line[i]
        if ch == "\\":
            i += 2
            continue
        if ch in "=:" or ch in _WHITESPACE:
            break
        i += 1
    raw_key = line[:i]

    while i < n and line[i] in _WHITESPACE:
        i += 1
    if i < n and line[i] in "=:":
        i += 1
    while i < n and line[i] in _WHITESPACE:
        i += 1
    return raw_key, line[i:]


def dumps(entries: Mapping[str, str], comment: str = SNAPSHOT_HEADER) -> str:
    lines = [f"#{comment}", f"#{datetime.now().isoformat(timespec='seconds')}"]
    for key in sorted(entries):
        lines.append(f"{escape(key, is_key=True)}={escape(entries[key])}")
    return "\n".join(lines) + "\n"


def loads(text: str) -> Dict[str, str]:
    """
    Parse snapshot text

    Raises:
        ValueError: on a malformed escape sequence
    """
    entries: Dict[str, str] = {}
    for lineno, physical in enumerate(text.split("\n"), start=1):
        if physical.endswith("\r"):
            physical = physical[:-1]
        line = physical.lstrip(_WHITESPACE)
        if not line or line[0] in "#!":
            continue
        raw_key, raw_value = _split_line(line)
        try:
            entries[unescape(raw_key)] = unescape(raw_value)
        except ValueError as e:
            raise ValueError(f"line {lineno}: {e}") from e
    return entries


class SnapshotStore:
    """
    Per-namespace snapshot files
    按命名空间划分的快照文件

    Usage:
        store = SnapshotStore("/var/lib/myapp/config")
        store.save("billing", {"currency": "EUR"})
        store.load("billing")   # {"currency": "EUR"}
    """

    def __init__(self, directory: Union[str, Path] = "."):
        self.directory = Path(directory)

    def path_for(self, namespace: str) -> Path:
        """Deterministic file path for a namespace."""
        return self.directory / f"{quote(namespace, safe='')}{SNAPSHOT_SUFFIX}"

    def save(self, namespace: str, entries: Mapping[str, str]) -> None:
        """
        Replace the namespace snapshot with `entries`

        Raises:
            OSError: when the directory or file cannot be written
        """
        path = self.path_for(namespace)
        path.parent.mkdir(parents=True, exist_ok=True)
        content = dumps(entries)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

        log.debug(f"[SNAPSHOT] Saved {len(entries)} entries: namespace={namespace!r}, path={path}")

    def load(self, namespace: str) -> Dict[str, str]:
        """
        Read the namespace snapshot

        Raises:
            SnapshotUnavailable: file missing, unreadable or malformed
        """
        path = self.path_for(namespace)
        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                text = f.read()
        except FileNotFoundError:
            raise SnapshotUnavailable(namespace, f"no snapshot at {path}") from None
        except (OSError, UnicodeDecodeError) as e:
            raise SnapshotUnavailable(namespace, f"cannot read {path}: {e}") from e

        try:
            entries = loads(text)
        except ValueError as e:
            raise SnapshotUnavailable(namespace, f"malformed {path}: {e}") from e

        log.debug(f"[SNAPSHOT] Loaded {len(entries)} entries: namespace={namespace!r}")
        return entries

    def delete(self, namespace: str) -> bool:
        try:
            self.path_for(namespace).unlink()
        except FileNotFoundError:
            return False
        return True

    def namespaces(self) -> List[str]:
        """Namespaces that currently have a snapshot file."""
        if not self.directory.is_dir():
            return []
        return sorted(
            unquote(p.name[:-len(SNAPSHOT_SUFFIX)])
            for p in self.directory.iterdir()
            if p.is_file() and p.name.endswith(SNAPSHOT_SUFFIX)
        )
