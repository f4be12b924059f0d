from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Protocol

DATA_KEY = "dailyFocusData"
THEME_KEY = "dailyFocusTheme"

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]")


class KeyValueStorage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStorage:
    def __init__(self, initial: Dict[str, str] | None = None) -> None:
        self.items: Dict[str, str] = dict(initial or {})
        self.writes = 0

    def get(self, key: str) -> str | None:
        return self.items.get(key)

    def set(self, key: str, value: str) -> None:
        self.items[key] = value
        self.writes += 1

    def remove(self, key: str) -> None:
        self.items.pop(key, None)


class FileStorage:
    """One UTF-8 file per key inside a directory; writes replace the whole file."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def path_for(self, key: str) -> Path:
        return self.directory / _UNSAFE.sub("_", key)

    def get(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def remove(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)
