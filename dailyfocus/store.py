from __future__ import annotations

import datetime as dt
import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Callable, Dict

from .model import (
    Clock,
    Document,
    format_date,
    normalize_collapsed_weeks,
    normalize_notes,
    normalize_todos,
)
from .storage import DATA_KEY, THEME_KEY, KeyValueStorage

log = logging.getLogger(__name__)

DEFAULT_STATUS = "saved"
THEMES = ("light", "dark")


class StatusLine:
    """Transient message that clears itself after ``ttl`` seconds unless replaced."""

    def __init__(self, ttl: float = 2.5, monotonic: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self.monotonic = monotonic
        self.message = ""
        self.shown_at = 0.0

    def show(self, message: str) -> None:
        self.message = message
        self.shown_at = self.monotonic()

    def current(self) -> str:
        if self.message and self.monotonic() - self.shown_at >= self.ttl:
            self.message = ""
        return self.message


def platform_prefers_dark(fallback: bool) -> bool:
    # COLORFGBG is "fg;bg" (sometimes "fg;default;bg"); low colour indexes except 7 are dark backgrounds
    raw = os.environ.get("COLORFGBG", "")
    bg = raw.split(";")[-1].strip() if raw else ""
    if not bg.isdigit():
        return fallback
    return int(bg) in {0, 1, 2, 3, 4, 5, 6, 8}


class StateStore:
    def __init__(self, storage: KeyValueStorage, status: StatusLine, clock: Clock = dt.datetime.now) -> None:
        self.storage = storage
        self.status = status
        self.clock = clock
        self.document = Document(lastOpened=format_date(clock()))

    def load(self) -> Document:
        """Read the stored document over the defaults; corrupt data falls back silently."""
        raw = self.storage.get(DATA_KEY)
        parsed: Dict[str, Any] = {}
        if raw is not None:
            try:
                candidate = json.loads(raw)
            except ValueError as exc:
                log.warning("failed to parse saved data: %s", exc)
            else:
                if isinstance(candidate, dict):
                    parsed = candidate
                else:
                    log.warning("saved data is a %s, expected an object", type(candidate).__name__)
        doc = self.document
        doc.notes = normalize_notes(parsed.get("notes", []), self.clock)
        doc.todos = normalize_todos(parsed.get("todos", []), self.clock)
        last_opened = parsed.get("lastOpened")
        if isinstance(last_opened, str) and last_opened:
            doc.lastOpened = last_opened
        doc.todosCollapsed = parsed.get("todosCollapsed") is True
        doc.collapsedWeeks = normalize_collapsed_weeks(parsed.get("collapsedWeeks"))
        log.debug("loaded %d notes, %d todos", len(doc.notes), len(doc.todos))
        return doc

    def dump(self) -> str:
        return json.dumps(self.document.to_dict(), ensure_ascii=False, separators=(",", ":"))

    def save(self) -> None:
        """Overwrite the stored document without announcing it."""
        self.storage.set(DATA_KEY, self.dump())
        log.debug("persisted document (%d notes, %d todos)", len(self.document.notes), len(self.document.todos))

    def persist(self, message: str | None = None) -> None:
        self.save()
        self.status.show(message or DEFAULT_STATUS)

    def export_text(self) -> str:
        return json.dumps(self.document.to_dict(), ensure_ascii=False, indent=2)

    def export_name(self) -> str:
        return f"daily_summary_{format_date(self.clock())}.json"

    def export(self, directory: Path) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / self.export_name()
        target.write_text(self.export_text(), encoding="utf-8")
        self.status.show(f"exported {target.name}")
        return target

    def import_text(self, text: str) -> bool:
        """Replace notes/todos/collapse state from an exported document.

        Fields missing from the payload (or of the wrong shape) keep their
        current value. Nothing changes when the text does not parse.
        """
        try:
            parsed = json.loads(text)
        except ValueError as exc:
            log.info("import rejected: %s", exc)
            self.status.show("import failed: not valid JSON")
            return False
        if not isinstance(parsed, dict):
            log.info("import rejected: root is a %s", type(parsed).__name__)
            self.status.show("import failed: expected a JSON object")
            return False

        doc = self.document
        if isinstance(parsed.get("notes"), list):
            doc.notes = normalize_notes(parsed["notes"], self.clock)
        if isinstance(parsed.get("todos"), list):
            doc.todos = normalize_todos(parsed["todos"], self.clock)
        if isinstance(parsed.get("collapsedWeeks"), dict):
            doc.collapsedWeeks = normalize_collapsed_weeks(parsed["collapsedWeeks"])
        if isinstance(parsed.get("todosCollapsed"), bool):
            doc.todosCollapsed = parsed["todosCollapsed"]
        self.persist("imported data")
        return True

    def import_file(self, path: Path) -> bool:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            log.info("import could not read %s: %s", path, exc)
            self.status.show(f"import failed: could not read {path.name}")
            return False
        return self.import_text(text)

    def load_theme(self, prefer_dark: bool = True) -> str:
        stored = self.storage.get(THEME_KEY)
        if stored in THEMES:
            return stored
        return "dark" if platform_prefers_dark(prefer_dark) else "light"

    def save_theme(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValueError(f"unknown theme: {theme}")
        self.storage.set(THEME_KEY, theme)
