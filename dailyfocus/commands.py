"""User intents and the dispatcher that applies them.

Every command runs the same sequence: mutate the document, persist it when
durable data changed, then re-render the affected lists. Free-text edits skip
the re-render so an edit in progress is never reshuffled.
"""
from __future__ import annotations

import datetime as dt
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict

from .config import Config, default_config
from .model import Clock, Refused, parse_date
from .notes import NoteManager, week_key
from .storage import KeyValueStorage
from .store import StateStore, StatusLine
from .todos import TodoManager
from .view import FocusIntent, ViewState, ViewSync

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddNote:
    pass


@dataclass(frozen=True)
class UpdateNote:
    id: str
    field: str
    value: str


@dataclass(frozen=True)
class RemoveNote:
    id: str


@dataclass(frozen=True)
class SetNotePhoto:
    id: str
    path: Path


@dataclass(frozen=True)
class RemoveNotePhoto:
    id: str


@dataclass(frozen=True)
class AddTodo:
    pass


@dataclass(frozen=True)
class UpdateTodo:
    id: str
    field: str
    value: str


@dataclass(frozen=True)
class ToggleTodo:
    id: str


@dataclass(frozen=True)
class SetTodoDeadline:
    id: str
    value: str | None


@dataclass(frozen=True)
class RemoveTodo:
    id: str


@dataclass(frozen=True)
class SetSearch:
    query: str


@dataclass(frozen=True)
class ToggleWeek:
    key: str


@dataclass(frozen=True)
class ToggleTodos:
    pass


@dataclass(frozen=True)
class ExportDocument:
    directory: Path | None = None


@dataclass(frozen=True)
class ImportDocument:
    path: Path


@dataclass(frozen=True)
class ToggleTheme:
    pass


@dataclass
class Outcome:
    changed: bool = False
    rendered: frozenset = field(default_factory=frozenset)
    focus: FocusIntent | None = None
    artifact: Path | None = None


class App:
    """Owns the one document plus everything that reads or writes it."""

    def __init__(
        self,
        storage: KeyValueStorage,
        config: Config | None = None,
        clock: Clock = dt.datetime.now,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or default_config()
        self.status = StatusLine(self.config.status_seconds, monotonic)
        self.store = StateStore(storage, self.status, clock)
        self.document = self.store.load()
        self.notes = NoteManager(self.document, clock, self.config.max_notes_per_day)
        self.todos = TodoManager(self.document, clock)
        self.view_state = ViewState()
        self.view = ViewSync(self.document, self.view_state)
        self.theme = self.store.load_theme(self.config.prefer_dark)
        self.render(notes=True, todos=True)
        self._handlers: Dict[type, Callable] = {
            AddNote: self._add_note,
            UpdateNote: self._update_note,
            RemoveNote: self._remove_note,
            SetNotePhoto: self._set_note_photo,
            RemoveNotePhoto: self._remove_note_photo,
            AddTodo: self._add_todo,
            UpdateTodo: self._update_todo,
            ToggleTodo: self._toggle_todo,
            SetTodoDeadline: self._set_todo_deadline,
            RemoveTodo: self._remove_todo,
            SetSearch: self._set_search,
            ToggleWeek: self._toggle_week,
            ToggleTodos: self._toggle_todos,
            ExportDocument: self._export,
            ImportDocument: self._import,
            ToggleTheme: self._toggle_theme,
        }

    def dispatch(self, command: object) -> Outcome:
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"unknown command: {command!r}")
        try:
            return handler(command)
        except Refused as exc:
            log.info("%s refused: %s", type(command).__name__, exc)
            self.status.show(str(exc))
            return Outcome()

    def render(self, notes: bool = False, todos: bool = False) -> frozenset:
        if self.view.sync(notes=notes, todos=todos):
            self.store.save()
        return frozenset(name for name, wanted in (("notes", notes), ("todos", todos)) if wanted)

    def _commit(
        self,
        message: str | None = None,
        notes: bool = False,
        todos: bool = False,
        focus: FocusIntent | None = None,
    ) -> Outcome:
        self.store.persist(message)
        rendered = self.render(notes=notes, todos=todos)
        if focus is not None:
            self.view_state.focus = focus
        return Outcome(changed=True, rendered=rendered, focus=focus)

    def _add_note(self, command: AddNote) -> Outcome:
        note = self.notes.add()
        if self.view_state.searching:
            self.view_state.search = ""
        day = parse_date(note.date)
        if day is not None and self.document.collapsedWeeks.get(week_key(day)):
            self.document.collapsedWeeks[week_key(day)] = False
        return self._commit(notes=True, focus=FocusIntent("note", note.id))

    def _update_note(self, command: UpdateNote) -> Outcome:
        structural = self.notes.update(command.id, command.field, command.value)
        return self._commit(notes=structural)

    def _remove_note(self, command: RemoveNote) -> Outcome:
        if not self.notes.remove(command.id):
            return Outcome()
        return self._commit("deleted", notes=True)

    def _set_note_photo(self, command: SetNotePhoto) -> Outcome:
        note = self.notes.set_photo(command.id, command.path)
        return self._commit(f"attached {note.photoName}", notes=True)

    def _remove_note_photo(self, command: RemoveNotePhoto) -> Outcome:
        if not self.notes.remove_photo(command.id):
            return Outcome()
        return self._commit("photo removed", notes=True)

    def _add_todo(self, command: AddTodo) -> Outcome:
        todo = self.todos.add()
        self.document.todosCollapsed = False
        return self._commit(todos=True, focus=FocusIntent("todo", todo.id))

    def _update_todo(self, command: UpdateTodo) -> Outcome:
        self.todos.update(command.id, command.field, command.value)
        return self._commit()

    def _toggle_todo(self, command: ToggleTodo) -> Outcome:
        todo = self.todos.toggle_done(command.id)
        return self._commit("done" if todo.done else "reopened", todos=True)

    def _set_todo_deadline(self, command: SetTodoDeadline) -> Outcome:
        self.todos.set_deadline(command.id, command.value)
        return self._commit(todos=True)

    def _remove_todo(self, command: RemoveTodo) -> Outcome:
        if not self.todos.remove(command.id):
            return Outcome()
        return self._commit("deleted", todos=True)

    def _set_search(self, command: SetSearch) -> Outcome:
        self.view_state.search = command.query
        return Outcome(rendered=self.render(notes=True))

    def _toggle_week(self, command: ToggleWeek) -> Outcome:
        if self.view_state.searching:
            raise Refused("clear search to collapse weeks")
        if command.key not in {b.key for b in self.view.notes.buckets}:
            return Outcome()
        weeks = self.document.collapsedWeeks
        weeks[command.key] = not weeks.get(command.key, False)
        return self._commit(notes=True)

    def _toggle_todos(self, command: ToggleTodos) -> Outcome:
        self.todos.toggle_collapsed()
        return self._commit(todos=True)

    def _export(self, command: ExportDocument) -> Outcome:
        directory = command.directory or self.config.export_dir
        try:
            path = self.store.export(directory)
        except OSError as exc:
            raise Refused(f"export failed: {exc.strerror or exc}") from exc
        log.info("exported document to %s", path)
        return Outcome(artifact=path)

    def _import(self, command: ImportDocument) -> Outcome:
        if not self.store.import_file(command.path):
            return Outcome()
        log.info("imported document from %s", command.path)
        self.view_state.focus = None
        return Outcome(changed=True, rendered=self.render(notes=True, todos=True))

    def _toggle_theme(self, command: ToggleTheme) -> Outcome:
        self.theme = "light" if self.theme == "dark" else "dark"
        self.store.save_theme(self.theme)
        self.status.show(f"theme: {self.theme}")
        return Outcome()
