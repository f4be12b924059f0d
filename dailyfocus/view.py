from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import List

from .model import Document, Note, Todo
from .notes import filter_notes, group_by_week, sort_notes, week_keys
from .todos import collapse_label, sort_todos

EMPTY_NOTES = "Add a quick reflection to start your streak."
EMPTY_SEARCH = "No notes match your search."
EMPTY_TODOS = "Capture your next action to stay focused."


@dataclass(frozen=True)
class FocusIntent:
    kind: str  # "note" or "todo"
    id: str


@dataclass
class ViewState:
    search: str = ""
    focus: FocusIntent | None = None

    @property
    def searching(self) -> bool:
        return bool(self.search.strip())


@dataclass
class WeekBucket:
    key: str
    start: dt.date
    end: dt.date
    notes: List[Note]
    collapsed: bool
    forced_open: bool = False

    @property
    def label(self) -> str:
        marker = "▸" if self.collapsed else "▾"
        if self.start.month == self.end.month:
            span = f"{self.start.strftime('%b')} {self.start.day} – {self.end.day}"
        else:
            span = f"{self.start.strftime('%b')} {self.start.day} – {self.end.strftime('%b')} {self.end.day}"
        return f"{marker} {span}, {self.end.year} ({len(self.notes)})"


@dataclass
class NotesView:
    buckets: List[WeekBucket] = field(default_factory=list)
    empty_message: str = ""

    def visible_notes(self) -> List[Note]:
        return [n for b in self.buckets if not b.collapsed for n in b.notes]


@dataclass
class TodosView:
    todos: List[Todo] = field(default_factory=list)
    collapsed: bool = False
    label: str = ""
    empty_message: str = ""


def render_notes(document: Document, view_state: ViewState) -> NotesView:
    """Build the notes list from scratch: filter, sort, then bucket by week."""
    searching = view_state.searching
    ordered = sort_notes(filter_notes(document.notes, view_state.search))
    buckets = []
    for group in group_by_week(ordered):
        stored = document.collapsedWeeks.get(group.key, False)
        buckets.append(
            WeekBucket(
                key=group.key,
                start=group.start,
                end=group.end,
                notes=group.notes,
                collapsed=False if searching else stored,
                forced_open=searching and stored,
            )
        )
    empty = ""
    if not document.notes:
        empty = EMPTY_NOTES
    elif not buckets:
        empty = EMPTY_SEARCH
    return NotesView(buckets=buckets, empty_message=empty)


def render_todos(document: Document) -> TodosView:
    return TodosView(
        todos=sort_todos(document.todos),
        collapsed=document.todosCollapsed,
        label=collapse_label(document),
        empty_message="" if document.todos else EMPTY_TODOS,
    )


def prune_collapsed_weeks(document: Document) -> bool:
    """Drop collapse flags for weeks that no longer hold any note."""
    live = week_keys(document.notes)
    stale = [key for key in document.collapsedWeeks if key not in live]
    for key in stale:
        del document.collapsedWeeks[key]
    return bool(stale)


class ViewSync:
    """Keeps the last rendered lists; every sync replaces them wholesale."""

    def __init__(self, document: Document, view_state: ViewState) -> None:
        self.document = document
        self.view_state = view_state
        self.notes = NotesView()
        self.todos = TodosView()

    def sync(self, notes: bool = True, todos: bool = True) -> bool:
        """Re-render the requested lists. Returns True if stale collapse flags were pruned."""
        pruned = False
        if notes:
            self.notes = render_notes(self.document, self.view_state)
            pruned = prune_collapsed_weeks(self.document)
        if todos:
            self.todos = render_todos(self.document)
        return pruned
