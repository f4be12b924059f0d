from __future__ import annotations

import curses
import textwrap
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

from .commands import (
    AddNote,
    AddTodo,
    App,
    ExportDocument,
    ImportDocument,
    RemoveNote,
    RemoveNotePhoto,
    RemoveTodo,
    SetNotePhoto,
    SetSearch,
    SetTodoDeadline,
    ToggleTheme,
    ToggleTodos,
    ToggleTodo,
    ToggleWeek,
    UpdateNote,
    UpdateTodo,
)
from .config import Config, format_key
from .model import Note, Todo, format_date, human_date
from .notes import link_preview

MIN_WIDTH = 72
MIN_HEIGHT = 12
IDLE_MS = 250
ESC_DELAY_MS = 25
NEWLINE_MARK = "↵"
PANES = ("notes", "todos")


@dataclass
class Row:
    kind: str  # "week", "note", "header", "todo" or "empty"
    id: str | None = None
    label: str = ""
    item: Note | Todo | None = None


@dataclass
class UiState:
    pane: str = "notes"
    cursor: Dict[str, int] = field(default_factory=lambda: {"notes": 0, "todos": 0})
    offset: Dict[str, int] = field(default_factory=lambda: {"notes": 0, "todos": 0})
    selected: Dict[str, tuple] = field(default_factory=dict)
    pending_delete: bool = False


def note_rows(app: App) -> List[Row]:
    view = app.view.notes
    rows: List[Row] = []
    for bucket in view.buckets:
        rows.append(Row("week", bucket.key, bucket.label))
        if bucket.collapsed:
            continue
        rows.extend(Row("note", note.id, item=note) for note in bucket.notes)
    if not rows and view.empty_message:
        rows.append(Row("empty", label=view.empty_message))
    return rows


def todo_rows(app: App) -> List[Row]:
    view = app.view.todos
    rows = [Row("header", label=view.label)]
    if view.collapsed:
        return rows
    rows.extend(Row("todo", todo.id, item=todo) for todo in view.todos)
    if not view.todos and view.empty_message:
        rows.append(Row("empty", label=view.empty_message))
    return rows


def rows_for(app: App, pane: str) -> List[Row]:
    return note_rows(app) if pane == "notes" else todo_rows(app)


def current_row(app: App, ui: UiState) -> Row | None:
    rows = rows_for(app, ui.pane)
    if not rows:
        return None
    return rows[resolve_cursor(ui, ui.pane, rows)]


def resolve_cursor(ui: UiState, pane: str, rows: List[Row]) -> int:
    """Keep the cursor on the same entity across re-renders; clamp otherwise."""
    wanted = ui.selected.get(pane)
    idx = ui.cursor[pane]
    if wanted is not None:
        for i, row in enumerate(rows):
            if (row.kind, row.id) == wanted:
                idx = i
                break
    idx = max(0, min(idx, len(rows) - 1)) if rows else 0
    ui.cursor[pane] = idx
    if rows:
        ui.selected[pane] = (rows[idx].kind, rows[idx].id)
    return idx


def move_cursor(app: App, ui: UiState, delta: int) -> None:
    rows = rows_for(app, ui.pane)
    idx = resolve_cursor(ui, ui.pane, rows)
    ui.cursor[ui.pane] = max(0, min(idx + delta, len(rows) - 1))
    ui.selected.pop(ui.pane, None)
    resolve_cursor(ui, ui.pane, rows)


def apply_focus(app: App, ui: UiState) -> None:
    """Move the cursor onto the entity a command asked to focus."""
    intent = app.view_state.focus
    if intent is None:
        return
    app.view_state.focus = None
    pane = "notes" if intent.kind == "note" else "todos"
    ui.pane = pane
    ui.selected[pane] = (intent.kind, intent.id)
    resolve_cursor(ui, pane, rows_for(app, pane))


def describe(row: Row) -> str:
    if row.kind == "note" and isinstance(row.item, Note):
        note = row.item
        first = note.content.strip().splitlines()[0] if note.content.strip() else "(empty)"
        text = f"{human_date(note.date):<12} {first}"
        preview = link_preview(note.link)
        if preview:
            text += f"  -> {preview.label}"
        if note.photoName:
            text += f"  [photo: {note.photoName}]"
        return text
    if row.kind == "todo" and isinstance(row.item, Todo):
        todo = row.item
        mark = "x" if todo.done else " "
        text = f"[{mark}] {todo.text or '(empty)'}"
        if todo.deadline:
            text += f"  due {human_date(todo.deadline)}"
        return text
    return row.label


@dataclass
class KeyState:
    key: object = None
    time: float = 0.0


def read_key(
    win: curses.window,
    kstate: KeyState,
    *,
    debounce: float = 0.005,
    allow_repeat_keys=(),
    idle_ms: int = -1,
) -> object:
    """Return a single key, folding ESC+key into "M-<key>" and ignoring fast identical repeats."""
    while True:
        key = win.get_wch()
        if key == "\x1b":
            win.timeout(ESC_DELAY_MS)
            try:
                follow = win.get_wch()
            except curses.error:
                follow = None
            finally:
                win.timeout(idle_ms)
            if isinstance(follow, str):
                key = "M-" + ("\r" if follow in ("\r", "\n") else follow)
        now = time.monotonic()
        if (
            isinstance(key, str)
            and key == kstate.key
            and key not in allow_repeat_keys
            and (now - kstate.time) < debounce
        ):
            continue
        kstate.key = key
        kstate.time = now
        return key


def prompt_text(stdscr: curses.window, label: str, initial: str = "") -> str | None:
    """Inline prompt on the bottom row. Enter accepts, Esc cancels (returns None)."""
    curses.curs_set(1)
    height, width = stdscr.getmaxyx()
    stdscr.move(height - 1, 0)
    stdscr.clrtoeol()

    prefix = f"{label}: "
    win = curses.newwin(1, width, height - 1, 0)
    win.keypad(True)

    text = list(initial)
    pos = len(text)
    kstate = KeyState()
    cancelled = False

    while True:
        win.erase()
        win.addnstr(0, 0, prefix, width - 1)
        field_start = len(prefix)
        visible = max(0, width - field_start - 1)
        offset = max(0, pos - visible)
        segment = "".join(text)[offset : offset + visible]
        win.addnstr(0, field_start, segment, width - field_start - 1)
        cursor_x = min(field_start + pos - offset, width - 1)
        win.move(0, cursor_x)

        try:
            key = read_key(win, kstate)
        except curses.error:
            continue

        if key in ("\n", "\r", curses.KEY_ENTER):
            break
        if key in (curses.KEY_BACKSPACE, "\b", "\x7f"):
            if pos > 0:
                text.pop(pos - 1)
                pos -= 1
            continue
        if key == curses.KEY_DC:
            if pos < len(text):
                text.pop(pos)
            continue
        if key == curses.KEY_LEFT:
            pos = max(0, pos - 1)
            continue
        if key == curses.KEY_RIGHT:
            pos = min(len(text), pos + 1)
            continue
        if key == curses.KEY_HOME:
            pos = 0
            continue
        if key == curses.KEY_END:
            pos = len(text)
            continue
        if key == "\x1b":
            cancelled = True
            break
        if isinstance(key, str) and len(key) == 1 and key.isprintable():
            text.insert(pos, key)
            pos += 1

    curses.curs_set(0)
    if cancelled:
        return None
    return "".join(text).strip()


def apply_theme(stdscr: curses.window, config: Config, theme: str) -> None:
    if theme == "light":
        fg, bg = curses.COLOR_BLACK, curses.COLOR_WHITE
        accent = curses.COLOR_BLUE
    else:
        fg, bg = config.default_fg, -1
        accent = config.accent_fg
    curses.init_pair(1, fg, bg)  # default text
    curses.init_pair(2, accent, bg)  # headers, focus
    curses.init_pair(3, curses.COLOR_RED, bg)  # overdue
    stdscr.bkgd(" ", curses.color_pair(1))


def row_attr(row: Row, today: str, selected: bool, active_pane: bool) -> int:
    attr = curses.color_pair(1)
    if row.kind in ("week", "header"):
        attr = curses.color_pair(2) | curses.A_BOLD
    elif row.kind == "empty":
        attr |= curses.A_DIM
    elif isinstance(row.item, Todo):
        if row.item.done:
            attr |= curses.A_DIM
        elif row.item.deadline and row.item.deadline < today:
            attr = curses.color_pair(3)
    elif isinstance(row.item, Note) and row.item.date == today:
        attr = curses.color_pair(2)
    if selected:
        attr |= curses.A_STANDOUT if active_pane else curses.A_UNDERLINE
    return attr


def draw_pane(
    stdscr: curses.window,
    app: App,
    ui: UiState,
    pane: str,
    x: int,
    width: int,
    top: int,
    bottom: int,
    today: str,
) -> None:
    rows = rows_for(app, pane)
    title = "Notes" if pane == "notes" else "Todos"
    if pane == "notes" and app.view_state.searching:
        title += f"  /{app.view_state.search}"
    title_attr = curses.color_pair(2) | curses.A_BOLD
    if ui.pane != pane:
        title_attr |= curses.A_DIM
    stdscr.addnstr(top, x, title.ljust(width), width, title_attr)
    first_y = top + 1
    capacity = max(1, bottom - first_y)
    idx = resolve_cursor(ui, pane, rows)
    offset = ui.offset[pane]
    if idx < offset:
        offset = idx
    elif idx >= offset + capacity:
        offset = idx - capacity + 1
    ui.offset[pane] = offset
    for i, row in enumerate(rows[offset : offset + capacity]):
        selected = (offset + i) == idx and row.kind != "empty"
        indent = "  " if row.kind in ("note", "todo") else ""
        line = f"{indent}{describe(row)}"[:width].ljust(width)
        stdscr.addnstr(first_y + i, x, line, width, row_attr(row, today, selected, ui.pane == pane))


def draw(stdscr: curses.window, app: App, ui: UiState, status: str = "", show_help: bool = True) -> None:
    stdscr.erase()
    height, width = stdscr.getmaxyx()
    if width < MIN_WIDTH or height < MIN_HEIGHT:
        msg = f"dailyfocus needs at least {MIN_WIDTH}x{MIN_HEIGHT}. current: {width}x{height}"
        hint = "resize your terminal to continue"
        y = height // 2 - 1
        stdscr.addnstr(max(0, y), 1, msg[: max(0, width - 2)], max(0, width - 2), curses.A_BOLD)
        stdscr.addnstr(max(0, y + 1), 1, hint[: max(0, width - 2)], max(0, width - 2))
        stdscr.refresh()
        return

    today = format_date(app.store.clock())
    header = f"DailyFocus  {human_date(today)}"
    theme_text = f"{app.theme} theme"
    stdscr.addnstr(0, 1, header, width - 2, curses.color_pair(2) | curses.A_BOLD)
    stdscr.addnstr(0, max(1, width - len(theme_text) - 2), theme_text, len(theme_text), curses.A_DIM)
    try:
        stdscr.hline(1, 0, curses.ACS_HLINE | curses.A_DIM, width)
    except curses.error:
        pass

    status_y = height - 2
    split = max(20, width * 3 // 5)
    for y in range(2, status_y):
        try:
            stdscr.addch(y, split, curses.ACS_VLINE | curses.A_DIM)
        except curses.error:
            continue
    draw_pane(stdscr, app, ui, "notes", 1, split - 2, 2, status_y, today)
    draw_pane(stdscr, app, ui, "todos", split + 2, width - split - 3, 2, status_y, today)

    base_help = "q quit  a/A note/todo  i edit  L link  D date  x done  dd delete  p photo  / search  E/I export/import  ? keys"
    if not app.config.show_statusbar and not status:
        stdscr.refresh()
        return
    status_line = "" if not show_help and not status else (status or base_help)
    try:
        stdscr.hline(status_y, 0, curses.ACS_HLINE | curses.A_DIM, width)
    except curses.error:
        pass
    stdscr.move(height - 1, 0)
    stdscr.clrtoeol()
    stdscr.addnstr(height - 1, 1, status_line, max(0, width - 2), curses.A_DIM if not status else curses.A_BOLD)
    stdscr.refresh()


def wait_for_any_key(win: curses.window) -> None:
    kstate = KeyState()
    try:
        read_key(win, kstate)
    except curses.error:
        pass


def compact_modal_geometry(stdscr: curses.window) -> tuple[int, int, int, int]:
    height, width = stdscr.getmaxyx()
    win_h = min(height - 4, max(8, height // 2))
    win_w = min(width - 6, max(50, int(width * 0.7)))
    start_y = max(1, (height - win_h) // 2)
    start_x = max(2, (width - win_w) // 2)
    return win_h, win_w, start_y, start_x


def show_lines(stdscr: curses.window, title: str, lines: List[str], hint: str = "") -> None:
    win_h, win_w, start_y, start_x = compact_modal_geometry(stdscr)
    win = curses.newwin(win_h, win_w, start_y, start_x)
    win.erase()
    win.border()
    caption = f" {title} "
    win.addnstr(0, max(1, (win_w - len(caption)) // 2), caption, win_w - 2, curses.A_BOLD)
    row = 1
    wrap_width = max(20, win_w - 6)
    for line in lines:
        segments = textwrap.wrap(line, width=wrap_width) or [""]
        for seg in segments:
            if row >= win_h - 2:
                break
            win.addnstr(row, 3, seg, win_w - 6)
            row += 1
    if hint:
        win.addnstr(win_h - 2, max(2, (win_w - len(hint)) // 2), hint, win_w - 4, curses.A_DIM)
    win.refresh()
    wait_for_any_key(win)


def show_keybinds(stdscr: curses.window, config: Config) -> None:
    friendly_names = {
        "quit": "quit",
        "help": "this help",
        "switch_pane": "switch pane",
        "down": "next row",
        "up": "prev row",
        "add_note": "add note",
        "add_todo": "add todo",
        "edit": "edit text",
        "edit_link": "edit note link",
        "edit_date": "edit date / deadline",
        "toggle_done": "toggle done",
        "delete": "delete (dd)",
        "attach_photo": "attach photo",
        "remove_photo": "remove photo",
        "toggle_group": "collapse / details",
        "toggle_todos": "collapse todos",
        "search": "search notes",
        "export": "export",
        "import": "import",
        "theme": "toggle theme",
    }
    lines = []
    for action, keys in sorted(config.keybinds.items()):
        label = friendly_names.get(action, action).ljust(22)
        lines.append(f"{label} {', '.join(format_key(k) for k in sorted(keys, key=str))}")
    show_lines(stdscr, "keybinds", lines, "press any key to close")


def show_config_errors(stdscr: curses.window, errors: list[str]) -> None:
    if not errors:
        return
    show_lines(stdscr, "Config errors (defaults applied)", [f"- {err}" for err in errors], "press any key to continue")


def show_details(stdscr: curses.window, row: Row) -> None:
    if isinstance(row.item, Note):
        note = row.item
        lines = [f"Date: {note.date} ({human_date(note.date)})", ""]
        lines.extend(note.content.splitlines() or ["(empty)"])
        preview = link_preview(note.link)
        if note.link:
            lines += ["", f"Link: {preview.url if preview else note.link}"]
        if note.photoName:
            lines += ["", f"Photo: {note.photoName}"]
        show_lines(stdscr, "Note", lines, "press any key to close")
    elif isinstance(row.item, Todo):
        todo = row.item
        lines = [
            f"Created {human_date(todo.createdAt)}",
            f"Deadline: {todo.deadline or 'none'}",
            f"Status: {'done' if todo.done else 'open'}",
            "",
            todo.text or "(empty)",
        ]
        show_lines(stdscr, "Todo", lines, "press any key to close")


def ask(stdscr: curses.window, app: App, ui: UiState, label: str, initial: str = "") -> str | None:
    draw(stdscr, app, ui, show_help=False)
    return prompt_text(stdscr, label, initial)


def edit_current(stdscr: curses.window, app: App, ui: UiState, row: Row) -> None:
    if isinstance(row.item, Note):
        initial = row.item.content.replace("\n", NEWLINE_MARK)
        text = ask(stdscr, app, ui, "note", initial)
        if text is not None and text != initial:
            app.dispatch(UpdateNote(row.item.id, "content", text.replace(NEWLINE_MARK, "\n")))
    elif isinstance(row.item, Todo):
        text = ask(stdscr, app, ui, "todo", row.item.text)
        if text is not None and text != row.item.text:
            app.dispatch(UpdateTodo(row.item.id, "text", text))


def edit_date(stdscr: curses.window, app: App, ui: UiState, row: Row) -> None:
    if isinstance(row.item, Note):
        text = ask(stdscr, app, ui, "date (YYYY-MM-DD)", row.item.date)
        if text is not None and text != row.item.date:
            app.dispatch(UpdateNote(row.item.id, "date", text))
    elif isinstance(row.item, Todo):
        text = ask(stdscr, app, ui, "deadline (YYYY-MM-DD, empty clears)", row.item.deadline or "")
        if text is not None and (text or None) != row.item.deadline:
            app.dispatch(SetTodoDeadline(row.item.id, text or None))


def main(stdscr: curses.window, app: App, config_errors: list[str] | None = None) -> None:
    config = app.config
    curses.curs_set(0)
    curses.nonl()
    curses.start_color()
    curses.use_default_colors()
    apply_theme(stdscr, config, app.theme)
    stdscr.keypad(True)
    stdscr.timeout(IDLE_MS)

    if config_errors:
        show_config_errors(stdscr, config_errors)

    ui = UiState()
    kstate = KeyState()

    def is_action(key: object, action: str) -> bool:
        return key in config.keybinds.get(action, set())

    while True:
        apply_focus(app, ui)
        status = app.status.current()
        if ui.pending_delete:
            status = "pending dd"
        draw(stdscr, app, ui, status)
        try:
            key = read_key(stdscr, kstate, allow_repeat_keys=config.keybinds.get("delete", set()), idle_ms=IDLE_MS)
        except curses.error:
            continue
        if key == curses.KEY_RESIZE:
            continue

        row = current_row(app, ui)

        if ui.pending_delete:
            ui.pending_delete = False
            if is_action(key, "delete") and row is not None:
                if row.kind == "note":
                    app.dispatch(RemoveNote(row.id))
                elif row.kind == "todo":
                    app.dispatch(RemoveTodo(row.id))
            continue

        if is_action(key, "quit"):
            break
        if is_action(key, "help"):
            show_keybinds(stdscr, config)
        elif is_action(key, "switch_pane"):
            ui.pane = PANES[(PANES.index(ui.pane) + 1) % len(PANES)]
        elif is_action(key, "down"):
            move_cursor(app, ui, 1)
        elif is_action(key, "up"):
            move_cursor(app, ui, -1)
        elif is_action(key, "add_note"):
            app.dispatch(AddNote())
        elif is_action(key, "add_todo"):
            app.dispatch(AddTodo())
        elif row is None:
            continue
        elif is_action(key, "edit"):
            edit_current(stdscr, app, ui, row)
        elif is_action(key, "edit_link"):
            if isinstance(row.item, Note):
                text = ask(stdscr, app, ui, "link", row.item.link)
                if text is not None and text != row.item.link:
                    app.dispatch(UpdateNote(row.item.id, "link", text))
        elif is_action(key, "edit_date"):
            edit_date(stdscr, app, ui, row)
        elif is_action(key, "toggle_done"):
            if row.kind == "todo":
                app.dispatch(ToggleTodo(row.id))
        elif is_action(key, "delete"):
            if row.kind in ("note", "todo"):
                ui.pending_delete = True
        elif is_action(key, "attach_photo"):
            if row.kind == "note":
                text = ask(stdscr, app, ui, "photo file")
                if text:
                    app.dispatch(SetNotePhoto(row.id, Path(text).expanduser()))
        elif is_action(key, "remove_photo"):
            if row.kind == "note":
                app.dispatch(RemoveNotePhoto(row.id))
        elif is_action(key, "toggle_group"):
            if row.kind == "week":
                app.dispatch(ToggleWeek(row.id))
            elif row.kind == "header":
                app.dispatch(ToggleTodos())
            else:
                show_details(stdscr, row)
        elif is_action(key, "toggle_todos"):
            app.dispatch(ToggleTodos())
        elif is_action(key, "search"):
            text = ask(stdscr, app, ui, "search /", app.view_state.search)
            if text is not None:
                app.dispatch(SetSearch(text))
                ui.pane = "notes"
        elif is_action(key, "export"):
            app.dispatch(ExportDocument())
        elif is_action(key, "import"):
            text = ask(stdscr, app, ui, "import file")
            if text:
                app.dispatch(ImportDocument(Path(text).expanduser()))
        elif is_action(key, "theme"):
            app.dispatch(ToggleTheme())
            apply_theme(stdscr, config, app.theme)


def run(app: App, config_errors: list[str] | None = None) -> None:
    curses.wrapper(main, app, config_errors)
