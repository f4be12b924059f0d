from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from dailyfocus.commands import (
    AddNote,
    AddTodo,
    RemoveNote,
    RemoveTodo,
    SetTodoDeadline,
    ToggleTodo,
    ToggleTodos,
    ToggleWeek,
    UpdateNote,
    UpdateTodo,
)
from dailyfocus.storage import DATA_KEY, FileStorage, MemoryStorage

from support import FakeClock, make_app, stored_document


class TestStoreRoundtrip(unittest.TestCase):
    def test_persisted_bytes_match_document_after_every_command(self) -> None:
        clock = FakeClock()
        app = make_app(clock=clock)

        def check() -> None:
            self.assertEqual(stored_document(app), app.document.to_dict())

        first = app.dispatch(AddNote()).focus.id
        check()
        clock.advance(seconds=5)
        second = app.dispatch(AddNote()).focus.id
        check()
        app.dispatch(UpdateNote(first, "content", "morning pages"))
        check()
        app.dispatch(UpdateNote(second, "link", "example.com/a"))
        check()
        app.dispatch(UpdateNote(second, "date", "2025-01-02"))
        check()
        todo = app.dispatch(AddTodo()).focus.id
        check()
        app.dispatch(UpdateTodo(todo, "text", "file taxes"))
        check()
        app.dispatch(SetTodoDeadline(todo, "2025-04-15"))
        check()
        app.dispatch(ToggleTodo(todo))
        check()
        app.dispatch(ToggleTodos())
        check()
        app.dispatch(ToggleWeek("2024-12-30_2025-01-05"))
        check()
        app.dispatch(RemoveNote(first))
        check()
        app.dispatch(RemoveTodo(todo))
        check()

        self.assertEqual([n.id for n in app.document.notes], [second])
        self.assertEqual(app.document.collapsedWeeks, {"2024-12-30_2025-01-05": True})

    def test_reload_reproduces_document(self) -> None:
        storage = MemoryStorage()
        app = make_app(storage)
        note_id = app.dispatch(AddNote()).focus.id
        app.dispatch(UpdateNote(note_id, "content", "café ☕"))
        app.dispatch(AddTodo())

        again = make_app(storage)
        self.assertEqual(again.document.to_dict(), app.document.to_dict())

    def test_missing_storage_keeps_defaults(self) -> None:
        app = make_app()
        doc = app.document
        self.assertEqual(doc.notes, [])
        self.assertEqual(doc.todos, [])
        self.assertFalse(doc.todosCollapsed)
        self.assertEqual(doc.collapsedWeeks, {})
        self.assertEqual(doc.lastOpened, "2025-01-08")

    def test_corrupt_storage_is_logged_and_ignored(self) -> None:
        storage = MemoryStorage({DATA_KEY: "{not json"})
        with self.assertLogs("dailyfocus.store", level="WARNING") as logs:
            app = make_app(storage)
        self.assertIn("failed to parse saved data", logs.output[0])
        self.assertEqual(app.document.notes, [])
        self.assertEqual(app.status.current(), "")

    def test_load_normalizes_notes_and_todos(self) -> None:
        raw = {
            "notes": [
                {"content": 42},
                {"id": "n2", "date": "2025-13-40", "content": "kept", "createdAt": "2025-01-01T00:00:00.000Z"},
                "garbage",
            ],
            "todos": [{"text": "x", "deadline": "tomorrow", "done": "false"}],
            "todosCollapsed": "yes",
            "collapsedWeeks": [],
            "lastOpened": "2024-12-31",
        }
        app = make_app(MemoryStorage({DATA_KEY: json.dumps(raw)}))
        doc = app.document

        self.assertEqual(len(doc.notes), 2)
        first, second = doc.notes
        self.assertTrue(first.id)
        self.assertEqual(first.date, "2025-01-08")
        self.assertEqual(first.content, "")
        self.assertEqual(first.createdAt, "2025-01-08T09:00:00.000Z")
        self.assertEqual(second.id, "n2")
        self.assertEqual(second.date, "2025-01-08")
        self.assertEqual(second.content, "kept")

        self.assertEqual(len(doc.todos), 1)
        self.assertIsNone(doc.todos[0].deadline)
        self.assertIs(doc.todos[0].done, False)
        self.assertFalse(doc.todosCollapsed)
        self.assertEqual(doc.collapsedWeeks, {})
        self.assertEqual(doc.lastOpened, "2024-12-31")

    def test_only_literal_true_counts_as_true(self) -> None:
        raw = {
            "notes": [{"id": "n", "date": "2025-01-08", "createdAt": "2025-01-08T00:00:00.000Z"}],
            "todos": [
                {"id": "a", "createdAt": "2025-01-01", "done": "false"},
                {"id": "b", "createdAt": "2025-01-01", "done": True},
            ],
            "collapsedWeeks": {"2025-01-06_2025-01-12": "false"},
        }
        app = make_app(MemoryStorage({DATA_KEY: json.dumps(raw)}))
        self.assertEqual([t.done for t in app.document.todos], [False, True])
        self.assertEqual(app.document.collapsedWeeks, {"2025-01-06_2025-01-12": False})
        self.assertFalse(app.view.notes.buckets[0].collapsed)

    def test_export_is_pretty_json_named_by_date(self) -> None:
        app = make_app()
        note_id = app.dispatch(AddNote()).focus.id
        app.dispatch(UpdateNote(note_id, "content", "ünïcode"))
        with tempfile.TemporaryDirectory() as tmp:
            path = app.store.export(Path(tmp))
            self.assertEqual(path.name, "daily_summary_2025-01-08.json")
            text = path.read_text(encoding="utf-8")
        self.assertEqual(text, json.dumps(app.document.to_dict(), ensure_ascii=False, indent=2))
        self.assertIn("ünïcode", text)
        self.assertEqual(app.status.current(), "exported daily_summary_2025-01-08.json")

    def test_file_storage_overwrites_whole_document(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            storage = FileStorage(Path(tmp) / "data")
            self.assertIsNone(storage.get(DATA_KEY))
            storage.set(DATA_KEY, '{"a": 1}')
            storage.set(DATA_KEY, "{}")
            self.assertEqual(storage.get(DATA_KEY), "{}")
            self.assertEqual(sorted(p.name for p in (Path(tmp) / "data").iterdir()), [DATA_KEY])
            storage.remove(DATA_KEY)
            self.assertIsNone(storage.get(DATA_KEY))


if __name__ == "__main__":
    unittest.main()
