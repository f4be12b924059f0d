from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from dailyfocus.commands import AddNote, AddTodo, ImportDocument, UpdateTodo
from dailyfocus.storage import DATA_KEY

from support import make_app, note_payload, stored_document


class TestImport(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        self.app = make_app()
        self.app.dispatch(AddNote())
        todo_id = self.app.dispatch(AddTodo()).focus.id
        self.app.dispatch(UpdateTodo(todo_id, "text", "keep me"))

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def write(self, name: str, text: str) -> Path:
        path = self.dir / name
        path.write_text(text, encoding="utf-8")
        return path

    def test_missing_todos_keeps_current_todos(self) -> None:
        todos_before = [t.to_dict() for t in self.app.document.todos]
        payload = {"notes": [note_payload("imported", "2025-01-02", "from backup")]}
        outcome = self.app.dispatch(ImportDocument(self.write("backup.json", json.dumps(payload))))

        self.assertTrue(outcome.changed)
        self.assertEqual(outcome.rendered, frozenset({"notes", "todos"}))
        self.assertEqual([n.id for n in self.app.document.notes], ["imported"])
        self.assertEqual([t.to_dict() for t in self.app.document.todos], todos_before)
        self.assertEqual(stored_document(self.app), self.app.document.to_dict())
        self.assertEqual([n.id for n in self.app.view.notes.visible_notes()], ["imported"])
        self.assertEqual(self.app.status.current(), "imported data")

    def test_unparseable_bytes_leave_document_untouched(self) -> None:
        stored_before = self.app.store.storage.get(DATA_KEY)
        doc_before = self.app.document.to_dict()

        outcome = self.app.dispatch(ImportDocument(self.write("broken.json", '{"notes": [')))

        self.assertFalse(outcome.changed)
        self.assertEqual(self.app.document.to_dict(), doc_before)
        self.assertEqual(self.app.store.storage.get(DATA_KEY), stored_before)
        self.assertEqual(self.app.status.current(), "import failed: not valid JSON")

    def test_non_object_root_is_rejected(self) -> None:
        doc_before = self.app.document.to_dict()
        self.app.dispatch(ImportDocument(self.write("list.json", "[1, 2]")))
        self.assertEqual(self.app.document.to_dict(), doc_before)
        self.assertEqual(self.app.status.current(), "import failed: expected a JSON object")

    def test_unreadable_file_is_reported(self) -> None:
        outcome = self.app.dispatch(ImportDocument(self.dir / "nope.json"))
        self.assertFalse(outcome.changed)
        self.assertEqual(self.app.status.current(), "import failed: could not read nope.json")

    def test_wrong_shaped_fields_fall_back_and_notes_are_normalized(self) -> None:
        payload = {
            "notes": [{"content": None, "link": 7}],
            "todos": "not a list",
            "todosCollapsed": True,
            "collapsedWeeks": "nope",
        }
        todos_before = [t.to_dict() for t in self.app.document.todos]
        self.app.dispatch(ImportDocument(self.write("odd.json", json.dumps(payload))))

        note = self.app.document.notes[0]
        self.assertEqual((note.date, note.content, note.link), ("2025-01-08", "", ""))
        self.assertTrue(note.id)
        self.assertEqual([t.to_dict() for t in self.app.document.todos], todos_before)
        self.assertTrue(self.app.document.todosCollapsed)
        self.assertEqual(self.app.document.collapsedWeeks, {})

    def test_export_then_import_restores_same_document(self) -> None:
        exported = self.app.store.export(self.dir)
        snapshot = self.app.document.to_dict()

        other = make_app()
        other.dispatch(ImportDocument(exported))
        restored = other.document.to_dict()
        for key in ("notes", "todos", "todosCollapsed", "collapsedWeeks"):
            self.assertEqual(restored[key], snapshot[key])


if __name__ == "__main__":
    unittest.main()
