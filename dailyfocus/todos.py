from __future__ import annotations

from typing import Iterable, List

from .model import Clock, Document, Refused, Todo, create_id, format_date, is_valid_date


def sort_key(todo: Todo) -> tuple:
    if todo.done:
        return (1, 0, "", todo.createdAt)
    if todo.deadline:
        return (0, 0, todo.deadline, todo.createdAt)
    return (0, 1, "", todo.createdAt)


def sort_todos(todos: Iterable[Todo]) -> List[Todo]:
    """Open before done; open ones with a deadline first, earliest first; then oldest created."""
    return sorted(todos, key=sort_key)


def open_count(todos: Iterable[Todo]) -> int:
    return sum(1 for t in todos if not t.done)


def collapse_label(document: Document) -> str:
    marker = "▸" if document.todosCollapsed else "▾"
    return f"{marker} Todos ({open_count(document.todos)} open)"


class TodoManager:
    def __init__(self, document: Document, clock: Clock) -> None:
        self.document = document
        self.clock = clock

    def get(self, todo_id: str) -> Todo:
        todo = self.document.find_todo(todo_id)
        if todo is None:
            raise Refused("todo no longer exists")
        return todo

    def add(self) -> Todo:
        todo = Todo(id=create_id(), text="", createdAt=format_date(self.clock()), deadline=None, done=False)
        self.document.todos.append(todo)
        return todo

    def update(self, todo_id: str, field: str, value: str) -> None:
        if field != "text":
            raise Refused(f"unknown todo field: {field}")
        self.get(todo_id).text = value

    def toggle_done(self, todo_id: str) -> Todo:
        todo = self.get(todo_id)
        todo.done = not todo.done
        return todo

    def set_deadline(self, todo_id: str, value: str | None) -> Todo:
        todo = self.get(todo_id)
        if value and not is_valid_date(value):
            raise Refused("invalid date")
        todo.deadline = value or None
        return todo

    def remove(self, todo_id: str) -> bool:
        before = len(self.document.todos)
        self.document.todos = [t for t in self.document.todos if t.id != todo_id]
        return len(self.document.todos) != before

    def toggle_collapsed(self) -> bool:
        self.document.todosCollapsed = not self.document.todosCollapsed
        return self.document.todosCollapsed
