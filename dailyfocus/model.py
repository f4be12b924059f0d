from __future__ import annotations

import datetime as dt
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

Clock = Callable[[], dt.datetime]

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
# last Sunday before date.max; later dates have no complete Monday..Sunday week
LAST_DATE = dt.date(9999, 12, 26)


def create_id() -> str:
    return str(uuid.uuid4())


def format_date(moment: dt.date | dt.datetime) -> str:
    if isinstance(moment, dt.datetime):
        moment = moment.date()
    return moment.isoformat()


def iso_timestamp(moment: dt.datetime) -> str:
    """UTC timestamp with millisecond precision, e.g. 2025-01-06T09:15:02.123Z."""
    utc = moment.astimezone(dt.timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def parse_date(value: object) -> dt.date | None:
    if not isinstance(value, str) or not DATE_RE.match(value):
        return None
    try:
        parsed = dt.date.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed <= LAST_DATE else None


def is_valid_date(value: object) -> bool:
    return parse_date(value) is not None


def human_date(value: str) -> str:
    parsed = parse_date(value)
    if parsed is None:
        return ""
    return f"{parsed.strftime('%a, %b')} {parsed.day}"


@dataclass
class Note:
    id: str
    date: str
    content: str = ""
    createdAt: str = ""
    photo: str | None = None
    photoName: str | None = None
    link: str = ""

    @staticmethod
    def from_dict(d: Dict[str, Any], clock: Clock) -> "Note":
        """Build a note from stored data, filling whatever is missing or mistyped."""
        now = clock()
        note_id = d.get("id")
        created = d.get("createdAt")
        photo = d.get("photo")
        photo_name = d.get("photoName")
        link = d.get("link")
        return Note(
            id=note_id if isinstance(note_id, str) and note_id else create_id(),
            date=d["date"] if is_valid_date(d.get("date")) else format_date(now),
            content=d["content"] if isinstance(d.get("content"), str) else "",
            createdAt=created if isinstance(created, str) and created else iso_timestamp(now),
            photo=photo if isinstance(photo, str) and photo else None,
            photoName=photo_name if isinstance(photo_name, str) and photo_name else None,
            link=link if isinstance(link, str) else "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "content": self.content,
            "createdAt": self.createdAt,
            "photo": self.photo,
            "photoName": self.photoName,
            "link": self.link,
        }

    def haystack(self) -> str:
        return " ".join((self.content, self.date, self.link)).lower()


@dataclass
class Todo:
    id: str
    text: str = ""
    createdAt: str = ""
    deadline: str | None = None
    done: bool = False

    @staticmethod
    def from_dict(d: Dict[str, Any], clock: Clock) -> "Todo":
        todo_id = d.get("id")
        created = d.get("createdAt")
        deadline = d.get("deadline")
        return Todo(
            id=todo_id if isinstance(todo_id, str) and todo_id else create_id(),
            text=d["text"] if isinstance(d.get("text"), str) else "",
            createdAt=created if is_valid_date(created) else format_date(clock()),
            deadline=deadline if is_valid_date(deadline) else None,
            done=d.get("done") is True,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "createdAt": self.createdAt,
            "deadline": self.deadline,
            "done": self.done,
        }


@dataclass
class Document:
    notes: List[Note] = field(default_factory=list)
    todos: List[Todo] = field(default_factory=list)
    lastOpened: str = field(default_factory=lambda: format_date(dt.date.today()))
    todosCollapsed: bool = False
    collapsedWeeks: Dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "notes": [n.to_dict() for n in self.notes],
            "todos": [t.to_dict() for t in self.todos],
            "lastOpened": self.lastOpened,
            "todosCollapsed": self.todosCollapsed,
            "collapsedWeeks": dict(self.collapsedWeeks),
        }

    def find_note(self, note_id: str) -> Note | None:
        for note in self.notes:
            if note.id == note_id:
                return note
        return None

    def find_todo(self, todo_id: str) -> Todo | None:
        for todo in self.todos:
            if todo.id == todo_id:
                return todo
        return None


def normalize_notes(raw: object, clock: Clock) -> List[Note]:
    if not isinstance(raw, list):
        return []
    return [Note.from_dict(item, clock) for item in raw if isinstance(item, dict)]


def normalize_todos(raw: object, clock: Clock) -> List[Todo]:
    if not isinstance(raw, list):
        return []
    return [Todo.from_dict(item, clock) for item in raw if isinstance(item, dict)]


def normalize_collapsed_weeks(raw: object) -> Dict[str, bool]:
    if not isinstance(raw, dict):
        return {}
    return {str(key): value is True for key, value in raw.items()}


class Refused(Exception):
    """A user action that cannot be applied; the message is shown as the status."""
