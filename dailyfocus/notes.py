from __future__ import annotations

import base64
import datetime as dt
import mimetypes
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List
from urllib.parse import urlsplit

from .model import Clock, Document, Note, Refused, create_id, format_date, is_valid_date, iso_timestamp, parse_date

MAX_NOTES_PER_DAY = 50
TEXT_FIELDS = ("content", "link")
SCHEME_RE = re.compile(r"^[a-z][a-z\d+.-]*://", re.IGNORECASE)


def week_start_for(date: dt.date) -> dt.date:
    return date - dt.timedelta(days=date.weekday())


def week_range(date: dt.date) -> tuple[dt.date, dt.date]:
    start = week_start_for(date)
    return start, start + dt.timedelta(days=6)


def week_key(date: dt.date) -> str:
    start, end = week_range(date)
    return f"{start.isoformat()}_{end.isoformat()}"


def matches_query(note: Note, query: str) -> bool:
    q = query.strip().lower()
    if not q:
        return True
    return q in note.haystack()


def filter_notes(notes: Iterable[Note], query: str) -> List[Note]:
    return [n for n in notes if matches_query(n, query)]


def sort_notes(notes: Iterable[Note]) -> List[Note]:
    """Newest day first; within a day the most recently created note first."""
    return sorted(notes, key=lambda n: (n.date, n.createdAt), reverse=True)


@dataclass
class WeekGroup:
    key: str
    start: dt.date
    end: dt.date
    notes: List[Note]


def group_by_week(notes: Iterable[Note]) -> List[WeekGroup]:
    """Bucket already-sorted notes into Monday..Sunday weeks, newest week first."""
    groups: dict[str, WeekGroup] = {}
    for note in notes:
        day = parse_date(note.date)
        if day is None:
            continue
        key = week_key(day)
        if key not in groups:
            start, end = week_range(day)
            groups[key] = WeekGroup(key=key, start=start, end=end, notes=[])
        groups[key].notes.append(note)
    return sorted(groups.values(), key=lambda g: g.start, reverse=True)


def week_keys(notes: Iterable[Note]) -> set[str]:
    keys = set()
    for note in notes:
        day = parse_date(note.date)
        if day is not None:
            keys.add(week_key(day))
    return keys


@dataclass(frozen=True)
class LinkPreview:
    url: str
    label: str


def link_preview(value: str | None) -> LinkPreview | None:
    """Preview for a note link, assuming https:// when no scheme is given."""
    raw = (value or "").strip()
    if not raw or any(ch.isspace() for ch in raw):
        return None
    candidate = raw if SCHEME_RE.match(raw) else f"https://{raw}"
    try:
        parts = urlsplit(candidate)
        parts.port  # raises on a malformed port
    except ValueError:
        return None
    if not parts.scheme or not parts.hostname:
        return None
    return LinkPreview(url=candidate, label=SCHEME_RE.sub("", candidate, count=1))


def image_mime_type(path: Path) -> str | None:
    mime, _ = mimetypes.guess_type(path.name)
    if mime and mime.startswith("image/"):
        return mime
    return None


def read_data_url(path: Path) -> str:
    """Read an image file into a data: URL. Raises OSError when unreadable."""
    mime = image_mime_type(path) or "application/octet-stream"
    payload = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime};base64,{payload}"


class NoteManager:
    def __init__(self, document: Document, clock: Clock, max_per_day: int = MAX_NOTES_PER_DAY) -> None:
        self.document = document
        self.clock = clock
        self.max_per_day = max_per_day

    def get(self, note_id: str) -> Note:
        note = self.document.find_note(note_id)
        if note is None:
            raise Refused("note no longer exists")
        return note

    def add(self) -> Note:
        now = self.clock()
        today = format_date(now)
        todays = sum(1 for n in self.document.notes if n.date == today)
        if todays >= self.max_per_day:
            raise Refused(f"limit reached ({self.max_per_day} notes for today)")
        note = Note(id=create_id(), date=today, content="", createdAt=iso_timestamp(now))
        self.document.notes.append(note)
        return note

    def update(self, note_id: str, field: str, value: str) -> bool:
        """Assign one field. Returns True when the edit is structural (needs a re-render)."""
        note = self.get(note_id)
        if field in TEXT_FIELDS:
            setattr(note, field, value)
            return False
        if field == "date":
            if not is_valid_date(value):
                raise Refused("invalid date")
            note.date = value
            return True
        raise Refused(f"unknown note field: {field}")

    def remove(self, note_id: str) -> bool:
        before = len(self.document.notes)
        self.document.notes = [n for n in self.document.notes if n.id != note_id]
        return len(self.document.notes) != before

    def set_photo(self, note_id: str, path: Path, reader: Callable[[Path], str] = read_data_url) -> Note:
        note = self.get(note_id)
        if image_mime_type(path) is None:
            raise Refused("choose an image file")
        try:
            data = reader(path)
        except OSError as exc:
            raise Refused("could not read image") from exc
        # the note may have been deleted while the file was being read
        note = self.get(note_id)
        note.photo = data
        note.photoName = path.name
        return note

    def remove_photo(self, note_id: str) -> bool:
        note = self.get(note_id)
        if note.photo is None and note.photoName is None:
            return False
        note.photo = None
        note.photoName = None
        return True
