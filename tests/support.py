from __future__ import annotations

import datetime as dt
import json

from dailyfocus.commands import App
from dailyfocus.config import default_config
from dailyfocus.storage import DATA_KEY, MemoryStorage

# Wednesday; its week runs 2025-01-06 .. 2025-01-12
START = dt.datetime(2025, 1, 8, 9, 0, 0, tzinfo=dt.timezone.utc)


class FakeClock:
    def __init__(self, start: dt.datetime = START) -> None:
        self.now = start

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += dt.timedelta(**kwargs)


class FakeMonotonic:
    def __init__(self) -> None:
        self.value = 100.0

    def __call__(self) -> float:
        return self.value


def make_app(storage: MemoryStorage | None = None, clock: FakeClock | None = None, **config_overrides) -> App:
    config = default_config()
    for name, value in config_overrides.items():
        setattr(config, name, value)
    return App(storage or MemoryStorage(), config, clock or FakeClock(), FakeMonotonic())


def stored_document(app: App) -> dict:
    return json.loads(app.store.storage.get(DATA_KEY))


def note_payload(note_id: str, date: str, content: str = "", created: str = "2025-01-01T00:00:00.000Z", **extra) -> dict:
    payload = {"id": note_id, "date": date, "content": content, "createdAt": created, "photo": None, "photoName": None, "link": ""}
    payload.update(extra)
    return payload
