"""Daily notes and todos kept in local storage, driven from the terminal."""

from __future__ import annotations

from .commands import App, Outcome
from .model import Document, Note, Todo
from .storage import FileStorage, MemoryStorage

__version__ = "0.3.0"

__all__ = ["App", "Document", "FileStorage", "MemoryStorage", "Note", "Outcome", "Todo", "__version__"]
