from __future__ import annotations

import configparser
import curses
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, TypeVar

from .notes import MAX_NOTES_PER_DAY

CONFIG_PATH = Path.home() / ".config" / "dailyfocus" / "config.ini"
DEFAULT_DATA_DIR = Path.home() / ".local" / "share" / "dailyfocus"
DEFAULT_STATUS_SECONDS = 2.5
LOG_NAME = "dailyfocus.log"

COLOR_NAMES = {
    "black": curses.COLOR_BLACK,
    "red": curses.COLOR_RED,
    "green": curses.COLOR_GREEN,
    "yellow": curses.COLOR_YELLOW,
    "blue": curses.COLOR_BLUE,
    "magenta": curses.COLOR_MAGENTA,
    "cyan": curses.COLOR_CYAN,
    "white": curses.COLOR_WHITE,
    "default": -1,
    "none": -1,
}

# Alt+<key> arrives as ESC followed by the key; read_key folds that into "M-<key>".
SPECIAL_KEYS = {
    "KEY_LEFT": curses.KEY_LEFT,
    "KEY_RIGHT": curses.KEY_RIGHT,
    "KEY_UP": curses.KEY_UP,
    "KEY_DOWN": curses.KEY_DOWN,
    "KEY_ENTER": getattr(curses, "KEY_ENTER", 343),
    "ESC": "\x1b",
    "TAB": "\t",
    "SPACE": " ",
    "ENTER": "\r",
    "C-ENTER": "\n",
    "M-ENTER": "M-\r",
}


def default_keybinds() -> Dict[str, list]:
    return {
        "quit": ["q"],
        "help": ["?"],
        "switch_pane": ["TAB"],
        "down": ["j", "KEY_DOWN"],
        "up": ["k", "KEY_UP"],
        "add_note": ["a", "C-ENTER"],
        "add_todo": ["A", "M-ENTER"],
        "edit": ["i"],
        "edit_link": ["L"],
        "edit_date": ["D"],
        "toggle_done": ["x"],
        "delete": ["d"],
        "attach_photo": ["p"],
        "remove_photo": ["P"],
        "toggle_group": ["SPACE", "ENTER", "KEY_ENTER"],
        "toggle_todos": ["c"],
        "search": ["/"],
        "export": ["E"],
        "import": ["I"],
        "theme": ["T"],
    }


def default_colors() -> Dict[str, str]:
    return {
        "default_fg": "white",
        "accent_fg": "cyan",
    }


@dataclass
class Config:
    keybinds: Dict[str, set]
    data_dir: Path
    export_dir: Path
    log_file: Path
    default_fg: int
    accent_fg: int
    status_seconds: float = DEFAULT_STATUS_SECONDS
    max_notes_per_day: int = MAX_NOTES_PER_DAY
    prefer_dark: bool = True
    show_statusbar: bool = True


def load_parser_with_lines(path: Path) -> tuple[configparser.ConfigParser, dict[tuple[str, str], int], str | None]:
    """Read the INI file and capture line numbers for each option."""
    parser = configparser.ConfigParser(interpolation=None)
    lines: dict[tuple[str, str], int] = {}
    if not path.exists():
        return parser, lines, None
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        return parser, lines, f"could not read config: {exc}"
    try:
        parser.read_string(text)
    except configparser.Error as exc:
        return parser, lines, f"could not parse config: {exc}"
    current_section = None
    for idx, raw in enumerate(text.splitlines(), 1):
        stripped = raw.strip()
        if not stripped or stripped.startswith(("#", ";")):
            continue
        if stripped.startswith("[") and stripped.endswith("]"):
            current_section = stripped[1:-1].strip().lower()
            continue
        if "=" in stripped or ":" in stripped:
            sep = "=" if "=" in stripped else ":"
            option = stripped.split(sep, 1)[0].strip().lower()
            if current_section:
                lines[(current_section, option)] = idx
    return parser, lines, None


def parse_csv_list(csv: str | None) -> List[str]:
    if not csv:
        return []
    return [item.strip() for item in csv.split(",") if item.strip()]


def resolve_color(value: str | int | None, fallback: str | int) -> int:
    candidate = fallback if value is None else value
    if isinstance(candidate, int):
        return candidate
    if isinstance(candidate, str):
        key = candidate.strip().lower()
        if key in COLOR_NAMES:
            return COLOR_NAMES[key]
        try:
            return int(key)
        except ValueError:
            pass
    return COLOR_NAMES["default"]


def normalize_key_token(token: object) -> object:
    if isinstance(token, int):
        return token
    if isinstance(token, str):
        if token == " ":
            return token
        trimmed = token.strip()
        if len(trimmed) == 1:
            return trimmed
        upper = trimmed.upper()
        if upper in SPECIAL_KEYS:
            return SPECIAL_KEYS[upper]
        if upper.startswith("M-") and len(trimmed) == 3:
            return "M-" + trimmed[2]
    return None


def normalize_keybinds(raw: Dict[str, list] | None) -> Dict[str, set]:
    merged: Dict[str, set] = {}
    for action, tokens in default_keybinds().items():
        merged[action] = set()
        incoming = tokens
        if raw and action in raw and isinstance(raw[action], list):
            incoming = raw[action]
        for tok in incoming:
            resolved = normalize_key_token(tok)
            if resolved is not None:
                merged[action].add(resolved)
    return merged


def format_key(token: object) -> str:
    reverse_special = {v: k.lower() for k, v in SPECIAL_KEYS.items()}
    if token in reverse_special:
        return reverse_special[token]
    if isinstance(token, str):
        return token
    if isinstance(token, int):
        return f"key-{token}"
    return "?"


def default_config() -> Config:
    color_defaults = default_colors()
    return Config(
        keybinds=normalize_keybinds(None),
        data_dir=DEFAULT_DATA_DIR,
        export_dir=Path.cwd(),
        log_file=DEFAULT_DATA_DIR / LOG_NAME,
        default_fg=resolve_color(None, color_defaults["default_fg"]),
        accent_fg=resolve_color(None, color_defaults["accent_fg"]),
    )


T = TypeVar("T")


def load_config(path: Path = CONFIG_PATH) -> tuple[Config, list[str]]:
    """Load the INI config. Bad values are reported and replaced by their defaults."""
    parser, line_numbers, load_error = load_parser_with_lines(path)
    errors: list[str] = []
    if load_error:
        errors.append(load_error)

    def where(section: str, option: str) -> str:
        ln = line_numbers.get((section, option))
        return f"line {ln}: " if ln else ""

    def parse_option(option: str, convert: Callable[[str], T], fallback: T, hint: str) -> T:
        raw = parser.get("general", option, fallback=None) if parser.has_section("general") else None
        if raw is None or not raw.strip():
            return fallback
        try:
            return convert(raw.strip())
        except ValueError:
            errors.append(f"{where('general', option)}{option} must be {hint}; using {fallback}")
            return fallback

    def parse_bool(section: str, option: str, fallback: bool) -> bool:
        if not parser.has_section(section):
            return fallback
        try:
            return parser.getboolean(section, option, fallback=fallback)
        except ValueError:
            errors.append(f"{where(section, option)}{section}.{option} must be true/false; using {fallback}")
            return fallback

    def parse_path(option: str, fallback: Path, want_dir: bool) -> Path:
        raw = parser.get("general", option, fallback=None) if parser.has_section("general") else None
        if not raw or not raw.strip():
            return fallback
        candidate = Path(raw.strip()).expanduser()
        if want_dir and candidate.exists() and not candidate.is_dir():
            errors.append(f"{where('general', option)}{option} is not a directory; using {fallback}")
            return fallback
        if not want_dir and candidate.is_dir():
            errors.append(f"{where('general', option)}{option} points to a directory; using {fallback}")
            return fallback
        return candidate

    def positive_float(raw: str) -> float:
        value = float(raw)
        if value <= 0:
            raise ValueError(raw)
        return value

    def positive_int(raw: str) -> int:
        value = int(raw)
        if value <= 0:
            raise ValueError(raw)
        return value

    data_dir = parse_path("data_dir", DEFAULT_DATA_DIR, want_dir=True)
    export_dir = parse_path("export_dir", Path.cwd(), want_dir=True)
    log_file = parse_path("log_file", data_dir / LOG_NAME, want_dir=False)
    status_seconds = parse_option("status_seconds", positive_float, DEFAULT_STATUS_SECONDS, "a positive number")
    max_notes = parse_option("max_notes_per_day", positive_int, MAX_NOTES_PER_DAY, "a positive integer")
    prefer_dark = parse_bool("general", "prefer_dark", True)
    show_statusbar = parse_bool("general", "show_statusbar", True)

    raw_keybinds = None
    if parser.has_section("keybinds"):
        raw_keybinds = {}
        known = default_keybinds()
        for action, tokens in parser.items("keybinds"):
            if action not in known:
                errors.append(f"{where('keybinds', action)}unknown action '{action}'")
                continue
            raw_keybinds[action] = parse_csv_list(tokens)
    keybinds = normalize_keybinds(raw_keybinds)
    owners: Dict[object, tuple[str, int | None]] = {}
    for action, keys in keybinds.items():
        ln = line_numbers.get(("keybinds", action))
        for key in keys:
            previous = owners.get(key)
            if previous and previous[0] != action:
                prev_action, prev_line = previous
                errors.append(
                    f"line {ln or '?'}: {format_key(key)} also assigned to {prev_action} (line {prev_line or '?'})"
                )
            owners[key] = (action, ln)

    color_defaults = default_colors()

    def parse_color(option: str) -> int:
        raw = parser.get("colors", option, fallback=None) if parser.has_section("colors") else None
        fallback = color_defaults[option]
        if raw is not None:
            candidate = raw.strip().lower()
            if candidate not in COLOR_NAMES:
                try:
                    int(candidate)
                except ValueError:
                    errors.append(f"{where('colors', option)}colors.{option} '{raw}' is invalid; using {fallback}")
                    return resolve_color(None, fallback)
        return resolve_color(raw, fallback)

    return Config(
        keybinds=keybinds,
        data_dir=data_dir,
        export_dir=export_dir,
        log_file=log_file,
        default_fg=parse_color("default_fg"),
        accent_fg=parse_color("accent_fg"),
        status_seconds=status_seconds,
        max_notes_per_day=max_notes,
        prefer_dark=prefer_dark,
        show_statusbar=show_statusbar,
    ), errors
