from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from .commands import App, ExportDocument, ImportDocument
from .config import CONFIG_PATH, LOG_NAME, Config, load_config
from .storage import FileStorage

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def override_data_dir(config: Config, data_dir: Path) -> None:
    """Point the config at another data directory; a default log file moves with it."""
    if config.log_file == config.data_dir / LOG_NAME:
        config.log_file = data_dir / LOG_NAME
    config.data_dir = data_dir


def setup_logging(log_file: Path, verbose: bool) -> None:
    # curses owns the terminal, so everything goes to a file
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(log_file),
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(
        prog="dailyfocus",
        description="Keyboard-driven daily notes and todos, stored locally.",
    )
    ap.add_argument("--config", default=str(CONFIG_PATH), help=f"Config INI path (default: {CONFIG_PATH})")
    ap.add_argument("--data-dir", default=None, help="Directory holding saved data (overrides the config)")
    ap.add_argument(
        "--export",
        nargs="?",
        const="",
        default=None,
        metavar="DIR",
        help="Write daily_summary_<today>.json to DIR (default: configured export_dir) and exit",
    )
    ap.add_argument("--import", dest="import_file", default=None, metavar="FILE", help="Import an exported JSON file and exit")
    ap.add_argument("--verbose", action="store_true", help="Log debug messages")
    args = ap.parse_args(argv)

    config, config_errors = load_config(Path(args.config).expanduser())
    if args.data_dir:
        override_data_dir(config, Path(args.data_dir).expanduser())
    setup_logging(config.log_file, args.verbose)
    for err in config_errors:
        logging.getLogger(__name__).warning("config: %s", err)

    app = App(FileStorage(config.data_dir), config)

    if args.import_file is not None or args.export is not None:
        ok = True
        if args.import_file is not None:
            ok = app.dispatch(ImportDocument(Path(args.import_file).expanduser())).changed
            print(app.status.current(), file=sys.stdout if ok else sys.stderr)
        if ok and args.export is not None:
            directory = Path(args.export).expanduser() if args.export else None
            outcome = app.dispatch(ExportDocument(directory))
            ok = outcome.artifact is not None
            print(outcome.artifact if ok else app.status.current(), file=sys.stdout if ok else sys.stderr)
        return 0 if ok else 1

    os.environ.setdefault("ESCDELAY", "25")
    from .tui import run

    run(app, config_errors)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
