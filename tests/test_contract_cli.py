from __future__ import annotations

import contextlib
import io
import json
import tempfile
import unittest
from pathlib import Path

from dailyfocus import cli
from dailyfocus.config import default_config
from dailyfocus.storage import DATA_KEY, FileStorage

from support import note_payload


class TestHeadlessCli(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        self.config = self.dir / "config.ini"
        self.config.write_text(
            "[general]\n"
            f"data_dir = {self.dir / 'data'}\n"
            f"export_dir = {self.dir / 'out'}\n"
            f"log_file = {self.dir / 'logs' / 'dailyfocus.log'}\n",
            encoding="utf-8",
        )

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def run_cli(self, *argv: str) -> tuple[int, str, str]:
        out, err = io.StringIO(), io.StringIO()
        with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
            code = cli.main(["--config", str(self.config), *argv])
        return code, out.getvalue(), err.getvalue()

    def test_import_then_export(self) -> None:
        backup = self.dir / "backup.json"
        backup.write_text(json.dumps({"notes": [note_payload("n1", "2025-01-02", "hello")]}), encoding="utf-8")

        code, out, _ = self.run_cli("--import", str(backup))
        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), "imported data")
        saved = json.loads(FileStorage(self.dir / "data").get(DATA_KEY))
        self.assertEqual([n["id"] for n in saved["notes"]], ["n1"])

        code, out, _ = self.run_cli("--export")
        self.assertEqual(code, 0)
        exported = Path(out.strip())
        self.assertEqual(exported.parent, self.dir / "out")
        self.assertTrue(exported.name.startswith("daily_summary_"))
        self.assertEqual(json.loads(exported.read_text(encoding="utf-8"))["notes"][0]["content"], "hello")

    def test_export_to_explicit_directory(self) -> None:
        target = self.dir / "elsewhere"
        code, out, _ = self.run_cli("--export", str(target))
        self.assertEqual(code, 0)
        self.assertEqual(Path(out.strip()).parent, target)

    def test_failed_import_exits_non_zero_and_keeps_data(self) -> None:
        broken = self.dir / "broken.json"
        broken.write_text("{oops", encoding="utf-8")
        code, out, err = self.run_cli("--import", str(broken))
        self.assertEqual(code, 1)
        self.assertEqual(out, "")
        self.assertEqual(err.strip(), "import failed: not valid JSON")
        self.assertIsNone(FileStorage(self.dir / "data").get(DATA_KEY))

    def test_data_dir_flag_overrides_config(self) -> None:
        backup = self.dir / "backup.json"
        backup.write_text(json.dumps({"notes": []}), encoding="utf-8")
        other = self.dir / "other-data"
        code, _, _ = self.run_cli("--data-dir", str(other), "--import", str(backup))
        self.assertEqual(code, 0)
        self.assertIsNotNone(FileStorage(other).get(DATA_KEY))
        self.assertIsNone(FileStorage(self.dir / "data").get(DATA_KEY))


class TestDataDirOverride(unittest.TestCase):
    def test_default_log_file_follows_new_data_dir(self) -> None:
        config = default_config()
        cli.override_data_dir(config, Path("/tmp/df-data"))
        self.assertEqual(config.data_dir, Path("/tmp/df-data"))
        self.assertEqual(config.log_file, Path("/tmp/df-data") / "dailyfocus.log")

    def test_configured_log_file_is_kept(self) -> None:
        config = default_config()
        config.log_file = Path("/var/tmp/mine.log")
        cli.override_data_dir(config, Path("/tmp/df-data"))
        self.assertEqual(config.log_file, Path("/var/tmp/mine.log"))


if __name__ == "__main__":
    unittest.main()
