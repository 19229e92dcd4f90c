from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path


def _run_cli(*args: str, cwd: Path) -> subprocess.CompletedProcess[str]:
    repo_root = Path(__file__).resolve().parents[1]

    env = dict(os.environ)
    env.pop("BLOCKPUB_MEDIA_TOKEN", None)
    existing_pp = env.get("PYTHONPATH", "")
    env["PYTHONPATH"] = f"{repo_root}{os.pathsep}{existing_pp}" if existing_pp else str(repo_root)

    return subprocess.run(
        [sys.executable, "-m", "blockpub", *args],
        cwd=cwd,
        env=env,
        capture_output=True,
        text=True,
    )


class TestCLISmoke(unittest.TestCase):
    def test_excerpt_offline(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            proc = _run_cli("excerpt", "--offline", cwd=Path(td))

            self.assertEqual(proc.returncode, 0, msg=proc.stderr)
            self.assertIn("word_count=", proc.stdout)
            self.assertIn("image_file_id=file-fence", proc.stdout)
            self.assertIn("excerpt=", proc.stdout)

    def test_resolve_offline_logs_degraded_reference(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            log_path = Path(td) / "events.jsonl"
            proc = _run_cli("resolve", "--offline", "--log", str(log_path), cwd=Path(td))

            self.assertEqual(proc.returncode, 0, msg=proc.stderr)
            self.assertIn("references=4", proc.stdout)
            self.assertIn("degraded=1", proc.stdout)

            events = [
                json.loads(ln)["event"]
                for ln in log_path.read_text(encoding="utf-8").splitlines()
                if ln.strip()
            ]
            self.assertEqual(events[0], "command_started")
            self.assertIn("reference_degraded", events)
            self.assertEqual(events[-1], "command_completed")

    def test_chart_from_csv_with_workbook(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            data = Path(td) / "sales.csv"
            data.write_text("month,sales\n2024-01-01,10\n2024-02-01,12\n", encoding="utf-8")
            out = Path(td) / "chart.xlsx"

            proc = _run_cli(
                "chart",
                "--data",
                str(data),
                "--type",
                "bar",
                "--x",
                "month",
                "--y",
                "sales",
                "--out",
                str(out),
                cwd=Path(td),
            )

            self.assertEqual(proc.returncode, 0, msg=proc.stderr)
            self.assertIn("chart_type=BAR", proc.stdout)
            self.assertTrue(out.exists())

    def test_bad_selection_exits_with_input_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            proc = _run_cli("chart", "--offline", "--type", "PIE", "--label", "", cwd=Path(td))

            self.assertEqual(proc.returncode, 3)
            self.assertIn("label_key", proc.stderr)

    def test_missing_config_exits_with_config_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            log_path = Path(td) / "events.jsonl"
            proc = _run_cli(
                "analyze",
                "--offline",
                "--config",
                str(Path(td) / "missing.yaml"),
                "--log",
                str(log_path),
                cwd=Path(td),
            )

            self.assertEqual(proc.returncode, 2, msg=proc.stderr)
            events = [
                json.loads(ln)["event"]
                for ln in log_path.read_text(encoding="utf-8").splitlines()
                if ln.strip()
            ]
            self.assertIn("command_failed", events)

    def test_resolve_requires_base_url_when_online(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            blocks = Path(td) / "blocks.json"
            blocks.write_text("[]", encoding="utf-8")

            proc = _run_cli("resolve", "--blocks", str(blocks), cwd=Path(td))
            self.assertEqual(proc.returncode, 2)
            self.assertIn("media.base_url", proc.stderr)


if __name__ == "__main__":
    unittest.main()
