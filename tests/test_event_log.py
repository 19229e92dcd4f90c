from __future__ import annotations

import io
import json
import tempfile
import unittest
from pathlib import Path

from blockpub.errors import ReferenceFailureKind
from blockpub.event_log import EventLog


class TestEventLog(unittest.TestCase):
    def test_writes_one_json_object_per_line(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "logs" / "events.jsonl"
            with EventLog.open(path, command="chart") as log:
                log.info("chart_prepared", rows=3)
                log.reference_failed(
                    block_id="b1",
                    path="images.0",
                    file_id="f1",
                    kind=ReferenceFailureKind.EXPIRED,
                )

            lines = path.read_text(encoding="utf-8").splitlines()
            self.assertEqual(len(lines), 2)

            first = json.loads(lines[0])
            self.assertEqual(first["event"], "chart_prepared")
            self.assertEqual(first["level"], "INFO")
            self.assertEqual(first["command"], "chart")
            self.assertEqual(first["data"], {"rows": 3})
            self.assertIn("ts", first)

            second = json.loads(lines[1])
            self.assertEqual(second["level"], "WARN")
            self.assertEqual(second["event"], "reference_degraded")
            self.assertEqual(second["data"]["kind"], "EXPIRED")

    def test_exception_records_error_details(self) -> None:
        buf = io.StringIO()
        log = EventLog(buf)
        try:
            raise ValueError("boom")
        except ValueError as e:
            log.exception("command_failed", exc=e)

        record = json.loads(buf.getvalue())
        self.assertEqual(record["level"], "ERROR")
        self.assertEqual(record["data"]["error"]["type"], "ValueError")
        self.assertIn("boom", record["data"]["error"]["traceback"])

    def test_disabled_log_is_a_no_op(self) -> None:
        log = EventLog.disabled()
        self.assertFalse(log.enabled)
        log.info("ignored", x=1)
        log.close()

    def test_closed_log_drops_events(self) -> None:
        buf = io.StringIO()
        log = EventLog(buf)
        log.close()
        log.info("late")
        self.assertEqual(buf.getvalue(), "")


if __name__ == "__main__":
    unittest.main()
