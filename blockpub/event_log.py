from __future__ import annotations

import json
import traceback
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, TextIO

from .errors import ReferenceFailureKind


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _clip(text: str, *, limit: int) -> str:
    s = str(text or "")
    if limit <= 0:
        return ""
    if len(s) <= limit:
        return s
    return s[: max(0, limit - 1)] + "…"


class EventLog:
    """
    JSON Lines event sink used by the CLI around the pure core.

    Each line is one object: ts, level, event, and an optional data mapping.
    Writes go to a file opened by `open()` or to any caller-owned text stream.
    """

    def __init__(self, stream: TextIO | None = None, *, command: str | None = None) -> None:
        self._fp = stream
        self._owns_fp = False
        self._command = (command or "").strip() or None
        self._lock = Lock()

    @classmethod
    def open(cls, path: str | Path, *, command: str | None = None, append: bool = False) -> "EventLog":
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        log = cls(p.open("a" if append else "w", encoding="utf-8", newline="\n"), command=command)
        log._owns_fp = True
        return log

    @classmethod
    def disabled(cls) -> "EventLog":
        return cls(None)

    @property
    def enabled(self) -> bool:
        return self._fp is not None

    def close(self) -> None:
        with self._lock:
            if self._fp is not None and self._owns_fp:
                try:
                    self._fp.flush()
                finally:
                    self._fp.close()
            self._fp = None

    def __enter__(self) -> "EventLog":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def info(self, event: str, **data: Any) -> None:
        self.log("INFO", event, **data)

    def warning(self, event: str, **data: Any) -> None:
        self.log("WARN", event, **data)

    def error(self, event: str, **data: Any) -> None:
        self.log("ERROR", event, **data)

    def exception(self, event: str, *, exc: BaseException, **data: Any) -> None:
        err = {
            "type": type(exc).__name__,
            "message": _clip(str(exc), limit=2000),
            "traceback": _clip(
                "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                limit=12000,
            ),
        }
        self.log("ERROR", event, error=err, **data)

    def reference_failed(self, *, block_id: str, path: str, file_id: str, kind: ReferenceFailureKind) -> None:
        self.warning(
            "reference_degraded",
            block_id=block_id,
            path=path,
            file_id=file_id,
            kind=kind.value,
        )

    def log(self, level: str, event: str, **data: Any) -> None:
        if self._fp is None:
            return

        record: dict[str, Any] = {
            "ts": _utc_now_iso(),
            "level": (level or "").strip().upper() or "INFO",
            "event": (event or "").strip() or "event",
        }
        if self._command:
            record["command"] = self._command
        if data:
            record["data"] = data

        payload = json.dumps(
            record,
            ensure_ascii=False,
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )

        with self._lock:
            if self._fp is None:
                return
            self._fp.write(payload + "\n")
            self._fp.flush()
