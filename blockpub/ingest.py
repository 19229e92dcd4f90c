from __future__ import annotations

import json
import mimetypes
from pathlib import Path
from typing import Any

from .coerce import CellValue, DataRow
from .errors import BadInputError

JSON_MEDIA_TYPE = "application/json"
CSV_MEDIA_TYPE = "text/csv"

SUPPORTED_MEDIA_TYPES = (JSON_MEDIA_TYPE, CSV_MEDIA_TYPE)

_EXTENSION_TYPES = {
    ".json": JSON_MEDIA_TYPE,
    ".csv": CSV_MEDIA_TYPE,
}


def _normalize_media_type(media_type: str) -> str:
    return (media_type or "").split(";", 1)[0].strip().casefold()


def _decode(data: bytes) -> str:
    try:
        return bytes(data).decode("utf-8")
    except UnicodeDecodeError as e:
        raise BadInputError(f"Tabular data is not valid UTF-8: {e}") from e


def ingest(data: bytes, media_type: str) -> list[DataRow]:
    """
    Parse raw tabular bytes into rows.

    Supports `application/json` (a top-level array of objects) and `text/csv`
    (comma-split, no quoting). Anything else is a BadInputError naming the type.
    """
    kind = _normalize_media_type(media_type)
    if kind == JSON_MEDIA_TYPE:
        return parse_json_rows(_decode(data))
    if kind == CSV_MEDIA_TYPE:
        return parse_csv_rows(_decode(data))
    raise BadInputError(f"Unsupported media type for tabular data: {media_type!r}")


def ingest_file(path: str | Path, media_type: str | None = None) -> list[DataRow]:
    p = Path(path)
    kind = media_type or _EXTENSION_TYPES.get(p.suffix.casefold()) or mimetypes.guess_type(p.name)[0]
    if not kind:
        raise BadInputError(f"Cannot determine media type for {p}")

    try:
        raw = p.read_bytes()
    except OSError as e:
        raise BadInputError(f"Failed to read tabular file: {p}: {e}") from e

    return ingest(raw, kind)


def _json_cell(value: Any, *, index: int, key: str) -> CellValue:
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    raise BadInputError(f"Row {index} field {key!r} is not a scalar value")


def parse_json_rows(text: str) -> list[DataRow]:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise BadInputError(f"Invalid JSON structure for table data: {e}") from e

    if not isinstance(parsed, list):
        raise BadInputError(
            f"Invalid JSON structure for table data: expected an array, got {type(parsed).__name__}"
        )

    rows: list[DataRow] = []
    for index, item in enumerate(parsed):
        if not isinstance(item, dict):
            raise BadInputError(f"Row {index} is not an object")
        rows.append({str(k): _json_cell(v, index=index, key=str(k)) for k, v in item.items()})
    return rows


def parse_csv_rows(text: str) -> list[DataRow]:
    """
    Minimal CSV reader: split lines on newline and cells on comma.

    Quoted cells, embedded commas and escapes are not supported. Short rows keep
    every header key with None for missing trailing cells. Long rows drop the
    extra cells and blank lines are skipped.
    """
    lines = text.strip().split("\n")
    headers = lines[0].split(",")

    rows: list[DataRow] = []
    for line in lines[1:]:
        if not line:
            continue
        cells = line.split(",")
        rows.append({header: cells[i] if i < len(cells) else None for i, header in enumerate(headers)})
    return rows
