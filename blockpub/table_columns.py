from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Sequence

from .coerce import CellValue, DataRow, format_label, is_numeric, looks_like_date_value, parse_date
from .fields import field_keys

Alignment = Literal["left", "center", "right"]

_SHORT_FIELDS = ("id", "code", "status", "type")
_MEDIUM_FIELDS = ("date", "price", "count", "views", "rating")
_WIDE_FIELDS = ("title", "name", "description", "summary")

_DEFAULT_EXCEL_WIDTH = 16


@dataclass(frozen=True)
class Column:
    key: str
    label: str
    align: Alignment = "left"
    width: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "label": self.label, "align": self.align, "width": self.width}

    def excel_width(self) -> int:
        """Approximate spreadsheet column width (characters) for this column."""
        floor = len(self.label) + 2
        if not self.width:
            return max(floor, _DEFAULT_EXCEL_WIDTH)
        percent = float(self.width.rstrip("%"))
        return max(floor, round(percent * 1.5))


def detect_alignment(values: Sequence[CellValue]) -> Alignment:
    present = [v for v in values if v is not None]
    if not present:
        return "left"

    if all(is_numeric(v) for v in present):
        return "right"

    if all(parse_date(v) is not None and looks_like_date_value(v) for v in present):
        return "center"

    return "left"


def detect_width(key: str, values: Sequence[CellValue]) -> str | None:
    lower = (key or "").lower()

    if any(f in lower for f in _SHORT_FIELDS):
        return "10%"
    if any(f in lower for f in _MEDIUM_FIELDS):
        return "15%"
    if any(f in lower for f in _WIDE_FIELDS):
        return "30%"

    if values:
        total = sum(len(str(v)) for v in values if v is not None)
        avg = total / len(values)
        if avg < 10:
            return "12%"
        if avg < 20:
            return "18%"
        if avg > 50:
            return "35%"

    return None


def generate_columns(rows: Sequence[DataRow]) -> list[Column]:
    """Column metadata for a Table block, one per field key in first-seen order."""
    columns: list[Column] = []
    for key in field_keys(rows):
        values = [row.get(key) for row in rows if row.get(key) is not None]
        columns.append(
            Column(
                key=key,
                label=format_label(key),
                align=detect_alignment(values),
                width=detect_width(key, values),
            )
        )
    return columns
