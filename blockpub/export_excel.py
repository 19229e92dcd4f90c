from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from openpyxl.utils import get_column_letter

from .charts import (
    PieChartData,
    PreparedChartData,
    SeriesChartData,
    calculate_trend,
    describe,
)
from .coerce import DataRow, is_numeric, label_string
from .errors import ExportError
from .fields import FieldOption
from .table_columns import generate_columns

_EXCEL_FORMULA_PREFIXES = ("=", "+", "-", "@")

DATA_SHEET = "data"
FIELDS_SHEET = "fields"
CHART_SHEET = "chart"
METADATA_SHEET = "metadata"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _safe_excel_value(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float)):
        return value
    s = str(value)
    if s.startswith(_EXCEL_FORMULA_PREFIXES) and not is_numeric(s):
        return "'" + s
    return s


def _data_rows(rows: Sequence[DataRow]) -> list[dict[str, Any]]:
    return [{k: _safe_excel_value(v) for k, v in row.items()} for row in rows]


def _field_rows(options: Sequence[FieldOption]) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for o in options:
        out.append(
            {
                "key": _safe_excel_value(o.key),
                "label": _safe_excel_value(o.label),
                "inferred_type": o.inferred_type.value,
                "unique_values": int(o.unique_values),
                "sample_values": _safe_excel_value(" | ".join(label_string(v) for v in o.sample_values)),
            }
        )
    return out


def _chart_rows(prepared: PreparedChartData) -> list[dict[str, Any]]:
    match prepared:
        case SeriesChartData():
            return [{k: _safe_excel_value(v) for k, v in point.items()} for point in prepared.points]
        case PieChartData():
            return [
                {"label": _safe_excel_value(s.label), "value": float(s.value)}
                for s in prepared.slices
            ]
        case _:
            raise ExportError(f"Unsupported prepared chart data: {type(prepared).__name__}")


def _metadata_rows(prepared: PreparedChartData, *, row_count: int, out: Path) -> list[dict[str, Any]]:
    trend = calculate_trend(prepared)
    rows: list[dict[str, Any]] = [
        {"key": "exported_at_utc", "value": _utc_now_iso()},
        {"key": "chart_type", "value": prepared.chart_type.value},
        {"key": "description", "value": _safe_excel_value(describe(prepared))},
        {"key": "counts.source_rows", "value": int(row_count)},
    ]
    if isinstance(prepared, SeriesChartData):
        rows.append({"key": "x_key", "value": _safe_excel_value(prepared.x_key)})
        rows.append({"key": "series_keys", "value": _safe_excel_value(", ".join(prepared.series_keys))})
        rows.append({"key": "counts.points", "value": len(prepared.points)})
    else:
        rows.append({"key": "label_key", "value": _safe_excel_value(prepared.label_key)})
        rows.append({"key": "value_key", "value": _safe_excel_value(prepared.value_key)})
        rows.append({"key": "counts.slices", "value": len(prepared.slices)})
    if trend is not None:
        rows.append({"key": "trend.change_percent", "value": round(trend.change, 4)})
        rows.append({"key": "trend.is_positive", "value": trend.is_positive})
    rows.append({"key": "output_path", "value": _safe_excel_value(str(out))})
    return rows


def export_chart_workbook(
    rows: Sequence[DataRow],
    options: Sequence[FieldOption],
    prepared: PreparedChartData,
    out_path: str | Path,
) -> Path:
    """
    Write the source rows, field analysis and prepared chart data to an .xlsx file.

    Sheets: data, fields, chart, metadata. Raises ExportError on any write failure.
    """
    try:
        import pandas as pd  # type: ignore[import-not-found]
    except Exception as e:
        raise ExportError("pandas is required for Excel export") from e

    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)

    columns = generate_columns(rows)

    df_data = pd.DataFrame(_data_rows(rows), columns=[c.key for c in columns] or None)
    df_fields = pd.DataFrame(_field_rows(options))
    df_chart = pd.DataFrame(_chart_rows(prepared))
    df_meta = pd.DataFrame(_metadata_rows(prepared, row_count=len(rows), out=out))

    try:
        with pd.ExcelWriter(out, engine="openpyxl") as writer:
            df_data.to_excel(writer, sheet_name=DATA_SHEET, index=False)
            df_fields.to_excel(writer, sheet_name=FIELDS_SHEET, index=False)
            df_chart.to_excel(writer, sheet_name=CHART_SHEET, index=False)
            df_meta.to_excel(writer, sheet_name=METADATA_SHEET, index=False)

            wb = writer.book
            for name in (DATA_SHEET, FIELDS_SHEET, CHART_SHEET, METADATA_SHEET):
                if name in wb.sheetnames:
                    wb[name].freeze_panes = "A2"

            ws = wb[DATA_SHEET]
            for index, column in enumerate(columns, start=1):
                ws.column_dimensions[get_column_letter(index)].width = column.excel_width()
    except Exception as e:
        raise ExportError(f"Failed to write workbook: {out}: {e}") from e

    return out
