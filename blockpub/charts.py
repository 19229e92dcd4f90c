from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence, Union, assert_never

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .coerce import CellValue, DataRow, format_label, label_string, parse_date, to_number
from .errors import BadInputError


class ChartType(str, Enum):
    LINE = "LINE"
    AREA = "AREA"
    BAR = "BAR"
    PIE = "PIE"


class ChartSelections(BaseModel):
    """User-chosen mapping of chart roles to field keys."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    x_axis: str = ""
    y_axis: str = ""
    series: list[str] = Field(default_factory=list)
    label_key: str = ""
    value_key: str = ""


@dataclass(frozen=True)
class PieSlice:
    label: str
    value: float


@dataclass(frozen=True)
class SeriesChartData:
    """Line/area/bar output: one point per kept row, x value plus one number-or-None per series."""

    chart_type: ChartType
    x_key: str
    y_key: str
    series_keys: tuple[str, ...]
    points: tuple[dict[str, CellValue], ...]
    colors: tuple[str, ...] = field(default=())

    def to_dict(self) -> dict[str, Any]:
        return {
            "chartType": self.chart_type.value,
            "xKey": self.x_key,
            "yKey": self.y_key,
            "seriesKeys": list(self.series_keys),
            "points": [dict(p) for p in self.points],
            "colors": list(self.colors),
        }


@dataclass(frozen=True)
class PieChartData:
    """Pie output: one aggregate per distinct label, first-seen order."""

    label_key: str
    value_key: str
    slices: tuple[PieSlice, ...]
    colors: tuple[str, ...] = field(default=())

    @property
    def chart_type(self) -> ChartType:
        return ChartType.PIE

    def to_dict(self) -> dict[str, Any]:
        return {
            "chartType": ChartType.PIE.value,
            "labelKey": self.label_key,
            "valueKey": self.value_key,
            "slices": [{"label": s.label, "value": s.value} for s in self.slices],
            "colors": list(self.colors),
        }


PreparedChartData = Union[SeriesChartData, PieChartData]


@dataclass(frozen=True)
class Trend:
    change: float
    is_positive: bool
    is_flat: bool


def coerce_chart_type(value: ChartType | str) -> ChartType:
    if isinstance(value, ChartType):
        return value
    try:
        return ChartType((value or "").strip().upper())
    except ValueError:
        allowed = ", ".join(t.value for t in ChartType)
        raise BadInputError(f"Unsupported chart type {value!r} (expected one of: {allowed})") from None


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def _require(role: str, value: str, chart_type: ChartType) -> str:
    v = (value or "").strip()
    if not v:
        raise BadInputError(f"{chart_type.value} chart requires a '{role}' selection")
    return v


def prepare(
    rows: Sequence[DataRow],
    selections: ChartSelections,
    chart_type: ChartType | str,
) -> PreparedChartData:
    """
    Turn raw rows into render-ready data for one chart type.

    Line/area/bar keep row order, skip rows with no x value, and map non-numeric
    series cells to None. Pie sums the value field per label, counting bad cells as 0.
    """
    ct = coerce_chart_type(chart_type)
    match ct:
        case ChartType.LINE | ChartType.AREA | ChartType.BAR:
            return _prepare_series(rows, selections, ct)
        case ChartType.PIE:
            return _prepare_pie(rows, selections)
        case _:
            assert_never(ct)


def _prepare_series(rows: Sequence[DataRow], selections: ChartSelections, ct: ChartType) -> SeriesChartData:
    x_key = _require("x_axis", selections.x_axis, ct)
    y_key = _require("y_axis", selections.y_axis, ct)

    series_keys: list[str] = []
    for raw in selections.series:
        key = (raw or "").strip()
        if not key:
            raise BadInputError(f"{ct.value} chart has an empty 'series' entry")
        if key == x_key:
            raise BadInputError(f"Series field {key!r} cannot also be the x_axis")
        if key not in series_keys:
            series_keys.append(key)

    if not series_keys:
        if y_key == x_key:
            raise BadInputError(f"{ct.value} chart y_axis {y_key!r} cannot also be the x_axis")
        series_keys = [y_key]

    points: list[dict[str, CellValue]] = []
    for row in rows:
        x_value = row.get(x_key)
        if not _has_value(x_value):
            continue
        point: dict[str, CellValue] = {x_key: x_value}
        for key in series_keys:
            point[key] = to_number(row.get(key))
        points.append(point)

    return SeriesChartData(
        chart_type=ct,
        x_key=x_key,
        y_key=y_key,
        series_keys=tuple(series_keys),
        points=tuple(points),
        colors=tuple(generate_colors(len(series_keys))),
    )


def _prepare_pie(rows: Sequence[DataRow], selections: ChartSelections) -> PieChartData:
    label_key = _require("label_key", selections.label_key, ChartType.PIE)
    value_key = _require("value_key", selections.value_key, ChartType.PIE)

    totals: dict[str, float] = {}
    for row in rows:
        label_value = row.get(label_key)
        if not _has_value(label_value):
            continue
        label = label_string(label_value)
        number = to_number(row.get(value_key))
        totals[label] = totals.get(label, 0.0) + (number if number is not None else 0.0)

    slices = tuple(PieSlice(label=label, value=total) for label, total in totals.items())
    return PieChartData(
        label_key=label_key,
        value_key=value_key,
        slices=slices,
        colors=tuple(generate_colors(len(slices))),
    )


_PALETTES: dict[str, tuple[str, ...]] = {
    "cool": ("#64748b", "#475569", "#334155", "#94a3b8", "#cbd5e1"),
    "neutral": ("#6b7280", "#4b5563", "#374151", "#9ca3af", "#d1d5db"),
    "blue": ("#3b82f6", "#2563eb", "#1d4ed8", "#60a5fa", "#93c5fd"),
    "earth": ("#78716c", "#57534e", "#44403c", "#a8a29e", "#d6d3d1"),
}

_FALLBACK_COLOR = "#64748b"


def generate_colors(count: int) -> list[str]:
    """Muted palette sized to the series count; extends with generated HSL shades past five."""
    if count <= 0:
        return []

    if count == 1:
        palette = _PALETTES["cool"]
    elif count <= 6:
        palette = _PALETTES["earth"]
    elif count <= 10:
        palette = _PALETTES["neutral"]
    else:
        palette = _PALETTES["blue"]

    if count <= len(palette):
        return list(palette[:count])

    colors = list(palette)
    for i in range(len(palette), count):
        lightness = 70 - (i * 8) % 40
        saturation = 15 + (i * 5) % 20
        colors.append(f"hsl(220, {saturation}%, {lightness}%)")
    return colors


def chart_config(prepared: PreparedChartData) -> dict[str, dict[str, str]]:
    """Per-key display label and color, as consumed by the chart renderer."""
    config: dict[str, dict[str, str]] = {}

    match prepared:
        case SeriesChartData():
            for index, key in enumerate(prepared.series_keys):
                color = prepared.colors[index] if index < len(prepared.colors) else _FALLBACK_COLOR
                config[key] = {"label": format_label(key), "color": color}
            config.setdefault(prepared.x_key, {"label": format_label(prepared.x_key)})
        case PieChartData():
            for index, s in enumerate(prepared.slices):
                color = prepared.colors[index] if index < len(prepared.colors) else _FALLBACK_COLOR
                config[s.label] = {"label": s.label, "color": color}
        case _:
            assert_never(prepared)

    return config


def _percent_change(first: float | None, last: float | None) -> float | None:
    if first is None or last is None or first == 0:
        return None
    return (last - first) / first * 100.0


def calculate_trend(prepared: PreparedChartData) -> Trend | None:
    """Average first-to-last percent change across series; None when it cannot be computed."""
    if not isinstance(prepared, SeriesChartData) or len(prepared.points) < 2:
        return None

    first_point = prepared.points[0]
    last_point = prepared.points[-1]

    changes: list[float] = []
    for key in prepared.series_keys:
        change = _percent_change(to_number(first_point.get(key)), to_number(last_point.get(key)))
        if change is not None:
            changes.append(change)

    if not changes:
        return None

    avg = sum(changes) / len(changes)
    return Trend(change=avg, is_positive=avg > 0, is_flat=abs(avg) < 1)


def _format_x(value: Any) -> str:
    if isinstance(value, str):
        parsed = parse_date(value)
        if parsed is not None:
            return parsed.strftime("%B %Y")
    return label_string(value)


def describe(prepared: PreparedChartData, description: str | None = None) -> str:
    if description:
        return description

    match prepared:
        case SeriesChartData():
            if not prepared.points:
                return ""
            start = _format_x(prepared.points[0].get(prepared.x_key))
            end = _format_x(prepared.points[-1].get(prepared.x_key))
            if len(prepared.series_keys) > 1:
                return f"Showing {len(prepared.series_keys)} data series from {start} to {end}"
            return f"Showing data from {start} to {end}"
        case PieChartData():
            if not prepared.slices:
                return ""
            return f"Showing {format_label(prepared.value_key)} across {len(prepared.slices)} categories"
        case _:
            assert_never(prepared)
