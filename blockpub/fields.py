from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

from .charts import ChartSelections, ChartType
from .coerce import (
    CellValue,
    DataRow,
    format_label,
    is_numeric,
    label_string,
    looks_like_date_key,
    looks_like_date_value,
    parse_date,
)
from .config_schema import AnalysisConfig

_MAX_TEXT_X_DISTINCT = 20


class FieldType(str, Enum):
    NUMERIC = "NUMERIC"
    CATEGORICAL = "CATEGORICAL"
    TEMPORAL = "TEMPORAL"
    TEXT = "TEXT"


@dataclass(frozen=True)
class FieldOption:
    key: str
    label: str
    inferred_type: FieldType
    unique_values: int = 0
    sample_values: tuple[CellValue, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "inferredType": self.inferred_type.value,
            "uniqueValues": self.unique_values,
            "sampleValues": list(self.sample_values),
        }


@dataclass(frozen=True)
class ChartOptions:
    x_axis_options: tuple[FieldOption, ...]
    y_axis_options: tuple[FieldOption, ...]
    series_options: tuple[FieldOption, ...]
    label_options: tuple[FieldOption, ...]
    value_options: tuple[FieldOption, ...]
    chart_types: tuple[ChartType, ...]
    suggested: ChartSelections
    suggested_chart_type: ChartType

    def to_dict(self) -> dict[str, Any]:
        def keys(options: Sequence[FieldOption]) -> list[str]:
            return [o.key for o in options]

        return {
            "xAxisOptions": keys(self.x_axis_options),
            "yAxisOptions": keys(self.y_axis_options),
            "seriesOptions": keys(self.series_options),
            "labelOptions": keys(self.label_options),
            "valueOptions": keys(self.value_options),
            "chartTypes": [t.value for t in self.chart_types],
            "suggested": self.suggested.model_dump(by_alias=True),
            "suggestedChartType": self.suggested_chart_type.value,
        }


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def field_keys(rows: Sequence[DataRow]) -> list[str]:
    """Distinct field keys across all rows, in first-seen order."""
    seen: dict[str, None] = {}
    for row in rows:
        for key in row:
            seen.setdefault(key, None)
    return list(seen)


def classify_values(key: str, values: Sequence[CellValue], *, settings: AnalysisConfig) -> FieldType:
    """
    Infer a field type from its non-null values.

    Order matters: numeric wins over temporal (so `2024` stays a number), and a
    value set that is neither falls back to categorical only while its distinct
    count stays small relative to the number of values.
    """
    if not values:
        return FieldType.TEXT

    if all(isinstance(v, bool) for v in values):
        return FieldType.CATEGORICAL

    if all(is_numeric(v) for v in values):
        return FieldType.NUMERIC

    if all(parse_date(v) is not None for v in values) and (
        looks_like_date_key(key) or all(looks_like_date_value(v) for v in values)
    ):
        return FieldType.TEMPORAL

    distinct = len({label_string(v) for v in values})
    if distinct <= settings.categorical_max_distinct:
        if len(values) < settings.categorical_min_rows:
            return FieldType.CATEGORICAL
        if distinct <= len(values) * settings.categorical_max_ratio:
            return FieldType.CATEGORICAL

    return FieldType.TEXT


def analyze(rows: Sequence[DataRow], *, settings: AnalysisConfig | None = None) -> list[FieldOption]:
    """One FieldOption per distinct field key, first-seen order. Pure and uncached."""
    cfg = settings or AnalysisConfig()

    options: list[FieldOption] = []
    for key in field_keys(rows):
        values = [row[key] for row in rows if key in row and _present(row[key])]

        distinct: dict[str, CellValue] = {}
        for v in values:
            distinct.setdefault(label_string(v), v)

        options.append(
            FieldOption(
                key=key,
                label=format_label(key),
                inferred_type=classify_values(key, values, settings=cfg),
                unique_values=len(distinct),
                sample_values=tuple(list(distinct.values())[: cfg.sample_size]),
            )
        )
    return options


def _is_x_candidate(option: FieldOption) -> bool:
    if option.inferred_type in (FieldType.NUMERIC, FieldType.TEMPORAL, FieldType.CATEGORICAL):
        return True
    return option.unique_values <= _MAX_TEXT_X_DISTINCT


def _chart_types_for(x_options: Sequence[FieldOption], y_options: Sequence[FieldOption]) -> list[ChartType]:
    if not y_options:
        return []

    x_types = {o.inferred_type for o in x_options}
    has_temporal = FieldType.TEMPORAL in x_types
    has_numeric = FieldType.NUMERIC in x_types
    has_category = bool(x_types & {FieldType.CATEGORICAL, FieldType.TEXT})

    out: list[ChartType] = []
    if has_temporal or has_numeric:
        out.append(ChartType.LINE)
    if has_category or has_temporal:
        out.append(ChartType.BAR)
    if FieldType.CATEGORICAL in x_types:
        out.append(ChartType.PIE)
    if has_temporal or has_numeric:
        out.append(ChartType.AREA)
    return out


def suggest_chart_options(
    rows: Sequence[DataRow],
    *,
    options: Sequence[FieldOption] | None = None,
    settings: AnalysisConfig | None = None,
) -> ChartOptions:
    """Group analyzed fields by the chart roles they can fill and propose a starting selection."""
    fields = list(options) if options is not None else analyze(rows, settings=settings)

    x_options = [o for o in fields if _is_x_candidate(o)]
    numeric = [o for o in fields if o.inferred_type is FieldType.NUMERIC]
    label_options = [o for o in fields if o.inferred_type in (FieldType.CATEGORICAL, FieldType.TEXT)]
    chart_types = _chart_types_for(x_options, numeric)

    temporal_x = next((o for o in x_options if o.inferred_type is FieldType.TEMPORAL), None)
    x_choice = temporal_x or (x_options[0] if x_options else None)
    x_key = x_choice.key if x_choice else ""

    y_choice = next((o for o in numeric if o.key != x_key), None)
    categorical = next((o for o in fields if o.inferred_type is FieldType.CATEGORICAL), None)

    if temporal_x is not None and ChartType.LINE in chart_types:
        suggested_type = ChartType.LINE
    elif chart_types:
        suggested_type = chart_types[0]
    else:
        suggested_type = ChartType.BAR

    return ChartOptions(
        x_axis_options=tuple(x_options),
        y_axis_options=tuple(numeric),
        series_options=tuple(o for o in numeric if o.key != x_key),
        label_options=tuple(label_options),
        value_options=tuple(numeric),
        chart_types=tuple(chart_types),
        suggested=ChartSelections(
            x_axis=x_key,
            y_axis=y_choice.key if y_choice else "",
            series=[],
            label_key=categorical.key if categorical else "",
            value_key=numeric[0].key if numeric else "",
        ),
        suggested_chart_type=suggested_type,
    )
