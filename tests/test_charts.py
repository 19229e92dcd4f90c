from __future__ import annotations

import unittest

from blockpub.charts import (
    ChartSelections,
    ChartType,
    PieChartData,
    PieSlice,
    SeriesChartData,
    calculate_trend,
    chart_config,
    coerce_chart_type,
    describe,
    generate_colors,
    prepare,
)
from blockpub.errors import BadInputError


class TestPiePreparation(unittest.TestCase):
    def test_non_numeric_cells_contribute_zero(self) -> None:
        rows = [{"cat": "A", "val": "3"}, {"cat": "A", "val": "bad"}, {"cat": "B", "val": "5"}]
        out = prepare(rows, ChartSelections(label_key="cat", value_key="val"), ChartType.PIE)

        self.assertIsInstance(out, PieChartData)
        self.assertEqual(out.slices, (PieSlice("A", 3.0), PieSlice("B", 5.0)))

    def test_labels_grouped_by_string_form_in_first_seen_order(self) -> None:
        rows = [{"k": 2, "v": 1}, {"k": "1", "v": 1}, {"k": "2", "v": 4}, {"k": None, "v": 9}]
        out = prepare(rows, ChartSelections(label_key="k", value_key="v"), "pie")

        self.assertEqual([s.label for s in out.slices], ["2", "1"])
        self.assertEqual([s.value for s in out.slices], [5.0, 1.0])

    def test_missing_roles_are_named(self) -> None:
        with self.assertRaises(BadInputError) as ctx:
            prepare([], ChartSelections(label_key="cat"), ChartType.PIE)
        self.assertIn("value_key", str(ctx.exception))


class TestSeriesPreparation(unittest.TestCase):
    def test_missing_x_skips_row_missing_series_is_none(self) -> None:
        rows = [
            {"month": "Jan", "sales": "10"},
            {"sales": "11"},
            {"month": "", "sales": "12"},
            {"month": "Mar"},
            {"month": "Apr", "sales": "n/a"},
        ]
        out = prepare(rows, ChartSelections(x_axis="month", y_axis="sales"), ChartType.LINE)

        self.assertIsInstance(out, SeriesChartData)
        self.assertEqual(
            list(out.points),
            [
                {"month": "Jan", "sales": 10.0},
                {"month": "Mar", "sales": None},
                {"month": "Apr", "sales": None},
            ],
        )

    def test_explicit_series_keep_y_as_axis(self) -> None:
        rows = [{"x": 1, "a": 1, "b": "2", "y": 9}]
        out = prepare(
            rows,
            ChartSelections(x_axis="x", y_axis="y", series=["a", "b", "a"]),
            ChartType.AREA,
        )
        self.assertEqual(out.series_keys, ("a", "b"))
        self.assertEqual(out.y_key, "y")
        self.assertEqual(out.points[0], {"x": 1, "a": 1.0, "b": 2.0})
        self.assertEqual(len(out.colors), 2)

    def test_requires_x_and_y(self) -> None:
        with self.assertRaises(BadInputError) as ctx:
            prepare([], ChartSelections(y_axis="v"), ChartType.BAR)
        self.assertIn("x_axis", str(ctx.exception))

        with self.assertRaises(BadInputError) as ctx:
            prepare([], ChartSelections(x_axis="k", series=["v"]), ChartType.BAR)
        self.assertIn("y_axis", str(ctx.exception))

    def test_series_cannot_repeat_x(self) -> None:
        with self.assertRaises(BadInputError):
            prepare([], ChartSelections(x_axis="k", y_axis="v", series=["k"]), ChartType.LINE)

    def test_implicit_series_cannot_repeat_x(self) -> None:
        rows = [{"month": "Jan", "v": 1}, {"month": "Feb", "v": 2}]
        with self.assertRaises(BadInputError) as ctx:
            prepare(rows, ChartSelections(x_axis="month", y_axis="month"), ChartType.LINE)
        self.assertIn("y_axis", str(ctx.exception))

    def test_unknown_chart_type(self) -> None:
        with self.assertRaises(BadInputError):
            coerce_chart_type("scatter")
        self.assertEqual(coerce_chart_type(" bar "), ChartType.BAR)

    def test_selections_accept_camel_case(self) -> None:
        sel = ChartSelections.model_validate({"xAxis": "a", "yAxis": "b", "labelKey": "c"})
        self.assertEqual((sel.x_axis, sel.y_axis, sel.label_key), ("a", "b", "c"))


class TestChartHelpers(unittest.TestCase):
    def test_generate_colors(self) -> None:
        self.assertEqual(generate_colors(0), [])
        self.assertEqual(generate_colors(1), ["#64748b"])
        self.assertEqual(len(generate_colors(3)), 3)
        many = generate_colors(8)
        self.assertEqual(len(many), 8)
        self.assertTrue(many[-1].startswith("hsl("))

    def test_trend_and_description(self) -> None:
        rows = [{"d": "2024-01-01", "v": 100}, {"d": "2024-06-01", "v": 150}]
        out = prepare(rows, ChartSelections(x_axis="d", y_axis="v"), ChartType.LINE)

        trend = calculate_trend(out)
        self.assertIsNotNone(trend)
        assert trend is not None
        self.assertAlmostEqual(trend.change, 50.0)
        self.assertTrue(trend.is_positive)
        self.assertFalse(trend.is_flat)

        self.assertEqual(describe(out), "Showing data from January 2024 to June 2024")
        self.assertEqual(describe(out, "Custom"), "Custom")

    def test_trend_needs_two_points(self) -> None:
        out = prepare([{"d": 1, "v": 1}], ChartSelections(x_axis="d", y_axis="v"), ChartType.BAR)
        self.assertIsNone(calculate_trend(out))

    def test_chart_config_labels(self) -> None:
        out = prepare([{"d": 1, "unitsSold": 1}], ChartSelections(x_axis="d", y_axis="unitsSold"), ChartType.BAR)
        cfg = chart_config(out)
        self.assertEqual(cfg["unitsSold"]["label"], "Units Sold")
        self.assertEqual(cfg["unitsSold"]["color"], "#64748b")


if __name__ == "__main__":
    unittest.main()
