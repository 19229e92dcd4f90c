from __future__ import annotations

import unittest
from datetime import datetime

from blockpub.coerce import (
    count_words,
    format_label,
    label_string,
    looks_like_date_key,
    looks_like_date_value,
    parse_date,
    strip_html,
    to_number,
)


class TestNumbers(unittest.TestCase):
    def test_numbers_pass_through(self) -> None:
        self.assertEqual(to_number(7), 7.0)
        self.assertEqual(to_number(2.5), 2.5)

    def test_strings_must_parse_fully(self) -> None:
        self.assertEqual(to_number(" 3.5 "), 3.5)
        self.assertEqual(to_number("-12"), -12.0)
        self.assertIsNone(to_number("12abc"))
        self.assertIsNone(to_number(""))
        self.assertIsNone(to_number("   "))
        self.assertIsNone(to_number("1_000"))

    def test_non_finite_and_bools_are_not_numbers(self) -> None:
        self.assertIsNone(to_number(True))
        self.assertIsNone(to_number(float("nan")))
        self.assertIsNone(to_number("inf"))
        self.assertIsNone(to_number(None))


class TestDates(unittest.TestCase):
    def test_parse_date_formats(self) -> None:
        self.assertEqual(parse_date("2024-01-05"), datetime(2024, 1, 5))
        self.assertEqual(parse_date("1/5/2024"), datetime(2024, 1, 5))
        self.assertIsNotNone(parse_date("2024-01-05T10:30:00"))
        self.assertIsNone(parse_date("yesterday"))
        self.assertIsNone(parse_date(20240105))

    def test_date_like_values(self) -> None:
        self.assertTrue(looks_like_date_value("2024-03-01"))
        self.assertTrue(looks_like_date_value("3/1/2024"))
        self.assertFalse(looks_like_date_value("March"))

    def test_date_like_keys(self) -> None:
        for key in ("date", "created_at", "createdAt", "order_date", "Year", "signup-day"):
            self.assertTrue(looks_like_date_key(key), key)
        for key in ("format", "category", "update", "daily_total"):
            self.assertFalse(looks_like_date_key(key), key)


class TestText(unittest.TestCase):
    def test_strip_html(self) -> None:
        self.assertEqual(strip_html("<p>Hi&nbsp;there</p>\n"), "Hi there")
        self.assertEqual(strip_html(""), "")

    def test_count_words(self) -> None:
        self.assertEqual(count_words("  one two\tthree\n"), 3)
        self.assertEqual(count_words(""), 0)

    def test_format_label(self) -> None:
        self.assertEqual(format_label("orderDate"), "Order Date")
        self.assertEqual(format_label("order_date"), "Order Date")
        self.assertEqual(format_label("total-amount"), "Total Amount")
        self.assertEqual(format_label("revenue"), "Revenue")

    def test_label_string(self) -> None:
        self.assertEqual(label_string(True), "true")
        self.assertEqual(label_string(3.0), "3")
        self.assertEqual(label_string(3.5), "3.5")
        self.assertEqual(label_string("A"), "A")


if __name__ == "__main__":
    unittest.main()
