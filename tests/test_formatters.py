import unittest

from navaroo.utils.formatters import (
    format_change, format_compact_currency, format_currency, format_metric, format_percent,
    format_ratio,
)


class TestFormatters(unittest.TestCase):
    def test_currency(self):
        self.assertEqual(format_currency(1234567), "$1,234,567")
        self.assertEqual(format_currency(-1234.4), "-$1,234")
        self.assertEqual(format_currency(None), "N/A")
        self.assertEqual(format_currency("abc"), "N/A")

    def test_compact_currency(self):
        self.assertEqual(format_compact_currency(148_500), "$148.5k")
        self.assertEqual(format_compact_currency(1_200_000), "$1.2M")
        self.assertEqual(format_compact_currency(-2_000), "-$2.0k")
        self.assertEqual(format_compact_currency(950), "$950")

    def test_percent_and_change(self):
        self.assertEqual(format_percent(42.34), "42.3%")
        self.assertEqual(format_change(4.2), "+4.2%")
        self.assertEqual(format_change(-1), "-1.0%")

    def test_percent_edge_values(self):
        self.assertEqual(format_percent(0), "0.0%")
        self.assertEqual(format_percent("12.34"), "12.3%")
        self.assertEqual(format_percent(None), "N/A")
        self.assertEqual(format_percent("abc"), "N/A")
        self.assertIn("42.3%", format_percent.__doc__)

    def test_ratio(self):
        self.assertEqual(format_ratio(1.5), "1.50:1")
        self.assertEqual(format_ratio(None), "N/A")

    def test_dispatch(self):
        self.assertEqual(format_metric(1000, "currency"), "$1,000")
        self.assertEqual(format_metric(12.5, "percentage"), "12.5%")
        self.assertEqual(format_metric(2, "ratio"), "2.00:1")
        self.assertEqual(format_metric(None, "percentage"), "N/A")
        self.assertEqual(format_metric(7, "count"), "7")


if __name__ == "__main__":
    unittest.main()
