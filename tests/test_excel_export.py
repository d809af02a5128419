import io
import unittest

from openpyxl import load_workbook

from navaroo.exports.excel_export import (
    MONTHLY_COLUMNS, SHEET_BREAKDOWN, SHEET_MONTHLY, SHEET_SUMMARY, generate_excel_report,
)
from navaroo.metrics.calculator import YOY
from navaroo.parser.xero_parser import get_demo_data


def _load(content: bytes):
    return load_workbook(io.BytesIO(content))


class TestExcelExport(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.records = get_demo_data()
        cls.wb = _load(generate_excel_report(cls.records, client_name="Demo Trading"))

    def test_sheets(self):
        self.assertEqual(self.wb.sheetnames, [SHEET_SUMMARY, SHEET_MONTHLY, SHEET_BREAKDOWN])

    def test_summary_title_and_kpis(self):
        ws = self.wb[SHEET_SUMMARY]
        self.assertEqual(ws["A1"].value, "Financial Dashboard: Demo Trading")
        self.assertIn("Jun 2025", ws["A2"].value)
        labels = [ws.cell(row=r, column=1).value for r in range(1, ws.max_row + 1)]
        self.assertIn("Revenue", labels)
        self.assertIn("Current Ratio", labels)

    def test_monthly_rows(self):
        ws = self.wb[SHEET_MONTHLY]
        headers = [c.value for c in ws[1]]
        self.assertEqual(headers, [header for _, header, _ in MONTHLY_COLUMNS])
        self.assertEqual(ws.max_row, len(self.records) + 1)
        self.assertEqual(ws["A2"].value, "Jun 2025")
        self.assertEqual(ws["B2"].value, 148_710)
        margin_col = headers.index("Gross Margin %") + 1
        self.assertAlmostEqual(ws.cell(row=2, column=margin_col).value, self.records[0].gross_margin / 100)

    def test_breakdown_rows(self):
        ws = self.wb[SHEET_BREAKDOWN]
        amounts = {}
        for row in ws.iter_rows(min_row=2, values_only=True):
            month, category, amount, pct = row[:4]
            if category is None:
                continue
            amounts.setdefault(month, []).append((category, amount, pct))
        self.assertEqual(set(amounts), {r.period for r in self.records})
        june = amounts["Jun 2025"]
        self.assertEqual(len(june), len(self.records[0].expense_breakdown))
        self.assertAlmostEqual(sum(p for _, _, p in june), 1.0)

    def test_empty_records(self):
        wb = _load(generate_excel_report([]))
        self.assertEqual(wb[SHEET_SUMMARY]["A1"].value, "Financial Dashboard")
        self.assertEqual(wb[SHEET_SUMMARY]["A2"].value, "No data loaded")
        self.assertEqual(wb[SHEET_MONTHLY].max_row, 1)

    def test_year_over_year_summary(self):
        wb = _load(generate_excel_report(self.records, selected_index=2, mode=YOY))
        self.assertIn("Apr 2025", wb[SHEET_SUMMARY]["A2"].value)
        self.assertIn("YoY", wb[SHEET_SUMMARY]["A2"].value)


if __name__ == "__main__":
    unittest.main()
