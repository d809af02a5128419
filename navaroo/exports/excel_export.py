"""
Excel export of the loaded monthly series using xlsxwriter.
Tabs: Summary | Monthly | Expense Breakdown
"""

import io
import logging
from datetime import date

import xlsxwriter

from navaroo.metrics.calculator import COMPARISON_LABELS, MOM, build_kpis, detect_red_flags
from navaroo.parser.models import MonthlyFinancials

logger = logging.getLogger(__name__)

STATUS_FILL = {
    "green": "#DCFCE7",
    "red": "#FEE2E2",
    "grey": "#F3F4F6",
}
STATUS_FONT = {
    "green": "#16A34A",
    "red": "#DC2626",
    "grey": "#6B7280",
}
NAVY = "#1B2A4A"
WHITE = "#FFFFFF"
LIGHT_GREY = "#F3F4F6"

# (field, header, kind)
MONTHLY_COLUMNS = [
    ("period", "Month", "text"),
    ("revenue", "Revenue", "currency"),
    ("cost_of_sales", "Cost of Sales", "currency"),
    ("gross_profit", "Gross Profit", "currency"),
    ("gross_margin", "Gross Margin %", "percentage"),
    ("operating_expenses", "Operating Expenses", "currency"),
    ("depreciation", "Depreciation & Amortisation", "currency"),
    ("ebitda", "EBITDA", "currency"),
    ("ebitda_margin", "EBITDA Margin %", "percentage"),
    ("total_expenses", "Total Expenses", "currency"),
    ("net_profit", "Net Profit", "currency"),
    ("opex_ratio", "OpEx Ratio %", "percentage"),
    ("assets", "Total Assets", "currency"),
    ("current_assets", "Current Assets", "currency"),
    ("liabilities", "Total Liabilities", "currency"),
    ("current_liabilities", "Current Liabilities", "currency"),
    ("equity", "Equity", "currency"),
    ("accounts_receivable", "Accounts Receivable", "currency"),
    ("accounts_payable", "Accounts Payable", "currency"),
    ("working_capital", "Working Capital", "currency"),
    ("current_ratio", "Current Ratio", "ratio"),
    ("quick_ratio", "Quick Ratio", "ratio"),
]

SHEET_SUMMARY = "Summary"
SHEET_MONTHLY = "Monthly"
SHEET_BREAKDOWN = "Expense Breakdown"


def generate_excel_report(records: list[MonthlyFinancials], client_name: str = "",
                          selected_index: int = 0, mode: str = MOM) -> bytes:
    """
    Build the workbook for `records` (newest first) and return it as bytes.
    Percentages are written as fractions with a % number format.
    """
    buffer = io.BytesIO()
    wb = xlsxwriter.Workbook(buffer, {"in_memory": True})

    # ── Shared formats ─────────────────────────────────────────────────────
    hdr_fmt = wb.add_format({
        "bold": True, "font_color": WHITE, "bg_color": NAVY,
        "border": 1, "align": "center", "valign": "vcenter",
        "text_wrap": True,
    })
    title_fmt = wb.add_format({"bold": True, "font_size": 14, "font_color": NAVY})
    sub_fmt = wb.add_format({"font_size": 10, "font_color": "#6B7280"})
    section_fmt = wb.add_format({
        "bold": True, "font_size": 11, "font_color": NAVY,
        "bg_color": LIGHT_GREY, "border": 1,
    })
    normal_fmt = wb.add_format({"border": 1, "valign": "vcenter"})
    cell_fmts = {
        "text": normal_fmt,
        "currency": wb.add_format({"num_format": "$#,##0;-$#,##0", "border": 1}),
        "percentage": wb.add_format({"num_format": "0.0%", "border": 1}),
        "ratio": wb.add_format({"num_format": '0.00":1"', "border": 1}),
    }
    status_fmts = {
        status: wb.add_format({
            "bold": True, "font_color": STATUS_FONT[status], "bg_color": STATUS_FILL[status],
            "border": 1, "align": "center", "valign": "vcenter",
        })
        for status in STATUS_FILL
    }

    def write_value(ws, row, col, value, kind):
        if kind == "text":
            ws.write(row, col, value, normal_fmt)
        elif kind == "percentage":
            ws.write_number(row, col, value / 100, cell_fmts[kind])
        else:
            ws.write_number(row, col, value, cell_fmts[kind])

    title = f"Financial Dashboard: {client_name}" if client_name else "Financial Dashboard"

    # ── Sheet 1: Summary ──────────────────────────────────────────────────
    ws = wb.add_worksheet(SHEET_SUMMARY)
    ws.set_column("A:A", 28)
    ws.set_column("B:E", 16)

    ws.write(0, 0, title, title_fmt)
    row = 1
    if records:
        selected_index = max(0, min(selected_index, len(records) - 1))
        selected = records[selected_index]
        ws.write(row, 0, f"Month: {selected.period} | Comparison: {COMPARISON_LABELS.get(mode, mode)} "
                         f"| Generated: {date.today()}", sub_fmt)
        row += 2

        ws.write(row, 0, "Metric", hdr_fmt)
        ws.write(row, 1, "Current", hdr_fmt)
        ws.write(row, 2, "Previous", hdr_fmt)
        ws.write(row, 3, "Change", hdr_fmt)
        ws.write(row, 4, "Status", hdr_fmt)
        row += 1
        for m in build_kpis(records, selected_index, mode).values():
            ws.write(row, 0, m.label, normal_fmt)
            ws.write(row, 1, m.current_fmt, normal_fmt)
            ws.write(row, 2, m.previous_fmt, normal_fmt)
            ws.write(row, 3, f"{m.trend} {m.change:+.1f}%", normal_fmt)
            status_text = {"green": "Good", "red": "Concern", "grey": "N/A"}.get(m.status, "N/A")
            ws.write(row, 4, status_text, status_fmts.get(m.status, status_fmts["grey"]))
            row += 1

        flags = detect_red_flags(records, selected_index, mode)
        if flags:
            row += 1
            ws.write(row, 0, "RED FLAGS", wb.add_format({"bold": True, "font_color": "#DC2626", "font_size": 11}))
            row += 1
            flag_fmt = wb.add_format({"font_color": "#DC2626", "text_wrap": True})
            for flag in flags:
                ws.merge_range(row, 0, row, 4, flag, flag_fmt)
                row += 1
    else:
        ws.write(row, 0, "No data loaded", sub_fmt)

    # ── Sheet 2: Monthly ──────────────────────────────────────────────────
    ws2 = wb.add_worksheet(SHEET_MONTHLY)
    ws2.set_column(0, 0, 12)
    ws2.set_column(1, len(MONTHLY_COLUMNS) - 1, 16)
    ws2.freeze_panes(1, 1)

    for col, (_, header, _) in enumerate(MONTHLY_COLUMNS):
        ws2.write(0, col, header, hdr_fmt)
    for r, record in enumerate(records, start=1):
        for col, (field_name, _, kind) in enumerate(MONTHLY_COLUMNS):
            write_value(ws2, r, col, getattr(record, field_name), kind)

    # ── Sheet 3: Expense Breakdown ────────────────────────────────────────
    ws3 = wb.add_worksheet(SHEET_BREAKDOWN)
    ws3.set_column("A:A", 12)
    ws3.set_column("B:B", 30)
    ws3.set_column("C:D", 16)

    ws3.write(0, 0, "Month", hdr_fmt)
    ws3.write(0, 1, "Category", hdr_fmt)
    ws3.write(0, 2, "Amount", hdr_fmt)
    ws3.write(0, 3, "% of Expenses", hdr_fmt)
    b_row = 1
    for record in records:
        if not record.expense_breakdown:
            continue
        ws3.merge_range(b_row, 0, b_row, 3, record.period, section_fmt)
        b_row += 1
        for category in record.expense_breakdown:
            ws3.write(b_row, 0, record.period, normal_fmt)
            ws3.write(b_row, 1, category.name, normal_fmt)
            write_value(ws3, b_row, 2, category.amount, "currency")
            write_value(ws3, b_row, 3, category.percentage, "percentage")
            b_row += 1

    wb.close()
    buffer.seek(0)
    logger.info(f"Excel export built for {len(records)} months")
    return buffer.getvalue()
