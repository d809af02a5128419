"""
Xero CSV/Excel report normalizer.
Turns Profit & Loss and Balance Sheet exports into a monthly series of
MonthlyFinancials records.

Pipeline (one call per file, no state kept between calls):
- Header locator: find the "Account" header row and the period labels after it
- Account extractor: one AccountRecord per ledger line, headings/totals skipped
- Classifier & aggregator: keyword-bucket each account per period and derive KPIs
- Balance sheet extractor: section totals, receivables/payables, liquidity ratios
- Merger: left-join balance sheet periods onto the P&L periods
"""

import logging
from dataclasses import replace
from datetime import date, datetime

import numpy as np

from navaroo.parser.errors import HeaderNotFoundError
from navaroo.parser.grid_reader import read_grid, read_upload
from navaroo.parser.models import (
    AccountRecord, BalanceSheetPeriod, ExpenseCategory, HeaderRow, MonthlyFinancials,
    BALANCE_SHEET_FIELDS,
)
from navaroo.parser.rules import ClassificationRules, DEFAULT_RULES, matches_any

logger = logging.getLogger(__name__)

PL_LABEL_COL = 0
BS_LABEL_COL = 1

REVENUE = "revenue"
COST_OF_SALES = "cost_of_sales"
DEPRECIATION = "depreciation"
OPERATING_EXPENSE = "operating_expense"

# Balance sheet section phrases, most specific first
BS_SECTION_TOTALS = [
    ("total current assets", "current_assets"),
    ("total current liabilities", "current_liabilities"),
    ("total assets", "assets"),
    ("total liabilities", "liabilities"),
    ("total equity", "equity"),
]

# A total books only while its own section or a child section is active
BS_SECTION_PARENTS = {"current_assets": "assets", "current_liabilities": "liabilities"}


# ── Cell helpers ──────────────────────────────────────────────────────────────

def _cell(row, idx: int):
    if row is None or idx >= len(row):
        return None
    return row[idx]


def _is_empty(val) -> bool:
    if val is None:
        return True
    if isinstance(val, float) and np.isnan(val):
        return True
    return str(val).strip() == ""


def _label(val) -> str:
    return "" if _is_empty(val) else str(val).strip()


def _period_label(val) -> str:
    if isinstance(val, (datetime, date)):
        return val.strftime("%b %Y")
    if isinstance(val, float) and val.is_integer():
        return str(int(val))
    return str(val).strip()


def _clean_amount(val) -> float:
    """Parse a numeric cell. Missing or non-numeric cells count as zero."""
    if val is None or isinstance(val, bool):
        return 0.0
    if isinstance(val, (int, float, np.integer, np.floating)):
        f = float(val)
        return 0.0 if np.isnan(f) or np.isinf(f) else f
    s = str(val).strip()
    if not s or s in ("-", "n/a", "N/A", "—"):
        return 0.0
    negative = s.startswith("(") and s.endswith(")")
    s = s.replace("(", "").replace(")", "")
    s = s.replace("$", "").replace(",", "").replace(" ", "")
    try:
        result = float(s)
    except ValueError:
        return 0.0
    if np.isnan(result) or np.isinf(result):
        return 0.0
    return -result if negative else result


def _safe_pct(numerator: float, denominator: float) -> float:
    return numerator / denominator * 100 if denominator else 0.0


# ── Header locator ────────────────────────────────────────────────────────────

def locate_header(grid: list, target: str = "Account", label_col: int = PL_LABEL_COL,
                  max_rows: int = 10) -> HeaderRow:
    """
    Find the first row (within `max_rows`) whose `label_col` cell equals `target`,
    ignoring case. The non-empty cells after it are the period labels.
    Raises HeaderNotFoundError when no row matches.
    """
    target_lower = target.strip().lower()
    scanned = min(max_rows, len(grid))

    for i in range(scanned):
        row = grid[i] or []
        if _label(_cell(row, label_col)).lower() != target_lower:
            continue

        periods = []
        columns = {}
        for col in range(label_col + 1, len(row)):
            if _is_empty(row[col]):
                continue
            period = _period_label(row[col])
            if period in columns:
                logger.warning(f"Duplicate period label '{period}' in column {col} ignored")
                continue
            periods.append(period)
            columns[period] = col
        logger.info(f"Header row found at index {i} with {len(periods)} periods")
        return HeaderRow(index=i, periods=periods, columns=columns)

    raise HeaderNotFoundError(target, scanned)


# ── Account extractor ─────────────────────────────────────────────────────────

def extract_accounts(grid: list, header: HeaderRow, label_col: int = PL_LABEL_COL,
                     rules: ClassificationRules = DEFAULT_RULES) -> list[AccountRecord]:
    """
    One AccountRecord per data row below the header. Rows with an empty label and
    section/subtotal rows (label equal to or ending with a marker) are skipped.
    """
    accounts = []
    for row in grid[header.index + 1:]:
        row = row or []
        name = _label(_cell(row, label_col))
        if not name:
            continue
        if rules.is_section_marker(name.lower()):
            continue
        values = {
            period: _clean_amount(_cell(row, col))
            for period, col in header.columns.items()
        }
        accounts.append(AccountRecord(name=name, values=values))
    return accounts


# ── Classifier & aggregator ───────────────────────────────────────────────────

def classify_account(name: str, value: float,
                     rules: ClassificationRules = DEFAULT_RULES) -> str | None:
    """
    Bucket an account for one period. Precedence: revenue, cost of sales,
    depreciation, then operating expense for strictly positive values.
    Returns None when the value is ignored for the period.
    """
    name_lower = name.lower()
    if matches_any(name_lower, rules.revenue):
        return REVENUE
    if matches_any(name_lower, rules.cost_of_sales):
        return COST_OF_SALES
    if matches_any(name_lower, rules.depreciation):
        return DEPRECIATION
    if value > 0:
        return OPERATING_EXPENSE
    return None


def categorise_expense(name: str, rules: ClassificationRules = DEFAULT_RULES) -> str:
    """Expense breakdown category for an operating expense account."""
    name_lower = name.lower()
    for category, keywords in rules.expense_categories:
        if matches_any(name_lower, keywords):
            return category
    return rules.default_category


def _build_breakdown(categories: dict[str, float], total_expenses: float) -> tuple[ExpenseCategory, ...]:
    items = [
        ExpenseCategory(name=name, amount=amount, percentage=_safe_pct(amount, total_expenses))
        for name, amount in categories.items()
        if amount
    ]
    items.sort(key=lambda c: c.amount, reverse=True)
    return tuple(items)


def aggregate_period(period: str, accounts: list[AccountRecord],
                     rules: ClassificationRules = DEFAULT_RULES) -> MonthlyFinancials:
    """Classify every account for `period` and derive the period's P&L metrics."""
    revenue = 0.0
    cost_of_sales = 0.0
    operating_expenses = 0.0
    depreciation = 0.0
    categories: dict[str, float] = {}

    for account in accounts:
        value = account.value_for(period)
        bucket = classify_account(account.name, value, rules)

        if bucket == REVENUE:
            revenue += abs(value)
        elif bucket == COST_OF_SALES:
            cost_of_sales += abs(value)
        elif bucket == DEPRECIATION:
            depreciation += abs(value)
            operating_expenses += abs(value)
        elif bucket == OPERATING_EXPENSE:
            operating_expenses += value
            category = categorise_expense(account.name, rules)
            categories[category] = categories.get(category, 0.0) + value

    gross_profit = revenue - cost_of_sales
    total_expenses = cost_of_sales + operating_expenses
    net_profit = revenue - total_expenses
    ebitda = net_profit + depreciation

    # Cost of sales and D&A sit outside the opex categories; add them so the
    # breakdown covers total expenses
    if cost_of_sales:
        categories[rules.cost_of_sales_category] = (
            categories.get(rules.cost_of_sales_category, 0.0) + cost_of_sales
        )
    if depreciation:
        categories[rules.depreciation_category] = (
            categories.get(rules.depreciation_category, 0.0) + depreciation
        )

    return MonthlyFinancials(
        period=period,
        revenue=revenue,
        cost_of_sales=cost_of_sales,
        gross_profit=gross_profit,
        gross_margin=_safe_pct(gross_profit, revenue),
        operating_expenses=operating_expenses,
        depreciation=depreciation,
        ebitda=ebitda,
        ebitda_margin=_safe_pct(ebitda, revenue),
        total_expenses=total_expenses,
        net_profit=net_profit,
        opex_ratio=_safe_pct(operating_expenses, revenue),
        expense_breakdown=_build_breakdown(categories, total_expenses),
    )


def parse_profit_loss_grid(grid: list, rules: ClassificationRules | None = None) -> list[MonthlyFinancials]:
    """
    Normalize a Profit & Loss grid (label in column 0, periods from column 1).
    Returns one record per period in header order; balance sheet fields are zero.
    An export with no periods or no accounts yields an empty list.
    """
    rules = rules or DEFAULT_RULES
    header = locate_header(grid, rules.header_label, PL_LABEL_COL, rules.header_scan_rows)
    accounts = extract_accounts(grid, header, PL_LABEL_COL, rules)

    if not header.periods or not accounts:
        logger.info(
            f"P&L parse produced no data ({len(header.periods)} periods, {len(accounts)} accounts)"
        )
        return []

    records = [aggregate_period(period, accounts, rules) for period in header.periods]
    logger.info(f"P&L parsed: {len(accounts)} accounts across {len(records)} periods")
    return records


# ── Balance sheet extractor ───────────────────────────────────────────────────

def _next_section(label_lower: str, current: str | None) -> str | None:
    """Section state transition for a balance sheet label."""
    non_current = "non-current" in label_lower or "noncurrent" in label_lower or "non current" in label_lower
    if label_lower == "assets":
        return "assets"
    if "current assets" in label_lower:
        return "assets" if non_current else "current_assets"
    if "current liabilities" in label_lower:
        return "liabilities" if non_current else "current_liabilities"
    if "liabilities" in label_lower:
        return "liabilities"
    if label_lower == "equity":
        return "equity"
    return current


def _section_total_field(label_lower: str) -> str | None:
    if "and equity" in label_lower or "& equity" in label_lower:
        return None
    if "non-current" in label_lower or "noncurrent" in label_lower or "non current" in label_lower:
        return None
    for phrase, field_name in BS_SECTION_TOTALS:
        if phrase in label_lower:
            return field_name
    return None


def parse_balance_sheet_grid(grid: list,
                             rules: ClassificationRules | None = None) -> dict[str, BalanceSheetPeriod]:
    """
    Normalize a Balance Sheet grid (label column 0, "Account" header in column 1,
    periods from column 2). Section totals come from the "Total ..." rows, not from
    summing line items, and only count while that section (or one of its current
    subsections) is active. Receivables and payables are summed from the account
    column wherever they appear.
    """
    rules = rules or DEFAULT_RULES
    header = locate_header(grid, rules.header_label, BS_LABEL_COL, rules.header_scan_rows)
    data_rows = grid[header.index + 1:]

    if not header.periods or not data_rows:
        logger.info("Balance sheet parse produced no data")
        return {}

    totals = {period: {f: 0.0 for f in BALANCE_SHEET_FIELDS} for period in header.periods}
    current_section = None

    for row in data_rows:
        row = row or []
        label_lower = _label(_cell(row, 0)).lower()
        account_lower = _label(_cell(row, 1)).lower()

        if label_lower:
            section = _next_section(label_lower, current_section)
            if section != current_section:
                logger.debug(f"Balance sheet section: {current_section} -> {section}")
                current_section = section

            total_field = _section_total_field(label_lower)
            if total_field is not None:
                if total_field in (current_section, BS_SECTION_PARENTS.get(current_section)):
                    for period, col in header.columns.items():
                        totals[period][total_field] = abs(_clean_amount(_cell(row, col)))
                else:
                    logger.debug(f"Ignoring \"{label_lower}\" outside its section (active: {current_section})")

        if account_lower:
            if matches_any(account_lower, rules.receivable):
                for period, col in header.columns.items():
                    totals[period]["accounts_receivable"] += abs(_clean_amount(_cell(row, col)))
            if matches_any(account_lower, rules.payable):
                for period, col in header.columns.items():
                    totals[period]["accounts_payable"] += abs(_clean_amount(_cell(row, col)))

    result = {}
    for period, t in totals.items():
        current_assets = t["current_assets"]
        current_liabilities = t["current_liabilities"]
        current_ratio = current_assets / current_liabilities if current_liabilities else 0.0
        result[period] = BalanceSheetPeriod(
            assets=t["assets"],
            current_assets=current_assets,
            liabilities=t["liabilities"],
            current_liabilities=current_liabilities,
            equity=t["equity"],
            accounts_receivable=t["accounts_receivable"],
            accounts_payable=t["accounts_payable"],
            working_capital=current_assets - current_liabilities,
            current_ratio=current_ratio,
            # No inventory line in the export, so the quick ratio cannot exclude it
            quick_ratio=current_ratio,
        )
    logger.info(f"Balance sheet parsed across {len(result)} periods")
    return result


# ── Merger ────────────────────────────────────────────────────────────────────

def merge_financial_data(pl_data: list[MonthlyFinancials],
                         bs_data: dict[str, BalanceSheetPeriod]) -> list[MonthlyFinancials]:
    """
    Left-join balance sheet figures onto P&L periods by label. Output order and
    length follow `pl_data`; unmatched balance sheet periods are dropped.
    """
    empty = BalanceSheetPeriod()
    merged = []
    for record in pl_data:
        bs = bs_data.get(record.period, empty)
        merged.append(replace(record, **{f: getattr(bs, f) for f in BALANCE_SHEET_FIELDS}))
    return merged


# ── Public file parse functions ───────────────────────────────────────────────

def parse_xero_pl(uploaded_file, rules: ClassificationRules | None = None) -> list[MonthlyFinancials]:
    """Parse an uploaded Xero Profit & Loss export."""
    name, content = read_upload(uploaded_file)
    return parse_profit_loss_grid(read_grid(content, name), rules)


def parse_xero_balance_sheet(uploaded_file,
                             rules: ClassificationRules | None = None) -> dict[str, BalanceSheetPeriod]:
    """Parse an uploaded Xero Balance Sheet export."""
    name, content = read_upload(uploaded_file)
    return parse_balance_sheet_grid(read_grid(content, name), rules)


# ── Demo data ─────────────────────────────────────────────────────────────────

DEMO_MONTHS = ["Jun 2025", "May 2025", "Apr 2025", "Mar 2025", "Feb 2025", "Jan 2025"]

DEMO_PL_GRID = [
    ["Profit and Loss"],
    ["Demo Trading Pty Ltd"],
    ["For the 6 months ended 30 June 2025"],
    ["Account", *DEMO_MONTHS],
    ["Trading Income"],
    ["Sales", 148_500, 139_200, 142_800, 131_000, 118_400, 121_900],
    ["Interest Income", 210, 195, 188, 176, 170, 165],
    ["Total Trading Income", 148_710, 139_395, 142_988, 131_176, 118_570, 122_065],
    ["Cost of Sales"],
    ["Cost of Materials", 52_300, 49_100, 50_750, 46_200, 41_900, 43_300],
    ["Subcontractors - cost of labour", 18_400, 17_250, 17_900, 16_300, 14_800, 15_100],
    ["Total Cost of Sales", 70_700, 66_350, 68_650, 62_500, 56_700, 58_400],
    ["Gross Profit", 78_010, 73_045, 74_338, 68_676, 61_870, 63_665],
    ["Operating Expenses"],
    ["Wages and Salaries", 31_500, 31_500, 30_900, 30_900, 29_800, 29_800],
    ["Superannuation", 3_620, 3_620, 3_550, 3_550, 3_430, 3_430],
    ["Workcover Insurance", 1_150, 1_150, 1_150, 1_150, 1_150, 1_150],
    ["Rent", 6_200, 6_200, 6_200, 6_200, 6_200, 6_200],
    ["Equipment Hire", 2_480, 1_960, 2_210, 1_870, 1_640, 1_720],
    ["Motor Vehicle Expenses", 1_940, 1_810, 1_880, 1_760, 1_590, 1_620],
    ["Accounting Fees", 950, 950, 950, 950, 950, 2_400],
    ["Software Subscriptions", 780, 780, 760, 760, 760, 760],
    ["Advertising", 1_500, 900, 1_200, 800, 600, 650],
    ["Depreciation", 2_100, 2_100, 2_100, 2_100, 2_100, 2_100],
    ["General Expenses", 640, 590, 610, 560, 520, 540],
    ["Total Operating Expenses", 52_860, 51_560, 51_510, 50_600, 48_740, 50_370],
    ["Net Profit", 25_150, 21_485, 22_828, 18_076, 13_130, 13_295],
]

DEMO_BS_GRID = [
    ["Balance Sheet"],
    ["Demo Trading Pty Ltd"],
    ["", "Account", *DEMO_MONTHS],
    ["Assets"],
    ["Current Assets"],
    ["", "Business Bank Account", 84_200, 71_900, 63_400, 55_100, 49_800, 52_300],
    ["", "Accounts Receivable", 96_300, 91_800, 94_100, 88_700, 79_600, 81_200],
    ["Total Current Assets", "", 180_500, 163_700, 157_500, 143_800, 129_400, 133_500],
    ["Non-current Assets"],
    ["", "Plant and Equipment", 126_000, 128_100, 130_200, 132_300, 134_400, 136_500],
    ["Total Non-current Assets", "", 126_000, 128_100, 130_200, 132_300, 134_400, 136_500],
    ["Total Assets", "", 306_500, 291_800, 287_700, 276_100, 263_800, 270_000],
    ["Liabilities"],
    ["Current Liabilities"],
    ["", "Accounts Payable", 41_700, 39_200, 40_800, 37_900, 34_100, 35_600],
    ["", "GST", 9_800, 9_100, 9_400, 8_700, 7_900, 8_100],
    ["Total Current Liabilities", "", 51_500, 48_300, 50_200, 46_600, 42_000, 43_700],
    ["Non-current Liabilities"],
    ["", "Equipment Loan", 58_000, 61_000, 64_000, 67_000, 70_000, 73_000],
    ["Total Non-current Liabilities", "", 58_000, 61_000, 64_000, 67_000, 70_000, 73_000],
    ["Total Liabilities", "", 109_500, 109_300, 114_200, 113_600, 112_000, 116_700],
    ["Net Assets", "", 197_000, 182_500, 173_500, 162_500, 151_800, 153_300],
    ["Equity"],
    ["", "Retained Earnings", 197_000, 182_500, 173_500, 162_500, 151_800, 153_300],
    ["Total Equity", "", 197_000, 182_500, 173_500, 162_500, 151_800, 153_300],
]


def get_demo_data() -> list[MonthlyFinancials]:
    """Sample monthly records for demonstration, run through the full parse path."""
    pl = parse_profit_loss_grid(DEMO_PL_GRID)
    bs = parse_balance_sheet_grid(DEMO_BS_GRID)
    return merge_financial_data(pl, bs)
