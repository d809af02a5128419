"""
Dashboard KPI calculator.
Builds the KPI cards for a selected month against a comparison month
(month-over-month or year-over-year), the trend series and red flags.
"""

from dataclasses import dataclass
from typing import Optional
import logging

import pandas as pd

from navaroo.parser.models import MonthlyFinancials
from navaroo.utils.formatters import format_metric

logger = logging.getLogger(__name__)

MOM = "mom"
YOY = "yoy"
COMPARISON_OFFSETS = {MOM: 1, YOY: 12}
COMPARISON_LABELS = {MOM: "MoM", YOY: "YoY"}


# ── Data structures ───────────────────────────────────────────────────────────

@dataclass
class MetricResult:
    """A single KPI card: value, change vs comparison month and status."""
    name: str
    label: str
    current: Optional[float]
    previous: Optional[float]
    change: float
    format_type: str         # 'currency', 'percentage', 'ratio'
    category: str            # 'headline', 'margin', 'balance_sheet'
    higher_is_better: bool = True
    trend: str = "–"         # '↑', '↓', '→', '–'
    status: str = "grey"     # 'green', 'red', 'grey'
    tooltip: str = ""

    def formatted(self, value: Optional[float]) -> str:
        return format_metric(value, self.format_type)

    @property
    def current_fmt(self) -> str:
        return self.formatted(self.current)

    @property
    def previous_fmt(self) -> str:
        return self.formatted(self.previous)


# (name, label, format_type, category, higher_is_better, tooltip)
KPI_DEFINITIONS = [
    ("revenue", "Revenue", "currency", "headline", True,
     "Sales and other income for the month"),
    ("gross_profit", "Gross Profit", "currency", "headline", True,
     "Revenue less cost of sales"),
    ("ebitda", "EBITDA", "currency", "headline", True,
     "Net profit with depreciation and amortisation added back"),
    ("net_profit", "Net Profit", "currency", "headline", True,
     "Revenue less cost of sales and operating expenses"),
    ("gross_margin", "Gross Margin", "percentage", "margin", True,
     "Gross profit as a percentage of revenue"),
    ("ebitda_margin", "EBITDA Margin", "percentage", "margin", True,
     "EBITDA as a percentage of revenue"),
    ("opex_ratio", "OpEx Ratio", "percentage", "margin", False,
     "Operating expenses as a percentage of revenue"),
    ("working_capital", "Working Capital", "currency", "margin", True,
     "Current assets less current liabilities"),
    ("current_ratio", "Current Ratio", "ratio", "balance_sheet", True,
     "Current assets divided by current liabilities"),
    ("quick_ratio", "Quick Ratio", "ratio", "balance_sheet", True,
     "Same as the current ratio: the export has no separate inventory figure"),
    ("accounts_receivable", "Accounts Receivable", "currency", "balance_sheet", True,
     "Amounts owed by customers"),
    ("accounts_payable", "Accounts Payable", "currency", "balance_sheet", False,
     "Amounts owed to suppliers"),
]


# ── Helper functions ──────────────────────────────────────────────────────────

def calc_change(current: Optional[float], previous: Optional[float]) -> float:
    """Percentage change against |previous|; 0 when there is nothing to compare."""
    if current is None or not previous:
        return 0.0
    return (current - previous) / abs(previous) * 100


def comparison_index(selected_index: int, mode: str = MOM) -> int:
    if mode not in COMPARISON_OFFSETS:
        raise ValueError(f"Unknown comparison mode: {mode}")
    return selected_index + COMPARISON_OFFSETS[mode]


def comparison_record(records: list[MonthlyFinancials], selected_index: int,
                      mode: str = MOM) -> Optional[MonthlyFinancials]:
    """Record to compare against. Records are newest first, so older months sit later."""
    idx = comparison_index(selected_index, mode)
    return records[idx] if 0 <= idx < len(records) else None


def _trend(current: Optional[float], previous: Optional[float], higher_better: bool = True) -> str:
    if current is None or previous is None:
        return "–"
    if abs(current - previous) < 0.001:
        return "→"
    if current > previous:
        return "↑" if higher_better else "↓"
    return "↓" if higher_better else "↑"


def _status(change: float, has_comparison: bool, higher_better: bool) -> str:
    if not has_comparison:
        return "grey"
    if higher_better:
        return "green" if change >= 0 else "red"
    return "green" if change <= 0 else "red"


# ── KPI cards ─────────────────────────────────────────────────────────────────

def build_kpis(records: list[MonthlyFinancials], selected_index: int = 0,
               mode: str = MOM) -> dict[str, MetricResult]:
    """KPI cards for the selected month, keyed by field name."""
    if not records:
        return {}
    selected_index = max(0, min(selected_index, len(records) - 1))
    cur = records[selected_index]
    prev = comparison_record(records, selected_index, mode)

    metrics = {}
    for name, label, fmt, category, higher_better, tooltip in KPI_DEFINITIONS:
        value = getattr(cur, name)
        prev_value = getattr(prev, name) if prev is not None else None
        change = calc_change(value, prev_value) if prev is not None else 0.0
        metrics[name] = MetricResult(
            name=name,
            label=label,
            current=value,
            previous=prev_value,
            change=change,
            format_type=fmt,
            category=category,
            higher_is_better=higher_better,
            trend=_trend(value, prev_value, higher_better),
            status=_status(change, prev is not None, higher_better),
            tooltip=tooltip,
        )
    return metrics


def detect_red_flags(records: list[MonthlyFinancials], selected_index: int = 0,
                     mode: str = MOM) -> list[str]:
    """Plain-English warnings for the selected month."""
    if not records:
        return []
    selected_index = max(0, min(selected_index, len(records) - 1))
    cur = records[selected_index]
    prev = comparison_record(records, selected_index, mode)
    flags = []

    if cur.revenue and cur.net_profit < 0:
        flags.append(f"⚠️ Net loss of ${abs(cur.net_profit):,.0f} in {cur.period}.")

    if cur.has_balance_sheet and cur.current_liabilities and cur.current_ratio < 1:
        flags.append(
            f"⚠️ Current ratio of {cur.current_ratio:.2f}:1, current liabilities exceed current assets."
        )

    if cur.revenue and cur.opex_ratio > 100:
        flags.append(f"⚠️ Operating expenses are {cur.opex_ratio:.1f}% of revenue.")

    if prev is not None and prev.revenue and cur.revenue:
        margin_drop = prev.gross_margin - cur.gross_margin
        if margin_drop > 5:
            flags.append(
                f"⚠️ Gross margin fell {margin_drop:.1f} points vs {prev.period}: check pricing and direct costs."
            )
        rev_change = calc_change(cur.revenue, prev.revenue)
        exp_change = calc_change(cur.total_expenses, prev.total_expenses)
        if exp_change > rev_change + 2 and exp_change > 0:
            flags.append(
                f"⚠️ Expenses ({exp_change:.1f}% change) growing faster than revenue "
                f"({rev_change:.1f}% change), margin pressure."
            )

    return flags


# ── Series for charts and tables ──────────────────────────────────────────────

def records_frame(records: list[MonthlyFinancials]) -> pd.DataFrame:
    """One row per period, in the order given."""
    return pd.DataFrame([r.to_dict() for r in records])


def trend_frame(records: list[MonthlyFinancials], months: int = 12) -> pd.DataFrame:
    """The most recent `months` periods, oldest first, for trend charts."""
    recent = list(reversed(records[:months]))
    df = records_frame(recent)
    if df.empty:
        return pd.DataFrame(columns=["period", "revenue", "total_expenses", "net_profit"])
    return df


def breakdown_frame(record: MonthlyFinancials) -> pd.DataFrame:
    return pd.DataFrame(
        [{"category": c.name, "amount": c.amount, "percentage": c.percentage}
         for c in record.expense_breakdown],
        columns=["category", "amount", "percentage"],
    )


HISTORY_COLUMNS = [
    ("period", "Month"),
    ("revenue", "Revenue"),
    ("gross_profit", "Gross Profit"),
    ("ebitda", "EBITDA"),
    ("net_profit", "Net Profit"),
    ("gross_margin", "Margin %"),
]


def historical_frame(records: list[MonthlyFinancials], months: int = 12) -> pd.DataFrame:
    """Historical performance table, newest first."""
    df = records_frame(records[:months])
    if df.empty:
        return pd.DataFrame(columns=[label for _, label in HISTORY_COLUMNS])
    df = df[[key for key, _ in HISTORY_COLUMNS]]
    return df.rename(columns=dict(HISTORY_COLUMNS))
