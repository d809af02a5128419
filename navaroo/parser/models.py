"""
Typed records produced by the report normalizer.
"""

from dataclasses import dataclass, field, asdict


# ── Parse intermediates ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class HeaderRow:
    """Located header: row position plus period labels and their column offsets."""
    index: int
    periods: list[str]
    columns: dict[str, int]


@dataclass(frozen=True)
class AccountRecord:
    """A single ledger line: display name and per-period value."""
    name: str
    values: dict[str, float] = field(default_factory=dict)

    def value_for(self, period: str) -> float:
        return self.values.get(period, 0.0)


# ── Output records ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ExpenseCategory:
    name: str
    amount: float
    percentage: float


@dataclass(frozen=True)
class BalanceSheetPeriod:
    assets: float = 0.0
    current_assets: float = 0.0
    liabilities: float = 0.0
    current_liabilities: float = 0.0
    equity: float = 0.0
    accounts_receivable: float = 0.0
    accounts_payable: float = 0.0
    working_capital: float = 0.0
    current_ratio: float = 0.0
    # Same as current_ratio: exports carry no separate inventory figure.
    quick_ratio: float = 0.0


BALANCE_SHEET_FIELDS = (
    "assets", "current_assets", "liabilities", "current_liabilities", "equity",
    "accounts_receivable", "accounts_payable", "working_capital",
    "current_ratio", "quick_ratio",
)


@dataclass(frozen=True)
class MonthlyFinancials:
    """Canonical monthly record consumed by the dashboard."""
    period: str
    revenue: float = 0.0
    cost_of_sales: float = 0.0
    gross_profit: float = 0.0
    gross_margin: float = 0.0
    operating_expenses: float = 0.0
    depreciation: float = 0.0
    ebitda: float = 0.0
    ebitda_margin: float = 0.0
    total_expenses: float = 0.0
    net_profit: float = 0.0
    opex_ratio: float = 0.0
    assets: float = 0.0
    current_assets: float = 0.0
    liabilities: float = 0.0
    current_liabilities: float = 0.0
    equity: float = 0.0
    accounts_receivable: float = 0.0
    accounts_payable: float = 0.0
    working_capital: float = 0.0
    current_ratio: float = 0.0
    quick_ratio: float = 0.0
    expense_breakdown: tuple[ExpenseCategory, ...] = ()

    def to_dict(self, include_breakdown: bool = False) -> dict:
        data = asdict(self)
        if not include_breakdown:
            data.pop("expense_breakdown")
        return data

    @property
    def has_balance_sheet(self) -> bool:
        return any(getattr(self, f) for f in BALANCE_SHEET_FIELDS)
