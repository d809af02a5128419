"""
Scenario forecast.

Projects the next twelve months from the most recent actual month using annual
revenue and expense growth rates, then layers on probability-weighted pipeline
deals and one-off adjustments. Forecast months are labelled "Month +1" ... "Month +12".
"""

import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_FLOOR

from navaroo.parser.models import MonthlyFinancials

logger = logging.getLogger(__name__)

HORIZON_MONTHS = 12
REVENUE_GROWTH_RANGE = (-20, 50)
EXPENSE_GROWTH_RANGE = (-10, 30)
QUICK_FORECAST_EXPENSE_UPLIFT = 1.05

ADJUSTMENT_REVENUE = "revenue"
ADJUSTMENT_EXPENSE = "expense"


def month_label(offset: int) -> str:
    return f"Month +{offset}"


def forecast_month_labels(horizon: int = HORIZON_MONTHS) -> list[str]:
    return [month_label(i) for i in range(1, horizon + 1)]


def _round(value: float) -> int:
    # Halves go toward positive infinity: 2.5 -> 3, -2.5 -> -2
    return int((Decimal(str(value)) + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR))


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


# ── Inputs ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Deal:
    name: str
    amount: float
    month: str
    probability: float = 50
    id: str = field(default_factory=_new_id)

    def __post_init__(self):
        if not self.name.strip():
            raise ValueError("Deal name is required")
        if self.amount < 0:
            raise ValueError(f"Deal amount must not be negative, got {self.amount}")
        if not 0 <= self.probability <= 100:
            raise ValueError(f"Deal probability must be between 0 and 100, got {self.probability}")
        if not self.month:
            raise ValueError("Deal month is required")

    @property
    def weighted_amount(self) -> float:
        return self.amount * self.probability / 100


@dataclass(frozen=True)
class Adjustment:
    kind: str            # 'revenue' or 'expense'
    description: str
    amount: float
    month: str
    id: str = field(default_factory=_new_id)

    def __post_init__(self):
        if self.kind not in (ADJUSTMENT_REVENUE, ADJUSTMENT_EXPENSE):
            raise ValueError(f"Adjustment kind must be 'revenue' or 'expense', got {self.kind!r}")
        if not self.description.strip():
            raise ValueError("Adjustment description is required")
        if self.amount < 0:
            raise ValueError(f"Adjustment amount must not be negative, got {self.amount}")
        if not self.month:
            raise ValueError("Adjustment month is required")

    @property
    def signed_amount(self) -> float:
        return self.amount if self.kind == ADJUSTMENT_REVENUE else -self.amount


@dataclass(frozen=True)
class ScenarioInputs:
    revenue_growth: float = 10     # annual %, slider range -20..50
    expense_growth: float = 5      # annual %, slider range -10..30
    deals: tuple[Deal, ...] = ()
    adjustments: tuple[Adjustment, ...] = ()


# ── Outputs ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ForecastPoint:
    month: str
    base_revenue: int
    revenue: int
    expenses: int
    profit: int
    deal_revenue: int


def pipeline_value(inputs: ScenarioInputs) -> float:
    """Probability-weighted value of all pipeline deals."""
    return sum(d.weighted_amount for d in inputs.deals)


def net_adjustments(inputs: ScenarioInputs) -> float:
    """Revenue adjustments less expense adjustments."""
    return sum(a.signed_amount for a in inputs.adjustments)


def generate_forecast(history: list[MonthlyFinancials], inputs: ScenarioInputs,
                      horizon: int = HORIZON_MONTHS) -> list[ForecastPoint]:
    """
    Forecast `horizon` months from the newest record in `history` (records are
    newest first). Growth compounds monthly from the annual rate:
    base(i) = last * (1 + rate/100) ** (i/12).
    """
    if not history:
        return []

    last = history[0]
    forecast = []
    for i in range(1, horizon + 1):
        label = month_label(i)
        base_revenue = last.revenue * (1 + inputs.revenue_growth / 100) ** (i / 12)
        base_expenses = last.total_expenses * (1 + inputs.expense_growth / 100) ** (i / 12)

        deal_revenue = sum(d.weighted_amount for d in inputs.deals if d.month == label)
        rev_adjustments = sum(
            a.amount for a in inputs.adjustments
            if a.kind == ADJUSTMENT_REVENUE and a.month == label
        )
        exp_adjustments = sum(
            a.amount for a in inputs.adjustments
            if a.kind == ADJUSTMENT_EXPENSE and a.month == label
        )

        total_revenue = base_revenue + deal_revenue + rev_adjustments
        total_expenses = base_expenses + exp_adjustments

        forecast.append(ForecastPoint(
            month=label,
            base_revenue=_round(base_revenue),
            revenue=_round(total_revenue),
            expenses=_round(total_expenses),
            profit=_round(total_revenue - total_expenses),
            deal_revenue=_round(deal_revenue),
        ))

    logger.debug(f"Generated {len(forecast)}-month forecast from {last.period}")
    return forecast


def quick_forecast(history: list[MonthlyFinancials], projected_revenue: float,
                   months: int = 12) -> list[dict]:
    """
    Trend series (oldest first) with one extra "Forecast" point: the projected
    revenue against the newest month's expenses uplifted by 5%.
    """
    if projected_revenue <= 0:
        raise ValueError("Projected revenue must be greater than zero")

    trend = [
        {"month": r.period, "revenue": r.revenue, "expenses": r.total_expenses, "profit": r.net_profit}
        for r in reversed(history[:months])
    ]
    if not history:
        return trend

    expenses = history[0].total_expenses * QUICK_FORECAST_EXPENSE_UPLIFT
    trend.append({
        "month": "Forecast",
        "revenue": projected_revenue,
        "expenses": expenses,
        "profit": projected_revenue - expenses,
    })
    return trend
