"""
Dashboard view state.

The loaded records plus everything the user has selected: the month in view, the
comparison mode and the forecast scenario. Every transition returns a new state,
so the Streamlit session only ever swaps one object.
"""

import logging
from dataclasses import dataclass, field, replace

from navaroo.forecast.scenario import Adjustment, Deal, ScenarioInputs
from navaroo.metrics.calculator import COMPARISON_OFFSETS, MOM
from navaroo.parser.models import MonthlyFinancials

logger = logging.getLogger(__name__)

SOURCE_NONE = "none"
SOURCE_UPLOAD = "upload"
SOURCE_XERO = "xero"
SOURCE_DEMO = "demo"


@dataclass(frozen=True)
class DashboardState:
    records: tuple[MonthlyFinancials, ...] = ()
    selected_index: int = 0        # 0 = newest month
    comparison_mode: str = MOM
    scenario: ScenarioInputs = field(default_factory=ScenarioInputs)
    source: str = SOURCE_NONE

    # ── Derived ───────────────────────────────────────────────────────────────

    @property
    def has_data(self) -> bool:
        return bool(self.records)

    @property
    def selected(self) -> MonthlyFinancials | None:
        return self.records[self.selected_index] if self.records else None

    @property
    def can_select_older(self) -> bool:
        return self.selected_index < len(self.records) - 1

    @property
    def can_select_newer(self) -> bool:
        return self.selected_index > 0

    # ── Data ──────────────────────────────────────────────────────────────────

    def with_records(self, records, source: str = SOURCE_UPLOAD) -> "DashboardState":
        """Replace the loaded data and jump back to the newest month."""
        logger.info(f"Dashboard loaded {len(records)} months from {source}")
        return replace(self, records=tuple(records), selected_index=0, source=source)

    def cleared(self) -> "DashboardState":
        return replace(self, records=(), selected_index=0, source=SOURCE_NONE)

    # ── Navigation ────────────────────────────────────────────────────────────

    def select(self, index: int) -> "DashboardState":
        if not self.records:
            return self
        index = max(0, min(index, len(self.records) - 1))
        return replace(self, selected_index=index)

    def select_older(self) -> "DashboardState":
        return self.select(self.selected_index + 1)

    def select_newer(self) -> "DashboardState":
        return self.select(self.selected_index - 1)

    def with_comparison_mode(self, mode: str) -> "DashboardState":
        if mode not in COMPARISON_OFFSETS:
            raise ValueError(f"Unknown comparison mode: {mode}")
        return replace(self, comparison_mode=mode)

    # ── Scenario ──────────────────────────────────────────────────────────────

    def with_growth(self, revenue_growth: float | None = None,
                    expense_growth: float | None = None) -> "DashboardState":
        scenario = self.scenario
        if revenue_growth is not None:
            scenario = replace(scenario, revenue_growth=revenue_growth)
        if expense_growth is not None:
            scenario = replace(scenario, expense_growth=expense_growth)
        return replace(self, scenario=scenario)

    def with_deal(self, deal: Deal) -> "DashboardState":
        scenario = replace(self.scenario, deals=self.scenario.deals + (deal,))
        return replace(self, scenario=scenario)

    def without_deal(self, deal_id: str) -> "DashboardState":
        deals = tuple(d for d in self.scenario.deals if d.id != deal_id)
        return replace(self, scenario=replace(self.scenario, deals=deals))

    def with_adjustment(self, adjustment: Adjustment) -> "DashboardState":
        adjustments = self.scenario.adjustments + (adjustment,)
        return replace(self, scenario=replace(self.scenario, adjustments=adjustments))

    def without_adjustment(self, adjustment_id: str) -> "DashboardState":
        adjustments = tuple(a for a in self.scenario.adjustments if a.id != adjustment_id)
        return replace(self, scenario=replace(self.scenario, adjustments=adjustments))
