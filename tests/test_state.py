import dataclasses
import unittest

from navaroo.forecast.scenario import Adjustment, Deal
from navaroo.metrics.calculator import MOM, YOY
from navaroo.parser.models import MonthlyFinancials
from navaroo.state import SOURCE_DEMO, SOURCE_NONE, DashboardState


def _records(n=3):
    return [MonthlyFinancials(f"M{i}", revenue=100.0 * i) for i in reversed(range(n))]


class TestNavigation(unittest.TestCase):
    def test_empty_state(self):
        state = DashboardState()
        self.assertFalse(state.has_data)
        self.assertIsNone(state.selected)
        self.assertIs(state.select_older(), state)

    def test_with_records_resets_selection(self):
        state = DashboardState().with_records(_records(), SOURCE_DEMO).select_older()
        self.assertEqual(state.selected_index, 1)
        reloaded = state.with_records(_records(5))
        self.assertEqual(reloaded.selected_index, 0)
        self.assertEqual(reloaded.selected.period, "M4")
        self.assertIsInstance(reloaded.records, tuple)

    def test_older_and_newer_are_clamped(self):
        state = DashboardState().with_records(_records(2))
        self.assertTrue(state.can_select_older)
        self.assertFalse(state.can_select_newer)
        self.assertEqual(state.select_newer().selected_index, 0)
        oldest = state.select_older().select_older()
        self.assertEqual(oldest.selected_index, 1)
        self.assertFalse(oldest.can_select_older)
        self.assertEqual(oldest.select_newer().selected.period, "M1")

    def test_transitions_do_not_mutate(self):
        state = DashboardState().with_records(_records())
        state.select_older()
        self.assertEqual(state.selected_index, 0)
        with self.assertRaises(dataclasses.FrozenInstanceError):
            state.selected_index = 2

    def test_comparison_mode(self):
        state = DashboardState()
        self.assertEqual(state.comparison_mode, MOM)
        self.assertEqual(state.with_comparison_mode(YOY).comparison_mode, YOY)
        with self.assertRaises(ValueError):
            state.with_comparison_mode("weekly")

    def test_cleared(self):
        state = DashboardState().with_records(_records(), SOURCE_DEMO).cleared()
        self.assertFalse(state.has_data)
        self.assertEqual(state.source, SOURCE_NONE)


class TestScenario(unittest.TestCase):
    def test_growth(self):
        state = DashboardState().with_growth(revenue_growth=20)
        self.assertEqual(state.scenario.revenue_growth, 20)
        self.assertEqual(state.scenario.expense_growth, 5)
        state = state.with_growth(expense_growth=-5)
        self.assertEqual(state.scenario.revenue_growth, 20)
        self.assertEqual(state.scenario.expense_growth, -5)

    def test_add_and_remove_deals(self):
        a = Deal("A", 1000, "Month +1", 50)
        b = Deal("B", 2000, "Month +2", 75)
        state = DashboardState().with_deal(a).with_deal(b)
        self.assertEqual(state.scenario.deals, (a, b))
        state = state.without_deal(a.id)
        self.assertEqual(state.scenario.deals, (b,))
        self.assertEqual(state.without_deal("missing").scenario.deals, (b,))

    def test_add_and_remove_adjustments(self):
        adj = Adjustment("expense", "Van lease", 400, "Month +2")
        state = DashboardState().with_adjustment(adj)
        self.assertEqual(state.scenario.adjustments, (adj,))
        self.assertEqual(state.without_adjustment(adj.id).scenario.adjustments, ())

    def test_scenario_survives_reload(self):
        deal = Deal("A", 1000, "Month +1")
        state = DashboardState().with_deal(deal).with_records(_records())
        self.assertEqual(state.scenario.deals, (deal,))


if __name__ == "__main__":
    unittest.main()
