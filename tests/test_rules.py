import json
import os
import tempfile
import unittest
from unittest import mock

from navaroo.parser.rules import (
    DEFAULT_RULES, KeywordRule, load_rules, matches_any, rules_from_dict,
)
from navaroo.parser.xero_parser import categorise_expense, classify_account, parse_profit_loss_grid


class TestKeywordRule(unittest.TestCase):
    def test_exclusion(self):
        rule = KeywordRule("income", exclude=("cost",))
        self.assertTrue(rule.matches("other income"))
        self.assertFalse(rule.matches("cost of income"))

    def test_matches_any(self):
        self.assertTrue(matches_any("accounts receivable", DEFAULT_RULES.receivable))
        self.assertFalse(matches_any("bank", DEFAULT_RULES.receivable))

    def test_section_markers(self):
        self.assertTrue(DEFAULT_RULES.is_section_marker("gross profit"))
        self.assertTrue(DEFAULT_RULES.is_section_marker("total other income"))
        self.assertFalse(DEFAULT_RULES.is_section_marker("cost of materials"))


class TestRulesOverride(unittest.TestCase):
    def test_revenue_keywords_replaced(self):
        rules = rules_from_dict({"revenue": ["fees received", {"keyword": "Grant", "exclude": ["repay"]}]})
        self.assertEqual(classify_account("Fees Received", 10, rules), "revenue")
        self.assertEqual(classify_account("Grant Income", 10, rules), "revenue")
        self.assertEqual(classify_account("Grant Repayment", 10, rules), "operating_expense")
        # "sales" is no longer a revenue keyword
        self.assertEqual(classify_account("Sales", 10, rules), "operating_expense")

    def test_expense_categories_replaced(self):
        rules = rules_from_dict({
            "expense_categories": [["Technology", ["software", "cloud"]]],
            "default_category": "Sundry",
        })
        self.assertEqual(categorise_expense("Cloud Hosting", rules), "Technology")
        self.assertEqual(categorise_expense("Rent", rules), "Sundry")
        self.assertEqual(categorise_expense("Rent"), "Rent")

    def test_header_label_override(self):
        rules = rules_from_dict({"header_label": "Account Name"})
        records = parse_profit_loss_grid([["Account Name", "Jan 2025"], ["Sales", "10"]], rules)
        self.assertEqual(records[0].revenue, 10)

    def test_unknown_key_rejected(self):
        with self.assertRaises(ValueError):
            rules_from_dict({"revenu": ["sales"]})

    def test_defaults_untouched(self):
        rules_from_dict({"revenue": ["fees"]})
        self.assertEqual(classify_account("Sales", 10), "revenue")


class TestLoadRules(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def _write(self, name, text):
        path = os.path.join(self.tmp.name, name)
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)
        return path

    def test_defaults_without_file(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(load_rules(), DEFAULT_RULES)

    def test_file_from_env(self):
        path = self._write("rules.json", json.dumps({"section_markers": ["Gross Profit"]}))
        with mock.patch.dict(os.environ, {"NAVAROO_RULES_FILE": path}, clear=True):
            rules = load_rules()
        self.assertEqual(rules.section_markers, ("gross profit",))

    def test_invalid_file_falls_back_to_defaults(self):
        path = self._write("broken.json", "{not json")
        with mock.patch.dict(os.environ, {}, clear=True):
            with self.assertLogs("navaroo.parser.rules", level="ERROR"):
                rules = load_rules(path)
        self.assertEqual(rules, DEFAULT_RULES)

    def test_missing_file_falls_back_to_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            with self.assertLogs("navaroo.parser.rules", level="ERROR"):
                rules = load_rules(os.path.join(self.tmp.name, "absent.json"))
        self.assertEqual(rules, DEFAULT_RULES)

    def test_scan_rows_from_env(self):
        with mock.patch.dict(os.environ, {"NAVAROO_HEADER_SCAN_ROWS": "25"}, clear=True):
            self.assertEqual(load_rules().header_scan_rows, 25)
        with mock.patch.dict(os.environ, {"NAVAROO_HEADER_SCAN_ROWS": "many"}, clear=True):
            self.assertEqual(load_rules().header_scan_rows, 10)


if __name__ == "__main__":
    unittest.main()
