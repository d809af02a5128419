"""
Keyword rules for classifying free-text account names.

Exported account names carry no stable taxonomy, so every account is bucketed by
case-insensitive substring matching. The groups are evaluated in a fixed order
(revenue, cost of sales, depreciation, then the operating-expense default) and the
first match wins. The tables can be replaced per organisation with a JSON file:

    {
      "revenue": ["sales", "interest income", {"keyword": "income", "exclude": ["cost"]}],
      "expense_categories": [["Wages & Salaries", ["wage", "salary"]], ...],
      "section_markers": ["gross profit", ...]
    }

Any key left out of the file keeps its default.
"""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

logger = logging.getLogger(__name__)

RULES_FILE_ENV = "NAVAROO_RULES_FILE"


@dataclass(frozen=True)
class KeywordRule:
    """Matches when `keyword` is in the name and none of `exclude` are."""
    keyword: str
    exclude: tuple[str, ...] = ()

    def matches(self, name_lower: str) -> bool:
        if self.keyword not in name_lower:
            return False
        return not any(ex in name_lower for ex in self.exclude)


def _rules(*items) -> tuple[KeywordRule, ...]:
    out = []
    for item in items:
        if isinstance(item, KeywordRule):
            out.append(item)
        elif isinstance(item, str):
            out.append(KeywordRule(item.lower()))
        elif isinstance(item, dict):
            out.append(KeywordRule(
                str(item["keyword"]).lower(),
                tuple(str(e).lower() for e in item.get("exclude", ())),
            ))
        else:
            raise ValueError(f"Invalid keyword rule: {item!r}")
    return tuple(out)


def matches_any(name_lower: str, rules: tuple[KeywordRule, ...]) -> bool:
    return any(r.matches(name_lower) for r in rules)


# ── Default tables ────────────────────────────────────────────────────────────

REVENUE_RULES = _rules(
    "sales", "interest income", KeywordRule("income", exclude=("cost",)),
)
COST_OF_SALES_RULES = _rules("cost of", "cost-of", "cogs")
DEPRECIATION_RULES = _rules("depreciation", "amortization", "amortisation")

EXPENSE_CATEGORY_RULES = (
    ("Wages & Salaries", _rules("wage", "salary", "salaries")),
    ("Superannuation", _rules("super")),
    ("Insurance", _rules("insurance", "incolink", "workcover")),
    ("Equipment & Tools", _rules("equipment", "hire", "tool")),
    ("Subscriptions", _rules("subscription")),
    ("Rent", _rules("rent")),
    ("Professional Services", _rules("professional", "legal", "accounting")),
    ("Vehicle & Transport", _rules("motor", "vehicle", "fuel")),
    ("Marketing", _rules("marketing", "advertising")),
    ("Freight & Delivery", _rules("freight", "delivery")),
    ("Staff Development", _rules("staff", "training", "welfare")),
    ("Safety & PPE", _rules("protective", "clothing")),
)

# Rows whose label equals or ends with one of these are headings or totals
SECTION_MARKERS = (
    "trading income", "total trading income",
    "other income", "total other income",
    "total income", "total revenue",
    "cost of sales", "less cost of sales", "total cost of sales",
    "gross profit",
    "operating expenses", "less operating expenses", "total operating expenses",
    "total expenses",
    "net profit", "net loss",
)

RECEIVABLE_RULES = _rules("receivable", "debtors")
PAYABLE_RULES = _rules("payable", "creditors")


@dataclass(frozen=True)
class ClassificationRules:
    revenue: tuple[KeywordRule, ...] = REVENUE_RULES
    cost_of_sales: tuple[KeywordRule, ...] = COST_OF_SALES_RULES
    depreciation: tuple[KeywordRule, ...] = DEPRECIATION_RULES
    expense_categories: tuple = EXPENSE_CATEGORY_RULES
    default_category: str = "Other"
    cost_of_sales_category: str = "Cost of Sales"
    depreciation_category: str = "Depreciation & Amortisation"
    section_markers: tuple[str, ...] = SECTION_MARKERS
    receivable: tuple[KeywordRule, ...] = RECEIVABLE_RULES
    payable: tuple[KeywordRule, ...] = PAYABLE_RULES
    header_label: str = "Account"
    header_scan_rows: int = field(default=10)

    def is_section_marker(self, name_lower: str) -> bool:
        return any(name_lower == m or name_lower.endswith(m) for m in self.section_markers)


DEFAULT_RULES = ClassificationRules()

_GROUP_KEYS = ("revenue", "cost_of_sales", "depreciation", "receivable", "payable")
_TEXT_KEYS = ("default_category", "cost_of_sales_category", "depreciation_category", "header_label")


def rules_from_dict(data: dict, base: ClassificationRules = DEFAULT_RULES) -> ClassificationRules:
    """Overlay a (JSON-decoded) mapping onto `base`. Unknown keys are rejected."""
    changes = {}
    for key, value in data.items():
        if key in _GROUP_KEYS:
            changes[key] = _rules(*value)
        elif key == "expense_categories":
            changes[key] = tuple((str(name), _rules(*kws)) for name, kws in value)
        elif key == "section_markers":
            changes[key] = tuple(str(m).lower().strip() for m in value)
        elif key in _TEXT_KEYS:
            changes[key] = str(value)
        elif key == "header_scan_rows":
            changes[key] = int(value)
        else:
            raise ValueError(f"Unknown classification rule key: {key}")
    return replace(base, **changes)


def _env_scan_rows() -> int | None:
    raw = os.getenv("NAVAROO_HEADER_SCAN_ROWS")
    if not raw:
        return None
    try:
        return max(1, int(raw))
    except ValueError:
        logger.warning(f"Ignoring NAVAROO_HEADER_SCAN_ROWS={raw!r}: not an integer")
        return None


def load_rules(path: str | Path | None = None) -> ClassificationRules:
    """
    Load classification rules. Uses `path`, else $NAVAROO_RULES_FILE, else defaults.
    An unreadable or invalid file is logged and the defaults are used.
    """
    rules = DEFAULT_RULES
    scan_rows = _env_scan_rows()
    if scan_rows is not None:
        rules = replace(rules, header_scan_rows=scan_rows)

    path = path or os.getenv(RULES_FILE_ENV)
    if not path:
        return rules

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        rules = rules_from_dict(data, base=rules)
        logger.info(f"Loaded classification rules from {path}")
    except (OSError, ValueError, TypeError, KeyError) as e:
        logger.error(f"Failed to load classification rules from {path}: {e}")
    return rules
