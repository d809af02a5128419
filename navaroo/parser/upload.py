"""
Upload batch handling: route each file to the right parser and merge the results.

Files are parsed one at a time and in isolation. A structural failure in one file
is recorded against that file and never stops the rest of the batch.
"""

import logging
from dataclasses import dataclass, field

from navaroo.parser.errors import ParseError
from navaroo.parser.grid_reader import read_grid, read_upload, sheet_names
from navaroo.parser.models import BalanceSheetPeriod, MonthlyFinancials
from navaroo.parser.rules import ClassificationRules
from navaroo.parser.xero_parser import (
    merge_financial_data, parse_balance_sheet_grid, parse_profit_loss_grid,
)

logger = logging.getLogger(__name__)

PROFIT_LOSS = "pl"
BALANCE_SHEET = "bs"

PL_NAME_KEYWORDS = ["profit", "p&l", "loss"]
BS_NAME_KEYWORDS = ["balance"]


@dataclass
class FileOutcome:
    filename: str
    report_type: str | None
    periods: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    records: list[MonthlyFinancials] = field(default_factory=list)
    outcomes: list[FileOutcome] = field(default_factory=list)

    @property
    def failures(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def has_data(self) -> bool:
        return bool(self.records)

    @property
    def status_message(self) -> str:
        if self.records:
            msg = f"✓ Loaded {len(self.records)} months"
        else:
            msg = "⚠ No valid data found"
        for failed in self.failures:
            msg += f"\n✗ {failed.filename}: {failed.error}"
        return msg


def _sniff(text: str) -> str | None:
    t = text.lower()
    if any(kw in t for kw in PL_NAME_KEYWORDS):
        return PROFIT_LOSS
    if any(kw in t for kw in BS_NAME_KEYWORDS):
        return BALANCE_SHEET
    return None


def detect_report_type(filename: str, sheets: list[str] | None = None) -> str:
    """
    Decide P&L vs Balance Sheet from the filename, then the first sheet name.
    Anything unrecognised is treated as a P&L.
    """
    kind = _sniff(filename)
    if kind:
        return kind
    if sheets:
        kind = _sniff(sheets[0])
        if kind:
            return kind
    return PROFIT_LOSS


def _as_named_content(item) -> tuple[str, bytes]:
    if isinstance(item, tuple):
        name, content = item
        return name, content
    return read_upload(item)


def process_upload_batch(files, rules: ClassificationRules | None = None) -> BatchResult:
    """
    Parse every file in `files` (Streamlit uploads or (name, bytes) pairs) and
    merge the outcome. P&L periods are concatenated in file order keeping the first
    occurrence of each label; balance sheet periods from later files override.
    """
    result = BatchResult()
    pl_records: list[MonthlyFinancials] = []
    seen_periods: set[str] = set()
    bs_data: dict[str, BalanceSheetPeriod] = {}

    for item in files:
        name, content = _as_named_content(item)
        outcome = FileOutcome(filename=name, report_type=None)
        result.outcomes.append(outcome)
        try:
            outcome.report_type = detect_report_type(name, sheet_names(content, name))
            grid = read_grid(content, name)
            if outcome.report_type == BALANCE_SHEET:
                parsed_bs = parse_balance_sheet_grid(grid, rules)
                bs_data.update(parsed_bs)
                outcome.periods = len(parsed_bs)
            else:
                parsed_pl = parse_profit_loss_grid(grid, rules)
                for record in parsed_pl:
                    if record.period in seen_periods:
                        continue
                    seen_periods.add(record.period)
                    pl_records.append(record)
                outcome.periods = len(parsed_pl)
            logger.info(f"Parsed {name} as {outcome.report_type}: {outcome.periods} periods")
        except ParseError as e:
            outcome.error = str(e)
            logger.warning(f"Failed to parse {name}: {e}")

    result.records = merge_financial_data(pl_records, bs_data) if bs_data else pl_records
    return result
