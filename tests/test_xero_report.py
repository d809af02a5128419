import os
import unittest
from datetime import date
from unittest import mock

import requests

from navaroo.parser.errors import ReportFetchError
from navaroo.parser.xero_parser import parse_balance_sheet_grid, parse_profit_loss_grid
from navaroo.parser.xero_report import (
    BS_SHAPE, fetch_balance_sheet_grid, fetch_profit_loss_grid, fetch_report, report_to_grid,
)


def _row(*values, row_type="Row"):
    return {"RowType": row_type, "Cells": [{"Value": v} for v in values]}


PL_REPORT = {
    "ReportName": "Profit and Loss",
    "Rows": [
        _row("", "31 Jan 25", "31 Dec 24", row_type="Header"),
        {"RowType": "Section", "Title": "Income", "Rows": [
            _row("Sales", "1000.00", "900.00"),
            _row("Total Income", "1000.00", "900.00", row_type="SummaryRow"),
        ]},
        {"RowType": "Section", "Title": "Less Operating Expenses", "Rows": [
            _row("Rent", "100.00", "100.00"),
            _row("Total Operating Expenses", "100.00", "100.00", row_type="SummaryRow"),
        ]},
        {"RowType": "Section", "Title": "", "Rows": [
            _row("Net Profit", "900.00", "800.00"),
        ]},
    ],
}

BS_REPORT = {
    "reportName": "Balance Sheet",
    "rows": [
        {"rowType": "Header", "cells": [{"value": ""}, {"value": "31 Jan 2025"}]},
        {"rowType": "Section", "title": "Assets", "rows": []},
        {"rowType": "Section", "title": "Current Assets", "rows": [
            {"rowType": "Row", "cells": [{"value": "Accounts Receivable"}, {"value": "300.00"}]},
            {"rowType": "Row", "cells": [{"value": "Business Account"}, {"value": "500.00"}]},
            {"rowType": "SummaryRow", "cells": [{"value": "Total Current Assets"}, {"value": "800.00"}]},
        ]},
        {"rowType": "Section", "title": "", "rows": [
            {"rowType": "Row", "cells": [{"value": "Total Assets"}, {"value": "800.00"}]},
        ]},
    ],
}


def _session(payload=None, status_error=None, get_error=None):
    session = mock.MagicMock()
    if get_error is not None:
        session.get.side_effect = get_error
        return session
    resp = session.get.return_value
    resp.json.return_value = payload
    if status_error is not None:
        resp.raise_for_status.side_effect = status_error
    return session


class TestReportToGrid(unittest.TestCase):
    def test_profit_and_loss_shape(self):
        grid = report_to_grid(PL_REPORT)
        self.assertEqual(grid[0], ["Profit and Loss"])
        self.assertEqual(grid[1], ["Account", "31 Jan 25", "31 Dec 24"])
        self.assertIn(["Sales", "1000.00", "900.00"], grid)
        self.assertIn(["Net Profit", "900.00", "800.00"], grid)

    def test_profit_and_loss_parses(self):
        jan, dec = parse_profit_loss_grid(report_to_grid(PL_REPORT))
        self.assertEqual(jan.period, "31 Jan 25")
        self.assertEqual(jan.revenue, 1000)
        self.assertEqual(jan.operating_expenses, 100)
        self.assertEqual(dec.net_profit, 800)

    def test_balance_sheet_shape_with_camel_case_keys(self):
        grid = report_to_grid(BS_REPORT, BS_SHAPE)
        self.assertEqual(grid[1], ["", "Account", "31 Jan 2025"])
        self.assertIn(["", "Accounts Receivable", "300.00"], grid)
        self.assertIn(["Total Current Assets", "", "800.00"], grid)
        self.assertIn(["Total Assets", "", "800.00"], grid)

    def test_balance_sheet_parses(self):
        period = parse_balance_sheet_grid(report_to_grid(BS_REPORT, BS_SHAPE))["31 Jan 2025"]
        self.assertEqual(period.assets, 800)
        self.assertEqual(period.current_assets, 800)
        self.assertEqual(period.accounts_receivable, 300)

    def test_unknown_shape(self):
        with self.assertRaises(ValueError):
            report_to_grid(PL_REPORT, "cashflow")


class TestFetchReport(unittest.TestCase):
    def test_request_and_first_report(self):
        session = _session({"Reports": [PL_REPORT]})
        with mock.patch.dict(os.environ, {"XERO_API_BASE": "https://xero.example/api/"}):
            report = fetch_report("ProfitAndLoss", "tok", "tenant-1", {"periods": 2}, session=session)
        self.assertIs(report, PL_REPORT)
        args, kwargs = session.get.call_args
        self.assertEqual(args[0], "https://xero.example/api/Reports/ProfitAndLoss")
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer tok")
        self.assertEqual(kwargs["headers"]["xero-tenant-id"], "tenant-1")
        self.assertEqual(kwargs["params"], {"periods": 2})

    def test_http_error(self):
        error = requests.exceptions.HTTPError(response=mock.MagicMock(status_code=401))
        with self.assertRaises(ReportFetchError) as ctx:
            fetch_report("BalanceSheet", "tok", "t", session=_session(status_error=error))
        self.assertIn("401", str(ctx.exception))

    def test_connection_error(self):
        session = _session(get_error=requests.exceptions.ConnectionError("down"))
        with self.assertRaises(ReportFetchError):
            fetch_report("BalanceSheet", "tok", "t", session=session)

    def test_timeout(self):
        session = _session(get_error=requests.exceptions.Timeout())
        with self.assertRaises(ReportFetchError):
            fetch_report("BalanceSheet", "tok", "t", session=session)

    def test_invalid_json(self):
        session = _session()
        session.get.return_value.json.side_effect = ValueError("bad json")
        with self.assertRaises(ReportFetchError):
            fetch_report("BalanceSheet", "tok", "t", session=session)

    def test_empty_reports(self):
        with self.assertRaises(ReportFetchError):
            fetch_report("BalanceSheet", "tok", "t", session=_session({"Reports": []}))

    def test_grid_helpers_send_monthly_params(self):
        session = _session({"Reports": [PL_REPORT]})
        grid = fetch_profit_loss_grid("tok", "t", date(2025, 1, 1), date(2025, 1, 31), session=session)
        params = session.get.call_args.kwargs["params"]
        self.assertEqual(params["fromDate"], "2025-01-01")
        self.assertEqual(params["toDate"], "2025-01-31")
        self.assertEqual(params["timeframe"], "MONTH")
        self.assertEqual(grid[1][0], "Account")

        session = _session({"Reports": [BS_REPORT]})
        grid = fetch_balance_sheet_grid("tok", "t", date(2025, 1, 31), periods=3, session=session)
        params = session.get.call_args.kwargs["params"]
        self.assertEqual(params, {"date": "2025-01-31", "periods": 3, "timeframe": "MONTH"})
        self.assertEqual(grid[1][:2], ["", "Account"])


if __name__ == "__main__":
    unittest.main()
