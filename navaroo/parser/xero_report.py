"""
Xero Reports API adapter.

Pulls ProfitAndLoss / BalanceSheet reports and flattens their nested row tree into
the same raw grid shapes an exported spreadsheet has, so the result goes through
the normal parse functions:

  P&L            ["Account", *periods]        labels in column 0
  Balance Sheet  ["", "Account", *periods]    section titles and totals in column 0,
                                              accounts in column 1

The caller supplies an OAuth access token and tenant id; the token handshake
itself happens elsewhere.
"""

import logging
import os
from datetime import date

import requests

from navaroo.parser.errors import ReportFetchError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.xero.com/api.xro/2.0"
PROFIT_AND_LOSS = "ProfitAndLoss"
BALANCE_SHEET = "BalanceSheet"

PL_SHAPE = "pl"
BS_SHAPE = "bs"


def _get(obj: dict, key: str, default=None):
    """Read a key in either PascalCase (raw API) or camelCase (SDK) form."""
    if not isinstance(obj, dict):
        return default
    if key in obj:
        return obj[key]
    camel = key[0].lower() + key[1:]
    return obj.get(camel, default)


def _cell_values(row: dict) -> list[str]:
    return [_get(c, "Value", "") or "" for c in _get(row, "Cells", []) or []]


def _emit(shape: str, label: str, values: list, in_label_col: bool) -> list:
    if shape == PL_SHAPE:
        return [label, *values]
    if in_label_col:
        return [label, "", *values]
    return ["", label, *values]


def _walk(rows: list, shape: str, grid: list, untitled: bool = False):
    for row in rows or []:
        row_type = _get(row, "RowType", "")
        if row_type == "Header":
            continue
        if row_type == "Section":
            title = _get(row, "Title", "") or ""
            if title:
                grid.append(_emit(shape, title, [], in_label_col=True))
            _walk(_get(row, "Rows", []), shape, grid, untitled=not title)
            continue

        cells = _cell_values(row)
        if not cells:
            continue
        label, values = cells[0], cells[1:]
        summary = row_type == "SummaryRow" or untitled
        grid.append(_emit(shape, label, values, in_label_col=summary))


def report_to_grid(report: dict, shape: str = PL_SHAPE) -> list[list]:
    """Flatten a single Xero report object into a raw grid."""
    if shape not in (PL_SHAPE, BS_SHAPE):
        raise ValueError(f"Unknown report shape: {shape}")

    rows = _get(report, "Rows", []) or []
    header = next((r for r in rows if _get(r, "RowType") == "Header"), None)
    periods = [v for v in _cell_values(header)[1:] if v] if header else []

    grid = []
    title = _get(report, "ReportName")
    if title:
        grid.append([title])
    grid.append(["Account", *periods] if shape == PL_SHAPE else ["", "Account", *periods])
    _walk(rows, shape, grid)
    return grid


# ── Fetching ──────────────────────────────────────────────────────────────────

def fetch_report(report_name: str, access_token: str, tenant_id: str,
                 params: dict | None = None, session: requests.Session | None = None,
                 timeout: float = 30) -> dict:
    """GET a report from the Xero accounting API and return the first report object."""
    base_url = os.getenv("XERO_API_BASE", DEFAULT_API_BASE).rstrip("/")
    http = session or requests
    headers = {
        "Authorization": f"Bearer {access_token}",
        "xero-tenant-id": tenant_id,
        "Accept": "application/json",
    }
    try:
        resp = http.get(f"{base_url}/Reports/{report_name}", headers=headers,
                        params=params or {}, timeout=timeout)
        resp.raise_for_status()
        payload = resp.json()
    except requests.exceptions.ConnectionError as e:
        raise ReportFetchError(f"Could not connect to Xero: {e}") from e
    except requests.exceptions.Timeout as e:
        raise ReportFetchError("Xero request timed out") from e
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else "?"
        raise ReportFetchError(f"Xero returned HTTP {status} for {report_name}") from e
    except ValueError as e:
        raise ReportFetchError(f"Xero returned an invalid response for {report_name}") from e

    reports = _get(payload, "Reports", []) or []
    if not reports:
        raise ReportFetchError(f"Xero returned no {report_name} report")
    logger.info(f"Fetched {report_name} report from Xero")
    return reports[0]


def fetch_profit_loss_grid(access_token: str, tenant_id: str, from_date: date, to_date: date,
                           periods: int = 11, session: requests.Session | None = None) -> list[list]:
    params = {
        "fromDate": from_date.isoformat(),
        "toDate": to_date.isoformat(),
        "periods": periods,
        "timeframe": "MONTH",
    }
    report = fetch_report(PROFIT_AND_LOSS, access_token, tenant_id, params, session)
    return report_to_grid(report, PL_SHAPE)


def fetch_balance_sheet_grid(access_token: str, tenant_id: str, as_at: date,
                             periods: int = 11, session: requests.Session | None = None) -> list[list]:
    params = {"date": as_at.isoformat(), "periods": periods, "timeframe": "MONTH"}
    report = fetch_report(BALANCE_SHEET, access_token, tenant_id, params, session)
    return report_to_grid(report, BS_SHAPE)
