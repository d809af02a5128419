"""
Shared number formatting for the dashboard cards, tables and exports.

Conventions:
  Currency  →  $1,234,567      (whole dollars, negatives as -$1,234)
  Percent   →  42.3%           (1 decimal place)
  Ratio     →  1.85:1          (2 decimal places)
  Change    →  +4.2%           (signed, 1 decimal place)
"""


def format_currency(v) -> str:
    """Format a numeric value as whole-dollar currency: $1,234,567"""
    if v is None:
        return "N/A"
    try:
        f = float(v)
    except (TypeError, ValueError):
        return "N/A"
    if f < 0:
        return f"-${abs(f):,.0f}"
    return f"${f:,.0f}"


def format_compact_currency(v) -> str:
    """Short currency for chart labels: $148.5k, $1.2M"""
    if v is None:
        return "N/A"
    try:
        f = float(v)
    except (TypeError, ValueError):
        return "N/A"
    sign = "-" if f < 0 else ""
    f = abs(f)
    if f >= 1_000_000:
        return f"{sign}${f / 1_000_000:.1f}M"
    if f >= 1_000:
        return f"{sign}${f / 1_000:.1f}k"
    return f"{sign}${f:,.0f}"


def format_percent(v) -> str:
    """Format a numeric value as a percentage with 1 decimal place: 42.3%"""
    if v is None:
        return "N/A"
    try:
        return f"{float(v):.1f}%"
    except (TypeError, ValueError):
        return "N/A"


def format_change(v) -> str:
    """Signed percentage change for KPI deltas: +4.2%, -1.0%"""
    if v is None:
        return "N/A"
    try:
        return f"{float(v):+.1f}%"
    except (TypeError, ValueError):
        return "N/A"


def format_ratio(v) -> str:
    """Format a numeric value as a ratio with 2 decimal places: 1.85:1"""
    if v is None:
        return "N/A"
    try:
        return f"{float(v):.2f}:1"
    except (TypeError, ValueError):
        return "N/A"


def format_metric(v, format_type: str) -> str:
    """
    Dispatch to the correct formatter based on format_type string.
    Recognised types: 'currency', 'percentage', 'ratio'
    """
    if format_type == "currency":
        return format_currency(v)
    elif format_type == "percentage":
        return format_percent(v)
    elif format_type == "ratio":
        return format_ratio(v)
    return str(v) if v is not None else "N/A"
