"""
Navaroo: monthly financial dashboard for Xero reports.
Main Streamlit application.
"""

import os
import sys
import logging
from pathlib import Path
from datetime import date

import streamlit as st
import plotly.graph_objects as go
import plotly.express as px
from dotenv import load_dotenv

# ── Path setup ─────────────────────────────────────────────────────────────
BASE_DIR = Path(__file__).parent
sys.path.insert(0, str(BASE_DIR.parent))
load_dotenv(BASE_DIR.parent / ".env")

from navaroo.parser.errors import ParseError, ReportFetchError
from navaroo.parser.rules import load_rules
from navaroo.parser.upload import process_upload_batch
from navaroo.parser.xero_parser import (
    get_demo_data, merge_financial_data, parse_balance_sheet_grid, parse_profit_loss_grid,
)
from navaroo.parser.xero_report import fetch_balance_sheet_grid, fetch_profit_loss_grid
from navaroo.metrics.calculator import (
    COMPARISON_LABELS, MOM, YOY, build_kpis, breakdown_frame, detect_red_flags,
    historical_frame, trend_frame,
)
from navaroo.forecast.scenario import (
    ADJUSTMENT_EXPENSE, ADJUSTMENT_REVENUE, EXPENSE_GROWTH_RANGE, REVENUE_GROWTH_RANGE,
    Adjustment, Deal, forecast_month_labels, generate_forecast, net_adjustments,
    pipeline_value, quick_forecast,
)
from navaroo.state import SOURCE_DEMO, SOURCE_UPLOAD, SOURCE_XERO, DashboardState
from navaroo.exports.excel_export import generate_excel_report
from navaroo.utils.formatters import format_change, format_compact_currency, format_currency, format_percent

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# ── Page configuration ─────────────────────────────────────────────────────
st.set_page_config(
    page_title="Navaroo",
    page_icon="📊",
    layout="wide",
    initial_sidebar_state="expanded",
)

# ── Styling ────────────────────────────────────────────────────────────────
st.markdown("""
<style>
    .stApp { background-color: #F9FAFB; }
    .main .block-container { padding-top: 1.5rem; }

    .metric-card {
        background: white;
        border-radius: 8px;
        padding: 12px 16px;
        border-left: 4px solid #6B7280;
        margin-bottom: 8px;
        box-shadow: 0 1px 3px rgba(0,0,0,0.06);
    }
    .metric-card.green { border-left-color: #16A34A; }
    .metric-card.red { border-left-color: #DC2626; }
    .metric-label { font-size: 0.8rem; color: #6B7280; margin-bottom: 2px; }
    .metric-value { font-size: 1.2rem; font-weight: 600; color: #1B2A4A; }
    .metric-prior { font-size: 0.75rem; color: #9CA3AF; }

    .red-flag {
        background: #FEE2E2;
        border: 1px solid #FECACA;
        border-radius: 6px;
        padding: 8px 12px;
        margin-bottom: 6px;
        color: #DC2626;
        font-size: 0.9rem;
    }

    .section-header {
        font-size: 1.1rem;
        font-weight: 600;
        color: #1B2A4A;
        border-bottom: 2px solid #1B2A4A;
        padding-bottom: 4px;
        margin: 16px 0 12px 0;
    }

    [data-testid="stSidebar"] { background-color: #1B2A4A; }
    [data-testid="stSidebar"] * { color: white !important; }
</style>
""", unsafe_allow_html=True)

STATUS_ICON = {"green": "🟢", "red": "🔴", "grey": "⚪"}


def _metric_card(label: str, value: str, previous: str, trend: str, change: str,
                 status: str, tooltip: str = ""):
    icon = STATUS_ICON.get(status, "⚪")
    st.markdown(f"""
    <div class="metric-card {status}" title="{tooltip}">
        <div class="metric-label">{icon} {label}</div>
        <div class="metric-value">{value} <span style="font-size:0.9rem;color:#9CA3AF">{trend} {change}</span></div>
        <div class="metric-prior">Previous: {previous}</div>
    </div>
    """, unsafe_allow_html=True)


def _section(title: str):
    st.markdown(f'<div class="section-header">{title}</div>', unsafe_allow_html=True)


# ── Session state init ─────────────────────────────────────────────────────

if "dashboard" not in st.session_state:
    st.session_state.dashboard = DashboardState()
if "rules" not in st.session_state:
    st.session_state.rules = load_rules()


def _state() -> DashboardState:
    return st.session_state.dashboard


def _set_state(new_state: DashboardState):
    st.session_state.dashboard = new_state


# ── Sidebar ────────────────────────────────────────────────────────────────

with st.sidebar:
    st.markdown("## Navaroo")
    st.markdown("*Monthly financial dashboard*")
    st.markdown("---")

    client_name = st.text_input("Client / Business Name", value=st.session_state.get("client_name", ""))
    st.session_state.client_name = client_name

    source = st.radio("Data Source", ["Xero CSV/Excel", "Xero API", "Demo Mode"], index=0)

    if source == "Xero CSV/Excel":
        uploads = st.file_uploader(
            "P&L and Balance Sheet exports (.xlsx/.csv)",
            type=["xlsx", "xlsm", "csv"],
            accept_multiple_files=True,
        )
        if st.button("Load Files", type="primary", use_container_width=True):
            if not uploads:
                st.error("Please upload at least one Xero report.")
            else:
                with st.spinner("Parsing Xero files..."):
                    batch = process_upload_batch(uploads, st.session_state.rules)
                if batch.has_data:
                    _set_state(_state().with_records(batch.records, SOURCE_UPLOAD))
                    st.success(batch.status_message)
                else:
                    st.error(batch.status_message)

    elif source == "Xero API":
        access_token = st.text_input("Access Token", type="password",
                                     value=os.getenv("XERO_ACCESS_TOKEN", ""))
        tenant_id = st.text_input("Tenant ID", value=os.getenv("XERO_TENANT_ID", ""))
        to_date = st.date_input("Report Month Ending", value=date.today())
        if st.button("Pull from Xero", type="primary", use_container_width=True):
            if not access_token or not tenant_id:
                st.error("An access token and tenant id are required.")
            else:
                with st.spinner("Fetching reports from Xero..."):
                    try:
                        from_date = to_date.replace(day=1)
                        pl_grid = fetch_profit_loss_grid(access_token, tenant_id, from_date, to_date)
                        bs_grid = fetch_balance_sheet_grid(access_token, tenant_id, to_date)
                        rules = st.session_state.rules
                        records = merge_financial_data(
                            parse_profit_loss_grid(pl_grid, rules),
                            parse_balance_sheet_grid(bs_grid, rules),
                        )
                    except (ReportFetchError, ParseError) as e:
                        st.error(f"Xero import failed: {e}")
                        logger.exception("Xero API import error")
                    else:
                        if records:
                            _set_state(_state().with_records(records, SOURCE_XERO))
                            st.success(f"✓ Loaded {len(records)} months")
                        else:
                            st.error("⚠ No valid data found")

    else:
        if st.button("Load Demo Data", type="primary", use_container_width=True):
            _set_state(_state().with_records(get_demo_data(), SOURCE_DEMO))
            st.success("Demo data loaded.")

    if _state().has_data:
        st.markdown("---")
        if st.button("Clear Data", use_container_width=True):
            _set_state(_state().cleared())

# ── Main content ───────────────────────────────────────────────────────────

state = _state()

if not state.has_data:
    st.markdown("## Navaroo")
    st.markdown(
        "Upload Xero Profit & Loss and Balance Sheet exports, pull them straight from "
        "the Xero API, or load the demo data from the sidebar."
    )
    st.stop()

records = list(state.records)
selected = state.selected

# Period and comparison controls
nav_prev, nav_label, nav_next, mode_col = st.columns([1, 3, 1, 2])
with nav_prev:
    if st.button("◀ Older", disabled=not state.can_select_older, use_container_width=True):
        _set_state(state.select_older())
        st.rerun()
with nav_label:
    st.markdown(f"### {selected.period}")
with nav_next:
    if st.button("Newer ▶", disabled=not state.can_select_newer, use_container_width=True):
        _set_state(state.select_newer())
        st.rerun()
with mode_col:
    mode = st.radio("Compare", [MOM, YOY], format_func=COMPARISON_LABELS.get,
                    index=0 if state.comparison_mode == MOM else 1, horizontal=True)
    if mode != state.comparison_mode:
        _set_state(state.with_comparison_mode(mode))
        st.rerun()

title = f"## {client_name}: Financial Dashboard" if client_name else "## Financial Dashboard"
st.markdown(title)

for flag in detect_red_flags(records, state.selected_index, state.comparison_mode):
    st.markdown(f'<div class="red-flag">{flag}</div>', unsafe_allow_html=True)

tabs = st.tabs(["Overview", "Expenses", "Forecast", "History", "Export"])

# ── TAB 0: OVERVIEW ────────────────────────────────────────────────────────
with tabs[0]:
    kpis = build_kpis(records, state.selected_index, state.comparison_mode)
    for category, heading in [("headline", "Headline"), ("margin", "Margins & Efficiency"),
                              ("balance_sheet", "Balance Sheet")]:
        cat_metrics = [m for m in kpis.values() if m.category == category]
        if category == "balance_sheet" and not selected.has_balance_sheet:
            st.info("Upload a Balance Sheet to see liquidity metrics.")
            continue
        _section(heading)
        cols = st.columns(4)
        for i, m in enumerate(cat_metrics):
            with cols[i % 4]:
                change = format_change(m.change) if m.previous is not None else ""
                _metric_card(m.label, m.current_fmt, m.previous_fmt, m.trend, change, m.status, m.tooltip)

    _section("Revenue, Expenses & Net Profit")
    trend = trend_frame(records)
    fig = go.Figure()
    fig.add_trace(go.Scatter(name="Revenue", x=trend["period"], y=trend["revenue"],
                             mode="lines+markers", line=dict(color="#1B2A4A")))
    fig.add_trace(go.Scatter(name="Expenses", x=trend["period"], y=trend["total_expenses"],
                             mode="lines+markers", line=dict(color="#DC2626")))
    fig.add_trace(go.Scatter(name="Net Profit", x=trend["period"], y=trend["net_profit"],
                             mode="lines+markers", line=dict(color="#10B981")))
    fig.update_layout(
        height=350,
        legend=dict(orientation="h", y=-0.2),
        margin=dict(l=0, r=0, t=20, b=60),
        yaxis_tickprefix="$", yaxis_tickformat=",.0f",
        plot_bgcolor="white", paper_bgcolor="white",
    )
    st.plotly_chart(fig, use_container_width=True)

# ── TAB 1: EXPENSES ────────────────────────────────────────────────────────
with tabs[1]:
    _section(f"Expense Breakdown: {selected.period}")
    breakdown = breakdown_frame(selected)
    if breakdown.empty:
        st.info("No expenses recorded for this month.")
    else:
        pie_col, table_col = st.columns([3, 2])
        with pie_col:
            fig2 = px.pie(breakdown, names="category", values="amount", hole=0.45)
            fig2.update_layout(height=380, margin=dict(l=0, r=0, t=20, b=20))
            st.plotly_chart(fig2, use_container_width=True)
        with table_col:
            display = breakdown.assign(
                amount=breakdown["amount"].map(format_currency),
                percentage=breakdown["percentage"].map(format_percent),
            ).rename(columns={"category": "Category", "amount": "Amount", "percentage": "% of Expenses"})
            st.dataframe(display, hide_index=True, use_container_width=True)

# ── TAB 2: FORECAST ────────────────────────────────────────────────────────
with tabs[2]:
    _section("Growth Assumptions")
    g1, g2 = st.columns(2)
    with g1:
        revenue_growth = st.slider("Annual Revenue Growth %", *REVENUE_GROWTH_RANGE,
                                   value=int(state.scenario.revenue_growth))
    with g2:
        expense_growth = st.slider("Annual Expense Growth %", *EXPENSE_GROWTH_RANGE,
                                   value=int(state.scenario.expense_growth))
    if (revenue_growth, expense_growth) != (state.scenario.revenue_growth, state.scenario.expense_growth):
        state = state.with_growth(revenue_growth, expense_growth)
        _set_state(state)

    months = forecast_month_labels()
    deal_col, adj_col = st.columns(2)

    with deal_col:
        _section("Pipeline Deals")
        with st.form("add_deal", clear_on_submit=True):
            deal_name = st.text_input("Deal")
            deal_amount = st.number_input("Amount", min_value=0.0, step=1000.0)
            deal_month = st.selectbox("Expected Month", months)
            deal_probability = st.slider("Probability %", 0, 100, 50)
            if st.form_submit_button("Add Deal"):
                try:
                    deal = Deal(deal_name, deal_amount, deal_month, deal_probability)
                except ValueError as e:
                    st.error(str(e))
                else:
                    _set_state(_state().with_deal(deal))
                    st.rerun()
        for deal in state.scenario.deals:
            c1, c2 = st.columns([5, 1])
            c1.markdown(f"**{deal.name}**: {format_currency(deal.amount)} in {deal.month} "
                        f"({deal.probability:.0f}%)")
            if c2.button("✕", key=f"deal_{deal.id}"):
                _set_state(_state().without_deal(deal.id))
                st.rerun()

    with adj_col:
        _section("Adjustments")
        with st.form("add_adjustment", clear_on_submit=True):
            adj_kind = st.selectbox("Type", [ADJUSTMENT_REVENUE, ADJUSTMENT_EXPENSE],
                                    format_func=str.title)
            adj_description = st.text_input("Description")
            adj_amount = st.number_input("Amount", min_value=0.0, step=500.0, key="adj_amount")
            adj_month = st.selectbox("Month", months, key="adj_month")
            if st.form_submit_button("Add Adjustment"):
                try:
                    adjustment = Adjustment(adj_kind, adj_description, adj_amount, adj_month)
                except ValueError as e:
                    st.error(str(e))
                else:
                    _set_state(_state().with_adjustment(adjustment))
                    st.rerun()
        for adjustment in state.scenario.adjustments:
            c1, c2 = st.columns([5, 1])
            c1.markdown(f"**{adjustment.description}** ({adjustment.kind}): "
                        f"{format_currency(adjustment.amount)} in {adjustment.month}")
            if c2.button("✕", key=f"adj_{adjustment.id}"):
                _set_state(_state().without_adjustment(adjustment.id))
                st.rerun()

    forecast = generate_forecast(records, state.scenario)
    m1, m2, m3 = st.columns(3)
    m1.metric("Pipeline Value", format_currency(pipeline_value(state.scenario)))
    m2.metric("Net Adjustments", format_currency(net_adjustments(state.scenario)))
    m3.metric("12-Month Forecast Profit", format_currency(sum(p.profit for p in forecast)))

    _section("12-Month Forecast")
    fig3 = go.Figure()
    fig3.add_trace(go.Bar(name="Revenue", x=[p.month for p in forecast], y=[p.revenue for p in forecast],
                          text=[format_compact_currency(p.revenue) for p in forecast], textposition="outside",
                          marker_color="#1B2A4A"))
    fig3.add_trace(go.Bar(name="Expenses", x=[p.month for p in forecast], y=[p.expenses for p in forecast],
                          text=[format_compact_currency(p.expenses) for p in forecast], textposition="outside",
                          marker_color="#DC2626"))
    fig3.add_trace(go.Scatter(name="Profit", x=[p.month for p in forecast], y=[p.profit for p in forecast],
                              mode="lines+markers", line=dict(color="#10B981")))
    fig3.update_layout(
        barmode="group", height=380,
        legend=dict(orientation="h", y=-0.2),
        margin=dict(l=0, r=0, t=20, b=60),
        yaxis_tickprefix="$", yaxis_tickformat=",.0f",
        plot_bgcolor="white", paper_bgcolor="white",
    )
    st.plotly_chart(fig3, use_container_width=True)

    _section("Quick Forecast")
    projected = st.number_input("Projected revenue for next month", min_value=0.0, step=1000.0)
    if projected > 0:
        series = quick_forecast(records, projected)
        fig4 = go.Figure()
        for key, colour in [("revenue", "#1B2A4A"), ("expenses", "#DC2626"), ("profit", "#10B981")]:
            fig4.add_trace(go.Scatter(name=key.title(), x=[p["month"] for p in series],
                                      y=[p[key] for p in series], mode="lines+markers",
                                      line=dict(color=colour)))
        fig4.update_layout(height=320, margin=dict(l=0, r=0, t=20, b=40),
                           yaxis_tickprefix="$", yaxis_tickformat=",.0f",
                           plot_bgcolor="white", paper_bgcolor="white")
        st.plotly_chart(fig4, use_container_width=True)

# ── TAB 3: HISTORY ─────────────────────────────────────────────────────────
with tabs[3]:
    _section("Historical Performance")
    history = historical_frame(records)
    for col in ["Revenue", "Gross Profit", "EBITDA", "Net Profit"]:
        history[col] = history[col].map(format_currency)
    history["Margin %"] = history["Margin %"].map(format_percent)
    st.dataframe(history, hide_index=True, use_container_width=True)

# ── TAB 4: EXPORT ──────────────────────────────────────────────────────────
with tabs[4]:
    _section("Export")
    st.markdown("Excel workbook with the KPI summary, every loaded month and the expense breakdown.")
    safe_name = "".join(c for c in (client_name or "Dashboard") if c.isalnum() or c in " _-").strip().replace(" ", "_")
    today_str = date.today().strftime("%Y%m%d")
    xl_bytes = generate_excel_report(records, client_name, state.selected_index, state.comparison_mode)
    st.download_button(
        label="Download Excel",
        data=xl_bytes,
        file_name=f"Navaroo_{safe_name}_{today_str}.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        use_container_width=True,
    )
