"""Streamlit dashboard for uploaded campaign performance exports."""

from __future__ import annotations

import logging
import os
from datetime import date
from typing import List, Optional, Tuple

import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots
import streamlit as st

from Campaign_analytics.anomaly import (
    AnomalyType,
    Severity,
    anomalies_to_frame,
    anomaly_counts,
    anomaly_type_display_name,
    filter_anomalies,
)
from Campaign_analytics.campaigns import add_campaign_dimensions
from Campaign_analytics.config import BackendSettings, FilterOptions, RoasConvention, SpendMode, SpendSettings
from Campaign_analytics.data_loader import ImportResult, empty_campaign_frame
from Campaign_analytics.dates import format_date_display
from Campaign_analytics.errors import BackendError, CampaignAnalyticsError, CsvImportError
from Campaign_analytics.health import health_to_frame
from Campaign_analytics.pacing import (
    ContractTerms,
    RenewalStatus,
    attach_renewal_status,
    load_contract_terms,
    pacing_to_frame,
)
from Campaign_analytics.pipeline import DashboardSession
from Campaign_analytics.quality import run_quality_checks
from Campaign_analytics.store import COLLECTIONS, CampaignStore
from Campaign_analytics.trends import metric_comparison, period_metrics, previous_period

logger = logging.getLogger(__name__)

PAGE_CONFIG = {
    "page_title": "Campaign Performance",
    "layout": "wide",
    "initial_sidebar_state": "expanded",
}

st.set_page_config(**PAGE_CONFIG)


@st.cache_resource(show_spinner=False)
def _backend_store() -> Optional[CampaignStore]:
    settings = BackendSettings()
    if not (os.getenv(settings.url_env) and os.getenv(settings.key_env)):
        return None
    try:
        return CampaignStore.from_env(settings)
    except BackendError as exc:
        logger.error("Backend unavailable: %s", exc)
        return None


def _session() -> DashboardSession:
    if "session" not in st.session_state:
        st.session_state["session"] = DashboardSession(store=_backend_store())
    return st.session_state["session"]


def _format_currency(value: Optional[float]) -> str:
    if value is None or pd.isna(value):
        return "n/a"
    return f"${value:,.0f}" if abs(value) >= 1000 else f"${value:,.2f}"


def _format_number(value: Optional[float]) -> str:
    if value is None or pd.isna(value):
        return "n/a"
    if abs(value) >= 1000:
        return f"{value:,.0f}"
    return f"{value:,.2f}"


def _format_trend(value: float) -> str:
    return f"{value:+.1f}%"


def _current_frame() -> pd.DataFrame:
    imported: Optional[ImportResult] = st.session_state.get("imported")
    if imported is not None:
        return imported.frame
    return st.session_state.get("stored_frame", empty_campaign_frame())


def _render_upload(session: DashboardSession) -> None:
    st.sidebar.subheader("Data")
    upload = st.sidebar.file_uploader("Campaign CSV", type=["csv"], key="campaign_csv")
    persist = session.store is not None and st.sidebar.checkbox("Replace stored campaign data", value=False)
    if upload is not None and st.session_state.get("upload_name") != upload.name:
        try:
            st.session_state["imported"] = session.import_csv(upload, persist=persist)
            st.session_state["upload_name"] = upload.name
        except CsvImportError as exc:
            st.sidebar.error(str(exc))
            return
        except BackendError as exc:
            st.sidebar.warning(f"Rows loaded but not saved: {exc}")
    elif upload is None and session.store is not None and "stored_frame" not in st.session_state:
        st.session_state["stored_frame"] = session.store.fetch_campaign_rows()

    imported: Optional[ImportResult] = st.session_state.get("imported")
    if imported is not None:
        st.sidebar.caption(f"{imported.row_count:,} rows · {len(imported.campaigns)} campaigns")
        for message in imported.warnings:
            st.sidebar.warning(message)


def _render_spend_controls(session: DashboardSession) -> None:
    st.sidebar.subheader("Spend")
    custom = st.sidebar.toggle("Custom CPM", value=session.spend.mode is SpendMode.CUSTOM)
    cpm = st.sidebar.number_input("CPM ($)", min_value=0.0, value=float(session.spend.custom_cpm), step=0.5)
    session.spend = SpendSettings(
        mode=SpendMode.CUSTOM if custom else SpendMode.DEFAULT,
        default_cpm=session.spend.default_cpm,
        custom_cpm=cpm,
        forced_cpm=session.spend.forced_cpm,
        forced_abbreviations=session.spend.forced_abbreviations,
        forced_agencies=session.spend.forced_agencies,
    )
    per_mille = st.sidebar.toggle("ROAS per 1k impressions", value=session.roas_convention is RoasConvention.PER_MILLE)
    session.roas_convention = RoasConvention.PER_MILLE if per_mille else RoasConvention.SPEND


def _render_filters(frame: pd.DataFrame) -> FilterOptions:
    st.sidebar.subheader("Filters")
    if frame.empty:
        return FilterOptions()
    dimensions = add_campaign_dimensions(frame)
    dates = pd.to_datetime(frame["date"], errors="coerce").dropna()
    start: Optional[date] = None
    end: Optional[date] = None
    if not dates.empty:
        selected = st.sidebar.date_input(
            "Date range",
            value=(dates.min().date(), dates.max().date()),
            min_value=dates.min().date(),
            max_value=dates.max().date(),
        )
        if isinstance(selected, tuple) and len(selected) == 2:
            start, end = selected
    campaigns = st.sidebar.multiselect("Campaigns", sorted(dimensions["campaign_name"].unique(), key=str.lower))
    advertisers = st.sidebar.multiselect("Advertisers", sorted(dimensions["advertiser"].unique(), key=str.lower))
    agencies = st.sidebar.multiselect("Agencies", sorted(dimensions["agency"].unique(), key=str.lower))
    exclude_tests = st.sidebar.checkbox("Hide test campaigns", value=True)
    return FilterOptions(
        campaigns=tuple(campaigns),
        advertisers=tuple(advertisers),
        agencies=tuple(agencies),
        start_date=start,
        end_date=end,
        exclude_test_campaigns=exclude_tests,
    )


def _quality_banner(frame: pd.DataFrame) -> None:
    report = run_quality_checks(frame)
    caveat = next((rule.detail for rule in report.rules if rule.status in {"WARN", "FAIL"}), None)
    if report.status == "PASS":
        st.success("Data quality: PASS")
    elif report.status == "WARN":
        st.warning(f"Data quality: WARN: {caveat}")
    else:
        st.error(f"Data quality: FAIL: {caveat}")


def _render_kpi_tiles(session: DashboardSession, frame: pd.DataFrame) -> None:
    totals = session.totals(frame)
    trends = session.trends(frame)
    metrics = [
        ("Impressions", _format_number(totals.impressions), trends.impressions),
        ("Clicks", _format_number(totals.clicks), trends.clicks),
        ("CTR", f"{totals.ctr:.2f}%", trends.ctr),
        ("Transactions", _format_number(totals.transactions), trends.transactions),
        ("Revenue", _format_currency(totals.revenue), trends.revenue),
        ("Spend", _format_currency(totals.spend), trends.spend),
        ("ROAS", f"{totals.roas:.2f}", trends.roas),
    ]
    columns = st.columns(len(metrics))
    for column, (label, value_text, trend) in zip(columns, metrics):
        column.metric(label, value_text, delta=_format_trend(trend), delta_color="inverse" if label == "Spend" else "normal")


def _render_daily_chart(daily: pd.DataFrame) -> None:
    if daily.empty:
        st.info("No dated rows in the selected range.")
        return
    fig = make_subplots(specs=[[{"secondary_y": True}]])
    fig.add_trace(
        go.Scatter(x=daily["date"], y=daily["impressions"], name="Impressions", mode="lines", line=dict(color="#3778C2", width=2)),
        secondary_y=False,
    )
    fig.add_trace(
        go.Bar(x=daily["date"], y=daily["revenue"], name="Revenue", marker_color="#F28E2B", opacity=0.4),
        secondary_y=True,
    )
    fig.update_yaxes(title_text="Impressions", secondary_y=False)
    fig.update_yaxes(title_text="Revenue", secondary_y=True)
    fig.update_layout(hovermode="x unified", height=360, margin=dict(l=40, r=40, t=20, b=40))
    st.plotly_chart(fig, use_container_width=True)


def _render_period_cards(session: DashboardSession, frame: pd.DataFrame, filters: FilterOptions) -> None:
    if filters.start_date is None or filters.end_date is None:
        return
    current = period_metrics(frame, filters.start_date, filters.end_date, session.roas_convention)
    previous = previous_period(frame, current, session.roas_convention)
    st.caption(
        f"Compared with {format_date_display(previous.start)} - {format_date_display(previous.end)}"
        if previous.start
        else ""
    )
    columns = st.columns(4)
    for column, metric in zip(columns, ("impressions", "revenue", "spend", "roas")):
        comparison = metric_comparison(current, previous, metric)
        column.metric(
            f"{metric.title()} vs previous period",
            _format_number(comparison.current),
            delta=_format_trend(comparison.change),
            delta_color="normal" if comparison.is_good == (comparison.change >= 0) else "inverse",
        )


def render_overview(session: DashboardSession, frame: pd.DataFrame, filters: FilterOptions) -> None:
    st.title("Overview")
    _quality_banner(frame)
    _render_kpi_tiles(session, frame)
    _render_period_cards(session, frame, filters)
    st.subheader("Daily delivery")
    _render_daily_chart(session.daily(frame, filters=filters))
    st.subheader("Day of week")
    by_day = session.by_day_of_week(frame)
    if not by_day.empty:
        fig = go.Figure(go.Bar(x=by_day["day"], y=by_day["impressions"], marker_color="#59A14F"))
        fig.update_layout(height=300, margin=dict(l=40, r=40, t=20, b=40))
        st.plotly_chart(fig, use_container_width=True)


def render_campaigns(session: DashboardSession, frame: pd.DataFrame, filters: FilterOptions) -> None:
    st.title("Campaigns")
    table = session.by_campaign(frame)
    if table.empty:
        st.info("Upload a campaign CSV to see campaign performance.")
        return
    st.dataframe(table, use_container_width=True, hide_index=True)
    selected = st.selectbox("Campaign detail", table["campaign_name"].tolist())
    if selected:
        series = session.campaign_series(frame, selected)
        _render_daily_chart(series)


def render_anomalies(session: DashboardSession, frame: pd.DataFrame, filters: FilterOptions) -> None:
    st.title("Anomalies")
    anomalies = session.anomalies(_current_frame(), filters)
    if not anomalies:
        st.info("No anomalies detected.")
        return
    counts = anomaly_counts(anomalies)
    columns = st.columns(4)
    for column, key in zip(columns, ("total", "high", "medium", "low")):
        column.metric(key.title(), counts[key])

    severity = st.selectbox("Severity", ["all"] + [item.value for item in Severity])
    kind = st.selectbox(
        "Type",
        ["all"] + [item.value for item in AnomalyType],
        format_func=lambda value: value if value == "all" else anomaly_type_display_name(value),
    )
    recency = st.selectbox("Detected within", [0, 7, 14, 30], format_func=lambda days: "any time" if not days else f"{days} days")
    show_ignored = st.checkbox("Show ignored", value=False)
    selected = filter_anomalies(
        anomalies,
        severity=None if severity == "all" else severity,
        anomaly_type=None if kind == "all" else kind,
        recency_days=recency or None,
        include_ignored=show_ignored,
    )
    st.dataframe(anomalies_to_frame(selected), use_container_width=True, hide_index=True)

    if session.store is None:
        st.caption("Connect a backend to save ignore flags.")
        return
    for anomaly in selected[:50]:
        label = f"{anomaly.date_detected.isoformat()} · {anomaly.campaign_name} · {anomaly_type_display_name(anomaly.anomaly_type)}"
        ignored = st.checkbox(f"Ignore {label}", value=anomaly.is_ignored, key=f"ignore-{'-'.join(anomaly.key)}")
        if ignored != anomaly.is_ignored:
            try:
                session.set_ignored(anomaly, ignored)
            except BackendError as exc:
                st.error(str(exc))


def _contract_terms(session: DashboardSession) -> List[ContractTerms]:
    upload = st.file_uploader("Contract terms CSV", type=["csv"], key="contract_csv")
    if upload is not None:
        try:
            terms = load_contract_terms(upload)
        except CsvImportError as exc:
            st.error(str(exc))
            return []
        if session.store is not None and st.button("Save contract terms"):
            try:
                saved = session.store.upload_contract_terms(terms, clear_first=True)
                st.success(f"Saved contract terms for {saved} campaigns")
            except BackendError as exc:
                st.error(str(exc))
        return terms
    return session.contract_terms()


def _render_renewals(session: DashboardSession, pacing: pd.DataFrame) -> None:
    store = session.store
    if store is None or pacing.empty:
        return
    st.subheader("Renewals")
    with st.form("renewal-status", clear_on_submit=True):
        campaign = st.selectbox("Campaign", sorted(pacing["campaign_name"], key=str.lower))
        status = st.selectbox("Renewal status", [item.value for item in RenewalStatus])
        notes = st.text_input("Notes")
        updated_by = st.text_input("Updated by", value=os.environ.get("USER", ""))
        if st.form_submit_button("Save renewal status"):
            try:
                store.set_renewal_status(campaign, status, notes=notes or None, updated_by=updated_by or None)
                st.success(f"{campaign}: {status}")
            except BackendError as exc:
                st.error(str(exc))


def render_pacing(session: DashboardSession, frame: pd.DataFrame, filters: FilterOptions) -> None:
    st.title("Pacing & Health")
    terms = _contract_terms(session)
    pacing = session.pacing(frame, terms, reference_frame=_current_frame())
    if pacing:
        pacing_frame = pacing_to_frame(pacing)
        if session.store is not None:
            pacing_frame = attach_renewal_status(pacing_frame, session.store.fetch_renewals())
        st.subheader("Pacing")
        st.dataframe(pacing_frame, use_container_width=True, hide_index=True)
        _render_renewals(session, pacing_frame)
    elif terms:
        st.info("None of the contracted campaigns have delivery in the current selection.")

    health = health_to_frame(session.health_scores(frame, pacing))
    if health.empty:
        return
    st.subheader("Campaign health")
    health = health.sort_values("health_score")
    colours = health["band"].map({"green": "#59A14F", "amber": "#EDC948", "red": "#E15759"})
    fig = go.Figure(go.Bar(x=health["health_score"], y=health["campaign_name"], orientation="h", marker_color=colours))
    fig.update_layout(height=max(300, 24 * len(health)), xaxis=dict(range=[0, 10]), margin=dict(l=40, r=40, t=20, b=40))
    st.plotly_chart(fig, use_container_width=True)
    st.dataframe(health, use_container_width=True, hide_index=True)


def render_team(session: DashboardSession, frame: pd.DataFrame, filters: FilterOptions) -> None:
    st.title("Team")
    store = session.store
    if store is None:
        st.info("Team notes need a configured backend (SUPABASE_URL and SUPABASE_KEY).")
        return
    for name in COLLECTIONS:
        st.subheader(name.replace("_", " ").title())
        items = store.fetch_collection(name)
        if items:
            st.dataframe(pd.DataFrame(items), use_container_width=True, hide_index=True)
        with st.form(f"add-{name}", clear_on_submit=True):
            title = st.text_input("Title")
            body = st.text_area("Details")
            if st.form_submit_button("Add") and title:
                try:
                    store.add_item(name, {"title": title, "content": body})
                    store.log_activity(f"{name}_added", {"title": title})
                except BackendError as exc:
                    st.error(str(exc))
    st.subheader("Recent activity")
    st.dataframe(pd.DataFrame(store.fetch_activity()), use_container_width=True, hide_index=True)


def _sections() -> Tuple[str, ...]:
    return ("Overview", "Campaigns", "Anomalies", "Pacing & Health", "Team")


def main() -> None:
    session = _session()
    st.sidebar.title("Navigation")
    section = st.sidebar.radio("Go to", _sections())
    _render_upload(session)
    _render_spend_controls(session)

    raw = _current_frame()
    filters = _render_filters(raw)
    try:
        frame = session.prepare(raw, filters)
    except CampaignAnalyticsError as exc:
        st.error(str(exc))
        return

    renderer = {
        "Overview": render_overview,
        "Campaigns": render_campaigns,
        "Anomalies": render_anomalies,
        "Pacing & Health": render_pacing,
        "Team": render_team,
    }[section]
    renderer(session, frame, filters)


if __name__ == "__main__":  # pragma: no cover
    main()
