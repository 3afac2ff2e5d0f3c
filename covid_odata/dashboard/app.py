# covid_odata/dashboard/app.py
"""
COVID-19 dashboard.

    streamlit run covid_odata/dashboard/app.py
"""
import asyncio
import logging

import streamlit as st

from covid_odata.core.logging import setup_logging
from covid_odata.dashboard.components.legend import render_legend
from covid_odata.dashboard.components.treemap import build_treemap
from covid_odata.dashboard.components.world_map import build_world_map
from covid_odata.domain.services.covid_summary import format_number, get_totals
from covid_odata.domain.services.dashboard_data import load_available_dates, load_covid_data
from covid_odata.infra.cache.case_cache import case_cache

logger = logging.getLogger(__name__)

TABS = {
    "confirmed": "Confirmed",
    "active": "Active",
    "recovered": "Recovered",
    "deaths": "Deaths",
    "daily_increase": "Daily Increase",
}
LATEST = "Latest"


@st.cache_data(ttl=300, show_spinner=False)
def _available_dates():
    return asyncio.run(load_available_dates())


def main() -> None:
    setup_logging()
    st.set_page_config(page_title="COVID-19 Dashboard", layout="wide")
    st.markdown("<h1 style='text-align:center'>COVID-19 Dashboard</h1>", unsafe_allow_html=True)

    with st.sidebar:
        st.header("Data")
        if st.button("Refresh data"):
            case_cache.clear()
            _available_dates.clear()
            logger.info("🔄 Dashboard cache cleared by user")

    data_type = st.radio(
        "Metric",
        options=list(TABS),
        format_func=TABS.get,
        horizontal=True,
        label_visibility="collapsed",
    )
    label = TABS[data_type]

    dates = _available_dates()
    as_of = None
    if dates:
        choice = st.selectbox("Select Date:", [LATEST] + [d.isoformat() for d in reversed(dates)])
        if choice != LATEST:
            as_of = choice

    with st.spinner("Loading COVID-19 data..."):
        result = asyncio.run(load_covid_data(as_of=as_of))

    if result.warning:
        st.warning(result.warning)
    st.caption(f"Data source: **{result.source}**")

    df = result.df
    totals = get_totals(df)
    st.metric(f"Total {label}", format_number(totals[data_type]))

    if df.empty:
        st.info("No data available for the selected date.")
    else:
        st.subheader("World Map Visualization")
        st.plotly_chart(build_world_map(df, data_type, label), use_container_width=True)
        render_legend(f"COVID-19 {label} Legend")

        st.subheader(f"{label} by Country")
        st.plotly_chart(build_treemap(df, data_type), use_container_width=True)

    st.divider()
    st.caption("Data is for demonstration purposes only")


main()
