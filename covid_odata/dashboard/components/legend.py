# covid_odata/dashboard/components/legend.py
import streamlit as st

from covid_odata.domain.services.covid_summary import NO_DATA_COLOR, PERCENT_SCALE

_LABELS = {
    "#00205B": "Critical (15%+)",
    "#00297A": "Very High (10-15%)",
    "#003399": "High (8-10%)",
    "#0047AB": "Medium-High (5-8%)",
    "#0066CC": "Medium (3-5%)",
    "#4D94FF": "Low-Medium (2-3%)",
    "#99C2FF": "Low (1-2%)",
}


def render_legend(title: str) -> None:
    items = [(NO_DATA_COLOR, "No data/Very low (< 1%)")]
    items += [(color, _LABELS[color]) for _, color in reversed(PERCENT_SCALE)]

    swatches = "".join(
        f'<span style="display:inline-flex;align-items:center;margin:4px 10px;font-size:13px">'
        f'<span style="background:{color};width:18px;height:18px;display:inline-block;'
        f'margin-right:8px;border:1px solid #ddd"></span>{label}</span>'
        for color, label in items
    )
    st.markdown(
        f'<div style="text-align:center"><h4>{title}</h4>{swatches}</div>',
        unsafe_allow_html=True,
    )
