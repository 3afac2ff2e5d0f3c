# covid_odata/dashboard/components/treemap.py
import pandas as pd
import plotly.graph_objects as go

from covid_odata.domain.services.covid_summary import contrast_color, format_number, get_treemap_data


def build_treemap(df: pd.DataFrame, data_type: str) -> go.Figure:
    rows = get_treemap_data(df, data_type)
    rows = rows[rows["size"] > 0]

    fig = go.Figure(go.Treemap(
        labels=rows["name"],
        parents=[""] * len(rows),
        values=rows["size"],
        marker=dict(colors=rows["color"]),
        textfont=dict(color=[contrast_color(c) for c in rows["color"]]),
        customdata=[[format_number(size), pct] for size, pct in zip(rows["size"], rows["percentage"])],
        texttemplate="<b>%{label}</b><br>%{customdata[0]}<br>%{customdata[1]}%",
        hovertemplate="%{label}: %{customdata[0]} (%{customdata[1]}%)<extra></extra>",
        sort=True,
    ))
    fig.update_layout(margin=dict(l=0, r=0, t=0, b=0), height=520)
    return fig
