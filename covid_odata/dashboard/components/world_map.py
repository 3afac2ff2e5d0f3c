# covid_odata/dashboard/components/world_map.py
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from covid_odata.domain.services.covid_summary import NO_DATA_COLOR, color_by_percentage, format_number


def build_world_map(df: pd.DataFrame, data_type: str, label: str) -> go.Figure:
    """Choropleth keyed by ISO3, colored by each country's share of confirmed cases."""
    data = df.copy()
    data["color"] = data["percent"].map(color_by_percentage)
    data["value"] = data[data_type].map(format_number)

    fig = px.choropleth(
        data,
        locations="iso3",
        locationmode="ISO-3",
        color="color",
        color_discrete_map="identity",
        hover_name="country",
        hover_data={"iso3": False, "color": False, "value": True, "percent": True},
        labels={"value": label, "percent": "% of confirmed"},
    )
    fig.update_geos(
        showcountries=True,
        countrycolor="#FFFFFF",
        showland=True,
        landcolor=NO_DATA_COLOR,
        showframe=False,
        projection_type="natural earth",
    )
    fig.update_layout(margin=dict(l=0, r=0, t=0, b=0), showlegend=False, height=480)
    return fig
