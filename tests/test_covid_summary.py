# tests/test_covid_summary.py
import pandas as pd
import pytest

from covid_odata.domain.services.covid_summary import (
    COLUMNS,
    color_by_percentage,
    contrast_color,
    format_number,
    get_totals,
    get_treemap_data,
    transform_cases_to_covid_data,
    treemap_color,
)


def test_latest_record_per_region(case_payload):
    df = transform_cases_to_covid_data(case_payload)

    assert list(df.columns) == COLUMNS
    assert list(df["country"]) == ["US", "India", "Brazil", "Cote d'Ivoire"]

    us = df.iloc[0]
    assert (us.confirmed, us.recovered, us.deaths, us.active) == (140, 70, 7, 63)
    assert (us.iso2, us.iso3) == ("US", "USA")
    # a downward correction never reports a negative increase
    assert us.daily_increase == 0

    india = df.iloc[1]
    assert india.daily_increase == 40
    assert (india.iso2, india.iso3) == ("IN", "IND")


def test_active_is_clamped_and_nulls_are_zero(case_payload):
    df = transform_cases_to_covid_data(case_payload).set_index("country")
    assert df.loc["Brazil", "active"] == 0
    assert df.loc["Cote d'Ivoire", "recovered"] == 0
    assert df.loc["Cote d'Ivoire", "active"] == 10


def test_unknown_country_codes_fall_back_to_name_prefix(case_payload):
    df = transform_cases_to_covid_data(case_payload).set_index("country")
    assert (df.loc["Cote d'Ivoire", "iso2"], df.loc["Cote d'Ivoire", "iso3"]) == ("CO", "COT")


def test_percent_rounds_half_up(case_payload):
    df = transform_cases_to_covid_data(case_payload).set_index("country")
    # 140, 120, 50, 10 of 320
    assert df["percent"].to_dict() == {"US": 44, "India": 38, "Brazil": 16, "Cote d'Ivoire": 3}


def test_as_of_cutoff(case_payload):
    df = transform_cases_to_covid_data(case_payload, as_of="2021-01-02").set_index("country")
    assert df.loc["US", "confirmed"] == 150
    assert df.loc["US", "daily_increase"] == 50

    assert transform_cases_to_covid_data(case_payload, as_of="2020-12-31").empty


def test_rows_without_region_are_dropped_and_first_wins_on_same_date():
    payload = {"value": [
        {"RecordedDate": "2021-01-01", "ConfirmedCases": 1, "Region": None},
        {"RecordedDate": "2021-01-01", "ConfirmedCases": 5, "Region": {"Name": "Peru"}},
        {"RecordedDate": "2021-01-01", "ConfirmedCases": 9, "Region": {"Name": "Peru"}},
    ]}
    df = transform_cases_to_covid_data(payload)
    assert len(df) == 1
    assert df.iloc[0]["confirmed"] == 5


def test_zero_total_gives_zero_percent():
    payload = [{"RecordedDate": "2021-01-01", "ConfirmedCases": None, "Region": {"Name": "Peru"}}]
    df = transform_cases_to_covid_data(payload)
    assert df.iloc[0]["percent"] == 0


@pytest.mark.parametrize("payload", [None, {"value": None}, "oops", {"value": []}])
def test_invalid_or_empty_payload(payload):
    df = transform_cases_to_covid_data(payload)
    assert df.empty
    assert list(df.columns) == COLUMNS


def test_totals(case_payload):
    totals = get_totals(transform_cases_to_covid_data(case_payload))
    assert totals == {
        "confirmed": 320,
        "active": 171,
        "recovered": 130,
        "deaths": 29,
        "daily_increase": 40,
    }


def test_treemap_rows(case_payload):
    rows = get_treemap_data(transform_cases_to_covid_data(case_payload), "deaths")
    assert list(rows.columns) == ["name", "size", "percentage", "color"]
    assert rows.iloc[0].to_dict() == {"name": "US", "size": 7, "percentage": 44, "color": "#0047AB"}

    with pytest.raises(ValueError):
        get_treemap_data(pd.DataFrame(columns=COLUMNS), "tests")


@pytest.mark.parametrize(
    "percent, color",
    [
        (19, "#00205B"),
        (15, "#00205B"),
        (14.9, "#00297A"),
        (8, "#003399"),
        (5, "#0047AB"),
        (3, "#0066CC"),
        (2, "#4D94FF"),
        (1, "#99C2FF"),
        (0.5, "#E6F7FF"),
    ],
)
def test_color_by_percentage(percent, color):
    assert color_by_percentage(percent) == color


def test_treemap_color():
    assert treemap_color("India") == "#FF5733"
    assert treemap_color("A") == "#646464"
    assert treemap_color("Peru") == "#64e764"
    assert treemap_color("Peru") == treemap_color("Peru")

    color = treemap_color("Some Long Country Name")
    channels = [int(color[i:i + 2], 16) for i in (1, 3, 5)]
    assert all(c >= 100 for c in channels)


def test_contrast_color():
    assert contrast_color("#F7DC6F") == "#000000"
    assert contrast_color("#0047AB") == "#FFFFFF"


def test_format_number():
    assert format_number(52380854) == "52,380,854"
    assert format_number(0) == "0"
    assert format_number(None) == "0"
