# covid_odata/domain/services/covid_summary.py
"""
Turns raw `Cases?$expand=Region` payloads into the per-country table the
dashboard renders, plus the color and formatting helpers for the map and
treemap.
"""
import logging
from datetime import date
from typing import Any, Dict, Iterable, Optional, Tuple, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

METRICS = ("confirmed", "active", "recovered", "deaths", "daily_increase")
COLUMNS = ["country", "iso2", "iso3", *METRICS, "percent"]

NO_DATA_COLOR = "#F5F5F5"

COUNTRY_CODES: Dict[str, Tuple[str, str]] = {
    "US": ("US", "USA"),
    "United States": ("US", "USA"),
    "India": ("IN", "IND"),
    "Brazil": ("BR", "BRA"),
    "United Kingdom": ("GB", "GBR"),
    "UK": ("GB", "GBR"),
    "Russia": ("RU", "RUS"),
    "France": ("FR", "FRA"),
    "Turkey": ("TR", "TUR"),
    "Spain": ("ES", "ESP"),
    "Italy": ("IT", "ITA"),
    "Germany": ("DE", "DEU"),
    "Argentina": ("AR", "ARG"),
    "Poland": ("PL", "POL"),
    "Iran": ("IR", "IRN"),
    "Mexico": ("MX", "MEX"),
    "Ukraine": ("UA", "UKR"),
    "South Africa": ("ZA", "ZAF"),
    "Philippines": ("PH", "PHL"),
    "Malaysia": ("MY", "MYS"),
    "Netherlands": ("NL", "NLD"),
    "Indonesia": ("ID", "IDN"),
    "Chile": ("CL", "CHL"),
    "Canada": ("CA", "CAN"),
    "Australia": ("AU", "AUS"),
    "Japan": ("JP", "JPN"),
    "South Korea": ("KR", "KOR"),
    "China": ("CN", "CHN"),
}

TREEMAP_COLORS: Dict[str, str] = {
    "US": "#0047AB",
    "India": "#FF5733",
    "Brazil": "#00A36C",
    "United Kingdom": "#A569BD",
    "Russia": "#FF9933",
    "France": "#FF3366",
    "Germany": "#73C6B6",
    "Italy": "#F7DC6F",
    "Spain": "#F39C12",
    "Turkey": "#3498DB",
    "Poland": "#E74C3C",
    "Iran": "#BF40BF",
    "Mexico": "#C0392B",
    "Ukraine": "#AAB7B8",
    "South Africa": "#2ECC71",
    "Indonesia": "#8E44AD",
    "Netherlands": "#D35400",
    "Philippines": "#2980B9",
    "Malaysia": "#1ABC9C",
    "Chile": "#E67E22",
}

# (minimum percent, color), checked top to bottom
PERCENT_SCALE = (
    (15, "#00205B"),
    (10, "#00297A"),
    (8, "#003399"),
    (5, "#0047AB"),
    (3, "#0066CC"),
    (2, "#4D94FF"),
    (1, "#99C2FF"),
)
LOWEST_COLOR = "#E6F7FF"


def country_codes(name: str) -> Tuple[str, str]:
    if name in COUNTRY_CODES:
        return COUNTRY_CODES[name]
    return name[:2].upper(), name[:3].upper()


def _records(payload: Any) -> Iterable[Dict[str, Any]]:
    if isinstance(payload, dict):
        payload = payload.get("value")
    if not isinstance(payload, list):
        logger.error(f"Invalid cases data structure: {type(payload).__name__}")
        return []
    return payload


def transform_cases_to_covid_data(
    payload: Any,
    as_of: Optional[Union[date, str]] = None,
) -> pd.DataFrame:
    """
    Latest record per region (on or before `as_of` when given) with derived
    active cases, day-over-day increase, ISO codes and share of the confirmed
    total. Rows are ordered by confirmed cases, largest first.
    """
    rows = []
    skipped = 0
    for item in _records(payload):
        name = (item.get("Region") or {}).get("Name")
        if not name:
            skipped += 1
            continue
        rows.append({
            "country": name,
            "date": item.get("RecordedDate"),
            "confirmed": item.get("ConfirmedCases"),
            "recovered": item.get("RecoveredCases"),
            "deaths": item.get("DeathCases"),
        })
    if skipped:
        logger.warning(f"⚠️ Skipped {skipped} case rows without a region name")
    if not rows:
        return pd.DataFrame(columns=COLUMNS)

    df = pd.DataFrame(rows)
    df["date"] = pd.to_datetime(df["date"], errors="coerce")
    for col in ("confirmed", "recovered", "deaths"):
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0).astype("int64")

    if as_of is not None:
        df = df[df["date"] <= pd.Timestamp(as_of)].copy()
        if df.empty:
            return pd.DataFrame(columns=COLUMNS)

    # On equal dates the first row received wins
    df["_order"] = np.arange(len(df))
    df = df.sort_values(["country", "date", "_order"], ascending=[True, True, False], na_position="first")

    df["daily_increase"] = (
        df.groupby("country")["confirmed"].diff().fillna(0).clip(lower=0).astype("int64")
    )
    latest = df.groupby("country", sort=False).tail(1).copy()

    latest["active"] = (latest["confirmed"] - latest["recovered"] - latest["deaths"]).clip(lower=0)
    codes = [country_codes(name) for name in latest["country"]]
    latest["iso2"] = [iso2 for iso2, _ in codes]
    latest["iso3"] = [iso3 for _, iso3 in codes]

    total = latest["confirmed"].sum()
    if total > 0:
        latest["percent"] = np.floor(latest["confirmed"] / total * 100 + 0.5).astype("int64")
    else:
        latest["percent"] = 0

    latest = latest.sort_values("confirmed", ascending=False, kind="mergesort")
    return latest[COLUMNS].reset_index(drop=True)


def get_totals(df: pd.DataFrame) -> Dict[str, int]:
    return {metric: int(df[metric].sum()) if metric in df else 0 for metric in METRICS}


def get_treemap_data(df: pd.DataFrame, data_type: str) -> pd.DataFrame:
    if data_type not in METRICS:
        raise ValueError(f"Unknown metric '{data_type}'")
    if df.empty:
        return pd.DataFrame(columns=["name", "size", "percentage", "color"])
    return pd.DataFrame({
        "name": df["country"],
        "size": df[data_type].fillna(0),
        "percentage": df["percent"].fillna(0),
        "color": df["country"].map(treemap_color),
    }).reset_index(drop=True)


def color_by_percentage(percent) -> str:
    for threshold, color in PERCENT_SCALE:
        if percent >= threshold:
            return color
    return LOWEST_COLOR


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def treemap_color(name: str) -> str:
    """Fixed color for major countries, otherwise a stable name-derived one."""
    if name in TREEMAP_COLORS:
        return TREEMAP_COLORS[name]

    hash_ = 0
    for ch in name:
        hash_ = ord(ch) + (_to_int32(_to_int32(hash_) << 5) - hash_)

    hash_ = _to_int32(hash_)
    channels = [max((hash_ >> (i * 8)) & 0xFF, 100) for i in range(3)]
    return "#" + "".join(f"{c:02x}" for c in channels)


def contrast_color(background: str) -> str:
    """Black text on light backgrounds, white on dark."""
    hex_color = background.lstrip("#")
    r, g, b = (int(hex_color[i:i + 2], 16) for i in (0, 2, 4))
    luminance = (0.299 * r + 0.587 * g + 0.114 * b) / 255
    return "#000000" if luminance > 0.55 else "#FFFFFF"


def format_number(value) -> str:
    if value is None:
        return "0"
    return f"{int(value):,}"
