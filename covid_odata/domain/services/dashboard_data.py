# covid_odata/domain/services/dashboard_data.py
import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Union

import pandas as pd

from covid_odata.core.config import settings
from covid_odata.data.mock_data import COVID_DATA
from covid_odata.domain.services.covid_summary import COLUMNS, transform_cases_to_covid_data
from covid_odata.infra.cache.case_cache import CaseCache, case_cache
from covid_odata.infra.client.odata_client import ApiError, CovidApiClient

logger = logging.getLogger(__name__)


@dataclass
class DataResult:
    df: pd.DataFrame
    source: str  # "api", "cache" or "mock"
    warning: Optional[str] = None


def mock_frame() -> pd.DataFrame:
    return pd.DataFrame(COVID_DATA, columns=COLUMNS)


async def load_covid_data(
    client: Optional[CovidApiClient] = None,
    cache: CaseCache = case_cache,
    use_mock: Optional[bool] = None,
    as_of: Optional[Union[date, str]] = None,
) -> DataResult:
    """Per-country summary from cache or API, falling back to the demo snapshot."""
    if use_mock is None:
        use_mock = settings.USE_MOCK_DATA
    if use_mock:
        logger.info("🧪 Mock data enabled, skipping API")
        return DataResult(mock_frame(), "mock", "Mock data mode is enabled. Showing demo data.")

    payload = cache.get()
    source = "cache"
    if payload is None:
        client = client or CovidApiClient()
        try:
            payload = await client.get_all_cases()
        except ApiError as e:
            logger.error(f"❌ Failed to load cases from API: {e}")
            return DataResult(
                mock_frame(),
                "mock",
                f"Could not load live data ({e.code}). Showing demo data.",
            )
        cache.set(payload)
        source = "api"

    df = transform_cases_to_covid_data(payload, as_of=as_of)
    if df.empty:
        if as_of is not None:
            return DataResult(df, source, f"No case data recorded on or before {as_of}.")
        logger.warning("⚠️ API returned no usable case data, using demo data")
        return DataResult(mock_frame(), "mock", "The API returned no case data. Showing demo data.")

    return DataResult(df, source)


async def load_available_dates(client: Optional[CovidApiClient] = None) -> List[date]:
    """Recorded dates for the date selector; empty when the API is unreachable."""
    client = client or CovidApiClient()
    try:
        raw = await client.get_dates()
    except ApiError as e:
        logger.warning(f"⚠️ Could not load available dates: {e}")
        return []
    return [date.fromisoformat(str(value)[:10]) for value in raw if value]
