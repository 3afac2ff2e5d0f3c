# covid_odata/infra/client/odata_client.py
"""
Async client for the COVID OData API.

`get_all_cases` assembles the full case list client-side: it asks for the
row count, splits it into fixed-size pages and requests up to
`max_concurrent` pages at a time. Failed pages are logged and skipped; there
is no retry and a failing page never cancels its siblings.
"""
import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from covid_odata.core.config import settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    code = "API_ERROR"

    def __init__(self, message: str):
        super().__init__(f"{self.code}: {message}")
        self.message = message


class ApiTimeoutError(ApiError):
    code = "TIMEOUT_ERROR"


class ApiConnectionError(ApiError):
    code = "CONNECTION_ERROR"


class MockDataEnabled(ApiError):
    code = "MOCK_DATA_ENABLED"


@dataclass
class ClientConfig:
    base_url: str = settings.API_BASE_URL
    timeout: float = settings.API_TIMEOUT
    batch_size: int = settings.BATCH_SIZE
    max_concurrent: int = settings.MAX_CONCURRENT_REQUESTS
    chunk_delay: float = settings.CHUNK_DELAY
    use_mock_data: bool = settings.USE_MOCK_DATA


@dataclass
class BatchResult:
    batch_index: int
    data: List[Dict[str, Any]] = field(default_factory=list)
    success: bool = False
    error: Optional[str] = None


# left unescaped inside query option values
_VALUE_SAFE_CHARS = "$,()/':"


def build_url(path: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Append OData query options, quoting each value on its own."""
    if not params:
        return path
    query = "&".join(f"{name}={quote(str(value), safe=_VALUE_SAFE_CHARS)}" for name, value in params.items())
    return f"{path}?{query}"


class CovidApiClient:
    def __init__(self, config: Optional[ClientConfig] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or ClientConfig()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.base_url.rstrip("/"),
            timeout=self.config.timeout,
            transport=self._transport,
            headers={"Accept": "application/json"},
        )

    async def _get(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        if self.config.use_mock_data:
            raise MockDataEnabled("API calls are bypassed while mock data is enabled")
        try:
            response = await client.get(build_url(endpoint, params))
        except httpx.TimeoutException as e:
            raise ApiTimeoutError(f"Request timed out: {endpoint}") from e
        except httpx.TransportError as e:
            raise ApiConnectionError(f"Could not reach {self.config.base_url}: {e}") from e
        if response.is_error:
            raise ApiError(f"HTTP error! status: {response.status_code}")
        return response

    async def api_call(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> Dict[str, Any]:
        """GET `endpoint` (relative to the base URL) with OData `params` and decode the JSON body."""
        if client is not None:
            response = await self._get(client, endpoint, params)
        else:
            async with self._client() as own:
                response = await self._get(own, endpoint, params)
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(f"Invalid JSON response: {response.text[:50]!r}") from e

    async def get_count(
        self,
        entity_set: str = "Cases",
        filter: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> int:
        endpoint = f"/{entity_set}/$count"
        params = {"$filter": filter} if filter else None

        async def _fetch(c: httpx.AsyncClient) -> int:
            response = await self._get(c, endpoint, params)
            try:
                return int(response.text.strip())
            except ValueError:
                raise ApiError(f"Invalid count response: {response.text[:50]!r}")

        if client is not None:
            return await _fetch(client)
        async with self._client() as own:
            return await _fetch(own)

    async def _fetch_batch(
        self,
        client: httpx.AsyncClient,
        batch_index: int,
        total_count: int,
        total_batches: int,
    ) -> BatchResult:
        batch_size = self.config.batch_size
        skip = batch_index * batch_size
        top = min(batch_size, total_count - skip)
        logger.debug(f"📦 Starting batch {batch_index + 1}/{total_batches} (skip: {skip}, top: {top})")

        try:
            payload = await self.api_call(
                "/Cases",
                {"$expand": "Region", "$skip": skip, "$top": top, "$orderby": "Id"},
                client=client,
            )
        except ApiError as e:
            logger.error(f"❌ Batch {batch_index + 1} failed: {e}")
            return BatchResult(batch_index, error=str(e))

        value = payload.get("value") if isinstance(payload, dict) else None
        if not isinstance(value, list):
            logger.warning(f"⚠️ Batch {batch_index + 1} returned invalid data")
            return BatchResult(batch_index, error="Invalid payload")

        logger.debug(f"✅ Batch {batch_index + 1} completed: {len(value)} records")
        return BatchResult(batch_index, data=value, success=True)

    async def get_all_cases(self) -> Dict[str, List[Dict[str, Any]]]:
        """Fetch every case (with its Region) using chunked concurrent paging."""
        async with self._client() as client:
            total_count = await self.get_count("Cases", client=client)
            logger.info(f"📊 Total cases count: {total_count}")
            if total_count == 0:
                return {"value": []}

            total_batches = math.ceil(total_count / self.config.batch_size)
            step = max(1, self.config.max_concurrent)
            results: List[BatchResult] = []

            for start in range(0, total_batches, step):
                end = min(start + step, total_batches)
                outcomes = await asyncio.gather(
                    *(self._fetch_batch(client, i, total_count, total_batches) for i in range(start, end)),
                    return_exceptions=True,
                )
                for offset, outcome in enumerate(outcomes):
                    if isinstance(outcome, BaseException):
                        logger.error(f"❌ Batch {start + offset + 1} raised: {outcome!r}")
                        outcome = BatchResult(start + offset, error=str(outcome) or type(outcome).__name__)
                    results.append(outcome)

                fetched = sum(len(r.data) for r in results)
                progress = round(end / total_batches * 100)
                logger.info(f"📈 Progress: {end}/{total_batches} batches ({progress}%) - {fetched} records fetched")

                if end < total_batches and self.config.chunk_delay > 0:
                    await asyncio.sleep(self.config.chunk_delay)

        results.sort(key=lambda r: r.batch_index)
        all_cases = [row for r in results if r.success for row in r.data]
        failed = [r.batch_index + 1 for r in results if not r.success]

        logger.info(
            f"🎉 Batch processing completed: {total_batches - len(failed)}/{total_batches} batches, "
            f"{len(all_cases)}/{total_count} records"
        )
        if failed:
            logger.warning(f"⚠️ Some batches failed, data may be incomplete. Failed batch numbers: {', '.join(map(str, failed))}")

        return {"value": all_cases}

    async def get_regions(self) -> Dict[str, Any]:
        return await self.api_call("/Regions", {"$orderby": "Name"})

    async def get_dates(self) -> List[str]:
        """Distinct recorded dates, oldest first."""
        payload = await self.api_call(
            "/Cases",
            {"$apply": "groupby((RecordedDate))", "$orderby": "RecordedDate"},
        )
        return [row["RecordedDate"] for row in payload.get("value", [])]

    async def get_global_totals(self) -> Optional[Dict[str, Any]]:
        """World-wide sums for the most recent recorded date."""
        payload = await self.api_call(
            "/Cases",
            {
                "$apply": "groupby((RecordedDate),aggregate("
                          "ConfirmedCases with sum as TotalConfirmed,"
                          "RecoveredCases with sum as TotalRecovered,"
                          "DeathCases with sum as TotalDeaths))",
                "$orderby": "RecordedDate desc",
                "$top": 1,
            },
        )
        value = payload.get("value", [])
        return value[0] if value else None

    async def get_daily_increase_by_country(
        self,
        country_name: str,
        days: int = 7,
        today: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        end_date = today or date.today()
        start_date = end_date - timedelta(days=days)
        escaped = country_name.replace("'", "''")
        payload = await self.api_call(
            "/Cases",
            {
                "$filter": f"Region/Name eq '{escaped}' and RecordedDate ge {start_date.isoformat()} "
                           f"and RecordedDate le {end_date.isoformat()}",
                "$expand": "Region",
                "$orderby": "RecordedDate asc",
            },
        )
        cases = payload.get("value", [])

        increases = []
        for previous, current in zip(cases, cases[1:]):
            delta = (current.get("ConfirmedCases") or 0) - (previous.get("ConfirmedCases") or 0)
            increases.append({"date": current["RecordedDate"], "daily_increase": max(0, delta)})
        return increases
