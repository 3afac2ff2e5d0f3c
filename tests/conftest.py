# tests/conftest.py
import os

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["REDIS_URL"] = ""
os.environ["USE_MOCK_DATA"] = "false"

from datetime import date  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from covid_odata.infra.db.base import Base  # noqa: E402
from covid_odata.infra.db.models.case import Case  # noqa: E402
from covid_odata.infra.db.models.region import Region  # noqa: E402
from covid_odata.infra.db.session import get_db  # noqa: E402
from covid_odata.main import app  # noqa: E402

REGIONS = [
    {"Id": 1, "Name": "US"},
    {"Id": 2, "Name": "India"},
    {"Id": 3, "Name": "Brazil"},
    {"Id": 4, "Name": "Cote d'Ivoire"},
]

CASES = [
    {"Id": 1, "RegionId": 1, "RecordedDate": date(2021, 1, 1), "ConfirmedCases": 100, "RecoveredCases": 50, "DeathCases": 5},
    {"Id": 2, "RegionId": 1, "RecordedDate": date(2021, 1, 2), "ConfirmedCases": 150, "RecoveredCases": 60, "DeathCases": 6},
    {"Id": 3, "RegionId": 1, "RecordedDate": date(2021, 1, 3), "ConfirmedCases": 140, "RecoveredCases": 70, "DeathCases": 7},
    {"Id": 4, "RegionId": 2, "RecordedDate": date(2021, 1, 1), "ConfirmedCases": 80, "RecoveredCases": 10, "DeathCases": 1},
    {"Id": 5, "RegionId": 2, "RecordedDate": date(2021, 1, 2), "ConfirmedCases": 120, "RecoveredCases": 20, "DeathCases": 2},
    {"Id": 6, "RegionId": 3, "RecordedDate": date(2021, 1, 2), "ConfirmedCases": 50, "RecoveredCases": 40, "DeathCases": 20},
    {"Id": 7, "RegionId": 4, "RecordedDate": date(2021, 1, 1), "ConfirmedCases": 10, "RecoveredCases": None, "DeathCases": 0},
]


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.execute(Region.__table__.insert(), REGIONS)
        await conn.execute(Case.__table__.insert(), CASES)

    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def case_payload():
    """`Cases?$expand=Region` rows as the API serializes them."""
    names = {r["Id"]: r["Name"] for r in REGIONS}
    return {
        "value": [
            {
                "RegionId": c["RegionId"],
                "RecordedDate": c["RecordedDate"].isoformat(),
                "ConfirmedCases": c["ConfirmedCases"],
                "RecoveredCases": c["RecoveredCases"],
                "DeathCases": c["DeathCases"],
                "Id": c["Id"],
                "Region": {"Name": names[c["RegionId"]], "Id": c["RegionId"]},
            }
            for c in CASES
        ]
    }
