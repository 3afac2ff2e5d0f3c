# covid_odata/jobs/load_cases.py
"""
Seeds the Region and Cases tables from a CSV file or URL.

Expected header: Region,RecordedDate,ConfirmedCases,RecoveredCases,DeathCases

    python -m covid_odata.jobs.load_cases data/cases.csv [--truncate]
"""
import argparse
import csv
import io
import logging
from datetime import date
from typing import Dict, List, Optional

import httpx
from sqlalchemy import create_engine, delete, insert, select
from sqlalchemy.orm import Session

from covid_odata.core.config import settings
from covid_odata.core.logging import setup_logging
from covid_odata.infra.db.base import Base
from covid_odata.infra.db.models.case import Case
from covid_odata.infra.db.models.region import Region

logger = logging.getLogger(__name__)

CHUNK_SIZE = 5000


def sync_database_url(url: str) -> str:
    """The job runs with a synchronous driver (psycopg2 / pysqlite), not asyncpg."""
    return url.replace("+asyncpg", "+psycopg2").replace("+aiosqlite", "")


def read_csv(source: str) -> List[Dict[str, str]]:
    if source.startswith(("http://", "https://")):
        logger.info(f"Downloading {source}")
        resp = httpx.get(source, timeout=60, follow_redirects=True)
        resp.raise_for_status()
        content = resp.text
    else:
        with open(source, encoding="utf-8-sig") as fh:
            content = fh.read()
    return list(csv.DictReader(io.StringIO(content)))


def _count(value: Optional[str]) -> int:
    try:
        return max(0, int(float(value))) if value not in (None, "") else 0
    except ValueError:
        return 0


def parse_rows(rows: List[Dict[str, str]]) -> List[Dict]:
    parsed = []
    skipped = 0
    for row in rows:
        name = (row.get("Region") or "").strip()
        try:
            recorded = date.fromisoformat((row.get("RecordedDate") or "").strip()[:10])
        except ValueError:
            skipped += 1
            continue
        if not name:
            skipped += 1
            continue
        parsed.append({
            "region": name,
            "recorded_date": recorded,
            "confirmed_cases": _count(row.get("ConfirmedCases")),
            "recovered_cases": _count(row.get("RecoveredCases")),
            "death_cases": _count(row.get("DeathCases")),
        })
    if skipped:
        logger.warning(f"⚠️ Skipped {skipped} rows without a region or a valid date")
    return parsed


def run(source: str, database_url: Optional[str] = None, truncate: bool = False) -> int:
    engine = create_engine(sync_database_url(database_url or settings.DATABASE_URL), future=True)
    Base.metadata.create_all(engine)

    rows = parse_rows(read_csv(source))
    logger.info(f"📄 {len(rows)} case rows read from {source}")

    with Session(engine) as session, session.begin():
        if truncate:
            logger.info("Clearing Cases and Region tables...")
            session.execute(delete(Case))
            session.execute(delete(Region))

        region_ids = {name: id_ for id_, name in session.execute(select(Region.id, Region.name))}
        for name in sorted({r["region"] for r in rows} - region_ids.keys()):
            region_ids[name] = session.execute(insert(Region).values(name=name).returning(Region.id)).scalar_one()

        payload = [
            {
                "region_id": region_ids[r["region"]],
                "recorded_date": r["recorded_date"],
                "confirmed_cases": r["confirmed_cases"],
                "recovered_cases": r["recovered_cases"],
                "death_cases": r["death_cases"],
            }
            for r in rows
        ]
        for start in range(0, len(payload), CHUNK_SIZE):
            session.execute(insert(Case), payload[start:start + CHUNK_SIZE])

    engine.dispose()
    logger.info(f"✅ Loaded {len(payload)} cases across {len(region_ids)} regions")
    return len(payload)


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Load COVID case rows into the database.")
    parser.add_argument("source", help="CSV file path or URL")
    parser.add_argument("--database-url", default=None)
    parser.add_argument("--truncate", action="store_true", help="delete existing rows first")
    args = parser.parse_args(argv)

    setup_logging()
    run(args.source, database_url=args.database_url, truncate=args.truncate)


if __name__ == "__main__":
    main()
