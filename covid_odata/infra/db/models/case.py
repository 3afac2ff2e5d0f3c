# covid_odata/infra/db/models/case.py
from sqlalchemy import BigInteger, Column, Date, ForeignKey, Integer, text
from sqlalchemy.orm import relationship

from covid_odata.infra.db.base import Base


class Case(Base):
    __tablename__ = "Cases"

    id = Column("Id", Integer, primary_key=True)
    region_id = Column("RegionId", Integer, ForeignKey("Region.Id"), nullable=False, index=True)
    recorded_date = Column("RecordedDate", Date, nullable=False, index=True)

    # nullable in the source schema, defaulting to zero
    confirmed_cases = Column("ConfirmedCases", BigInteger, default=0, server_default=text("0"))
    recovered_cases = Column("RecoveredCases", BigInteger, default=0, server_default=text("0"))
    death_cases = Column("DeathCases", BigInteger, default=0, server_default=text("0"))

    region = relationship("Region", back_populates="cases")
