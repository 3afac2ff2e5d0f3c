# covid_odata/infra/db/models/region.py
from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import relationship

from covid_odata.infra.db.base import Base


class Region(Base):
    __tablename__ = "Region"

    id = Column("Id", Integer, primary_key=True)
    name = Column("Name", String(255), nullable=False)

    cases = relationship("Case", back_populates="region")
