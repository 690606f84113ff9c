from sqlalchemy import Column, Integer, String

from stockpilot.database.base import Base


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    contact = Column(String, nullable=False, default="")
    email = Column(String, nullable=False, default="")
    phone = Column(String, nullable=False, default="")
    address = Column(String, nullable=False, default="")
    lead_time_days = Column(Integer)


__all__ = ["Supplier"]
