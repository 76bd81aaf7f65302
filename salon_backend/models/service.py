"""Salon service model definitions."""

from sqlalchemy import Column, DateTime, Integer, String, Text, func
from salon_backend.database import Base


class Service(Base):
    """A treatment offered by the salon."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    price = Column(String, nullable=False)
    price_max = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
