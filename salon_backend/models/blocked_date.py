"""Blocked date model definitions."""

from sqlalchemy import Column, Date, ForeignKey, Integer, String, Time
from sqlalchemy.orm import relationship
from salon_backend.database import Base


class BlockedDate(Base):
    """Removes an employee's availability inside a window on one calendar day."""
    __tablename__ = "blocked_dates"

    id = Column(Integer, primary_key=True)
    employee_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    reason = Column(String, nullable=True)

    employee = relationship("User")
