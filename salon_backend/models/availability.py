"""Weekly availability model definitions."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Time
from sqlalchemy.orm import relationship
from salon_backend.database import Base


class Availability(Base):
    """A recurring weekly window in which an employee takes bookings."""
    __tablename__ = "availabilities"
    __table_args__ = (
        CheckConstraint('day_of_week BETWEEN 0 AND 6', name='ck_availability_day_of_week'),
    )

    id = Column(Integer, primary_key=True)
    employee_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False, index=True)  # 0=Sunday .. 6=Saturday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    employee = relationship("User")
