"""Appointment model definitions."""

import enum

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, Time, func
from sqlalchemy.orm import relationship
from salon_backend.database import Base


class AppointmentStatus(str, enum.Enum):
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    DECLINED = 'declined'
    CANCELLED = 'cancelled'


class Appointment(Base):
    """Represents a customer's appointment request."""
    __tablename__ = "appointments"
    __table_args__ = (
        Index('idx_appointments_date_status', 'date', 'status'),
    )

    id = Column(Integer, primary_key=True)
    customer_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=False, index=True)
    customer_phone = Column(String, nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    requested_employee_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # null means no preference
    accepted_employee_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    date = Column(Date, nullable=False)
    time = Column(Time, nullable=False)
    status = Column(String, nullable=False, default=AppointmentStatus.PENDING.value)
    customer_notes = Column(Text, nullable=True)
    employee_note = Column(Text, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    service = relationship("Service")
    requested_employee = relationship("User", foreign_keys=[requested_employee_id])
    accepted_employee = relationship("User", foreign_keys=[accepted_employee_id])

    # Each UPDATE checks and bumps the version so that two employees racing on
    # the same row cannot both win.
    __mapper_args__ = {"version_id_col": version}
