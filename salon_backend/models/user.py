"""User model definitions."""

import enum

from sqlalchemy import Column, DateTime, Integer, String, func
from salon_backend.database import Base


class UserRole(str, enum.Enum):
    CUSTOMER = 'customer'
    EMPLOYEE = 'employee'
    ADMIN = 'admin'


class User(Base):
    """Represents a customer or staff account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default=UserRole.CUSTOMER.value)  # customer/employee/admin
    created_at = Column(DateTime, server_default=func.now())
