import os
from datetime import date, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from salon_backend.database import Base  # noqa: E402
from salon_backend.models.appointment import Appointment, AppointmentStatus  # noqa: E402
from salon_backend.models.availability import Availability  # noqa: E402
from salon_backend.models.blocked_date import BlockedDate  # noqa: E402
from salon_backend.models.post import Post  # noqa: E402,F401
from salon_backend.models.service import Service  # noqa: E402
from salon_backend.models.user import User, UserRole  # noqa: E402

# 2031-01-06 is a Monday (day_of_week == 1).
MONDAY = date(2031, 1, 6)


@pytest.fixture
def salon_engine():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def salon_db(salon_engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=salon_engine)
    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_user(salon_db):
    def _make_user(name: str, role: str = UserRole.EMPLOYEE.value, email: str | None = None) -> User:
        user = User(
            name=name,
            email=email or f'{name.lower()}@salon.test',
            hashed_password='unused',
            role=role,
        )
        salon_db.add(user)
        salon_db.commit()
        salon_db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_service(salon_db):
    def _make_service(name: str = 'Haircut', price: str = '45') -> Service:
        service = Service(name=name, description=f'{name} with wash and style', price=price)
        salon_db.add(service)
        salon_db.commit()
        salon_db.refresh(service)
        return service

    return _make_service


@pytest.fixture
def make_availability(salon_db):
    def _make_availability(employee: User, start: time, end: time, day_of_week: int = 1) -> Availability:
        availability = Availability(employee_id=employee.id, day_of_week=day_of_week, start_time=start, end_time=end)
        salon_db.add(availability)
        salon_db.commit()
        salon_db.refresh(availability)
        return availability

    return _make_availability


@pytest.fixture
def make_block(salon_db):
    def _make_block(employee: User, start: time, end: time, on: date = MONDAY) -> BlockedDate:
        blocked = BlockedDate(employee_id=employee.id, date=on, start_time=start, end_time=end)
        salon_db.add(blocked)
        salon_db.commit()
        salon_db.refresh(blocked)
        return blocked

    return _make_block


@pytest.fixture
def make_appointment(salon_db, make_service):
    def _make_appointment(
        slot: time,
        status: str = AppointmentStatus.PENDING.value,
        on: date = MONDAY,
        requested: User | None = None,
        accepted: User | None = None,
        service: Service | None = None,
    ) -> Appointment:
        appointment = Appointment(
            customer_name='Jamie Rivers',
            customer_email='jamie@example.com',
            customer_phone='804-555-0100',
            service_id=(service or make_service()).id,
            requested_employee_id=requested.id if requested else None,
            accepted_employee_id=accepted.id if accepted else None,
            date=on,
            time=slot,
            status=status,
        )
        salon_db.add(appointment)
        salon_db.commit()
        salon_db.refresh(appointment)
        return appointment

    return _make_appointment


class RecordingOutbox:
    def __init__(self):
        self.notices = []

    def publish(self, notice) -> None:
        self.notices.append(notice)


@pytest.fixture
def outbox() -> RecordingOutbox:
    return RecordingOutbox()
