import re
from datetime import date, datetime, time

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from pydantic import Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salon_backend.auth.permissions import require_employee
from salon_backend.core.errors import StoreUnavailable, ValidationFailed
from salon_backend.core.schemas import CamelModel
from salon_backend.database import get_db
from salon_backend.models.user import User
from salon_backend.routes.availability_routes import EmployeeSummary
from salon_backend.services import appointments as lifecycle
from salon_backend.services.notifications import BackgroundOutbox

router = APIRouter(tags=['appointments'])

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
MAX_NOTES_LENGTH = 600
FILTER_UPCOMING = 'upcoming'


class ServiceSummary(CamelModel):
    id: int
    name: str
    price: str


class AppointmentResponse(CamelModel):
    id: int
    customer_name: str
    customer_email: str
    customer_phone: str
    service_id: int
    requested_employee_id: int | None = None
    accepted_employee_id: int | None = None
    date: date
    time: time
    status: str
    customer_notes: str | None = None
    employee_note: str | None = None
    created_at: datetime | None = None
    service: ServiceSummary | None = None
    requested_employee: EmployeeSummary | None = None
    accepted_employee: EmployeeSummary | None = None


class CreateAppointmentRequest(CamelModel):
    customer_name: str
    customer_email: str
    customer_phone: str
    service_id: int
    requested_employee_id: int | None = Field(default=None, alias='employeeId')
    date: date
    time: time
    customer_notes: str | None = None

    @field_validator('customer_name')
    @classmethod
    def validate_customer_name(cls, value: str) -> str:
        normalized = value.strip()
        if len(normalized) < 2:
            raise ValueError('Name must be at least 2 characters.')
        return normalized

    @field_validator('customer_email')
    @classmethod
    def validate_customer_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not EMAIL_PATTERN.match(normalized):
            raise ValueError('Invalid email format.')
        return normalized

    @field_validator('customer_phone')
    @classmethod
    def validate_customer_phone(cls, value: str) -> str:
        normalized = value.strip()
        if sum(character.isdigit() for character in normalized) < 10:
            raise ValueError('Phone number must contain at least 10 digits.')
        return normalized

    @field_validator('customer_notes')
    @classmethod
    def validate_customer_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_NOTES_LENGTH} characters or fewer.')

        return normalized


class EmployeeNoteRequest(CamelModel):
    employee_note: str | None = None


class CancelByEmployeeRequest(CamelModel):
    reason: str | None = None


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    filter: str | None = Query(default=None),
    current_user: User = Depends(require_employee),
    db: Session = Depends(get_db),
):
    if filter not in (None, FILTER_UPCOMING):
        raise ValidationFailed(f'Unknown filter: {filter}')

    try:
        return lifecycle.list_for_employee(db, current_user, upcoming=filter == FILTER_UPCOMING)
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc


@router.get('/public/{appointment_id}', response_model=AppointmentResponse)
def get_public_appointment(appointment_id: int, db: Session = Depends(get_db)):
    try:
        return lifecycle.get_appointment(db, appointment_id)
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    try:
        return lifecycle.create_appointment(
            db,
            BackgroundOutbox(background_tasks),
            customer_name=data.customer_name,
            customer_email=data.customer_email,
            customer_phone=data.customer_phone,
            service_id=data.service_id,
            appointment_date=data.date,
            appointment_time=data.time,
            requested_employee_id=data.requested_employee_id,
            customer_notes=data.customer_notes,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc


@router.put('/{appointment_id}/accept', response_model=AppointmentResponse)
def accept_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    data: EmployeeNoteRequest | None = None,
    current_user: User = Depends(require_employee),
    db: Session = Depends(get_db),
):
    note = data.employee_note.strip() if data and data.employee_note else None
    try:
        return lifecycle.accept_appointment(
            db, BackgroundOutbox(background_tasks), appointment_id, current_user, employee_note=note,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc


@router.put('/{appointment_id}/decline', response_model=AppointmentResponse)
def decline_appointment(
    appointment_id: int,
    data: EmployeeNoteRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_employee),
    db: Session = Depends(get_db),
):
    try:
        return lifecycle.decline_appointment(
            db, BackgroundOutbox(background_tasks), appointment_id, current_user, data.employee_note,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc


@router.put('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    try:
        return lifecycle.cancel_by_customer(db, BackgroundOutbox(background_tasks), appointment_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc


@router.put('/{appointment_id}/cancel-by-employee', response_model=AppointmentResponse)
def cancel_appointment_by_employee(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    data: CancelByEmployeeRequest | None = None,
    current_user: User = Depends(require_employee),
    db: Session = Depends(get_db),
):
    try:
        return lifecycle.cancel_by_employee(
            db,
            BackgroundOutbox(background_tasks),
            appointment_id,
            current_user,
            reason=data.reason if data else None,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc
