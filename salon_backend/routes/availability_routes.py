from datetime import time

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salon_backend.auth.permissions import can_manage, is_admin, require_employee
from salon_backend.core.errors import Forbidden, NotFound, StoreUnavailable, ValidationFailed
from salon_backend.core.schemas import CamelModel
from salon_backend.database import get_db
from salon_backend.models.availability import Availability
from salon_backend.models.user import User
from salon_backend.services.availability_resolver import AvailabilityResolver, format_slot, parse_date_param

router = APIRouter(tags=['availability'])


class EmployeeSummary(CamelModel):
    id: int
    name: str
    email: str


class AvailabilityResponse(CamelModel):
    id: int
    employee_id: int
    day_of_week: int
    start_time: time
    end_time: time
    employee: EmployeeSummary | None = None


class CreateAvailabilityRequest(CamelModel):
    day_of_week: int
    start_time: time
    end_time: time
    employee_id: int | None = None


class UpdateAvailabilityRequest(CamelModel):
    start_time: time | None = None
    end_time: time | None = None


def validate_window(day_of_week: int, start_time: time, end_time: time) -> None:
    if not 0 <= day_of_week <= 6:
        raise ValidationFailed('Day of week must be between 0 (Sunday) and 6 (Saturday)')
    if start_time >= end_time:
        raise ValidationFailed('End time must be after start time')


def get_owned_availability(db: Session, availability_id: int, current_user: User, action: str) -> Availability:
    availability = db.get(Availability, availability_id)
    if availability is None:
        raise NotFound('Availability not found')
    if not can_manage(current_user, availability.employee_id):
        raise Forbidden(f'Not authorized to {action} this availability')
    return availability


@router.get('/available-times/{date_value}', response_model=list[str])
def list_available_times(
    date_value: str,
    employee_id: int | None = Query(default=None, alias='employeeId'),
    db: Session = Depends(get_db),
):
    target_date = parse_date_param(date_value)

    try:
        slots = AvailabilityResolver(db).available_times(target_date, employee_id)
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc

    return [format_slot(slot) for slot in slots]


@router.get('/day/{day_of_week}', response_model=list[AvailabilityResponse])
def list_availability_for_day(day_of_week: int, db: Session = Depends(get_db)):
    if not 0 <= day_of_week <= 6:
        raise ValidationFailed('Day of week must be between 0 (Sunday) and 6 (Saturday)')

    try:
        return db.query(Availability).filter(
            Availability.day_of_week == day_of_week,
        ).order_by(Availability.start_time.asc()).all()
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc


@router.get('', response_model=list[AvailabilityResponse])
def list_availability(
    current_user: User = Depends(require_employee),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Availability)
        if not is_admin(current_user):
            query = query.filter(Availability.employee_id == current_user.id)
        return query.order_by(Availability.day_of_week.asc(), Availability.start_time.asc()).all()
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc


@router.post('', response_model=AvailabilityResponse, status_code=status.HTTP_201_CREATED)
def create_availability(
    data: CreateAvailabilityRequest,
    current_user: User = Depends(require_employee),
    db: Session = Depends(get_db),
):
    validate_window(data.day_of_week, data.start_time, data.end_time)

    employee_id = data.employee_id or current_user.id
    if not can_manage(current_user, employee_id):
        raise Forbidden('Only admins can set availability for other employees')

    try:
        if employee_id != current_user.id and db.get(User, employee_id) is None:
            raise NotFound('Employee not found')

        availability = Availability(
            employee_id=employee_id,
            day_of_week=data.day_of_week,
            start_time=data.start_time,
            end_time=data.end_time,
        )
        db.add(availability)
        db.commit()
        db.refresh(availability)
        return availability
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc


@router.put('/{availability_id}', response_model=AvailabilityResponse)
def update_availability(
    availability_id: int,
    data: UpdateAvailabilityRequest,
    current_user: User = Depends(require_employee),
    db: Session = Depends(get_db),
):
    try:
        availability = get_owned_availability(db, availability_id, current_user, 'update')

        start_time = data.start_time or availability.start_time
        end_time = data.end_time or availability.end_time
        validate_window(availability.day_of_week, start_time, end_time)

        availability.start_time = start_time
        availability.end_time = end_time
        db.commit()
        db.refresh(availability)
        return availability
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc


@router.delete('/{availability_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_availability(
    availability_id: int,
    current_user: User = Depends(require_employee),
    db: Session = Depends(get_db),
):
    try:
        availability = get_owned_availability(db, availability_id, current_user, 'delete')
        db.delete(availability)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc
