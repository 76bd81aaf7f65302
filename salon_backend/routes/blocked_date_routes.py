from datetime import date, time

from fastapi import APIRouter, Depends, status
from pydantic import field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salon_backend.auth.permissions import can_manage, is_admin, require_employee
from salon_backend.core.errors import Forbidden, NotFound, StoreUnavailable, ValidationFailed
from salon_backend.core.schemas import CamelModel
from salon_backend.database import get_db
from salon_backend.models.blocked_date import BlockedDate
from salon_backend.models.user import User
from salon_backend.routes.availability_routes import EmployeeSummary
from salon_backend.services.blocked_dates import create_blocked_range

router = APIRouter(tags=['blocked-dates'])

MAX_REASON_LENGTH = 255


def _normalize_reason(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    if len(normalized) > MAX_REASON_LENGTH:
        raise ValueError(f'Reason must be {MAX_REASON_LENGTH} characters or fewer.')
    return normalized


class BlockedDateResponse(CamelModel):
    id: int
    employee_id: int
    date: date
    start_time: time
    end_time: time
    reason: str | None = None
    employee: EmployeeSummary | None = None


class CreateBlockedRangeRequest(CamelModel):
    start_date: date
    end_date: date
    start_time: time
    end_time: time
    reason: str | None = None
    employee_id: int | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_reason(value)


class UpdateBlockedDateRequest(CamelModel):
    date: date
    start_time: time
    end_time: time
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_reason(value)


class BlockedRangeResponse(CamelModel):
    message: str
    data: list[BlockedDateResponse]
    skipped: int


def get_owned_blocked_date(db: Session, blocked_date_id: int, current_user: User, action: str) -> BlockedDate:
    blocked_date = db.get(BlockedDate, blocked_date_id)
    if blocked_date is None:
        raise NotFound('Blocked date not found')
    if not can_manage(current_user, blocked_date.employee_id):
        raise Forbidden(f'Unauthorized to {action} this blocked date')
    return blocked_date


@router.get('', response_model=list[BlockedDateResponse])
def list_blocked_dates(
    current_user: User = Depends(require_employee),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(BlockedDate)
        if not is_admin(current_user):
            query = query.filter(BlockedDate.employee_id == current_user.id)
        return query.order_by(BlockedDate.date.asc(), BlockedDate.start_time.asc()).all()
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc


@router.post('', response_model=BlockedRangeResponse, status_code=status.HTTP_201_CREATED)
def create_blocked_dates(
    data: CreateBlockedRangeRequest,
    current_user: User = Depends(require_employee),
    db: Session = Depends(get_db),
):
    employee_id = data.employee_id or current_user.id
    if not can_manage(current_user, employee_id):
        raise Forbidden('Only admins can block dates for other employees')

    try:
        if employee_id != current_user.id and db.get(User, employee_id) is None:
            raise NotFound('Employee not found')

        result = create_blocked_range(
            db,
            employee_id=employee_id,
            start_date=data.start_date,
            end_date=data.end_date,
            start_time=data.start_time,
            end_time=data.end_time,
            reason=data.reason,
        )
        db.commit()
        for blocked_date in result.created:
            db.refresh(blocked_date)
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc

    return BlockedRangeResponse(
        message=f'{len(result.created)} date(s) blocked successfully',
        data=[BlockedDateResponse.model_validate(blocked_date) for blocked_date in result.created],
        skipped=len(result.skipped),
    )


@router.put('/{blocked_date_id}', response_model=BlockedDateResponse)
def update_blocked_date(
    blocked_date_id: int,
    data: UpdateBlockedDateRequest,
    current_user: User = Depends(require_employee),
    db: Session = Depends(get_db),
):
    if data.start_time >= data.end_time:
        raise ValidationFailed('End time must be after start time')

    try:
        blocked_date = get_owned_blocked_date(db, blocked_date_id, current_user, 'update')
        blocked_date.date = data.date
        blocked_date.start_time = data.start_time
        blocked_date.end_time = data.end_time
        blocked_date.reason = data.reason
        db.commit()
        db.refresh(blocked_date)
        return blocked_date
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc


@router.delete('/{blocked_date_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_blocked_date(
    blocked_date_id: int,
    current_user: User = Depends(require_employee),
    db: Session = Depends(get_db),
):
    try:
        blocked_date = get_owned_blocked_date(db, blocked_date_id, current_user, 'delete')
        db.delete(blocked_date)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc
