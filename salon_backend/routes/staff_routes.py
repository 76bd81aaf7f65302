from fastapi import APIRouter, Depends, status
from pydantic import field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salon_backend.auth.passwords import hash_password
from salon_backend.auth.permissions import STAFF_ROLES, require_admin
from salon_backend.core.errors import Conflict, NotFound, StoreUnavailable, ValidationFailed
from salon_backend.core.schemas import CamelModel
from salon_backend.database import get_db
from salon_backend.models.appointment import Appointment
from salon_backend.models.availability import Availability
from salon_backend.models.blocked_date import BlockedDate
from salon_backend.models.user import User, UserRole
from salon_backend.routes.auth_routes import RegisterRequest

router = APIRouter(tags=['staff'])


class StaffResponse(CamelModel):
    id: int
    name: str
    email: str
    role: str


class CreateEmployeeRequest(RegisterRequest):
    role: UserRole = UserRole.EMPLOYEE

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: UserRole) -> UserRole:
        if value.value not in STAFF_ROLES:
            raise ValueError('Role must be employee or admin')
        return value


class UpdateRoleRequest(CamelModel):
    role: UserRole


def get_staff_member(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None or user.role not in STAFF_ROLES:
        raise NotFound('Employee not found')
    return user


@router.get('/employees', response_model=list[StaffResponse])
def list_employees(db: Session = Depends(get_db)):
    try:
        return db.query(User).filter(User.role.in_(STAFF_ROLES)).order_by(User.name.asc()).all()
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc


@router.post('/employees', response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
def create_employee(
    data: CreateEmployeeRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        if db.query(User.id).filter(User.email == data.email).first():
            raise Conflict('Email already registered')

        employee = User(
            name=data.name,
            email=data.email,
            hashed_password=hash_password(data.password),
            role=data.role.value,
        )
        db.add(employee)
        db.commit()
        db.refresh(employee)
        return employee
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc


@router.put('/employees/{user_id}/role', response_model=StaffResponse)
def update_role(
    user_id: int,
    data: UpdateRoleRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if user_id == current_user.id and data.role is not UserRole.ADMIN:
        raise ValidationFailed('You cannot remove your own admin role')

    try:
        user = db.get(User, user_id)
        if user is None:
            raise NotFound('User not found')
        user.role = data.role.value
        db.commit()
        db.refresh(user)
        return user
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc


@router.delete('/employees/{user_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_employee(
    user_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if user_id == current_user.id:
        raise ValidationFailed('You cannot delete your own account')

    try:
        employee = get_staff_member(db, user_id)

        db.query(Availability).filter(Availability.employee_id == user_id).delete(synchronize_session=False)
        db.query(BlockedDate).filter(BlockedDate.employee_id == user_id).delete(synchronize_session=False)
        db.query(Appointment).filter(Appointment.requested_employee_id == user_id).update(
            {Appointment.requested_employee_id: None}, synchronize_session=False,
        )
        db.query(Appointment).filter(Appointment.accepted_employee_id == user_id).update(
            {Appointment.accepted_employee_id: None}, synchronize_session=False,
        )
        db.delete(employee)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc
