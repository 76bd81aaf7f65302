from datetime import datetime

from fastapi import APIRouter, Depends, status
from pydantic import field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from salon_backend.auth.permissions import require_employee
from salon_backend.core.errors import Conflict, NotFound, StoreUnavailable
from salon_backend.core.schemas import CamelModel
from salon_backend.database import get_db
from salon_backend.models.appointment import Appointment, AppointmentStatus
from salon_backend.models.service import Service
from salon_backend.models.user import User

router = APIRouter(tags=['services'])

ACTIVE_STATUSES = [AppointmentStatus.PENDING.value, AppointmentStatus.ACCEPTED.value]


def sanitize_text(value: str) -> str:
    return value.strip().replace('<', '').replace('>', '')


class ServiceResponse(CamelModel):
    id: int
    name: str
    description: str
    price: str
    price_max: str | None = None
    created_at: datetime | None = None


class CreateServiceRequest(CamelModel):
    name: str
    description: str
    price: str
    price_max: str | None = None

    @field_validator('name', 'description', 'price')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = sanitize_text(value)
        if not normalized:
            raise ValueError('Field is required.')
        return normalized


class UpdateServiceRequest(CamelModel):
    name: str | None = None
    description: str | None = None
    price: str | None = None
    price_max: str | None = None

    @field_validator('name', 'description', 'price', 'price_max')
    @classmethod
    def validate_optional_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return sanitize_text(value) or None


@router.get('', response_model=list[ServiceResponse])
def list_services(db: Session = Depends(get_db)):
    try:
        return db.query(Service).order_by(Service.id.asc()).all()
    except SQLAlchemyError as exc:
        raise StoreUnavailable() from exc


@router.post('', response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    data: CreateServiceRequest,
    current_user: User = Depends(require_employee),
    db: Session = Depends(get_db),
):
    try:
        service = Service(name=data.name, description=data.description, price=data.price, price_max=data.price_max)
        db.add(service)
        db.commit()
        db.refresh(service)
        return service
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc


@router.put('/{service_id}', response_model=ServiceResponse)
def update_service(
    service_id: int,
    data: UpdateServiceRequest,
    current_user: User = Depends(require_employee),
    db: Session = Depends(get_db),
):
    try:
        service = db.get(Service, service_id)
        if service is None:
            raise NotFound('Service not found')

        service.name = data.name or service.name
        service.description = data.description or service.description
        service.price = data.price or service.price
        if 'price_max' in data.model_fields_set:
            service.price_max = data.price_max
        db.commit()
        db.refresh(service)
        return service
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc


@router.delete('/{service_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_service(
    service_id: int,
    current_user: User = Depends(require_employee),
    db: Session = Depends(get_db),
):
    try:
        service = db.get(Service, service_id)
        if service is None:
            raise NotFound('Service not found')

        active_count = db.query(Appointment).filter(
            Appointment.service_id == service_id,
            Appointment.status.in_(ACTIVE_STATUSES),
        ).count()
        if active_count:
            raise Conflict(
                f'Cannot delete service: {active_count} pending or upcoming appointment(s) use this service.'
            )

        db.query(Appointment).filter(Appointment.service_id == service_id).delete(synchronize_session=False)
        db.delete(service)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc
