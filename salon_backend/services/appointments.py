"""Appointment lifecycle: pending -> accepted/declined -> cancelled."""

import logging
from datetime import date, datetime, time

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from salon_backend.auth.permissions import STAFF_ROLES, is_admin
from salon_backend.core import config
from salon_backend.core.errors import Conflict, Forbidden, NotFound, StoreUnavailable, ValidationFailed
from salon_backend.models.appointment import Appointment, AppointmentStatus
from salon_backend.models.service import Service
from salon_backend.models.user import User
from salon_backend.services.availability_resolver import AvailabilityResolver, is_slot_aligned
from salon_backend.services.notifications import AppointmentEvent, AppointmentNotice, NotificationOutbox

logger = logging.getLogger(__name__)

PENDING = AppointmentStatus.PENDING.value
ACCEPTED = AppointmentStatus.ACCEPTED.value
DECLINED = AppointmentStatus.DECLINED.value
CANCELLED = AppointmentStatus.CANCELLED.value
CANCELLABLE_STATUSES = {PENDING, ACCEPTED}


def _commit(db: Session) -> None:
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise Conflict('This appointment was changed by someone else. Reload and try again.') from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreUnavailable() from exc


def _notice(
    appointment: Appointment,
    event: AppointmentEvent,
    employee: User | None = None,
    note: str | None = None,
    was_pending: bool = False,
    staff_emails: tuple[str, ...] = (),
) -> AppointmentNotice:
    return AppointmentNotice(
        event=event,
        appointment_id=appointment.id,
        customer_name=appointment.customer_name,
        customer_email=appointment.customer_email,
        customer_phone=appointment.customer_phone,
        service_name=appointment.service.name if appointment.service else 'your service',
        date=appointment.date,
        time=appointment.time,
        employee_name=employee.name if employee else None,
        employee_email=employee.email if employee else None,
        note=note,
        was_pending=was_pending,
        staff_emails=staff_emails,
    )


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFound('Appointment not found')
    return appointment


def list_for_employee(db: Session, user: User, upcoming: bool = False, now: datetime | None = None) -> list[Appointment]:
    query = db.query(Appointment)
    if not is_admin(user):
        query = query.filter(
            or_(
                and_(
                    Appointment.status == PENDING,
                    or_(Appointment.requested_employee_id == user.id, Appointment.requested_employee_id.is_(None)),
                ),
                and_(
                    Appointment.status.in_([ACCEPTED, DECLINED, CANCELLED]),
                    Appointment.accepted_employee_id == user.id,
                ),
            )
        )
    appointments = query.order_by(Appointment.created_at.desc(), Appointment.id.desc()).all()

    if upcoming:
        now = now or datetime.now()
        appointments = [
            appointment
            for appointment in appointments
            if appointment.status == ACCEPTED and datetime.combine(appointment.date, appointment.time) > now
        ]
    return appointments


def create_appointment(
    db: Session,
    outbox: NotificationOutbox,
    *,
    customer_name: str,
    customer_email: str,
    customer_phone: str,
    service_id: int,
    appointment_date: date,
    appointment_time: time,
    requested_employee_id: int | None = None,
    customer_notes: str | None = None,
) -> Appointment:
    resolver = AvailabilityResolver(db)
    if not is_slot_aligned(appointment_time, resolver.granularity):
        raise ValidationFailed(
            f'Appointments must start on {config.SLOT_GRANULARITY_MINUTES}-minute boundaries.'
        )
    if appointment_date < date.today():
        raise ValidationFailed('Appointments must be scheduled in the future.')

    service = db.get(Service, service_id)
    if service is None:
        raise NotFound('Service not found')

    requested_employee = None
    if requested_employee_id is not None:
        requested_employee = db.get(User, requested_employee_id)
        if requested_employee is None or requested_employee.role not in STAFF_ROLES:
            raise NotFound('Requested employee not found')
        if resolver.is_employee_blocked(requested_employee.id, appointment_date, appointment_time):
            raise Conflict(
                'The requested employee is not available on this date/time. '
                'Please choose another time or employee.'
            )

    appointment = Appointment(
        customer_name=customer_name,
        customer_email=customer_email,
        customer_phone=customer_phone,
        service_id=service.id,
        requested_employee_id=requested_employee_id,
        date=appointment_date,
        time=appointment_time,
        status=PENDING,
        customer_notes=customer_notes,
    )
    db.add(appointment)
    _commit(db)
    db.refresh(appointment)

    staff_emails = tuple(
        email for (email,) in db.query(User.email).filter(User.role.in_(STAFF_ROLES)).all() if email
    )
    if config.SMTP_FROM_EMAIL:
        staff_emails = (config.SMTP_FROM_EMAIL,) + staff_emails

    logger.info('Appointment %s requested for %s %s', appointment.id, appointment.date, appointment.time)
    outbox.publish(_notice(appointment, AppointmentEvent.REQUESTED, requested_employee, staff_emails=staff_emails))
    return appointment


def accept_appointment(
    db: Session,
    outbox: NotificationOutbox,
    appointment_id: int,
    employee: User,
    employee_note: str | None = None,
) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    if appointment.status != PENDING:
        raise Conflict('Only pending appointments can be accepted')

    if AvailabilityResolver(db).is_employee_blocked(employee.id, appointment.date, appointment.time):
        raise Conflict('You have blocked this date/time. Please unblock it first or decline this appointment.')

    appointment.status = ACCEPTED
    appointment.accepted_employee_id = employee.id
    appointment.employee_note = employee_note or None
    _commit(db)
    db.refresh(appointment)

    logger.info('Appointment %s accepted by employee %s', appointment.id, employee.id)
    outbox.publish(_notice(appointment, AppointmentEvent.ACCEPTED, employee, note=appointment.employee_note))
    return appointment


def decline_appointment(
    db: Session,
    outbox: NotificationOutbox,
    appointment_id: int,
    employee: User,
    employee_note: str | None,
) -> Appointment:
    reason = (employee_note or '').strip()
    if not reason:
        raise Conflict('Reason for decline is required')

    appointment = get_appointment(db, appointment_id)
    if appointment.status != PENDING:
        raise Conflict('Only pending appointments can be declined')

    if (
        appointment.requested_employee_id is not None
        and appointment.requested_employee_id != employee.id
        and not is_admin(employee)
    ):
        raise Forbidden('Not authorized to decline this appointment')

    appointment.status = DECLINED
    appointment.accepted_employee_id = employee.id
    appointment.employee_note = reason
    _commit(db)
    db.refresh(appointment)

    logger.info('Appointment %s declined by employee %s', appointment.id, employee.id)
    outbox.publish(_notice(appointment, AppointmentEvent.DECLINED, employee, note=reason))
    return appointment


def _ensure_cancellable(appointment: Appointment) -> None:
    if appointment.status == CANCELLED:
        raise Conflict('Appointment is already cancelled')
    if appointment.status not in CANCELLABLE_STATUSES:
        raise Conflict('Only pending or accepted appointments can be cancelled')


def cancel_by_customer(db: Session, outbox: NotificationOutbox, appointment_id: int) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _ensure_cancellable(appointment)

    was_pending = appointment.status == PENDING
    appointment.status = CANCELLED
    _commit(db)
    db.refresh(appointment)

    employee = appointment.accepted_employee if not was_pending else None
    logger.info('Appointment %s cancelled by customer', appointment.id)
    outbox.publish(_notice(appointment, AppointmentEvent.CANCELLED_BY_CUSTOMER, employee, was_pending=was_pending))
    return appointment


def cancel_by_employee(
    db: Session,
    outbox: NotificationOutbox,
    appointment_id: int,
    employee: User,
    reason: str | None = None,
) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    _ensure_cancellable(appointment)
    if appointment.status != ACCEPTED:
        raise Conflict('Only accepted appointments can be cancelled by employees')

    if not is_admin(employee) and appointment.accepted_employee_id != employee.id:
        raise Forbidden('You can only cancel appointments you accepted')

    appointment.status = CANCELLED
    _commit(db)
    db.refresh(appointment)

    logger.info('Appointment %s cancelled by employee %s', appointment.id, employee.id)
    outbox.publish(_notice(
        appointment,
        AppointmentEvent.CANCELLED_BY_EMPLOYEE,
        appointment.accepted_employee,
        note=(reason or '').strip() or None,
    ))
    return appointment
