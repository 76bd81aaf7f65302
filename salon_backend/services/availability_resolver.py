"""Bookable slot resolution for a single calendar day.

A slot is the half-open interval ``[t, t + granularity)`` identified by ``t``.
Slots come only from declared weekly windows; a slot is bookable while at
least one employee available at ``t`` is neither blocked nor already booked
at ``t``.
"""

import re
from collections import defaultdict
from collections.abc import Iterable
from datetime import date, time, timedelta

from sqlalchemy.orm import Session

from salon_backend.core import config
from salon_backend.core.errors import ValidationFailed
from salon_backend.models.appointment import Appointment, AppointmentStatus
from salon_backend.models.availability import Availability
from salon_backend.models.blocked_date import BlockedDate

DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
SECONDS_PER_DAY = 24 * 60 * 60

Window = tuple[int, time, time]
Booking = tuple[int, time]


def default_granularity() -> timedelta:
    return timedelta(minutes=config.SLOT_GRANULARITY_MINUTES)


def parse_date_param(value: str) -> date:
    if not DATE_PATTERN.match(value or ''):
        raise ValidationFailed('Invalid date format. Use YYYY-MM-DD')
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationFailed('Invalid date') from exc


def day_of_week(target_date: date) -> int:
    """0 for Sunday through 6 for Saturday."""
    return target_date.isoweekday() % 7


def _seconds(value: time) -> int:
    return value.hour * 3600 + value.minute * 60 + value.second


def _from_seconds(seconds: int) -> time:
    return time(seconds // 3600, seconds % 3600 // 60, seconds % 60)


def is_slot_aligned(value: time, granularity: timedelta | None = None) -> bool:
    step = int((granularity or default_granularity()).total_seconds())
    return value.microsecond == 0 and _seconds(value) % step == 0


def iterate_slot_starts(start: time, end: time, granularity: timedelta | None = None) -> list[time]:
    """Grid-aligned slot starts ``t`` with ``start <= t < end``."""
    step = int((granularity or default_granularity()).total_seconds())
    start_seconds = _seconds(start) + (1 if start.microsecond else 0)
    end_seconds = _seconds(end) + (1 if end.microsecond else 0)

    current = -(-start_seconds // step) * step
    slots = []
    while current < end_seconds and current < SECONDS_PER_DAY:
        slots.append(_from_seconds(current))
        current += step
    return slots


def expand_windows(windows: Iterable[Window], granularity: timedelta | None = None) -> dict[time, set[int]]:
    employees_by_slot: dict[time, set[int]] = defaultdict(set)
    for employee_id, start, end in windows:
        for slot in iterate_slot_starts(start, end, granularity):
            employees_by_slot[slot].add(employee_id)
    return employees_by_slot


def resolve_available_slots(
    weekly: Iterable[Window],
    blocked: Iterable[Window],
    booked: Iterable[Booking],
    granularity: timedelta | None = None,
) -> list[time]:
    available_by_slot = expand_windows(weekly, granularity)
    if not available_by_slot:
        return []

    blocked_by_slot = expand_windows(blocked, granularity)
    booked_by_slot: dict[time, set[int]] = defaultdict(set)
    for employee_id, slot in booked:
        booked_by_slot[slot].add(employee_id)

    open_slots = [
        slot
        for slot, employees in available_by_slot.items()
        if employees - blocked_by_slot.get(slot, set()) - booked_by_slot.get(slot, set())
    ]
    return sorted(open_slots)


class AvailabilityResolver:
    """Reads the three stores for one date and resolves the bookable slots."""

    def __init__(self, db: Session, granularity: timedelta | None = None):
        self.db = db
        self.granularity = granularity or default_granularity()

    def weekly_windows(self, target_date: date, employee_id: int | None = None) -> list[Window]:
        query = self.db.query(Availability.employee_id, Availability.start_time, Availability.end_time).filter(
            Availability.day_of_week == day_of_week(target_date),
        )
        if employee_id is not None:
            query = query.filter(Availability.employee_id == employee_id)
        return [tuple(row) for row in query.all()]

    def blocked_windows(self, target_date: date, employee_id: int | None = None) -> list[Window]:
        query = self.db.query(BlockedDate.employee_id, BlockedDate.start_time, BlockedDate.end_time).filter(
            BlockedDate.date == target_date,
        )
        if employee_id is not None:
            query = query.filter(BlockedDate.employee_id == employee_id)
        return [tuple(row) for row in query.all()]

    def accepted_bookings(self, target_date: date, employee_id: int | None = None) -> list[Booking]:
        query = self.db.query(Appointment.accepted_employee_id, Appointment.time).filter(
            Appointment.date == target_date,
            Appointment.status == AppointmentStatus.ACCEPTED.value,
            Appointment.accepted_employee_id.is_not(None),
        )
        if employee_id is not None:
            query = query.filter(Appointment.accepted_employee_id == employee_id)
        return [tuple(row) for row in query.all()]

    def available_times(self, target_date: date, employee_id: int | None = None) -> list[time]:
        weekly = self.weekly_windows(target_date, employee_id)
        if not weekly:
            return []

        return resolve_available_slots(
            weekly,
            self.blocked_windows(target_date, employee_id),
            self.accepted_bookings(target_date, employee_id),
            self.granularity,
        )

    def is_employee_blocked(self, employee_id: int, target_date: date, slot: time) -> bool:
        return self.db.query(BlockedDate.id).filter(
            BlockedDate.employee_id == employee_id,
            BlockedDate.date == target_date,
            BlockedDate.start_time <= slot,
            BlockedDate.end_time > slot,
        ).first() is not None


def format_slot(slot: time) -> str:
    return slot.strftime('%H:%M:%S')
