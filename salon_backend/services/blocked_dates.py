"""Expansion of multi-day blocked ranges into per-day segments."""

import logging
from dataclasses import dataclass, field
from datetime import date, time, timedelta

from sqlalchemy.orm import Session

from salon_backend.core.errors import Conflict, ValidationFailed
from salon_backend.models.blocked_date import BlockedDate

logger = logging.getLogger(__name__)

START_OF_DAY = time(0, 0, 0)
END_OF_DAY = time(23, 59, 59)

Segment = tuple[date, time, time]


@dataclass
class BlockedRangeResult:
    created: list[BlockedDate] = field(default_factory=list)
    skipped: list[Segment] = field(default_factory=list)


def split_blocked_range(start_date: date, end_date: date, start_time: time, end_time: time) -> list[Segment]:
    """First day runs to end of day, last day starts at midnight, days between are blocked whole."""
    if end_date < start_date:
        raise ValidationFailed('End date must be on or after start date')

    if start_date == end_date:
        if start_time >= end_time:
            raise ValidationFailed('End time must be after start time for same-day blocks')
        return [(start_date, start_time, end_time)]

    segments = [(start_date, start_time, END_OF_DAY)]
    current = start_date + timedelta(days=1)
    while current < end_date:
        segments.append((current, START_OF_DAY, END_OF_DAY))
        current += timedelta(days=1)
    segments.append((end_date, START_OF_DAY, end_time))

    # An edge day that starts at 23:59:59 or ends at midnight covers no time.
    segments = [segment for segment in segments if segment[1] < segment[2]]
    if not segments:
        raise ValidationFailed('Blocked range does not cover any time')
    return segments


def create_blocked_range(
    db: Session,
    employee_id: int,
    start_date: date,
    end_date: date,
    start_time: time,
    end_time: time,
    reason: str | None = None,
) -> BlockedRangeResult:
    """Insert every segment not already stored verbatim.

    Identical segments are skipped; the request only fails when every segment
    is a duplicate. The caller commits.
    """
    result = BlockedRangeResult()

    for segment_date, segment_start, segment_end in split_blocked_range(start_date, end_date, start_time, end_time):
        existing = db.query(BlockedDate.id).filter(
            BlockedDate.employee_id == employee_id,
            BlockedDate.date == segment_date,
            BlockedDate.start_time == segment_start,
            BlockedDate.end_time == segment_end,
        ).first()
        if existing:
            result.skipped.append((segment_date, segment_start, segment_end))
            continue

        blocked = BlockedDate(
            employee_id=employee_id,
            date=segment_date,
            start_time=segment_start,
            end_time=segment_end,
            reason=reason or None,
        )
        db.add(blocked)
        result.created.append(blocked)

    if not result.created:
        raise Conflict('All dates in this range are already blocked with the same time')

    if result.skipped:
        logger.info(
            'Skipped %d duplicate blocked segment(s) for employee %s', len(result.skipped), employee_id,
        )
    return result
