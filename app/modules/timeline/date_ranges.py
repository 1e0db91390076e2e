"""
Calendar period resolution and navigation for the chronological timeline.

Ranges are half-open [start, end) and expressed in UTC.
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import NamedTuple, Optional

from app.core.exceptions import MissingDateComponent, ValidationError
from app.modules.locations.schemas import DateType


class DateRange(NamedTuple):
    start: datetime
    end: datetime


def _as_date_type(date_type) -> DateType:
    try:
        return DateType(str(date_type.value if isinstance(date_type, DateType) else date_type).lower())
    except ValueError:
        raise ValidationError(f"Invalid date type: {date_type}. Expected day, month or year")


def _midnight(value: date) -> datetime:
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def _make_date(year: int, month: int, day: int) -> date:
    try:
        return date(year, month, day)
    except ValueError:
        raise ValidationError(f"Invalid date: {year}-{month}-{day}")


def resolve(date_type, year: Optional[int], month: Optional[int] = None, day: Optional[int] = None) -> DateRange:
    """Exactly one calendar day, month or year."""
    kind = _as_date_type(date_type)
    if year is None:
        raise MissingDateComponent(kind.value, "year")

    if kind == DateType.DAY:
        if month is None:
            raise MissingDateComponent(kind.value, "month")
        if day is None:
            raise MissingDateComponent(kind.value, "day")
        start = _make_date(year, month, day)
        return DateRange(_midnight(start), _midnight(start + timedelta(days=1)))

    if kind == DateType.MONTH:
        if month is None:
            raise MissingDateComponent(kind.value, "month")
        start = _make_date(year, month, 1)
        return DateRange(_midnight(start), _midnight(_add_months(start, 1)))

    start = _make_date(year, 1, 1)
    return DateRange(_midnight(start), _midnight(_make_date(year + 1, 1, 1)))


def _add_months(value: date, months: int) -> date:
    """Shift by whole months, clamping the day to the target month's length."""
    index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(value.day, last_day))


def shift(anchor: date, unit, step: int) -> date:
    kind = _as_date_type(unit)
    if kind == DateType.DAY:
        return anchor + timedelta(days=step)
    if kind == DateType.MONTH:
        return _add_months(anchor, step)
    return _add_months(anchor, step * 12)


def anchor_date(date_type, year: int, month: Optional[int] = None, day: Optional[int] = None) -> date:
    """The date a view is anchored on: the day itself, the 1st of the month, or Jan 1."""
    kind = _as_date_type(date_type)
    resolve(kind, year, month, day)
    if kind == DateType.DAY:
        return date(year, month, day)
    if kind == DateType.MONTH:
        return date(year, month, 1)
    return date(year, 1, 1)


@dataclass(frozen=True)
class NavigationAvailability:
    can_navigate_prev_day: bool
    can_navigate_next_day: bool
    can_navigate_prev_month: bool
    can_navigate_next_month: bool
    can_navigate_prev_year: bool
    can_navigate_next_year: bool


def navigation_availability(date_type, year: int, month: Optional[int], day: Optional[int], today: date) -> NavigationAvailability:
    """
    Backward navigation is always allowed. Forward navigation is allowed as
    long as the target date is not after today; whether data exists there is
    irrelevant.
    """
    anchor = anchor_date(date_type, year, month, day)

    def can_go_next(unit: DateType) -> bool:
        try:
            return shift(anchor, unit, 1) <= today
        except (OverflowError, ValueError):
            return False

    return NavigationAvailability(
        can_navigate_prev_day=True,
        can_navigate_next_day=can_go_next(DateType.DAY),
        can_navigate_prev_month=True,
        can_navigate_next_month=can_go_next(DateType.MONTH),
        can_navigate_prev_year=True,
        can_navigate_next_year=can_go_next(DateType.YEAR),
    )
