# -*- coding: utf-8 -*-
"""
Date arithmetic shared by the leave and help-desk workflows.

Everything here works on naive ``date`` / ``datetime`` values and never
touches the ORM, so the models can call it with whatever timezone they
have already resolved.
"""
import math
from datetime import date, datetime, timedelta

CALENDAR_DAYS = 'calendar_days'
BUSINESS_DAYS = 'business_days'

BUSINESS_DAY_START = 9
BUSINESS_DAY_END = 18

DEFAULT_DUE_HOURS = 24
DEFAULT_REMINDER_HOURS = 4


def parse_iso_date(value):
    """Return a ``date`` for a date, datetime or ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        # A time part is only accepted as a full ISO datetime
        if len(text) > 10 and text[10] in ('T', ' '):
            return datetime.fromisoformat(text).date()
        return datetime.strptime(text, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValueError('Invalid date format')


def is_weekend(day):
    return day.weekday() >= 5


def is_business_day(day, holidays=None):
    if is_weekend(day):
        return False
    return day not in (holidays or ())


def compute_leave_dates(start, days, mode=CALENDAR_DAYS, holidays=None):
    """
    Return ``(date_end, date_resume)`` for a leave of ``days`` days.

    Calendar mode counts every day. Business mode skips weekends and
    holidays, and the resume date is moved to the next business day.
    """
    start = parse_iso_date(start)
    if days <= 0:
        raise ValueError('Number of days must be greater than zero')

    if mode != BUSINESS_DAYS:
        end = start + timedelta(days=days - 1)
        return end, end + timedelta(days=1)

    current = start
    counted = 0
    while True:
        if is_business_day(current, holidays):
            counted += 1
            if counted == days:
                break
        current += timedelta(days=1)

    resume = current + timedelta(days=1)
    while not is_business_day(resume, holidays):
        resume += timedelta(days=1)
    return current, resume


def business_search_window(start, days):
    """Upper bound of the holiday lookup used for business-day leave."""
    return parse_iso_date(start) + timedelta(days=max(120, days * 4))


def months_between(start, end):
    """Whole calendar months from ``start`` to ``end``, ignoring the day."""
    start = parse_iso_date(start)
    end = parse_iso_date(end)
    return (end.year - start.year) * 12 + (end.month - start.month)


def add_business_hours(start, hours, day_start=BUSINESS_DAY_START, day_end=BUSINESS_DAY_END):
    result = start
    remaining = hours
    while remaining > 0:
        result += timedelta(hours=1)
        if is_weekend(result):
            continue
        if day_start <= result.hour < day_end:
            remaining -= 1
    return result


def add_business_days(start, days):
    result = start
    remaining = days
    while remaining > 0:
        result += timedelta(days=1)
        if not is_weekend(result):
            remaining -= 1
    return result


def help_desk_sla_target(priority, submitted_at):
    """Resolution target for a ticket submitted at ``submitted_at``."""
    if priority == 'urgent':
        return add_business_hours(submitted_at, 4)
    if priority == 'high':
        return add_business_hours(submitted_at, 24)
    if priority == 'medium':
        return add_business_days(submitted_at, 3)
    return add_business_days(submitted_at, 7)


def sla_due_status(entered_at, due_hours, reminder_hours, now):
    """
    Return ``(due_at, status, hours_remaining)`` for an approval stage
    entered at ``entered_at``.
    """
    due_at = entered_at + timedelta(hours=due_hours)
    remaining = due_at - now
    remaining_hours = remaining.total_seconds() / 3600.0
    if remaining_hours <= 0:
        status = 'overdue'
    elif remaining_hours <= reminder_hours:
        status = 'due_soon'
    else:
        status = 'on_track'
    return due_at, status, math.floor(remaining_hours)
