"""
Response-due and follow-up date derivation shared by every workflow.

All functions here are pure: they take plain dates and datetimes and never
touch the database, so reporting views, models and actions agree on one
definition of "due".
"""
from collections import namedtuple
from datetime import date, datetime, time, timedelta, timezone

RESPONSE_WINDOW_DAYS = 1
NO_BATCH_MATCH_WINDOW_DAYS = 5
NO_FOLLOW_UP_WINDOW_DAYS = 3

DueState = namedtuple('DueState', ['overdue', 'due_in_24h', 'due_in_3d'])
NOT_DUE = DueState(False, False, False)


def as_utc(value):
    """Returns an aware UTC datetime; naive values are assumed to be UTC."""
    if value is None:
        return None
    if not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_date(value):
    """Truncates a datetime to its calendar date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value).date()
    return value


def response_due_date(requested_date, no_batch_match=False, override=None):
    """
    Returns when a response is due for a request.

    A stored override always wins and is due from the start of that day.
    Otherwise the due moment is the requested timestamp plus one day, or plus
    five days while no batch matches the request, keeping the time of day.
    """
    if override is not None:
        return to_date(override)
    if requested_date is None:
        return None
    days = NO_BATCH_MATCH_WINDOW_DAYS if no_batch_match else RESPONSE_WINDOW_DAYS
    return as_utc(requested_date) + timedelta(days=days)


def no_follow_up_date(requested_date, definite_answer):
    """Deadline for a follow-up when no definite answer was given."""
    if definite_answer is not False or requested_date is None:
        return None
    return to_date(requested_date) + timedelta(days=NO_FOLLOW_UP_WINDOW_DAYS)


def classify_due(due, response_date=None, now=None):
    """
    Classifies a due date against the wall clock.

    The three flags are independent. A request that already has a response
    date is never due.
    """
    if due is None or response_date is not None:
        return NOT_DUE
    now = as_utc(now) if now is not None else datetime.now(timezone.utc)
    due_at = as_utc(due)
    return DueState(
        overdue=due_at < now,
        due_in_24h=now < due_at <= now + timedelta(hours=24),
        due_in_3d=now < due_at <= now + timedelta(days=3),
    )


def highlight(state):
    """Row colour for a due state: red when overdue, yellow when near due."""
    if state.overdue:
        return 'red'
    if state.due_in_3d:
        return 'yellow'
    return None


def today():
    return datetime.now(timezone.utc).date()


def parse_date(value):
    """Parses an ISO date string; date and datetime values pass through."""
    if value in (None, ''):
        return None
    if isinstance(value, (date, datetime)):
        return to_date(value)
    return date.fromisoformat(str(value)[:10])
