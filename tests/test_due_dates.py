from datetime import date, datetime, timedelta, timezone

from app.due_dates import (NOT_DUE, classify_due, highlight, no_follow_up_date, parse_date,
                           response_due_date)

REQUESTED = datetime(2025, 11, 10, 9, 30, tzinfo=timezone.utc)


def test_response_due_defaults_to_one_day():
    assert response_due_date(REQUESTED) == datetime(2025, 11, 11, 9, 30, tzinfo=timezone.utc)


def test_response_due_for_no_batch_match_is_five_days():
    assert response_due_date(REQUESTED, no_batch_match=True) == \
        datetime(2025, 11, 15, 9, 30, tzinfo=timezone.utc)


def test_response_due_override_wins():
    assert response_due_date(REQUESTED, True, override=date(2025, 12, 1)) == date(2025, 12, 1)


def test_response_due_accepts_naive_datetimes():
    assert response_due_date(datetime(2025, 11, 10, 23, 0)) == \
        datetime(2025, 11, 11, 23, 0, tzinfo=timezone.utc)


def test_request_filed_late_in_the_day_is_not_overdue_after_midnight():
    requested = datetime(2025, 11, 10, 23, 50, tzinfo=timezone.utc)
    due = response_due_date(requested)
    state = classify_due(due, now=requested + timedelta(minutes=15))
    assert not state.overdue
    assert state.due_in_24h and state.due_in_3d
    assert not classify_due(due, now=datetime(2025, 11, 11, 23, 49, tzinfo=timezone.utc)).overdue
    assert classify_due(due, now=datetime(2025, 11, 11, 23, 51, tzinfo=timezone.utc)).overdue


def test_no_follow_up_date_only_without_definite_answer():
    assert no_follow_up_date(REQUESTED, False) == date(2025, 11, 13)
    assert no_follow_up_date(REQUESTED, True) is None
    assert no_follow_up_date(REQUESTED, None) is None


def test_classify_due_windows():
    now = datetime(2025, 11, 10, 12, 0, tzinfo=timezone.utc)
    tomorrow = classify_due(date(2025, 11, 11), now=now)
    assert tomorrow.due_in_24h and tomorrow.due_in_3d and not tomorrow.overdue

    in_two_days = classify_due(date(2025, 11, 12), now=now)
    assert not in_two_days.due_in_24h and in_two_days.due_in_3d

    far = classify_due(date(2025, 11, 20), now=now)
    assert far == NOT_DUE

    late = classify_due(date(2025, 11, 9), now=now)
    assert late.overdue and not late.due_in_24h and not late.due_in_3d


def test_responded_rows_are_never_due():
    now = datetime(2025, 11, 10, 12, 0, tzinfo=timezone.utc)
    assert classify_due(date(2025, 11, 1), response_date=date(2025, 11, 2), now=now) == NOT_DUE


def test_highlight_colours():
    now = datetime.now(timezone.utc)
    assert highlight(classify_due(now - timedelta(days=2), now=now)) == 'red'
    assert highlight(classify_due(now + timedelta(days=2), now=now)) == 'yellow'
    assert highlight(NOT_DUE) is None


def test_parse_date():
    assert parse_date('2025-11-10') == date(2025, 11, 10)
    assert parse_date('2025-11-10T08:00:00') == date(2025, 11, 10)
    assert parse_date(REQUESTED) == date(2025, 11, 10)
    assert parse_date('') is None
