from datetime import date, datetime, timedelta

import pytest

from carl.chatbot.dates import DateRange, extract_date_range, filter_by_date_range, is_within_range
from carl.lms.models import SimpleAssignment

# a Monday
NOW = datetime(2026, 10, 19, 14, 30)


def test_tomorrow_is_whole_next_day():
    r = extract_date_range("what's due tomorrow?", now=NOW)
    assert r.start == datetime(2026, 10, 20, 0, 0, 0, 0)
    assert r.end == datetime(2026, 10, 20, 23, 59, 59, 999000)
    assert r.description == "tomorrow"


def test_tomorrow_against_the_real_clock():
    r = extract_date_range("what's due tomorrow?")
    assert r.description == "tomorrow"
    assert r.end - r.start == timedelta(hours=23, minutes=59, seconds=59, microseconds=999000)


def test_explicit_year():
    r = extract_date_range("2026")
    assert r.start == datetime(2026, 1, 1, 0, 0, 0)
    assert r.end == datetime(2026, 12, 31, 23, 59, 59)
    assert r.description == "2026"


def test_year_wins_over_later_branches():
    r = extract_date_range("what's missing for 2025 this week", now=NOW)
    assert r.description == "2025"


def test_no_date_context():
    assert extract_date_range("hello") is None


def test_today_and_yesterday():
    today = extract_date_range("anything today", now=NOW)
    assert today.start == datetime(2026, 10, 19)
    yesterday = extract_date_range("what did I miss yesterday", now=NOW)
    assert yesterday.start == datetime(2026, 10, 18)
    assert yesterday.description == "yesterday"


def test_weeks_run_sunday_to_saturday():
    this_week = extract_date_range("due this week", now=NOW)
    assert this_week.start == datetime(2026, 10, 18)
    assert this_week.end.date() == date(2026, 10, 24)

    next_week = extract_date_range("due next week", now=NOW)
    assert next_week.start == datetime(2026, 10, 25)
    assert next_week.end.date() == date(2026, 10, 31)

    last_week = extract_date_range("zeros last week", now=NOW)
    assert last_week.start == datetime(2026, 10, 11)
    assert last_week.end.date() == date(2026, 10, 17)


def test_this_week_on_a_sunday_starts_that_day():
    sunday = datetime(2026, 10, 18, 9, 0)
    r = extract_date_range("this week", now=sunday)
    assert r.start == datetime(2026, 10, 18)


def test_this_and_next_month():
    r = extract_date_range("this month", now=NOW)
    assert r.start == datetime(2026, 10, 1)
    assert r.end == datetime(2026, 10, 31, 23, 59, 59)

    december = datetime(2026, 12, 5)
    r = extract_date_range("next month", now=december)
    assert r.start == datetime(2027, 1, 1)
    assert r.end == datetime(2027, 1, 31, 23, 59, 59)


def test_month_names_roll_to_next_year_once_passed():
    march = extract_date_range("what's due in march", now=NOW)
    assert march.start == datetime(2027, 3, 1)
    assert march.description == "march 2027"

    dec = extract_date_range("anything in Dec?", now=NOW)
    assert dec.start == datetime(2026, 12, 1)
    assert dec.end == datetime(2026, 12, 31, 23, 59, 59)

    october = extract_date_range("october", now=NOW)
    assert october.description == "october 2026"


def test_february_leap_year():
    r = extract_date_range("february", now=datetime(2028, 1, 10))
    assert r.end.date() == date(2028, 2, 29)


def test_fall_and_spring():
    fall = extract_date_range("what's due in the fall", now=NOW)
    assert fall.start == datetime(2026, 8, 1)
    assert fall.end == datetime(2026, 12, 31, 23, 59, 59)
    assert fall.description == "fall 2026"

    spring = extract_date_range("spring semester", now=NOW)
    assert spring.description == "spring 2027"

    early = extract_date_range("spring", now=datetime(2026, 3, 1))
    assert early.description == "spring 2026"


def test_spring_break_and_fall_behind_are_not_semesters():
    assert extract_date_range("what's due after spring break", now=NOW) is None
    assert extract_date_range("I don't want to fall behind", now=NOW) is None


def test_this_and_last_semester():
    assert extract_date_range("this semester", now=NOW).description == "fall 2026"
    assert extract_date_range("last semester", now=NOW).description == "spring 2026"

    march = datetime(2026, 3, 10)
    assert extract_date_range("this semester", now=march).description == "spring 2026"
    assert extract_date_range("last semester", now=march).description == "fall 2025"


def test_next_n_days():
    r = extract_date_range("next 10 days", now=NOW)
    assert r.start == datetime(2026, 10, 19)
    assert r.end == datetime(2026, 10, 29, 23, 59, 59, 999000)
    assert r.description == "next 10 days"


def test_huge_next_n_days_is_not_a_range():
    assert extract_date_range("what's due in the next 366 days?", now=NOW).end.date() == date(2027, 10, 20)
    assert extract_date_range("what's due in the next 3000000 days?", now=NOW) is None
    assert extract_date_range("next " + "9" * 5000 + " days", now=NOW) is None


def test_range_rejects_inverted_bounds():
    with pytest.raises(ValueError):
        DateRange(datetime(2026, 2, 1), datetime(2026, 1, 1), "backwards")


def test_filter_by_date_range_drops_undated_items():
    r = extract_date_range("this week", now=NOW)
    inside = SimpleAssignment(1, "a", "c", 1, datetime(2026, 10, 20, 12))
    outside = SimpleAssignment(2, "b", "c", 1, datetime(2026, 11, 20, 12))
    undated = SimpleAssignment(3, "c", "c", 1, None)

    assert filter_by_date_range([inside, outside, undated], r) == [inside]
    assert filter_by_date_range([inside, outside, undated], None) == [inside, outside, undated]
    assert is_within_range(None, r) is False
