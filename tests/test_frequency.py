import pytest

from medtrack.schemas.models import (
    EveryHours,
    FourTimesDaily,
    OnceDaily,
    ThriceDaily,
    TwiceDaily,
    Unrecognized,
    Weekly,
)
from medtrack.services.frequency import parse_frequency


@pytest.mark.parametrize("text, hour", [
    ("once daily", 8),
    ("Daily", 8),
    ("daily in the morning", 8),
    ("once daily in the afternoon", 14),
    ("daily, evening", 18),
    ("once daily at bedtime", 21),
    ("daily at night", 21),
])
def test_once_daily_hours(text, hour):
    assert parse_frequency(text) == OnceDaily(hour=hour)


@pytest.mark.parametrize("text, expected", [
    ("twice daily", TwiceDaily()),
    ("BID", TwiceDaily()),
    ("three times daily", ThriceDaily()),
    ("tid with meals", ThriceDaily()),
    ("four times daily", FourTimesDaily()),
    ("QID", FourTimesDaily()),
])
def test_multi_dose_rules_win_over_daily(text, expected):
    assert parse_frequency(text) == expected


def test_every_n_hours():
    assert parse_frequency("Every 6 hours") == EveryHours(interval=6)
    assert parse_frequency("every  12  hours as needed") == EveryHours(interval=12)


def test_every_hours_without_number_has_no_interval():
    assert parse_frequency("every few hours") == EveryHours(interval=None)
    assert parse_frequency("every 0 hours") == EveryHours(interval=None)


def test_weekly_with_and_without_day():
    assert parse_frequency("weekly on Monday") == Weekly(day="monday")
    assert parse_frequency("weekly") == Weekly(day=None)


def test_unrecognized():
    assert parse_frequency("as needed") == Unrecognized()
    assert parse_frequency("") == Unrecognized()
