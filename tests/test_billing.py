import datetime

import pytest

from smartpark.billing import HOURLY_RATE, billable_hours, compute_fee

ENTRY = datetime.datetime(2026, 3, 2, 8, 0, 0)


@pytest.mark.parametrize("elapsed, hours", [
    (datetime.timedelta(seconds=1), 1),
    (datetime.timedelta(minutes=59), 1),
    (datetime.timedelta(hours=1), 1),
    (datetime.timedelta(hours=1, microseconds=1), 2),
    (datetime.timedelta(minutes=61), 2),
    (datetime.timedelta(minutes=90), 2),
    (datetime.timedelta(hours=2), 2),
    (datetime.timedelta(hours=2, minutes=1), 3),
    (datetime.timedelta(days=1), 24),
])
def test_started_hours_are_rounded_up(elapsed, hours):
    assert billable_hours(ENTRY, ENTRY + elapsed) == hours


@pytest.mark.parametrize("elapsed", [
    datetime.timedelta(0),
    datetime.timedelta(minutes=-5),
    datetime.timedelta(hours=-3),
])
def test_clock_skew_still_charges_one_hour(elapsed):
    amount, hours = compute_fee(ENTRY, ENTRY + elapsed)
    assert hours == 1
    assert amount == HOURLY_RATE


def test_amount_is_hours_times_rate():
    amount, hours = compute_fee(ENTRY, ENTRY + datetime.timedelta(minutes=90))
    assert (amount, hours) == (1000, 2)

    amount, hours = compute_fee(ENTRY, ENTRY + datetime.timedelta(hours=5, minutes=1), hourly_rate=200)
    assert (amount, hours) == (1200, 6)


def test_negative_rate_is_rejected():
    with pytest.raises(ValueError):
        compute_fee(ENTRY, ENTRY + datetime.timedelta(hours=1), hourly_rate=-1)
