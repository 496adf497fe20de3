import datetime

# Fixed tariff, in currency units per started hour
HOURLY_RATE = 500

ONE_HOUR = datetime.timedelta(hours=1)


def billable_hours(entry_time, exit_time):
    """
    Whole hours to charge for a stay.

    Every started hour counts (61 minutes -> 2 hours) and the minimum is one
    hour, which also covers zero or negative spans caused by clock skew.
    """
    hours, remainder = divmod(exit_time - entry_time, ONE_HOUR)
    if remainder:
        hours += 1
    return max(1, hours)


def compute_fee(entry_time, exit_time, hourly_rate=HOURLY_RATE):
    """Returns (amount, duration_hours). Pure: no clock, no I/O."""
    if hourly_rate < 0:
        raise ValueError('hourly_rate must not be negative')
    duration_hours = billable_hours(entry_time, exit_time)
    return duration_hours * hourly_rate, duration_hours
