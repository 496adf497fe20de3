import datetime


def utcnow():
    """Current time as naive UTC, the form every timestamp column stores."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def as_naive_utc(value):
    # Aware datetimes are converted; naive ones are assumed to be UTC already
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return value


def parse_timestamp(raw):
    """Parses an ISO 8601 string (a trailing 'Z' is accepted) into naive UTC."""
    return as_naive_utc(datetime.datetime.fromisoformat(raw.replace('Z', '+00:00')))


def day_bounds(start_date, end_date=None):
    """Half-open [start 00:00, day after end 00:00) range covering whole days."""
    end_date = end_date or start_date
    start = datetime.datetime.combine(start_date, datetime.time.min)
    end = datetime.datetime.combine(end_date + datetime.timedelta(days=1), datetime.time.min)
    return start, end
