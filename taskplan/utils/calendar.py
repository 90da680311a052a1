from datetime import date, datetime, timedelta

# 0-4 are Monday-Friday, 5-6 are Saturday-Sunday
WEEKDAYS = frozenset(range(5))


def to_day(value):
    """Truncate a date or datetime to a datetime at midnight."""
    if value is None:
        return None
    # datetime is a subclass of date
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    raise TypeError(f"Expected a date or datetime, got {type(value).__name__}")


def is_working_day(day, weekdays=WEEKDAYS):
    return day.weekday() in weekdays


def daterange(start_date, end_date):
    """Yield every calendar day from start_date to end_date (inclusive)."""
    current_date = to_day(start_date)
    end_date = to_day(end_date)
    while current_date <= end_date:
        yield current_date
        current_date += timedelta(days=1)


def working_days_between(start_date, end_date, weekdays=WEEKDAYS):
    """
    Count working days between two dates, both ends included.

    Args:
        start_date: First day of the span
        end_date: Last day of the span
        weekdays: Weekday numbers that count as working days (default Mon-Fri)

    Returns:
        int: Number of working days, or 0 if end_date is before start_date
    """
    count = 0
    for current_date in daterange(start_date, end_date):
        if is_working_day(current_date, weekdays):
            count += 1
    return count


def add_working_days(start_date, days, weekdays=WEEKDAYS):
    """
    Advance a date by a number of working days.

    The start day itself is never counted; weekend days are stepped over
    without being counted. Adding zero days returns the start date.

    Args:
        start_date: Date to advance from
        days: Number of working days to add (non-negative)
        weekdays: Weekday numbers that count as working days (default Mon-Fri)

    Returns:
        datetime: The resulting date

    Raises:
        ValueError: If days is negative or no weekday is a working day
    """
    if days < 0:
        raise ValueError("Cannot add a negative number of working days")
    if days and not weekdays:
        raise ValueError("At least one weekday must be a working day")

    result = to_day(start_date)
    added_days = 0
    while added_days < days:
        result += timedelta(days=1)
        if is_working_day(result, weekdays):
            added_days += 1

    return result
