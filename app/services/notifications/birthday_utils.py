import calendar
from datetime import date, datetime
from zoneinfo import ZoneInfo

from app.utils.datetime_utils import to_utc


class BirthdayCalculator:
    """Utility class for birthday occurrence calculations in a user's timezone"""

    @staticmethod
    def occurrence_in_year(dob: date, year: int, zone: ZoneInfo) -> datetime:
        """
        Local midnight of the birthday in the given year.

        February 29 rolls over to March 1 in non-leap years.
        """
        if dob.month == 2 and dob.day == 29 and not calendar.isleap(year):
            return datetime(year, 3, 1, tzinfo=zone)
        return datetime(year, dob.month, dob.day, tzinfo=zone)

    @staticmethod
    def upcoming_occurrence(dob: date, now: datetime, zone: ZoneInfo) -> datetime:
        """Next birthday at or after now, looking at most one year ahead"""
        local_now = to_utc(now).astimezone(zone)
        this_year = BirthdayCalculator.occurrence_in_year(dob, local_now.year, zone)
        if to_utc(this_year) < to_utc(now):
            return BirthdayCalculator.occurrence_in_year(dob, local_now.year + 1, zone)
        return this_year

    @staticmethod
    def hours_between(start: datetime, end: datetime, zone: ZoneInfo) -> int:
        """
        Count hour boundaries crossed from start to end, in the given timezone.

        start is truncated to the hour in local time. The difference is taken
        in UTC so DST transitions count as real elapsed hours.
        """
        local_start = to_utc(start).astimezone(zone)
        truncated = local_start.replace(minute=0, second=0, microsecond=0)
        elapsed = to_utc(end) - to_utc(truncated)
        return int(elapsed.total_seconds() // 3600)

    @staticmethod
    def hours_until_birthday(dob: date, now: datetime, zone: ZoneInfo) -> int:
        upcoming = BirthdayCalculator.upcoming_occurrence(dob, now, zone)
        return BirthdayCalculator.hours_between(now, upcoming, zone)
