"""
Sprint bucketing for Team Pulse.

A sprint is a fixed-length recurring window anchored to a weekday and a base
date. Weekdays use 0=Sunday ... 6=Saturday throughout.
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import NamedTuple

from team_pulse.errors import ValidationError

DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

DEFAULT_START_DAY_OF_WEEK = 6  # Saturday
DEFAULT_DURATION_WEEKS = 1


def _require_int(value, what: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{what} must be an integer: {value!r}")


def day_of_week(value: date) -> int:
    """Return the weekday of a date with 0=Sunday ... 6=Saturday."""
    return (value.weekday() + 1) % 7


class SprintNumber(NamedTuple):
    """A sprint index; sprint 1 starts on the base date's sprint."""

    value: int

    @classmethod
    def create(cls, value: int) -> "SprintNumber":
        """Create a sprint number for the current-or-later path (>= 1)."""
        _require_int(value, "Sprint number")
        if value < 1:
            raise ValidationError(f"Sprint number must be 1 or greater: {value}")
        return cls(value)

    @classmethod
    def allowing_non_positive(cls, value: int) -> "SprintNumber":
        """Create a sprint number that may be zero or negative (before the base sprint)."""
        _require_int(value, "Sprint number")
        return cls(value)

    def next(self) -> "SprintNumber":
        return SprintNumber.create(self.value + 1)

    def previous(self) -> "SprintNumber":
        return SprintNumber.create(self.value - 1)

    def add(self, offset: int) -> "SprintNumber":
        return SprintNumber.create(self.value + offset)

    def __str__(self) -> str:
        return f"Sprint {self.value}"


class SprintPeriod(NamedTuple):
    """Inclusive date range of a sprint."""

    start_date: date
    end_date: date

    @classmethod
    def create(cls, start: date | datetime, end: date | datetime) -> "SprintPeriod":
        """
        Create a period from two dates, ignoring time of day.

        Raises:
            ValidationError: If end is before start.
        """
        start_day = _as_date(start)
        end_day = _as_date(end)
        if end_day < start_day:
            raise ValidationError(
                f"Sprint end date {end_day} is before start date {start_day}"
            )
        return cls(start_day, end_day)

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    @property
    def end_of_day(self) -> datetime:
        """Last instant of the period (23:59:59.999999 on the end date)."""
        return datetime.combine(self.end_date, time.max)

    def contains(self, value: date | datetime) -> bool:
        return self.start_date <= _as_date(value) <= self.end_date

    def format(self) -> str:
        """Format as e.g. "1/6(Sat) - 1/12(Fri)"."""

        def fmt(d: date) -> str:
            return f"{d.month}/{d.day}({DAY_NAMES[day_of_week(d)]})"

        return f"{fmt(self.start_date)} - {fmt(self.end_date)}"

    def to_dict(self) -> dict[str, str]:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
        }


class SprintConfig(NamedTuple):
    """Sprint settings of a repository."""

    start_day_of_week: int = DEFAULT_START_DAY_OF_WEEK
    duration_weeks: int = DEFAULT_DURATION_WEEKS
    base_date: date | None = None
    timezone: tzinfo | None = None  # Aware datetimes are converted to this zone first


class Sprint(NamedTuple):
    """A sprint resolved relative to some reference time."""

    number: SprintNumber
    period: SprintPeriod
    is_current: bool
    offset: int = 0


def _as_date(value: date | datetime, tz: tzinfo | None = None) -> date:
    if isinstance(value, datetime):
        if tz is not None and value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    return value


class SprintCalculator:
    """Maps dates to sprint numbers and sprint numbers to periods."""

    def __init__(self, config: SprintConfig):
        _require_int(config.start_day_of_week, "Sprint start day of week")
        _require_int(config.duration_weeks, "Sprint duration")
        if not 0 <= config.start_day_of_week <= 6:
            raise ValidationError(
                f"Sprint start day of week must be 0-6: {config.start_day_of_week}"
            )
        if config.duration_weeks < 1:
            raise ValidationError(
                f"Sprint duration must be at least one week: {config.duration_weeks}"
            )
        if config.base_date is None:
            config = config._replace(base_date=date.today())
        self.config = config
        self.base_sprint_start = self.sprint_start_date(config.base_date)

    @property
    def _bucket_days(self) -> int:
        return self.config.duration_weeks * 7

    def sprint_start_date(self, value: date | datetime) -> date:
        """Walk back to the most recent sprint start weekday (0 days if already on it)."""
        day = _as_date(value, self.config.timezone)
        diff = (day_of_week(day) - self.config.start_day_of_week + 7) % 7
        return day - timedelta(days=diff)

    def sprint_number(self, value: date | datetime) -> SprintNumber:
        """
        Sprint number of the sprint containing a date.

        Dates before the base sprint yield zero or negative numbers.
        """
        diff_days = (self.sprint_start_date(value) - self.base_sprint_start).days
        return SprintNumber.allowing_non_positive(diff_days // self._bucket_days + 1)

    def sprint_period(self, number: SprintNumber | int) -> SprintPeriod:
        """Date range of a sprint number."""
        value = number.value if isinstance(number, SprintNumber) else number
        _require_int(value, "Sprint number")
        start = self.base_sprint_start + timedelta(days=(value - 1) * self._bucket_days)
        end = start + timedelta(days=self._bucket_days - 1)
        return SprintPeriod.create(start, end)

    def current_sprint(self, now: date | datetime) -> Sprint:
        number = SprintNumber.create(self.sprint_number(now).value)
        return Sprint(number, self.sprint_period(number), True)

    def sprint_with_offset(self, now: date | datetime, offset: int) -> Sprint:
        """
        Sprint `offset` sprints away from the one containing `now`.

        Args:
            now: Reference time
            offset: 0 for the current sprint, -1 for the previous, 1 for the next

        Returns:
            Sprint whose is_current flag is derived by re-computing the
            sprint number of `now`.
        """
        _require_int(offset, "Sprint offset")
        current = self.sprint_number(now)
        target = SprintNumber.allowing_non_positive(current.value + offset)
        is_current = self.sprint_number(now).value == target.value
        return Sprint(target, self.sprint_period(target), is_current, offset)


def calculator_for_repository(repository) -> SprintCalculator:
    """Build a calculator from a stored repository's sprint settings."""
    return SprintCalculator(
        SprintConfig(
            start_day_of_week=repository.sprint_start_day_of_week
            if repository.sprint_start_day_of_week is not None
            else DEFAULT_START_DAY_OF_WEEK,
            duration_weeks=repository.sprint_duration_weeks
            or DEFAULT_DURATION_WEEKS,
            base_date=repository.tracking_start_date,
            timezone=timezone.utc,
        )
    )
