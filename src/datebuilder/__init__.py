# The MIT License (MIT)
#
# Copyright (c) the datebuilder authors
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

# Maintainer's notes:
#
# - Everything lives in one file:
#   the builder and the constant 'know' about each other, and
#   there is no risk of circular imports.
# - A value is an instant (integer milliseconds since the UNIX epoch)
#   plus a timezone. Wall-clock fields are always derived from these two,
#   never stored.
# - Ambiguity detection and the unique-time search presume DST shifts of
#   at most one hour, with repeated windows that never overlap.
#   This holds for every real-world zone we know of, but is not checked.
from __future__ import annotations

__version__ = "0.1.0"

import logging
import os
import re
from abc import ABC
from calendar import monthrange
from datetime import (
    date as _date,
    datetime as _datetime,
    timedelta as _timedelta,
    timezone as _timezone,
    tzinfo as _tzinfo,
)
from typing import Literal, NamedTuple, Union
from zoneinfo import ZoneInfo

from babel import Locale
from babel.dates import format_datetime
from dateutil.tz import (
    datetime_ambiguous,
    datetime_exists,
    resolve_imaginary,
    tzlocal,
)

__all__ = [
    "WallClock",
    "DateConstant",
    "DateBuilder",
    "WeekRule",
    "ISO_WEEKS",
    "US_WEEKS",
    "offset_minutes",
    "is_local_non_unique",
    "default_tz",
    "set_default_tz",
    "resolve_tz",
    "Ambiguous",
    "DoesntExistInZone",
    "InvalidFormat",
    "UnsupportedFormat",
    "MONDAY",
    "TUESDAY",
    "WEDNESDAY",
    "THURSDAY",
    "FRIDAY",
    "SATURDAY",
    "SUNDAY",
]

_log = logging.getLogger(__name__)

MONDAY, TUESDAY, WEDNESDAY, THURSDAY, FRIDAY, SATURDAY, SUNDAY = range(1, 8)

# strftime/strptime patterns
ISO_FORMAT = "%Y-%m-%d"
ISO_FORMAT_TIME = "%Y-%m-%d %H:%M:%S"
FRENCH_FORMAT = "%d/%m/%Y"
DATE_TIME_FOR_FILE_FORMAT = "%Y-%m-%d-%H-%M"
HOUR_MINUTE_FORMAT = "%H:%M"

# CLDR patterns, rendered with Babel
FRENCH_LONG_FORMAT = "EEEE dd MMMM yyyy HH'h'mm"

Disambiguate = Literal["compatible", "earlier", "later", "raise"]
TruncateTo = Literal["days", "hours", "minutes", "seconds"]
TzLike = Union[str, _tzinfo, None]
LocaleLike = Union[str, Locale]


# ---------------------------------------------------------------------------
# Timezone configuration
# ---------------------------------------------------------------------------

_default_tz: _tzinfo | None = None


def default_tz() -> _tzinfo:
    """The timezone used when no ``tz=`` is given.

    Unless set explicitly with :func:`set_default_tz`, this is the zone named
    by the ``DATEBUILDER_TZ`` environment variable, or else the system zone.
    """
    global _default_tz
    if _default_tz is None:
        key = os.environ.get("DATEBUILDER_TZ")
        _default_tz = ZoneInfo(key) if key else tzlocal()
    return _default_tz


def set_default_tz(tz: TzLike, /) -> None:
    """Set the process-wide default timezone. ``None`` restores the
    environment/system default.

    Existing values keep the zone they were created with.

    Example
    -------

    >>> set_default_tz("Europe/Paris")
    >>> DateBuilder.date_time(2024, 7, 1, 10, 0).time_zone_offset
    120
    """
    global _default_tz
    _default_tz = None if tz is None else resolve_tz(tz)
    _log.debug("default timezone set to %s", _default_tz)


def resolve_tz(tz: TzLike = None, /) -> _tzinfo:
    """Turn an IANA key, a tzinfo, or ``None`` (the default) into a tzinfo"""
    if tz is None:
        return default_tz()
    elif isinstance(tz, str):
        return ZoneInfo(tz)
    elif isinstance(tz, _tzinfo):
        return tz
    raise TypeError(f"Expected a timezone key or tzinfo, got {tz!r}")


# ---------------------------------------------------------------------------
# Offsets and ambiguity
# ---------------------------------------------------------------------------


def offset_minutes(instant: int, /, tz: TzLike = None) -> int:
    """The total UTC offset (standard + DST) in minutes at the given instant.

    Example
    -------

    >>> offset_minutes(0, tz="Europe/Paris")
    60
    """
    return _div_trunc(
        _to_local(instant, resolve_tz(tz)).utcoffset() // _SECOND,  # type: ignore[operator]
        60,
    )


def is_local_non_unique(instant: int, /, tz: TzLike = None) -> bool:
    """Whether the wall-clock reading of the instant occurs twice,
    because clocks are set back around it.

    The offset one hour later being lower, or the offset one hour earlier
    being higher, brackets the repeated hour from either side.

    Example
    -------

    >>> # 02:30 CEST, the first 02:30 of the night clocks go back in Paris
    >>> is_local_non_unique(1729989000000, tz="Europe/Paris")
    True

    Warning
    -------
    Only shifts of at most one hour are detected reliably.
    """
    zone = resolve_tz(tz)
    here = offset_minutes(instant, zone)
    return (
        offset_minutes(instant + _HOUR_MS, zone) < here
        or offset_minutes(instant - _HOUR_MS, zone) > here
    )


# ---------------------------------------------------------------------------
# Week numbering
# ---------------------------------------------------------------------------


class WeekRule(NamedTuple):
    """How weeks are numbered within a year.

    ``first_weekday`` uses the ISO numbering (1 is Monday, 7 is Sunday).
    Week 1 is the first week with at least ``minimal_days`` days in the year.
    """

    first_weekday: int
    minimal_days: int

    @classmethod
    def for_locale(cls, locale: LocaleLike, /) -> WeekRule:
        """The week rule of a locale, from its CLDR data

        Example
        -------

        >>> WeekRule.for_locale("fr_FR")
        WeekRule(first_weekday=1, minimal_days=4)
        >>> WeekRule.for_locale("en_US")
        WeekRule(first_weekday=7, minimal_days=1)
        """
        loc = Locale.parse(locale)
        # Babel counts weekdays from 0 (Monday)
        return cls(loc.first_week_day + 1, loc.min_week_days)

    def week_one_start(self, year: int) -> _date:
        jan1 = _date(year, 1, 1)
        lead = (jan1.isoweekday() - self.first_weekday) % 7
        start = jan1 - _timedelta(days=lead)
        if 7 - lead < self.minimal_days:
            start += _timedelta(weeks=1)
        return start

    def week_of_year(self, d: _date, /) -> int:
        if d >= self.week_one_start(d.year + 1):
            return 1
        start = self.week_one_start(d.year)
        if d < start:
            start = self.week_one_start(d.year - 1)
        return (d - start).days // 7 + 1


ISO_WEEKS = WeekRule(MONDAY, 4)
"""ISO 8601 weeks, as used in most of Europe (e.g. France)"""
US_WEEKS = WeekRule(SUNDAY, 1)
"""Weeks starting on Sunday, week 1 contains January 1st (e.g. the US)"""


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------


class WallClock(ABC):
    """Read-only queries shared by :class:`DateConstant` and
    :class:`DateBuilder`.

    A value is an instant plus the timezone in which its wall-clock fields
    are read. Fields are computed on every access.
    """

    __slots__ = ("_millis", "_tz", "__weakref__")
    _millis: int
    _tz: _tzinfo

    @classmethod
    def _from_unchecked(cls, millis: int, tz: _tzinfo, /):
        self = _object_new(cls)
        self._millis = millis
        self._tz = tz
        return self

    def _local(self) -> _datetime:
        return _to_local(self._millis, self._tz)

    @property
    def year(self) -> int:
        return self._local().year

    @property
    def month(self) -> int:
        """The month, from 1 (January) to 12 (December)"""
        return self._local().month

    @property
    def day(self) -> int:
        """The day of the month, from 1 to 31"""
        return self._local().day

    @property
    def hour(self) -> int:
        return self._local().hour

    @property
    def minute(self) -> int:
        return self._local().minute

    @property
    def second(self) -> int:
        return self._local().second

    @property
    def millisecond(self) -> int:
        return self._local().microsecond // 1000

    @property
    def tz(self) -> _tzinfo:
        """The timezone the wall-clock fields are read in"""
        return self._tz

    @property
    def time_zone_offset(self) -> int:
        """The UTC offset in minutes (standard + DST) at this instant

        Example
        -------

        >>> DateBuilder.date_time(2024, 1, 1, 10, 0, tz="Europe/Paris").time_zone_offset
        60
        >>> DateBuilder.date_time(2024, 7, 1, 10, 0, tz="Europe/Paris").time_zone_offset
        120
        """
        return offset_minutes(self._millis, self._tz)

    def timestamp_millis(self) -> int:
        """Milliseconds since the UNIX epoch"""
        return self._millis

    def py_datetime(self) -> _datetime:
        """The value as an aware :class:`~datetime.datetime` in its zone"""
        return self._local()

    def day_of_week(self) -> int:
        """The day of the week, where 1 is Monday and 7 is Sunday

        Example
        -------

        >>> DateConstant.date(2021, 1, 2).day_of_week() == SATURDAY
        True
        """
        return self._local().isoweekday()

    def week_of_year(self, rule: WeekRule | LocaleLike = ISO_WEEKS) -> int:
        """The week number of the date, according to the given rule,
        or the rule of the given locale.

        Example
        -------

        >>> d = DateBuilder.date(2021, 1, 1)
        >>> d.week_of_year(ISO_WEEKS)
        53
        >>> d.week_of_year("en_US")
        1
        """
        if not isinstance(rule, WeekRule):
            rule = WeekRule.for_locale(rule)
        return rule.week_of_year(self._local().date())

    def is_local_non_unique_time(self) -> bool:
        """Whether this wall-clock time occurs twice on its day,
        e.g. between 02:00 and 02:59 when clocks go back at 03:00.

        See :func:`is_local_non_unique`.
        """
        return is_local_non_unique(self._millis, self._tz)

    # --- formatting -------------------------------------------------------

    def format(self, fmt: str, /, locale: LocaleLike | None = None) -> str:
        """Format with a :meth:`~datetime.datetime.strftime` pattern.

        With a ``locale``, ``fmt`` is a CLDR pattern instead
        (e.g. ``"EEEE d MMMM y"``), rendered in that locale's language.

        Example
        -------

        >>> d = DateBuilder.date(2011, 7, 11, tz="Europe/Paris")
        >>> d.format("%d/%m")
        '11/07'
        >>> d.format("EEEE d MMMM", locale="en_US")
        'Monday 11 July'
        """
        if locale is None:
            return self._local().strftime(fmt)
        return format_datetime(self._local(), fmt, locale=locale)

    def to_iso8601_local(self, force_milliseconds: bool = False) -> str:
        """The local date and time, without offset.

        Seconds and milliseconds are only shown when non-zero,
        unless ``force_milliseconds`` is set.

        Example
        -------

        >>> d = DateBuilder.date_time(2022, 11, 28, 10, 11)
        >>> d.to_iso8601_local()
        '2022-11-28T10:11'
        >>> d.to_iso8601_local(force_milliseconds=True)
        '2022-11-28T10:11:00.000'
        """
        result = self.to_iso8601_local_date_time()
        if force_milliseconds and self.millisecond == 0:
            if self.second == 0:
                result += ":00"
            result += ".000"
        return result

    def to_iso8601_local_date_time(self) -> str:
        return _format_local(self._local())

    def to_iso8601_offset_date_time(self) -> str:
        """The local date and time with its offset,
        e.g. ``2014-02-07T16:25+01:00``. A zero offset is written ``Z``."""
        local = self._local()
        return _format_local(local) + _format_offset(local.utcoffset())  # type: ignore[arg-type]

    to_iso8601_with_time_zone = to_iso8601_offset_date_time

    def to_iso8601_zulu_time(self, truncate_to: TruncateTo | None = None) -> str:
        """The instant in UTC, e.g. ``2023-03-15T14:03:12.250Z``.

        ``truncate_to`` drops the smaller units of the local time
        before converting.

        Example
        -------

        >>> d = DateBuilder.date_time(2023, 3, 15, 15, 3, 12, 250, tz="Europe/Paris")
        >>> d.to_iso8601_zulu_time()
        '2023-03-15T14:03:12.250Z'
        >>> d.to_iso8601_zulu_time("seconds")
        '2023-03-15T14:03:12Z'
        """
        local = self._local()
        offset = local.utcoffset()
        fixed = local.replace(tzinfo=_timezone(offset))  # type: ignore[arg-type]
        if truncate_to is not None:
            fixed = _truncate(fixed, truncate_to)
        utc = fixed.astimezone(_UTC)
        result = utc.strftime("%Y-%m-%dT%H:%M:%S")
        if utc.microsecond:
            result += f".{utc.microsecond // 1000:03d}"
        return result + "Z"

    def to_iso8601_zulu_time_no_millis(self) -> str:
        return self.to_iso8601_zulu_time("seconds")

    def to_iso_format(self) -> str:
        """The date as ``YYYY-MM-DD``"""
        return self.format(ISO_FORMAT)

    def to_iso_timestamp(self) -> str:
        """The date and time as ``YYYY-MM-DD HH:MM:SS``"""
        return self.format(ISO_FORMAT_TIME)

    def to_french_format(self) -> str:
        """The date as ``DD/MM/YYYY``"""
        return self.format(FRENCH_FORMAT)

    def to_french_long_format(self) -> str:
        """The date and time written out in French,
        e.g. ``lundi 11 juillet 2011 10h40``"""
        return self.format(FRENCH_LONG_FORMAT, locale="fr_FR")

    def to_timestamp_using_format_in_french(self, fmt: str, /) -> str:
        """Format with a CLDR pattern, in French"""
        return self.format(fmt, locale="fr_FR")

    def to_date_time_for_file(self) -> str:
        """The date and time as ``YYYY-MM-DD-HH-MM``, safe in file names"""
        return self.format(DATE_TIME_FOR_FILE_FORMAT)

    def to_hour_minute_string(self) -> str:
        return self.format(HOUR_MINUTE_FORMAT)

    __str__ = to_iso_timestamp

    def __repr__(self) -> str:
        local = self._local()
        return (
            f"{type(self).__name__}({_format_local(local)}"
            f"{_format_offset(local.utcoffset())}[{_tz_name(self._tz)}])"  # type: ignore[arg-type]
        )

    # --- comparison -------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        """Values are equal when they denote the same instant,
        regardless of their timezone."""
        if not isinstance(other, WallClock):
            return NotImplemented
        return self._millis == other._millis

    def __lt__(self, other: WallClock) -> bool:
        if not isinstance(other, WallClock):
            return NotImplemented
        return self._millis < other._millis

    def __le__(self, other: WallClock) -> bool:
        if not isinstance(other, WallClock):
            return NotImplemented
        return self._millis <= other._millis

    def __gt__(self, other: WallClock) -> bool:
        if not isinstance(other, WallClock):
            return NotImplemented
        return self._millis > other._millis

    def __ge__(self, other: WallClock) -> bool:
        if not isinstance(other, WallClock):
            return NotImplemented
        return self._millis >= other._millis

    def is_same_or_after(self, other: WallClock | _datetime, /) -> bool:
        return self._millis >= _instant_of(other)

    def is_same_or_before(self, other: WallClock | _datetime, /) -> bool:
        return self._millis <= _instant_of(other)

    def is_between(
        self, start: WallClock | _datetime, end: WallClock | _datetime, /
    ) -> bool:
        """Whether this value lies between ``start`` and ``end``,
        both inclusive"""
        return self.is_same_or_after(start) and self.is_same_or_before(end)

    def is_same_day(self, other: WallClock | _datetime, /) -> bool:
        """Whether both values fall on the same calendar date,
        each read in its own timezone"""
        return self._local().date() == _local_of(other).date()

    def is_weekday(self) -> bool:
        return self.day_of_week() not in (SATURDAY, SUNDAY)

    def is_morning(self) -> bool:
        return self.hour < 12

    def is_future(self) -> bool:
        return self._millis > _now_millis()

    # --- differences ------------------------------------------------------

    def milliseconds_to_reach(self, other: WallClock | _datetime, /) -> int:
        return _instant_of(other) - self._millis

    def seconds_to_reach(self, other: WallClock | _datetime, /) -> int:
        return _div_trunc(self.milliseconds_to_reach(other), 1000)

    def minutes_to_reach(self, other: WallClock | _datetime, /) -> int:
        return _div_trunc(self.seconds_to_reach(other), 60)

    def hours_to_reach(self, other: WallClock | _datetime, /) -> int:
        return _div_trunc(self.minutes_to_reach(other), 60)

    def days_to_reach(self, other: WallClock | _datetime, /) -> int:
        """Whole days between the two instants. Between 2010-01-25 and
        2010-01-26 (same time of day) there is 1 day."""
        return _div_trunc(self.hours_to_reach(other), 24)

    def get_age(self, now: WallClock | _datetime, /) -> int:
        """The age in whole years, on ``now``, of an event that
        happened at this date. Granularity is the day.

        Example
        -------

        >>> birth = DateConstant.date(2005, 6, 23)
        >>> birth.get_age(DateConstant.date(2023, 6, 22))
        17
        >>> birth.get_age(DateConstant.date(2023, 6, 23))
        18
        """
        then, at = self._local(), _local_of(now)
        age = at.year - then.year
        if (at.month, at.day) < (then.month, then.day):
            age -= 1
        return age

    def to_age(self) -> str:
        """The age in whole years of this date, as of today"""
        return str(self.get_age(DateConstant.now(tz=self._tz)))

    def builder(self) -> DateBuilder:
        """A new builder at the same instant and timezone"""
        return DateBuilder._from_unchecked(self._millis, self._tz)


class DateConstant(WallClock):
    """An immutable point in time, read in a timezone.

    Obtain one by freezing a :class:`DateBuilder` with
    :meth:`~DateBuilder.constant`, or directly with :meth:`now`,
    :meth:`milliseconds` or :meth:`date`.
    To modify it, take a :meth:`~WallClock.builder`.

    Example
    -------

    >>> start = DateBuilder.date_time(2024, 10, 27, 2, 30, tz="Europe/Paris").constant()
    >>> start
    DateConstant(2024-10-27T02:30+01:00[Europe/Paris])
    >>> start.builder().add_days(1).constant() > start
    True

    Instances compare and hash by their instant only.
    """

    __slots__ = ()

    @classmethod
    def now(cls, tz: TzLike = None) -> DateConstant:
        return cls._from_unchecked(_now_millis(), resolve_tz(tz))

    @classmethod
    def milliseconds(cls, n: int, /, tz: TzLike = None) -> DateConstant:
        """From a number of milliseconds since the UNIX epoch"""
        return cls._from_unchecked(n, resolve_tz(tz))

    @classmethod
    def date(
        cls,
        year: int,
        month: int,
        day: int,
        *,
        tz: TzLike = None,
        disambiguate: Disambiguate = "later",
    ) -> DateConstant:
        """Midnight on the given date"""
        return DateBuilder.date(
            year, month, day, tz=tz, disambiguate=disambiguate
        ).constant()

    @staticmethod
    def min(d1: DateConstant, d2: DateConstant, /) -> DateConstant:
        """The earliest of both values. On a tie, ``d1`` is returned."""
        return d1 if d1.is_same_or_before(d2) else d2

    @staticmethod
    def max(d1: DateConstant, d2: DateConstant, /) -> DateConstant:
        """The latest of both values. On a tie, ``d1`` is returned."""
        return d1 if d1.is_same_or_after(d2) else d2

    def __hash__(self) -> int:
        return hash(self._millis)

    # We don't need to copy, because it's immutable
    def __copy__(self) -> DateConstant:
        return self

    def __deepcopy__(self, _: object) -> DateConstant:
        return self

    def __reduce__(self) -> tuple[object, ...]:
        return _unpkl_constant, (self._millis, self._tz)


# A separate function is needed for unpickling, because the
# constructors don't accept the internal representation.
def _unpkl_constant(millis: int, tz: _tzinfo) -> DateConstant:
    return DateConstant._from_unchecked(millis, tz)


class DateBuilder(WallClock):
    """A mutable date and time, edited field by field.

    Every mutating method changes the builder in place and returns it,
    so calls can be chained. Use :meth:`constant` to freeze the result.

    Example
    -------

    >>> d = DateBuilder.date(2019, 10, 10, tz="Europe/Paris")
    >>> d.move_to_previous_day_of_week(MONDAY).set_hour(9).constant()
    DateConstant(2019-10-07T09:00+02:00[Europe/Paris])

    Wall-clock edits
    ----------------

    Setting fields or adding years, months or days works on the wall clock,
    after which the instant is looked up again in the timezone:

    - A time that occurs twice (clocks set back) resolves to the later one.
    - A time that doesn't exist (clocks set forward) is shifted
      forward by the length of the gap.

    Adding hours, minutes or seconds moves the instant by that exact amount.
    Out-of-range field values roll over: ``set_second(60)`` is the next minute.
    """

    __slots__ = ()
    __hash__ = None  # type: ignore[assignment]

    # --- constructors -----------------------------------------------------

    @classmethod
    def now(cls, tz: TzLike = None) -> DateBuilder:
        """The current date and time"""
        return cls._from_unchecked(_now_millis(), resolve_tz(tz))

    @classmethod
    def milliseconds(cls, n: int, /, tz: TzLike = None) -> DateBuilder:
        """From a number of milliseconds since the UNIX epoch

        Example
        -------

        >>> DateBuilder.milliseconds(0, tz="Europe/Paris")
        DateBuilder(1970-01-01T01:00+01:00[Europe/Paris])
        """
        return cls._from_unchecked(n, resolve_tz(tz))

    @classmethod
    def from_py_datetime(cls, d: _datetime, /, tz: TzLike = None) -> DateBuilder:
        """From a :class:`~datetime.datetime`. An aware datetime keeps its
        instant; a naive one is read as wall-clock time in the zone."""
        zone = resolve_tz(tz)
        if d.tzinfo is None:
            return cls._from_unchecked(
                _millis_of(_resolve_ambiguity(d, zone, "later")), zone
            )
        return cls._from_unchecked(_millis_of(d), zone)

    @classmethod
    def date(
        cls,
        year: int,
        month: int,
        day: int,
        *,
        tz: TzLike = None,
        disambiguate: Disambiguate = "later",
    ) -> DateBuilder:
        """Midnight on the given date"""
        return cls.date_time(
            year, month, day, 0, 0, tz=tz, disambiguate=disambiguate
        )

    @classmethod
    def date_time(
        cls,
        year: int,
        month: int,
        day: int,
        hour: int,
        minute: int,
        second: int = 0,
        millisecond: int = 0,
        *,
        tz: TzLike = None,
        disambiguate: Disambiguate = "later",
    ) -> DateBuilder:
        """From wall-clock fields. Values out of range roll over.

        ``disambiguate`` decides what happens to wall-clock times that
        occur twice or not at all:

        +------------------+-------------------------------------------------+
        | ``disambiguate`` | Behavior in case of ambiguity                   |
        +==================+=================================================+
        | ``"later"``      | (default) Choose the later of the two options   |
        +------------------+-------------------------------------------------+
        | ``"earlier"``    | Choose the earlier of the two options           |
        +------------------+-------------------------------------------------+
        | ``"compatible"`` | Choose "earlier" for backward transitions and   |
        |                  | "later" for forward transitions.                |
        +------------------+-------------------------------------------------+
        | ``"raise"``      | Refuse to guess:                                |
        |                  | raise :exc:`Ambiguous`                          |
        |                  | or :exc:`DoesntExistInZone`.                    |
        +------------------+-------------------------------------------------+

        Example
        -------

        >>> DateBuilder.date_time(2022, 11, 27, 2, 58, 60, tz="Europe/Paris")
        DateBuilder(2022-11-27T02:59+01:00[Europe/Paris])
        """
        zone = resolve_tz(tz)
        return cls._from_unchecked(
            _millis_of(
                _resolve_ambiguity(
                    _naive_from_fields(
                        year, month, day, hour, minute, second, millisecond
                    ),
                    zone,
                    disambiguate,
                )
            ),
            zone,
        )

    @classmethod
    def combine(cls, date_part: WallClock, time_part: WallClock, /) -> DateBuilder:
        """The date of ``date_part`` at the hour, minute and second
        of ``time_part``"""
        return (
            date_part.builder()
            .set_hour(time_part.hour)
            .set_minute(time_part.minute)
            .set_second(time_part.second)
        )

    @classmethod
    def time(
        cls, hours: int, minutes: int, seconds: int, *, tz: TzLike = None
    ) -> DateBuilder:
        """A time of day, placed on 1970-01-01"""
        return cls.date_time(1970, 1, 1, hours, minutes, seconds, tz=tz)

    @classmethod
    def iso8601(cls, s: str, /, tz: TzLike = None) -> DateBuilder:
        """Parse ISO 8601 text, with or without an offset.

        Text ending with ``Z`` or ``±HH:MM`` is parsed with
        :meth:`iso8601_with_time_zone`, anything else with
        :meth:`iso8601_in_local_date_time`.

        Raises
        ------
        InvalidFormat
            If the string doesn't match the detected format.
        UnsupportedFormat
            For offsets without a colon, like ``+0100``.
        """
        if _has_zone_suffix(s):
            return cls.iso8601_with_time_zone(s, tz)
        return cls.iso8601_in_local_date_time(s, tz)

    @classmethod
    def iso8601_with_time_zone(cls, s: str, /, tz: TzLike = None) -> DateBuilder:
        """Parse ISO 8601 text with an offset, e.g. ``2014-02-07T16:25+01:00``
        or ``2014-02-07T15:25Z``. The instant is kept; fields are read in
        ``tz``."""
        _check_supported(s)
        if (match := _match_offset_str(s)) is None:
            raise InvalidFormat(f"Expected ISO 8601 with offset, got {s!r}")
        offset = match[8]
        if offset == "Z":
            fixed = _UTC
        else:
            sign = -1 if offset[0] == "-" else 1
            fixed = _timezone(
                sign * _timedelta(hours=int(offset[1:3]), minutes=int(offset[4:6]))
            )
        return cls._from_unchecked(
            _millis_of(_datetime_from_match(match).replace(tzinfo=fixed)),
            resolve_tz(tz),
        )

    @classmethod
    def iso8601_in_local_date_time(
        cls, s: str, /, tz: TzLike = None
    ) -> DateBuilder:
        """Parse ISO 8601 text without offset, e.g. ``2014-02-07T16:25:00``,
        as wall-clock time in ``tz``.

        A time occurring twice resolves to the earlier one;
        a skipped time is shifted forward.
        """
        _check_supported(s)
        if (match := _match_local_str(s)) is None:
            raise InvalidFormat(f"Expected local ISO 8601, got {s!r}")
        zone = resolve_tz(tz)
        return cls._from_unchecked(
            _millis_of(
                _resolve_ambiguity(_datetime_from_match(match), zone, "compatible")
            ),
            zone,
        )

    @classmethod
    def string(cls, s: str, /, fmt: str, tz: TzLike = None) -> DateBuilder:
        """Parse with a :meth:`~datetime.datetime.strptime` pattern.

        Example
        -------

        >>> DateBuilder.string("13/02/2017", FRENCH_FORMAT, tz="Europe/Paris")
        DateBuilder(2017-02-13T00:00+01:00[Europe/Paris])
        """
        try:
            parsed = _datetime.strptime(s, fmt)
        except ValueError as e:
            raise InvalidFormat(f"{s!r} doesn't match format {fmt!r}") from e
        return cls.from_py_datetime(parsed, tz)

    @classmethod
    def string_time(cls, s: str, /, fmt: str, tz: TzLike = None) -> DateBuilder:
        """Like :meth:`string`, keeping only the time of day
        (see :meth:`trim_to_time`)"""
        return cls.string(s, fmt, tz).trim_to_time()

    @classmethod
    def iso(cls, s: str, /, tz: TzLike = None) -> DateBuilder:
        """Parse a ``YYYY-MM-DD`` date"""
        return cls.string(s, ISO_FORMAT, tz)

    @classmethod
    def iso_timestamp(cls, s: str, /, tz: TzLike = None) -> DateBuilder:
        """Parse a ``YYYY-MM-DD HH:MM:SS`` timestamp"""
        return cls.string(s, ISO_FORMAT_TIME, tz)

    def constant(self) -> DateConstant:
        """Freeze the current state into a :class:`DateConstant`"""
        return DateConstant._from_unchecked(self._millis, self._tz)

    def __copy__(self) -> DateBuilder:
        return self.builder()

    def __deepcopy__(self, _: object) -> DateBuilder:
        return self.builder()

    # --- wall-clock edits -------------------------------------------------

    def _set_wall(
        self, d: _datetime, /, keep_offset: _timedelta | None = None
    ) -> DateBuilder:
        self._millis = _millis_of(
            _resolve_ambiguity(d, self._tz, "later", keep_offset)
        )
        return self

    def _replace(self, **fields: int) -> DateBuilder:
        local = self._local()
        current = dict(
            year=local.year,
            month=local.month,
            day=local.day,
            hour=local.hour,
            minute=local.minute,
            second=local.second,
            millisecond=local.microsecond // 1000,
        )
        current.update(fields)
        return self._set_wall(_naive_from_fields(**current))

    def set_year(self, year: int, /) -> DateBuilder:
        return self._replace(year=year)

    def set_month(self, month: int, /) -> DateBuilder:
        """Set the month, from 1 (January) to 12 (December)"""
        return self._replace(month=month)

    def set_day(self, day: int, /) -> DateBuilder:
        """Set the day of the month"""
        return self._replace(day=day)

    def set_hour(self, hour: int, /) -> DateBuilder:
        return self._replace(hour=hour)

    def set_minute(self, minute: int, /) -> DateBuilder:
        return self._replace(minute=minute)

    def set_second(self, second: int, /) -> DateBuilder:
        return self._replace(second=second)

    def set_millisecond(self, millisecond: int, /) -> DateBuilder:
        return self._replace(millisecond=millisecond)

    def add_years(self, count: int, /) -> DateBuilder:
        """Add years on the wall clock. February 29th becomes
        the 28th in non-leap years."""
        return self._add_calendar(months=12 * count)

    def add_months(self, count: int, /) -> DateBuilder:
        """Add months on the wall clock, clamping the day to the end
        of the month.

        Example
        -------

        >>> DateBuilder.date(2021, 1, 31).add_months(1).to_iso_format()
        '2021-02-28'
        """
        return self._add_calendar(months=count)

    def add_days(self, count: int, /) -> DateBuilder:
        """Add days on the wall clock, keeping the time of day
        across DST transitions"""
        return self._add_calendar(days=count)

    def _add_calendar(self, months: int = 0, days: int = 0) -> DateBuilder:
        if not (months or days):
            return self
        local = self._local()
        year_overflow, month_new = divmod(local.month - 1 + months, 12)
        month_new += 1
        year_new = local.year + year_overflow
        day_new = min(local.day, monthrange(year_new, month_new)[1])
        return self._set_wall(
            local.replace(
                year=year_new, month=month_new, day=day_new, tzinfo=None, fold=0
            )
            + _timedelta(days),
            keep_offset=local.utcoffset(),
        )

    def add_hours(self, count: int, /) -> DateBuilder:
        """Move the instant by exactly this many hours"""
        self._millis += count * _HOUR_MS
        return self

    def add_minutes(self, count: int, /) -> DateBuilder:
        """Move the instant by exactly this many minutes"""
        self._millis += count * _MINUTE_MS
        return self

    def add_seconds(self, count: int, /) -> DateBuilder:
        """Move the instant by exactly this many seconds"""
        self._millis += count * 1000
        return self

    def add_duration(self, duration: _timedelta, /) -> DateBuilder:
        """Add a duration, in whole seconds (rounded down)"""
        return self.add_seconds(duration // _SECOND)

    def trim_to_year(self) -> DateBuilder:
        """Midnight on January 1st of the same year"""
        return self._replace(
            month=1, day=1, hour=0, minute=0, second=0, millisecond=0
        )

    def trim_to_month(self) -> DateBuilder:
        """Midnight on the first day of the month"""
        return self._replace(day=1, hour=0, minute=0, second=0, millisecond=0)

    def trim_to_day(self) -> DateBuilder:
        """Midnight on the same day"""
        return self._replace(hour=0, minute=0, second=0, millisecond=0)

    def trim_to_hour(self) -> DateBuilder:
        return self._replace(minute=0, second=0, millisecond=0)

    def trim_to_minute(self) -> DateBuilder:
        return self._replace(second=0, millisecond=0)

    def trim_to_second(self) -> DateBuilder:
        return self._replace(millisecond=0)

    def trim_to_time(self) -> DateBuilder:
        """Keep the hour, minute and second, on 1970-01-01"""
        return self._replace(year=1970, month=1, day=1, millisecond=0)

    def move_to_next_day_of_week(self, day_of_week: int, /) -> DateBuilder:
        """Move forward one day at a time until the given day of the week
        (1 is Monday, 7 is Sunday). Stays put if it's already that day.

        Example
        -------

        >>> d = DateBuilder.date(2019, 10, 2)
        >>> d.move_to_next_day_of_week(MONDAY).day
        7
        """
        _check_day_of_week(day_of_week)
        while self.day_of_week() != day_of_week:
            self.add_days(1)
        return self

    def move_to_previous_day_of_week(self, day_of_week: int, /) -> DateBuilder:
        """Move back one day at a time until the given day of the week
        (1 is Monday, 7 is Sunday). Stays put if it's already that day."""
        _check_day_of_week(day_of_week)
        while self.day_of_week() != day_of_week:
            self.add_days(-1)
        return self

    def move_to_next_local_unique_time(self) -> DateBuilder:
        """Move to the first wall-clock time at or after this one that
        occurs only once (see :meth:`~WallClock.is_local_non_unique_time`).
        Times that are already unique are left untouched.

        Example
        -------

        >>> d = DateBuilder.date_time(2024, 10, 27, 2, 30, tz="Europe/Paris")
        >>> d.move_to_next_local_unique_time()
        DateBuilder(2024-10-27T03:00+01:00[Europe/Paris])

        Note
        ----
        The boundary is bracketed with steps of 60, 40, 10 and 5 minutes,
        then found with single minutes. This presumes a single repeated
        window of at most one hour.
        """
        if not self.is_local_non_unique_time():
            return self
        start = self._millis
        self.add_minutes(60)
        for step in _SEARCH_STEPS:
            self.add_minutes(step if self.is_local_non_unique_time() else -step)
        if self.is_local_non_unique_time():
            while self.is_local_non_unique_time():
                self.add_minutes(1)
        else:
            while not self.is_local_non_unique_time():
                self.add_minutes(-1)
            self.add_minutes(1)
        _log.debug(
            "moved %s minutes forward to a unique local time: %s",
            (self._millis - start) // _MINUTE_MS,
            self.to_iso8601_offset_date_time(),
        )
        return self


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class Ambiguous(Exception):
    """A datetime is unexpectedly ambiguous"""

    @staticmethod
    def for_timezone(d: _datetime, tz: _tzinfo) -> Ambiguous:
        return Ambiguous(
            f"{d.replace(tzinfo=None)} is ambiguous in timezone {_tz_name(tz)}"
        )


class DoesntExistInZone(Exception):
    """A datetime doesn't exist in a timezone, e.g. because of DST"""

    @staticmethod
    def for_timezone(d: _datetime, tz: _tzinfo) -> DoesntExistInZone:
        return DoesntExistInZone(
            f"{d.replace(tzinfo=None)} doesn't exist in timezone {_tz_name(tz)}"
        )


class InvalidFormat(ValueError):
    """A string doesn't match the expected format"""


class UnsupportedFormat(InvalidFormat):
    """A string uses a variant of the format that isn't supported,
    such as an offset without colon (``+0100``)"""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_ambiguity(
    dt: _datetime,
    zone: _tzinfo,
    disambiguate: Disambiguate,
    keep_offset: _timedelta | None = None,
) -> _datetime:
    dt = dt.replace(tzinfo=zone, fold=0)
    # Non-existent times: they don't survive a UTC roundtrip.
    # Not every tzinfo honours `fold` in a gap (tzlocal doesn't),
    # so they are shifted by the measured gap.
    if not datetime_exists(dt):
        if disambiguate == "raise":
            raise DoesntExistInZone.for_timezone(dt, zone)
        shifted = resolve_imaginary(dt)
        if disambiguate == "earlier":
            return dt - (shifted - dt)
        return shifted
    if datetime_ambiguous(dt):
        if disambiguate == "raise":
            raise Ambiguous.for_timezone(dt, zone)
        later = dt.replace(fold=1)
        # an offset still valid at the new reading is kept
        if keep_offset is not None and keep_offset == dt.utcoffset():
            return dt
        elif keep_offset is not None and keep_offset == later.utcoffset():
            return later
        return later if disambiguate == "later" else dt
    return dt


def _naive_from_fields(
    year: int,
    month: int,
    day: int,
    hour: int = 0,
    minute: int = 0,
    second: int = 0,
    millisecond: int = 0,
) -> _datetime:
    # fields roll over into the next larger unit, like a lenient calendar
    year_overflow, month_new = divmod(month - 1, 12)
    return _datetime(year + year_overflow, month_new + 1, 1) + _timedelta(
        days=day - 1,
        hours=hour,
        minutes=minute,
        seconds=second,
        milliseconds=millisecond,
    )


def _to_local(millis: int, tz: _tzinfo) -> _datetime:
    return (_EPOCH + _timedelta(milliseconds=millis)).astimezone(tz)


def _millis_of(d: _datetime) -> int:
    return (d - _EPOCH) // _MILLISECOND


def _instant_of(other: WallClock | _datetime) -> int:
    if isinstance(other, WallClock):
        return other._millis
    elif isinstance(other, _datetime):
        if other.tzinfo is None:
            raise ValueError(f"Cannot compare with naive datetime {other!r}")
        return _millis_of(other)
    raise TypeError(f"Expected a WallClock or datetime, got {other!r}")


def _local_of(other: WallClock | _datetime) -> _datetime:
    if isinstance(other, WallClock):
        return other._local()
    elif isinstance(other, _datetime):
        if other.tzinfo is None:
            raise ValueError(f"Expected an aware datetime, got {other!r}")
        return other
    raise TypeError(f"Expected a WallClock or datetime, got {other!r}")


def _now_millis() -> int:
    return _millis_of(_datetime.now(_UTC))


def _div_trunc(a: int, b: int) -> int:
    # integer division rounding toward zero
    q = abs(a) // b
    return q if a >= 0 else -q


def _check_day_of_week(day_of_week: int) -> None:
    if not MONDAY <= day_of_week <= SUNDAY:
        raise ValueError(
            f"day of week must be between 1 (Monday) and 7 (Sunday), "
            f"got {day_of_week}"
        )


def _tz_name(tz: _tzinfo) -> str:
    return getattr(tz, "key", None) or type(tz).__name__


def _format_local(d: _datetime) -> str:
    # YYYY-MM-DDTHH:MM[:SS[.fff]]
    result = f"{d.year:04d}-{d.month:02d}-{d.day:02d}T{d.hour:02d}:{d.minute:02d}"
    millis = d.microsecond // 1000
    if d.second or millis:
        result += f":{d.second:02d}"
    if millis:
        result += f".{millis:03d}"
    return result


def _format_offset(offset: _timedelta) -> str:
    if not offset:
        return "Z"
    sign = "-" if offset < _timedelta() else "+"
    minutes, seconds = divmod(abs(offset) // _SECOND, 60)
    hours, minutes = divmod(minutes, 60)
    result = f"{sign}{hours:02d}:{minutes:02d}"
    if seconds:
        result += f":{seconds:02d}"
    return result


def _truncate(d: _datetime, unit: TruncateTo) -> _datetime:
    if unit == "days":
        return d.replace(hour=0, minute=0, second=0, microsecond=0)
    elif unit == "hours":
        return d.replace(minute=0, second=0, microsecond=0)
    elif unit == "minutes":
        return d.replace(second=0, microsecond=0)
    elif unit == "seconds":
        return d.replace(microsecond=0)
    raise ValueError(f"Cannot truncate to {unit!r}")


def _datetime_from_match(m: re.Match[str]) -> _datetime:
    fraction = m[7] or ""
    try:
        return _datetime(
            int(m[1]),
            int(m[2]),
            int(m[3]),
            int(m[4]),
            int(m[5]),
            int(m[6] or 0),
            # precision beyond milliseconds is dropped
            int(fraction[:3].ljust(3, "0")) * 1000,
        )
    except ValueError as e:
        raise InvalidFormat(f"Invalid date or time in {m.string!r}") from e


def _check_supported(s: str) -> None:
    if _match_compact_offset_str(s):
        raise UnsupportedFormat(
            f"Offsets must be written as ±HH:MM, got {s!r}"
        )


# Helpers that pre-compute/lookup as much as possible
_UTC = _timezone.utc
_EPOCH = _datetime(1970, 1, 1, tzinfo=_UTC)
_MILLISECOND = _timedelta(milliseconds=1)
_SECOND = _timedelta(seconds=1)
_MINUTE_MS = 60_000
_HOUR_MS = 3_600_000
_SEARCH_STEPS = (40, 10, 5)
_object_new = object.__new__
# YYYY-MM-DDTHH:MM[:SS[.fffffffff]]
_LOCAL_RE = (
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2})(?::(\d{2})(?:\.(\d{1,9}))?)?"
)
_match_local_str = re.compile(_LOCAL_RE).fullmatch
_match_offset_str = re.compile(rf"{_LOCAL_RE}(Z|[+-]\d{{2}}:\d{{2}})").fullmatch
_match_compact_offset_str = re.compile(rf"{_LOCAL_RE}[+-]\d{{4}}").fullmatch
_has_zone_suffix = re.compile(r"(?:[+-]\d\d:\d\d|Z)$").search
