"""Five-field cron expressions: minute, hour, day of month, month, day of week."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_MONTHS = {n: i for i, n in enumerate("jan feb mar apr may jun jul aug sep oct nov dec".split(), 1)}
_DAYS = {n: i for i, n in enumerate("sun mon tue wed thu fri sat".split())}
_FIELD_BOUNDS = ((0, 59, {}), (0, 23, {}), (1, 31, {}), (1, 12, _MONTHS), (0, 6, _DAYS))
_INTEGER = re.compile(r"[+-]?[0-9]+", re.ASCII)
_SEARCH_YEARS = 5


class CronSyntaxError(ValueError):
    """Raised for cron expressions that cannot be parsed."""


@dataclass(frozen=True)
class CronSchedule:
    """A parsed schedule; each field holds the set of values it matches."""

    minutes: frozenset[int]
    hours: frozenset[int]
    days_of_month: frozenset[int]
    months: frozenset[int]
    days_of_week: frozenset[int]
    dom_star: bool = False
    dow_star: bool = False
    location: tzinfo | None = None

    def _day_matches(self, moment: datetime) -> bool:
        dom = moment.day in self.days_of_month
        dow = moment.isoweekday() % 7 in self.days_of_week
        return (dom and dow) if (self.dom_star or self.dow_star) else (dom or dow)

    def next(self, after: datetime) -> datetime | None:
        """Return the first matching minute strictly after ``after``.

        Returns None when nothing matches within five years.
        """
        moment = after.astimezone(self.location) if self.location is not None else after
        current = moment.replace(second=0, microsecond=0) + timedelta(minutes=1)
        limit = current.year + _SEARCH_YEARS
        while current.year <= limit:
            if current.month not in self.months:
                year, month = divmod(current.year * 12 + current.month, 12)
                current = current.replace(year=year, month=month + 1, day=1, hour=0, minute=0)
            elif not self._day_matches(current):
                current = current.replace(hour=0, minute=0) + timedelta(days=1)
            elif current.hour not in self.hours:
                current = current.replace(minute=0) + timedelta(hours=1)
            elif current.minute not in self.minutes:
                current += timedelta(minutes=1)
            elif self.location is None:
                return current
            elif after.tzinfo is None:
                return current.astimezone().replace(tzinfo=None)
            else:
                return current.astimezone(after.tzinfo)
        return None


def _parse_int(text: str, names: Mapping[str, int] = {}) -> int:
    if text.lower() in names:
        return names[text.lower()]
    if not _INTEGER.fullmatch(text):
        raise CronSyntaxError(f"failed to parse int from {text}")
    value = int(text)
    if value < 0:
        raise CronSyntaxError(f"negative number ({value}) not allowed: {text}")
    return value


def _parse_range(expr: str, low: int, high: int, names: Mapping[str, int]) -> tuple[set[int], bool]:
    range_and_step = expr.split("/")
    low_and_high = range_and_step[0].split("-")
    star = low_and_high[0] in ("*", "?")
    if star:
        start, end = low, high
    elif len(low_and_high) > 2:
        raise CronSyntaxError(f"too many hyphens: {expr}")
    else:
        start = _parse_int(low_and_high[0], names)
        end = _parse_int(low_and_high[-1], names)

    step = 1
    if len(range_and_step) > 2:
        raise CronSyntaxError(f"too many slashes: {expr}")
    if len(range_and_step) == 2:
        step = _parse_int(range_and_step[1])
        if len(low_and_high) == 1:
            end = high
        star = star and step <= 1

    if start < low:
        raise CronSyntaxError(f"beginning of range ({start}) below minimum ({low}): {expr}")
    if end > high:
        raise CronSyntaxError(f"end of range ({end}) above maximum ({high}): {expr}")
    if start > end:
        raise CronSyntaxError(f"beginning of range ({start}) beyond end of range ({end}): {expr}")
    if step == 0:
        raise CronSyntaxError(f"step of range should be a positive number: {expr}")
    return set(range(start, end + 1, step)), star


def _parse_field(text: str, low: int, high: int, names: Mapping[str, int]) -> tuple[frozenset[int], bool]:
    parts = [_parse_range(part, low, high, names) for part in text.split(",")]
    return frozenset().union(*(values for values, _ in parts)), any(star for _, star in parts)


def parse_cron(expression: str) -> CronSchedule:
    """Parse a standard five-field cron expression, optionally led by ``TZ=<zone>``."""
    if not expression:
        raise CronSyntaxError("empty spec string")
    location, spec = None, expression
    if spec.startswith(("TZ=", "CRON_TZ=")):
        name_end = spec.find(" ")
        if name_end < 0:
            raise CronSyntaxError(f"missing schedule after time zone: {spec}")
        name = spec[spec.index("=") + 1 : name_end]
        try:
            location = ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise CronSyntaxError(f"provided bad location {name}: {exc}") from exc
        spec = spec[name_end:].strip()
    fields = spec.split()
    if len(fields) != len(_FIELD_BOUNDS):
        raise CronSyntaxError(f"expected exactly 5 fields, found {len(fields)}: {spec}")
    (minutes, _), (hours, _), (doms, dom_star), (months, _), (dows, dow_star) = (
        _parse_field(text, *bounds) for text, bounds in zip(fields, _FIELD_BOUNDS)
    )
    return CronSchedule(minutes, hours, doms, months, dows, dom_star, dow_star, location)