"""
Minute-granularity time of day used by every scheduling mode.

Canonical string form is "HH:MM" (24h). Slots are immutable; arithmetic
returns new instances.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import time
from typing import Union

from competition_scheduler.errors import ParseError, ValidationError

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::\d{2})?\s*$")


@dataclass(frozen=True, order=True)
class TimeSlot:
    minutes: int

    def __post_init__(self):
        if not isinstance(self.minutes, int) or isinstance(self.minutes, bool):
            raise ValidationError(f"TimeSlot minutes must be an int, got {self.minutes!r}")
        if self.minutes < 0 or self.minutes >= MINUTES_PER_DAY:
            raise ValidationError(f"Time out of day range: {self.minutes} minutes")

    @classmethod
    def from_string(cls, value: str) -> "TimeSlot":
        if not isinstance(value, str):
            raise ParseError(f"Expected a 'HH:MM' string, got {type(value).__name__}")
        m = _TIME_RE.match(value)
        if not m:
            raise ParseError(f"Malformed time string: {value!r}")
        hours, minutes = int(m.group(1)), int(m.group(2))
        if hours > 23 or minutes > 59:
            raise ParseError(f"Invalid time values: {value!r}")
        return cls(hours * 60 + minutes)

    @classmethod
    def from_minutes(cls, total_minutes: int) -> "TimeSlot":
        return cls(total_minutes)

    @classmethod
    def from_time(cls, value: time) -> "TimeSlot":
        return cls(value.hour * 60 + value.minute)

    @classmethod
    def coerce(cls, value: Union["TimeSlot", str, time]) -> "TimeSlot":
        """Accept a slot, a "HH:MM" string or a datetime.time."""
        if isinstance(value, TimeSlot):
            return value
        if isinstance(value, time):
            return cls.from_time(value)
        return cls.from_string(value)

    @property
    def hours(self) -> int:
        return self.minutes // 60

    def add_minutes(self, n: int) -> "TimeSlot":
        return TimeSlot(self.minutes + n)

    def to_minutes(self) -> int:
        return self.minutes

    def to_time(self) -> time:
        return time(self.hours, self.minutes % 60)

    def to_string(self) -> str:
        return f"{self.hours:02d}:{self.minutes % 60:02d}"

    def __str__(self) -> str:
        return self.to_string()
