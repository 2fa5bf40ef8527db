# linkshades/model/translate.py
"""
Numeric mappings between the user-facing percentage scale and the shade's
native values.

All results are integers rounded half away from zero (0.5 -> 1, -0.5 -> -1),
computed on exact fractions so e.g. 73 + 50 * 27 / 100 = 86.5 rounds to 87.
Nothing is clamped: a percentage outside 0..100 yields a command outside the
calibration range.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from fractions import Fraction
from typing import Union

Number = Union[int, float, Fraction]

DEFAULT_MIN_COMMAND = 73   # fully closed
DEFAULT_MAX_COMMAND = 100  # fully open
RAW_POSITION_SCALE = 10


def round_half_away(x: Number) -> int:
    q = Fraction(x)
    if q >= 0:
        return math.floor(q + Fraction(1, 2))
    return -math.floor(-q + Fraction(1, 2))


@dataclass(frozen=True)
class Calibration:
    min_command: int = DEFAULT_MIN_COMMAND
    max_command: int = DEFAULT_MAX_COMMAND

    def __post_init__(self) -> None:
        object.__setattr__(self, "min_command", int(self.min_command))
        object.__setattr__(self, "max_command", int(self.max_command))
        if self.max_command <= self.min_command:
            raise ValueError(
                f"Calibration max_command ({self.max_command}) must be greater than min_command ({self.min_command})"
            )

    @property
    def span(self) -> int:
        return self.max_command - self.min_command

    def percent_to_command(self, percent: Number) -> int:
        return percent_to_command(percent, self)

    def command_to_percent(self, command: Number) -> int:
        return command_to_percent(command, self)


DEFAULT_CALIBRATION = Calibration()


def percent_to_command(percent: Number, cal: Calibration = DEFAULT_CALIBRATION) -> int:
    return round_half_away(cal.min_command + Fraction(percent) * cal.span / 100)


def command_to_percent(command: Number, cal: Calibration = DEFAULT_CALIBRATION) -> int:
    return round_half_away((Fraction(command) - cal.min_command) * 100 / cal.span)


def raw_to_percent(raw: Number) -> int:
    return round_half_away(Fraction(raw) / RAW_POSITION_SCALE)
