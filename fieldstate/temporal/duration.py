"""
Signed ISO-8601 Durations

    [-]P[nY][nM][nW][nD][T[nH][nM][n[.n]S]]

Calendar units are flattened to fixed lengths: a year is 365.25 days and
a month is 30 days. A leading '-' marks a hole (retroactive gap).
"""

from __future__ import annotations
import re

from ..contracts.errors import DurationError

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 60 * SECONDS_PER_MINUTE
SECONDS_PER_DAY = 24 * SECONDS_PER_HOUR
SECONDS_PER_WEEK = 7 * SECONDS_PER_DAY
SECONDS_PER_MONTH = 30 * SECONDS_PER_DAY
SECONDS_PER_YEAR = 365.25 * SECONDS_PER_DAY

_DURATION_PATTERN = re.compile(
    r"^(?P<sign>-)?P"
    r"(?:(?P<years>\d+)Y)?"
    r"(?:(?P<months>\d+)M)?"
    r"(?:(?P<weeks>\d+)W)?"
    r"(?:(?P<days>\d+)D)?"
    r"(?:T"
    r"(?:(?P<hours>\d+)H)?"
    r"(?:(?P<minutes>\d+)M)?"
    r"(?:(?P<seconds>\d+(?:\.\d+)?)S)?"
    r")?$"
)

_UNIT_SECONDS = (
    ('years', SECONDS_PER_YEAR),
    ('months', SECONDS_PER_MONTH),
    ('weeks', SECONDS_PER_WEEK),
    ('days', SECONDS_PER_DAY),
    ('hours', SECONDS_PER_HOUR),
    ('minutes', SECONDS_PER_MINUTE),
)


def parse_duration_seconds(duration: str) -> float:
    """
    Parse a signed ISO-8601 duration into seconds.

    Raises DurationError for anything that is not a syntactically valid
    duration with at least one component ("P", "PT" and "-P" are invalid).
    """
    if not isinstance(duration, str):
        raise DurationError(f"Duration must be a string, got {duration!r}")
    text = duration.strip()
    match = _DURATION_PATTERN.match(text)
    if not match or text.endswith('T'):
        raise DurationError(f"Invalid ISO 8601 duration: {duration!r}")

    parts = match.groupdict()
    if all(parts[name] is None for name in ('years', 'months', 'weeks', 'days',
                                            'hours', 'minutes', 'seconds')):
        raise DurationError(f"Invalid ISO 8601 duration: {duration!r}")

    total = 0.0
    for name, unit in _UNIT_SECONDS:
        if parts[name] is not None:
            total += int(parts[name]) * unit
    if parts['seconds'] is not None:
        total += float(parts['seconds'])

    return -total if parts['sign'] else total
