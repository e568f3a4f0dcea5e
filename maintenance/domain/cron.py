"""Cron expression handling for maintenance schedules.

Accepted grammar: the classic five fields (minute, hour, day-of-month, month,
day-of-week) with ``*``, ranges, lists and steps, or one of the descriptor
shortcuts below. Seconds and year fields are not accepted.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone

from croniter import CroniterError, croniter

from .errors import InvalidScheduleError

DESCRIPTORS = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}

FIELD_COUNT = 5
FIELD_NAMES = ("minute", "hour", "day-of-month", "month", "day-of-week")

MONTH_NAMES = frozenset(
    ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"]
)
DAY_NAMES = frozenset(["sun", "mon", "tue", "wed", "thu", "fri", "sat"])

# Digits, wildcards, lists, ranges and steps only; no L, W, # or H extensions.
FIELD_PATTERN = re.compile(r"^[0-9A-Za-z*?,/\-]+$")
WORD_PATTERN = re.compile(r"[A-Za-z]+")


def _check_field(schedule: str, index: int, value: str) -> None:
    name = FIELD_NAMES[index]
    if not FIELD_PATTERN.match(value):
        raise InvalidScheduleError(schedule, f"unsupported characters in {name} field {value!r}")

    allowed = {3: MONTH_NAMES, 4: DAY_NAMES}.get(index, frozenset())
    for word in WORD_PATTERN.findall(value):
        if word.lower() not in allowed:
            raise InvalidScheduleError(schedule, f"unsupported token {word!r} in {name} field")


def normalize(schedule: str) -> str:
    expression = schedule.strip()
    if expression.startswith("@"):
        expanded = DESCRIPTORS.get(expression.lower())
        if expanded is None:
            raise InvalidScheduleError(schedule, f"unrecognized descriptor {expression}")
        return expanded

    fields = expression.split()
    if len(fields) != FIELD_COUNT:
        raise InvalidScheduleError(
            schedule, f"expected exactly {FIELD_COUNT} fields, found {len(fields)}"
        )
    for index, value in enumerate(fields):
        _check_field(schedule, index, value)
    return " ".join(fields)


def validate(schedule: str) -> None:
    expression = normalize(schedule)
    try:
        valid = croniter.is_valid(expression)
    except (CroniterError, ValueError, KeyError) as exc:
        raise InvalidScheduleError(schedule, str(exc)) from exc
    if not valid:
        raise InvalidScheduleError(schedule, "expression does not parse")


def next_fire_after(schedule: str, after: datetime) -> datetime:
    """Return the smallest instant strictly after ``after`` matching ``schedule``.

    Naive datetimes are treated as UTC. The result is always timezone-aware UTC.
    """
    validate(schedule)
    expression = normalize(schedule)
    if after.tzinfo is None:
        after = after.replace(tzinfo=timezone.utc)
    else:
        after = after.astimezone(timezone.utc)

    try:
        fire = croniter(expression, after).get_next(datetime)
    except (CroniterError, ValueError, KeyError) as exc:
        raise InvalidScheduleError(schedule, str(exc)) from exc
    return fire.astimezone(timezone.utc)
