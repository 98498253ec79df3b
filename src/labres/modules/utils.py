from __future__ import annotations

import sedate


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Collection
    from datetime import datetime, time
    from sedate.types import TzInfoOrName


def overlaps(
    start: datetime,
    end: datetime,
    other_start: datetime,
    other_end: datetime
) -> bool:
    """ Returns True if the half-open ranges [start, end) and
    [other_start, other_end) intersect. Touching ranges do not.

    """
    return start < other_end and other_start < end


def duration_in_minutes(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60


def is_allowed_duration(
    start: datetime,
    end: datetime,
    allowed: Collection[int]
) -> bool:
    minutes = duration_in_minutes(start, end)
    return minutes.is_integer() and int(minutes) in allowed


def is_within_operating_hours(
    start: datetime,
    end: datetime,
    opening: time,
    closing: time,
    timezone: TzInfoOrName
) -> bool:
    """ Returns True if the given range lies within a single day's opening
    hours, in the given timezone. Both boundaries are inclusive, so a range
    may start at the opening and end at the closing time.

    """

    start = sedate.to_timezone(start, timezone)
    end = sedate.to_timezone(end, timezone)

    if start.date() != end.date():
        return False

    return opening <= start.time() and end.time() <= closing
