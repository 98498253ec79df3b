""" Usage statistics, derived from a snapshot of reservations.

Nothing in here talks to the database. The caller passes in the
reservations (usually :meth:`labres.db.scheduler.Scheduler.usage` does that)
and gets fresh summaries back, so there are no counters which could drift
from the reservation table.

"""
from __future__ import annotations

import math

from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from collections.abc import Hashable
    from collections.abc import Iterable
    from collections.abc import Mapping
    from datetime import datetime
    from typing import Protocol

    class _Booking(Protocol):
        resource: Hashable
        requester: Hashable
        start: datetime
        end: datetime
        status: str


UNKNOWN = 'Unknown'


class UsageSummary(NamedTuple):
    name: str
    hours: float


def booked_hours(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def round_hours(hours: float) -> float:
    """ Rounds to one decimal, halves are rounded up (2.25 -> 2.3). """
    return math.floor(hours * 10 + 0.5) / 10


def summarize(
    reservations: Iterable[_Booking],
    key: Callable[[_Booking], str]
) -> list[UsageSummary]:
    """ Sums up the hours of the given reservations grouped by key.

    The result is ordered by hours (descending). Groups with the same
    amount of hours keep the order in which they were first seen.

    """
    totals: dict[str, float] = {}

    for reservation in reservations:
        name = key(reservation)
        hours = booked_hours(reservation.start, reservation.end)
        totals[name] = totals.get(name, 0.0) + hours

    summaries = [
        UsageSummary(name, round_hours(hours))
        for name, hours in totals.items()
    ]

    # sorted is stable, first-seen order survives among equal values
    return sorted(summaries, key=lambda s: s.hours, reverse=True)


def compute_usage(
    reservations: Iterable[_Booking],
    resource_names: Mapping[Hashable, str] | None = None,
    requester_names: Mapping[Hashable, str] | None = None
) -> tuple[list[UsageSummary], list[UsageSummary]]:
    """ Returns the booked hours per resource and per requester.

    :reservations:
        Any iterable of reservation-like objects with ``resource``,
        ``requester``, ``start``, ``end`` and ``status`` attributes.
        Cancelled reservations are skipped.

    :resource_names:
        Maps resource ids to display names. Ids not found are counted
        as ``'Unknown'``. Without a mapping the ids are used as names.

    :requester_names:
        Same as ``resource_names``, for requester ids.

    """
    active = [r for r in reservations if r.status != 'cancelled']

    def label(
        names: Mapping[Hashable, str] | None
    ) -> Callable[[Hashable], str]:
        if names is None:
            return str

        return lambda id: names.get(id, UNKNOWN)

    resource_label = label(resource_names)
    requester_label = label(requester_names)

    return (
        summarize(active, lambda r: resource_label(r.resource)),
        summarize(active, lambda r: requester_label(r.requester))
    )
