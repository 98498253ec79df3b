from __future__ import annotations

from labres.db.resources import ResourceRegistry
from labres.db.scheduler import Scheduler
from labres.db.store import ReservationStore


from typing import Any
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from labres.context.core import Context


def new_scheduler(
    context: Context,
    timezone: str,
    **kwargs: Any
) -> Scheduler:
    """ Returns a new :class:`~labres.db.scheduler.Scheduler` for the
    resources of the given context.

    """
    return Scheduler(context, timezone, **kwargs)


__all__ = (
    'new_scheduler',
    'ResourceRegistry',
    'ReservationStore',
    'Scheduler',
)
