""" Events are called by the :class:`labres.db.scheduler.Scheduler` whenever
a reservation changed and the change has been committed.

To add an event::

    from labres.modules import events

    def on_reservation_requested(context, reservation):
        pass

    events.on_reservation_requested.append(on_reservation_requested)

To remove the same event::

    events.on_reservation_requested.remove(on_reservation_requested)

Events are called in the order they were added.
"""
from __future__ import annotations


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from typing_extensions import ParamSpec

    from labres.context.core import Context
    from labres.db.models import Reservation

    _P = ParamSpec('_P')


class Event(list['Callable[_P, object]']):
    """Event subscription. By http://stackoverflow.com/a/2022629

    A list of callable objects. Calling an instance of this will cause a
    call to each item in the list in ascending order by index.

    """

    def __call__(self, *args: _P.args, **kwargs: _P.kwargs) -> None:
        for f in self:
            f(*args, **kwargs)


on_reservation_requested: Event[Context, Reservation] = Event()
""" Called when a booking request was admitted, with the following arguments:

    :context:
        The :class:`labres.context.core.Context` used when booking.

    :reservation:
        The new, pending :class:`labres.db.models.Reservation`.

"""

on_reservation_verified: Event[Context, Reservation] = Event()
""" Called when an operator confirmed a pending reservation, with the
following arguments:

    :context:
        The :class:`labres.context.core.Context` used when verifying.

    :reservation:
        The confirmed :class:`labres.db.models.Reservation`.

"""

on_reservation_completed: Event[Context, Reservation] = Event()
""" Called when an operator marked a confirmed reservation as completed,
with the following arguments:

    :context:
        The :class:`labres.context.core.Context` used when completing.

    :reservation:
        The completed :class:`labres.db.models.Reservation`.

"""

on_reservation_cancelled: Event[Context, Reservation] = Event()
""" Called when a reservation was cancelled, with the following arguments:

    :context:
        The :class:`labres.context.core.Context` used when cancelling.

    :reservation:
        The cancelled :class:`labres.db.models.Reservation`. If cancelled
        reservations are not retained (see :ref:`settings.retain_cancelled`)
        the record is already deleted and detached from the session.

"""
