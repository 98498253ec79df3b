from __future__ import annotations

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from datetime import datetime
    from labres.db.models import Reservation


class LabresError(Exception):
    __slots__ = ('reservation',)
    reservation: Reservation
    """
    This attribute is not guaranteed to exist
    """


class ContextAlreadyExists(LabresError):
    pass


class UnknownContext(LabresError):
    pass


class ContextIsLocked(LabresError):
    pass


class UnknownService(LabresError):
    pass


class OutOfHoursError(LabresError):
    """ The requested window leaves the daily operating hours. """


class InvalidDurationError(LabresError):
    """ The requested window is empty, negative or its length is not one
    of the allowed durations.

    """


class ResourceUnavailableError(LabresError):
    """ The resource cannot be booked right now (maintenance, unavailable).
    """


class UnknownResourceError(ResourceUnavailableError):
    pass


class OverlapError(LabresError):
    """ Raised when a requested window collides with an active reservation
    on the same resource. The conflicting window is available through
    ``start``/``end``, the conflicting record through ``existing``.

    """

    __slots__ = ('start', 'end', 'existing')

    def __init__(
        self,
        start: datetime,
        end: datetime,
        existing: Reservation
    ):
        super().__init__(start, end)
        self.start = start
        self.end = end
        self.existing = existing


class PermissionDeniedError(LabresError):
    pass


class InvalidTransitionError(LabresError):
    pass


class NotFoundError(LabresError):
    pass


class StoreError(LabresError):
    """ Wraps errors raised by the database while writing. The original
    exception is kept as ``orig``.

    """

    __slots__ = ('orig', )

    def __init__(self, orig: Exception):
        super().__init__(str(orig))
        self.orig = orig
