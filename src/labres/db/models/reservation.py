from __future__ import annotations

import sedate

from datetime import datetime
from uuid import UUID

from sqlalchemy import types
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import Mapped
from sqlalchemy.schema import CheckConstraint
from sqlalchemy.schema import Index

from labres.db.models.base import ORMBase
from labres.db.models.timestamp import TimestampMixin
from labres.modules import utils


from typing import Any
from typing import Literal
from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from sedate.types import TzInfoOrName
    from typing_extensions import TypeAlias


ReservationStatus: TypeAlias = Literal[
    'pending', 'confirmed', 'completed', 'cancelled'
]
RESERVATION_STATUSES: tuple[ReservationStatus, ...] = (
    'pending', 'confirmed', 'completed', 'cancelled'
)

#: reservations in these states block their timespan for other reservations
ACTIVE_STATUSES: tuple[ReservationStatus, ...] = ('pending', 'confirmed')


class Timespan(NamedTuple):
    start: datetime
    end: datetime


class Reservation(TimestampMixin, ORMBase):
    """Describes the claim of a requester on a resource for a timespan.

    The timespan is half-open: a reservation ending at 10:00 and another
    starting at 10:00 do not overlap.

    A reservation starts out as ``pending``. Operators confirm it
    (``confirmed``) and mark it as ``completed`` once it took place. A
    pending or confirmed reservation may be ``cancelled``.

    """

    __tablename__ = 'reservations'

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True
    )

    #: the uuid of the reserved resource
    resource: Mapped[UUID]

    #: the id of the requester, as known to the identity provider
    requester: Mapped[str] = mapped_column(types.Text())

    start: Mapped[datetime]

    end: Mapped[datetime]

    #: the timezone of the scheduler which created the reservation
    timezone: Mapped[str | None]

    status: Mapped[ReservationStatus] = mapped_column(
        types.Enum(*RESERVATION_STATUSES, name='reservation_status'),
        default='pending'
    )

    #: the requested duration in minutes
    duration: Mapped[int]

    #: custom data of the consumer
    data: Mapped[dict[str, Any] | None] = mapped_column(deferred=True)

    __table_args__ = (
        Index('reservation_resource_status_ix', 'resource', 'status'),
        Index('reservation_requester_ix', 'requester'),
        CheckConstraint('"start" < "end"', name='start_before_end'),
    )

    def __init__(self) -> None:
        # NOTE: Avoid auto-generated __init__, the mypy plugin is
        #       deprecated and cannot be used with newer versions.
        pass

    def __repr__(self) -> str:
        return (
            f'<Reservation {self.id} {self.status} '
            f'{self.start:%Y-%m-%d %H:%M}-{self.end:%H:%M}>'
        )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def timespan(self) -> Timespan:
        return Timespan(self.start, self.end)

    @property
    def hours(self) -> float:
        return (self.end - self.start).total_seconds() / 3600

    def display_start(
        self,
        timezone: TzInfoOrName | None = None
    ) -> datetime:
        """ Returns the start in the given timezone, or in the timezone of
        the scheduler which created the reservation.

        """
        if timezone is None:
            assert self.timezone is not None
            timezone = self.timezone
        return sedate.to_timezone(self.start, timezone)

    def display_end(
        self,
        timezone: TzInfoOrName | None = None
    ) -> datetime:
        """ Same as :meth:`display_start`, for the end. """
        if timezone is None:
            assert self.timezone is not None
            timezone = self.timezone
        return sedate.to_timezone(self.end, timezone)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return utils.overlaps(self.start, self.end, start, end)
