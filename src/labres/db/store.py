from __future__ import annotations

import logging

from labres.context.core import ContextServicesMixin
from labres.db.models import Reservation, Resource
from labres.db.models.reservation import ACTIVE_STATUSES


from typing import TypeVar
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Collection
    from datetime import datetime
    from sqlalchemy.orm import Query
    from uuid import UUID

    from labres.context.core import Context
    from labres.db.models.reservation import ReservationStatus

_T = TypeVar('_T')


log = logging.getLogger('labres')


class ReservationStore(ContextServicesMixin):
    """ Gives access to the reservations of the resources of a context. The
    database is the only authority on reservations, nothing is cached
    between calls.

    Writes are added to the current session, committing is up to the
    caller (usually :class:`labres.db.scheduler.Scheduler`).

    """

    def __init__(self, context: Context):
        self.context = context

    def managed_resource_ids(self) -> Query[tuple[UUID]]:
        query = self.session.query(Resource.id)
        query = query.filter(Resource.context == self.context.name)

        return query

    def managed_reservations(self) -> Query[Reservation]:
        """ The reservations of all resources of this context. """
        query = self.session.query(Reservation)
        query = query.filter(
            Reservation.resource.in_(self.managed_resource_ids())
        )

        return query

    @staticmethod
    def overlapping(
        query: Query[_T],
        start: datetime,
        end: datetime
    ) -> Query[_T]:
        """ Takes a reservation query and limits it to the reservations
        overlapping with [start, end).

        """
        return query.filter(Reservation.start < end, start < Reservation.end)

    def insert(self, reservation: Reservation) -> Reservation:
        self.session.add(reservation)
        self.session.flush()

        return reservation

    def find_overlapping(
        self,
        resource: UUID,
        start: datetime,
        end: datetime,
        statuses: Collection[ReservationStatus] = ACTIVE_STATUSES
    ) -> Query[Reservation]:
        """ Returns the reservations of the given resource in one of the
        given states, which overlap with [start, end).

        By default only pending and confirmed reservations are returned,
        as those are the ones blocking their timespan.

        """
        query = self.session.query(Reservation)
        query = query.filter(Reservation.resource == resource)
        query = query.filter(Reservation.status.in_(statuses))
        query = self.overlapping(query, start, end)
        query = query.order_by(Reservation.start)

        return query

    def get(self, id: int) -> Reservation | None:
        query = self.managed_reservations()
        query = query.filter(Reservation.id == id)

        return query.first()

    def update_status(
        self,
        id: int,
        new_status: ReservationStatus,
        expected: Collection[ReservationStatus]
    ) -> bool:
        """ Changes the status of the given reservation, if it currently
        has one of the expected states. The check and the change happen in
        a single statement.

        Returns False if nothing was changed.

        """
        query = self.session.query(Reservation)
        query = query.filter(Reservation.id == id)
        query = query.filter(Reservation.status.in_(expected))

        changed = query.update(
            {Reservation.status: new_status},
            synchronize_session=False
        )

        log.debug(f'Reservation {id} -> {new_status}: {changed} row(s)')
        self.session.expire_all()

        return changed > 0

    def delete(
        self,
        id: int,
        expected: Collection[ReservationStatus]
    ) -> bool:
        """ Deletes the given reservation, if it currently has one of the
        expected states. Returns False if nothing was deleted.

        """
        query = self.session.query(Reservation)
        query = query.filter(Reservation.id == id)
        query = query.filter(Reservation.status.in_(expected))

        deleted = query.delete(synchronize_session=False)

        log.debug(f'Reservation {id} deleted: {deleted} row(s)')

        return deleted > 0

    def list_all(
        self,
        status: ReservationStatus | None = None
    ) -> Query[Reservation]:
        """ Returns the reservations with the given status. Without status,
        all reservations except for the cancelled ones are returned.

        """
        query = self.managed_reservations()

        if status is None:
            query = query.filter(Reservation.status != 'cancelled')
        else:
            query = query.filter(Reservation.status == status)

        return query

    def by_requester(
        self,
        requester: str,
        status: ReservationStatus | None = None
    ) -> Query[Reservation]:
        query = self.list_all(status)
        query = query.filter(Reservation.requester == requester)

        return query

    def in_range(
        self,
        start: datetime,
        end: datetime,
        resource: UUID | None = None
    ) -> Query[Reservation]:
        """ Returns the non-cancelled reservations overlapping with the
        given range, optionally limited to a single resource.

        """
        query = self.overlapping(self.list_all(), start, end)

        if resource is not None:
            query = query.filter(Reservation.resource == resource)

        return query

    def delete_managed_records(self) -> None:
        """ Removes the reservations of this context. """
        self.managed_reservations().delete(synchronize_session=False)
