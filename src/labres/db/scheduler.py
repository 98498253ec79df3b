from __future__ import annotations

import logging
import sedate

from datetime import timedelta
from operator import attrgetter
from uuid import UUID

from labres.context.core import ContextServicesMixin
from labres.context.session import transactional
from labres.db.models import ORMBase, Reservation
from labres.db.models.reservation import ACTIVE_STATUSES
from labres.db.resources import ResourceRegistry
from labres.db.store import ReservationStore
from labres.modules import errors
from labres.modules import events
from labres.modules import usage
from labres.modules import utils


from typing import Any
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Collection
    from collections.abc import Iterable
    from datetime import datetime, time
    from sqlalchemy.orm import Query
    from typing_extensions import Self

    from labres.context.core import Context
    from labres.db.models import Resource
    from labres.db.models.reservation import ReservationStatus
    from labres.modules.usage import UsageSummary


log = logging.getLogger('labres')


class Scheduler(ContextServicesMixin):
    """ The Scheduler admits reservations for the resources of a context and
    moves them through their states. It is the main part of the API.

    The identity of the requester is never looked up by the scheduler.
    Whoever calls it passes the requester id and whether the requester is
    an operator.

    Booking, verifying, completing and cancelling are transactions of their
    own: they commit when they succeed and roll back when they fail.

    """

    def __init__(
        self,
        context: Context,
        timezone: str,
        reservation_cls: type[Reservation] = Reservation
    ):
        """ Initializes a new Scheduler instance.

        :context:
            The :class:`labres.context.core.Context` this scheduler should
            operate on. Acquire a context by using
            :func:`labres.context.registry.Registry.register_context`.

        :timezone:
            The timezone of the lab. The opening hours are checked in this
            timezone.

            Dates passed to the scheduler that are not timezone-aware are
            assumed to be of this timezone!

        """

        assert isinstance(timezone, str)

        self.context = context
        self.timezone = timezone

        self.resources = ResourceRegistry(context)
        self.store = ReservationStore(context)

        self.reservation_cls = reservation_cls

    def clone(self) -> Self:
        """ Clones the scheduler. The result will be a new scheduler using the
        same context, timezone and reservation class.

        """

        return self.__class__(
            self.context,
            self.timezone,
            self.reservation_cls
        )

    def setup_database(self) -> None:
        """ Creates the tables and indices required for labres. This needs
        to be called once per database. Multiple invocations won't hurt but
        they are unnecessary.

        """
        ORMBase.metadata.create_all(self.session.bind)

    def extinguish_managed_records(self) -> None:
        """ WARNING:
        Completely removes any trace of the records managed by this
        scheduler's context. That means all reservations and resources!

        """
        self.store.delete_managed_records()
        self.resources.delete_managed_records()

    def _prepare_range(
        self,
        start: datetime,
        end: datetime
    ) -> tuple[datetime, datetime]:
        return (
            sedate.standardize_date(start, self.timezone),
            sedate.standardize_date(end, self.timezone)
        )

    @property
    def opening_time(self) -> time:
        return self.context.get_setting('opening_time')

    @property
    def closing_time(self) -> time:
        return self.context.get_setting('closing_time')

    @property
    def allowed_durations(self) -> Collection[int]:
        return self.context.get_setting('allowed_durations')

    @property
    def retain_cancelled(self) -> bool:
        return bool(self.context.get_setting('retain_cancelled'))

    def validate_timespan(self, start: datetime, end: datetime) -> None:
        """ Makes sure the given (standardized) timespan may be requested,
        regardless of the resource.

        """

        if not start < end:
            raise errors.InvalidDurationError(start, end)

        if not utils.is_within_operating_hours(
            start, end, self.opening_time, self.closing_time, self.timezone
        ):
            raise errors.OutOfHoursError(start, end)

        if not utils.is_allowed_duration(start, end, self.allowed_durations):
            raise errors.InvalidDurationError(start, end)

    def request_booking(
        self,
        resource: UUID | str,
        requester: str,
        start: datetime,
        end: datetime | None = None,
        duration: int | None = None,
        data: dict[str, Any] | None = None
    ) -> Reservation:
        """ Books the given resource for the requester and returns the new,
        pending reservation.

        :resource:
            The uuid of the resource to book.

        :requester:
            The id of the requester, as known to the identity provider.

        :start:
            The start of the reservation.

        :end:
            The end of the reservation (exclusive). ``end`` and
            ``duration`` are mutually exclusive.

        :duration:
            The length of the reservation in minutes, used to calculate the
            end.

        :data:
            A json serializable dictionary of your own chosing that will be
            attached to the reservation.

        Raises :class:`~labres.modules.errors.InvalidDurationError` or
        :class:`~labres.modules.errors.OutOfHoursError` if the timespan may
        not be requested, :class:`~labres.modules.errors.ResourceUnavailableError`
        if the resource may not be booked and
        :class:`~labres.modules.errors.OverlapError` if the timespan is
        already taken.

        """

        assert (end is None) != (duration is None)
        assert requester

        if duration is not None:
            end = start + timedelta(minutes=duration)

        assert end is not None
        start, end = self._prepare_range(start, end)

        self.validate_timespan(start, end)

        if not isinstance(resource, UUID):
            try:
                resource = UUID(resource)
            except ValueError as e:
                raise errors.UnknownResourceError(resource) from e

        # the overlap check and the insert must not be interleaved with
        # another booking of the same resource, the lock is released only
        # after the commit
        with self.resource_locks.lock(resource):
            reservation = self._admit(resource, requester, start, end, data)

        log.info(
            f'Reservation {reservation.id} of {requester} admitted '
            f'({start:%Y-%m-%d %H:%M}-{end:%H:%M} UTC)'
        )

        events.on_reservation_requested(self.context, reservation)

        return reservation

    @transactional
    def _admit(
        self,
        resource: UUID | str,
        requester: str,
        start: datetime,
        end: datetime,
        data: dict[str, Any] | None
    ) -> Reservation:

        record = self.resources.lock_for_booking(resource)

        existing = self.store.find_overlapping(
            record.id, start, end, ACTIVE_STATUSES
        ).first()

        if existing is not None:
            log.info(
                f'Reservation of {requester} rejected, overlaps with '
                f'reservation {existing.id}'
            )
            raise errors.OverlapError(existing.start, existing.end, existing)

        reservation = self.reservation_cls()
        reservation.resource = record.id
        reservation.requester = requester
        reservation.start = start
        reservation.end = end
        reservation.timezone = self.timezone
        reservation.status = 'pending'
        reservation.duration = int(utils.duration_in_minutes(start, end))
        reservation.data = data

        return self.store.insert(reservation)

    def reservation_by_id(self, id: int) -> Reservation:
        reservation = self.store.get(id)

        if reservation is None:
            raise errors.NotFoundError(id)

        return reservation

    @transactional
    def _transition(
        self,
        id: int,
        source: ReservationStatus,
        target: ReservationStatus
    ) -> Reservation:

        reservation = self.reservation_by_id(id)

        if not self.store.update_status(id, target, (source, )):
            # the reservation may have been removed in the meantime
            current = self.reservation_by_id(id)
            raise errors.InvalidTransitionError(current.status, target)

        return reservation

    def verify(self, id: int, is_operator: bool) -> Reservation:
        """ Confirms the given pending reservation. Only operators may
        do that.

        """

        if not is_operator:
            raise errors.PermissionDeniedError(id)

        reservation = self._transition(id, 'pending', 'confirmed')
        log.info(f'Reservation {id} confirmed')

        events.on_reservation_verified(self.context, reservation)

        return reservation

    def complete(self, id: int, is_operator: bool) -> Reservation:
        """ Marks the given confirmed reservation as completed. Only
        operators may do that.

        """

        if not is_operator:
            raise errors.PermissionDeniedError(id)

        reservation = self._transition(id, 'confirmed', 'completed')
        log.info(f'Reservation {id} completed')

        events.on_reservation_completed(self.context, reservation)

        return reservation

    @transactional
    def _cancel(self, id: int, actor: str, is_operator: bool) -> Reservation:

        reservation = self.reservation_by_id(id)

        if not is_operator and reservation.requester != actor:
            raise errors.PermissionDeniedError(id)

        if self.retain_cancelled:
            cancelled = self.store.update_status(
                id, 'cancelled', ACTIVE_STATUSES
            )
        else:
            # the record is detached once deleted, deferred columns have
            # to be loaded for the event handlers beforehand
            self.session.refresh(reservation, ['data'])
            cancelled = self.store.delete(id, ACTIVE_STATUSES)

        if not cancelled:
            self.session.expire(reservation)
            current = self.reservation_by_id(id)
            raise errors.InvalidTransitionError(current.status, 'cancelled')

        if not self.retain_cancelled:
            self.session.expunge(reservation)

        return reservation

    def cancel(self, id: int, actor: str, is_operator: bool) -> None:
        """ Cancels the given pending or confirmed reservation. Requesters
        may cancel their own reservations, operators may cancel any.

        Depending on :ref:`settings.retain_cancelled` the reservation is
        either kept with the status ``cancelled`` or deleted.

        """

        reservation = self._cancel(id, actor, is_operator)
        log.info(f'Reservation {id} cancelled by {actor}')

        events.on_reservation_cancelled(self.context, reservation)

    def list_reservations(
        self,
        status: ReservationStatus | None = None
    ) -> Query[Reservation]:
        """ Returns the reservations with the given status, or all of them
        but the cancelled ones. The order is undefined, see
        :meth:`display_order`.

        The result is a query, it is evaluated by iterating over it (or
        through ``all()``, ``count()``, ...). Errors raised by the database
        while reading are not wrapped, they surface as
        :class:`sqlalchemy.exc.SQLAlchemyError`.

        """
        return self.store.list_all(status)

    @staticmethod
    def display_order(
        reservations: Iterable[Reservation]
    ) -> list[Reservation]:
        """ Sorts the reservations by start, latest first. """
        return sorted(reservations, key=attrgetter('start'), reverse=True)

    def reservations_by_requester(
        self,
        requester: str,
        status: ReservationStatus | None = None
    ) -> Query[Reservation]:
        return self.store.by_requester(requester, status)

    def reservations_in_range(
        self,
        start: datetime,
        end: datetime,
        resource: UUID | str | None = None
    ) -> Query[Reservation]:
        """ Returns the reservations overlapping with the given range, for
        example to show a day in a calendar.

        """
        start, end = self._prepare_range(start, end)
        return self.store.in_range(start, end, resource)

    def available_resources(self) -> Query[Resource]:
        return self.resources.available()

    def usage(
        self,
        status: ReservationStatus | None = None
    ) -> tuple[list[UsageSummary], list[UsageSummary]]:
        """ Returns the booked hours per resource and per requester, see
        :func:`labres.modules.usage.compute_usage`.

        The requester names are looked up through the
        ``requester_directory`` service of the context.

        """
        reservations = self.list_reservations(status).all()

        requester_names = {
            requester: self.requester_name(requester)
            for requester in {r.requester for r in reservations}
        }

        return usage.compute_usage(
            reservations,
            resource_names=self.resources.names(),
            requester_names=requester_names
        )
