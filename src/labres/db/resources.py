from __future__ import annotations

import logging

from labres.context.core import ContextServicesMixin
from labres.db.models import Resource
from labres.db.models.resource import RESOURCE_STATES
from labres.modules import errors


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from sqlalchemy.orm import Query
    from uuid import UUID

    from labres.context.core import Context
    from labres.db.models.resource import ResourceState


log = logging.getLogger('labres')


class ResourceRegistry(ContextServicesMixin):
    """ The catalog of the bookable resources of a context.

    The scheduler only reads from it. The methods changing resources are
    meant for whatever manages the machines of a lab (and for tests); they
    don't commit, that is up to the caller.

    """

    def __init__(self, context: Context):
        self.context = context

    def managed_resources(self) -> Query[Resource]:
        query = self.session.query(Resource)
        query = query.filter(Resource.context == self.context.name)

        return query

    def resource_id(self, name: str) -> UUID:
        """ Returns the uuid of the resource with the given name. The uuid
        is derived from the context name and the resource name, based on
        the namespace defined in :ref:`settings.uuid_namespace`.

        """
        return self.generate_uuid(name)

    def by_id(self, id: UUID | str) -> Resource | None:
        query = self.managed_resources()
        query = query.filter(Resource.id == id)

        return query.first()

    def by_name(self, name: str) -> Resource | None:
        return self.by_id(self.resource_id(name))

    def ordered(self) -> Query[Resource]:
        """ All resources, in display order. """
        query = self.managed_resources()
        query = query.order_by(Resource.display_order, Resource.name)

        return query

    def available(self) -> Query[Resource]:
        """ The resources which may be booked, in display order. """
        return self.ordered().filter(Resource.state == 'available')

    def names(self) -> dict[UUID, str]:
        query = self.managed_resources()
        query = query.with_entities(Resource.id, Resource.name)

        return dict(query.all())

    def availability(self, id: UUID | str) -> ResourceState:
        """ Returns the state of the given resource. """
        resource = self.by_id(id)

        if resource is None:
            raise errors.UnknownResourceError(id)

        return resource.state

    def lock_for_booking(self, id: UUID | str) -> Resource:
        """ Loads the resource with a row lock (on databases supporting
        ``SELECT ... FOR UPDATE``) and makes sure it may be booked.

        The lock is held until the end of the transaction, so concurrent
        bookings of the same resource are serialized.

        """
        query = self.managed_resources()
        query = query.filter(Resource.id == id)
        query = query.with_for_update()

        resource = query.first()

        if resource is None:
            raise errors.UnknownResourceError(id)

        if not resource.is_available:
            raise errors.ResourceUnavailableError(resource.state)

        return resource

    def add(
        self,
        name: str,
        state: ResourceState = 'available',
        display_order: int = 0
    ) -> Resource:
        """ Adds a new resource to the catalog. """

        assert state in RESOURCE_STATES

        resource = Resource()
        resource.id = self.resource_id(name)
        resource.context = self.context.name
        resource.name = name
        resource.state = state
        resource.display_order = display_order

        self.session.add(resource)
        self.session.flush()

        log.info(f'Added resource {name} ({resource.id})')

        return resource

    def change_state(self, id: UUID | str, state: ResourceState) -> Resource:
        """ Puts the given resource into maintenance, makes it unavailable
        or available again. Existing reservations are kept.

        """

        assert state in RESOURCE_STATES

        resource = self.by_id(id)

        if resource is None:
            raise errors.UnknownResourceError(id)

        resource.state = state
        self.session.flush()

        log.info(f'Resource {resource.name} is now {state}')

        return resource

    def delete_managed_records(self) -> None:
        """ Removes the resources of this context. """
        self.managed_resources().delete(synchronize_session=False)
