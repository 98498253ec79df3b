from __future__ import annotations

import pytest

from datetime import datetime
from labres.db.resources import ResourceRegistry
from labres.modules import errors
from uuid import uuid4


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from labres.db.models import Resource
    from labres.db.scheduler import Scheduler


def test_add_resource(scheduler: Scheduler) -> None:
    resource = scheduler.resources.add('Laser Cutter', display_order=1)
    scheduler.commit()

    assert resource.context == scheduler.context.name
    assert resource.state == 'available'
    assert resource.is_available
    assert resource.id == scheduler.resources.resource_id('Laser Cutter')

    assert scheduler.resources.by_id(resource.id) is not None
    assert scheduler.resources.by_id(resource.id.hex) is not None
    assert scheduler.resources.by_name('Laser Cutter') is not None
    assert scheduler.resources.by_name('Printer') is None
    assert scheduler.resources.by_id(uuid4()) is None


def test_resource_ids(scheduler: Scheduler) -> None:
    resource_id = scheduler.resources.resource_id

    assert resource_id('Laser Cutter') == resource_id('Laser Cutter')
    assert resource_id('Laser Cutter') != resource_id('Printer')

    other = scheduler.context.registry.register_context(uuid4().hex)
    other_id = other.get_service('uuid_generator')

    # the same name in another context is another resource
    assert other_id('Laser Cutter') != resource_id('Laser Cutter')


def test_ordered_resources(scheduler: Scheduler) -> None:
    scheduler.resources.add('Printer', display_order=1)
    scheduler.resources.add('Mill', display_order=2, state='maintenance')
    scheduler.resources.add('Lathe', display_order=1)
    scheduler.resources.add('Laser Cutter', display_order=0)
    scheduler.commit()

    ordered = [r.name for r in scheduler.resources.ordered()]
    assert ordered == ['Laser Cutter', 'Lathe', 'Printer', 'Mill']

    available = [r.name for r in scheduler.resources.available()]
    assert available == ['Laser Cutter', 'Lathe', 'Printer']


def test_resource_names(scheduler: Scheduler, machine: Resource) -> None:
    printer = scheduler.resources.add('Printer')
    scheduler.commit()

    assert scheduler.resources.names() == {
        machine.id: 'Laser Cutter',
        printer.id: 'Printer'
    }


def test_change_state(scheduler: Scheduler, machine: Resource) -> None:
    assert scheduler.resources.availability(machine.id) == 'available'

    scheduler.resources.change_state(machine.id, 'maintenance')
    scheduler.commit()

    assert scheduler.resources.availability(machine.id) == 'maintenance'
    assert not scheduler.resources.by_id(machine.id).is_available  # type: ignore[union-attr]

    with pytest.raises(errors.ResourceUnavailableError):
        scheduler.resources.lock_for_booking(machine.id)

    scheduler.rollback()

    scheduler.resources.change_state(machine.id, 'unavailable')
    scheduler.commit()

    assert scheduler.resources.availability(machine.id) == 'unavailable'


def test_unknown_resource(scheduler: Scheduler) -> None:
    with pytest.raises(errors.UnknownResourceError):
        scheduler.resources.availability(uuid4())

    with pytest.raises(errors.UnknownResourceError):
        scheduler.resources.change_state(uuid4(), 'maintenance')

    with pytest.raises(errors.UnknownResourceError):
        scheduler.resources.lock_for_booking(uuid4())


def test_resources_are_managed_per_context(
    scheduler: Scheduler,
    machine: Resource
) -> None:
    context = scheduler.context.registry.register_context(uuid4().hex)
    context.set_setting('dsn', scheduler.context.get_setting('dsn'))

    other_resources = ResourceRegistry(context)

    try:
        assert other_resources.managed_resources().count() == 0
        assert other_resources.by_id(machine.id) is None
        assert scheduler.resources.managed_resources().count() == 1
    finally:
        other_resources.close()
        other_resources.session_provider.stop_service()


def test_reservations_keep_resources_by_id(
    scheduler: Scheduler,
    machine: Resource
) -> None:
    reservation = scheduler.request_booking(
        machine.id, 'alice', datetime(2026, 10, 20, 9), duration=60
    )

    scheduler.resources.change_state(machine.id, 'maintenance')
    scheduler.commit()

    # existing reservations are not touched by a state change
    assert reservation.resource == machine.id
    assert reservation.status == 'pending'
    assert scheduler.list_reservations().count() == 1
