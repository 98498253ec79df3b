from __future__ import annotations

import pytest

from datetime import datetime
from labres.db.models import Reservation, Resource


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from labres.db.scheduler import Scheduler


@pytest.mark.parametrize('execution_number', range(2))
@pytest.mark.parametrize('scheduler_context', ['test'])
def test_independence(
    scheduler: Scheduler,
    execution_number: int,
    scheduler_context: str
) -> None:
    """ Test the independence of tests. This test is run twice with the exact
    same records written. If any records remain after a single test run, the
    second run of this test fails.

    This ensures proper separation between tests.

    """
    assert scheduler.context.name == scheduler_context

    resource = scheduler.resources.add('Laser Cutter')
    scheduler.commit()

    scheduler.request_booking(
        resource.id, 'alice', datetime(2014, 4, 4, 14, 0), duration=60
    )

    # note, if this fails for you you probably created your own
    # scheduler, or cloned an existing one -> those schedulers are for you
    # to clean up, by calling scheduler.extinguish_managed_records followed
    # by a commit!
    assert scheduler.store.managed_reservations().count() == 1
    assert scheduler.session.query(Resource).filter_by(
        context=scheduler_context
    ).count() == 1
    assert scheduler.session.query(Reservation).filter_by(
        resource=resource.id
    ).count() == 1
