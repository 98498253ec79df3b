from __future__ import annotations

import pytest
from _pytest.fixtures import FixtureLookupError

from labres import new_scheduler, registry
from uuid import uuid4 as new_uuid


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Generator
    from labres.db.models import Resource
    from labres.db.scheduler import Scheduler


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        '--postgresql',
        action='store_true',
        default=False,
        help='run the tests against a temporary postgres server'
    )


def new_test_scheduler(
    dsn: str,
    context_name: str | None = None
) -> Scheduler:

    context_name = context_name or new_uuid().hex

    context = registry.register_context(context_name, replace=True)
    context.set_setting('dsn', dsn)

    return new_scheduler(
        context=context,
        timezone='Europe/Zurich'
    )


@pytest.fixture
def scheduler(
    request: pytest.FixtureRequest,
    dsn: str
) -> Generator[Scheduler, None, None]:

    # clear the events before each test
    from labres.modules import events
    for event in (e for e in dir(events) if e.startswith('on_')):
        del getattr(events, event)[:]

    try:
        context = request.getfixturevalue('scheduler_context')
    except FixtureLookupError:
        context = None

    scheduler = new_test_scheduler(dsn, context)

    yield scheduler

    scheduler.rollback()
    scheduler.extinguish_managed_records()
    scheduler.commit()
    scheduler.close()
    scheduler.session_provider.stop_service()


@pytest.fixture
def machine(scheduler: Scheduler) -> Resource:
    resource = scheduler.resources.add('Laser Cutter')
    scheduler.commit()

    return resource


@pytest.fixture(scope="session")
def dsn(
    request: pytest.FixtureRequest,
    tmp_path_factory: pytest.TempPathFactory
) -> Generator[str, None, None]:

    if request.config.getoption('--postgresql'):
        from testing.postgresql import Postgresql  # type: ignore[import-untyped]
        postgres = Postgresql()
        url = postgres.url().replace('postgresql://', 'postgresql+psycopg2://')
    else:
        postgres = None
        url = 'sqlite:///{}'.format(tmp_path_factory.mktemp('db') / 'labres.db')

    scheduler = new_test_scheduler(url)
    scheduler.setup_database()
    scheduler.commit()

    yield url

    scheduler.close()
    scheduler.session_provider.stop_service()

    if postgres is not None:
        postgres.stop()
