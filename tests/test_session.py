from __future__ import annotations

import labres
import pytest
import time

from datetime import datetime
from labres.context.core import ContextServicesMixin
from labres.context.session import SessionProvider, transactional
from labres.db.scheduler import Scheduler
from labres.modules import errors
from sqlalchemy import text
from threading import Barrier, Thread


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from labres.context.core import Context
    from labres.db.models import Resource


class SessionId(Thread):
    def __init__(self, dsn: str) -> None:
        Thread.__init__(self)
        self.session_id: int | None = None
        self.dsn = dsn

    def run(self) -> None:
        context = labres.registry.register_context(
            str(id(self)), replace=True
        )
        context.set_setting('dsn', self.dsn)
        scheduler = Scheduler(context, 'UTC')
        self.session_id = id(scheduler.session)

        # make sure the thread runs long enough for both threads to be
        # running at the same time, since the docs states:
        # "Two objects with non-overlapping lifetimes may have the same
        # id() value."
        time.sleep(0.1)

        scheduler.session_provider.stop_service()


class ExceptionThread(Thread):
    def __init__(
        self,
        call: Callable[[], object],
        cleanup: Callable[[], object] | None,
        barrier: Barrier | None = None
    ) -> None:
        Thread.__init__(self)
        self.call = call
        self.exception: Exception | None = None
        self.cleanup = cleanup
        self.barrier = barrier

    def run(self) -> None:
        try:
            if self.barrier is not None:
                self.barrier.wait()
            self.call()
        except Exception as e:
            self.exception = e
        finally:
            if self.cleanup is not None:
                self.cleanup()


class Broken(ContextServicesMixin):
    def __init__(self, context: Context) -> None:
        self.context = context

    @transactional
    def query_missing_table(self) -> None:
        self.session.execute(text('SELECT * FROM no_such_table'))


def run_concurrently(*threads: ExceptionThread) -> None:
    for thread in threads:
        thread.start()

    for thread in threads:
        thread.join()


def test_stop_unused_session(dsn: str) -> None:
    provider = SessionProvider(dsn)
    provider.stop_service()  # should not throw any exceptions


def test_sessionstore(dsn: str) -> None:
    t1 = SessionId(dsn)
    t2 = SessionId(dsn)

    t1.start()
    t2.start()

    t1.join()
    t2.join()

    assert t1.session_id is not None
    assert t2.session_id is not None
    assert t1.session_id != t2.session_id


def test_store_error(scheduler: Scheduler) -> None:
    broken = Broken(scheduler.context)

    with pytest.raises(errors.StoreError) as e:
        broken.query_missing_table()

    assert e.value.orig is not None

    # the session is usable again after the rollback
    assert scheduler.list_reservations().count() == 0


def test_collision(scheduler: Scheduler, machine: Resource) -> None:
    resource = machine.id
    start, end = datetime(2026, 10, 20, 9), datetime(2026, 10, 20, 10)
    barrier = Barrier(2)

    def book(requester: str) -> None:
        scheduler.request_booking(resource, requester, start, end)

    t1 = ExceptionThread(lambda: book('alice'), scheduler.close, barrier)
    t2 = ExceptionThread(lambda: book('bob'), scheduler.close, barrier)

    run_concurrently(t1, t2)
    scheduler.rollback()

    exceptions = (t1.exception, t2.exception)

    overlaps = [e for e in exceptions if isinstance(e, errors.OverlapError)]
    successes = [e for e in exceptions if e is None]

    assert len(overlaps) == 1
    assert len(successes) == 1

    reservations = scheduler.list_reservations().all()
    assert len(reservations) == 1
    assert reservations[0].requester in ('alice', 'bob')


def test_many_collisions(scheduler: Scheduler, machine: Resource) -> None:
    resource = machine.id
    barrier = Barrier(6)

    def book(hour: int) -> Callable[[], object]:
        return lambda: scheduler.request_booking(
            resource, 'alice', datetime(2026, 10, 20, hour), duration=120
        )

    # 09:00-11:00, 10:00-12:00 and 11:00-13:00 contend, as do the
    # three bookings starting at 14:00
    threads = [
        ExceptionThread(book(hour), scheduler.close, barrier)
        for hour in (9, 10, 11, 14, 14, 14)
    ]

    run_concurrently(*threads)
    scheduler.rollback()

    for thread in threads:
        assert thread.exception is None or isinstance(
            thread.exception, errors.OverlapError
        )

    reservations = scheduler.list_reservations().all()
    for reservation in reservations:
        others = (r for r in reservations if r.id != reservation.id)
        assert not any(reservation.overlaps(*o.timespan) for o in others)

    assert 2 <= len(reservations) <= 3


def test_non_collision(scheduler: Scheduler, machine: Resource) -> None:
    printer = scheduler.resources.add('Printer')
    scheduler.commit()

    resources = (machine.id, printer.id)
    start, end = datetime(2026, 10, 20, 9), datetime(2026, 10, 20, 10)
    barrier = Barrier(2)

    def book(resource: object) -> Callable[[], object]:
        return lambda: scheduler.request_booking(
            resource, 'alice', start, end  # type: ignore[arg-type]
        )

    t1 = ExceptionThread(book(resources[0]), scheduler.close, barrier)
    t2 = ExceptionThread(book(resources[1]), scheduler.close, barrier)

    run_concurrently(t1, t2)
    scheduler.rollback()

    assert t1.exception is None
    assert t2.exception is None
    assert scheduler.list_reservations().count() == 2


def test_concurrent_transitions(
    scheduler: Scheduler,
    machine: Resource
) -> None:
    reservation = scheduler.request_booking(
        machine.id, 'alice', datetime(2026, 10, 20, 9), duration=60
    )
    reservation_id = reservation.id
    barrier = Barrier(2)

    def verify() -> None:
        scheduler.verify(reservation_id, is_operator=True)

    def cancel() -> None:
        scheduler.cancel(reservation_id, 'alice', is_operator=False)

    t1 = ExceptionThread(verify, scheduler.close, barrier)
    t2 = ExceptionThread(cancel, scheduler.close, barrier)

    run_concurrently(t1, t2)
    scheduler.rollback()

    # both may succeed if the verification happens first, but a cancelled
    # reservation is never confirmed afterwards (on PostgreSQL the loser of
    # the race may also be aborted by the database)
    for thread in (t1, t2):
        assert thread.exception is None or isinstance(
            thread.exception,
            (errors.InvalidTransitionError, errors.StoreError)
        )

    status = scheduler.reservation_by_id(reservation_id).status

    if t2.exception is None:
        assert status == 'cancelled'
    else:
        assert status == 'confirmed'
