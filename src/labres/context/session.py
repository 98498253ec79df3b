""" The session provider hands out the SQLAlchemy sessions used by labres.

Transaction isolation
=====================

Admitting a reservation means reading the existing reservations of a
resource and inserting a new one if nothing overlaps. Two transactions
doing that at the same time must not both succeed, which is why labres
uses the SERIALIZABLE isolation level. PostgreSQL 9.1+ implements it as
true serializable snapshot isolation; a transaction which would break the
no-overlap rule is aborted with a serialization failure instead.

Within a process, the scheduler additionally holds a lock per resource
across the check and the commit (see :mod:`labres.modules.locking`), so
concurrent threads see a clean overlap error instead of a serialization
failure.

SQLite is accepted as well (mostly for tests), in which case only the
in-process lock protects the no-overlap rule.

"""
from __future__ import annotations

import functools
import logging

from sqlalchemy import create_engine
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import QueuePool
from sqlalchemy.orm import scoped_session, sessionmaker

from labres.context.core import StoppableService
from labres.modules import errors


from typing import Any
from typing import TypeVar
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from typing_extensions import Concatenate, ParamSpec

    from labres.context.core import ContextServicesMixin

    _P = ParamSpec('_P')
    _S = TypeVar('_S', bound=ContextServicesMixin)

_T = TypeVar('_T')


log = logging.getLogger('labres')


SERIALIZABLE = 'SERIALIZABLE'


class SessionProvider(StoppableService):
    """Global session utility. It provides a SERIALIZABLE session to labres.
    If you want to override this provider, be sure to set the isolation_level
    to SERIALIZABLE as well.

    Sessions are scoped to the current thread.

    """

    def __init__(
        self,
        dsn: str,
        engine_config: dict[str, Any] | None = None,
        session_config: dict[str, Any] | None = None
    ):
        assert dsn, 'No database configured (settings.dsn)'

        self.dsn = self.assert_valid_dsn(dsn)

        self.engine = create_engine(
            dsn, poolclass=QueuePool, pool_size=5, max_overflow=5,
            isolation_level=SERIALIZABLE,
            **(engine_config or {})
        )

        self.session = scoped_session(sessionmaker(
            bind=self.engine, **(session_config or {})
        ))

    def stop_service(self) -> None:
        """ Called by the labres context when the session provider is being
        discarded (only in testing).

        This makes sure that replacing the session provider on the context
        doesn't leave behind any idle connections.

        """

        self.session.remove()
        self.engine.dispose()

    @staticmethod
    def is_postgres(dsn: str) -> bool:
        return make_url(dsn).get_backend_name() == 'postgresql'

    def get_postgres_version(self, dsn: str) -> tuple[str, int]:
        """ Returns the postgres version as a tuple (string, integer).

        Uses it's own connection to be independent from any session.

        """
        assert self.is_postgres(dsn), 'Not a postgres database'

        query = text("""
            SELECT current_setting('server_version'),
                   current_setting('server_version_num')
        """)

        engine = create_engine(dsn)

        try:
            with engine.connect() as connection:
                result = connection.execute(query).first()

            assert result is not None
            version, number = result
            return version, int(number)
        finally:
            engine.dispose()

    def assert_valid_dsn(self, dsn: str) -> str:
        if not self.is_postgres(dsn):
            log.info('Not using PostgreSQL, bookings are only serialized '
                     'within this process')
            return dsn

        v, n = self.get_postgres_version(dsn)

        if n < 90100:
            raise RuntimeError(f'PostgreSQL 9.1+ is required, got {v}')

        return dsn


def transactional(
    fn: Callable[Concatenate[_S, _P], _T]
) -> Callable[Concatenate[_S, _P], _T]:
    """ Runs the wrapped method in its own transaction. The transaction is
    committed if the method returns and rolled back if it raises.

    Database errors are raised as :class:`labres.modules.errors.StoreError`.
    Nothing is retried: a booking which fails half-way has to be requested
    again by the caller.

    The method has to belong to a class using the
    :class:`labres.context.core.ContextServicesMixin`.

    """

    @functools.wraps(fn)
    def wrapper(self: _S, *args: _P.args, **kwargs: _P.kwargs) -> _T:
        assert hasattr(self, 'context')

        try:
            result = fn(self, *args, **kwargs)
            self.commit()
        except SQLAlchemyError as e:
            self.rollback()
            log.warning(f'Rolled back {fn.__name__}: {e}')
            raise errors.StoreError(e) from e
        except BaseException:
            self.rollback()
            raise

        return result

    return wrapper
