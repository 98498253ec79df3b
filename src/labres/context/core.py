from __future__ import annotations

import enum
import labres
import threading
from contextlib import contextmanager
from functools import cached_property

from labres.modules import errors


from typing import Any
from typing import Literal
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from collections.abc import Iterator
    from sqlalchemy.orm import Session
    from typing_extensions import TypeAlias
    from uuid import UUID

    from labres.context.registry import Registry
    from labres.context.session import SessionProvider
    from labres.modules.locking import ResourceLocks


class _Marker(enum.Enum):
    missing = enum.auto()
    required = enum.auto()


missing_t: TypeAlias = Literal[_Marker.missing]  # noqa: PYI042
required_t: TypeAlias = Literal[_Marker.required]  # noqa: PYI042
missing: missing_t = _Marker.missing
required: required_t = _Marker.required


def setting_key(name: str) -> str:
    return f'settings.{name}'


def service_key(name: str) -> str:
    return f'service/{name}'


def instance_key(name: str) -> str:
    return f'service/{name}/cache'


class StoppableService:
    """ A service holding on to something which has to be released (like
    the connection pool of the session provider).

    When a context replaces an instance of such a service, stop_service is
    called on the old instance. Nothing happens at interpreter shutdown.

    """

    def stop_service(self) -> None:
        pass


class ContextServicesMixin:
    """ Gives the scheduler and its helpers access to the services of their
    context. The class using the mixin sets self.context.

    Lookups of pure functions (uuid generator, requester directory) are
    kept on the instance, see :meth:`clear_cache`.

    """

    context: Context

    @cached_property
    def generate_uuid(self) -> Callable[[str], UUID]:
        return self.context.get_service('uuid_generator')  # type: ignore[no-any-return]

    @cached_property
    def requester_name(self) -> Callable[[str], str]:
        return self.context.get_service('requester_directory')  # type: ignore[no-any-return]

    def clear_cache(self) -> None:
        """ Forgets the services looked up so far, so changes made to the
        context since are picked up.

        """
        for name in ('generate_uuid', 'requester_name'):
            self.__dict__.pop(name, None)

    @property
    def resource_locks(self) -> ResourceLocks:
        return self.context.get_service('resource_locks')  # type: ignore[no-any-return]

    @property
    def session_provider(self) -> SessionProvider:
        return self.context.get_service('session_provider')  # type: ignore[no-any-return]

    @property
    def session(self) -> Session:
        """ The session of the current thread. """
        return self.session_provider.session()  # type: ignore[no-any-return]

    def close(self) -> None:
        self.session.close()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class Context:
    """ Holds the settings (the database connection string, the opening
    hours, ...) and the services (the session provider, the per-resource
    locks, ...) of one pool of bookable resources.

    Labres holds all contexts in labres.registry, next to a locked master
    context with the defaults. A context registered by a consumer inherits
    from the master context: whatever it doesn't define itself is looked up
    on the master.

    Resources belong to exactly one context, so a single process may manage
    several independent pools by registering several contexts::

        from labres import registry
        my_context = registry.register_context('my_lab')
        my_context.set_setting('dsn', 'postgresql+psycopg2://...')

    Classes talking to the database cache services of the context freely.
    After changing a context get a fresh
    :class:`~labres.db.scheduler.Scheduler` or call
    :meth:`~.ContextServicesMixin.clear_cache`.

    """

    def __init__(
        self,
        name: str,
        registry: Registry | None = None,
        parent: Context | None = None,
        locked: bool = False
    ):
        self.name = name
        self.registry = registry or labres.registry
        self.parent = parent
        self.locked = locked
        self.values: dict[str, Any] = {}
        self.thread_lock = threading.RLock()

    def __repr__(self) -> str:
        return f"<Labres Context(name='{self.name}')>"

    def lineage(self) -> Iterator[Context]:
        """ Yields this context followed by its ancestors. """
        context: Context | None = self
        while context is not None:
            yield context
            context = context.parent

    @contextmanager
    def as_current_context(self) -> Iterator[None]:
        with self.registry.context(self.name):
            yield

    def switch_to(self) -> None:
        self.registry.switch_context(self.name)

    def lock(self) -> None:
        with self.thread_lock:
            self.locked = True

    def unlock(self) -> None:
        with self.thread_lock:
            self.locked = False

    def get(self, key: str) -> Any | missing_t:
        for context in self.lineage():
            if key in context.values:
                return context.values[key]

        return missing

    def set(self, key: str, value: Any) -> None:
        if self.locked:
            raise errors.ContextIsLocked(self.name)

        with self.thread_lock:
            self.discard(key)
            self.values[key] = value

    def discard(self, key: str) -> None:
        """ Removes the given key from this context. Service instances
        are stopped on the way out.

        """
        with self.thread_lock:
            value = self.values.pop(key, None)

            if isinstance(value, StoppableService):
                value.stop_service()

    def get_setting(self, name: str) -> Any:
        return self.get(setting_key(name))

    def set_setting(self, name: str, value: Any) -> None:
        self.set(setting_key(name), value)

    def get_service(self, name: str) -> Any:
        """ Returns the service with the given name.

        Services are factories called with the context. If the service was
        registered with ``cache=True`` the factory is called once per
        context and the result is kept on the context asking for it (not
        on the one defining the service).

        """
        factory = self.get(service_key(name))

        if factory is missing:
            raise errors.UnknownService(name)

        key = instance_key(name)

        if self.get(key) is missing:
            return factory(self)

        with self.thread_lock:
            if self.values.get(key, required) is required:
                self.set(key, factory(self))

            return self.values[key]

    def set_service(
        self,
        name: str,
        factory: Callable[[Context], Any],
        cache: bool = False
    ) -> None:
        """ Defines the factory of a service. Existing instances of the
        service on this context are discarded.

        """
        with self.thread_lock:
            self.set(service_key(name), factory)

            if cache:
                self.set(instance_key(name), required)
            else:
                self.discard(instance_key(name))
