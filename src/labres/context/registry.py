from __future__ import annotations

import threading

from contextlib import contextmanager
from uuid import uuid5

from labres.modules import errors
from labres.context.core import Context


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from collections.abc import Iterator
    from uuid import UUID

    from labres.context.session import SessionProvider
    from labres.modules.locking import ResourceLocks


def session_provider_factory(context: Context) -> SessionProvider:
    from labres.context.session import SessionProvider
    return SessionProvider(context.get_setting('dsn'))


def resource_locks_factory(context: Context) -> ResourceLocks:
    from labres.modules.locking import ResourceLocks
    return ResourceLocks()


def requester_directory_factory(context: Context) -> Callable[[str], str]:
    # Requesters are managed by the identity provider, which is not known
    # to labres. Consumers override this service to show proper names in
    # the usage statistics.
    def requester_name(requester: str) -> str:
        return requester

    return requester_name


def uuid_generator_factory(context: Context) -> Callable[[str], UUID]:
    def uuid_generator(name: str) -> UUID:
        return uuid5(
            context.get_setting('uuid_namespace'),
            f'{context.name}/{name}'
        )

    return uuid_generator


def create_default_registry() -> Registry:
    """ Creates a registry whose locked master context provides the
    default settings and services of labres.

    """

    from labres.context.settings import set_default_settings

    registry = Registry()

    master = registry.master_context
    master.set_service('session_provider', session_provider_factory, True)
    master.set_service('resource_locks', resource_locks_factory, True)
    master.set_service('requester_directory', requester_directory_factory)
    master.set_service('uuid_generator', uuid_generator_factory)

    set_default_settings(master)

    master.lock()

    return registry


class Registry:
    """ Knows the contexts of a process by name and which of them is the
    current one (per thread).

    Labres keeps a global registry::

        from labres import registry

    Tests, or applications which don't want to share it, create their own::

        from labres.context.registry import create_default_registry
        registry = create_default_registry()

    Every context registered here inherits from the master context.

    """

    contexts: dict[str, Context]
    master_context: Context

    def __init__(self) -> None:
        self.thread_lock = threading.RLock()
        self.local = threading.local()
        self.contexts = {}
        self.master_context = self.register_context('master')

    @property
    def current_context(self) -> Context:
        return getattr(  # type: ignore[no-any-return]
            self.local, 'current_context', self.master_context
        )

    def is_existing_context(self, name: str) -> bool:
        return name in self.contexts

    def assert_exists(self, name: str) -> None:
        if not self.is_existing_context(name):
            raise errors.UnknownContext(name)

    def assert_does_not_exist(self, name: str) -> None:
        if self.is_existing_context(name):
            raise errors.ContextAlreadyExists(name)

    def assert_not_locked(self, name: str) -> None:
        if self.get_context(name).locked:
            raise errors.ContextIsLocked(name)

    def register_context(self, name: str, replace: bool = False) -> Context:
        """ Adds a new, empty context and returns it.

        :replace:
            If True, an existing context of the same name is dropped
            (unless it is locked). Otherwise an existing context is an
            error.

        """
        with self.thread_lock:
            if not replace:
                self.assert_does_not_exist(name)
            elif self.is_existing_context(name):
                self.assert_not_locked(name)

            # the master context itself has no parent
            parent = getattr(self, 'master_context', None)
            context = Context(name, registry=self, parent=parent)
            self.contexts[name] = context

            return context

    def get_context(self, name: str, autocreate: bool = False) -> Context:
        with self.thread_lock:
            if autocreate and not self.is_existing_context(name):
                return self.register_context(name)

            self.assert_exists(name)
            return self.contexts[name]

    def switch_context(self, name: str) -> None:
        self.local.current_context = self.get_context(name)

    @contextmanager
    def context(self, name: str) -> Iterator[Context]:
        """ Makes the given context the current one inside the with
        block.

        """
        previous = self.current_context
        self.switch_context(name)

        try:
            yield self.current_context
        finally:
            self.local.current_context = previous
