from __future__ import annotations

import logging
import threading
from collections import defaultdict
from enum import Enum
from typing import TYPE_CHECKING, TypeVar

from ._errors import ResolutionError
from ._proxy import DeferredProxy, fill_deferred


if TYPE_CHECKING:
    from collections.abc import Callable

    from ._key import Key

    C = TypeVar("C", bound=type)


logger = logging.getLogger(__name__)

SCOPE_ATTRIBUTE = "__injectkit_scope__"


class Scope(Enum):
    PROTOTYPE = "prototype"
    SINGLETON = "singleton"


def singleton(cls: C) -> C:
    """Declare the default scope of a component class as singleton.

    An explicit ``in_(...)`` on the binding still takes precedence.
    """
    setattr(cls, SCOPE_ATTRIBUTE, Scope.SINGLETON)
    return cls


def declared_scope(target: object) -> Scope | None:
    # Only the class's own declaration counts; subclasses must opt in again.
    return vars(target).get(SCOPE_ATTRIBUTE) if isinstance(target, type) else None


class ScopeManager:
    """Singleton cache for one injector.

    Construction of a singleton happens under a lock owned by its Key only, so
    unrelated Keys resolve in parallel. Lock ownership and waits are tracked:
    a thread that would wait on a Key held by a thread which is (transitively)
    waiting on a Key held by the first thread receives a deferred proxy instead
    of deadlocking. That proxy is filled when the Key is cached.
    """

    def __init__(self) -> None:
        self._instances: dict[Key, object] = {}
        self._locks: dict[Key, threading.Lock] = {}
        self._owners: dict[Key, int] = {}
        self._waiting: dict[int, Key] = {}
        self._deferred: dict[Key, list[DeferredProxy]] = defaultdict(list)
        self._guard = threading.Lock()

    def get_or_create(
        self,
        key: Key,
        scope: Scope,
        factory: Callable[[], object],
        defer: Callable[[], DeferredProxy] | None = None,
    ) -> object:
        if scope is Scope.PROTOTYPE:
            return factory()

        with self._guard:
            if key in self._instances:
                return self._instances[key]

        if not self._acquire(key):
            return self._defer(key, defer)

        try:
            with self._guard:
                if key in self._instances:
                    return self._instances[key]

            instance = factory()

            with self._guard:
                self._instances[key] = instance
                pending = self._deferred.pop(key, [])
            logger.debug("Created singleton instance for %s", key)
            for proxy in pending:
                fill_deferred(proxy, instance)
            return instance
        finally:
            self._release(key)

    def get(self, key: Key) -> object | None:
        with self._guard:
            return self._instances.get(key)

    def __contains__(self, key: Key) -> bool:
        with self._guard:
            return key in self._instances

    def _defer(self, key: Key, defer: Callable[[], DeferredProxy] | None) -> object:
        if defer is None:
            msg = f"Concurrent resolution of {key} would deadlock"
            raise ResolutionError(msg, key)
        proxy = defer()
        with self._guard:
            if key in self._instances:
                fill_deferred(proxy, self._instances[key])
            else:
                self._deferred[key].append(proxy)
        logger.debug("Issued deferred proxy for %s to avoid a cross-thread deadlock", key)
        return proxy

    def _acquire(self, key: Key) -> bool:
        me = threading.get_ident()
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            if self._would_deadlock(key, me):
                return False
            self._waiting[me] = key

        lock.acquire()

        with self._guard:
            del self._waiting[me]
            self._owners[key] = me
        return True

    def _release(self, key: Key) -> None:
        with self._guard:
            del self._owners[key]
            self._locks[key].release()

    def _would_deadlock(self, key: Key, me: int) -> bool:
        owner = self._owners.get(key)
        seen: set[int] = set()
        while owner is not None and owner not in seen:
            if owner == me:
                return True
            seen.add(owner)
            waited = self._waiting.get(owner)
            if waited is None:
                return False
            owner = self._owners.get(waited)
        return False
