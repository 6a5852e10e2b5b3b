from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar, overload

from ._aop import InterceptorWeaver
from ._binding import Binder, Binding, BindingRegistry
from ._errors import ConfigurationError, MissingBindingError
from ._key import Key
from ._resolver import ResolutionFrame, Resolver
from ._scope import Scope, ScopeManager


if TYPE_CHECKING:
    from collections.abc import Callable, Hashable

    from ._aop import InterceptorBinding
    from ._binding import Module

    T = TypeVar("T")


logger = logging.getLogger(__name__)


class Stage(Enum):
    # singletons are created on first use
    DEVELOPMENT = "development"
    # every singleton is created while the injector is built
    PRODUCTION = "production"


class Injector:
    """Builds object graphs from the bindings of the modules it was created with.

    Create instances with :func:`create_injector`. The injector is thread-safe:
    singletons are constructed at most once even under concurrent first requests.
    """

    def __init__(
        self,
        registry: BindingRegistry,
        interceptors: tuple[InterceptorBinding, ...],
        stage: Stage,
        *,
        _from_factory: bool = False,
    ) -> None:
        if not _from_factory:
            msg = "Injector instances must be created via create_injector()"
            raise RuntimeError(msg)
        self._registry = registry
        self._stage = stage
        self._scopes = ScopeManager()
        self._weaver = InterceptorWeaver(interceptors)
        self._resolver = Resolver(registry, self._scopes, self._weaver)

    @property
    def stage(self) -> Stage:
        return self._stage

    @property
    def bindings(self) -> tuple[Binding, ...]:
        """Explicitly configured bindings, including the injector's own."""
        return tuple(self._registry)

    @overload
    def get_instance(self, token: type[T], qualifier: Hashable | None = ...) -> T: ...

    @overload
    def get_instance(self, token: Key[T], qualifier: Hashable | None = ...) -> T: ...

    def get_instance(self, token: type[T] | Key[T], qualifier: Hashable | None = None) -> Any:
        """Resolve the Key for ``token`` (and ``qualifier``) to a fully wired instance.

        Raises ``MissingBindingError`` when nothing is bound to the Key and it
        cannot be bound implicitly, and ``UnresolvableCycleError`` when it takes
        part in a cycle through concrete types.
        """
        return self._resolver.resolve(Key.of(token, qualifier), ResolutionFrame())

    def get_provider(self, token: type[T] | Key[T], qualifier: Hashable | None = None) -> Callable[[], T]:
        """Return a callable resolving the Key anew (subject to its scope) on each call."""
        key = Key.of(token, qualifier)
        self.get_binding(key)

        def provide() -> T:
            return self._resolver.resolve(key, ResolutionFrame())

        return provide

    def get_binding(self, token: type[T] | Key[T], qualifier: Hashable | None = None) -> Binding[T]:
        key = Key.of(token, qualifier)
        binding = self._resolver.binding_for(key)
        if binding is None:
            raise MissingBindingError(key)
        return binding

    def inject_members(self, instance: object) -> None:
        """Perform field and setter injection on an object created outside the injector."""
        self._resolver.inject_members(instance, ResolutionFrame())

    def _create_eager_singletons(self) -> None:
        for binding in self._registry:
            if binding.has_instance:
                continue
            if binding.eager or (self._stage is Stage.PRODUCTION and binding.scope is Scope.SINGLETON):
                try:
                    self.get_instance(binding.key)
                except Exception as e:
                    msg = f"Unable to create eager singleton for {binding.key}: {e}"
                    raise ConfigurationError(msg) from e

    def __repr__(self) -> str:
        return f"<Injector stage={self._stage.value} bindings={len(self._registry)}>"


def create_injector(*modules: Module, stage: Stage = Stage.DEVELOPMENT) -> Injector:
    """Evaluate ``modules``, freeze their bindings and return the injector.

    Example:
      injector = create_injector(TaoismModule())
      yin = injector.get_instance(Yin)

    Configuration problems (duplicate bindings, incompatible implementations,
    failing eager singletons) raise ``ConfigurationError``; no injector is returned.
    """
    registry = BindingRegistry()
    binder = Binder(registry)
    for module in modules:
        binder.install(module)

    injector = Injector(registry, binder.interceptor_bindings, stage, _from_factory=True)
    binder.bind(Injector).to_instance(injector)
    binder.finish()

    injector._create_eager_singletons()  # noqa: SLF001
    logger.debug(
        "Created injector with %d bindings and %d interceptor bindings",
        len(registry),
        len(binder.interceptor_bindings),
    )
    return injector
