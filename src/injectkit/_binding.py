from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from ._aop import InterceptorBinding
from ._errors import ConfigurationError, DuplicateBindingError, FrozenRegistryError, MissingBindingError
from ._key import Key
from ._scope import Scope, declared_scope
from ._validation import is_concrete, validate_implementation, validate_instance


if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Iterator

    from ._aop import Interceptor
    from .matchers import Matcher


logger = logging.getLogger(__name__)

T = TypeVar("T")

_NO_INSTANCE: Any = object()


@dataclass(frozen=True)
class Binding(Generic[T]):
    """How instances for a Key are produced and how long they live.

    Exactly one of ``impl``, ``factory`` or ``instance`` is set.
    """

    key: Key[T]
    scope: Scope
    impl: type | None = None
    factory: Callable[..., Any] | None = None
    instance: Any = _NO_INSTANCE
    eager: bool = False
    implicit: bool = False

    @property
    def has_instance(self) -> bool:
        return self.instance is not _NO_INSTANCE

    @property
    def target(self) -> Callable[..., Any] | None:
        return self.impl if self.impl is not None else self.factory

    def __str__(self) -> str:
        if self.has_instance:
            supplier = f"instance {self.instance!r}"
        elif self.impl is not None:
            supplier = f"to {self.impl.__qualname__}"
        else:
            supplier = f"provider {getattr(self.factory, '__qualname__', self.factory)!r}"
        return f"bind({self.key}) {supplier} in {self.scope.value}"


def implicit_binding(key: Key) -> Binding | None:
    """Just-in-time binding for an unqualified concrete class outside builtins."""
    if key.qualifier is not None or not is_concrete(key.type):
        return None
    if getattr(key.type, "__module__", "") == "builtins":
        return None
    return Binding(key, declared_scope(key.type) or Scope.PROTOTYPE, impl=key.type, implicit=True)


class BindingRegistry:
    def __init__(self) -> None:
        self._bindings: dict[Key, Binding] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, binding: Binding) -> None:
        if self._frozen:
            raise FrozenRegistryError(binding.key)
        if binding.key in self._bindings:
            raise DuplicateBindingError(binding.key)
        self._bindings[binding.key] = binding
        logger.debug("Registered %s", binding)

    def freeze(self) -> None:
        self._frozen = True

    def lookup(self, key: Key) -> Binding:
        binding = self._bindings.get(key)
        if binding is None:
            raise MissingBindingError(key)
        return binding

    def get(self, key: Key) -> Binding | None:
        return self._bindings.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._bindings

    def __iter__(self) -> Iterator[Binding]:
        return iter(self._bindings.values())

    def __len__(self) -> int:
        return len(self._bindings)


class BindingBuilder(Generic[T]):
    """Fluent description of one binding, finalised when the injector is created.

    Example:
      binder.bind(Inspector).annotated_with("extended").to(ExtendedInspector).in_(Scope.SINGLETON)

    """

    def __init__(self, binder: Binder, key: Key[T]) -> None:
        self._binder = binder
        self._key = key
        self._scope: Scope | None = None
        self._impl: type | None = None
        self._factory: Callable[..., Any] | None = None
        self._instance: Any = _NO_INSTANCE
        self._eager = False

    def annotated_with(self, qualifier: Hashable) -> BindingBuilder[T]:
        self._check_open()
        if self._key.qualifier is not None:
            msg = f"{self._key} already has a qualifier"
            raise ConfigurationError(msg)
        self._key = Key(self._key.type, qualifier)
        return self

    def to(self, impl: type[T]) -> BindingBuilder[T]:
        self._check_target()
        self._impl = impl
        return self

    def to_instance(self, instance: T) -> BindingBuilder[T]:
        self._check_target()
        self._instance = instance
        return self

    def to_provider(self, factory: Callable[..., T]) -> BindingBuilder[T]:
        """Bind to a callable; its annotated parameters are injected when it is called."""
        self._check_target()
        if not callable(factory):
            msg = f"Provider for {self._key} must be callable, got {factory!r}"
            raise ConfigurationError(msg)
        self._factory = factory
        return self

    def in_(self, scope: Scope) -> BindingBuilder[T]:
        self._check_open()
        if not isinstance(scope, Scope):
            msg = f"Unknown scope {scope!r} for {self._key}"
            raise ConfigurationError(msg)
        self._scope = scope
        return self

    def as_eager_singleton(self) -> BindingBuilder[T]:
        self._check_open()
        self._scope = Scope.SINGLETON
        self._eager = True
        return self

    def build(self) -> Binding[T]:
        key = self._key
        if self._instance is not _NO_INSTANCE:
            if inspect.isclass(key.type):
                validate_instance(key.type, self._instance)
            if self._scope is Scope.PROTOTYPE:
                msg = f"Instance binding for {key} is always singleton"
                raise ConfigurationError(msg)
            return Binding(key, Scope.SINGLETON, instance=self._instance, eager=self._eager)

        if self._factory is not None:
            return Binding(key, self._scope or Scope.PROTOTYPE, factory=self._factory, eager=self._eager)

        impl = self._impl
        if impl is None:
            # untargetted: bind(Foo).in_(...)
            if not is_concrete(key.type):
                msg = f"{key} is abstract and has no implementation bound"
                raise ConfigurationError(msg)
            impl = key.type
        elif inspect.isclass(key.type):
            validate_implementation(key.type, impl)

        scope = self._scope or declared_scope(impl) or Scope.PROTOTYPE
        return Binding(key, scope, impl=impl, eager=self._eager)

    def _check_target(self) -> None:
        self._check_open()
        if self._impl is not None or self._factory is not None or self._instance is not _NO_INSTANCE:
            msg = f"Implementation for {self._key} is already set"
            raise ConfigurationError(msg)

    def _check_open(self) -> None:
        if self._binder.frozen:
            raise FrozenRegistryError(self._key)


class Binder:
    """Collects bindings and interceptor bindings while modules are evaluated."""

    def __init__(self, registry: BindingRegistry) -> None:
        self._registry = registry
        self._builders: list[BindingBuilder] = []
        self._interceptors: list[InterceptorBinding] = []
        self._installed: list[Module] = []

    @property
    def frozen(self) -> bool:
        return self._registry.frozen

    def bind(self, token: type[T] | Key[T]) -> BindingBuilder[T]:
        key = Key.of(token)
        if self.frozen:
            raise FrozenRegistryError(key)
        builder = BindingBuilder(self, key)
        self._builders.append(builder)
        return builder

    def bind_interceptor(self, type_matcher: Matcher, method_matcher: Matcher, *interceptors: Interceptor) -> None:
        if self.frozen:
            raise FrozenRegistryError
        if not interceptors:
            msg = "bind_interceptor() needs at least one interceptor"
            raise ConfigurationError(msg)
        self._interceptors.append(InterceptorBinding(type_matcher, method_matcher, tuple(interceptors)))

    def install(self, module: Module) -> None:
        """Evaluate ``module`` against this binder; installing the same module object twice is a no-op."""
        if any(installed is module for installed in self._installed):
            return
        self._installed.append(module)
        if isinstance(module, AbstractModule):
            module.configure_with(self)
        elif callable(module):
            module(self)
        else:
            msg = f"{module!r} is not a module"
            raise ConfigurationError(msg)

    @property
    def interceptor_bindings(self) -> tuple[InterceptorBinding, ...]:
        return tuple(self._interceptors)

    def finish(self) -> None:
        """Register every collected binding, then freeze the registry."""
        for builder in self._builders:
            self._registry.register(builder.build())
        self._registry.freeze()


class AbstractModule:
    """Base class for modules, mirroring Guice's ``AbstractModule``.

    Subclasses implement :meth:`configure` and call :meth:`bind`,
    :meth:`bind_interceptor` and :meth:`install` from it.
    """

    _binder: Binder | None = None

    def configure(self) -> None:
        raise NotImplementedError

    def configure_with(self, binder: Binder) -> None:
        if self._binder is not None:
            msg = f"{type(self).__name__} is already being configured"
            raise ConfigurationError(msg)
        self._binder = binder
        try:
            self.configure()
        finally:
            self._binder = None

    def bind(self, token: type[T] | Key[T]) -> BindingBuilder[T]:
        return self._current_binder().bind(token)

    def bind_interceptor(self, type_matcher: Matcher, method_matcher: Matcher, *interceptors: Interceptor) -> None:
        self._current_binder().bind_interceptor(type_matcher, method_matcher, *interceptors)

    def install(self, module: Module) -> None:
        self._current_binder().install(module)

    def _current_binder(self) -> Binder:
        if self._binder is None:
            msg = f"{type(self).__name__}.bind() may only be called from configure()"
            raise ConfigurationError(msg)
        return self._binder


if TYPE_CHECKING:
    Module = AbstractModule | Callable[[Binder], None]
