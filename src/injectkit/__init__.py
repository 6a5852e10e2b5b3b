"""Guice-style dependency injection container.

Modules declare bindings from Keys (a type plus an optional qualifier) to
implementations, providers or instances; the injector builds fully wired
object graphs from them, caches singletons per injector, breaks circular
dependencies between abstract types with deferred proxies and runs method
interceptors around matched components.

Exports:
- `create_injector`, `Injector`, `Stage`: build and query containers.
- `AbstractModule`, `Binder`, `BindingBuilder`, `Binding`: the configuration DSL.
- `Key`, `Named`, `named`: dependency identity and qualifiers.
- `Scope`, `singleton`: instance lifetimes.
- `inject`, `Inject`: setter and field injection markers.
- `MethodInterceptor`, `MethodInvocation`: method interception (see `injectkit.matchers`).
- `ConfigurationError`, `ResolutionError` and their subclasses.
"""

from ._aop import MethodInterceptor, MethodInvocation
from ._binding import AbstractModule, Binder, Binding, BindingBuilder
from ._descriptor import Inject, inject
from ._errors import (
    ConfigurationError,
    DuplicateBindingError,
    FrozenRegistryError,
    IncompatibleBindingError,
    InjectionError,
    MissingBindingError,
    ResolutionError,
    UnresolvableCycleError,
)
from ._injector import Injector, Stage, create_injector
from ._key import Key, Named, named
from ._scope import Scope, singleton


__all__ = [
    "AbstractModule",
    "Binder",
    "Binding",
    "BindingBuilder",
    "ConfigurationError",
    "DuplicateBindingError",
    "FrozenRegistryError",
    "IncompatibleBindingError",
    "Inject",
    "InjectionError",
    "Injector",
    "Key",
    "MethodInterceptor",
    "MethodInvocation",
    "MissingBindingError",
    "Named",
    "ResolutionError",
    "Scope",
    "Stage",
    "UnresolvableCycleError",
    "create_injector",
    "inject",
    "named",
    "singleton",
]
