from __future__ import annotations

import functools
import inspect
import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from ._proxy import SPECIAL_METHODS, InterceptedProxy


if TYPE_CHECKING:
    from collections.abc import Callable

    from .matchers import Matcher

    Interceptor = MethodInterceptor | Callable[[MethodInvocation], Any]


logger = logging.getLogger(__name__)


@runtime_checkable
class MethodInterceptor(Protocol):
    def invoke(self, invocation: MethodInvocation) -> Any: ...


class MethodInvocation:
    """One step of an intercepted call.

    ``proceed()`` runs the next interceptor in the chain, or the real method
    once the chain is exhausted. An interceptor may call it more than once, or
    not at all to short-circuit the call.
    """

    def __init__(
        self,
        this: object,
        method: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        interceptors: tuple[Interceptor, ...],
        index: int = 0,
    ) -> None:
        self.this = this
        self.method = method
        self.args = args
        self.kwargs = kwargs
        self._interceptors = interceptors
        self._index = index

    def proceed(self) -> Any:
        if self._index == len(self._interceptors):
            return self.method(self.this, *self.args, **self.kwargs)

        interceptor = self._interceptors[self._index]
        following = MethodInvocation(
            self.this, self.method, self.args, self.kwargs, self._interceptors, self._index + 1
        )
        if isinstance(interceptor, MethodInterceptor):
            return interceptor.invoke(following)
        return interceptor(following)

    def __repr__(self) -> str:
        return f"<MethodInvocation {type(self.this).__qualname__}.{self.method.__name__}>"


@dataclass(frozen=True)
class InterceptorChain:
    method: Callable[..., Any]
    interceptors: tuple[Interceptor, ...]

    def bind(self, target: object) -> Callable[..., Any]:
        @functools.wraps(self.method)
        def intercepted(*args: Any, **kwargs: Any) -> Any:
            return MethodInvocation(target, self.method, args, kwargs, self.interceptors).proceed()

        return intercepted


@dataclass(frozen=True)
class InterceptorBinding:
    type_matcher: Matcher
    method_matcher: Matcher
    interceptors: tuple[Interceptor, ...]


class InterceptorWeaver:
    """Wraps constructed instances whose class and methods are matched by interceptor bindings."""

    def __init__(self, bindings: tuple[InterceptorBinding, ...]) -> None:
        self._bindings = bindings
        self._plans: dict[type, dict[str, InterceptorChain]] = {}
        self._lock = threading.Lock()

    @property
    def bindings(self) -> tuple[InterceptorBinding, ...]:
        return self._bindings

    def weave(self, instance: object) -> object:
        if not self._bindings:
            return instance

        chains = self._plan(type(instance))
        if not chains:
            return instance
        return InterceptedProxy(instance, chains)

    def _plan(self, cls: type) -> dict[str, InterceptorChain]:
        with self._lock:
            if cls in self._plans:
                return self._plans[cls]

        matched = [b for b in self._bindings if b.type_matcher.matches(cls)]
        chains: dict[str, InterceptorChain] = {}
        if matched:
            for name, method in _public_methods(cls).items():
                interceptors = tuple(i for b in matched if b.method_matcher.matches(method) for i in b.interceptors)
                if interceptors:
                    chains[name] = InterceptorChain(method, interceptors)
            if chains:
                logger.debug("Intercepting %s methods: %s", cls.__qualname__, ", ".join(chains))

        with self._lock:
            return self._plans.setdefault(cls, chains)


def _public_methods(cls: type) -> dict[str, Callable[..., Any]]:
    """Public functions of ``cls`` plus the special methods its proxy forwards, such as ``__call__``."""
    methods: dict[str, Callable[..., Any]] = {}
    for klass in reversed(cls.__mro__):
        if klass is object:
            continue
        for name, attr in vars(klass).items():
            if name.startswith("_") and name not in SPECIAL_METHODS:
                continue
            if inspect.isfunction(attr):
                methods[name] = attr
            else:
                methods.pop(name, None)
    return methods
