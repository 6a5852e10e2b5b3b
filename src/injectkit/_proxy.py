"""Delegating proxies.

Both proxy kinds report the class of what they stand for through ``__class__``
so ``isinstance`` checks against the requested type keep working, and forward
attribute access to their delegate.

Python looks special methods up on the type, not the instance, so each proxy
is created from a subclass generated per proxied class. That subclass defines
exactly the special methods the proxied class implements beyond ``object``,
which keeps ``callable()``, ``len()``, iteration, comparison and context
management behaving as they do on the delegate.
"""

from __future__ import annotations

import functools
import inspect
from typing import TYPE_CHECKING, Any

from ._errors import ResolutionError


if TYPE_CHECKING:
    from ._key import Key

_UNSET = object()

_BINARY_OPERATORS = (
    "add", "sub", "mul", "matmul", "truediv", "floordiv", "mod", "divmod", "pow",
    "lshift", "rshift", "and", "xor", "or",
)  # fmt: skip

SPECIAL_METHODS = frozenset(
    {
        "__call__",
        "__len__",
        "__length_hint__",
        "__iter__",
        "__next__",
        "__reversed__",
        "__contains__",
        "__getitem__",
        "__setitem__",
        "__delitem__",
        "__missing__",
        "__enter__",
        "__exit__",
        "__aenter__",
        "__aexit__",
        "__aiter__",
        "__anext__",
        "__await__",
        "__bool__",
        "__eq__",
        "__ne__",
        "__lt__",
        "__le__",
        "__gt__",
        "__ge__",
        "__hash__",
        "__int__",
        "__float__",
        "__complex__",
        "__index__",
        "__bytes__",
        "__fspath__",
        "__neg__",
        "__pos__",
        "__abs__",
        "__invert__",
        "__round__",
        *(f"__{op}__" for op in _BINARY_OPERATORS),
        *(f"__r{op}__" for op in _BINARY_OPERATORS),
        *(f"__i{op}__" for op in _BINARY_OPERATORS if op != "divmod"),
    }
)


def implemented_special_methods(cls: type) -> dict[str, Any]:
    """Special methods ``cls`` defines or inherits from anything other than ``object``."""
    found: dict[str, Any] = {}
    for klass in cls.__mro__:
        if klass is object:
            break
        for name, attr in vars(klass).items():
            if name in SPECIAL_METHODS and name not in found:
                found[name] = attr
    return found


@functools.lru_cache(maxsize=None)
def _proxy_type(base: type, cls: type) -> type:
    namespace: dict[str, Any] = {"__slots__": ()}
    for name, attr in implemented_special_methods(cls).items():
        # __hash__ = None marks the proxied class unhashable
        namespace[name] = None if attr is None else _forwarder(name)
    if len(namespace) == 1:
        return base
    return type(f"{base.__name__}[{cls.__qualname__}]", (base,), namespace)


def _forwarder(name: str) -> Any:
    def forward(self: Any, *args: Any, **kwargs: Any) -> Any:
        return self._forward_special(name, args, kwargs)

    forward.__name__ = forward.__qualname__ = name
    return forward


def _call_special(target: object, name: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
    method = getattr(type(target), name, None)
    if method is None:
        msg = f"'{type(target).__qualname__}' object does not support {name}"
        raise TypeError(msg)
    return method(target, *args, **kwargs)


class DeferredProxy:
    """Stand-in for a Key whose instance is still being constructed.

    Issued to break a circular dependency; every operation is forwarded to the
    delegate once the real instance is filled in.
    """

    __slots__ = ("_deferred_delegate", "_deferred_key")

    def __new__(cls, key: Key) -> DeferredProxy:
        if cls is DeferredProxy and inspect.isclass(key.type):
            cls = _proxy_type(DeferredProxy, key.type)
        return object.__new__(cls)

    def __init__(self, key: Key) -> None:
        object.__setattr__(self, "_deferred_key", key)
        object.__setattr__(self, "_deferred_delegate", _UNSET)

    def _proxied_class(self) -> type:
        delegate = object.__getattribute__(self, "_deferred_delegate")
        if delegate is _UNSET:
            return object.__getattribute__(self, "_deferred_key").type
        return type(delegate)

    __class__ = property(_proxied_class)  # type: ignore[assignment]

    def _forward_special(self, name: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        return _call_special(_delegate(self), name, args, kwargs)

    def __getattr__(self, name: str) -> Any:
        return getattr(_delegate(self), name)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(_delegate(self), name, value)

    def __delattr__(self, name: str) -> None:
        delattr(_delegate(self), name)

    def __str__(self) -> str:
        return str(_delegate(self))

    def __repr__(self) -> str:
        delegate = object.__getattribute__(self, "_deferred_delegate")
        key = object.__getattribute__(self, "_deferred_key")
        if delegate is _UNSET:
            return f"<DeferredProxy for {key} (pending)>"
        return f"<DeferredProxy for {key} -> {delegate!r}>"


def fill_deferred(proxy: DeferredProxy, instance: object) -> None:
    object.__setattr__(proxy, "_deferred_delegate", instance)


def is_deferred_filled(proxy: DeferredProxy) -> bool:
    return object.__getattribute__(proxy, "_deferred_delegate") is not _UNSET


def _delegate(proxy: DeferredProxy) -> Any:
    delegate = object.__getattribute__(proxy, "_deferred_delegate")
    if delegate is _UNSET:
        key = object.__getattribute__(proxy, "_deferred_key")
        msg = (
            f"{key} is referenced through a circular dependency and cannot be used "
            "until its construction completes."
        )
        raise ResolutionError(msg, key)
    return delegate


class InterceptedProxy:
    """Wraps a target so that matched methods run through their interceptor chain."""

    __slots__ = ("_intercepted_chains", "_intercepted_target")

    def __new__(cls, target: object, chains: dict[str, Any]) -> InterceptedProxy:
        if cls is InterceptedProxy:
            cls = _proxy_type(InterceptedProxy, type(target))
        return object.__new__(cls)

    def __init__(self, target: object, chains: dict[str, Any]) -> None:
        object.__setattr__(self, "_intercepted_target", target)
        object.__setattr__(self, "_intercepted_chains", chains)

    def _proxied_class(self) -> type:
        return type(object.__getattribute__(self, "_intercepted_target"))

    __class__ = property(_proxied_class)  # type: ignore[assignment]

    def _forward_special(self, name: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        target = object.__getattribute__(self, "_intercepted_target")
        chain = object.__getattribute__(self, "_intercepted_chains").get(name)
        if chain is None:
            return _call_special(target, name, args, kwargs)
        return chain.bind(target)(*args, **kwargs)

    def __getattr__(self, name: str) -> Any:
        target = object.__getattribute__(self, "_intercepted_target")
        chain = object.__getattribute__(self, "_intercepted_chains").get(name)
        if chain is None:
            return getattr(target, name)
        return chain.bind(target)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(object.__getattribute__(self, "_intercepted_target"), name, value)

    def __delattr__(self, name: str) -> None:
        delattr(object.__getattribute__(self, "_intercepted_target"), name)

    def __str__(self) -> str:
        return str(object.__getattribute__(self, "_intercepted_target"))

    def __repr__(self) -> str:
        return f"<InterceptedProxy for {object.__getattribute__(self, '_intercepted_target')!r}>"


def unwrap(instance: object) -> object:
    """Return the object behind a proxy, or the instance itself."""
    while True:
        kind = type(instance)
        if issubclass(kind, InterceptedProxy):
            instance = object.__getattribute__(instance, "_intercepted_target")
        elif issubclass(kind, DeferredProxy) and is_deferred_filled(instance):
            instance = object.__getattribute__(instance, "_deferred_delegate")
        else:
            return instance
