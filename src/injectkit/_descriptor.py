from __future__ import annotations

import functools
import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Annotated, Any, TypeVar, get_args, get_origin, get_type_hints

from ._key import Key, qualifier_from


if TYPE_CHECKING:
    from collections.abc import Callable


logger = logging.getLogger(__name__)

T = TypeVar("T")


class _InjectMarker:
    def __repr__(self) -> str:
        return "INJECT"


INJECT = _InjectMarker()

# Field injection marker: ``foo: Inject[Foo]`` or ``foo: Inject[Annotated[Foo, Named("x")]]``.
Inject = Annotated[T, INJECT]


def inject(func: Callable[..., Any]) -> Callable[..., Any]:
    """Mark a method for setter injection after the constructor has run."""
    func.__inject__ = True  # type: ignore[attr-defined]
    return func


@dataclass(frozen=True)
class InjectionPoint:
    name: str
    key: Key | None
    default: Any = inspect.Parameter.empty
    positional_only: bool = False

    @property
    def has_default(self) -> bool:
        return self.default is not inspect.Parameter.empty


@dataclass(frozen=True)
class DependencyDescriptor:
    """Static description of what a component needs, computed once per target.

    ``constructor`` lists the parameters of the class constructor (or provider
    callable). ``fields`` and ``setters`` are filled only for classes and are
    applied after construction, fields first.
    """

    target: Callable[..., Any]
    constructor: tuple[InjectionPoint, ...]
    fields: tuple[InjectionPoint, ...] = ()
    setters: tuple[tuple[str, tuple[InjectionPoint, ...]], ...] = ()

    @property
    def has_members(self) -> bool:
        return bool(self.fields or self.setters)


@functools.lru_cache(maxsize=None)
def describe(target: Callable[..., Any]) -> DependencyDescriptor:
    if inspect.isclass(target):
        return DependencyDescriptor(
            target,
            _constructor_points(target),
            _field_points(target),
            _setter_points(target),
        )
    return DependencyDescriptor(target, _parameter_points(target, _get_type_hints(target)))


def key_for_annotation(annotation: Any) -> tuple[Key, tuple[Any, ...]]:
    """Split an annotation into its Key and the flattened ``Annotated`` metadata."""
    metadata: tuple[Any, ...] = ()
    while get_origin(annotation) is Annotated:
        annotation, *extra = get_args(annotation)
        metadata += tuple(extra)
    return Key(annotation, qualifier_from(metadata)), metadata


def _constructor_points(cls: type) -> tuple[InjectionPoint, ...]:
    if cls.__init__ is object.__init__:
        return ()
    try:
        sig = inspect.signature(cls)
    except (TypeError, ValueError):
        return ()
    return _points_from_signature(sig, _get_init_type_hints(cls))


def _parameter_points(func: Callable[..., Any], hints: dict[str, Any]) -> tuple[InjectionPoint, ...]:
    return _points_from_signature(inspect.signature(func), hints)


def _points_from_signature(sig: inspect.Signature, hints: dict[str, Any]) -> tuple[InjectionPoint, ...]:
    points = []
    for name, p in sig.parameters.items():
        # *args / **kwargs are never injected
        if p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD):
            continue
        ann = hints.get(name, inspect.Signature.empty)
        key = key_for_annotation(ann)[0] if ann is not inspect.Signature.empty else None
        points.append(InjectionPoint(name, key, p.default, p.kind is p.POSITIONAL_ONLY))
    return tuple(points)


def _field_points(cls: type) -> tuple[InjectionPoint, ...]:
    try:
        hints = get_type_hints(cls, include_extras=True)
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s field type hints", exc.name, cls.__qualname__)
        return ()
    except TypeError:
        return ()

    points = []
    for name, ann in hints.items():
        key, metadata = key_for_annotation(ann)
        if any(m is INJECT for m in metadata):
            points.append(InjectionPoint(name, key, getattr(cls, name, inspect.Parameter.empty)))
    return tuple(points)


def _setter_points(cls: type) -> tuple[tuple[str, tuple[InjectionPoint, ...]], ...]:
    setters: dict[str, Callable[..., Any]] = {}
    for klass in reversed(cls.__mro__):
        for name, attr in vars(klass).items():
            if name == "__init__":
                continue
            if inspect.isfunction(attr) and getattr(attr, "__inject__", False):
                setters[name] = attr
            elif name in setters:
                # overridden without @inject
                del setters[name]

    result = []
    for name, func in setters.items():
        points = _parameter_points(func, _get_type_hints(func))
        result.append((name, points[1:]))  # drop 'self'
    return tuple(result)


def _get_type_hints(func: Callable[..., Any]) -> dict[str, Any]:
    try:
        return get_type_hints(func, include_extras=True)
    except TypeError:
        return {}
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s type hints", exc.name, getattr(func, "__qualname__", func))
        return {}


def _get_init_type_hints(cls: type) -> dict[str, Any]:
    try:
        init = inspect.getattr_static(cls, "__init__")
        hints = get_type_hints(init, include_extras=True)
    except TypeError:
        hints = {}
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s (%s) type hints", exc.name, cls.__name__, cls.__qualname__)
        hints = {}

    return hints
