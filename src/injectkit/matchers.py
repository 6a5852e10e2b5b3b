"""Predicates selecting the classes and methods an interceptor applies to.

Matchers compose with ``&``, ``|`` and ``~``::

    bind_interceptor(
        matchers.subclasses_of(Repository),
        matchers.annotated_with(transactional) & ~matchers.returns(matchers.only(None)),
        TransactionInterceptor(),
    )
"""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any, get_type_hints


if TYPE_CHECKING:
    from collections.abc import Callable


MARKERS_ATTRIBUTE = "__injectkit_markers__"


class Marker:
    """A decorator that tags a class or function, for use with :func:`annotated_with`."""

    def __init__(self, name: str) -> None:
        self.name = name

    def __call__(self, target: Any) -> Any:
        markers = getattr(target, MARKERS_ATTRIBUTE, ())
        setattr(target, MARKERS_ATTRIBUTE, (*markers, self))
        return target

    def __repr__(self) -> str:
        return f"Marker({self.name!r})"


class Matcher:
    def __init__(self, predicate: Callable[[Any], bool], description: str) -> None:
        self._predicate = predicate
        self._description = description

    def matches(self, candidate: Any) -> bool:
        return bool(self._predicate(candidate))

    def __and__(self, other: Matcher) -> Matcher:
        return Matcher(lambda c: self.matches(c) and other.matches(c), f"{self} & {other}")

    def __or__(self, other: Matcher) -> Matcher:
        return Matcher(lambda c: self.matches(c) or other.matches(c), f"{self} | {other}")

    def __invert__(self) -> Matcher:
        return not_(self)

    def __repr__(self) -> str:
        return self._description


def any_() -> Matcher:
    return Matcher(lambda _: True, "any()")


def not_(matcher: Matcher) -> Matcher:
    return Matcher(lambda c: not matcher.matches(c), f"not({matcher})")


def only(value: object) -> Matcher:
    """Matches candidates equal to ``value``."""
    return Matcher(lambda c: c == value, f"only({value!r})")


def identical_to(value: object) -> Matcher:
    return Matcher(lambda c: c is value, f"identical_to({value!r})")


def subclasses_of(superclass: type) -> Matcher:
    """Matches classes that are ``superclass`` or inherit from it."""
    return Matcher(
        lambda c: inspect.isclass(c) and issubclass(c, superclass),
        f"subclasses_of({superclass.__qualname__})",
    )


def annotated_with(marker: Marker) -> Matcher:
    """Matches classes or functions decorated with ``marker``."""
    return Matcher(
        lambda c: marker in getattr(c, MARKERS_ATTRIBUTE, ()),
        f"annotated_with({marker!r})",
    )


def in_module(name: str) -> Matcher:
    """Matches classes or functions defined in the module ``name`` or one of its submodules."""
    return Matcher(
        lambda c: (module := getattr(c, "__module__", "")) == name or module.startswith(f"{name}."),
        f"in_module({name!r})",
    )


def returns(matcher: Matcher) -> Matcher:
    """Matches functions whose return annotation satisfies ``matcher``."""

    def predicate(candidate: Any) -> bool:
        try:
            hints = get_type_hints(candidate)
        except (NameError, TypeError):
            return False
        if "return" not in hints:
            return False
        ret = hints["return"]
        return matcher.matches(None if ret is type(None) else ret)

    return Matcher(predicate, f"returns({matcher})")
