from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar


if TYPE_CHECKING:
    from collections.abc import Hashable

T = TypeVar("T")


@dataclass(frozen=True)
class Named:
    """Qualifier label, usable as ``Annotated[T, Named("x")]`` metadata."""

    name: str


def named(name: str) -> Named:
    return Named(name)


@dataclass(frozen=True)
class Key(Generic[T]):
    """Identity of a dependency: the requested type plus an optional qualifier.

    ``Named`` qualifiers are normalised to their plain label, so
    ``Key(Service, "fast") == Key(Service, Named("fast"))``.
    """

    type: type[T]
    qualifier: Hashable | None = None

    def __post_init__(self) -> None:
        if isinstance(self.qualifier, Named):
            object.__setattr__(self, "qualifier", self.qualifier.name)

    @classmethod
    def of(cls, token: type[T] | Key[T], qualifier: Hashable | None = None) -> Key[T]:
        if isinstance(token, Key):
            if qualifier is None:
                return token
            return cls(token.type, qualifier)
        return cls(token, qualifier)

    def __str__(self) -> str:
        name = getattr(self.type, "__qualname__", repr(self.type))
        if self.qualifier is None:
            return name
        return f"{name}[{self.qualifier!r}]"


def qualifier_from(metadata: tuple[Any, ...]) -> Hashable | None:
    """Return the first ``Named`` label found in ``Annotated`` metadata."""
    for item in metadata:
        if isinstance(item, Named):
            return item.name
    return None
