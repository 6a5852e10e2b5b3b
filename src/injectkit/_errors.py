from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from ._key import Key


class InjectionError(RuntimeError):
    """Base class for everything the container raises."""


class ConfigurationError(InjectionError):
    pass


class DuplicateBindingError(ConfigurationError):
    def __init__(self, key: Key) -> None:
        super().__init__(f"A binding for {key} was already configured.")
        self.key = key


class FrozenRegistryError(ConfigurationError):
    def __init__(self, key: Key | None = None) -> None:
        target = f" for {key}" if key is not None else ""
        super().__init__(f"Bindings are frozen once the injector is created; cannot bind{target}.")
        self.key = key


class IncompatibleBindingError(ConfigurationError):
    pass


class ResolutionError(InjectionError):
    def __init__(self, msg: str, key: Key | None = None) -> None:
        super().__init__(msg)
        self.key = key


class MissingBindingError(ResolutionError):
    def __init__(self, key: Key) -> None:
        super().__init__(f"No binding found for {key}.", key)


class UnresolvableCycleError(ResolutionError):
    """A dependency cycle through a concrete type, which cannot be proxied."""

    def __init__(self, key: Key, path: list[Key]) -> None:
        cycle = " -> ".join(str(k) for k in [*path, key])
        super().__init__(
            f"Circular dependency on {key} cannot be broken: it is requested through a "
            f"concrete type. Depend on an abstract class or Protocol instead ({cycle}).",
            key,
        )
        self.path = path
