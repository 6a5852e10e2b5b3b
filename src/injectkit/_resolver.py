from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Any

from ._binding import Binding, implicit_binding
from ._descriptor import describe
from ._errors import MissingBindingError, ResolutionError, UnresolvableCycleError
from ._proxy import DeferredProxy, fill_deferred, unwrap
from ._validation import is_capability


if TYPE_CHECKING:
    from ._aop import InterceptorWeaver
    from ._binding import BindingRegistry
    from ._descriptor import DependencyDescriptor, InjectionPoint
    from ._key import Key
    from ._scope import ScopeManager


logger = logging.getLogger(__name__)


class ResolutionFrame:
    """State of one top-level resolution: the Keys under construction on this call stack."""

    def __init__(self) -> None:
        self._path: list[Key] = []
        self._deferred: dict[Key, list[DeferredProxy]] = defaultdict(list)
        self._early: dict[Key, object] = {}

    @property
    def path(self) -> list[Key]:
        return list(self._path)

    def __contains__(self, key: object) -> bool:
        return key in self._path

    def enter(self, key: Key) -> None:
        self._path.append(key)

    def exit(self, key: Key) -> None:
        self._path.remove(key)
        self._early.pop(key, None)
        self._deferred.pop(key, None)

    def constructed(self, key: Key, instance: object) -> None:
        """Record an instance whose constructor finished but whose members are still being injected."""
        self._early[key] = instance

    def early(self, key: Key) -> object | None:
        return self._early.get(key)

    def defer(self, key: Key) -> DeferredProxy:
        proxy = DeferredProxy(key)
        self._deferred[key].append(proxy)
        return proxy

    def complete(self, key: Key, instance: object) -> None:
        for proxy in self._deferred.pop(key, []):
            fill_deferred(proxy, instance)


class Resolver:
    """Builds instances for Keys by walking their dependency descriptors."""

    def __init__(self, registry: BindingRegistry, scopes: ScopeManager, weaver: InterceptorWeaver) -> None:
        self._registry = registry
        self._scopes = scopes
        self._weaver = weaver

    def binding_for(self, key: Key) -> Binding | None:
        binding = self._registry.get(key)
        if binding is None:
            binding = implicit_binding(key)
        return binding

    def resolve(self, key: Key, frame: ResolutionFrame) -> Any:
        if key in frame:
            return self._break_cycle(key, frame)

        binding = self.binding_for(key)
        if binding is None:
            raise MissingBindingError(key)
        if binding.has_instance:
            return binding.instance

        return self._scopes.get_or_create(
            key,
            binding.scope,
            lambda: self._provision(binding, frame),
            lambda: self._defer_across_threads(key, frame),
        )

    def inject_members(self, instance: object, frame: ResolutionFrame) -> None:
        target = unwrap(instance)
        self._inject_members(target, describe(type(target)), frame)

    def _provision(self, binding: Binding, frame: ResolutionFrame) -> object:
        key = binding.key
        target = binding.target
        if target is None:
            msg = f"{binding} has nothing to construct"
            raise ResolutionError(msg, key)

        frame.enter(key)
        try:
            descriptor = describe(target)
            args, kwargs = self._arguments(descriptor, descriptor.constructor, frame)
            raw = target(*args, **kwargs)
            instance = self._weaver.weave(raw)
            if descriptor.has_members:
                frame.constructed(key, instance)
                self._inject_members(raw, descriptor, frame)
            frame.complete(key, instance)
            return instance
        finally:
            frame.exit(key)

    def _arguments(
        self,
        descriptor: DependencyDescriptor,
        points: tuple[InjectionPoint, ...],
        frame: ResolutionFrame,
    ) -> tuple[list[Any], dict[str, Any]]:
        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        for point in points:
            value = self._value_for(descriptor, point, frame)
            if value is _USE_DEFAULT:
                continue
            if point.positional_only:
                args.append(value)
            else:
                kwargs[point.name] = value
        return args, kwargs

    def _inject_members(self, instance: object, descriptor: DependencyDescriptor, frame: ResolutionFrame) -> None:
        for point in descriptor.fields:
            value = self._value_for(descriptor, point, frame)
            if value is not _USE_DEFAULT:
                setattr(instance, point.name, value)

        for name, points in descriptor.setters:
            args, kwargs = self._arguments(descriptor, points, frame)
            getattr(instance, name)(*args, **kwargs)

    def _value_for(self, descriptor: DependencyDescriptor, point: InjectionPoint, frame: ResolutionFrame) -> Any:
        """Resolution precedence: binding for the annotated Key, then the default, then error."""
        key = point.key
        if key is not None and (key in frame or self.binding_for(key) is not None):
            return self.resolve(key, frame)

        if point.has_default:
            return _USE_DEFAULT

        owner = getattr(descriptor.target, "__qualname__", repr(descriptor.target))
        if key is None:
            msg = f"Cannot satisfy parameter '{point.name}' for {owner}: it has no annotation and no default."
            raise ResolutionError(msg)
        raise MissingBindingError(key)

    def _break_cycle(self, key: Key, frame: ResolutionFrame) -> object:
        early = frame.early(key)
        if early is not None:
            return early

        if not is_capability(key.type):
            raise UnresolvableCycleError(key, frame.path)

        logger.debug("Circular dependency on %s, issuing deferred proxy (%s)", key, frame.path)
        return frame.defer(key)

    def _defer_across_threads(self, key: Key, frame: ResolutionFrame) -> DeferredProxy:
        if not is_capability(key.type):
            raise UnresolvableCycleError(key, frame.path)
        return DeferredProxy(key)


_USE_DEFAULT: Any = object()
