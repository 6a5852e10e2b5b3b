import unittest
from abc import ABC, abstractmethod
from typing import Annotated

import pytest

from injectkit import (
    AbstractModule,
    Inject,
    Injector,
    Key,
    MissingBindingError,
    Named,
    ResolutionError,
    Scope,
    create_injector,
    inject,
    singleton,
)


class Foo: ...


class Bar:
    def __init__(self, foo: Foo):
        self.foo = foo


class Buzz:
    foo: Inject[Foo]
    bar: Inject[Bar]


class BuzzInspector(ABC):
    @abstractmethod
    def inspect(self) -> str: ...


@singleton
class DefaultBuzzInspector(BuzzInspector):
    buzz: Buzz | None = None

    @inject
    def set_buzz(self, buzz: Buzz) -> None:
        self.buzz = buzz

    def inspect(self) -> str:
        return str(self.buzz)


@singleton
class ExtendedBuzzInspector(BuzzInspector):
    buzz: Buzz | None = None

    @inject
    def set_buzz(self, buzz: Buzz) -> None:
        self.buzz = buzz

    def inspect(self) -> str:
        return str(self.buzz) + "Extended"


class MegaInspector:
    def __init__(
        self,
        default_inspector: Annotated[BuzzInspector, Named("default")],
        extended_inspector: Annotated[BuzzInspector, Named("extended")],
    ):
        self.default_inspector = default_inspector
        self.extended_inspector = extended_inspector


class InspectorModule(AbstractModule):
    def configure(self) -> None:
        self.bind(Buzz).in_(Scope.SINGLETON)
        self.bind(BuzzInspector).annotated_with("default").to(DefaultBuzzInspector)
        self.bind(BuzzInspector).annotated_with(Named("extended")).to(ExtendedBuzzInspector)


def test_bar_gets_foo_injected_without_any_module():
    injector = create_injector()

    bar = injector.get_instance(Bar)

    assert isinstance(bar, Bar)
    assert isinstance(bar.foo, Foo)


def test_field_injection_uses_fresh_prototype_instances():
    injector = create_injector()

    buzz = injector.get_instance(Buzz)

    assert isinstance(buzz.foo, Foo)
    assert isinstance(buzz.bar, Bar)
    assert isinstance(buzz.bar.foo, Foo)
    assert buzz.bar.foo is not buzz.foo


def test_field_injection_shares_foo_bound_in_singleton_scope():
    injector = create_injector(lambda binder: binder.bind(Foo).in_(Scope.SINGLETON))

    buzz = injector.get_instance(Buzz)

    assert buzz.bar.foo is buzz.foo


def test_independent_graphs_share_only_singleton_dependencies():
    prototype = create_injector()
    first, second = prototype.get_instance(Bar), prototype.get_instance(Bar)
    assert first is not second
    assert first.foo is not second.foo

    shared = create_injector(lambda binder: binder.bind(Foo).in_(Scope.SINGLETON))
    first, second = shared.get_instance(Bar), shared.get_instance(Bar)
    assert first is not second
    assert first.foo is second.foo


class TestQualifiedBindings(unittest.TestCase):
    injector: Injector

    def setUp(self):
        self.injector = create_injector(InspectorModule())

    def test_constructor_receives_one_instance_per_qualified_parameter(self):
        mega = self.injector.get_instance(MegaInspector)

        assert isinstance(mega.default_inspector, DefaultBuzzInspector)
        assert isinstance(mega.extended_inspector, ExtendedBuzzInspector)

    def test_qualified_implementations_produce_distinguishable_results(self):
        mega = self.injector.get_instance(MegaInspector)

        default_result = mega.default_inspector.inspect()
        extended_result = mega.extended_inspector.inspect()

        assert default_result != extended_result
        assert extended_result == default_result + "Extended"

    def test_get_instance_accepts_qualifier_or_key(self):
        by_qualifier = self.injector.get_instance(BuzzInspector, "extended")
        by_key = self.injector.get_instance(Key(BuzzInspector, Named("extended")))

        assert by_qualifier is by_key

    def test_qualified_singletons_have_independent_cache_slots(self):
        default = self.injector.get_instance(BuzzInspector, "default")
        extended = self.injector.get_instance(BuzzInspector, "extended")

        assert default is not extended
        assert default is self.injector.get_instance(BuzzInspector, "default")

    def test_unqualified_interface_is_not_bound(self):
        with pytest.raises(MissingBindingError):
            self.injector.get_instance(BuzzInspector)


class TestInjectionOrder(unittest.TestCase):
    def test_constructor_runs_before_fields_and_setters(self):
        events = []

        class Tracked:
            foo: Inject[Foo]

            def __init__(self, bar: Bar):
                events.append(("constructor", hasattr(self, "foo")))
                self.bar = bar

            @inject
            def set_buzz(self, buzz: Buzz) -> None:
                events.append(("setter", isinstance(self.foo, Foo)))
                self.buzz = buzz

        tracked = create_injector().get_instance(Tracked)

        assert events == [("constructor", False), ("setter", True)]
        assert isinstance(tracked.buzz, Buzz)

    def test_overridden_setter_without_inject_is_not_called(self):
        class Base:
            called = False

            @inject
            def set_foo(self, foo: Foo) -> None:
                self.called = True

        class Child(Base):
            def set_foo(self, foo: Foo) -> None:
                self.called = True

        assert create_injector().get_instance(Base).called
        assert not create_injector().get_instance(Child).called


class TestParameterResolution(unittest.TestCase):
    def test_default_is_used_when_no_binding_exists(self):
        class WithDefault:
            def __init__(self, port: int = 5555):
                self.port = port

        obj = create_injector().get_instance(WithDefault)
        assert obj.port == 5555

    def test_binding_is_preferred_over_default(self):
        class WithDefault:
            def __init__(self, port: Annotated[int, Named("port")] = 5555):
                self.port = port

        injector = create_injector(lambda binder: binder.bind(int).annotated_with("port").to_instance(1234))

        assert injector.get_instance(WithDefault).port == 1234

    def test_unannotated_parameter_without_default_raises(self):
        class RepoNoTypeAnnotation:
            def __init__(self, db):
                self.db = db

        with pytest.raises(ResolutionError) as ctx:
            create_injector().get_instance(RepoNoTypeAnnotation)
        assert "Cannot satisfy parameter 'db'" in str(ctx.value)

    def test_unbound_builtin_parameter_raises_missing_binding(self):
        class NeedsName:
            def __init__(self, name: str):
                self.name = name

        with pytest.raises(MissingBindingError) as ctx:
            create_injector().get_instance(NeedsName)
        assert ctx.value.key == Key(str)

    def test_variadic_parameters_are_ignored(self):
        class Base:
            def __init__(self, value: int = 7, *args, **kwargs):
                self.value = value
                self.args = args
                self.kwargs = kwargs

        class Derived(Base): ...

        child = create_injector().get_instance(Derived)
        assert child.value == 7
        assert child.args == ()
        assert child.kwargs == {}

    def test_positional_only_parameters_are_passed_positionally(self):
        class PositionalOnly:
            def __init__(self, foo: Foo, /):
                self.foo = foo

        assert isinstance(create_injector().get_instance(PositionalOnly).foo, Foo)


class TestProviderBindings(unittest.TestCase):
    def test_provider_parameters_are_injected(self):
        made = []

        def make_bar(foo: Foo) -> Bar:
            made.append(foo)
            return Bar(foo)

        injector = create_injector(lambda binder: binder.bind(Bar).to_provider(make_bar))
        bar = injector.get_instance(Bar)

        assert bar.foo is made[0]

    def test_provider_in_singleton_scope_is_called_once(self):
        calls = []

        def make_foo() -> Foo:
            calls.append(1)
            return Foo()

        injector = create_injector(lambda binder: binder.bind(Foo).to_provider(make_foo).in_(Scope.SINGLETON))

        assert injector.get_instance(Foo) is injector.get_instance(Foo)
        assert len(calls) == 1

    def test_provider_errors_propagate_and_are_not_cached(self):
        calls = []

        def flaky() -> Foo:
            calls.append(1)
            if len(calls) == 1:
                msg = "not yet"
                raise RuntimeError(msg)
            return Foo()

        injector = create_injector(lambda binder: binder.bind(Foo).to_provider(flaky).in_(Scope.SINGLETON))

        with pytest.raises(RuntimeError, match="not yet"):
            injector.get_instance(Foo)
        assert isinstance(injector.get_instance(Foo), Foo)
        assert len(calls) == 2


class TestInjectorApi(unittest.TestCase):
    injector: Injector

    def setUp(self):
        self.injector = create_injector(InspectorModule())

    def test_missing_binding_leaves_injector_usable(self):
        with pytest.raises(MissingBindingError) as ctx:
            self.injector.get_instance(Foo, "unknown")
        assert ctx.value.key == Key(Foo, "unknown")

        assert isinstance(self.injector.get_instance(Bar), Bar)

    def test_injector_is_injectable(self):
        class NeedsInjector:
            def __init__(self, injector: Injector):
                self.injector = injector

        assert self.injector.get_instance(NeedsInjector).injector is self.injector

    def test_get_provider_resolves_on_each_call(self):
        provide_bar = self.injector.get_provider(Bar)
        provide_buzz = self.injector.get_provider(Buzz)

        assert provide_bar() is not provide_bar()
        assert provide_buzz() is provide_buzz()

    def test_get_provider_for_missing_key_fails_immediately(self):
        with pytest.raises(MissingBindingError):
            self.injector.get_provider(BuzzInspector)

    def test_get_binding_reports_explicit_and_implicit_bindings(self):
        explicit = self.injector.get_binding(BuzzInspector, "default")
        implicit = self.injector.get_binding(Bar)

        assert explicit.impl is DefaultBuzzInspector
        assert explicit.scope is Scope.SINGLETON
        assert not explicit.implicit
        assert implicit.implicit
        assert implicit.scope is Scope.PROTOTYPE

    def test_inject_members_fills_fields_and_setters_of_existing_object(self):
        buzz = Buzz()
        self.injector.inject_members(buzz)
        assert isinstance(buzz.foo, Foo)
        assert isinstance(buzz.bar, Bar)

        inspector = DefaultBuzzInspector()
        self.injector.inject_members(inspector)
        assert inspector.buzz is self.injector.get_instance(Buzz)

    def test_bindings_include_the_injector_itself(self):
        keys = {binding.key for binding in self.injector.bindings}

        assert Key(Injector) in keys
        assert Key(BuzzInspector, "default") in keys
        assert Key(Buzz) in keys
