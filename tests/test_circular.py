from __future__ import annotations

import unittest
from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import Protocol

import pytest

from injectkit import (
    AbstractModule,
    Injector,
    ResolutionError,
    UnresolvableCycleError,
    create_injector,
    inject,
    singleton,
)
from injectkit._proxy import DeferredProxy, unwrap


class Yin(ABC):
    @abstractmethod
    def get_yang(self) -> Yang: ...


class Yang(ABC):
    @abstractmethod
    def get_yin(self) -> Yin: ...


@singleton
class DefaultYin(Yin):
    def __init__(self, yang: Yang):
        self._yang = yang

    def get_yang(self) -> Yang:
        return self._yang


@singleton
class DefaultYang(Yang):
    def __init__(self, yin: Yin):
        self._yin = yin

    def get_yin(self) -> Yin:
        return self._yin


class PrototypeYin(Yin):
    def __init__(self, yang: Yang):
        self._yang = yang

    def get_yang(self) -> Yang:
        return self._yang


class PrototypeYang(Yang):
    def __init__(self, yin: Yin):
        self._yin = yin

    def get_yin(self) -> Yin:
        return self._yin


class ImpatientYang(Yang):
    def __init__(self, yin: Yin):
        # touches the deferred proxy before DefaultYin exists
        self._partner = yin.get_yang()

    def get_yin(self) -> Yin:
        raise NotImplementedError


class TaoismModule(AbstractModule):
    def configure(self) -> None:
        self.bind(Yin).to(DefaultYin)
        self.bind(Yang).to(DefaultYang)


class Chicken:
    def __init__(self, egg: Egg):
        self.egg = egg


class Egg:
    def __init__(self, chicken: Chicken):
        self.chicken = chicken


class Parent:
    child: Child | None = None

    @inject
    def set_child(self, child: Child) -> None:
        self.child = child


class Child:
    def __init__(self, parent: Parent):
        self.parent = parent


class Ping(Protocol):
    def pong(self) -> Pong: ...


class Pong(Protocol):
    def ping(self) -> Ping: ...


class PingImpl:
    def __init__(self, pong: Pong):
        self._pong = pong

    def pong(self) -> Pong:
        return self._pong


class PongImpl:
    def __init__(self, ping: Ping):
        self._ping = ping

    def ping(self) -> Ping:
        return self._ping


class TestSingletonCycle(unittest.TestCase):
    injector: Injector

    def setUp(self):
        self.injector = create_injector(TaoismModule())

    def test_second_resolved_root_is_shared_and_first_is_seen_through_proxy(self):
        yin = self.injector.get_instance(Yin)
        yang = self.injector.get_instance(Yang)

        assert yin.get_yang() is not None
        assert yang.get_yin() is not None
        assert yang.get_yin() is not yin
        assert yin.get_yang() is yang

    def test_proxy_forwards_to_the_finished_instance(self):
        yin = self.injector.get_instance(Yin)
        yang = self.injector.get_instance(Yang)

        proxy = yang.get_yin()
        assert type(proxy) is DeferredProxy
        assert unwrap(proxy) is yin
        assert proxy.get_yang() is yang
        assert isinstance(proxy, Yin)
        assert isinstance(proxy, DefaultYin)

    def test_resolving_yang_first_mirrors_the_asymmetry(self):
        yang = self.injector.get_instance(Yang)
        yin = self.injector.get_instance(Yin)

        assert yang.get_yin() is yin
        assert yin.get_yang() is not yang
        assert unwrap(yin.get_yang()) is yang


def test_prototype_cycle_is_closed_within_one_graph():
    injector = create_injector(
        lambda binder: (binder.bind(Yin).to(PrototypeYin), binder.bind(Yang).to(PrototypeYang)),
    )

    first = injector.get_instance(Yin)
    second = injector.get_instance(Yin)

    assert first is not second
    assert unwrap(first.get_yang().get_yin()) is first
    assert unwrap(second.get_yang().get_yin()) is second


def test_protocol_typed_cycle_is_proxied():
    injector = create_injector(lambda binder: (binder.bind(Ping).to(PingImpl), binder.bind(Pong).to(PongImpl)))

    ping = injector.get_instance(Ping)

    assert isinstance(ping, PingImpl)
    assert unwrap(ping.pong().ping()) is ping


def test_concrete_cycle_is_unresolvable():
    injector = create_injector()

    with pytest.raises(UnresolvableCycleError) as ctx:
        injector.get_instance(Chicken)

    assert "Chicken -> Egg -> Chicken" in str(ctx.value)
    assert ctx.value.path[0].type is Chicken


def test_injector_stays_usable_after_a_cycle_error():
    injector = create_injector(TaoismModule())

    with pytest.raises(UnresolvableCycleError):
        injector.get_instance(Egg)

    assert isinstance(injector.get_instance(Yin), DefaultYin)


def test_using_deferred_proxy_during_construction_fails():
    injector = create_injector(lambda binder: (binder.bind(Yin).to(DefaultYin), binder.bind(Yang).to(ImpatientYang)))

    with pytest.raises(ResolutionError, match="circular dependency"):
        injector.get_instance(Yin)


def test_setter_cycle_receives_the_instance_under_construction():
    injector = create_injector()

    parent = injector.get_instance(Parent)

    assert isinstance(parent.child, Child)
    assert parent.child.parent is parent


class Playlist(ABC):
    @abstractmethod
    def __len__(self) -> int: ...

    @abstractmethod
    def __iter__(self) -> Iterator[str]: ...

    @abstractmethod
    def __contains__(self, track: object) -> bool: ...


class Player(ABC):
    @abstractmethod
    def playlist(self) -> Playlist: ...


@singleton
class DefaultPlaylist(Playlist):
    def __init__(self, player: Player):
        self.player = player
        self.tracks = ["intro", "outro"]

    def __len__(self) -> int:
        return len(self.tracks)

    def __iter__(self) -> Iterator[str]:
        return iter(self.tracks)

    def __contains__(self, track: object) -> bool:
        return track in self.tracks


@singleton
class DefaultPlayer(Player):
    def __init__(self, playlist: Playlist):
        self._playlist = playlist

    def playlist(self) -> Playlist:
        return self._playlist


class EagerPlayer(Player):
    def __init__(self, playlist: Playlist):
        self.size = len(playlist)

    def playlist(self) -> Playlist:
        raise NotImplementedError


class TestDeferredProxyOperations(unittest.TestCase):
    def test_filled_proxy_forwards_container_operations(self):
        injector = create_injector(
            lambda binder: (binder.bind(Playlist).to(DefaultPlaylist), binder.bind(Player).to(DefaultPlayer))
        )

        playlist = injector.get_instance(Playlist)
        proxy = playlist.player.playlist()

        assert isinstance(proxy, DeferredProxy)
        assert unwrap(proxy) is playlist
        assert len(proxy) == 2
        assert list(proxy) == ["intro", "outro"]
        assert "intro" in proxy
        assert "bridge" not in proxy
        assert not callable(proxy)

    def test_pending_proxy_rejects_container_operations(self):
        injector = create_injector(
            lambda binder: (binder.bind(Playlist).to(DefaultPlaylist), binder.bind(Player).to(EagerPlayer))
        )

        with pytest.raises(ResolutionError, match="circular dependency"):
            injector.get_instance(Playlist)
