from __future__ import annotations

import inspect
import typing
from typing import Any, Protocol, cast, get_type_hints

from ._errors import IncompatibleBindingError


if hasattr(typing, "is_protocol"):

    def is_protocol(tp: object) -> bool:
        return inspect.isclass(tp) and typing.is_protocol(tp)

else:

    def is_protocol(tp: object) -> bool:
        # typing.is_protocol() only exists from 3.13
        return (
            inspect.isclass(tp) and issubclass(tp, cast("type", Protocol)) and bool(getattr(tp, "_is_protocol", False))
        )


def is_capability(tp: object) -> bool:
    """True for types a deferred proxy may stand in for: ABCs with abstract members, or Protocols."""
    return inspect.isclass(tp) and (inspect.isabstract(tp) or is_protocol(tp))


def is_concrete(tp: object) -> bool:
    return inspect.isclass(tp) and not is_capability(tp)


def validate_implementation(bound: type, impl: object) -> None:
    """Check that ``impl`` may be bound to ``bound``.

    Ordinary classes and ABCs require a subclass. Protocols accept a nominal
    subclass or any class that conforms structurally.
    """
    if not inspect.isclass(impl):
        msg = f"Cannot bind {bound.__qualname__} to {impl!r}: not a class"
        raise IncompatibleBindingError(msg)

    if is_protocol(bound):
        if bound not in impl.__mro__:
            _check_conformance(bound, impl)
    elif not issubclass(impl, bound):
        msg = f"Cannot bind {bound.__qualname__} to {impl.__qualname__}: not a subclass"
        raise IncompatibleBindingError(msg)


def validate_instance(bound: type, instance: object) -> None:
    if is_protocol(bound):
        _check_conformance(bound, type(instance))
    elif not isinstance(instance, bound):
        msg = f"Cannot bind {bound.__qualname__} to instance {instance!r}: wrong type"
        raise IncompatibleBindingError(msg)


def _check_conformance(protocol: type, impl: type) -> None:
    missing = [name for name in _protocol_members(protocol) if not hasattr(impl, name)]
    problems = []
    for name, expected in vars(protocol).items():
        if name.startswith("_") or not inspect.isfunction(expected) or name in missing:
            continue
        problem = _method_problem(name, expected, getattr(impl, name))
        if problem:
            problems.append(problem)

    if not missing and not problems:
        return

    details = []
    if missing:
        details.append(f"missing members: {', '.join(missing)}")
    if problems:
        details.append(f"signature mismatches: {', '.join(problems)}")
    msg = f"{impl.__qualname__} does not conform to protocol {protocol.__qualname__}: {'; '.join(details)}"
    raise IncompatibleBindingError(msg)


def _protocol_members(protocol: type) -> list[str]:
    try:
        names = list(get_type_hints(protocol))
    except (NameError, TypeError):
        names = []
    for name, attr in vars(protocol).items():
        if inspect.isfunction(attr) and name not in names:
            names.append(name)
    return [name for name in names if not name.startswith("_")]


def _method_problem(name: str, expected: Any, actual: Any) -> str | None:
    if not callable(actual):
        return f"{name} is not callable"

    try:
        expected_sig = inspect.signature(expected)
        actual_sig = inspect.signature(actual)
    except (TypeError, ValueError) as e:
        return f"{name} signatures cannot be compared ({e})"

    wanted, offered = _required_positionals(expected_sig), _required_positionals(actual_sig)
    if offered < wanted:
        return f"{name} has fewer required positional params ({offered}) than the protocol ({wanted})"

    actual_ret = _return_annotation(actual, actual_sig)
    expected_ret = _return_annotation(expected, expected_sig)
    if not _returns_compatible(actual_ret, expected_ret):
        return f"{name} return type {actual_ret!r} is not compatible with {expected_ret!r}"
    return None


def _return_annotation(func: Any, sig: inspect.Signature) -> object:
    # resolves postponed (string) annotations; a name that cannot be resolved stays a string
    try:
        hints = get_type_hints(func)
    except (NameError, TypeError):
        return sig.return_annotation
    return hints.get("return", inspect.Signature.empty)


def _required_positionals(sig: inspect.Signature) -> int:
    positional = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    return len(
        [p for p in sig.parameters.values() if p.name != "self" and p.kind in positional and p.default is p.empty]
    )


def _returns_compatible(actual: object, expected: object) -> bool:
    unchecked = (inspect.Signature.empty, Any)
    if actual in unchecked or expected in unchecked or actual == expected:
        return True
    if isinstance(actual, str) or isinstance(expected, str):
        return True
    if is_protocol(expected):
        # structural return types are not checked recursively
        return True
    if isinstance(actual, type) and isinstance(expected, type):
        return issubclass(actual, expected)
    return False
