"""Dispatch registry: how a runner process finds the live scheduler.

The host's bootstrap file provides its scheduler under a well-known key.
The runner executes that file, then resolves the key:

    # bootstrap.py
    from offcron import dispatch
    dispatch.provide_factory("offcron/main/scheduler", build_scheduler)
"""

from collections.abc import Callable
from typing import Any

_instances: dict[str, Any] = {}
_factories: dict[str, Callable[[], Any]] = {}


def default_dispatch_key(instance_id: str) -> str:
    return f"offcron/{instance_id}/scheduler"


def provide(key: str, value: Any) -> None:
    """Provide a ready instance under `key`."""
    if not key:
        raise ValueError("dispatch key cannot be empty")
    _factories.pop(key, None)
    _instances[key] = value


def provide_factory(key: str, factory: Callable[[], Any]) -> None:
    """Provide a factory; it is called once, on first resolve."""
    if not key:
        raise ValueError("dispatch key cannot be empty")
    _instances.pop(key, None)
    _factories[key] = factory


def resolve(key: str) -> Any | None:
    """Return what was provided under `key`, or None."""
    if key in _instances:
        return _instances[key]
    factory = _factories.pop(key, None)
    if factory is None:
        return None
    _instances[key] = factory()
    return _instances[key]


def forget(key: str) -> None:
    _instances.pop(key, None)
    _factories.pop(key, None)


def clear() -> None:
    _instances.clear()
    _factories.clear()
