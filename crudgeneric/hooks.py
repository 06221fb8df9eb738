"""Named callback lists used as extension points.

Services and routers run these at fixed points of each operation. A
callback may raise to abort the operation; its exception propagates as is.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

Callback = Callable[..., Any]


class Hooks:
    events: frozenset[str] = frozenset()

    def __init__(self, **callbacks: Callback | Iterable[Callback]):
        self._callbacks: dict[str, list[Callback]] = {event: [] for event in self.events}
        for event, value in callbacks.items():
            for callback in value if isinstance(value, Iterable) else [value]:
                self.add(event, callback)

    def _check_event(self, event: str) -> None:
        if event not in self._callbacks:
            raise ValueError(
                f"Unknown hook event {event!r}. Allowed: {', '.join(sorted(self.events))}"
            )

    def add(self, event: str, callback: Callback) -> Callback:
        self._check_event(event)
        self._callbacks[event].append(callback)
        return callback

    def on(self, event: str):
        """Decorator form of `add`."""
        self._check_event(event)

        def decorator(callback: Callback) -> Callback:
            return self.add(event, callback)

        return decorator

    def run(self, event: str, *args: Any) -> None:
        self._check_event(event)
        for callback in self._callbacks[event]:
            callback(*args)

    def callbacks(self, event: str) -> list[Callback]:
        self._check_event(event)
        return list(self._callbacks[event])


class ServiceHooks(Hooks):
    events = frozenset(
        {
            "before_create",
            "after_create",
            "before_create_all",
            "after_create_all",
            "before_create_for",
            "after_create_for",
            "before_update",
            "after_update",
            "before_delete",
            "after_delete",
        }
    )


class RouterGuards(Hooks):
    events = frozenset(
        {
            "before_read",
            "after_read",
            "before_create",
            "before_update",
            "before_delete",
        }
    )
