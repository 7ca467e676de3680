"""Callback resolution: named host methods to typed callables."""
from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)

ProcessFn = Callable[[float], None]
ConditionFn = Callable[[], bool]
ActionFn = Callable[[], None]


class Resolver(Protocol):
    """Looks up callbacks by name. Returns None when a name cannot be bound."""

    def process(self, name: str) -> ProcessFn | None: ...

    def condition(self, name: str) -> ConditionFn | None: ...

    def action(self, name: str) -> ActionFn | None: ...


class CallbackRegistry:
    """Maps callback name strings to callables registered ahead of time."""

    def __init__(self) -> None:
        self._process: dict[str, ProcessFn] = {}
        self._conditions: dict[str, ConditionFn] = {}
        self._actions: dict[str, ActionFn] = {}

    # --- Registration ---

    def register_process(self, name: str, fn: ProcessFn) -> None:
        """Register a per-tick callback: (dt) -> None. Overwrites if already registered."""
        self._process[name] = fn

    def register_condition(self, name: str, fn: ConditionFn) -> None:
        """Register a trigger predicate: () -> bool. Overwrites if already registered."""
        self._conditions[name] = fn

    def register_action(self, name: str, fn: ActionFn) -> None:
        """Register an enter/leave callback: () -> None. Overwrites if already registered."""
        self._actions[name] = fn

    def has(self, name: str) -> bool:
        return name in self._process or name in self._conditions or name in self._actions

    def names(self) -> list[str]:
        return [*self._process, *self._conditions, *self._actions]

    # --- Resolver ---

    def process(self, name: str) -> ProcessFn | None:
        return _lookup(self._process, name, "process")

    def condition(self, name: str) -> ConditionFn | None:
        return _lookup(self._conditions, name, "condition")

    def action(self, name: str) -> ActionFn | None:
        return _lookup(self._actions, name, "action")


def _lookup(table: dict[str, Any], name: str, role: str) -> Any:
    fn = table.get(name)
    if fn is None:
        logger.warning("%s callback %r is not registered", role.capitalize(), name)
    return fn


class HostResolver:
    """Resolves callbacks by exact attribute name on a live host object.

    A ``None`` host means the host cannot be introspected yet (still
    loading); every lookup then returns None without a warning.
    """

    def __init__(self, host: Any) -> None:
        self._host = host

    @property
    def host(self) -> Any:
        return self._host

    def process(self, name: str) -> ProcessFn | None:
        return self._resolve(name, 1, "process")

    def condition(self, name: str) -> ConditionFn | None:
        return self._resolve(name, 0, "condition")

    def action(self, name: str) -> ActionFn | None:
        return self._resolve(name, 0, "action")

    def _resolve(self, name: str, arity: int, role: str) -> Any:
        if self._host is None:
            logger.debug("Host not available, %s callback %r left unbound", role, name)
            return None
        fn = getattr(self._host, name, None)
        if fn is None or not callable(fn):
            logger.warning(
                "%s function %r not found on %s",
                role.capitalize(), name, type(self._host).__name__,
            )
            return None
        if not _accepts(fn, arity):
            logger.warning(
                "Invalid parameters for %s function %r: expected %d positional argument(s)",
                role, name, arity,
            )
            return None
        return fn


def _accepts(fn: Callable[..., Any], arity: int) -> bool:
    """True if ``fn`` can be called with exactly ``arity`` positional arguments."""
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        # Builtins without signature metadata.
        return True
    try:
        sig.bind(*([None] * arity))
    except TypeError:
        return False
    return True
