"""State variants: Normal states with triggers and callbacks, Entry/Exit markers."""
from __future__ import annotations

import itertools
import logging
import re
from typing import TYPE_CHECKING, Any, Union

from tick_vfsm.signals import CHANGED, Notifier
from tick_vfsm.types import DEFAULT_STATE_NAME, SpecialKind, StateId

if TYPE_CHECKING:
    from tick_vfsm.binding import ActionFn, ProcessFn, Resolver
    from tick_vfsm.trigger import Trigger

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"[A-Za-z0-9_]+")
_next_id = itertools.count()


def is_valid_state_name(name: Any) -> bool:
    return isinstance(name, str) and _NAME_RE.fullmatch(name) is not None


class _BaseState:
    """Identity, position and change reporting shared by both variants."""

    def __init__(self, name: str, position: Any = None) -> None:
        self.id: StateId = next(_next_id)
        self._name = name
        self._position = position
        self._owned = False
        self.signals = Notifier()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._name!r}, id={self.id})"

    @property
    def name(self) -> str:
        return self._name

    @property
    def position(self) -> Any:
        """Opaque editor data; never read at runtime."""
        return self._position

    @position.setter
    def position(self, value: Any) -> None:
        self._position = value
        self._changed()

    @property
    def triggers(self) -> tuple[Trigger, ...]:
        return ()

    def _changed(self) -> None:
        self.signals.emit(CHANGED, source=self)


class State(_BaseState):
    """A named node owning an ordered list of triggers and optional callbacks.

    ``process_function_name`` is called with ``dt`` every tick while the
    state is current. ``enter_function_name`` and ``leave_function_name``
    are called with no arguments when the executor enters or leaves it.
    """

    def __init__(
        self,
        name: str = DEFAULT_STATE_NAME,
        process_function_name: str | None = None,
        triggers: list[Trigger] | None = None,
        position: Any = None,
        enter_function_name: str | None = None,
        leave_function_name: str | None = None,
    ) -> None:
        super().__init__(name, position)
        self._process_function_name = process_function_name
        self._enter_function_name = enter_function_name
        self._leave_function_name = leave_function_name
        self._triggers: list[Trigger] = []
        self._process: ProcessFn | None = None
        self._on_enter: ActionFn | None = None
        self._on_leave: ActionFn | None = None
        for trigger in triggers or ():
            self.add_trigger(trigger)

    @classmethod
    def default(cls) -> State:
        return cls()

    @_BaseState.name.setter
    def name(self, value: str) -> None:
        if not is_valid_state_name(value):
            logger.warning("Rejected invalid state name %r", value)
            return
        self._name = value
        self._changed()

    @property
    def process_function_name(self) -> str | None:
        return self._process_function_name

    @process_function_name.setter
    def process_function_name(self, value: str | None) -> None:
        self._process_function_name = value
        self._changed()

    @property
    def enter_function_name(self) -> str | None:
        return self._enter_function_name

    @enter_function_name.setter
    def enter_function_name(self, value: str | None) -> None:
        self._enter_function_name = value
        self._changed()

    @property
    def leave_function_name(self) -> str | None:
        return self._leave_function_name

    @leave_function_name.setter
    def leave_function_name(self, value: str | None) -> None:
        self._leave_function_name = value
        self._changed()

    @property
    def triggers(self) -> tuple[Trigger, ...]:
        return tuple(self._triggers)

    # --- Triggers ---

    def add_trigger(self, trigger: Trigger) -> None:
        """Append a trigger. A trigger may belong to only one state."""
        if trigger._owned:
            raise ValueError(f"Trigger {trigger.id} already belongs to a state")
        trigger._owned = True
        self._triggers.append(trigger)
        self._changed()

    def remove_trigger(self, trigger: Trigger) -> bool:
        if trigger not in self._triggers:
            return False
        self._triggers.remove(trigger)
        trigger._owned = False
        trigger.reset()
        self._changed()
        return True

    def update_triggers(self, dt: float) -> Trigger | None:
        """Evaluate every trigger in insertion order; return the first that fired.

        Later triggers that fired in the same pass are discarded (reset).
        """
        first: Trigger | None = None
        for trigger in self._triggers:
            if trigger.evaluate(dt):
                if first is None:
                    first = trigger
                else:
                    trigger.reset()
        return first

    # --- Runtime ---

    def bind(self, resolver: Resolver) -> None:
        """Resolve callbacks and trigger predicates. Failures leave them unset."""
        self._process = None
        self._on_enter = None
        self._on_leave = None
        if self._process_function_name:
            self._process = resolver.process(self._process_function_name)
        if self._enter_function_name:
            self._on_enter = resolver.action(self._enter_function_name)
        if self._leave_function_name:
            self._on_leave = resolver.action(self._leave_function_name)
        for trigger in self._triggers:
            trigger.bind(resolver)

    @property
    def is_bound(self) -> bool:
        return self._process is not None

    def process(self, dt: float) -> None:
        if self._process is not None:
            self._process(dt)

    def enter(self) -> None:
        if self._on_enter is not None:
            self._on_enter()

    def leave(self) -> None:
        if self._on_leave is not None:
            self._on_leave()


class SpecialState(_BaseState):
    """Entry or Exit marker. Owns no triggers; its name is its kind."""

    def __init__(self, kind: SpecialKind = SpecialKind.ENTRY, position: Any = None) -> None:
        super().__init__(kind.state_name, position)
        self._kind = kind

    @classmethod
    def default(cls) -> SpecialState:
        return cls()

    @classmethod
    def entry(cls, position: Any = None) -> SpecialState:
        return cls(SpecialKind.ENTRY, position)

    @classmethod
    def exit(cls, position: Any = None) -> SpecialState:
        return cls(SpecialKind.EXIT, position)

    @property
    def kind(self) -> SpecialKind:
        return self._kind


AnyState = Union[State, SpecialState]
