"""Executor - tick-driven runtime cursor over a StateGraph."""
from __future__ import annotations

import logging
from typing import Any

from tick_vfsm.binding import CallbackRegistry, HostResolver, Resolver
from tick_vfsm.graph import StateGraph
from tick_vfsm.signals import CHANGED, TRANSITIONED, Notifier
from tick_vfsm.state import AnyState, SpecialState, State
from tick_vfsm.types import GraphDataError, SpecialKind, UnknownStateError

logger = logging.getLogger(__name__)


class Executor:
    """Runs a StateGraph against a host object, one ``tick(dt)`` at a time.

    The executor is ``Unbound`` until ``start()`` or ``change_to()`` sets a
    current state. Each transition emits ``transitioned`` on ``signals``
    with ``previous`` and ``current`` in the payload.

    ``host`` is either a resolver (``CallbackRegistry``, ``HostResolver``)
    or any object whose methods are looked up by name.
    """

    def __init__(self, graph: StateGraph, host: Any = None) -> None:
        self._graph = graph
        self._resolver = _as_resolver(host)
        self._current: AnyState | None = None
        self.signals = Notifier()
        graph.signals.subscribe(CHANGED, self._on_graph_changed)

    @property
    def graph(self) -> StateGraph:
        return self._graph

    @property
    def current_state(self) -> AnyState | None:
        return self._current

    def _set_current(self, state: AnyState | None) -> None:
        if state is not None and state not in self._graph:
            raise UnknownStateError(
                state, f"Current state {state.name!r} must be in the graph's states"
            )
        self._current = state

    @property
    def is_running(self) -> bool:
        return self._current is not None

    @property
    def is_finished(self) -> bool:
        """True while parked on the Exit state."""
        state = self._current
        return isinstance(state, SpecialState) and state.kind is SpecialKind.EXIT

    # --- Binding ---

    def bind(self, host: Any = None) -> None:
        """Resolve every state's and trigger's callbacks (against ``host`` if given)."""
        if host is not None:
            self._resolver = _as_resolver(host)
        for state in self._graph.states:
            if isinstance(state, State):
                state.bind(self._resolver)

    # --- Lifecycle ---

    def start(self) -> bool:
        entry = self._graph.entry_state
        if entry is None:
            logger.warning("Unable to start the state machine because it has no Entry state")
            return False
        self.bind()
        self.reset()
        self.change_to(entry)
        target = self._graph.entry_transition_state
        if target is not None:
            self.change_to(target)
        return True

    def change_to(self, target: AnyState, force: bool = False) -> bool:
        """Move to ``target``. Without ``force`` an edge from the current state is required."""
        if target not in self._graph:
            raise UnknownStateError(
                target, f"Target state {target.name!r} is not in the graph"
            )
        self._drop_removed_current()
        previous = self._current
        if (
            previous is not None
            and not force
            and not self._graph.has_transition(previous, target)
        ):
            logger.warning(
                "Attempted to perform invalid state transition from %r to %r",
                previous.name, target.name,
            )
            return False

        if isinstance(previous, State):
            for trigger in previous.triggers:
                trigger.reset()
            previous.leave()

        logger.debug("Transitioning to %r", target.name)
        self._set_current(target)
        if isinstance(target, State):
            target.enter()

        self.signals.emit(TRANSITIONED, previous=previous, current=target)
        return True

    def tick(self, dt: float) -> None:
        """Advance the current state by ``dt``. At most one transition per tick."""
        self._drop_removed_current()
        state = self._current
        if state is None:
            return

        if isinstance(state, SpecialState):
            target = self._graph.entry_transition_state
            if state.kind is SpecialKind.ENTRY and target is not None:
                self.change_to(target)
            return

        state.process(dt)
        if self._current is not state:
            # The process callback moved the machine itself.
            return

        fired = state.update_triggers(dt)
        if fired is None:
            return
        fired.reset()
        target = self._graph.transition_target(fired)
        if target is not None:
            self.change_to(target)

    def reset(self) -> None:
        """Reset every trigger in the graph and return to ``Unbound``."""
        for trigger in self._graph.triggers:
            trigger.reset()
        self._current = None

    def close(self) -> None:
        """Stop listening to the graph."""
        self._graph.signals.unsubscribe(CHANGED, self._on_graph_changed)

    def _on_graph_changed(self, signal_name: str, data: dict[str, Any]) -> None:
        self._drop_removed_current()

    def _drop_removed_current(self) -> None:
        """Reset if the current state left the graph, even during a quiet batch."""
        state = self._current
        if state is not None and state not in self._graph:
            logger.warning("Current state %r was removed from the graph", state.name)
            self.reset()

    # --- Serialization ---

    def snapshot(self) -> dict[str, Any]:
        """Serialize the current state index and every trigger's progress."""
        self._drop_removed_current()
        current = None
        if self._current is not None:
            current = self._graph.states.index(self._current)
        return {
            "current_state": current,
            "triggers": [[t.elapsed, t.fired] for t in self._graph.triggers],
        }

    def restore(self, data: dict[str, Any]) -> None:
        """Restore runtime progress. The graph must match the snapshot's graph."""
        states = self._graph.states
        triggers = self._graph.triggers
        progress = data.get("triggers", [])
        if len(progress) != len(triggers):
            raise GraphDataError(
                f"Trigger count mismatch: snapshot has {len(progress)}, graph has {len(triggers)}"
            )
        current = data.get("current_state")
        if current is not None and (
            not isinstance(current, int) or not 0 <= current < len(states)
        ):
            raise GraphDataError(f"Current state index {current!r} out of range")

        for trigger, (elapsed, fired) in zip(triggers, progress):
            trigger.restore_progress(float(elapsed), bool(fired))
        self._set_current(None if current is None else states[current])


def _as_resolver(host: Any) -> Resolver:
    if isinstance(host, (CallbackRegistry, HostResolver)):
        return host
    return HostResolver(host)
