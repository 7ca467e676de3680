"""StateGraph - states, trigger transitions, and their structural invariants."""
from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import Any

from tick_vfsm.signals import CHANGED, Notifier
from tick_vfsm.state import AnyState, SpecialState, State, is_valid_state_name
from tick_vfsm.trigger import Trigger
from tick_vfsm.types import (
    DEFAULT_STATE_NAME,
    SNAPSHOT_VERSION,
    GraphDataError,
    SpecialKind,
    StateId,
    TriggerId,
    TriggerKind,
)

logger = logging.getLogger(__name__)


class StateGraph:
    """Arena of states keyed by id, plus a trigger -> target transition map.

    Invariants, kept on every mutation and restored by ``repair()``:

    1. Every transition's trigger is owned by a member state.
    2. Every transition's target is a member state.
    3. A trigger never targets the state that owns it.
    4. A state has at most one inbound edge, counting the entry edge.
    5. At most one Entry and one Exit special state.
    6. State names are valid and pairwise distinct.

    A ``changed`` signal is emitted on ``signals`` after each mutation.
    """

    def __init__(self) -> None:
        self._states: dict[StateId, AnyState] = {}
        self._triggers: dict[TriggerId, Trigger] = {}
        self._owners: dict[TriggerId, StateId] = {}
        self._transitions: dict[TriggerId, StateId] = {}
        self._entry_target: StateId | None = None
        self._repairing: bool = False
        self.signals = Notifier()

    @classmethod
    def default(cls) -> StateGraph:
        """A graph holding just the Entry and Exit special states."""
        graph = cls()
        graph.add_state(SpecialState.entry())
        graph.add_state(SpecialState.exit())
        return graph

    # --- Queries ---

    @property
    def states(self) -> tuple[AnyState, ...]:
        return tuple(self._states.values())

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, state: object) -> bool:
        sid = getattr(state, "id", None)
        return self._states.get(sid) is state  # type: ignore[arg-type]

    def state(self, name: str) -> AnyState | None:
        """Look up a member state by name."""
        for state in self._states.values():
            if state.name == name:
                return state
        return None

    @property
    def entry_state(self) -> SpecialState | None:
        return self._special(SpecialKind.ENTRY)

    @property
    def exit_state(self) -> SpecialState | None:
        return self._special(SpecialKind.EXIT)

    @property
    def transitions(self) -> dict[Trigger, AnyState]:
        return {
            self._triggers[tid]: self._states[sid]
            for tid, sid in self._transitions.items()
        }

    @property
    def triggers(self) -> tuple[Trigger, ...]:
        """Every trigger owned by a member state, in state then trigger order."""
        return tuple(t for s in self._states.values() for t in s.triggers)

    def trigger_owner(self, trigger: Trigger) -> State | None:
        sid = self._owners.get(trigger.id)
        return None if sid is None else self._states[sid]  # type: ignore[return-value]

    def transition_target(self, trigger: Trigger) -> AnyState | None:
        sid = self._transitions.get(trigger.id)
        return None if sid is None else self._states[sid]

    def inbound_trigger(self, state: AnyState) -> Trigger | None:
        """The trigger whose transition targets ``state``, if any."""
        for tid, sid in self._transitions.items():
            if sid == state.id:
                return self._triggers[tid]
        return None

    @property
    def entry_transition_state(self) -> AnyState | None:
        """The state the Entry marker passes through to."""
        if self._entry_target is None:
            return None
        return self._states.get(self._entry_target)

    def has_transition(self, from_state: AnyState, to_state: AnyState) -> bool:
        if from_state not in self or to_state not in self:
            return False
        if isinstance(from_state, SpecialState):
            return (
                from_state.kind is SpecialKind.ENTRY
                and self._entry_target == to_state.id
            )
        return any(
            self._transitions.get(t.id) == to_state.id for t in from_state.triggers
        )

    # --- States ---

    def add_state(self, state: AnyState) -> bool:
        """Append a state. Rejects states owned by a graph and duplicate special kinds."""
        if state in self:
            logger.warning("State %r is already in the graph", state.name)
            return False
        if state._owned:
            logger.warning("State %r already belongs to another graph", state.name)
            return False
        if isinstance(state, SpecialState) and self._special(state.kind) is not None:
            logger.warning("Graph already has a %s state", state.kind.state_name)
            return False
        with self._batch():
            self._attach(state)
            self.repair()
            self._emit_changed()
        return True

    def remove_state(self, state: AnyState) -> bool:
        """Remove a state with every transition from its triggers or into it."""
        if state not in self:
            return False
        with self._batch():
            del self._states[state.id]
            state._owned = False
            state.signals.unsubscribe(CHANGED, self._on_state_changed)
            for trigger in state.triggers:
                self._owners.pop(trigger.id, None)
                self._triggers.pop(trigger.id, None)
            self._prune()
            if self._entry_target == state.id:
                self._entry_target = None
            self._emit_changed()
        return True

    def rename_state(self, state: AnyState, name: str) -> bool:
        if state not in self:
            logger.warning("Cannot rename %r: not in the graph", state.name)
            return False
        if not isinstance(state, State):
            logger.warning("Special state %r cannot be renamed", state.name)
            return False
        if not is_valid_state_name(name):
            logger.warning("Rejected invalid state name %r", name)
            return False
        other = self.state(name)
        if other is not None and other is not state:
            logger.warning("State name %r is already taken", name)
            return False
        state.name = name
        return True

    # --- Transitions ---

    def add_transition(self, trigger: Trigger, target: AnyState) -> bool:
        """Map ``trigger`` to ``target`` if every invariant still holds."""
        problem = self._check_transition(trigger, target)
        if problem is not None:
            logger.warning("Transition is invalid because %s", problem)
            return False
        if self._transitions.get(trigger.id) == target.id:
            return True
        self._transitions[trigger.id] = target.id
        self._emit_changed()
        return True

    def remove_transition(self, trigger: Trigger) -> bool:
        if self._transitions.pop(trigger.id, None) is None:
            return False
        self._emit_changed()
        return True

    def set_entry_transition_state(self, state: AnyState | None) -> bool:
        """Point the Entry marker at ``state`` (None clears it)."""
        if state is None:
            if self._entry_target is not None:
                self._entry_target = None
                self._emit_changed()
            return True
        if state not in self:
            logger.warning("Entry target %r is not in the graph", state.name)
            return False
        if isinstance(state, SpecialState) and state.kind is SpecialKind.ENTRY:
            logger.warning("Entry state cannot be its own entry target")
            return False
        if self.inbound_trigger(state) is not None:
            logger.warning("Entry target %r already has an inbound transition", state.name)
            return False
        if self._entry_target != state.id:
            self._entry_target = state.id
            self._emit_changed()
        return True

    # --- Repair ---

    def repair(self) -> bool:
        """Drop invalid transitions and fix state names. Idempotent.

        Returns True if anything was changed.
        """
        changed = False
        with self._batch():
            self._repairing = True
            try:
                changed = self._repair_transitions()
                changed = self._repair_names() or changed
            finally:
                self._repairing = False
            if changed:
                self._emit_changed()
        return changed

    def _repair_transitions(self) -> bool:
        changed = False
        if self._entry_target is not None:
            target = self._states.get(self._entry_target)
            if target is None or (
                isinstance(target, SpecialState) and target.kind is SpecialKind.ENTRY
            ):
                logger.warning("Dropped dangling entry transition")
                self._entry_target = None
                changed = True

        claimed: set[StateId] = set()
        if self._entry_target is not None:
            claimed.add(self._entry_target)
        kept: dict[TriggerId, StateId] = {}
        for trigger in self.triggers:
            sid = self._transitions.get(trigger.id)
            if sid is None:
                continue
            if sid not in self._states:
                problem = "target state is not in the graph"
            elif sid == self._owners[trigger.id]:
                problem = "trigger owner is the target"
            elif sid in claimed:
                problem = "target state already has an inbound transition"
            else:
                claimed.add(sid)
                kept[trigger.id] = sid
                continue
            logger.warning("Dropped transition of trigger %d: %s", trigger.id, problem)
        if len(kept) != len(self._transitions):
            changed = True
            self._transitions = kept
        return changed

    def _repair_names(self) -> bool:
        changed = False
        seen = {s.name for s in self._states.values() if isinstance(s, SpecialState)}
        for state in self._states.values():
            if not isinstance(state, State):
                continue
            name = state.name
            if not is_valid_state_name(name):
                name = DEFAULT_STATE_NAME
            if name in seen:
                suffix = 2
                while f"{name}{suffix}" in seen:
                    suffix += 1
                name = f"{name}{suffix}"
            seen.add(name)
            if name != state.name:
                logger.warning("Renamed state %r to %r", state.name, name)
                state.name = name
                changed = True
        return changed

    # --- Notifications ---

    def suppress_changes(self, emit_on_exit: bool = False) -> AbstractContextManager[None]:
        """Scoped guard batching edits under zero or one ``changed`` signal."""
        return self.signals.suppress(emit_on_exit, source=self)

    def _batch(self) -> AbstractContextManager[None]:
        return self.signals.suppress(emit_on_exit=True, source=self)

    def _emit_changed(self) -> None:
        self.signals.emit(CHANGED, source=self)

    def _on_state_changed(self, signal_name: str, data: dict[str, Any]) -> None:
        state = data["source"]
        if state not in self:
            return
        with self._batch():
            self._index(state)
            if not self._repairing:
                self.repair()
            self._emit_changed()

    # --- Internal helpers ---

    def _special(self, kind: SpecialKind) -> SpecialState | None:
        for state in self._states.values():
            if isinstance(state, SpecialState) and state.kind is kind:
                return state
        return None

    def _attach(self, state: AnyState) -> None:
        self._states[state.id] = state
        state._owned = True
        state.signals.subscribe(CHANGED, self._on_state_changed)
        self._index(state)

    def _index(self, state: AnyState) -> None:
        """Rebuild trigger ownership for ``state`` and prune orphaned transitions."""
        current = {t.id: t for t in state.triggers}
        for tid, sid in list(self._owners.items()):
            if sid == state.id and tid not in current:
                del self._owners[tid]
                del self._triggers[tid]
        for tid, trigger in current.items():
            self._owners[tid] = state.id
            self._triggers[tid] = trigger
        self._prune()

    def _prune(self) -> None:
        for tid, sid in list(self._transitions.items()):
            if tid not in self._owners or sid not in self._states:
                del self._transitions[tid]

    def _check_transition(self, trigger: Trigger, target: AnyState) -> str | None:
        if target not in self:
            return f"target state {target.name!r} is not in the graph"
        owner = self._owners.get(trigger.id)
        if owner is None:
            return "trigger is not owned by a state in the graph"
        if owner == target.id:
            return "trigger owner is the target"
        if self._entry_target == target.id:
            return f"{target.name!r} is already the entry transition state"
        inbound = self.inbound_trigger(target)
        if inbound is not None and inbound is not trigger:
            return f"{target.name!r} already has an inbound transition"
        return None

    # --- Serialization ---

    def snapshot(self) -> dict[str, Any]:
        """Serialize states, transitions and the entry edge by index."""
        index = {sid: i for i, sid in enumerate(self._states)}
        trigger_refs: dict[TriggerId, list[int]] = {}
        states: list[dict[str, Any]] = []
        for i, state in enumerate(self._states.values()):
            if isinstance(state, SpecialState):
                states.append({
                    "name": state.name,
                    "kind": state.kind.value,
                    "position": state.position,
                })
                continue
            for j, trigger in enumerate(state.triggers):
                trigger_refs[trigger.id] = [i, j]
            states.append({
                "name": state.name,
                "kind": "normal",
                "process_function_name": state.process_function_name,
                "enter_function_name": state.enter_function_name,
                "leave_function_name": state.leave_function_name,
                "position": state.position,
                "triggers": [
                    {
                        "kind": t.kind.value,
                        "duration": t.duration,
                        "check_function_name": t.check_function_name,
                    }
                    for t in state.triggers
                ],
            })
        return {
            "version": SNAPSHOT_VERSION,
            "states": states,
            "transitions": [
                {"trigger": trigger_refs[tid], "target": index[sid]}
                for tid, sid in self._transitions.items()
            ],
            "entry_transition_state": (
                None if self._entry_target is None else index[self._entry_target]
            ),
        }

    def restore(self, data: dict[str, Any]) -> None:
        """Replace the graph's contents with snapshot data, then repair.

        Raises GraphDataError (leaving the graph untouched) on an unsupported
        version or a reference that cannot be resolved.
        """
        version = data.get("version")
        if version != SNAPSHOT_VERSION:
            raise GraphDataError(
                f"Unsupported snapshot version {version!r}, expected {SNAPSHOT_VERSION}"
            )
        states = [_state_from_data(entry) for entry in data.get("states", [])]

        transitions: dict[TriggerId, StateId] = {}
        for entry in data.get("transitions", []):
            try:
                si, ti = entry["trigger"]
                trigger = _at(_at(states, si).triggers, ti)
                target = _at(states, entry["target"])
            except (KeyError, IndexError, TypeError, ValueError) as exc:
                raise GraphDataError(f"Broken transition reference {entry!r}") from exc
            transitions[trigger.id] = target.id

        entry_target: StateId | None = None
        entry_ref = data.get("entry_transition_state")
        if entry_ref is not None:
            try:
                entry_target = _at(states, entry_ref).id
            except (IndexError, TypeError) as exc:
                raise GraphDataError(f"Broken entry reference {entry_ref!r}") from exc

        with self._batch():
            for state in self._states.values():
                state.signals.unsubscribe(CHANGED, self._on_state_changed)
                state._owned = False
            self._states.clear()
            self._triggers.clear()
            self._owners.clear()
            self._transitions = {}
            for state in states:
                if isinstance(state, SpecialState) and self._special(state.kind) is not None:
                    logger.warning("Dropped duplicate %s state", state.kind.state_name)
                    continue
                self._attach(state)
            self._transitions = {
                tid: sid for tid, sid in transitions.items() if tid in self._owners
            }
            self._entry_target = entry_target
            self.repair()
            self._emit_changed()


def _at(items: Any, index: Any) -> Any:
    """Index into ``items`` without Python's negative wrap-around."""
    if not isinstance(index, int) or index < 0:
        raise IndexError(index)
    return items[index]


def _state_from_data(entry: dict[str, Any]) -> AnyState:
    try:
        kind = entry["kind"]
        if kind == "normal":
            return State(
                name=entry.get("name", DEFAULT_STATE_NAME),
                process_function_name=entry.get("process_function_name"),
                enter_function_name=entry.get("enter_function_name"),
                leave_function_name=entry.get("leave_function_name"),
                position=entry.get("position"),
                triggers=[_trigger_from_data(t) for t in entry.get("triggers", [])],
            )
        return SpecialState(SpecialKind(kind), entry.get("position"))
    except (KeyError, TypeError, ValueError) as exc:
        raise GraphDataError(f"Invalid state data {entry!r}") from exc


def _trigger_from_data(entry: dict[str, Any]) -> Trigger:
    kind = TriggerKind(entry["kind"])
    if kind is TriggerKind.TIMER:
        return Trigger(kind=kind, duration=float(entry["duration"]))
    return Trigger(kind=kind, check_function_name=entry.get("check_function_name"))
