"""Patrol Guard - headless tick-vfsm demo.

A guard patrols until it spots an intruder, chases for a while, gives up,
and rests before heading home. The graph is saved to JSON, reloaded, and
run against a live host object from a fixed-timestep loop.

Run:
    python main.py
"""
from __future__ import annotations

import json
import logging
import random

from tick_vfsm import (
    Executor,
    SpecialState,
    State,
    StateGraph,
    Trigger,
    make_vfsm_system,
)

TPS = 10
MAX_TICKS = 400

# ---------------------------------------------------------------------------
# Host
# ---------------------------------------------------------------------------


class Guard:
    """Host object. State and trigger callbacks are resolved by name."""

    def __init__(self, rng: random.Random) -> None:
        self.rng = rng
        self.distance = 0.0
        self.stamina = 3.0
        self.shifts = 0

    def patrol(self, dt: float) -> None:
        self.distance += dt * 1.5

    def chase(self, dt: float) -> None:
        self.distance += dt * 4.0
        self.stamina -= dt

    def rest(self, dt: float) -> None:
        self.stamina = min(3.0, self.stamina + dt * 2.0)

    def sees_intruder(self) -> bool:
        return self.rng.random() < 0.05

    def exhausted(self) -> bool:
        return self.stamina <= 0.0

    def shout(self) -> None:
        print("  guard: Halt!")

    def clock_out(self) -> None:
        self.shifts += 1


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------


def build_graph() -> StateGraph:
    graph = StateGraph()
    spotted = Trigger.condition("sees_intruder")
    tired = Trigger.condition("exhausted")
    rested = Trigger.timer(2.0)

    patrol = State("Patrol", process_function_name="patrol", triggers=[spotted])
    chase = State(
        "Chase", process_function_name="chase", enter_function_name="shout", triggers=[tired]
    )
    rest = State(
        "Rest", process_function_name="rest", leave_function_name="clock_out", triggers=[rested]
    )

    with graph.suppress_changes(emit_on_exit=True):
        graph.add_state(SpecialState.entry(position=(0, 0)))
        for i, state in enumerate((patrol, chase, rest)):
            state.position = (120 * (i + 1), 0)
            graph.add_state(state)
        graph.add_state(SpecialState.exit(position=(480, 0)))
        graph.set_entry_transition_state(patrol)
        graph.add_transition(spotted, chase)
        graph.add_transition(tired, rest)
        graph.add_transition(rested, graph.exit_state)
    return graph


def main() -> None:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    saved = json.dumps(build_graph().snapshot(), indent=2)
    graph = StateGraph()
    graph.restore(json.loads(saved))
    print(f"Loaded {len(graph)} states, {len(graph.transitions)} transitions")

    guard = Guard(random.Random(7))
    executor = Executor(graph, guard)
    ticks = {"n": 0}

    def on_transition(signal_name: str, data: dict) -> None:
        previous = data["previous"]
        frm = previous.name if previous is not None else "-"
        print(f"[tick {ticks['n']:>3}] {frm} -> {data['current'].name}")

    executor.signals.subscribe("transitioned", on_transition)
    executor.start()

    system = make_vfsm_system(executor)
    dt = 1.0 / TPS
    while ticks["n"] < MAX_TICKS and not executor.is_finished:
        ticks["n"] += 1
        system(None, _Ctx(dt))

    print(
        f"Done after {ticks['n']} ticks: walked {guard.distance:.1f}m, "
        f"{guard.shifts} shift(s) completed"
    )


class _Ctx:
    """Minimal tick context carrying the fixed timestep."""

    def __init__(self, dt: float) -> None:
        self.dt = dt


if __name__ == "__main__":
    main()
