"""Trigger - a timer or predicate condition that fires once until reset."""
from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tick_vfsm.types import DEFAULT_TRIGGER_DURATION, TriggerId, TriggerKind

if TYPE_CHECKING:
    from tick_vfsm.binding import ConditionFn, Resolver

_next_id = itertools.count()


@dataclass(eq=False)
class Trigger:
    """Condition owned by exactly one state.

    Attributes:
        kind: Timer triggers accumulate ``dt`` until ``duration`` is reached.
            Condition triggers poll a predicate bound from the host.
        duration: Seconds until a timer fires (timer only).
        check_function_name: Host predicate name (condition only).

    Triggers compare by identity; ``id`` is unique for the process lifetime.
    """

    kind: TriggerKind = TriggerKind.TIMER
    duration: float = DEFAULT_TRIGGER_DURATION
    check_function_name: str | None = None
    id: TriggerId = field(default_factory=lambda: next(_next_id), init=False)
    _elapsed: float = field(default=0.0, init=False, repr=False)
    _fired: bool = field(default=False, init=False, repr=False)
    _check: ConditionFn | None = field(default=None, init=False, repr=False)
    _owned: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.duration < 0:
            raise ValueError(f"duration must be >= 0, got {self.duration}")

    @classmethod
    def default(cls) -> Trigger:
        return cls()

    @classmethod
    def timer(cls, duration: float) -> Trigger:
        return cls(kind=TriggerKind.TIMER, duration=duration)

    @classmethod
    def condition(cls, check_function_name: str) -> Trigger:
        return cls(kind=TriggerKind.CONDITION, check_function_name=check_function_name)

    @property
    def elapsed(self) -> float:
        return self._elapsed

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def is_bound(self) -> bool:
        return self._check is not None

    def evaluate(self, dt: float) -> bool:
        """Advance by ``dt``. True only on the evaluation that fires."""
        if self._fired:
            return False
        if self.kind is TriggerKind.TIMER:
            self._elapsed += dt
            self._fired = self._elapsed >= self.duration
        elif self._check is not None:
            self._fired = bool(self._check())
        return self._fired

    def reset(self) -> None:
        self._elapsed = 0.0
        self._fired = False

    def restore_progress(self, elapsed: float, fired: bool) -> None:
        """Reinstate runtime progress captured by an executor snapshot."""
        self._elapsed = elapsed
        self._fired = fired

    def bind(self, resolver: Resolver) -> bool:
        """Resolve the predicate. An unresolved condition trigger stays inert."""
        self._check = None
        if self.kind is TriggerKind.CONDITION and self.check_function_name:
            self._check = resolver.condition(self.check_function_name)
        return self._check is not None

    def unbind(self) -> None:
        self._check = None
