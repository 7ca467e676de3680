"""Shared enums, id aliases and exceptions for tick-vfsm."""
from __future__ import annotations

from enum import Enum
from typing import Any

TriggerId = int
StateId = int

DEFAULT_STATE_NAME = "State"
DEFAULT_TRIGGER_DURATION = 0.5
SNAPSHOT_VERSION = 1


class TriggerKind(Enum):
    """How a trigger decides that it has fired."""

    TIMER = "timer"
    CONDITION = "condition"


class SpecialKind(Enum):
    """Structural marker states. At most one of each per graph."""

    ENTRY = "entry"
    EXIT = "exit"

    @property
    def state_name(self) -> str:
        return self.value.capitalize()


class UnknownStateError(KeyError):
    """Raised when a state that is not a member of the graph is used as a runtime target."""

    def __init__(self, state: Any, message: str) -> None:
        self.state = state
        super().__init__(message)


class GraphDataError(Exception):
    """Raised on restore failures (version mismatch, broken structural reference)."""
