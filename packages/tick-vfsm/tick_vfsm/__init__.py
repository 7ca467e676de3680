"""tick-vfsm - Visual finite state machine graphs and their tick-driven executor."""
from __future__ import annotations

from tick_vfsm.binding import CallbackRegistry, HostResolver, Resolver
from tick_vfsm.executor import Executor
from tick_vfsm.graph import StateGraph
from tick_vfsm.signals import CHANGED, TRANSITIONED, Notifier
from tick_vfsm.state import SpecialState, State
from tick_vfsm.systems import make_vfsm_system
from tick_vfsm.trigger import Trigger
from tick_vfsm.types import (
    GraphDataError,
    SpecialKind,
    TriggerKind,
    UnknownStateError,
)

__all__ = [
    "CHANGED",
    "TRANSITIONED",
    "CallbackRegistry",
    "Executor",
    "GraphDataError",
    "HostResolver",
    "Notifier",
    "Resolver",
    "SpecialKind",
    "SpecialState",
    "State",
    "StateGraph",
    "Trigger",
    "TriggerKind",
    "UnknownStateError",
    "make_vfsm_system",
]
