"""System factory driving executors from the tick engine loop."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from tick_vfsm.executor import Executor


def make_vfsm_system(*executors: Executor) -> Callable[[Any, Any], None]:
    """Return a system that ticks each executor by ``ctx.dt``, in order."""

    def vfsm_system(world: Any, ctx: Any) -> None:
        for executor in executors:
            executor.tick(ctx.dt)

    return vfsm_system
