"""Synchronous pub/sub notifier with scoped suppression."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Iterator

CHANGED = "changed"
TRANSITIONED = "transitioned"

Handler = Callable[[str, dict[str, Any]], None]


class Notifier:
    """Dispatches signals in-line with the call that emits them.

    Handlers are called in subscription order. The handler list is
    snapshotted per emit, so a handler may subscribe or unsubscribe
    (itself or others) while being dispatched.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Handler]] = {}
        self._suppressed: int = 0
        self._pending: set[str] = set()

    def subscribe(self, signal_name: str, handler: Handler) -> None:
        self._subscribers.setdefault(signal_name, []).append(handler)

    def unsubscribe(self, signal_name: str, handler: Handler) -> None:
        """Drop ``handler``; unknown signals and handlers are ignored."""
        handlers = self._subscribers.get(signal_name, [])
        if handler in handlers:
            handlers.remove(handler)

    @property
    def suppressed(self) -> bool:
        return self._suppressed > 0

    def emit(self, signal_name: str, **data: Any) -> None:
        if self._suppressed:
            self._pending.add(signal_name)
            return
        for handler in list(self._subscribers.get(signal_name, ())):
            handler(signal_name, data)

    @contextmanager
    def suppress(self, emit_on_exit: bool = False, **data: Any) -> Iterator[None]:
        """Swallow emits for the duration of the block.

        Nested blocks are allowed; only the outermost one decides whether
        a final emit happens. With ``emit_on_exit`` each signal that was
        swallowed is emitted once (with ``data``) when the block ends.
        """
        self._suppressed += 1
        try:
            yield
        finally:
            self._suppressed -= 1
            if not self._suppressed:
                pending = sorted(self._pending)
                self._pending.clear()
                if emit_on_exit:
                    for signal_name in pending:
                        self.emit(signal_name, **data)
