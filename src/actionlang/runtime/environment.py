"""Environment binding: how a simulated document/window graph is injected into an execution.

The engine defines no DOM behaviour. It binds whatever an Environment exposes
into the outermost context and calls those objects like any other built-in.
Timers run on a virtual clock that only moves when the caller ticks it.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Invoker = Callable[[Any, list], Any]


def _call_directly(callback: Any, args: list) -> Any:
    return callback(*args)


@dataclass
class Timer:
    id: int
    kind: str  # "timeout", "interval" or "frame"
    callback: Any
    delay: int
    args: tuple = ()
    due: int = 0
    runs: int = 0
    cancelled: bool = False


class TimerQueue:
    """Delayed and periodic callbacks driven by tick(ms) instead of wall-clock time."""

    FRAME_MS = 16
    HISTORY_LIMIT = 1000

    def __init__(self, invoke: Optional[Invoker] = None, history_limit: int = HISTORY_LIMIT):
        self.now = 0
        self.invoke: Invoker = invoke or _call_directly
        self._timers: dict[int, Timer] = {}
        self._next_id = 0
        # most recent set/clear/fire events, oldest dropped first
        self.history: deque[dict[str, Any]] = deque(maxlen=history_limit)

    def _add(self, kind: str, callback: Any, delay: Any, args: tuple) -> int:
        self._next_id += 1
        try:
            delay = max(int(delay or 0), 0)
        except (TypeError, ValueError, OverflowError):
            delay = 0
        timer = Timer(self._next_id, kind, callback, delay, args, due=self.now + delay)
        self._timers[timer.id] = timer
        self.history.append({"op": f"set{kind.title()}", "id": timer.id, "delay": delay})
        return timer.id

    def set_timeout(self, callback: Any, delay: Any = 0, *args: Any) -> int:
        return self._add("timeout", callback, delay, args)

    def set_interval(self, callback: Any, delay: Any = 0, *args: Any) -> int:
        return self._add("interval", callback, delay, args)

    def request_animation_frame(self, callback: Any) -> int:
        return self._add("frame", callback, self.FRAME_MS, ())

    def clear(self, timer_id: Any) -> None:
        timer = self._timers.pop(timer_id, None) if isinstance(timer_id, int) else None
        if timer is not None:
            timer.cancelled = True
            self.history.append({"op": "clear", "id": timer.id})

    def pending(self) -> list[Timer]:
        return sorted(self._timers.values(), key=lambda t: (t.due, t.id))

    def _fire(self, timer: Timer) -> None:
        timer.runs += 1
        if timer.kind == "interval":
            timer.due = self.now + max(timer.delay, 1)
        else:
            self._timers.pop(timer.id, None)
        args = [self.now] if timer.kind == "frame" else list(timer.args)
        logger.debug("firing %s timer %d at t=%d", timer.kind, timer.id, self.now)
        self.history.append({"op": "fire", "id": timer.id, "at": self.now})
        self.invoke(timer.callback, args)

    def tick(self, ms: int = 0) -> int:
        """Advance the clock by ms, firing due callbacks in due-time order. Returns how many fired."""
        target = self.now + max(int(ms), 0)
        fired = 0
        while True:
            due = [t for t in self.pending() if t.due <= target]
            if not due:
                break
            timer = due[0]
            self.now = max(self.now, timer.due)
            self._fire(timer)
            fired += 1
        self.now = target
        return fired

    def run_all(self, limit: int = 10_000) -> int:
        """Fire one-shot callbacks until none remain; intervals are left scheduled."""
        fired = 0
        while fired < limit:
            one_shots = [t for t in self.pending() if t.kind != "interval"]
            if not one_shots:
                break
            timer = one_shots[0]
            self.now = max(self.now, timer.due)
            self._fire(timer)
            fired += 1
        return fired

    def bindings(self) -> dict[str, Callable[..., Any]]:
        return {
            "setTimeout": self.set_timeout,
            "clearTimeout": self.clear,
            "setInterval": self.set_interval,
            "clearInterval": self.clear,
            "requestAnimationFrame": self.request_animation_frame,
            "cancelAnimationFrame": self.clear,
        }


@dataclass
class Environment:
    """Host objects (document, window, ...) to inject before execution, plus an optional timer queue."""
    objects: dict[str, Any] = field(default_factory=dict)
    timers: Optional[TimerQueue] = None

    def globals(self) -> dict[str, Any]:
        bound = dict(self.objects)
        if self.timers is not None:
            bound.update(self.timers.bindings())
        return bound
