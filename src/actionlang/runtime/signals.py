"""Control signals: non-value results that carry break/continue/return up the tree."""

from dataclasses import dataclass
from typing import Any, Optional

from actionlang.runtime.values import UNDEFINED


class Signal:
    """Base for results that are not ordinary values."""
    label: Optional[str] = None


@dataclass(frozen=True)
class BreakSignal(Signal):
    label: Optional[str] = None


@dataclass(frozen=True)
class ContinueSignal(Signal):
    label: Optional[str] = None


@dataclass(frozen=True)
class ReturnSignal(Signal):
    value: Any = UNDEFINED


BREAK = BreakSignal()
CONTINUE = ContinueSignal()


def is_signal(result: Any) -> bool:
    return isinstance(result, Signal)


def targets_loop(signal: Signal, loop_label: Optional[str]) -> bool:
    """Whether a loop labelled loop_label consumes this break/continue."""
    return signal.label is None or signal.label == loop_label
