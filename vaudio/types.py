"""
Command vocabulary shared by the input layer and the navigator.

Four atomic signals (buttons 1-4) combine into eight logical commands:
the four singles and the legal pairs 1+2, 1+4, 3+2 and 3+4.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, FrozenSet, Literal, Optional, Tuple, Union

from .errors import InvariantViolation


class Signal(IntEnum):
    """One of the four physical buttons."""
    ONE = 1
    TWO = 2
    THREE = 3
    FOUR = 4


CommandKey = Literal["1", "2", "3", "4", "1+2", "1+4", "3+2", "3+4"]

SINGLE_KEYS: Tuple[str, ...] = ("1", "2", "3", "4")
PAIR_KEYS: Tuple[str, ...] = ("1+2", "1+4", "3+2", "3+4")
ALL_COMMAND_KEYS: Tuple[str, ...] = SINGLE_KEYS + PAIR_KEYS

# Canonical spelling of each legal pair (note "3+2", not "2+3")
LEGAL_PAIRS: Dict[FrozenSet[Signal], str] = {
    frozenset({Signal.ONE, Signal.TWO}): "1+2",
    frozenset({Signal.ONE, Signal.FOUR}): "1+4",
    frozenset({Signal.THREE, Signal.TWO}): "3+2",
    frozenset({Signal.THREE, Signal.FOUR}): "3+4",
}


def to_signal(value: Union[Signal, int, str]) -> Optional[Signal]:
    """Coerce an int/str/Signal to a Signal, or None if out of range."""
    if isinstance(value, Signal):
        return value
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    if 1 <= number <= 4:
        return Signal(number)
    return None


def pair_key(a: Union[Signal, int], b: Union[Signal, int]) -> Optional[str]:
    """Return the canonical key for an unordered pair, or None if illegal."""
    sa, sb = to_signal(a), to_signal(b)
    if sa is None or sb is None or sa == sb:
        return None
    return LEGAL_PAIRS.get(frozenset({sa, sb}))


def parse_command_key(text: Union[str, int, Signal]) -> str:
    """
    Normalize a command string to its canonical CommandKey.

    Accepts "1".."4", any ordering of a legal pair ("2+1", "2+3"), and
    surrounding whitespace.

    Raises:
        ValueError: If the text is not one of the eight commands
    """
    if isinstance(text, (int, Signal)) and not isinstance(text, bool):
        signal = to_signal(text)
        if signal is None:
            raise ValueError(f"Not a command: {text!r}")
        return str(int(signal))

    cleaned = str(text).replace(" ", "")
    if cleaned in SINGLE_KEYS:
        return cleaned

    parts = cleaned.split("+")
    if len(parts) == 2:
        key = pair_key(to_signal(parts[0]) or 0, to_signal(parts[1]) or 0)
        if key is not None:
            return key
    raise ValueError(f"Not a command: {text!r}")


def signals_for_key(key: str) -> Tuple[Signal, ...]:
    """Split a canonical command key into its signals."""
    return tuple(Signal(int(part)) for part in parse_command_key(key).split("+"))


@dataclass(frozen=True)
class ResolvedCommand:
    """
    A single signal or a legal pair, ready for dispatch.

    Pairs are stored in canonical key order so two commands built from
    the same unordered pair compare equal.

    Attributes:
        signals: One signal, or two signals forming a legal pair
        source: Device tag that produced the command ("keyboard", "manual", ...)
        timestamp: Resolution time in seconds
        raw: Originating raw event, if any
    """
    signals: Tuple[Signal, ...]
    source: str = "unknown"
    timestamp: float = field(default_factory=time.time)
    raw: Any = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        signals = tuple(to_signal(s) for s in self.signals)
        if any(s is None for s in signals):
            raise InvariantViolation(f"Invalid signal in {self.signals!r}")
        if len(signals) == 2:
            key = pair_key(signals[0], signals[1])
            if key is None:
                raise InvariantViolation(f"Illegal pair {self.signals!r}")
            signals = signals_for_key(key)
        elif len(signals) != 1:
            raise InvariantViolation(f"Command needs 1 or 2 signals, got {len(signals)}")
        object.__setattr__(self, "signals", signals)

    @property
    def key(self) -> str:
        if len(self.signals) == 1:
            return str(int(self.signals[0]))
        return LEGAL_PAIRS[frozenset(self.signals)]

    @property
    def is_pair(self) -> bool:
        return len(self.signals) == 2

    @property
    def signal(self) -> Optional[Signal]:
        """The signal of a single command, None for pairs."""
        return None if self.is_pair else self.signals[0]

    @classmethod
    def single(cls, signal: Union[Signal, int], source: str = "unknown", **kwargs) -> "ResolvedCommand":
        return cls((signal,), source, **kwargs)

    @classmethod
    def pair(
        cls,
        a: Union[Signal, int],
        b: Union[Signal, int],
        source: str = "unknown",
        **kwargs,
    ) -> "ResolvedCommand":
        return cls((a, b), source, **kwargs)

    @classmethod
    def from_key(cls, key: Union[str, int], source: str = "manual", **kwargs) -> "ResolvedCommand":
        """Build a command from a command string such as "3+4"."""
        return cls(signals_for_key(parse_command_key(key)), source, **kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for logging."""
        return {
            "key": self.key,
            "signals": [int(s) for s in self.signals],
            "source": self.source,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        return self.key
