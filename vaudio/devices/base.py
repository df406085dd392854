"""
Base device adapter.

Translates one device's raw event shape into zero-or-one Signal using an
overridable trigger table. Adapters know nothing about combinations.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from ..types import Signal, to_signal

logger = logging.getLogger(__name__)

Trigger = Union[str, int]


class DeviceType(str, Enum):
    """Physical input sources."""
    KEYBOARD = "keyboard"
    POINTER = "pointer"
    CONTROLLER = "controller"
    TOUCH = "touch"
    VOICE = "voice"


@dataclass(frozen=True)
class TriggerMapping:
    """One entry of an adapter's trigger table."""
    device: DeviceType
    trigger: Trigger
    signal: Signal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device": self.device.value,
            "trigger": self.trigger,
            "signal": int(self.signal),
        }


class DeviceAdapter(ABC):
    """
    Maps raw device events to Signals.

    Subclasses provide default_mappings(), validate_input() and
    extract_trigger(). Custom mappings passed at construction override
    or extend the defaults.
    """

    device_type: DeviceType

    def __init__(
        self,
        custom_mappings: Optional[Mapping[Trigger, Union[Signal, int]]] = None,
        enabled: bool = True,
    ):
        """
        Initialize the adapter.

        Args:
            custom_mappings: Trigger -> signal overrides
            enabled: Whether to process events
        """
        self.enabled = enabled
        self._mappings: Dict[Trigger, Signal] = {}
        for trigger, signal in self.default_mappings().items():
            self._mappings[self.normalize_trigger(trigger)] = Signal(signal)
        if custom_mappings:
            for trigger, signal in custom_mappings.items():
                self.add_mapping(trigger, signal)

        self.event_count = 0
        self.signal_count = 0
        self.unmapped_count = 0

    @abstractmethod
    def default_mappings(self) -> Dict[Trigger, Signal]:
        """Device-appropriate default trigger table."""

    @abstractmethod
    def validate_input(self, raw: Any) -> bool:
        """Whether a raw event has the shape this device produces."""

    @abstractmethod
    def extract_trigger(self, raw: Mapping[str, Any]) -> Optional[Trigger]:
        """Derive the lookup trigger from a validated raw event."""

    def normalize_trigger(self, trigger: Trigger) -> Trigger:
        """Canonical form of a trigger key. Strings are lower-cased."""
        if isinstance(trigger, str):
            return trigger.strip().lower()
        return trigger

    def normalize(self, raw: Any) -> Optional[Signal]:
        """
        Translate a raw event into a Signal.

        Returns:
            The mapped Signal, or None for invalid or unmapped events
        """
        if not self.enabled:
            return None
        self.event_count += 1

        if not self.validate_input(raw):
            self.unmapped_count += 1
            return None

        trigger = self.extract_trigger(raw)
        signal = self.lookup(trigger) if trigger is not None else None
        if signal is None:
            self.unmapped_count += 1
            logger.debug(f"{self.device_type.value}: unmapped trigger {trigger!r}")
            return None

        self.signal_count += 1
        return signal

    def lookup(self, trigger: Trigger) -> Optional[Signal]:
        """Look a trigger up in the table."""
        return self._mappings.get(self.normalize_trigger(trigger))

    def add_mapping(self, trigger: Trigger, signal: Union[Signal, int]) -> None:
        """Add or override a trigger."""
        resolved = to_signal(signal)
        if resolved is None:
            raise ValueError(f"Signal must be 1-4, got {signal!r}")
        self._mappings[self.normalize_trigger(trigger)] = resolved

    def remove_mapping(self, trigger: Trigger) -> None:
        self._mappings.pop(self.normalize_trigger(trigger), None)

    def is_mapped(self, trigger: Trigger) -> bool:
        return self.normalize_trigger(trigger) in self._mappings

    def get_mappings(self) -> List[TriggerMapping]:
        return [
            TriggerMapping(self.device_type, trigger, signal)
            for trigger, signal in self._mappings.items()
        ]

    def triggers_for(self, signal: Union[Signal, int]) -> List[Trigger]:
        """All triggers that produce a signal."""
        wanted = to_signal(signal)
        return [t for t, s in self._mappings.items() if s == wanted]

    def get_statistics(self) -> Dict[str, Any]:
        """Get event processing statistics."""
        return {
            "device": self.device_type.value,
            "enabled": self.enabled,
            "total_events": self.event_count,
            "signals": self.signal_count,
            "unmapped": self.unmapped_count,
            "mappings": len(self._mappings),
        }

    def reset_statistics(self) -> None:
        self.event_count = 0
        self.signal_count = 0
        self.unmapped_count = 0


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def dominant_direction(dx: float, dy: float) -> str:
    """
    Direction of the larger movement component.

    Screen convention: positive y points down. Ties go to the vertical axis.
    """
    if abs(dx) > abs(dy):
        return "right" if dx > 0 else "left"
    return "down" if dy > 0 else "up"


def coerce_mappings(
    mappings: Optional[Mapping[Any, Any]],
) -> Dict[Trigger, Signal]:
    """
    Convert config-file mappings to a trigger table.

    Config files store every key as a string, so numeric strings become
    ints (pointer and controller buttons are numbered).
    """
    result: Dict[Trigger, Signal] = {}
    for trigger, signal in (mappings or {}).items():
        resolved = to_signal(signal)
        if resolved is None:
            logger.warning(f"Ignoring mapping {trigger!r} -> {signal!r}: signal must be 1-4")
            continue
        if isinstance(trigger, str) and trigger.strip().isdigit():
            result[int(trigger)] = resolved
        else:
            result[trigger] = resolved
    return result

