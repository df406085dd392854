"""
Keyboard adapter.

Raw events look like {"key": "w", "ctrl": False, "alt": False,
"shift": False, "meta": False}. Modifier-qualified triggers are spelled
"ctrl+alt+shift+meta+<key>" with the modifiers in that order.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from ..types import Signal
from .base import DeviceAdapter, DeviceType, Trigger

logger = logging.getLogger(__name__)

MODIFIERS = ("ctrl", "alt", "shift", "meta")

DEFAULT_KEYS: Dict[str, Signal] = {
    # Signal 1
    "w": Signal.ONE,
    "1": Signal.ONE,
    "arrowup": Signal.ONE,
    "numpad8": Signal.ONE,
    "enter": Signal.ONE,
    # Signal 2
    "e": Signal.TWO,
    "2": Signal.TWO,
    "arrowright": Signal.TWO,
    "numpad6": Signal.TWO,
    "space": Signal.TWO,
    # Signal 3
    "s": Signal.THREE,
    "3": Signal.THREE,
    "arrowdown": Signal.THREE,
    "numpad2": Signal.THREE,
    "escape": Signal.THREE,
    # Signal 4
    "d": Signal.FOUR,
    "4": Signal.FOUR,
    "arrowleft": Signal.FOUR,
    "numpad4": Signal.FOUR,
    "backspace": Signal.FOUR,
}

# Terminal and browser spellings of the same physical keys
KEY_ALIASES: Dict[str, str] = {
    " ": "space",
    "\r": "enter",
    "\n": "enter",
    "return": "enter",
    "esc": "escape",
    "\x1b": "escape",
    "up": "arrowup",
    "down": "arrowdown",
    "left": "arrowleft",
    "right": "arrowright",
}


def key_trigger(key: str, **modifiers: bool) -> str:
    """Build the trigger string for a key plus modifiers."""
    name = canonical_key(key)
    active = [m for m in MODIFIERS if modifiers.get(m)]
    return "+".join(active + [name])


def canonical_key(key: str) -> str:
    if key in KEY_ALIASES:
        return KEY_ALIASES[key]
    lowered = key.strip().lower() if key.strip() else key
    return KEY_ALIASES.get(lowered, lowered)


class KeyboardAdapter(DeviceAdapter):
    """
    Maps key presses to signals.

    Example:
        >>> kb = KeyboardAdapter({"j": 1})
        >>> kb.press("J")
        <Signal.ONE: 1>
        >>> kb.press("w", ctrl=True) is None
        True
    """

    device_type = DeviceType.KEYBOARD

    def default_mappings(self) -> Dict[Trigger, Signal]:
        return dict(DEFAULT_KEYS)

    def normalize_trigger(self, trigger: Trigger) -> Trigger:
        if isinstance(trigger, int):
            return str(trigger)
        if trigger in KEY_ALIASES:
            return KEY_ALIASES[trigger]
        parts = trigger.lower().split("+")
        # A bare "+" key splits into empty parts
        if not parts[-1] and len(parts) > 1:
            parts = parts[:-2] + ["+"]
        *mods, key = parts
        return "+".join([m for m in MODIFIERS if m in mods] + [canonical_key(key)])

    def validate_input(self, raw: Any) -> bool:
        if not isinstance(raw, Mapping):
            return False
        key = raw.get("key")
        return isinstance(key, str) and key != ""

    def extract_trigger(self, raw: Mapping[str, Any]) -> Optional[Trigger]:
        return key_trigger(
            raw["key"],
            **{m: bool(raw.get(m, False)) for m in MODIFIERS},
        )

    def press(self, key: str, **modifiers: bool) -> Optional[Signal]:
        """Normalize a single key press."""
        event = {"key": key}
        event.update({m: bool(modifiers.get(m, False)) for m in MODIFIERS})
        return self.normalize(event)

    def add_key_mapping(self, key: str, signal: Union[Signal, int], **modifiers: bool) -> None:
        """Map a key, optionally qualified by modifiers."""
        self.add_mapping(key_trigger(key, **modifiers), signal)

    def remove_key_mappings(self, key: str) -> List[str]:
        """
        Remove a key and every modifier variant of it.

        Returns:
            The triggers that were removed
        """
        name = canonical_key(key)
        removed = []
        for trigger in list(self._mappings):
            if trigger == name:
                removed.append(trigger)
            elif isinstance(trigger, str) and trigger.endswith("+" + name):
                prefix = trigger[: -len(name) - 1].split("+")
                if all(m in MODIFIERS for m in prefix):
                    removed.append(trigger)
        for trigger in removed:
            del self._mappings[trigger]
        if removed:
            logger.debug(f"Removed key mappings {removed}")
        return removed
