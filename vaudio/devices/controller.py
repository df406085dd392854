"""
Game controller adapter.

Accepts button events {"button": 0, "pressed": True}, single-axis samples
{"axis": 0, "value": 0.8}, combined stick samples {"stick": "left",
"x": 0.1, "y": -0.9} and d-pad events {"dpad": "up"}. Button numbering
follows the standard gamepad layout.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Union

from ..types import Signal
from .base import DeviceAdapter, DeviceType, Trigger, dominant_direction

logger = logging.getLogger(__name__)

# Standard gamepad button indices
BUTTON_A = 0
BUTTON_B = 1
BUTTON_X = 2
BUTTON_Y = 3
BUTTON_LB = 4
BUTTON_RB = 5
BUTTON_LT = 6
BUTTON_RT = 7
DPAD_UP = 12
DPAD_DOWN = 13
DPAD_LEFT = 14
DPAD_RIGHT = 15

DEFAULT_DEAD_ZONE = 0.1
DEFAULT_AXIS_THRESHOLD = 0.5


class ControllerAdapter(DeviceAdapter):
    """Maps gamepad buttons, d-pad and analog sticks to signals."""

    device_type = DeviceType.CONTROLLER

    def __init__(
        self,
        custom_mappings: Optional[Mapping[Trigger, Union[Signal, int]]] = None,
        enabled: bool = True,
        dead_zone: float = DEFAULT_DEAD_ZONE,
        axis_threshold: float = DEFAULT_AXIS_THRESHOLD,
    ):
        super().__init__(custom_mappings, enabled)
        self.dead_zone = dead_zone
        self.axis_threshold = axis_threshold

    def default_mappings(self) -> Dict[Trigger, Signal]:
        mappings: Dict[Trigger, Signal] = {
            BUTTON_A: Signal.ONE,
            BUTTON_B: Signal.TWO,
            BUTTON_X: Signal.THREE,
            BUTTON_Y: Signal.FOUR,
            BUTTON_LB: Signal.ONE,
            BUTTON_RB: Signal.TWO,
            BUTTON_LT: Signal.THREE,
            BUTTON_RT: Signal.FOUR,
            DPAD_UP: Signal.ONE,
            DPAD_RIGHT: Signal.TWO,
            DPAD_DOWN: Signal.THREE,
            DPAD_LEFT: Signal.FOUR,
        }
        for prefix in ("dpad", "left_stick", "right_stick"):
            mappings[f"{prefix}_up"] = Signal.ONE
            mappings[f"{prefix}_right"] = Signal.TWO
            mappings[f"{prefix}_down"] = Signal.THREE
            mappings[f"{prefix}_left"] = Signal.FOUR
        return mappings

    def validate_input(self, raw: Any) -> bool:
        if not isinstance(raw, Mapping):
            return False
        if "button" in raw:
            return isinstance(raw["button"], int) and not isinstance(raw["button"], bool)
        if "axis" in raw:
            return isinstance(raw["axis"], int) and isinstance(raw.get("value"), (int, float))
        if "dpad" in raw:
            return isinstance(raw["dpad"], str)
        if "stick" in raw:
            return isinstance(raw.get("x", 0), (int, float)) and isinstance(raw.get("y", 0), (int, float))
        return False

    def extract_trigger(self, raw: Mapping[str, Any]) -> Optional[Trigger]:
        if "button" in raw:
            if not raw.get("pressed", True):
                return None
            return raw["button"]
        if "axis" in raw:
            return self._axis_trigger(raw["axis"], float(raw["value"]))
        if "dpad" in raw:
            return f"dpad_{raw['dpad'].strip().lower()}"
        return self._stick_trigger(
            str(raw["stick"]).lower(), float(raw.get("x", 0)), float(raw.get("y", 0))
        )

    def _active(self, value: float) -> bool:
        magnitude = abs(value)
        return magnitude > self.dead_zone and magnitude >= self.axis_threshold

    def _axis_trigger(self, axis: int, value: float) -> Optional[str]:
        if axis < 0 or not self._active(value):
            return None
        stick = "left_stick" if axis < 2 else "right_stick"
        if axis % 2 == 0:
            direction = "right" if value > 0 else "left"
        else:
            direction = "down" if value > 0 else "up"
        return f"{stick}_{direction}"

    def _stick_trigger(self, stick: str, x: float, y: float) -> Optional[str]:
        if not (self._active(x) or self._active(y)):
            return None
        prefix = "right_stick" if stick.startswith("right") else "left_stick"
        return f"{prefix}_{dominant_direction(x, y)}"

    def button(self, index: int, pressed: bool = True) -> Optional[Signal]:
        return self.normalize({"button": index, "pressed": pressed})

    def axis(self, index: int, value: float) -> Optional[Signal]:
        return self.normalize({"axis": index, "value": value})

    def dpad(self, direction: str) -> Optional[Signal]:
        return self.normalize({"dpad": direction})
