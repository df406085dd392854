"""
Pointer (mouse) adapter.

Accepts three raw shapes:
- {"button": 0} for clicks
- {"wheel": -120.0} for wheel ticks (negative deltas scroll up)
- {"dx": 15.0, "dy": -2.0} for relative movement
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ..types import Signal
from .base import DeviceAdapter, DeviceType, Trigger, dominant_direction, is_number

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 10.0
DEFAULT_DEAD_ZONE = 2.0
MIN_SENSITIVITY = 0.1
MAX_SENSITIVITY = 5.0


class PointerAdapter(DeviceAdapter):
    """
    Maps clicks, wheel ticks and movement to signals.

    Movement is reported either as explicit deltas or through move_to(),
    which tracks the last absolute position and derives the delta. After
    sensitivity scaling, a component inside dead_zone counts as zero, and
    the movement must reach movement_threshold on at least one axis.
    """

    device_type = DeviceType.POINTER

    def __init__(
        self,
        custom_mappings: Optional[Mapping[Trigger, Union[Signal, int]]] = None,
        enabled: bool = True,
        sensitivity: float = 1.0,
        movement_threshold: float = DEFAULT_THRESHOLD,
        dead_zone: float = DEFAULT_DEAD_ZONE,
    ):
        super().__init__(custom_mappings, enabled)
        self.sensitivity = sensitivity
        self.movement_threshold = movement_threshold
        self.dead_zone = dead_zone
        self._last_position: Optional[Tuple[float, float]] = None

    @property
    def sensitivity(self) -> float:
        return self._sensitivity

    @sensitivity.setter
    def sensitivity(self, value: float) -> None:
        self._sensitivity = max(MIN_SENSITIVITY, min(MAX_SENSITIVITY, float(value)))

    def default_mappings(self) -> Dict[Trigger, Signal]:
        return {
            0: Signal.ONE,    # left
            2: Signal.TWO,    # right
            1: Signal.THREE,  # middle
            "wheel_up": Signal.ONE,
            "wheel_down": Signal.THREE,
            "move_up": Signal.ONE,
            "move_right": Signal.TWO,
            "move_down": Signal.THREE,
            "move_left": Signal.FOUR,
        }

    def validate_input(self, raw: Any) -> bool:
        if not isinstance(raw, Mapping):
            return False
        if "button" in raw:
            return isinstance(raw["button"], int) and not isinstance(raw["button"], bool)
        if "wheel" in raw:
            return is_number(raw["wheel"])
        if "dx" in raw or "dy" in raw:
            return is_number(raw.get("dx", 0)) and is_number(raw.get("dy", 0))
        return False

    def extract_trigger(self, raw: Mapping[str, Any]) -> Optional[Trigger]:
        if "button" in raw:
            return raw["button"]
        if "wheel" in raw:
            delta = float(raw["wheel"])
            if delta == 0:
                return None
            return "wheel_up" if delta < 0 else "wheel_down"
        return self._movement_trigger(float(raw.get("dx", 0)), float(raw.get("dy", 0)))

    def _movement_trigger(self, dx: float, dy: float) -> Optional[str]:
        dx *= self.sensitivity
        dy *= self.sensitivity
        if abs(dx) < self.dead_zone:
            dx = 0.0
        if abs(dy) < self.dead_zone:
            dy = 0.0
        if abs(dx) < self.movement_threshold and abs(dy) < self.movement_threshold:
            return None
        return f"move_{dominant_direction(dx, dy)}"

    def click(self, button: int = 0) -> Optional[Signal]:
        return self.normalize({"button": button})

    def scroll(self, delta: float) -> Optional[Signal]:
        return self.normalize({"wheel": delta})

    def move_to(self, x: float, y: float) -> Optional[Signal]:
        """
        Report an absolute pointer position.

        The first call only records the position. Later calls emit a
        movement signal when the distance from the last position crosses
        the threshold.
        """
        if not (is_number(x) and is_number(y)):
            return None
        last = self._last_position
        self._last_position = (float(x), float(y))
        if last is None:
            return None
        return self.normalize({"dx": x - last[0], "dy": y - last[1]})

    def reset_position(self) -> None:
        self._last_position = None
