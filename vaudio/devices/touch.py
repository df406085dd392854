"""
Touch screen adapter.

Gesture events are mappings with a "type" field:
- {"type": "tap", "x": 100, "y": 200, "duration": 80}
- {"type": "double_tap", "x": ..., "y": ...}
- {"type": "long_press", "x": ..., "y": ...}
- {"type": "swipe", "x0": ..., "y0": ..., "x1": ..., "y1": ...}
- {"type": "pinch", "distance": -40.0}
- {"type": "multi_touch", "points": [[x, y], [x, y]]}
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

from ..types import Signal
from .base import DeviceAdapter, DeviceType, Trigger, dominant_direction, is_number

logger = logging.getLogger(__name__)

GESTURE_TYPES = ("tap", "double_tap", "long_press", "swipe", "pinch", "multi_touch")

# Optional numeric fields per gesture; absent fields default to 0
NUMERIC_FIELDS: Dict[str, Tuple[str, ...]] = {
    "tap": ("x", "y", "duration"),
    "double_tap": ("x", "y"),
    "long_press": ("x", "y"),
    "swipe": ("x0", "y0", "x1", "y1"),
    "pinch": ("distance", "x", "y"),
    "multi_touch": (),
}


@dataclass
class GestureConfig:
    """Gesture recognition thresholds."""
    swipe_threshold: float = 50.0
    long_press_ms: float = 500.0
    pinch_threshold: float = 20.0


class TouchAdapter(DeviceAdapter):
    """
    Maps touch gestures to signals.

    Taps are mapped by screen quadrant. A tap held for at least
    long_press_ms counts as a long press.
    """

    device_type = DeviceType.TOUCH

    def __init__(
        self,
        custom_mappings: Optional[Mapping[Trigger, Union[Signal, int]]] = None,
        enabled: bool = True,
        screen_width: int = 1920,
        screen_height: int = 1080,
        gestures: Optional[GestureConfig] = None,
    ):
        super().__init__(custom_mappings, enabled)
        self.screen_width = screen_width
        self.screen_height = screen_height
        self.gestures = gestures or GestureConfig()

    def default_mappings(self) -> Dict[Trigger, Signal]:
        return {
            "tap_top_left": Signal.ONE,
            "tap_top_right": Signal.TWO,
            "tap_bottom_left": Signal.THREE,
            "tap_bottom_right": Signal.FOUR,
            "swipe_up": Signal.ONE,
            "swipe_right": Signal.TWO,
            "swipe_down": Signal.THREE,
            "swipe_left": Signal.FOUR,
            "long_press": Signal.ONE,
            "double_tap": Signal.TWO,
            "pinch_in": Signal.THREE,
            "pinch_out": Signal.FOUR,
            "two_finger_tap": Signal.ONE,
            "three_finger_tap": Signal.TWO,
        }

    def set_screen_size(self, width: int, height: int) -> None:
        self.screen_width = width
        self.screen_height = height

    def validate_input(self, raw: Any) -> bool:
        if not isinstance(raw, Mapping) or raw.get("type") not in GESTURE_TYPES:
            return False
        gesture = raw["type"]
        if gesture == "multi_touch" and not isinstance(raw.get("points") or (), (list, tuple)):
            return False
        return all(is_number(raw[name]) for name in NUMERIC_FIELDS[gesture] if name in raw)

    def extract_trigger(self, raw: Mapping[str, Any]) -> Optional[Trigger]:
        gesture = raw["type"]
        if gesture == "tap":
            if float(raw.get("duration", 0)) >= self.gestures.long_press_ms:
                return "long_press"
            return self._quadrant(float(raw.get("x", 0)), float(raw.get("y", 0)))
        if gesture in ("double_tap", "long_press"):
            return gesture
        if gesture == "swipe":
            dx = float(raw.get("x1", 0)) - float(raw.get("x0", 0))
            dy = float(raw.get("y1", 0)) - float(raw.get("y0", 0))
            if max(abs(dx), abs(dy)) < self.gestures.swipe_threshold:
                return None
            return f"swipe_{dominant_direction(dx, dy)}"
        if gesture == "pinch":
            distance = float(raw.get("distance", 0))
            if abs(distance) < self.gestures.pinch_threshold:
                return None
            return "pinch_in" if distance < 0 else "pinch_out"
        return self._multi_touch(raw.get("points") or ())

    def _quadrant(self, x: float, y: float) -> str:
        vertical = "top" if y < self.screen_height / 2 else "bottom"
        horizontal = "left" if x < self.screen_width / 2 else "right"
        return f"tap_{vertical}_{horizontal}"

    def _multi_touch(self, points: Sequence[Any]) -> Optional[str]:
        count = len(points)
        if count == 2:
            return "two_finger_tap"
        if count == 3:
            return "three_finger_tap"
        return None

    def tap(self, x: float, y: float, duration: float = 0) -> Optional[Signal]:
        return self.normalize({"type": "tap", "x": x, "y": y, "duration": duration})

    def double_tap(self, x: float = 0, y: float = 0) -> Optional[Signal]:
        return self.normalize({"type": "double_tap", "x": x, "y": y})

    def swipe(self, x0: float, y0: float, x1: float, y1: float) -> Optional[Signal]:
        return self.normalize({"type": "swipe", "x0": x0, "y0": y0, "x1": x1, "y1": y1})

    def pinch(self, distance: float, cx: float = 0, cy: float = 0) -> Optional[Signal]:
        """Negative distance pinches in, positive pinches out."""
        return self.normalize({"type": "pinch", "distance": distance, "x": cx, "y": cy})

    def multi_touch(self, points: Sequence[Tuple[float, float]]) -> Optional[Signal]:
        return self.normalize({"type": "multi_touch", "points": list(points)})
