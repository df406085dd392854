"""
Tests for device adapters.

Each adapter maps its raw event shape to at most one Signal; anything
unmapped or malformed yields None and leaves the adapter usable.
"""
import pytest

from vaudio.devices import (
    ControllerAdapter,
    DeviceType,
    GestureConfig,
    KeyboardAdapter,
    PointerAdapter,
    TouchAdapter,
    VoiceAdapter,
    coerce_mappings,
    create_adapter,
    normalize_text,
)
from vaudio.devices.base import dominant_direction
from vaudio.types import Signal


UNMAPPED = [
    (KeyboardAdapter, {"key": "z"}),
    (PointerAdapter, {"button": 7}),
    (ControllerAdapter, {"button": 9}),
    (TouchAdapter, {"type": "multi_touch", "points": [[0, 0]] * 5}),
    (VoiceAdapter, {"utterance": "banana", "confidence": 0.99}),
]

MALFORMED = [
    (KeyboardAdapter, "w"),
    (PointerAdapter, {"button": True}),
    (ControllerAdapter, {"axis": 0}),
    (TouchAdapter, {"type": "wave"}),
    (VoiceAdapter, {"utterance": None}),
]


class TestCommonBehavior:
    """Properties shared by every adapter."""

    @pytest.mark.parametrize("cls,raw", UNMAPPED)
    def test_unmapped_trigger_yields_nothing(self, cls, raw):
        adapter = cls()
        assert adapter.normalize(raw) is None
        assert adapter.normalize(raw) is None

        stats = adapter.get_statistics()
        assert stats["total_events"] == 2
        assert stats["unmapped"] == 2
        assert stats["signals"] == 0

    @pytest.mark.parametrize("cls,raw", MALFORMED)
    def test_malformed_event_yields_nothing(self, cls, raw):
        assert cls().normalize(raw) is None

    def test_disabled_adapter_ignores_events(self):
        adapter = KeyboardAdapter(enabled=False)
        assert adapter.press("w") is None
        assert adapter.get_statistics()["total_events"] == 0

    def test_custom_mapping_overrides_default(self):
        adapter = KeyboardAdapter({"w": 4})
        assert adapter.press("w") == Signal.FOUR

    def test_add_mapping_rejects_bad_signal(self):
        adapter = KeyboardAdapter()
        with pytest.raises(ValueError):
            adapter.add_mapping("z", 5)

    def test_remove_mapping(self):
        adapter = KeyboardAdapter()
        adapter.remove_mapping("W")
        assert not adapter.is_mapped("w")
        assert adapter.press("w") is None

    def test_triggers_for_signal(self):
        adapter = ControllerAdapter()
        assert set(adapter.triggers_for(4)) >= {3, 7, 14, "dpad_left"}

    def test_reset_statistics(self):
        adapter = KeyboardAdapter()
        adapter.press("w")
        adapter.reset_statistics()
        assert adapter.get_statistics()["total_events"] == 0

    def test_dominant_direction_tie_goes_vertical(self):
        assert dominant_direction(5, 5) == "down"
        assert dominant_direction(-5, -5) == "up"
        assert dominant_direction(6, -5) == "right"


class TestKeyboard:
    """Test keyboard mappings."""

    @pytest.mark.parametrize("key,signal", [
        ("w", 1), ("ArrowUp", 1), ("Enter", 1),
        ("e", 2), ("ArrowRight", 2), (" ", 2),
        ("s", 3), ("Escape", 3), ("esc", 3),
        ("d", 4), ("Backspace", 4), ("4", 4),
    ])
    def test_default_keys(self, key, signal):
        assert KeyboardAdapter().press(key) == Signal(signal)

    def test_case_insensitive(self):
        assert KeyboardAdapter().press("W") == Signal.ONE

    def test_modifiers_distinguish_keys(self):
        adapter = KeyboardAdapter()
        adapter.add_key_mapping("x", 3, ctrl=True)

        assert adapter.press("x") is None
        assert adapter.press("x", ctrl=True) == Signal.THREE
        assert adapter.press("w", ctrl=True) is None

    def test_modifier_order_is_canonical(self):
        adapter = KeyboardAdapter({"shift+ctrl+k": 2})
        assert adapter.press("k", ctrl=True, shift=True) == Signal.TWO

    def test_plus_key(self):
        adapter = KeyboardAdapter({"+": 1, "shift++": 2})
        assert adapter.press("+") == Signal.ONE
        assert adapter.press("+", shift=True) == Signal.TWO

    def test_remove_key_mappings_includes_modifier_variants(self):
        adapter = KeyboardAdapter({"ctrl+w": 2, "alt+shift+w": 3})

        removed = adapter.remove_key_mappings("W")

        assert set(removed) == {"w", "ctrl+w", "alt+shift+w"}
        assert adapter.press("w") is None
        assert adapter.press("w", ctrl=True) is None


class TestPointer:
    """Test pointer mappings."""

    def test_buttons(self):
        pointer = PointerAdapter()
        assert pointer.click(0) == Signal.ONE
        assert pointer.click(2) == Signal.TWO
        assert pointer.click(1) == Signal.THREE

    def test_wheel(self):
        pointer = PointerAdapter()
        assert pointer.scroll(-120) == Signal.ONE
        assert pointer.scroll(120) == Signal.THREE
        assert pointer.scroll(0) is None

    def test_movement_threshold(self):
        pointer = PointerAdapter(movement_threshold=10)
        assert pointer.normalize({"dx": 5, "dy": 3}) is None
        assert pointer.normalize({"dx": 25, "dy": 3}) == Signal.TWO
        assert pointer.normalize({"dx": -25, "dy": 3}) == Signal.FOUR
        assert pointer.normalize({"dx": 2, "dy": -30}) == Signal.ONE

    def test_sensitivity_scales_and_clamps(self):
        pointer = PointerAdapter(sensitivity=2.0)
        assert pointer.normalize({"dx": 6, "dy": 0}) == Signal.TWO

        pointer.sensitivity = 50
        assert pointer.sensitivity == 5.0
        pointer.sensitivity = 0
        assert pointer.sensitivity == 0.1

    def test_move_to_tracks_position(self):
        pointer = PointerAdapter()
        assert pointer.move_to(100, 100) is None
        assert pointer.move_to(100, 150) == Signal.THREE
        assert pointer.move_to(102, 151) is None

        pointer.reset_position()
        assert pointer.move_to(0, 0) is None

    def test_dead_zone_ignores_jitter_on_minor_axis(self):
        pointer = PointerAdapter(movement_threshold=10, dead_zone=5)

        assert pointer.normalize({"dx": 4, "dy": 4}) is None
        assert pointer.normalize({"dx": 12, "dy": -4}) == Signal.TWO

        wide = PointerAdapter(movement_threshold=10, dead_zone=20)
        assert wide.normalize({"dx": 15, "dy": 0}) is None

    def test_non_numeric_positions_yield_nothing(self):
        pointer = PointerAdapter()

        assert pointer.normalize({"dx": "a", "dy": 0}) is None
        assert pointer.move_to("a", 10) is None
        assert pointer.move_to(100, 100) is None
        assert pointer.move_to(100, 150) == Signal.THREE


class TestController:
    """Test gamepad mappings."""

    @pytest.mark.parametrize("button,signal", [
        (0, 1), (1, 2), (2, 3), (3, 4),
        (4, 1), (5, 2), (6, 3), (7, 4),
        (12, 1), (15, 2), (13, 3), (14, 4),
    ])
    def test_buttons(self, button, signal):
        assert ControllerAdapter().button(button) == Signal(signal)

    def test_release_is_ignored(self):
        assert ControllerAdapter().button(0, pressed=False) is None

    def test_dpad(self):
        controller = ControllerAdapter()
        assert controller.dpad("Up") == Signal.ONE
        assert controller.dpad("left") == Signal.FOUR

    def test_axis_dead_zone_and_threshold(self):
        controller = ControllerAdapter(dead_zone=0.1, axis_threshold=0.5)
        assert controller.axis(0, 0.05) is None
        assert controller.axis(0, 0.3) is None
        assert controller.axis(0, 0.8) == Signal.TWO
        assert controller.axis(1, -0.9) == Signal.ONE
        assert controller.axis(3, 0.9) == Signal.THREE

    def test_stick_sample(self):
        controller = ControllerAdapter()
        raw = {"stick": "right", "x": -0.9, "y": 0.2}
        assert controller.normalize(raw) == Signal.FOUR
        assert controller.normalize({"stick": "left", "x": 0.0, "y": 0.05}) is None


class TestTouch:
    """Test touch gestures."""

    def test_quadrant_taps(self):
        touch = TouchAdapter(screen_width=1000, screen_height=800)
        assert touch.tap(100, 100) == Signal.ONE
        assert touch.tap(900, 100) == Signal.TWO
        assert touch.tap(100, 700) == Signal.THREE
        assert touch.tap(900, 700) == Signal.FOUR

    def test_long_tap_is_long_press(self):
        touch = TouchAdapter(gestures=GestureConfig(long_press_ms=300))
        assert touch.tap(1800, 1000, duration=350) == Signal.ONE

    def test_swipes(self):
        touch = TouchAdapter()
        assert touch.swipe(500, 500, 500, 300) == Signal.ONE
        assert touch.swipe(500, 500, 700, 510) == Signal.TWO
        assert touch.swipe(500, 500, 510, 520) is None

    def test_pinch(self):
        touch = TouchAdapter()
        assert touch.pinch(-40) == Signal.THREE
        assert touch.pinch(40) == Signal.FOUR
        assert touch.pinch(5) is None

    def test_multi_touch(self):
        touch = TouchAdapter()
        assert touch.multi_touch([(0, 0), (1, 1)]) == Signal.ONE
        assert touch.multi_touch([(0, 0), (1, 1), (2, 2)]) == Signal.TWO
        assert touch.double_tap() == Signal.TWO

    @pytest.mark.parametrize("raw", [
        {"type": "tap", "x": "a", "y": 10},
        {"type": "tap", "x": 10, "y": 10, "duration": None},
        {"type": "swipe", "x0": 0, "y0": 0, "x1": "far", "y1": 0},
        {"type": "pinch", "distance": "in"},
        {"type": "multi_touch", "points": 3},
    ])
    def test_malformed_gesture_yields_nothing(self, raw):
        touch = TouchAdapter()

        assert touch.normalize(raw) is None
        assert touch.get_statistics()["unmapped"] == 1

    def test_screen_resize_moves_quadrants(self):
        touch = TouchAdapter()
        touch.set_screen_size(200, 200)
        assert touch.tap(150, 50) == Signal.TWO


class TestVoice:
    """Test voice vocabulary and synonyms."""

    def test_normalize_text(self):
        assert normalize_text("  Três!! ") == "tres"
        assert normalize_text("Para   CIMA") == "para cima"

    def test_direct_words(self):
        voice = VoiceAdapter()
        assert voice.hear("cima") == Signal.ONE
        assert voice.hear("TRÊS") == Signal.THREE
        assert voice.hear("tres") == Signal.THREE
        assert voice.hear("left") == Signal.FOUR

    def test_synonyms(self):
        voice = VoiceAdapter()
        assert voice.hear("para baixo") == Signal.THREE
        assert voice.hear("Não") == Signal.TWO
        assert "subir" in voice.get_synonyms("cima")

    def test_low_confidence_rejected(self):
        voice = VoiceAdapter(confidence_threshold=0.7)
        assert voice.hear("cima", confidence=0.5) is None
        assert voice.get_statistics()["low_confidence"] == 1

    def test_alternates_tried_in_order(self):
        voice = VoiceAdapter()
        assert voice.hear("cimba", alternates=["quatro", "um"]) == Signal.FOUR

    def test_custom_synonyms(self):
        voice = VoiceAdapter(synonyms={"sair": ["exit", "quit"]})
        assert voice.hear("quit") == Signal.FOUR

        voice.remove_synonyms("sair")
        assert voice.hear("quit") is None


class TestFactory:
    """Test adapter construction from config mappings."""

    def test_coerce_mappings(self):
        mappings = coerce_mappings({"0": "4", "jump": 2, "bad": 9})
        assert mappings == {0: Signal.FOUR, "jump": Signal.TWO}

    def test_create_adapter_applies_mappings(self):
        pointer = create_adapter(DeviceType.POINTER, {"0": 4})
        assert pointer.click(0) == Signal.FOUR

    @pytest.mark.parametrize("device", list(DeviceType))
    def test_create_every_device(self, device):
        adapter = create_adapter(device)
        assert adapter.device_type == device
